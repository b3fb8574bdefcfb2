from typing import Any

from visitor_geo.clients.base import BaseGeoProvider, _blank_to_none
from visitor_geo.config import DEFAULT_PROVIDER_TIMEOUT_SECONDS
from visitor_geo.models.geo import RawLocation


class IpInfo(BaseGeoProvider):
    """Adapter for https://ipinfo.io.

    Coordinates come packed in a single `loc` string ("37.3860,-122.0838").
    Bogon/reserved addresses come back without `loc`. The `org` field carries
    "AS15169 Google LLC"-style text and is used for both ISP and organization.
    """

    name = "ipinfo.io"

    def __init__(
        self, base_url: str = "https://ipinfo.io", timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS
    ) -> None:
        super().__init__(base_url, timeout_seconds)

    async def lookup_ip(self, ip: str) -> RawLocation | None:
        data = await self._request(f"{self._base_url}/{ip}/json")
        return self._normalize_payload(data)

    @staticmethod
    def _normalize_payload(data: dict[str, Any]) -> RawLocation | None:
        loc = data.get("loc")
        if not loc:
            return None

        parts = str(loc).split(",")
        if len(parts) != 2:
            return None
        location = RawLocation(
            latitude=parts[0],
            longitude=parts[1],
            city=_blank_to_none(data.get("city")),
            region=_blank_to_none(data.get("region")),
            country=_blank_to_none(data.get("country")),
            timezone=_blank_to_none(data.get("timezone")),
            isp=_blank_to_none(data.get("org")),
            organization=_blank_to_none(data.get("org")),
        )
        return location if location.has_coordinates else None
