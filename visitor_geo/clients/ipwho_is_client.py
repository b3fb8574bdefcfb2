from typing import Any

from visitor_geo.clients.base import BaseGeoProvider, _blank_to_none, _nested
from visitor_geo.config import DEFAULT_PROVIDER_TIMEOUT_SECONDS
from visitor_geo.models.geo import RawLocation


class IpWhoIs(BaseGeoProvider):
    """Adapter for https://ipwho.is.

    Signals failure with `"success": false` and a `message`; timezone and
    connection details are nested objects.
    """

    name = "ipwho.is"

    def __init__(
        self, base_url: str = "https://ipwho.is", timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS
    ) -> None:
        super().__init__(base_url, timeout_seconds)

    async def lookup_ip(self, ip: str) -> RawLocation | None:
        data = await self._request(f"{self._base_url}/{ip}")
        return self._normalize_payload(data)

    @staticmethod
    def _normalize_payload(data: dict[str, Any]) -> RawLocation | None:
        if not data.get("success"):
            return None

        timezone = _nested(data, "timezone")
        connection = _nested(data, "connection")
        return RawLocation(
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            city=_blank_to_none(data.get("city")),
            region=_blank_to_none(data.get("region")),
            country=_blank_to_none(data.get("country")),
            timezone=_blank_to_none(timezone.get("id")),
            isp=_blank_to_none(connection.get("isp")),
            organization=_blank_to_none(connection.get("org")),
        )
