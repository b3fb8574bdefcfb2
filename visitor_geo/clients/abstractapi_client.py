from typing import Any

from visitor_geo.clients.base import BaseGeoProvider, _blank_to_none, _nested
from visitor_geo.config import DEFAULT_PROVIDER_TIMEOUT_SECONDS
from visitor_geo.models.geo import RawLocation


class AbstractApi(BaseGeoProvider):
    """Adapter for the AbstractAPI IP intelligence endpoint (requires an API key)."""

    name = "abstractapi.com"

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://ip-intelligence.abstractapi.com",
        timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(base_url, timeout_seconds)
        self._api_key = api_key

    async def lookup_ip(self, ip: str) -> RawLocation | None:
        api_key = self._require_key(self._api_key)
        data = await self._request(f"{self._base_url}/v1/", params={"api_key": api_key, "ip_address": ip})
        return self._normalize_payload(data)

    @staticmethod
    def _normalize_payload(data: dict[str, Any]) -> RawLocation | None:
        location = _nested(data, "location")
        if not location.get("latitude"):
            return None

        timezone = _nested(data, "timezone")
        company = _nested(data, "company")
        return RawLocation(
            latitude=location.get("latitude"),
            longitude=location.get("longitude"),
            city=_blank_to_none(location.get("city")),
            region=_blank_to_none(location.get("region")),
            country=_blank_to_none(location.get("country")),
            timezone=_blank_to_none(timezone.get("name")),
            isp=_blank_to_none(company.get("name")),
            organization=_blank_to_none(company.get("name")),
        )
