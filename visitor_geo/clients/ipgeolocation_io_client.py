from typing import Any

from visitor_geo.clients.base import BaseGeoProvider, _blank_to_none, _nested
from visitor_geo.config import DEFAULT_PROVIDER_TIMEOUT_SECONDS
from visitor_geo.models.geo import RawLocation


class IpGeolocationIo(BaseGeoProvider):
    """Adapter for https://api.ipgeolocation.io (requires an API key).

    Coordinates are returned as strings; the RawLocation validators coerce them.
    """

    name = "ipgeolocation.io"

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.ipgeolocation.io",
        timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(base_url, timeout_seconds)
        self._api_key = api_key

    async def lookup_ip(self, ip: str) -> RawLocation | None:
        api_key = self._require_key(self._api_key)
        data = await self._request(f"{self._base_url}/ipgeo", params={"apiKey": api_key, "ip": ip})
        return self._normalize_payload(data)

    @staticmethod
    def _normalize_payload(data: dict[str, Any]) -> RawLocation | None:
        if not data.get("latitude"):
            return None

        time_zone = _nested(data, "time_zone")
        return RawLocation(
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            city=_blank_to_none(data.get("city")),
            region=_blank_to_none(data.get("state_prov")),
            country=_blank_to_none(data.get("country_name")),
            timezone=_blank_to_none(time_zone.get("name")),
            isp=_blank_to_none(data.get("isp")),
            organization=_blank_to_none(data.get("organization")),
        )
