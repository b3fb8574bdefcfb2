from typing import Any

from visitor_geo.clients.base import BaseGeoProvider, _blank_to_none
from visitor_geo.config import DEFAULT_PROVIDER_TIMEOUT_SECONDS
from visitor_geo.models.geo import RawLocation


class FreeIpApi(BaseGeoProvider):
    """Adapter for https://freeipapi.com.

    There is no explicit status flag; a missing or zero latitude means no data.
    Depending on the API version the timezone comes as a `timeZones` list or a
    single `timeZone` string.
    """

    name = "freeipapi.com"

    def __init__(
        self, base_url: str = "https://freeipapi.com", timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS
    ) -> None:
        super().__init__(base_url, timeout_seconds)

    async def lookup_ip(self, ip: str) -> RawLocation | None:
        data = await self._request(f"{self._base_url}/api/json/{ip}")
        return self._normalize_payload(data)

    @staticmethod
    def _normalize_payload(data: dict[str, Any]) -> RawLocation | None:
        if not data.get("latitude"):
            return None

        time_zones = data.get("timeZones")
        if isinstance(time_zones, list):
            timezone = time_zones[0] if time_zones else None
        else:
            timezone = data.get("timeZone")

        return RawLocation(
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            city=_blank_to_none(data.get("cityName")),
            region=_blank_to_none(data.get("regionName")),
            country=_blank_to_none(data.get("countryName")),
            timezone=_blank_to_none(timezone),
        )
