from typing import Any

from visitor_geo.clients.base import BaseGeoProvider, _blank_to_none
from visitor_geo.config import DEFAULT_PROVIDER_TIMEOUT_SECONDS
from visitor_geo.models.geo import RawLocation

IP_API_COM_FIELDS = "status,lat,lon,city,regionName,country,timezone,isp,org"


class IpApiCom(BaseGeoProvider):
    """Adapter for the http://ip-api.com JSON API.

    ip-api.com returns HTTP 200 with a `status` field that is either "success" or
    "fail" (private range, reserved range, invalid query). Anything other than
    "success" means the provider has no usable location.
    """

    name = "ip-api.com"

    def __init__(
        self, base_url: str = "http://ip-api.com", timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS
    ) -> None:
        super().__init__(base_url, timeout_seconds)

    async def lookup_ip(self, ip: str) -> RawLocation | None:
        url = f"{self._base_url}/json/{ip}"
        data = await self._request(url, params={"fields": IP_API_COM_FIELDS})
        return self._normalize_payload(data)

    @staticmethod
    def _normalize_payload(data: dict[str, Any]) -> RawLocation | None:
        if str(data.get("status") or "").lower() != "success":
            return None

        return RawLocation(
            latitude=data.get("lat"),
            longitude=data.get("lon"),
            city=_blank_to_none(data.get("city")),
            region=_blank_to_none(data.get("regionName")),
            country=_blank_to_none(data.get("country")),
            timezone=_blank_to_none(data.get("timezone")),
            isp=_blank_to_none(data.get("isp")),
            organization=_blank_to_none(data.get("org")),
        )
