from typing import Any

from visitor_geo.clients.base import BaseGeoProvider, _blank_to_none, _nested
from visitor_geo.config import DEFAULT_PROVIDER_TIMEOUT_SECONDS
from visitor_geo.models.geo import RawLocation


class IpStack(BaseGeoProvider):
    """Adapter for http://api.ipstack.com (requires an access key).

    ipstack reports errors (bad key, quota) with HTTP 200 and `"success": false`.
    """

    name = "ipstack.com"

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "http://api.ipstack.com",
        timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(base_url, timeout_seconds)
        self._api_key = api_key

    async def lookup_ip(self, ip: str) -> RawLocation | None:
        api_key = self._require_key(self._api_key)
        data = await self._request(f"{self._base_url}/{ip}", params={"access_key": api_key})
        return self._normalize_payload(data)

    @staticmethod
    def _normalize_payload(data: dict[str, Any]) -> RawLocation | None:
        if data.get("success") is False or not data.get("latitude"):
            return None

        time_zone = _nested(data, "time_zone")
        connection = _nested(data, "connection")
        return RawLocation(
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            city=_blank_to_none(data.get("city")),
            region=_blank_to_none(data.get("region_name")),
            country=_blank_to_none(data.get("country_name")),
            timezone=_blank_to_none(time_zone.get("id")),
            isp=_blank_to_none(connection.get("isp")),
        )
