from abc import ABC, abstractmethod
from http import HTTPStatus
from typing import Any

import httpx

from visitor_geo.config import DEFAULT_PROVIDER_TIMEOUT_SECONDS
from visitor_geo.errors import ProviderConfigError, UpstreamServiceError
from visitor_geo.models.geo import RawLocation


class BaseGeoProvider(ABC):
    """Abstract base for all IP geolocation provider adapters.

    Each concrete adapter performs exactly one outbound HTTP call per lookup and
    maps the provider-specific response into a RawLocation. An adapter returns
    None when the provider explicitly reports that it has no usable location for
    the IP. Transport errors (connection failures, timeouts) are deliberately
    not caught here: they propagate to the caller, which classifies them.
    """

    name: str

    def __init__(self, base_url: str, timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    @abstractmethod
    async def lookup_ip(self, ip: str) -> RawLocation | None:
        """Look up geolocation information for an explicit IP address."""
        raise NotImplementedError

    async def _request(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """Perform the HTTP GET and return the decoded JSON body."""
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            response = await client.get(url, params=params)

        self._handle_http_errors(response)
        return self._parse_json(response)

    def _handle_http_errors(self, response: httpx.Response) -> None:
        """Map HTTP error status codes from the provider to UpstreamServiceError."""
        status_code = response.status_code

        if status_code == HTTPStatus.TOO_MANY_REQUESTS:
            # 429 Quota exceeded / rate limit hit.
            raise UpstreamServiceError(f"{self.name} rate limit or quota exceeded (HTTP 429).")

        if status_code >= HTTPStatus.BAD_REQUEST:
            raise UpstreamServiceError(f"{self.name} returned HTTP {status_code}: {response.text[:200]}")

    def _parse_json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamServiceError(f"Failed to decode {self.name} response as JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise UpstreamServiceError(f"Unexpected {self.name} response type: {type(data).__name__}")
        return data

    def _require_key(self, api_key: str | None) -> str:
        if not api_key:
            raise ProviderConfigError(f"{self.name} API key is not configured")
        return api_key


def _blank_to_none(value: Any) -> str | None:
    """Providers use "", null or missing interchangeably for unknown text fields."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _nested(data: dict[str, Any], key: str) -> dict[str, Any]:
    """Nested object under `key`, or {} when the provider sent anything else."""
    value = data.get(key)
    return value if isinstance(value, dict) else {}
