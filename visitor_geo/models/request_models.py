from ipaddress import ip_address
from typing import Any

from pydantic import BaseModel, Field, field_validator

from visitor_geo.models.visitor import EventType


def _normalize_ip(value: Any) -> str | None:
    if value is None:
        return None

    value_str = str(value).strip()
    if not value_str:
        return None

    try:
        ip_address(value_str)
    except ValueError as exc:
        raise ValueError("ip must be a valid IPv4 or IPv6 address") from exc

    return value_str


class IPResolveRequest(BaseModel):
    """Request model for IP resolution via query parameters.

    If `ip` is provided, the service resolves that explicit IP address.
    If `ip` is omitted or blank, the calling client's IP address is used.
    """

    ip: str | None = Field(
        default=None,
        description="IPv4 or IPv6 address to resolve. If omitted, the client's IP is used.",
        examples=["8.8.8.8", "2001:4860:4860::8888"],
    )

    @field_validator("ip", mode="before")
    @classmethod
    def _validate_ip(cls, value: Any) -> str | None:
        """Validate that ip is either empty/None or a valid IP address (IPv4 or IPv6).

        - None or blank string -> treated as None (client IP lookup, no error).
        - Non-blank -> must be a valid IP literal, otherwise a validation error
          is raised and the endpoint handler is never invoked.
        """
        return _normalize_ip(value)


class LogEventRequest(BaseModel):
    """Body of a visitor event posted by the site."""

    type: EventType
    endpoint: str | None = None
    method: str | None = None
    message: str | None = None
    data: dict[str, Any] | None = None


class RefreshVisitorGeoRequest(BaseModel):
    """Admin request to re-resolve one visitor's location.

    `ip` defaults to the IP stored on the visitor record.
    """

    visitor_key: str = Field(min_length=1)
    ip: str | None = None

    @field_validator("ip", mode="before")
    @classmethod
    def _validate_ip(cls, value: Any) -> str | None:
        return _normalize_ip(value)
