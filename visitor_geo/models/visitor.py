from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, computed_field

from visitor_geo.models.geo import GeoResolution


class EventType(str, Enum):
    """Kinds of visitor events recorded by the site."""

    api = "api"
    chat = "chat"
    client = "client"


class DeviceType(str, Enum):
    desktop = "desktop"
    mobile = "mobile"
    tablet = "tablet"
    unknown = "unknown"


class GeoStatus(str, Enum):
    """How the admin view should present a visitor's geolocation."""

    not_resolved = "not_resolved"
    all_providers_failed = "all_providers_failed"
    resolved = "resolved"


class HeaderLocation(BaseModel):
    """Coarse location hints forwarded by the CDN/edge in request headers."""

    country: str | None = None
    region: str | None = None
    city: str | None = None


class VisitorEvent(BaseModel):
    type: EventType
    time: datetime
    endpoint: str | None = None
    method: str | None = None
    message: str | None = None
    data: dict[str, Any] | None = None


class VisitorMeta(BaseModel):
    user_agent: str | None = None
    device_type: DeviceType = DeviceType.unknown
    location: HeaderLocation = Field(default_factory=HeaderLocation)
    last_seen: datetime | None = None


class Visitor(BaseModel):
    """A visitor record as stored by the visitor store.

    Keyed by the client-issued visitor id or, when absent, by IP. Owns at most
    one current GeoResolution; re-resolution replaces it wholesale.
    """

    visitor_key: str
    ip: str
    meta: VisitorMeta = Field(default_factory=VisitorMeta)
    events: list[VisitorEvent] = Field(default_factory=list)
    # Stored documents use the camelCase key shared with the admin UI.
    geo_location: GeoResolution | None = Field(
        default=None, validation_alias=AliasChoices("geo_location", "geoLocation")
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def geo_status(self) -> GeoStatus:
        if self.geo_location is None:
            return GeoStatus.not_resolved
        if self.geo_location.all_providers_failed:
            return GeoStatus.all_providers_failed
        return GeoStatus.resolved
