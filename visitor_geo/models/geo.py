import math
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NO_GEO_DATA_MESSAGE = "No geo data in response"


def _to_finite_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class RawLocation(BaseModel):
    """Normalized location returned by a single provider adapter.

    This is the only shape the rest of the application sees; provider-specific
    JSON never leaves the adapter that parsed it.
    """

    latitude: float | None = None
    longitude: float | None = None
    city: str | None = None
    region: str | None = None
    country: str | None = None
    timezone: str | None = None
    isp: str | None = None
    organization: str | None = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_lat_lon(cls, value: Any) -> float | None:
        """Allow latitude/longitude to be provided as strings, numbers, or null.

        Providers may return these fields as strings; this validator normalizes them
        into floats. Values that are not finite numbers (NaN, garbage) become None.
        """
        return _to_finite_float(value)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class ProviderStatus(str, Enum):
    """Classified result of one provider call."""

    success = "success"
    failed = "failed"
    timeout = "timeout"


class ProviderOutcome(BaseModel):
    """The result of calling exactly one provider for one IP."""

    model_config = ConfigDict(frozen=True)

    provider: str
    status: ProviderStatus
    observed_at: datetime
    latitude: float | None = None
    longitude: float | None = None
    city: str | None = None
    region: str | None = None
    country: str | None = None
    timezone: str | None = None
    isp: str | None = None
    organization: str | None = None
    error_message: str | None = None

    @model_validator(mode="after")
    def _check_status_fields(self) -> "ProviderOutcome":
        has_coordinates = self.latitude is not None or self.longitude is not None
        if self.status is ProviderStatus.success:
            if _to_finite_float(self.latitude) is None or _to_finite_float(self.longitude) is None:
                raise ValueError("successful outcome requires finite latitude and longitude")
        else:
            if has_coordinates:
                raise ValueError(f"{self.status.value} outcome must not carry coordinates")
            if not self.error_message:
                raise ValueError(f"{self.status.value} outcome requires an error message")
        return self

    @classmethod
    def success_from(cls, provider: str, observed_at: datetime, raw: RawLocation) -> "ProviderOutcome":
        return cls(
            provider=provider,
            status=ProviderStatus.success,
            observed_at=observed_at,
            **raw.model_dump(),
        )

    @classmethod
    def failure(
        cls, provider: str, observed_at: datetime, status: ProviderStatus, error_message: str
    ) -> "ProviderOutcome":
        return cls(provider=provider, status=status, observed_at=observed_at, error_message=error_message)


class LocationCluster(BaseModel):
    """A deduplicated point that one or more providers agree on (within rounding)."""

    latitude: float
    longitude: float
    city: str | None = None
    region: str | None = None
    country: str | None = None
    timezone: str | None = None
    contributing_providers: list[str] = Field(min_length=1)
    map_link: str


class GeoResolution(BaseModel):
    """Full result of one aggregation run for one IP."""

    ip: str
    isp: str | None = None
    organization: str | None = None
    clusters: list[LocationCluster] = Field(default_factory=list)
    provider_outcomes: list[ProviderOutcome] = Field(default_factory=list)
    resolved_at: datetime

    @property
    def all_providers_failed(self) -> bool:
        return not self.clusters
