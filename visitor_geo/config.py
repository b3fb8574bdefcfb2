"""Environment-driven settings for the visitor geolocation service."""

import os
from dataclasses import dataclass

DEFAULT_PROVIDER_TIMEOUT_SECONDS = 6.0
DEFAULT_RESOLVE_ALL_DELAY_SECONDS = 1.5


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable '{name}' must be a number, got {raw!r}") from exc


def _get_optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    mongodb_uri: str | None = None
    mongodb_db: str = "portfolio"
    mongodb_collection: str = "logs"
    provider_timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS
    resolve_all_delay_seconds: float = DEFAULT_RESOLVE_ALL_DELAY_SECONDS
    ipgeolocation_key: str | None = None
    abstractapi_key: str | None = None
    ipstack_key: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mongodb_uri=_get_optional("MONGODB_URI"),
            mongodb_db=os.getenv("MONGODB_DB", "portfolio"),
            mongodb_collection=os.getenv("MONGODB_COLLECTION", "logs"),
            provider_timeout_seconds=_get_float(
                "GEO_PROVIDER_TIMEOUT_SECONDS", DEFAULT_PROVIDER_TIMEOUT_SECONDS
            ),
            resolve_all_delay_seconds=_get_float(
                "GEO_RESOLVE_ALL_DELAY_SECONDS", DEFAULT_RESOLVE_ALL_DELAY_SECONDS
            ),
            ipgeolocation_key=_get_optional("IPGEOLOCATION_KEY"),
            abstractapi_key=_get_optional("ABSTRACTAPI_KEY"),
            ipstack_key=_get_optional("IPSTACK_KEY"),
        )
