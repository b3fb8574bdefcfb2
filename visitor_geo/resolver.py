"""Fan-out/fan-in IP resolution across every registered geolocation provider."""

import asyncio
import math
from collections.abc import Iterable
from datetime import datetime, timezone

from visitor_geo.clients.registry import ProviderRegistry
from visitor_geo.config import DEFAULT_PROVIDER_TIMEOUT_SECONDS
from visitor_geo.logger import logger
from visitor_geo.models.geo import GeoResolution, LocationCluster, ProviderOutcome, ProviderStatus
from visitor_geo.provider_call import call_provider

UNKNOWN_IP = "unknown"
NON_RESOLVABLE_IPS = frozenset({"", UNKNOWN_IP, "127.0.0.1", "::1"})

CLUSTER_PRECISION = 2
MAP_LINK_TEMPLATE = "https://www.google.com/maps/search/?api=1&query={latitude},{longitude}"


def is_resolvable_ip(ip: str | None) -> bool:
    """False for empty, placeholder and loopback values that no provider can locate."""
    return bool(ip) and ip not in NON_RESOLVABLE_IPS


def _format_coordinate(value: float) -> str:
    # Whole degrees are written without a trailing ".0", e.g. query=37,-122.
    return str(int(value)) if value.is_integer() else repr(value)


def make_map_link(latitude: float, longitude: float) -> str:
    return MAP_LINK_TEMPLATE.format(latitude=_format_coordinate(latitude), longitude=_format_coordinate(longitude))


def _round_half_up(value: float) -> float:
    scale = 10**CLUSTER_PRECISION
    return math.floor(value * scale + 0.5) / scale


def cluster_key(latitude: float, longitude: float) -> tuple[float, float]:
    """Two-decimal key; ties round toward +inf (37.125 -> 37.13, -0.125 -> -0.12)."""
    return _round_half_up(latitude), _round_half_up(longitude)


def build_clusters(successes: Iterable[ProviderOutcome]) -> list[LocationCluster]:
    """Group successful outcomes whose coordinates agree to 2 decimal places.

    Input order matters: the first outcome for a key supplies the cluster's
    coordinates, and later ones only fill in text fields that are still empty.
    The result is ordered by contributor count, ties keeping first-seen order.
    """
    clusters: dict[tuple[float, float], LocationCluster] = {}
    for outcome in successes:
        key = cluster_key(outcome.latitude, outcome.longitude)
        cluster = clusters.get(key)
        if cluster is None:
            clusters[key] = LocationCluster(
                latitude=outcome.latitude,
                longitude=outcome.longitude,
                city=outcome.city,
                region=outcome.region,
                country=outcome.country,
                timezone=outcome.timezone,
                contributing_providers=[outcome.provider],
                map_link=make_map_link(outcome.latitude, outcome.longitude),
            )
            continue

        cluster.contributing_providers.append(outcome.provider)
        for field in ("city", "region", "country", "timezone"):
            if not getattr(cluster, field) and getattr(outcome, field):
                setattr(cluster, field, getattr(outcome, field))

    # sorted() is stable, also with reverse=True
    return sorted(clusters.values(), key=lambda c: len(c.contributing_providers), reverse=True)


def _first_non_empty(outcomes: Iterable[ProviderOutcome], field: str) -> str | None:
    for outcome in outcomes:
        value = getattr(outcome, field)
        if value:
            return value
    return None


class GeoResolver:
    """Resolve one IP by querying every registered provider concurrently.

    All providers are awaited, even after one has succeeded, so the result always
    carries a full per-provider ledger for diagnostics.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
    ) -> None:
        self._registry = tuple(registry)
        self._timeout_seconds = timeout_seconds

    @property
    def provider_names(self) -> list[str]:
        return [entry.name for entry in self._registry]

    async def resolve(self, ip: str) -> GeoResolution | None:
        """Return a GeoResolution, or None for non-resolvable input.

        Never raises. A run where every provider failed is still a result (with no
        clusters); None only means nothing was attempted or an internal fault.
        """
        if not is_resolvable_ip(ip):
            logger.debug(f"Skipping geolocation for non-resolvable ip={ip!r}")
            return None

        try:
            return await self._resolve(ip)
        except Exception as exc:
            logger.exception(f"Unexpected error while resolving ip={ip} error={exc!r}")
            return None

    async def _resolve(self, ip: str) -> GeoResolution:
        # gather() returns results in argument order, i.e. registry order.
        outcomes: list[ProviderOutcome] = list(
            await asyncio.gather(
                *(call_provider(entry, ip, self._timeout_seconds) for entry in self._registry)
            )
        )
        successes = [outcome for outcome in outcomes if outcome.status is ProviderStatus.success]

        resolution = GeoResolution(
            ip=ip,
            isp=_first_non_empty(successes, "isp"),
            organization=_first_non_empty(successes, "organization"),
            clusters=build_clusters(successes),
            provider_outcomes=outcomes,
            resolved_at=datetime.now(timezone.utc),
        )

        timeouts = sum(1 for outcome in outcomes if outcome.status is ProviderStatus.timeout)
        top = resolution.clusters[0] if resolution.clusters else None
        logger.info(
            f"Resolved ip={ip} success={len(successes)} "
            f"failed={len(outcomes) - len(successes) - timeouts} timeout={timeouts} "
            f"clusters={len(resolution.clusters)} "
            f"top={top.city if top else None},{top.country if top else None}"
        )
        return resolution
