"""When to resolve a visitor's location, and how the result is retained."""

import asyncio
from dataclasses import dataclass

from visitor_geo.config import DEFAULT_RESOLVE_ALL_DELAY_SECONDS
from visitor_geo.errors import StorageError
from visitor_geo.logger import logger
from visitor_geo.models.geo import GeoResolution
from visitor_geo.resolver import GeoResolver, is_resolvable_ip
from visitor_geo.storage.base import BaseVisitorStore


@dataclass(frozen=True)
class ResolveAllSummary:
    updated: int
    failed: int


class GeoResolutionService:
    """Runs the resolver for visitors and persists the outcome on the visitor record.

    None of the public methods raise: storage failures are logged and the
    operation degrades to a no-op. Writes are not coordinated between concurrent
    requests for the same visitor; the last write wins.
    """

    def __init__(
        self,
        resolver: GeoResolver,
        store: BaseVisitorStore,
        throttle_seconds: float = DEFAULT_RESOLVE_ALL_DELAY_SECONDS,
    ) -> None:
        self._resolver = resolver
        self._store = store
        self._throttle_seconds = throttle_seconds

    async def resolve_if_absent(self, ip: str, visitor_key: str) -> None:
        """Resolve and store a location only if the visitor has none yet."""
        if not is_resolvable_ip(ip):
            return

        try:
            visitor = await self._store.get_visitor(visitor_key)
        except StorageError as exc:
            logger.warning(f"Skipping geolocation, visitor lookup failed visitor_key={visitor_key} error={exc}")
            return

        if visitor is not None and visitor.geo_location is not None:
            return

        resolution = await self._resolver.resolve(ip)
        if resolution is not None:
            await self._persist(visitor_key, ip, resolution)

    async def force_resolve(self, ip: str, visitor_key: str) -> GeoResolution | None:
        """Resolve unconditionally and overwrite any stored location.

        The resolution is returned even if it could not be persisted.
        """
        resolution = await self._resolver.resolve(ip)
        if resolution is None:
            logger.info(f"No resolution produced visitor_key={visitor_key} ip={ip!r}")
            return None

        await self._persist(visitor_key, ip, resolution)
        return resolution

    async def force_resolve_all(self) -> ResolveAllSummary:
        """Re-resolve every stored visitor, one distinct IP at a time.

        Visitors sharing an IP reuse one resolution. Non-resolvable IPs, runs that
        produced nothing and failed writes all count as failed. Not atomic across
        visitors; safe to re-run after an interruption.
        """
        try:
            visitors = await self._store.list_visitors()
        except StorageError as exc:
            logger.warning(f"Bulk geolocation aborted, cannot list visitors error={exc}")
            return ResolveAllSummary(updated=0, failed=0)

        logger.info(f"Bulk geolocation started visitors={len(visitors)}")
        resolutions: dict[str, GeoResolution | None] = {}
        updated = failed = 0

        for visitor in visitors:
            ip = visitor.ip
            if not is_resolvable_ip(ip):
                failed += 1
                continue

            if ip not in resolutions:
                if resolutions and self._throttle_seconds > 0:
                    # Politeness delay between distinct IPs to stay under provider rate limits.
                    await asyncio.sleep(self._throttle_seconds)
                resolutions[ip] = await self._resolver.resolve(ip)

            resolution = resolutions[ip]
            if resolution is not None and await self._persist(visitor.visitor_key, ip, resolution):
                updated += 1
            else:
                failed += 1

        logger.info(f"Bulk geolocation finished updated={updated} failed={failed} distinct_ips={len(resolutions)}")
        return ResolveAllSummary(updated=updated, failed=failed)

    async def _persist(self, visitor_key: str, ip: str, resolution: GeoResolution) -> bool:
        try:
            await self._store.set_geo_location(visitor_key, ip, resolution)
        except StorageError as exc:
            logger.warning(f"Failed to store geolocation visitor_key={visitor_key} ip={ip} error={exc}")
            return False
        return True
