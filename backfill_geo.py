import asyncio

from visitor_geo.clients.registry import build_default_registry
from visitor_geo.config import Settings
from visitor_geo.geo_service import GeoResolutionService, ResolveAllSummary
from visitor_geo.logger import logger
from visitor_geo.resolver import GeoResolver
from visitor_geo.storage.factory import create_visitor_store


async def backfill() -> ResolveAllSummary:
    """Re-resolve the location of every stored visitor."""
    settings = Settings.from_env()
    if not settings.mongodb_uri:
        raise SystemExit("Set MONGODB_URI to backfill a persistent visitor store.")

    store = await create_visitor_store(settings)
    try:
        resolver = GeoResolver(build_default_registry(settings), timeout_seconds=settings.provider_timeout_seconds)
        service = GeoResolutionService(resolver, store, throttle_seconds=settings.resolve_all_delay_seconds)
        return await service.force_resolve_all()
    finally:
        await store.close()


def main() -> None:
    summary = asyncio.run(backfill())
    logger.info(f"Backfill complete updated={summary.updated} failed={summary.failed}")


if __name__ == "__main__":
    main()
