from visitor_geo.config import Settings
from visitor_geo.errors import StorageError
from visitor_geo.logger import logger
from visitor_geo.storage.base import BaseVisitorStore
from visitor_geo.storage.memory import InMemoryVisitorStore
from visitor_geo.storage.mongo import MongoVisitorStore


async def create_visitor_store(settings: Settings) -> BaseVisitorStore:
    """Build and open the visitor store selected by the settings.

    Without MONGODB_URI the service falls back to an in-memory store. A Mongo
    store that cannot be prepared at startup is still returned: its operations
    will raise StorageError, which callers treat as a degraded, not fatal, state.
    """
    if not settings.mongodb_uri:
        logger.warning("MONGODB_URI is not set; visitor records are kept in memory only")
        return InMemoryVisitorStore()

    store = MongoVisitorStore.from_settings(settings)
    try:
        await store.open()
    except StorageError as exc:
        logger.warning(f"Visitor store unavailable at startup, continuing degraded error={exc}")
    else:
        logger.info(
            f"Connected visitor store db={settings.mongodb_db} collection={settings.mongodb_collection}"
        )
    return store
