"""MongoDB-backed visitor store."""

from typing import Any

from pydantic import ValidationError
from pymongo import ASCENDING, AsyncMongoClient
from pymongo.errors import PyMongoError

from visitor_geo.config import Settings
from visitor_geo.errors import StorageError
from visitor_geo.logger import logger
from visitor_geo.models.geo import GeoResolution
from visitor_geo.models.visitor import Visitor, VisitorEvent, VisitorMeta
from visitor_geo.storage.base import BaseVisitorStore

_NO_ID = {"_id": 0}
GEO_LOCATION_KEY = "geoLocation"


class MongoVisitorStore(BaseVisitorStore):
    """One document per visitor: `{visitor_key, ip, meta, events, geoLocation}`.

    The client is created explicitly and owned by this store; `close()` must be
    called at shutdown. Every PyMongoError is re-raised as StorageError.
    """

    def __init__(self, collection: Any, client: AsyncMongoClient | None = None) -> None:
        self._collection = collection
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "MongoVisitorStore":
        if not settings.mongodb_uri:
            raise ValueError("MONGODB_URI is required for MongoVisitorStore")
        client: AsyncMongoClient = AsyncMongoClient(settings.mongodb_uri)
        collection = client[settings.mongodb_db][settings.mongodb_collection]
        return cls(collection, client=client)

    async def open(self) -> None:
        try:
            await self._collection.create_index([("visitor_key", ASCENDING)], unique=True)
        except PyMongoError as exc:
            raise StorageError(f"Failed to prepare visitor collection: {exc}") from exc

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def append_event(self, visitor_key: str, ip: str, meta: VisitorMeta, event: VisitorEvent) -> None:
        update = {
            "$set": {"ip": ip, "meta": meta.model_dump(mode="json")},
            "$push": {"events": event.model_dump(mode="json", exclude_none=True)},
            "$setOnInsert": {"visitor_key": visitor_key},
        }
        try:
            await self._collection.update_one({"visitor_key": visitor_key}, update, upsert=True)
        except PyMongoError as exc:
            raise StorageError(f"Failed to append event for visitor {visitor_key}: {exc}") from exc

    async def get_visitor(self, visitor_key: str) -> Visitor | None:
        try:
            document = await self._collection.find_one({"visitor_key": visitor_key}, _NO_ID)
        except PyMongoError as exc:
            raise StorageError(f"Failed to load visitor {visitor_key}: {exc}") from exc
        if document is None:
            return None
        return self._to_visitor(document)

    async def list_visitors(self) -> list[Visitor]:
        try:
            documents = await self._collection.find({}, _NO_ID).to_list(length=None)
        except PyMongoError as exc:
            raise StorageError(f"Failed to list visitors: {exc}") from exc

        visitors = []
        for document in documents:
            visitor = self._to_visitor(document)
            if visitor is not None:
                visitors.append(visitor)
        return visitors

    async def set_geo_location(self, visitor_key: str, ip: str, resolution: GeoResolution) -> None:
        update = {
            "$set": {GEO_LOCATION_KEY: resolution.model_dump(mode="json")},
            "$setOnInsert": {"visitor_key": visitor_key, "ip": ip, "events": []},
        }
        try:
            await self._collection.update_one({"visitor_key": visitor_key}, update, upsert=True)
        except PyMongoError as exc:
            raise StorageError(f"Failed to store geolocation for visitor {visitor_key}: {exc}") from exc

    async def delete_visitor(self, visitor_key: str) -> bool:
        try:
            result = await self._collection.delete_one({"visitor_key": visitor_key})
        except PyMongoError as exc:
            raise StorageError(f"Failed to delete visitor {visitor_key}: {exc}") from exc
        return result.deleted_count > 0

    async def delete_all(self) -> int:
        try:
            result = await self._collection.delete_many({})
        except PyMongoError as exc:
            raise StorageError(f"Failed to delete visitors: {exc}") from exc
        return result.deleted_count

    @staticmethod
    def _to_visitor(document: dict[str, Any]) -> Visitor | None:
        try:
            return Visitor.model_validate(document)
        except ValidationError as exc:
            logger.warning(
                f"Skipping malformed visitor document visitor_key={document.get('visitor_key')} error={exc}"
            )
            return None
