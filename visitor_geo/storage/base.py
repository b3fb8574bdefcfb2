from abc import ABC, abstractmethod

from visitor_geo.models.geo import GeoResolution
from visitor_geo.models.visitor import Visitor, VisitorEvent, VisitorMeta


class BaseVisitorStore(ABC):
    """Abstract persistence for visitor records.

    Implementations raise StorageError (and nothing else) when the backing store
    cannot be reached or returns an error. Every write of `geo_location` replaces
    the previous value as a whole.
    """

    async def open(self) -> None:
        """Prepare the store (connect, create indexes). Called once at startup."""

    async def close(self) -> None:
        """Release resources. Called once at shutdown."""

    @abstractmethod
    async def append_event(self, visitor_key: str, ip: str, meta: VisitorMeta, event: VisitorEvent) -> None:
        """Upsert the visitor, refreshing `ip` and `meta` and appending the event."""
        raise NotImplementedError

    @abstractmethod
    async def get_visitor(self, visitor_key: str) -> Visitor | None:
        raise NotImplementedError

    @abstractmethod
    async def list_visitors(self) -> list[Visitor]:
        raise NotImplementedError

    @abstractmethod
    async def set_geo_location(self, visitor_key: str, ip: str, resolution: GeoResolution) -> None:
        """Store `resolution` as the visitor's current geolocation, creating the visitor if needed."""
        raise NotImplementedError

    @abstractmethod
    async def delete_visitor(self, visitor_key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def delete_all(self) -> int:
        raise NotImplementedError
