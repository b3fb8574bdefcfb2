from visitor_geo.models.geo import GeoResolution
from visitor_geo.models.visitor import Visitor, VisitorEvent, VisitorMeta
from visitor_geo.storage.base import BaseVisitorStore


class InMemoryVisitorStore(BaseVisitorStore):
    """Process-local store used when no MongoDB URI is configured, and in tests.

    Returns copies so callers cannot mutate stored records.
    """

    def __init__(self, visitors: list[Visitor] | None = None) -> None:
        self._visitors: dict[str, Visitor] = {}
        for visitor in visitors or []:
            self._visitors[visitor.visitor_key] = visitor.model_copy(deep=True)

    async def append_event(self, visitor_key: str, ip: str, meta: VisitorMeta, event: VisitorEvent) -> None:
        visitor = self._visitors.get(visitor_key)
        if visitor is None:
            visitor = Visitor(visitor_key=visitor_key, ip=ip)
            self._visitors[visitor_key] = visitor
        visitor.ip = ip
        visitor.meta = meta.model_copy(deep=True)
        visitor.events.append(event.model_copy(deep=True))

    async def get_visitor(self, visitor_key: str) -> Visitor | None:
        visitor = self._visitors.get(visitor_key)
        return visitor.model_copy(deep=True) if visitor else None

    async def list_visitors(self) -> list[Visitor]:
        return [visitor.model_copy(deep=True) for visitor in self._visitors.values()]

    async def set_geo_location(self, visitor_key: str, ip: str, resolution: GeoResolution) -> None:
        visitor = self._visitors.get(visitor_key)
        if visitor is None:
            visitor = Visitor(visitor_key=visitor_key, ip=ip)
            self._visitors[visitor_key] = visitor
        visitor.geo_location = resolution.model_copy(deep=True)

    async def delete_visitor(self, visitor_key: str) -> bool:
        return self._visitors.pop(visitor_key, None) is not None

    async def delete_all(self) -> int:
        count = len(self._visitors)
        self._visitors.clear()
        return count
