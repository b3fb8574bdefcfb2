"""Recording visitor events, with geolocation as a side effect."""

import re
from collections.abc import Mapping
from datetime import datetime, timezone

from visitor_geo.errors import StorageError
from visitor_geo.geo_service import GeoResolutionService
from visitor_geo.logger import logger
from visitor_geo.models.request_models import LogEventRequest
from visitor_geo.models.visitor import DeviceType, HeaderLocation, VisitorEvent, VisitorMeta
from visitor_geo.resolver import UNKNOWN_IP
from visitor_geo.storage.base import BaseVisitorStore

VISITOR_ID_HEADER = "x-visitor-id"

_TABLET_RE = re.compile(r"tablet|ipad|playbook|silk")
_MOBILE_RE = re.compile(r"mobi|iphone|android|blackberry|phone")


def device_type_from_user_agent(user_agent: str | None) -> DeviceType:
    if not user_agent:
        return DeviceType.unknown
    lower = user_agent.lower()
    if _TABLET_RE.search(lower):
        return DeviceType.tablet
    if _MOBILE_RE.search(lower):
        return DeviceType.mobile
    return DeviceType.desktop


def extract_client_ip(headers: Mapping[str, str], client_host: str | None = None) -> str:
    """Best-effort client IP: proxy headers first, then the socket peer."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for name in ("x-real-ip", "cf-connecting-ip", "x-client-ip"):
        value = headers.get(name)
        if value:
            return value.strip()
    return client_host or UNKNOWN_IP


def extract_header_location(headers: Mapping[str, str]) -> HeaderLocation:
    return HeaderLocation(
        country=headers.get("x-vercel-ip-country") or headers.get("x-country") or headers.get("cf-ipcountry"),
        region=headers.get("x-vercel-ip-region") or headers.get("x-region"),
        city=headers.get("x-vercel-ip-city") or headers.get("x-city"),
    )


def visitor_key_for(headers: Mapping[str, str], ip: str) -> str:
    visitor_id = (headers.get(VISITOR_ID_HEADER) or "").strip()
    return visitor_id or ip


class VisitorLogService:
    def __init__(self, store: BaseVisitorStore, geo_service: GeoResolutionService) -> None:
        self._store = store
        self._geo_service = geo_service

    async def record(
        self,
        headers: Mapping[str, str],
        event: LogEventRequest,
        client_host: str | None = None,
    ) -> bool:
        """Store one event for the requesting visitor and make sure it has a location.

        Returns False when the event could not be stored; geolocation is still
        attempted so a flaky event write does not also cost the location.
        """
        ip = extract_client_ip(headers, client_host)
        visitor_key = visitor_key_for(headers, ip)
        now = datetime.now(timezone.utc)
        user_agent = headers.get("user-agent")

        meta = VisitorMeta(
            user_agent=user_agent,
            device_type=device_type_from_user_agent(user_agent),
            location=extract_header_location(headers),
            last_seen=now,
        )
        visitor_event = VisitorEvent(time=now, **event.model_dump())

        stored = True
        try:
            await self._store.append_event(visitor_key, ip, meta, visitor_event)
        except StorageError as exc:
            logger.warning(f"Failed to record visitor event visitor_key={visitor_key} ip={ip} error={exc}")
            stored = False

        await self._geo_service.resolve_if_absent(ip, visitor_key)
        return stored
