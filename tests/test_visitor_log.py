import pytest

from visitor_geo.errors import StorageError
from visitor_geo.geo_service import GeoResolutionService
from visitor_geo.models.request_models import LogEventRequest
from visitor_geo.models.visitor import DeviceType, EventType
from visitor_geo.resolver import GeoResolver
from visitor_geo.storage.memory import InMemoryVisitorStore
from visitor_geo.visitor_log import (
    VisitorLogService,
    device_type_from_user_agent,
    extract_client_ip,
    extract_header_location,
    visitor_key_for,
)
from tests.common import FakeProvider, located, make_registry


@pytest.mark.parametrize(
    ("user_agent", "expected"),
    [
        (None, DeviceType.unknown),
        ("", DeviceType.unknown),
        ("Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X)", DeviceType.tablet),
        ("Mozilla/5.0 (Linux; Android 14; Pixel 8) Mobile Safari", DeviceType.mobile),
        ("Mozilla/5.0 (X11; Linux x86_64) Firefox/128.0", DeviceType.desktop),
    ],
)
def test_device_type_from_user_agent(user_agent: str | None, expected: DeviceType) -> None:
    assert device_type_from_user_agent(user_agent) is expected


def test_extract_client_ip_prefers_first_forwarded_address() -> None:
    headers = {"x-forwarded-for": " 73.222.64.204 , 10.0.0.1", "x-real-ip": "10.0.0.2"}

    assert extract_client_ip(headers, "10.0.0.3") == "73.222.64.204"


def test_extract_client_ip_falls_back_through_proxy_headers() -> None:
    assert extract_client_ip({"cf-connecting-ip": "8.8.8.8"}, "10.0.0.3") == "8.8.8.8"
    assert extract_client_ip({}, "10.0.0.3") == "10.0.0.3"
    assert extract_client_ip({}, None) == "unknown"


def test_extract_header_location() -> None:
    location = extract_header_location({"x-vercel-ip-country": "US", "x-vercel-ip-city": "San%20Mateo"})

    assert location.country == "US"
    assert location.region is None
    assert location.city == "San%20Mateo"


def test_visitor_key_falls_back_to_ip() -> None:
    assert visitor_key_for({"x-visitor-id": " abc "}, "8.8.8.8") == "abc"
    assert visitor_key_for({"x-visitor-id": "  "}, "8.8.8.8") == "8.8.8.8"
    assert visitor_key_for({}, "8.8.8.8") == "8.8.8.8"


def _log_service(store: InMemoryVisitorStore, provider: FakeProvider) -> VisitorLogService:
    geo_service = GeoResolutionService(GeoResolver(make_registry({"A": provider})), store, throttle_seconds=0)
    return VisitorLogService(store, geo_service)


@pytest.mark.asyncio
async def test_record_stores_event_and_resolves_location() -> None:
    store = InMemoryVisitorStore()
    provider = located(37.5, -122.3)
    headers = {"x-forwarded-for": "73.222.64.204", "user-agent": "curl/8.5"}

    stored = await _log_service(store, provider).record(
        headers, LogEventRequest(type=EventType.api, endpoint="/v1/chat", method="POST")
    )

    assert stored is True
    visitor = await store.get_visitor("73.222.64.204")
    assert visitor is not None
    assert visitor.meta.device_type is DeviceType.desktop
    assert visitor.meta.last_seen is not None
    assert visitor.events[0].endpoint == "/v1/chat"
    assert visitor.events[0].time == visitor.meta.last_seen
    assert visitor.geo_location is not None
    assert provider.calls == ["73.222.64.204"]


@pytest.mark.asyncio
async def test_record_from_loopback_skips_resolution() -> None:
    store = InMemoryVisitorStore()
    provider = located(37.5, -122.3)

    stored = await _log_service(store, provider).record({}, LogEventRequest(type=EventType.client), "127.0.0.1")

    assert stored is True
    visitor = await store.get_visitor("127.0.0.1")
    assert visitor is not None and visitor.geo_location is None
    assert provider.calls == []


@pytest.mark.asyncio
async def test_record_still_resolves_when_event_write_fails() -> None:
    class EventWriteFailingStore(InMemoryVisitorStore):
        async def append_event(self, visitor_key, ip, meta, event):
            raise StorageError("write concern failed")

    store = EventWriteFailingStore()
    provider = located(37.5, -122.3)

    stored = await _log_service(store, provider).record(
        {"x-visitor-id": "visitor-1"}, LogEventRequest(type=EventType.chat), "8.8.8.8"
    )

    assert stored is False
    assert provider.calls == ["8.8.8.8"]
    visitor = await store.get_visitor("visitor-1")
    assert visitor is not None and visitor.events == []
    assert visitor.geo_location is not None
