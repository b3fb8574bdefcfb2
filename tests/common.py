import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

import httpx

from visitor_geo.clients.registry import ProviderEntry
from visitor_geo.models.geo import RawLocation
from visitor_geo.models.visitor import Visitor, VisitorMeta


class MockResponse:
    def __init__(self, status_code: int, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = {} if payload is None else payload
        self.text = text

    def json(self) -> Any:
        return self._payload


class MockAsyncClient:
    """Minimal async context-manager mock for httpx.AsyncClient.

    Records every GET so tests can assert on the URL and query parameters.
    """

    def __init__(self, response: MockResponse, calls: list[tuple[str, dict | None]] | None = None) -> None:
        self._response = response
        self.calls = calls if calls is not None else []

    async def __aenter__(self) -> "MockAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, params: dict | None = None) -> MockResponse:
        self.calls.append((url, params))
        return self._response


class FailingAsyncClient:
    """Async client that raises a RequestError on enter to simulate network failure.

    The target URL is provided at construction time, so tests for different providers
    can reuse this implementation with different base URLs.
    """

    def __init__(self, url: str, *args: Any, **kwargs: Any) -> None:
        self._url = url

    async def __aenter__(self) -> "FailingAsyncClient":
        request = httpx.Request("GET", self._url)
        raise httpx.ConnectError("Network failure", request=request)

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, params: dict | None = None) -> MockResponse:
        return MockResponse(status_code=HTTPStatus.OK, payload={})


class TimingOutAsyncClient(FailingAsyncClient):
    """Async client whose request times out at the transport level."""

    async def __aenter__(self) -> "TimingOutAsyncClient":
        return self

    async def get(self, url: str, params: dict | None = None) -> MockResponse:
        raise httpx.ReadTimeout("timed out", request=httpx.Request("GET", url))


def make_fake_async_client(
    response: MockResponse, calls: list[tuple[str, dict | None]] | None = None
) -> Callable[..., MockAsyncClient]:
    """Factory for a fake httpx.AsyncClient returning a fixed response.

    This avoids repeating the same stub definition in every test.
    """

    def _fake_client(*args: Any, **kwargs: Any) -> MockAsyncClient:
        return MockAsyncClient(response, calls)

    return _fake_client


class FakeProvider:
    """Scriptable provider fetch function that counts its calls."""

    def __init__(
        self,
        result: RawLocation | None = None,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self._result = result
        self._delay = delay
        self._error = error
        self.calls: list[str] = []

    async def __call__(self, ip: str) -> RawLocation | None:
        self.calls.append(ip)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return self._result


def located(latitude: float, longitude: float, *, delay: float = 0.0, **fields: Any) -> FakeProvider:
    return FakeProvider(RawLocation(latitude=latitude, longitude=longitude, **fields), delay=delay)


def make_registry(providers: dict[str, FakeProvider]) -> tuple[ProviderEntry, ...]:
    return tuple(ProviderEntry(name, fetch) for name, fetch in providers.items())


def make_visitor(visitor_key: str, ip: str, last_seen: datetime | None = None) -> Visitor:
    return Visitor(
        visitor_key=visitor_key,
        ip=ip,
        meta=VisitorMeta(last_seen=last_seen or datetime(2026, 1, 1, tzinfo=timezone.utc)),
    )
