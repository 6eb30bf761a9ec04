"""Shared fixtures: fake clock, fake sleep and a mock backend."""

from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
import pytest

from company_lookup.datasource.lookup_api import CompanyLookupApi
from company_lookup.services.cache import ResponseCache
from company_lookup.services.client import HttpClient
from company_lookup.services.retry import RetryPolicy
from company_lookup.storage.recent_searches import MemoryStorage, RecentSearchStore

BASE_URL = "http://backend.test/api/v1"


class FakeClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeSleep:
    """Records backoff delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class MockBackend:
    """
    Routes requests by path to canned handlers and records every request.

    A route value may be a dict (returned as a 200 JSON body), an
    ``httpx.Response``, or a callable taking the request.
    """

    def __init__(self):
        self.routes: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api/v1")
        route = self.routes.get(path)
        if route is None:
            return httpx.Response(404, json={"status": "error", "message": "No route"})
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == f"/api/v1{path}"]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def backend() -> MockBackend:
    return MockBackend()


@pytest.fixture
def make_api(backend, clock, fake_sleep) -> Callable[..., CompanyLookupApi]:
    def _make(**overrides: Any) -> CompanyLookupApi:
        return CompanyLookupApi(
            http=HttpClient(BASE_URL, transport=backend.transport),
            cache=overrides.get("cache") or ResponseCache(clock=clock),
            retry=overrides.get("retry") or RetryPolicy(sleep=fake_sleep),
            recent_searches=overrides.get("recent_searches")
            or RecentSearchStore(MemoryStorage()),
        )

    return _make


def search_payload(*tickers: str, status: str = "success") -> dict[str, Any]:
    return {
        "status": status,
        "data": {
            "results": [
                {"ticker": t, "name": f"{t} Inc.", "cik": 1000 + i}
                for i, t in enumerate(tickers)
            ]
        },
    }
