"""Shared fixtures: HTML samples, a controllable clock and a canned fetcher."""

import asyncio
import inspect
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from doubanscout.cache import ResultCache
from doubanscout.config import ConfigSource, Settings
from doubanscout.fetchers.http import FetchResult, HttpFetcher, classify_response
from doubanscout.fetchers.session import SessionStore
from doubanscout.fetchers.throttle import RequestThrottler
from doubanscout.orchestrator import DoubanClient

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def make_settings(**values: Any) -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, **values)


def page(
    url: str,
    text: str = "",
    status: int = 200,
    final_url: Optional[str] = None,
    json_data: Any = None,
    error: str = "",
) -> FetchResult:
    """A fetch result classified the same way the real fetcher does it."""
    final_url = url if final_url is None else final_url
    result = FetchResult(
        url=url,
        final_url=final_url if not error else "",
        status=status if not error else 0,
        text=text,
        json_data=json_data,
        error=error,
    )
    result.outcome = classify_response(
        result.status,
        final_url=result.final_url,
        text=result.text,
        error=result.error,
    )
    return result


class FakeClock:
    """Monotonic clock that only moves when someone sleeps on it."""

    def __init__(self, start: float = 1000.0):
        self.t = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.t

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.t += delay
        await asyncio.sleep(0)


class StubFetcher(HttpFetcher):
    """
    HttpFetcher that answers from a route table instead of the network.

    A route maps an exact URL to a FetchResult, an exception to raise, or a
    zero-argument callable returning either (possibly as a coroutine).
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None, cookie_string: str = ""):
        super().__init__(SessionStore(cookie_string))
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[Tuple[str, Optional[Dict[str, str]]]] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    async def fetch(self, url, headers=None, expect_json=False) -> FetchResult:
        self.calls.append((url, headers))
        if url not in self.routes:
            return page(url, status=404)

        route = self.routes[url]
        if callable(route) and not isinstance(route, FetchResult):
            route = route()
            if inspect.isawaitable(route):
                route = await route
        if isinstance(route, BaseException):
            raise route
        return route

    def urls(self) -> List[str]:
        return [url for url, _ in self.calls]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_client(clock):
    """Factory for a DoubanClient wired to a StubFetcher and the fake clock."""
    def factory(routes=None, **settings_values) -> DoubanClient:
        config = ConfigSource(make_settings(**settings_values))
        throttler = RequestThrottler(lambda: config.current, clock=clock.now, sleep=clock.sleep)
        client = DoubanClient(
            config,
            fetcher=StubFetcher(routes),
            cache=ResultCache(clock=clock.now),
            throttler=throttler,
        )
        return client

    return factory
