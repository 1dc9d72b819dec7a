"""Shared fixtures: a scripted upstream web and an ASGI client for the app."""

import inspect
from collections.abc import Callable

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient

from framerelay.main import app
from framerelay.services.executor import StrategyExecutor
from framerelay.services.fallback import FallbackChain
from framerelay.services.request_log import (
    ConnectionCounter,
    InMemoryRequestLog,
    ServerStats,
)
from framerelay.services.strategies import default_strategies

WAYBACK_API = "https://archive.org/wayback/available"

# Long enough to clear the default 200 character minimum.
ARTICLE_HTML = (
    "<!DOCTYPE html><html><head><title>Example article</title></head><body>"
    "<header><nav><a href=\"/docs\">Docs</a></nav></header>"
    "<main><h1>Example article</h1>"
    "<p>" + "Plenty of genuine page content for the relay to deliver. " * 8 + "</p>"
    "<img src=\"/img/logo.png\" alt=\"logo\"></main></body></html>"
)


def html_response(body: str = ARTICLE_HTML, status_code: int = 200, **headers) -> httpx.Response:
    return httpx.Response(
        status_code,
        text=body,
        headers={"content-type": "text/html; charset=utf-8", **headers},
    )


class FakeUpstream:
    """Scripted upstream servers behind an httpx.MockTransport.

    Routes are keyed by URL without query string. A route value is either a
    Response or a callable taking the request. Unknown URLs get a 404.
    """

    def __init__(self):
        self.routes: dict[str, httpx.Response | Callable] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, response: httpx.Response | Callable) -> None:
        self.routes[url] = response

    def no_snapshot(self, api_url: str = WAYBACK_API) -> None:
        self.add(api_url, httpx.Response(200, json={"url": "", "archived_snapshots": {}}))

    def snapshot(self, target_url: str, timestamp: str = "20240101000000", api_url: str = WAYBACK_API) -> str:
        """Register a closest snapshot and return the raw URL it will be fetched from."""
        self.add(
            api_url,
            httpx.Response(
                200,
                json={
                    "url": target_url,
                    "archived_snapshots": {
                        "closest": {
                            "available": True,
                            "status": "200",
                            "timestamp": timestamp,
                            "url": f"http://web.archive.org/web/{timestamp}/{target_url}",
                        }
                    },
                },
            ),
        )
        return f"https://web.archive.org/web/{timestamp}id_/{target_url}"

    def calls_to(self, url: str) -> int:
        return sum(1 for r in self.requests if _route_key(r.url) == url)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(_route_key(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            result = route(request)
            if inspect.isawaitable(result):
                result = await result
            return result
        return route

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def _route_key(url: httpx.URL) -> str:
    return str(url.copy_with(query=None))


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def executor(upstream: FakeUpstream) -> StrategyExecutor:
    return StrategyExecutor(transport=upstream.transport)


@pytest.fixture
def chain(executor: StrategyExecutor) -> FallbackChain:
    return FallbackChain(strategies=default_strategies(), executor=executor)


@pytest.fixture
def request_log() -> InMemoryRequestLog:
    return InMemoryRequestLog(max_entries=100)


@pytest.fixture
def connections() -> ConnectionCounter:
    return ConnectionCounter()


@pytest_asyncio.fixture
async def client(upstream, chain, request_log, connections):
    """AsyncClient bound to the app, with every outbound call going to ``upstream``."""
    saved = dict(app.state._state)
    app.state.request_log = request_log
    app.state.connections = connections
    app.state.stats = ServerStats(request_log, connections, server_port=5000)
    app.state.fallback_chain = chain
    app.state.proxy_transport = upstream.transport

    transport = httpx.ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state._state.clear()
    app.state._state.update(saved)
