"""Request-scoped access to the collaborators created in ``main.py``.

Endpoints depend on these instead of importing module globals, so tests can
replace any of them through ``app.dependency_overrides``.
"""

import httpx
from fastapi import Request

from framerelay.services.fallback import FallbackChain
from framerelay.services.request_log import (
    ConnectionCounter,
    InMemoryRequestLog,
    ServerStats,
)


def get_request_log(request: Request) -> InMemoryRequestLog:
    return request.app.state.request_log


def get_connection_counter(request: Request) -> ConnectionCounter:
    return request.app.state.connections


def get_server_stats(request: Request) -> ServerStats:
    return request.app.state.stats


def get_fallback_chain(request: Request) -> FallbackChain:
    return request.app.state.fallback_chain


def get_proxy_transport(request: Request) -> httpx.AsyncBaseTransport | None:
    """Transport for the pass-through proxy; ``None`` means the real network."""
    return getattr(request.app.state, "proxy_transport", None)
