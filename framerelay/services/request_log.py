"""In-memory request log, connection counter and server statistics.

These are the only shared mutable state in the service. They are handed to
the endpoints as dependencies rather than imported as globals, so tests can
swap in their own instances. Nothing here survives a restart.
"""

from __future__ import annotations

import time
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Protocol

from framerelay.core.metrics import relay_active_connections
from framerelay.schemas.proxy import ProxyStats, RequestLogEntry


class RequestLogSink(Protocol):
    def record(
        self,
        target_url: str,
        method: str,
        status_code: int,
        duration_ms: int,
        response_size: int,
        user_agent: str | None,
        error_message: str | None,
    ) -> None: ...


class InMemoryRequestLog:
    """Bounded, newest-first request log."""

    def __init__(self, max_entries: int = 1000):
        self._entries: deque[RequestLogEntry] = deque(maxlen=max_entries)
        self.total_requests = 0

    def record(
        self,
        target_url: str,
        method: str,
        status_code: int,
        duration_ms: int,
        response_size: int,
        user_agent: str | None,
        error_message: str | None,
    ) -> None:
        self.create(
            RequestLogEntry(
                id=str(uuid.uuid4()),
                target_url=target_url,
                method=method,
                status_code=status_code,
                duration=duration_ms,
                response_size=response_size,
                user_agent=user_agent,
                error_message=error_message,
                timestamp=datetime.now(timezone.utc),
            )
        )

    def create(self, entry: RequestLogEntry) -> RequestLogEntry:
        self._entries.appendleft(entry)
        self.total_requests += 1
        return entry

    def list(self, limit: int = 50, offset: int = 0) -> list[RequestLogEntry]:
        if limit <= 0 or offset < 0:
            return []
        entries = list(self._entries)
        return entries[offset : offset + limit]

    def count(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class ConnectionCounter:
    """Number of relay requests in flight (never negative)."""

    def __init__(self):
        self._active = 0

    @property
    def active(self) -> int:
        return self._active

    def increment(self) -> None:
        self._active += 1
        relay_active_connections.set(self._active)

    def decrement(self) -> None:
        self._active = max(0, self._active - 1)
        relay_active_connections.set(self._active)


class ServerStats:
    """Aggregates the log and counter into the stats payload."""

    def __init__(
        self,
        request_log: InMemoryRequestLog,
        connections: ConnectionCounter,
        server_port: int,
    ):
        self.request_log = request_log
        self.connections = connections
        self.server_port = server_port
        self._started = time.monotonic()

    def snapshot(self) -> ProxyStats:
        return ProxyStats(
            server_port=self.server_port,
            active_connections=self.connections.active,
            total_requests=self.request_log.total_requests,
            uptime=int(time.monotonic() - self._started),
            last_updated=datetime.now(timezone.utc),
        )
