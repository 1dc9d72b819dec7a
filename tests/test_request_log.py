"""Tests for the in-memory request log, connection counter and stats."""

from framerelay.services.request_log import (
    ConnectionCounter,
    InMemoryRequestLog,
    ServerStats,
)


def _record(log: InMemoryRequestLog, url: str, status: int = 200):
    log.record(
        target_url=url,
        method="GET",
        status_code=status,
        duration_ms=12,
        response_size=345,
        user_agent="pytest",
        error_message=None,
    )


class TestInMemoryRequestLog:
    def test_newest_first(self):
        log = InMemoryRequestLog()
        for i in range(3):
            _record(log, f"https://example.com/{i}")

        urls = [e.target_url for e in log.list()]
        assert urls == [
            "https://example.com/2",
            "https://example.com/1",
            "https://example.com/0",
        ]

    def test_limit_and_offset(self):
        log = InMemoryRequestLog()
        for i in range(10):
            _record(log, f"https://example.com/{i}")

        page = log.list(limit=3, offset=2)
        assert [e.target_url for e in page] == [
            "https://example.com/7",
            "https://example.com/6",
            "https://example.com/5",
        ]
        assert log.list(limit=5, offset=50) == []

    def test_bounded_keeps_newest(self):
        log = InMemoryRequestLog(max_entries=3)
        for i in range(5):
            _record(log, f"https://example.com/{i}")

        assert log.count() == 3
        assert log.total_requests == 5
        assert log.list()[-1].target_url == "https://example.com/2"

    def test_entries_have_ids_and_timestamps(self):
        log = InMemoryRequestLog()
        _record(log, "https://example.com/a")
        _record(log, "https://example.com/b")

        first, second = log.list()
        assert first.id != second.id
        assert first.timestamp >= second.timestamp

    def test_clear(self):
        log = InMemoryRequestLog()
        _record(log, "https://example.com/")
        log.clear()

        assert log.count() == 0
        assert log.list() == []

    def test_serializes_camel_case(self):
        log = InMemoryRequestLog()
        _record(log, "https://example.com/")

        data = log.list()[0].model_dump(by_alias=True)
        assert data["targetUrl"] == "https://example.com/"
        assert data["statusCode"] == 200
        assert data["responseSize"] == 345


class TestConnectionCounter:
    def test_never_negative(self):
        counter = ConnectionCounter()
        counter.increment()
        counter.decrement()
        counter.decrement()

        assert counter.active == 0


class TestServerStats:
    def test_snapshot(self):
        log = InMemoryRequestLog()
        counter = ConnectionCounter()
        stats = ServerStats(log, counter, server_port=5000)
        _record(log, "https://example.com/")
        counter.increment()

        snap = stats.snapshot()
        assert snap.server_port == 5000
        assert snap.active_connections == 1
        assert snap.total_requests == 1
        assert snap.uptime >= 0
