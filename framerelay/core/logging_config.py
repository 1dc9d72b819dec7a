"""Structured logging configuration.

LOG_FORMAT selects the output:
- "json" (production): one JSON object per line, tagged with request_id
- "text" (development): plain human-readable lines
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from framerelay.middleware.request_id import get_request_id

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"

# Outbound HTTP clients log every request at INFO; the relay makes several
# per acquisition so these are only useful when debugging.
_NOISY_LOGGERS = ("httpx", "httpcore", "curl_cffi", "hpack")


class RequestIDFilter(logging.Filter):
    """Inject request_id into every log record."""

    def filter(self, record):
        record.request_id = get_request_id()
        return True


class ArchiveUrlFilter(logging.Filter):
    """Shorten Wayback snapshot URLs in log messages.

    Snapshot URLs embed the full original URL after a timestamp, which
    doubles the length of every archive-related line.
    """

    def filter(self, record):
        if isinstance(record.msg, str) and "web.archive.org/web/" in record.msg:
            record.msg = record.msg.replace("https://web.archive.org/web/", "wayback:")
        return True


def configure_logging(log_format: str = "json", log_level: str = "INFO"):
    """Configure the root logger.

    Args:
        log_format: "json" or "text"
        log_level: Python log level name
    """
    root = logging.getLogger()
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDFilter())
    handler.addFilter(ArchiveUrlFilter())

    if log_format == "json":
        formatter = JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s %(request_id)s",
            rename_fields={
                "levelname": "level",
                "name": "logger",
                "asctime": "timestamp",
            },
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler.setFormatter(formatter)
    root.addHandler(handler)
    level = getattr(logging, log_level.upper(), logging.INFO)
    root.setLevel(level)

    if level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
