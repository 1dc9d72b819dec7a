"""Fetch strategy descriptors.

A strategy is a declarative description of one way to retrieve a page: the
client identity it presents (a complete header profile), how long it may take
and what it accepts as a usable answer. The chain is an ordered tuple of
descriptors; adding a strategy means appending a descriptor here.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from framerelay.config import Settings, settings as default_settings


class SourceStrategy(str, Enum):
    """Where a delivered document came from."""

    DIRECT = "direct"
    ALTERNATE_IDENTITY = "alternate-identity"
    ARCHIVAL = "archival"
    FALLBACK_PLACEHOLDER = "fallback-placeholder"


HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

# ---------------------------------------------------------------------------
# Header profiles: each one is a full, internally consistent client identity
# ---------------------------------------------------------------------------

DESKTOP_CHROME_HEADERS: Mapping[str, str] = MappingProxyType(
    {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Sec-Ch-Ua": '"Chromium";v="124", "Google Chrome";v="124", "Not-A.Brand";v="99"',
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": '"Windows"',
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
    }
)

# Safari does not send client hints or Sec-Fetch-User.
MOBILE_SAFARI_HEADERS: Mapping[str, str] = MappingProxyType(
    {
        "User-Agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Upgrade-Insecure-Requests": "1",
    }
)

ARCHIVE_CLIENT_HEADERS: Mapping[str, str] = MappingProxyType(
    {
        "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
        "Cache-Control": "no-cache",
    }
)

# curl_cffi fingerprints matching the profiles above
DESKTOP_IMPERSONATE = "chrome124"
MOBILE_IMPERSONATE = "safari17_2_ios"


@dataclass(frozen=True)
class StrategyDescriptor:
    id: str
    source: SourceStrategy
    header_profile: Mapping[str, str]
    timeout_ms: int
    accepted_content_types: tuple[str, ...] = HTML_CONTENT_TYPES
    min_acceptable_body_length: int = 200
    impersonate: str | None = None
    reject_challenge_pages: bool = True
    # archival strategies only
    availability_url: str | None = None
    raw_snapshots: bool = True

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def with_timeout(self, timeout_ms: int) -> StrategyDescriptor:
        return replace(self, timeout_ms=timeout_ms)


def default_strategies(config: Settings | None = None) -> tuple[StrategyDescriptor, ...]:
    """Canonical chain: desktop identity, mobile identity, archived snapshot."""
    config = config or default_settings
    min_length = config.MIN_BODY_LENGTH

    return (
        StrategyDescriptor(
            id="desktop",
            source=SourceStrategy.DIRECT,
            header_profile=DESKTOP_CHROME_HEADERS,
            timeout_ms=config.DESKTOP_FETCH_TIMEOUT_MS,
            min_acceptable_body_length=min_length,
            impersonate=DESKTOP_IMPERSONATE if config.TLS_IMPERSONATION else None,
        ),
        StrategyDescriptor(
            id="mobile",
            source=SourceStrategy.ALTERNATE_IDENTITY,
            header_profile=MOBILE_SAFARI_HEADERS,
            timeout_ms=config.MOBILE_FETCH_TIMEOUT_MS,
            min_acceptable_body_length=min_length,
            impersonate=MOBILE_IMPERSONATE if config.TLS_IMPERSONATION else None,
        ),
        StrategyDescriptor(
            id="archive",
            source=SourceStrategy.ARCHIVAL,
            header_profile=ARCHIVE_CLIENT_HEADERS,
            timeout_ms=config.ARCHIVE_FETCH_TIMEOUT_MS,
            min_acceptable_body_length=min_length,
            # last resort: accept whatever the archive stored
            reject_challenge_pages=False,
            availability_url=config.WAYBACK_AVAILABILITY_URL,
            raw_snapshots=config.ARCHIVE_RAW_SNAPSHOTS,
        ),
    )
