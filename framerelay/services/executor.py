"""Strategy executor: one bounded fetch attempt under one client identity.

Every failure mode is folded into a FetchAttemptResult so the fallback chain
can walk its strategies without exception handling.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx
from curl_cffi.requests import AsyncSession as CurlAsyncSession
from curl_cffi.requests.exceptions import RequestException as CurlRequestException
from curl_cffi.requests.exceptions import Timeout as CurlTimeout
from curl_cffi.requests.exceptions import TooManyRedirects as CurlTooManyRedirects

from framerelay.core.metrics import strategy_attempts_total
from framerelay.services.strategies import SourceStrategy, StrategyDescriptor
from framerelay.services.wayback import (
    SnapshotLookupError,
    lookup_snapshot,
    to_raw_snapshot_url,
)

logger = logging.getLogger(__name__)

# Strong signals only: these appear on bot-challenge interstitials and almost
# never in the <head> of a real page.
_CHALLENGE_PATTERNS = [
    "just a moment...",
    "checking your browser",
    "cf-browser-verification",
    "attention required! | cloudflare",
    "please wait while we verify",
    "verify you are human",
    "are you a robot",
]
_CHALLENGE_MAX_BODY = 30000


@dataclass
class FetchAttemptResult:
    strategy_id: str
    ok: bool
    html: str | None = None
    status_code: int | None = None
    error: str | None = None
    final_url: str | None = None
    elapsed_ms: int = 0


@dataclass
class _UpstreamResponse:
    status_code: int
    content_type: str
    text: str
    url: str


def _is_fetchable_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def _media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def looks_like_challenge(body: str) -> bool:
    """True for short documents that carry an anti-bot challenge signature."""
    if len(body) > _CHALLENGE_MAX_BODY:
        return False
    head = body[:5000].lower()
    return any(pattern in head for pattern in _CHALLENGE_PATTERNS)


class StrategyExecutor:
    """Runs a single StrategyDescriptor against a target URL.

    ``transport`` is handed to every httpx client the executor opens, which
    is how tests put a MockTransport in front of the network.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        max_redirects: int = 10,
    ):
        self._transport = transport
        self.max_redirects = max_redirects

    async def execute(
        self, descriptor: StrategyDescriptor, target_url: str
    ) -> FetchAttemptResult:
        started = time.monotonic()
        result = await self._attempt(descriptor, target_url)
        result.elapsed_ms = int((time.monotonic() - started) * 1000)

        outcome = "ok" if result.ok else (result.error or "failed").split(":", 1)[0]
        strategy_attempts_total.labels(strategy=descriptor.id, outcome=outcome).inc()
        logger.debug(
            f"Strategy {descriptor.id} for {target_url}: "
            f"{'ok' if result.ok else result.error} "
            f"(status={result.status_code}, {result.elapsed_ms}ms)"
        )
        return result

    async def _attempt(
        self, descriptor: StrategyDescriptor, target_url: str
    ) -> FetchAttemptResult:
        if not _is_fetchable_url(target_url):
            return self._failed(descriptor, "invalid-url")

        try:
            return await asyncio.wait_for(
                self._run(descriptor, target_url), timeout=descriptor.timeout_seconds
            )
        except (asyncio.TimeoutError, httpx.TimeoutException, CurlTimeout):
            return self._failed(descriptor, "timeout")
        except (httpx.TooManyRedirects, CurlTooManyRedirects):
            return self._failed(descriptor, "redirect-loop")
        except (httpx.InvalidURL, httpx.UnsupportedProtocol):
            return self._failed(descriptor, "invalid-url")
        except SnapshotLookupError as exc:
            return self._failed(descriptor, f"snapshot-lookup-failed: {exc}")
        except (httpx.HTTPError, CurlRequestException) as exc:
            return self._failed(descriptor, f"network: {exc}")
        except UnicodeDecodeError:
            return self._failed(descriptor, "network: undecodable body")

    async def _run(
        self, descriptor: StrategyDescriptor, target_url: str
    ) -> FetchAttemptResult:
        if descriptor.source is SourceStrategy.ARCHIVAL:
            return await self._run_archival(descriptor, target_url)

        if descriptor.impersonate:
            response = await self._get_impersonated(descriptor, target_url)
        else:
            async with self._client(descriptor) as client:
                response = await self._get(client, target_url)
        return self._classify(descriptor, response)

    async def _run_archival(
        self, descriptor: StrategyDescriptor, target_url: str
    ) -> FetchAttemptResult:
        if not descriptor.availability_url:
            return self._failed(descriptor, "no-snapshot")

        async with self._client(descriptor) as client:
            snapshot_url = await lookup_snapshot(
                client, descriptor.availability_url, target_url
            )
            if snapshot_url is None:
                return self._failed(descriptor, "no-snapshot")
            if descriptor.raw_snapshots:
                snapshot_url = to_raw_snapshot_url(snapshot_url)
            logger.debug(f"Using archived snapshot {snapshot_url}")
            response = await self._get(client, snapshot_url)
        return self._classify(descriptor, response)

    # ------------------------------------------------------------------
    # Transports
    # ------------------------------------------------------------------

    def _client(self, descriptor: StrategyDescriptor) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=dict(descriptor.header_profile),
            timeout=descriptor.timeout_seconds,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            transport=self._transport,
        )

    @staticmethod
    async def _get(client: httpx.AsyncClient, url: str) -> _UpstreamResponse:
        resp = await client.get(url)
        return _UpstreamResponse(
            status_code=resp.status_code,
            content_type=resp.headers.get("content-type", ""),
            text=resp.text,
            url=str(resp.url),
        )

    async def _get_impersonated(
        self, descriptor: StrategyDescriptor, url: str
    ) -> _UpstreamResponse:
        """GET through curl_cffi with a browser TLS fingerprint."""
        async with CurlAsyncSession(impersonate=descriptor.impersonate) as session:
            resp = await session.get(
                url,
                headers=dict(descriptor.header_profile),
                timeout=descriptor.timeout_seconds,
                allow_redirects=True,
                max_redirects=self.max_redirects,
            )
        return _UpstreamResponse(
            status_code=resp.status_code,
            content_type=resp.headers.get("content-type", "") or "",
            text=resp.text or "",
            url=str(resp.url),
        )

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _classify(
        self, descriptor: StrategyDescriptor, response: _UpstreamResponse
    ) -> FetchAttemptResult:
        status = response.status_code
        if not 200 <= status < 400:
            return self._failed(descriptor, f"http-{status}", status, response.url)

        # A missing Content-Type is accepted; many small servers omit it.
        media_type = _media_type(response.content_type)
        if media_type and media_type not in descriptor.accepted_content_types:
            return self._failed(
                descriptor, f"content-type:{media_type}", status, response.url
            )

        body = response.text.strip()
        if len(body) < descriptor.min_acceptable_body_length:
            return self._failed(descriptor, "empty-body", status, response.url)

        if descriptor.reject_challenge_pages and looks_like_challenge(body):
            return self._failed(descriptor, "challenge-page", status, response.url)

        return FetchAttemptResult(
            strategy_id=descriptor.id,
            ok=True,
            html=body,
            status_code=status,
            final_url=response.url,
        )

    @staticmethod
    def _failed(
        descriptor: StrategyDescriptor,
        error: str,
        status_code: int | None = None,
        final_url: str | None = None,
    ) -> FetchAttemptResult:
        return FetchAttemptResult(
            strategy_id=descriptor.id,
            ok=False,
            status_code=status_code,
            error=error,
            final_url=final_url,
        )
