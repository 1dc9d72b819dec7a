"""Plain pass-through proxy: one GET, relayed as-is, logged once."""

import logging
import time
from dataclasses import dataclass, field

import httpx

from framerelay.config import settings
from framerelay.core.exceptions import UpstreamError
from framerelay.core.metrics import proxy_requests_total
from framerelay.schemas.proxy import ProxyRequestBody
from framerelay.services.request_log import RequestLogSink

logger = logging.getLogger(__name__)

# Not forwarded: hop-by-hop headers, plus framing headers that no longer match
# the body once httpx has decoded it.
_DROPPED_RESPONSE_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "content-encoding",
    "content-length",
}


@dataclass
class RelayedResponse:
    status_code: int
    body: bytes
    headers: list[tuple[str, str]] = field(default_factory=list)
    duration_ms: int = 0


def build_proxy_headers(body: ProxyRequestBody, default_user_agent: str) -> dict[str, str]:
    headers = {
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
        "User-Agent": body.user_agent or default_user_agent,
    }
    if body.mask_ip:
        headers["X-Forwarded-For"] = "127.0.0.1"
        headers["X-Real-IP"] = "127.0.0.1"
    return headers


async def relay_request(
    body: ProxyRequestBody,
    request_log: RequestLogSink,
    client_user_agent: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RelayedResponse:
    """Forward one GET to ``body.target_url`` and return the upstream answer.

    Raises UpstreamError when the upstream cannot be reached; the failure is
    logged to ``request_log`` either way.
    """
    target_url = str(body.target_url)
    headers = build_proxy_headers(body, settings.PROXY_DEFAULT_USER_AGENT)
    logged_user_agent = body.user_agent or client_user_agent
    if body.enable_caching:
        logger.debug("enableCaching requested but no response cache exists; ignoring")

    logger.info(f"Proxying request to: {target_url}")
    started = time.monotonic()
    try:
        async with httpx.AsyncClient(
            follow_redirects=body.follow_redirects,
            timeout=settings.PROXY_TIMEOUT_SECONDS,
            transport=transport,
        ) as client:
            resp = await client.get(target_url, headers=headers)
            content = resp.content
    except httpx.HTTPError as exc:
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.warning(f"Proxy request to {target_url} failed: {exc}")
        proxy_requests_total.labels(status="error").inc()
        request_log.record(
            target_url=target_url,
            method="GET",
            status_code=UpstreamError.status_code,
            duration_ms=duration_ms,
            response_size=0,
            user_agent=logged_user_agent,
            error_message=str(exc) or exc.__class__.__name__,
        )
        raise UpstreamError(
            "Proxy request failed", error=str(exc) or exc.__class__.__name__
        ) from exc

    duration_ms = int((time.monotonic() - started) * 1000)
    proxy_requests_total.labels(status=str(resp.status_code)).inc()
    request_log.record(
        target_url=target_url,
        method="GET",
        status_code=resp.status_code,
        duration_ms=duration_ms,
        response_size=len(content),
        user_agent=logged_user_agent,
        error_message=None,
    )

    relayed_headers = [
        (name, value)
        for name, value in resp.headers.multi_items()
        if name.lower() not in _DROPPED_RESPONSE_HEADERS
    ]
    return RelayedResponse(
        status_code=resp.status_code,
        body=content,
        headers=relayed_headers,
        duration_ms=duration_ms,
    )
