import logging
import time

from fastapi import APIRouter, Depends, Header
from fastapi.responses import HTMLResponse

from framerelay.api.deps import (
    get_connection_counter,
    get_fallback_chain,
    get_request_log,
)
from framerelay.config import settings
from framerelay.core.exceptions import BadRequestError
from framerelay.schemas.content import ContentRequest
from framerelay.services import readiness
from framerelay.services.fallback import FallbackChain, FetchOutcome, build_placeholder
from framerelay.services.request_log import ConnectionCounter, RequestLogSink
from framerelay.services.strategies import SourceStrategy

router = APIRouter()
logger = logging.getLogger(__name__)

# Headers that let any parent page frame the relayed document and keep
# browsers and intermediaries from caching it.
FRAMING_HEADERS = {
    "Content-Security-Policy": "frame-ancestors *",
    "Access-Control-Allow-Origin": "*",
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


async def _acquire(chain: FallbackChain, target_url: str) -> FetchOutcome:
    try:
        return await chain.acquire(target_url)
    except Exception:
        logger.exception(f"Content acquisition crashed for {target_url}")
        return FetchOutcome(
            html=build_placeholder(target_url),
            source_strategy=SourceStrategy.FALLBACK_PLACEHOLDER,
            rewritten=False,
        )


def _instrument(html: str) -> str:
    try:
        return readiness.inject(
            html,
            poll_interval_ms=settings.READINESS_POLL_INTERVAL_MS,
            hard_ceiling_ms=settings.READINESS_HARD_CEILING_MS,
            min_elapsed_ms=settings.READINESS_MIN_ELAPSED_MS,
            min_height=settings.READINESS_MIN_HEIGHT,
        )
    except Exception:
        logger.exception("Readiness injection failed, delivering document without overlay")
        return html


@router.post(
    "/content",
    response_class=HTMLResponse,
    summary="Fetch a page for framing",
    description="Retrieve the target page through an ordered chain of fetch strategies "
    "(desktop, mobile, web archive), rewrite it so it renders inside a frame, and "
    "return the HTML with a loading overlay. When every strategy fails, a placeholder "
    "page describing the failure is returned instead. Always responds 200 for a "
    "well-formed request.",
)
async def fetch_content(
    request: ContentRequest,
    chain: FallbackChain = Depends(get_fallback_chain),
    request_log: RequestLogSink = Depends(get_request_log),
    connections: ConnectionCounter = Depends(get_connection_counter),
    user_agent: str | None = Header(None),
):
    """Acquire, rewrite and instrument a page for display inside an iframe."""
    target_url = (request.target_url or "").strip()
    if not target_url:
        raise BadRequestError("targetUrl is required")

    connections.increment()
    started = time.monotonic()
    try:
        outcome = await _acquire(chain, target_url)
        document = _instrument(outcome.html)
    finally:
        connections.decrement()

    duration_ms = int((time.monotonic() - started) * 1000)
    error_message = None
    if outcome.is_placeholder:
        error_message = "; ".join(
            f"{a.strategy_id}: {a.error}" for a in outcome.attempts
        ) or "acquisition failed"
    request_log.record(
        target_url=target_url,
        method="GET",
        status_code=200,
        duration_ms=duration_ms,
        response_size=len(document.encode("utf-8")),
        user_agent=user_agent,
        error_message=error_message,
    )
    logger.info(
        f"Delivered {target_url} via {outcome.source_strategy.value} in {duration_ms}ms"
    )

    headers = dict(FRAMING_HEADERS)
    headers["X-Relay-Source"] = outcome.source_strategy.value
    headers["X-Relay-Strategy"] = outcome.strategy_id or "none"
    return HTMLResponse(content=document, status_code=200, headers=headers)
