import logging

import httpx
from fastapi import APIRouter, Depends, Header, Query, Response

from framerelay.api.deps import (
    get_connection_counter,
    get_proxy_transport,
    get_request_log,
    get_server_stats,
)
from framerelay.schemas.proxy import ProxyRequestBody, ProxyStats, RequestLogPage
from framerelay.services.passthrough import relay_request
from framerelay.services.request_log import (
    ConnectionCounter,
    InMemoryRequestLog,
    ServerStats,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/request",
    summary="Relay a request",
    description="Perform a single GET against the target URL and mirror the upstream "
    "status, headers and body. Every request is recorded in the request log. "
    "Returns 502 when the upstream cannot be reached.",
)
async def proxy_request(
    body: ProxyRequestBody,
    request_log: InMemoryRequestLog = Depends(get_request_log),
    connections: ConnectionCounter = Depends(get_connection_counter),
    transport: httpx.AsyncBaseTransport | None = Depends(get_proxy_transport),
    user_agent: str | None = Header(None),
):
    connections.increment()
    try:
        relayed = await relay_request(
            body,
            request_log,
            client_user_agent=user_agent,
            transport=transport,
        )
    finally:
        connections.decrement()

    response = Response(content=relayed.body, status_code=relayed.status_code)
    for name, value in relayed.headers:
        response.headers.append(name, value)
    return response


@router.get(
    "/stats",
    response_model=ProxyStats,
    summary="Server statistics",
    description="Port, in-flight request count, total requests handled and uptime.",
)
async def proxy_stats(stats: ServerStats = Depends(get_server_stats)):
    return stats.snapshot()


@router.get(
    "/requests",
    response_model=RequestLogPage,
    summary="List logged requests",
    description="Logged requests, newest first, paginated with limit and offset.",
)
async def list_requests(
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    request_log: InMemoryRequestLog = Depends(get_request_log),
):
    return RequestLogPage(
        requests=request_log.list(limit=limit, offset=offset),
        total=request_log.count(),
    )


@router.delete(
    "/requests",
    summary="Clear the request log",
)
async def clear_requests(request_log: InMemoryRequestLog = Depends(get_request_log)):
    request_log.clear()
    logger.info("Request log cleared")
    return {"message": "Request logs cleared successfully"}
