import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from framerelay.config import settings
from framerelay.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/health",
    summary="Liveness check",
    description="Basic liveness probe that returns HTTP 200 if the application process is running. Suitable for Kubernetes liveness probes or load balancer health checks.",
)
async def liveness():
    """Liveness probe, returns 200 if the process is running."""
    return {"status": "healthy"}


@router.get(
    "/health/ready",
    summary="Readiness check",
    description="Readiness probe that verifies the fetch strategy chain and the request log were set up at startup. Returns HTTP 200 with individual check statuses when everything is in place, or HTTP 503 otherwise.",
)
async def readiness(request: Request):
    """Readiness probe, checks the in-process collaborators."""
    checks = {}
    state = request.app.state

    chain = getattr(state, "fallback_chain", None)
    if chain is None:
        checks["fallback_chain"] = "not initialized"
    elif not chain.strategies:
        checks["fallback_chain"] = "no strategies"
    else:
        checks["fallback_chain"] = "ok"

    checks["request_log"] = "ok" if getattr(state, "request_log", None) is not None else "not initialized"

    all_ok = all(v == "ok" for v in checks.values())
    if not all_ok:
        logger.warning(f"Readiness check failed: {checks}")

    return JSONResponse(
        content={"status": "ready" if all_ok else "not ready", "checks": checks},
        status_code=200 if all_ok else 503,
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose application metrics in Prometheus exposition format. Returns HTTP 404 if metrics collection is disabled in the application configuration.",
)
async def metrics():
    """Prometheus metrics endpoint."""
    if not settings.METRICS_ENABLED:
        return Response(content="Metrics disabled", status_code=404)

    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type(),
    )
