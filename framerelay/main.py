import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from framerelay.api.v1.health import router as health_router
from framerelay.api.v1.router import api_router
from framerelay.config import settings
from framerelay.core.exceptions import AppError
from framerelay.core.logging_config import configure_logging
from framerelay.middleware.request_id import RequestIDMiddleware
from framerelay.services.executor import StrategyExecutor
from framerelay.services.fallback import FallbackChain
from framerelay.services.request_log import (
    ConnectionCounter,
    InMemoryRequestLog,
    ServerStats,
)
from framerelay.services.strategies import default_strategies

# Configure structured logging (must happen before any logger is created)
configure_logging(log_format=settings.LOG_FORMAT, log_level=settings.LOG_LEVEL)

# Initialize Sentry error tracking
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.SENTRY_ENVIRONMENT,
        release=f"framerelay@{settings.APP_VERSION}",
    )

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    strategy_ids = ", ".join(d.id for d in app.state.fallback_chain.strategies)
    logger.info(
        f"Starting {settings.APP_NAME} v{settings.APP_VERSION} "
        f"on port {settings.PORT} (strategies: {strategy_ids})"
    )

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="FrameRelay - fetch third-party pages and serve them in a form "
    "that renders inside an iframe. Falls back from desktop to mobile to web "
    "archive retrieval, and to a placeholder page when all of them fail.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Shared in-process collaborators, reached through framerelay.api.deps
app.state.request_log = InMemoryRequestLog(max_entries=settings.REQUEST_LOG_MAX_ENTRIES)
app.state.connections = ConnectionCounter()
app.state.stats = ServerStats(app.state.request_log, app.state.connections, settings.PORT)
app.state.fallback_chain = FallbackChain(
    strategies=default_strategies(settings),
    executor=StrategyExecutor(max_redirects=settings.MAX_REDIRECTS),
)
app.state.proxy_transport = None

# Request ID middleware (must be added before other middleware)
app.add_middleware(RequestIDMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


# Include API routes
app.include_router(api_router)

# Health & metrics routes (no /api prefix)
app.include_router(health_router)


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "status": "running",
    }
