from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "FrameRelay"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    PORT: int = 5000

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Fetch strategies (all timeouts in ms)
    DESKTOP_FETCH_TIMEOUT_MS: int = 10000
    MOBILE_FETCH_TIMEOUT_MS: int = 10000
    ARCHIVE_FETCH_TIMEOUT_MS: int = 20000
    MIN_BODY_LENGTH: int = 200  # shorter bodies are treated as blank interstitials
    MAX_REDIRECTS: int = 10
    TLS_IMPERSONATION: bool = False  # use curl_cffi browser fingerprints for direct fetches

    # Archive fallback
    WAYBACK_AVAILABILITY_URL: str = "https://archive.org/wayback/available"
    ARCHIVE_RAW_SNAPSHOTS: bool = True  # request id_ snapshots without playback rewriting

    # Readiness overlay (client side, ms / px)
    READINESS_POLL_INTERVAL_MS: int = 500
    READINESS_HARD_CEILING_MS: int = 15000
    READINESS_MIN_ELAPSED_MS: int = 1200
    READINESS_MIN_HEIGHT: int = 600

    # Pass-through proxy
    PROXY_TIMEOUT_SECONDS: float = 30.0
    PROXY_DEFAULT_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )

    # Request log
    REQUEST_LOG_MAX_ENTRIES: int = 1000

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2
    SENTRY_ENVIRONMENT: str = "development"

    # Logging
    LOG_FORMAT: str = "json"  # "json" for production, "text" for development
    LOG_LEVEL: str = "INFO"

    # Metrics
    METRICS_ENABLED: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
