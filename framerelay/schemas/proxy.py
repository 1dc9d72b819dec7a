from datetime import datetime

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Accepts and emits camelCase field names, like the web client sends."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProxyRequestBody(_CamelModel):
    target_url: AnyHttpUrl
    follow_redirects: bool = True
    enable_caching: bool = False  # accepted, no cache exists behind it
    user_agent: str | None = None
    mask_ip: bool = False


class RequestLogEntry(_CamelModel):
    id: str
    target_url: str
    method: str
    status_code: int
    duration: int  # ms
    response_size: int  # bytes
    timestamp: datetime
    user_agent: str | None = None
    error_message: str | None = None


class RequestLogPage(_CamelModel):
    requests: list[RequestLogEntry]
    total: int


class ProxyStats(_CamelModel):
    server_port: int
    active_connections: int = 0
    total_requests: int = 0
    uptime: int = Field(0, description="Seconds since the server started")
    last_updated: datetime
