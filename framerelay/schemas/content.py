from pydantic import BaseModel, Field, field_validator


def _normalize_url(url: str) -> str:
    """Prepend https:// if no protocol is present."""
    url = url.strip()
    if url and not url.startswith(("http://", "https://", "//")):
        url = f"https://{url}"
    elif url.startswith("//"):
        url = f"https:{url}"
    return url


class ContentRequest(BaseModel):
    # Optional at the schema level so a missing value gets a descriptive 400
    # from the endpoint instead of a generic validation error.
    target_url: str | None = Field(None, alias="targetUrl")

    model_config = {"populate_by_name": True}

    @field_validator("target_url", mode="before")
    @classmethod
    def _add_protocol(cls, v):
        if isinstance(v, str):
            return _normalize_url(v)
        return v
