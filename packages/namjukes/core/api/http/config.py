from __future__ import annotations

import httpx
from pydantic import BaseModel, Field, field_validator


class HttpClientConfig(BaseModel):
    """Connection settings for one remote service.

    Args:
        base_url: Service root, e.g. "https://xyz.supabase.co"
        timeout: Default per-request timeout; callers may pass a tighter one per call
        user_agent: User-Agent sent with every request
        redact_headers: Header names masked in debug logs (case-insensitive)
        error_body_limit: Bytes of an error response kept on the raised ApiError
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    base_url: str
    timeout: httpx.Timeout = Field(default_factory=lambda: httpx.Timeout(15.0, connect=5.0))
    user_agent: str = "namjukes/0.1"
    redact_headers: frozenset[str] = frozenset({"authorization", "apikey", "cookie"})
    error_body_limit: int = Field(default=4096, ge=0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")
