"""Configuration models for namjukes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScanServiceConfig(BaseModel):
    """Where the extraction client sends images."""

    url: str = Field(
        default="http://127.0.0.1:8787",
        description="Base URL of the scan-album service (Supabase project URL or local gateway)",
    )
    path: str = Field(default="/functions/v1/scan-album", description="Endpoint path")
    api_key: str | None = Field(default=None, description="Key sent as apikey + bearer token")
    timeout_s: float = Field(default=60.0, gt=0, description="Bound on a single scan call")
    extract_metadata: bool = Field(
        default=False, description="Ask the service to infer album title/artist too"
    )

    model_config = ConfigDict(extra="forbid")


class RetryConfig(BaseModel):
    """Backoff for rate-limited and transient scan failures."""

    max_retries: int = Field(default=3, ge=0, description="Automatic retries per item")
    base_delay_s: float = Field(default=2.0, ge=0.0, description="Delay before the first retry")
    max_delay_s: float = Field(default=60.0, ge=0.0, description="Cap on a single delay")

    model_config = ConfigDict(extra="forbid")


class CatalogConfig(BaseModel):
    """Supabase project holding the albums/songs tables and cover storage."""

    supabase_url: str | None = None
    supabase_key: str | None = None
    access_token: str | None = Field(
        default=None, description="Signed-in manager's session JWT (row-level security)"
    )
    covers_bucket: str = "album-covers"

    model_config = ConfigDict(extra="forbid")


class GatewayConfig(BaseModel):
    """Local scan-album gateway in front of an OpenAI-compatible vision model."""

    base_url: str = "https://ai.gateway.lovable.dev/v1"
    api_key: str | None = None
    model: str = "google/gemini-2.5-flash"
    timeout_s: float = Field(default=120.0, gt=0)
    host: str = "127.0.0.1"
    port: int = Field(default=8787, ge=1, le=65535)

    model_config = ConfigDict(extra="forbid")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Root log level")
    structured: bool = Field(default=False, description="Emit JSON lines instead of text")
    filename: str | None = Field(default=None, description="Log file (stdout when unset)")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    """Application configuration.

    Example:
        >>> config = AppConfig.model_validate({"scan": {"url": "https://xyz.supabase.co"}})
        >>> config.retry.max_retries
        3
    """

    scan: ScanServiceConfig = Field(default_factory=ScanServiceConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid")
