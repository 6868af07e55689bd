"""Retry decisions for extraction attempts."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field, field_validator

from namjukes.core.ingest.errors import ExtractionError


@dataclass(frozen=True)
class Retry:
    """Try again after ``after_s`` seconds."""

    after_s: float


@dataclass(frozen=True)
class GiveUp:
    """Stop; the item becomes FAILED with ``reason``."""

    reason: str


Decision = Retry | GiveUp


class BackoffPolicy(BaseModel):
    """Exponential backoff for rate-limited and transient extraction failures.

    Delay before retry ``n`` is ``base_delay_s * 2 ** (n - 1)``: 2s, 4s, 8s with the defaults.
    Quota, malformed-response and rejected-request errors are never retried.

    Args:
        max_retries: Automatic retries after the first attempt
        base_delay_s: Delay before the first retry
        max_delay_s: Cap on any single delay, including server hints
    """

    model_config = {"frozen": True}

    max_retries: int = Field(default=3, ge=0)
    base_delay_s: float = Field(default=2.0, ge=0.0)
    max_delay_s: float = Field(default=60.0, ge=0.0)

    @field_validator("max_delay_s")
    @classmethod
    def validate_max_delay(cls, v: float, info) -> float:
        base = info.data.get("base_delay_s", 2.0)
        if v < base:
            raise ValueError("max_delay_s must be >= base_delay_s")
        return v

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry: int) -> float:
        """Delay in seconds before retry number ``retry`` (1-indexed)."""
        return min(self.max_delay_s, self.base_delay_s * (2 ** (retry - 1)))

    def decide(self, error: ExtractionError, attempt: int) -> Decision:
        """Decide what to do after ``attempt`` (1-indexed) failed with ``error``."""
        if not error.retryable:
            return GiveUp(error.message)
        if attempt >= self.max_attempts:
            return GiveUp(f"{error.message} (gave up after {attempt} attempts)")
        delay = self.delay_for(attempt)
        if error.retry_after_s is not None:
            delay = min(self.max_delay_s, max(delay, error.retry_after_s))
        return Retry(after_s=delay)
