from __future__ import annotations

import random

from pydantic import BaseModel, Field, model_validator


class RetryPolicy(BaseModel):
    """Transport-level retries for safe requests.

    Only idempotent methods are retried, and only on the listed statuses or on
    connection-level failures. Callers that own their retry decisions pass
    ``RetryPolicy.single_attempt()``.

    Args:
        max_attempts: Attempts per request, the first one included
        base_delay_s: Delay before the first retry; doubles on each further retry
        max_delay_s: Upper bound on any single delay
        jitter: Random spread as a fraction of the delay (0.15 = +/-15%)
        retry_on_status: Statuses worth another attempt
        idempotent_methods: Methods that may be sent twice
    """

    model_config = {"frozen": True}

    max_attempts: int = Field(default=3, ge=1)
    base_delay_s: float = Field(default=0.25, ge=0.0)
    max_delay_s: float = Field(default=5.0, ge=0.0)
    jitter: float = Field(default=0.15, ge=0.0, le=1.0)
    retry_on_status: frozenset[int] = frozenset({429, 500, 502, 503, 504})
    idempotent_methods: frozenset[str] = frozenset({"GET", "HEAD", "OPTIONS"})

    @model_validator(mode="after")
    def _check_delays(self) -> RetryPolicy:
        if self.max_delay_s < self.base_delay_s:
            raise ValueError("max_delay_s must be >= base_delay_s")
        return self

    @classmethod
    def single_attempt(cls) -> RetryPolicy:
        """Policy that never retries."""
        return cls(max_attempts=1, base_delay_s=0.0, max_delay_s=0.0, jitter=0.0)

    def should_retry(self, method: str, attempt: int, status_code: int | None) -> bool:
        """Whether a request that failed on ``attempt`` (1-based) gets another try.

        ``status_code`` is None for connection failures and timeouts.
        """
        if attempt >= self.max_attempts or method.upper() not in self.idempotent_methods:
            return False
        return status_code is None or status_code in self.retry_on_status

    def delay_for(self, attempt: int, retry_after_s: float | None = None) -> float:
        """Seconds to wait after failed attempt ``attempt``; a server hint wins."""
        if retry_after_s is not None:
            return min(retry_after_s, self.max_delay_s)
        delay = min(self.max_delay_s, self.base_delay_s * 2 ** (attempt - 1))
        spread = delay * self.jitter
        return max(0.0, delay + random.uniform(-spread, spread))


def parse_retry_after_seconds(value: str | None) -> float | None:
    """Seconds from a numeric ``Retry-After`` header; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None
