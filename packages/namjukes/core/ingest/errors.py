"""Error taxonomy for extraction.

Extraction errors are classified once, at the transport boundary, and carry their kind;
downstream code never inspects message text.
"""

from __future__ import annotations

from namjukes.core.ingest.models import ErrorKind


class ExtractionError(Exception):
    """Base class for extraction failures.

    Attributes:
        kind: Failure category
        retryable: Whether the backoff policy may retry automatically
        message: Message surfaced to the user verbatim
        retry_after_s: Server-provided wait hint, if any
    """

    kind: ErrorKind
    retryable: bool = False

    def __init__(self, message: str, *, retry_after_s: float | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.retry_after_s = retry_after_s


class RateLimited(ExtractionError):
    """HTTP 429 from the extraction service."""

    kind = ErrorKind.RATE_LIMITED
    retryable = True


class QuotaExhausted(ExtractionError):
    """HTTP 402, the extraction service is out of credits."""

    kind = ErrorKind.QUOTA_EXHAUSTED


class TransportError(ExtractionError):
    """Network failure, timeout, or 5xx."""

    kind = ErrorKind.TRANSPORT
    retryable = True


class MalformedResponse(ExtractionError):
    """The service answered but the body could not be decoded into songs."""

    kind = ErrorKind.MALFORMED_RESPONSE


class RequestRejected(ExtractionError):
    """Any other 4xx: the request itself was refused (auth, bad input)."""

    kind = ErrorKind.REJECTED
