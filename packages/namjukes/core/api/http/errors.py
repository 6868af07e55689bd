"""Failures raised by AsyncApiClient.

The class says what went wrong; callers branch on it and never on message text.
"""

from __future__ import annotations

from collections.abc import Mapping


class ApiError(Exception):
    """A request that did not produce a usable response.

    Attributes:
        message: Short description
        method: HTTP method of the failed request
        url: Full request URL
        status_code: Response status, None when no response arrived
        response_headers: Response headers, when a response arrived
        response_body_snippet: Leading part of the response body, for diagnostics
    """

    def __init__(
        self,
        message: str,
        *,
        method: str,
        url: str,
        status_code: int | None = None,
        response_headers: Mapping[str, str] | None = None,
        response_body_snippet: str | None = None,
    ) -> None:
        self.message = message
        self.method = method
        self.url = url
        self.status_code = status_code
        self.response_headers = dict(response_headers) if response_headers else None
        self.response_body_snippet = response_body_snippet
        super().__init__(str(self))

    def __str__(self) -> str:
        status = f" -> {self.status_code}" if self.status_code is not None else ""
        return f"{self.message} ({self.method} {self.url}{status})"

    def header(self, name: str) -> str | None:
        """Case-insensitive lookup of a response header."""
        wanted = name.lower()
        for key, value in (self.response_headers or {}).items():
            if key.lower() == wanted:
                return value
        return None


class NetworkError(ApiError):
    """Connection refused, reset, DNS failure and the like."""


class TimeoutError(ApiError):
    """No response within the request timeout."""


class DecodeError(ApiError):
    """The response body is not the JSON the caller asked for."""


class RateLimitError(ApiError):
    """HTTP 429."""


class PaymentRequiredError(ApiError):
    """HTTP 402; the upstream account is out of credits."""


class AuthError(ApiError):
    """HTTP 401 or 403."""


class ClientError(ApiError):
    """Any other rejected request (4xx, or a stray 3xx)."""


class ServerError(ApiError):
    """HTTP 5xx."""
