"""HTTPX wrapper shared by the scan service client and the Supabase catalog.

- AsyncApiClient: async client with structured errors and safe retries
- HttpClientConfig: connection settings
- RetryPolicy: transport-level retries for idempotent requests
- SupabaseAuth: project key and user token headers
- ApiError and subclasses, one per failure category
"""

from namjukes.core.api.http.auth import SupabaseAuth
from namjukes.core.api.http.client import AsyncApiClient, categorize_http_error, redact_headers
from namjukes.core.api.http.config import HttpClientConfig
from namjukes.core.api.http.errors import (
    ApiError,
    AuthError,
    ClientError,
    DecodeError,
    NetworkError,
    PaymentRequiredError,
    RateLimitError,
    ServerError,
    TimeoutError,
)
from namjukes.core.api.http.retry import RetryPolicy, parse_retry_after_seconds

__all__ = [
    "AsyncApiClient",
    "HttpClientConfig",
    "RetryPolicy",
    "SupabaseAuth",
    "categorize_http_error",
    "parse_retry_after_seconds",
    "redact_headers",
    "ApiError",
    "AuthError",
    "ClientError",
    "DecodeError",
    "NetworkError",
    "PaymentRequiredError",
    "RateLimitError",
    "ServerError",
    "TimeoutError",
]
