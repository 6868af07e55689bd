"""Async HTTP client shared by the scan service and catalog backends.

Every non-2xx response, timeout and connection failure is turned into an ApiError
subclass here, once; idempotent requests are retried according to a RetryPolicy.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

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

logger = logging.getLogger(__name__)

_REDACTED = "***REDACTED***"


def categorize_http_error(status_code: int) -> type[ApiError]:
    """Error class for a non-2xx status."""
    if status_code == 402:
        return PaymentRequiredError
    if status_code == 429:
        return RateLimitError
    if status_code in (401, 403):
        return AuthError
    if status_code >= 500:
        return ServerError
    return ClientError


def redact_headers(headers: Mapping[str, str], names: Iterable[str]) -> dict[str, str]:
    """Copy of ``headers`` with the named ones (case-insensitive) masked."""
    hidden = {name.lower() for name in names}
    return {k: _REDACTED if k.lower() in hidden else v for k, v in headers.items()}


class AsyncApiClient:
    """Thin wrapper over httpx.AsyncClient.

    Args:
        config: Connection settings
        auth: Optional httpx auth (e.g. SupabaseAuth)
        retry_policy: Transport retries for idempotent requests (default RetryPolicy())
        transport: Optional custom transport (httpx.MockTransport in tests)

    Example:
        >>> http = AsyncApiClient(HttpClientConfig(base_url=url), auth=SupabaseAuth(api_key=key))
        >>> rows = http.json(await http.request("GET", "/rest/v1/albums", params=query))
        >>> await http.aclose()
    """

    def __init__(
        self,
        config: HttpClientConfig,
        *,
        auth: httpx.Auth | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy()
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"User-Agent": config.user_agent},
            timeout=config.timeout,
            auth=auth,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        json_body: Any = None,
        content: bytes | None = None,
        timeout: httpx.Timeout | None = None,
    ) -> httpx.Response:
        """Send one request, retrying idempotent ones per the retry policy.

        Raises:
            ApiError: Subclass for the status, timeout or connection failure
        """
        method = method.upper()
        attempt = 0
        while True:
            attempt += 1
            request = self._client.build_request(
                method,
                path,
                params=params,
                headers=headers,
                json=json_body,
                content=content,
                timeout=timeout if timeout is not None else self.config.timeout,
            )
            url = str(request.url)
            logger.debug(
                "HTTP %s %s (attempt %d)",
                method,
                url,
                attempt,
                extra={"headers": redact_headers(request.headers, self.config.redact_headers)},
            )

            started = time.perf_counter()
            try:
                response = await self._client.send(request)
            except httpx.TimeoutException as e:
                error: ApiError = TimeoutError("Request timed out", method=method, url=url)
                cause: Exception = e
            except httpx.RequestError as e:
                error = NetworkError(f"Network error: {e}", method=method, url=url)
                cause = e
            else:
                logger.debug(
                    "HTTP %s %s -> %d in %dms",
                    method,
                    url,
                    response.status_code,
                    int((time.perf_counter() - started) * 1000),
                )
                if response.is_success:
                    return response
                error = self._status_error(response)
                cause = None

            if not self.retry_policy.should_retry(method, attempt, error.status_code):
                if cause is not None:
                    raise error from cause
                raise error

            delay = self.retry_policy.delay_for(
                attempt, parse_retry_after_seconds(error.header("Retry-After"))
            )
            logger.debug("Retrying %s %s in %.2fs: %s", method, url, delay, error.message)
            await asyncio.sleep(delay)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    def json(self, response: httpx.Response) -> Any:
        """Decode a JSON body; an empty body or 204 decodes to None.

        Raises:
            DecodeError: If the body is not JSON
        """
        if response.status_code == 204 or not response.content:
            return None
        content_type = response.headers.get("content-type", "")
        if "json" not in content_type:
            raise self._decode_error(response, f"Expected JSON, got {content_type or 'no type'}")
        try:
            return response.json()
        except ValueError as e:
            raise self._decode_error(response, "Response body is not valid JSON") from e

    def _snippet(self, response: httpx.Response) -> str:
        return response.content[: self.config.error_body_limit].decode("utf-8", errors="replace")

    def _status_error(self, response: httpx.Response) -> ApiError:
        cls = categorize_http_error(response.status_code)
        return cls(
            f"HTTP {response.status_code}",
            method=response.request.method,
            url=str(response.request.url),
            status_code=response.status_code,
            response_headers=response.headers,
            response_body_snippet=self._snippet(response),
        )

    def _decode_error(self, response: httpx.Response, message: str) -> DecodeError:
        return DecodeError(
            message,
            method=response.request.method,
            url=str(response.request.url),
            status_code=response.status_code,
            response_headers=response.headers,
            response_body_snippet=self._snippet(response),
        )
