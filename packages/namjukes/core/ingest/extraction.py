"""Client for the scan-album extraction service.

One call sends one image and returns the tracks read from it. Failures are mapped from the
HTTP layer's structured errors into the extraction taxonomy here and nowhere else.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from namjukes.core.api.http import (
    ApiError,
    AsyncApiClient,
    DecodeError,
    HttpClientConfig,
    NetworkError,
    PaymentRequiredError,
    RateLimitError,
    RetryPolicy,
    ServerError,
    SupabaseAuth,
    TimeoutError,
    parse_retry_after_seconds,
)
from namjukes.core.config.models import ScanServiceConfig
from namjukes.core.ingest.errors import (
    ExtractionError,
    MalformedResponse,
    QuotaExhausted,
    RateLimited,
    RequestRejected,
    TransportError,
)
from namjukes.core.ingest.images import ImageRef
from namjukes.core.ingest.models import ExtractionResponse
from namjukes.core.ingest.parsing import parse_extraction_payload

logger = logging.getLogger(__name__)

SCAN_ALBUM_PATH = "/functions/v1/scan-album"

_DEFAULT_MESSAGES = {
    RateLimited: "Rate limit exceeded. Please try again later.",
    QuotaExhausted: "AI credits depleted. Please add credits to continue.",
    TransportError: "Failed to reach the scan service",
    RequestRejected: "Scan request was rejected",
}


def _server_message(error: ApiError) -> str | None:
    """Pull ``{"error": "..."}`` out of an error response body."""
    if not error.response_body_snippet:
        return None
    try:
        body = json.loads(error.response_body_snippet)
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None


def classify_api_error(error: ApiError) -> ExtractionError:
    """Map a transport error onto the extraction taxonomy."""
    cls: type[ExtractionError]
    if isinstance(error, RateLimitError):
        cls = RateLimited
    elif isinstance(error, PaymentRequiredError):
        cls = QuotaExhausted
    elif isinstance(error, (ServerError, NetworkError, TimeoutError)):
        cls = TransportError
    elif isinstance(error, DecodeError):
        return MalformedResponse(error.message)
    else:
        cls = RequestRejected

    message = _server_message(error) or _DEFAULT_MESSAGES[cls]
    if isinstance(error, TimeoutError):
        message = "Scan request timed out"
    return cls(message, retry_after_s=parse_retry_after_seconds(error.header("Retry-After")))


class ExtractionClient:
    """Async client for the scan-album extraction endpoint.

    The underlying AsyncApiClient must not retry on its own; BackoffPolicy owns
    every retry decision.

    Args:
        http_client: Framework AsyncApiClient pointed at the service base URL
        path: Endpoint path
        timeout_s: Bound on a single call; a hung call would otherwise stall the queue

    Example:
        >>> client = ExtractionClient(http_client=http)
        >>> result = await client.extract(FileImageRef("side_a.jpg"))
        >>> [s.title for s in result.songs]
    """

    def __init__(
        self,
        http_client: AsyncApiClient,
        *,
        path: str = SCAN_ALBUM_PATH,
        timeout_s: float = 60.0,
    ) -> None:
        self.http_client = http_client
        self.path = path
        self.timeout_s = timeout_s

    @classmethod
    def from_config(
        cls,
        config: ScanServiceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ExtractionClient:
        """Build a client with its own single-attempt HTTP client."""
        http = AsyncApiClient(
            HttpClientConfig(base_url=config.url),
            auth=SupabaseAuth(api_key=config.api_key) if config.api_key else None,
            retry_policy=RetryPolicy.single_attempt(),
            transport=transport,
        )
        return cls(http, path=config.path, timeout_s=config.timeout_s)

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def extract(
        self, image: ImageRef, *, extract_metadata: bool = False
    ) -> ExtractionResponse:
        """Send one image and decode the tracks found in it.

        An empty song list is a normal return; check ``result.is_empty``.

        Raises:
            ExtractionError: RateLimited, QuotaExhausted, TransportError,
                MalformedResponse or RequestRejected
        """
        body: dict[str, Any] = {"imageBase64": await image.to_data_uri()}
        if extract_metadata:
            body["extractMetadata"] = True

        try:
            response = await self.http_client.post(
                self.path,
                json_body=body,
                timeout=httpx.Timeout(self.timeout_s),
            )
        except ApiError as e:
            error = classify_api_error(e)
            logger.debug("Extraction of %s failed: %s (%s)", image.name, error.kind.value, e)
            raise error from e

        try:
            data = self.http_client.json(response)
        except DecodeError:
            data = response.text

        if data is None:
            raise MalformedResponse("Scan service returned an empty body")

        result = parse_extraction_payload(data)
        logger.debug("Extracted %d songs from %s", len(result.songs), image.name)
        return result
