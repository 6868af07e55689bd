"""Vision-model track extraction behind the scan-album endpoint.

Sends one album photo to an OpenAI-compatible chat-completions API and turns the reply
into the endpoint's response body.

Upstream failures other than 429 and 402 (bad status, unreachable, timed out) answer 502,
so callers can tell them apart from a reply the model produced but we could not parse (500).
Both count as transient on the client side.
"""

from __future__ import annotations

import logging
from typing import Any

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI
from openai import RateLimitError as OpenAIRateLimitError

from namjukes.core.ingest.errors import MalformedResponse
from namjukes.core.ingest.parsing import extract_json_fragment, parse_extraction_payload

logger = logging.getLogger(__name__)

SONGS_PROMPT = """You are an expert at reading album track listings from photos.
Extract the song information from the image and return it as a JSON array.
Each song should have: track_number (integer), title (string), and optionally duration (string like "3:45") and artist (string if different from album artist).
If you cannot read some information, do your best to infer it or leave optional fields empty.
Return ONLY valid JSON array, no other text. Example:
[{"track_number": 1, "title": "Song Name", "duration": "3:45"}, {"track_number": 2, "title": "Another Song"}]"""

METADATA_PROMPT = """You are an expert at reading album covers and track listings from photos.
Extract the album information and the song list from the image and return them as a JSON object.
"album" has: title (string), artist (string), and optionally year (integer) and genre (string); use null if the album cannot be identified.
"songs" is an array where each song has: track_number (integer), title (string), and optionally duration (string like "3:45") and artist (string if different from album artist).
Return ONLY a valid JSON object, no other text. Example:
{"album": {"title": "Album Name", "artist": "Band", "year": 1979}, "songs": [{"track_number": 1, "title": "Song Name", "duration": "3:45"}]}"""

USER_PROMPT = "Extract all song titles and track numbers from this album image. Return as JSON."

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."
CREDITS_MESSAGE = "AI credits depleted. Please add credits to continue."


class GatewayError(Exception):
    """Failure to be returned to the caller as ``{"error": message}`` with ``status``."""

    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class AlbumScanner:
    """Reads track listings from album photos with a vision model.

    Args:
        client: AsyncOpenAI client. Create it with ``max_retries=0``: callers own retries,
            and a 429 must reach them rather than being retried here.
        model: Chat-completions model name

    Example:
        >>> scanner = AlbumScanner(AsyncOpenAI(base_url=url, api_key=key, max_retries=0))
        >>> body = await scanner.scan("data:image/jpeg;base64,...")
    """

    def __init__(self, client: AsyncOpenAI, model: str = "google/gemini-2.5-flash") -> None:
        self.client = client
        self.model = model

    async def scan(self, image_data_uri: str, *, extract_metadata: bool = False) -> dict[str, Any]:
        """Extract songs (and optionally album metadata) from one image.

        Returns:
            ``{"songs": [...]}`` or, in metadata mode, ``{"album": {...} | None, "songs": [...]}``

        Raises:
            GatewayError: With status 429, 402, 502 or 500
        """
        if not image_data_uri:
            raise GatewayError("No image provided", status=400)

        system_prompt = METADATA_PROMPT if extract_metadata else SONGS_PROMPT
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": USER_PROMPT},
                            {"type": "image_url", "image_url": {"url": image_data_uri}},
                        ],
                    },
                ],
            )
        except OpenAIRateLimitError as e:
            raise GatewayError(RATE_LIMIT_MESSAGE, status=429) from e
        except APIStatusError as e:
            if e.status_code == 402:
                raise GatewayError(CREDITS_MESSAGE, status=402) from e
            logger.error("AI gateway error: %s %s", e.status_code, e.message)
            raise GatewayError("Failed to analyze image", status=502) from e
        except (APIConnectionError, APITimeoutError) as e:
            logger.error("AI gateway unreachable: %s", e)
            raise GatewayError("Failed to analyze image", status=502) from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise GatewayError("No response from AI")

        try:
            result = parse_extraction_payload(extract_json_fragment(content))
        except MalformedResponse as e:
            logger.error("Failed to parse AI response: %s", content)
            raise GatewayError("Failed to parse song list from image") from e

        body: dict[str, Any] = {
            "songs": [song.model_dump(exclude_none=True) for song in result.songs]
        }
        if extract_metadata:
            body["album"] = result.album.model_dump() if result.album is not None else None
        logger.info("Scanned image: %d songs", len(result.songs))
        return body
