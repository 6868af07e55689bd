"""Test doubles for the ingestion pipeline."""

from __future__ import annotations

import asyncio
import base64
import json

import httpx

from namjukes.core.ingest import (
    ExtractedSong,
    ExtractionError,
    ExtractionResponse,
    ImageRef,
    SongsOnly,
)


def songs(*titles: str) -> tuple[ExtractedSong, ...]:
    """Numbered songs with the given titles."""
    return tuple(
        ExtractedSong(track_number=i, title=title) for i, title in enumerate(titles, start=1)
    )


def song_rows(*titles: str) -> list[dict]:
    """Wire-format song rows with the given titles."""
    return [{"track_number": i, "title": title} for i, title in enumerate(titles, start=1)]


def decode_image(request: httpx.Request) -> bytes:
    """Image bytes sent in a scan-album request body."""
    data_uri = json.loads(request.content)["imageBase64"]
    return base64.b64decode(data_uri.split(",", 1)[1])


class RecordingSleep:
    """Fake ``asyncio.sleep`` that records delays and yields once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)

    @property
    def total(self) -> float:
        return sum(self.delays)


class FakeExtractionClient:
    """Stands in for ExtractionClient, answering from a per-image script.

    ``script`` maps an image name to outcomes consumed one per call; the last outcome
    repeats once the others are used up. An outcome is a result to return or an
    ExtractionError to raise. Unscripted images return an empty SongsOnly.

    ``gate`` (optional) is awaited before each call returns, so tests can look at the
    store while a scan is in flight.
    """

    def __init__(
        self,
        script: dict[str, list[ExtractionResponse | ExtractionError]] | None = None,
        *,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.script = {name: list(outcomes) for name, outcomes in (script or {}).items()}
        self.gate = gate
        self.calls: list[tuple[str, bool]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def extract(
        self, image: ImageRef, *, extract_metadata: bool = False
    ) -> ExtractionResponse:
        self.calls.append((image.name, extract_metadata))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await image.read()
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            outcomes = self.script.get(image.name)
            if not outcomes:
                return SongsOnly()
            outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
            if isinstance(outcome, ExtractionError):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1

    def calls_for(self, name: str) -> int:
        return sum(1 for called, _ in self.calls if called == name)


__all__ = [
    "FakeExtractionClient",
    "RecordingSleep",
    "decode_image",
    "song_rows",
    "songs",
]
