"""Parsing of extraction-service output.

Vision models wrap their JSON in prose or markdown fences, so decoding starts by locating
the first well-formed JSON array or object inside the text.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from namjukes.core.ingest.errors import MalformedResponse
from namjukes.core.ingest.models import (
    AlbumMetadata,
    ExtractedSong,
    ExtractionResponse,
    SongsOnly,
    WithAlbum,
)

logger = logging.getLogger(__name__)

_OPENERS = {"[": "]", "{": "}"}
_LEADING_INT = re.compile(r"^\s*(\d+)")


def _balanced_end(text: str, start: int) -> int | None:
    """Index one past the bracket closing ``text[start]``, honouring string literals."""
    stack = [_OPENERS[text[start]]]
    in_string = False
    escaped = False
    for i in range(start + 1, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in ("]", "}"):
            if ch != stack[-1]:
                return None
            stack.pop()
            if not stack:
                return i + 1
    return None


def extract_json_fragment(text: str) -> Any:
    """Decode the first well-formed JSON array or object found in ``text``.

    Args:
        text: Raw model output, possibly with surrounding prose or code fences

    Returns:
        Decoded JSON value (list or dict)

    Raises:
        MalformedResponse: If no decodable array or object is present

    Example:
        >>> extract_json_fragment('Here:\\n```json\\n[{"track_number": 1, "title": "X"}]\\n```')
        [{'track_number': 1, 'title': 'X'}]
    """
    stripped = text.strip()
    try:
        value = json.loads(stripped)
    except ValueError:
        pass
    else:
        if isinstance(value, (list, dict)):
            return value

    for start, ch in enumerate(text):
        if ch not in _OPENERS:
            continue
        end = _balanced_end(text, start)
        if end is None:
            continue
        try:
            return json.loads(text[start:end])
        except ValueError:
            continue

    raise MalformedResponse("Failed to parse song list from image")


def _coerce_track_number(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return None


def _coerce_duration(value: Any, index: int) -> str | None:
    """Durations are kept as text; a bare number is read as seconds."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
        minutes, seconds = divmod(round(value), 60)
        return f"{minutes}:{seconds:02d}"
    logger.warning("Ignoring unreadable duration on song row %d: %r", index, value)
    return None


def parse_songs(rows: Any) -> tuple[ExtractedSong, ...]:
    """Normalise raw song rows.

    Rows without a usable title are dropped. A missing or unreadable track number
    continues from the previous row.

    Raises:
        MalformedResponse: If ``rows`` is not a list
    """
    if rows is None:
        return ()
    if not isinstance(rows, list):
        raise MalformedResponse("Song list is not an array")

    songs: list[ExtractedSong] = []
    previous = 0
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            logger.warning("Dropping non-object song row %d: %r", index, row)
            continue
        number = _coerce_track_number(row.get("track_number"))
        if number is None or number < 1:
            number = previous + 1
        title = row.get("title")
        try:
            song = ExtractedSong(
                track_number=number,
                title=title if isinstance(title, str) else "",
                duration=_coerce_duration(row.get("duration"), index),
                artist=row.get("artist") if isinstance(row.get("artist"), str) else None,
            )
        except ValidationError:
            logger.warning("Dropping song row %d without a title: %r", index, row)
            continue
        songs.append(song)
        previous = number
    return tuple(songs)


def _parse_album(raw: Any) -> AlbumMetadata:
    if not isinstance(raw, dict):
        return AlbumMetadata()
    year = _coerce_track_number(raw.get("year"))
    genre = raw.get("genre")
    return AlbumMetadata(
        title=str(raw.get("title") or "").strip(),
        artist=str(raw.get("artist") or "").strip(),
        year=year,
        genre=genre.strip() or None if isinstance(genre, str) else None,
    )


def parse_extraction_payload(data: Any) -> ExtractionResponse:
    """Decode a response body into the tagged extraction variant.

    Accepted shapes:
        - ``[song, ...]`` -> SongsOnly
        - ``{"songs": [...]}`` -> SongsOnly
        - ``{"album": {...} | null, "songs": [...]}`` -> WithAlbum (SongsOnly when album is null)

    Raises:
        MalformedResponse: For any other shape
    """
    if isinstance(data, str):
        data = extract_json_fragment(data)

    if isinstance(data, list):
        return SongsOnly(songs=parse_songs(data))

    if not isinstance(data, dict) or "songs" not in data:
        raise MalformedResponse("Response contains no song list")

    songs = parse_songs(data["songs"])
    if data.get("album") is not None:
        return WithAlbum(album=_parse_album(data["album"]), songs=songs)
    return SongsOnly(songs=songs)
