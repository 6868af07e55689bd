"""Request models for persisted albums and songs.

Field names match the columns of the ``albums`` and ``songs`` tables.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AlbumCreate(BaseModel):
    """Insert payload for one album row."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    bar_id: str
    title: str
    artist: str | None = None
    disk_number: int = Field(ge=1)
    cover_url: str | None = None
    genre: str | None = None
    year: int | None = None


class SongCreate(BaseModel):
    """Insert payload for one song row."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    album_id: str
    title: str
    track_number: int = Field(ge=1)
    artist: str | None = None
    duration: str | None = None
