"""Data models for the album-ingestion pipeline.

A ScanItem is one user-supplied photo of a track listing plus everything derived from it.
Items are immutable pydantic models; the ItemStore replaces them with merged copies.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from namjukes.core.ingest.images import ImageRef


class ScanStatus(str, Enum):
    """Lifecycle of a ScanItem's extraction."""

    PENDING = "Pending"
    SCANNING = "Scanning"
    SCANNED = "Scanned"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.SCANNED, ScanStatus.FAILED)


class ErrorKind(str, Enum):
    """Extraction failure categories."""

    RATE_LIMITED = "RateLimited"
    QUOTA_EXHAUSTED = "QuotaExhausted"
    TRANSPORT = "TransportError"
    MALFORMED_RESPONSE = "MalformedResponse"
    REJECTED = "Rejected"


class EditableFields(BaseModel):
    """Album fields the manager may edit at any time."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = ""
    artist: str = ""
    disk_number: int = Field(default=1, ge=1)
    genre: str = ""
    year: int | None = None


class ExtractedSong(BaseModel):
    """One track read off a photo."""

    model_config = ConfigDict(frozen=True)

    track_number: int = Field(ge=1)
    title: str = Field(min_length=1)
    duration: str | None = None
    artist: str | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title cannot be blank")
        return v

    @field_validator("duration", "artist", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


class AlbumMetadata(BaseModel):
    """Album information inferred by the extraction service in metadata mode."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    artist: str = ""
    year: int | None = None
    genre: str | None = None


class SongsOnly(BaseModel):
    """Legacy response shape: ``{"songs": [...]}``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["songs_only"] = "songs_only"
    songs: tuple[ExtractedSong, ...] = ()

    @property
    def album(self) -> AlbumMetadata | None:
        return None

    @property
    def is_empty(self) -> bool:
        return not self.songs


class WithAlbum(BaseModel):
    """Metadata-mode response shape: ``{"album": {...}, "songs": [...]}``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["with_album"] = "with_album"
    album: AlbumMetadata
    songs: tuple[ExtractedSong, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.songs


ExtractionResponse = Annotated[SongsOnly | WithAlbum, Field(discriminator="kind")]


class ScanItem(BaseModel):
    """One queued image and its derived state.

    Invariants:
        - SCANNED: ``songs`` holds the last attempt's result (possibly empty, see ``found_nothing``)
        - FAILED: ``songs`` is empty and ``last_error`` explains why
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    image: ImageRef = Field(repr=False, exclude=True)
    editable: EditableFields = Field(default_factory=EditableFields)
    status: ScanStatus = ScanStatus.PENDING
    songs: tuple[ExtractedSong, ...] = ()
    attempts: int = 0
    last_error: str | None = None
    error_kind: ErrorKind | None = None
    found_nothing: bool = False
    inferred_album: AlbumMetadata | None = None
    edited: frozenset[str] = frozenset()

    @property
    def has_songs(self) -> bool:
        return bool(self.songs)


class CreatedAlbum(BaseModel):
    """An album persisted by a batch commit."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    album_id: str
    song_count: int


class CommitFailure(BaseModel):
    """A per-item commit failure.

    ``album_id`` is set when the album row was written but its songs were not.
    """

    model_config = ConfigDict(frozen=True)

    item_id: str
    reason: str
    album_id: str | None = None


class SkippedItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    reason: str


class CommitResult(BaseModel):
    """Outcome of one batch commit. Every input item lands in exactly one list."""

    created: list[CreatedAlbum] = Field(default_factory=list)
    failures: list[CommitFailure] = Field(default_factory=list)
    skipped: list[SkippedItem] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def album_ids(self) -> list[str]:
        return [c.album_id for c in self.created]

    @property
    def total(self) -> int:
        return len(self.created) + len(self.failures) + len(self.skipped)
