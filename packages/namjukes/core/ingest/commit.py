"""Batch commit of scanned items into the catalog.

Items are committed one at a time: album first, then its songs. A failure is recorded
against its own item and the batch moves on. There is no rollback: if the song insert
fails after the album insert succeeded, the album stays behind and is reported as an
orphan warning.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from namjukes.core.catalog.errors import PersistenceError
from namjukes.core.catalog.models import AlbumCreate, SongCreate
from namjukes.core.catalog.protocols import CatalogStore
from namjukes.core.ingest.models import (
    CommitFailure,
    CommitResult,
    CreatedAlbum,
    ScanItem,
    ScanStatus,
    SkippedItem,
)

logger = logging.getLogger(__name__)


def _skip_reason(item: ScanItem) -> str:
    if item.status is ScanStatus.FAILED:
        return f"scan failed: {item.last_error or 'unknown error'}"
    if item.status is ScanStatus.SCANNED:
        return "no songs found"
    return f"not scanned ({item.status.value})"


def build_album(item: ScanItem, catalog_id: str) -> AlbumCreate:
    """Album row from the item's editable fields. The cover is attached later."""
    fields = item.editable
    return AlbumCreate(
        bar_id=catalog_id,
        title=fields.title.strip() or "Untitled",
        artist=fields.artist.strip() or None,
        disk_number=fields.disk_number,
        cover_url=None,
        genre=fields.genre.strip() or None,
        year=fields.year,
    )


def build_songs(item: ScanItem, album_id: str) -> list[SongCreate]:
    """Song rows; a song without its own artist inherits the album artist."""
    album_artist = item.editable.artist.strip() or None
    return [
        SongCreate(
            album_id=album_id,
            title=song.title,
            track_number=song.track_number,
            artist=song.artist or album_artist,
            duration=song.duration,
        )
        for song in item.songs
    ]


class BatchCommitter:
    """Persists scanned items as album + song records.

    Args:
        catalog: CatalogStore implementation

    Example:
        >>> result = await BatchCommitter(catalog).commit(store.items(), bar_id)
        >>> result.album_ids, result.failures, result.skipped
    """

    def __init__(self, catalog: CatalogStore) -> None:
        self.catalog = catalog

    async def commit(self, items: Iterable[ScanItem], catalog_id: str) -> CommitResult:
        """Commit every item that has extracted songs.

        Items without songs are reported in ``skipped`` and never attempted.
        """
        result = CommitResult()
        for item in items:
            if not item.has_songs:
                result.skipped.append(SkippedItem(item_id=item.id, reason=_skip_reason(item)))
                continue
            await self._commit_one(item, catalog_id, result)

        logger.info(
            "Batch commit: %d created, %d failed, %d skipped",
            len(result.created),
            len(result.failures),
            len(result.skipped),
        )
        return result

    async def _commit_one(self, item: ScanItem, catalog_id: str, result: CommitResult) -> None:
        album = build_album(item, catalog_id)
        try:
            album_id = await self.catalog.create_album(album)
        except PersistenceError as e:
            logger.warning("Album insert failed for %s: %s", item.id, e)
            result.failures.append(CommitFailure(item_id=item.id, reason=str(e)))
            return

        try:
            await self.catalog.create_songs(album_id, build_songs(item, album_id))
        except PersistenceError as e:
            warning = (
                f"Album {album.title!r} (disk {album.disk_number}) was created "
                f"but its songs were not: {e}"
            )
            logger.warning(warning)
            result.warnings.append(warning)
            result.failures.append(
                CommitFailure(item_id=item.id, reason=str(e), album_id=album_id)
            )
            return

        result.created.append(
            CreatedAlbum(item_id=item.id, album_id=album_id, song_count=len(item.songs))
        )
