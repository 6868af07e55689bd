"""Protocols for the persistence and object-storage collaborators."""

from typing import Protocol

from namjukes.core.catalog.models import AlbumCreate, SongCreate


class CatalogStore(Protocol):
    """
    Protocol for album/song persistence (async).

    Implementations raise PersistenceError on any failed write or read.
    """

    async def create_album(self, album: AlbumCreate) -> str:
        """
        Insert an album row.

        Returns:
            The new album id
        """
        ...

    async def create_songs(self, album_id: str, songs: list[SongCreate]) -> None:
        """Insert all songs of one album in a single batch."""
        ...

    async def max_disk_number(self, catalog_id: str) -> int | None:
        """Highest disk number in use for a bar, or None if it has no albums."""
        ...

    async def set_album_cover(self, album_id: str, cover_url: str) -> None:
        """Attach a cover image URL to an existing album."""
        ...


class ObjectStorage(Protocol):
    """Protocol for public object storage (album covers)."""

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """
        Upload bytes, overwriting any object at ``path``.

        Returns:
            Public URL of the stored object
        """
        ...
