"""In-memory catalog for dry runs and tests.

Implements both CatalogStore and ObjectStorage.
"""

from __future__ import annotations

from uuid import uuid4

from namjukes.core.catalog.errors import PersistenceError
from namjukes.core.catalog.models import AlbumCreate, SongCreate


class InMemoryCatalog:
    """
    Dict-backed catalog.

    ``fail_albums`` / ``fail_songs`` hold album titles whose album or song insert
    should fail, for exercising partial-failure paths.
    """

    def __init__(
        self,
        *,
        fail_albums: set[str] | None = None,
        fail_songs: set[str] | None = None,
        base_url: str = "memory://storage",
    ) -> None:
        self.albums: dict[str, AlbumCreate] = {}
        self.songs: dict[str, list[SongCreate]] = {}
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_albums = fail_albums or set()
        self.fail_songs = fail_songs or set()
        self.base_url = base_url

    async def create_album(self, album: AlbumCreate) -> str:
        if album.title in self.fail_albums:
            raise PersistenceError(f"Insert into albums failed for {album.title!r}")
        album_id = str(uuid4())
        self.albums[album_id] = album
        return album_id

    async def create_songs(self, album_id: str, songs: list[SongCreate]) -> None:
        album = self.albums.get(album_id)
        if album is None:
            raise PersistenceError(f"Album {album_id} does not exist")
        if album.title in self.fail_songs:
            raise PersistenceError(f"Insert into songs failed for {album.title!r}")
        self.songs.setdefault(album_id, []).extend(songs)

    async def max_disk_number(self, catalog_id: str) -> int | None:
        numbers = [a.disk_number for a in self.albums.values() if a.bar_id == catalog_id]
        return max(numbers) if numbers else None

    async def set_album_cover(self, album_id: str, cover_url: str) -> None:
        album = self.albums.get(album_id)
        if album is None:
            raise PersistenceError(f"Album {album_id} does not exist")
        self.albums[album_id] = album.model_copy(update={"cover_url": cover_url})

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        self.objects[(bucket, path)] = data
        return f"{self.base_url}/{bucket}/{path}"

    def songs_for(self, album_id: str) -> list[SongCreate]:
        return list(self.songs.get(album_id, []))
