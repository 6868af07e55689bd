"""Supabase catalog backend.

Talks to PostgREST (``/rest/v1``) for album and song rows and to Supabase Storage
(``/storage/v1``) for cover images. Uses the framework async HTTP client for
retry/error handling.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from namjukes.core.api.http import (
    ApiError,
    AsyncApiClient,
    HttpClientConfig,
    RetryPolicy,
    SupabaseAuth,
)
from namjukes.core.catalog.errors import PersistenceError
from namjukes.core.catalog.models import AlbumCreate, SongCreate

logger = logging.getLogger(__name__)


class SupabaseCatalog:
    """Supabase-backed CatalogStore and ObjectStorage.

    Args:
        http_client: Framework AsyncApiClient pointed at the project URL, with SupabaseAuth

    Example:
        >>> catalog = SupabaseCatalog.connect("https://xyz.supabase.co", api_key="...")
        >>> album_id = await catalog.create_album(AlbumCreate(bar_id=bar, title="Abbey Road", disk_number=8))
    """

    REST_PATH = "/rest/v1"
    STORAGE_PATH = "/storage/v1"

    def __init__(self, http_client: AsyncApiClient) -> None:
        self.http_client = http_client

    @classmethod
    def connect(
        cls,
        url: str,
        *,
        api_key: str,
        access_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SupabaseCatalog:
        """Build a catalog with its own HTTP client.

        Reads are retried by the HTTP layer; inserts are not, so a lost response never
        produces a duplicate album.
        """
        http = AsyncApiClient(
            HttpClientConfig(base_url=url),
            auth=SupabaseAuth(api_key=api_key, access_token=access_token),
            retry_policy=RetryPolicy(),
            transport=transport,
        )
        return cls(http)

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def create_album(self, album: AlbumCreate) -> str:
        rows = await self._call(
            "POST",
            f"{self.REST_PATH}/albums",
            f"insert album {album.title!r}",
            json_body=[album.model_dump()],
            headers={"Prefer": "return=representation"},
        )
        if not isinstance(rows, list) or not rows or "id" not in rows[0]:
            raise PersistenceError(f"Album insert for {album.title!r} returned no id")
        album_id = str(rows[0]["id"])
        logger.debug("Created album %s (%s, disk %d)", album_id, album.title, album.disk_number)
        return album_id

    async def create_songs(self, album_id: str, songs: list[SongCreate]) -> None:
        if not songs:
            return
        await self._call(
            "POST",
            f"{self.REST_PATH}/songs",
            f"insert {len(songs)} songs for album {album_id}",
            json_body=[song.model_dump() for song in songs],
            headers={"Prefer": "return=minimal"},
        )

    async def max_disk_number(self, catalog_id: str) -> int | None:
        rows = await self._call(
            "GET",
            f"{self.REST_PATH}/albums",
            f"read disk numbers for bar {catalog_id}",
            params={
                "select": "disk_number",
                "bar_id": f"eq.{catalog_id}",
                "order": "disk_number.desc",
                "limit": "1",
            },
        )
        if not rows:
            return None
        return int(rows[0]["disk_number"])

    async def set_album_cover(self, album_id: str, cover_url: str) -> None:
        await self._call(
            "PATCH",
            f"{self.REST_PATH}/albums",
            f"set cover for album {album_id}",
            params={"id": f"eq.{album_id}"},
            json_body={"cover_url": cover_url},
            headers={"Prefer": "return=minimal"},
        )

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        object_path = f"{quote(bucket)}/{quote(path)}"
        await self._call(
            "POST",
            f"{self.STORAGE_PATH}/object/{object_path}",
            f"upload {bucket}/{path}",
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )
        base = str(self.http_client.config.base_url).rstrip("/")
        return f"{base}{self.STORAGE_PATH}/object/public/{object_path}"

    async def _call(self, method: str, path: str, action: str, **kwargs: Any) -> Any:
        try:
            response = await self.http_client.request(method, path, **kwargs)
            return self.http_client.json(response)
        except ApiError as e:
            raise PersistenceError(f"Failed to {action}: {e}") from e
