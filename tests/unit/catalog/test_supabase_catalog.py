"""Tests for SupabaseCatalog against mocked PostgREST and Storage endpoints."""

from __future__ import annotations

import json

import httpx
import pytest

from namjukes.core.catalog import AlbumCreate, PersistenceError, SongCreate, SupabaseCatalog

BASE_URL = "https://xyz.supabase.co"


def _catalog(handler) -> SupabaseCatalog:
    return SupabaseCatalog.connect(
        BASE_URL,
        api_key="anon-key",
        access_token="manager-jwt",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_create_album_returns_new_id() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[{"id": "album-1", "title": "Abbey Road"}])

    catalog = _catalog(handler)
    album_id = await catalog.create_album(
        AlbumCreate(bar_id="bar-1", title="Abbey Road", artist="The Beatles", disk_number=8)
    )
    await catalog.aclose()

    assert album_id == "album-1"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/albums"
    assert request.headers["prefer"] == "return=representation"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer manager-jwt"
    body = json.loads(request.content)
    assert body == [
        {
            "bar_id": "bar-1",
            "title": "Abbey Road",
            "artist": "The Beatles",
            "disk_number": 8,
            "cover_url": None,
            "genre": None,
            "year": None,
        }
    ]


@pytest.mark.asyncio
async def test_create_album_without_id_is_an_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, json=[])

    with pytest.raises(PersistenceError, match="returned no id"):
        await _catalog(handler).create_album(
            AlbumCreate(bar_id="bar-1", title="X", disk_number=1)
        )


@pytest.mark.asyncio
async def test_create_songs_batches_rows() -> None:
    bodies: list[list[dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rest/v1/songs"
        bodies.append(json.loads(request.content))
        return httpx.Response(201)

    songs = [
        SongCreate(album_id="album-1", title="Come Together", track_number=1),
        SongCreate(album_id="album-1", title="Something", track_number=2, duration="3:03"),
    ]
    await _catalog(handler).create_songs("album-1", songs)

    assert len(bodies) == 1
    assert [row["title"] for row in bodies[0]] == ["Come Together", "Something"]
    assert bodies[0][1]["duration"] == "3:03"


@pytest.mark.asyncio
async def test_create_songs_with_no_rows_makes_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("unexpected request")

    await _catalog(handler).create_songs("album-1", [])


@pytest.mark.asyncio
async def test_insert_conflict_raises_persistence_error() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(409, json={"message": "duplicate key"})

    with pytest.raises(PersistenceError, match="insert album"):
        await _catalog(handler).create_album(
            AlbumCreate(bar_id="bar-1", title="Dup", disk_number=1)
        )
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_max_disk_number_query() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"disk_number": 7}])

    assert await _catalog(handler).max_disk_number("bar-1") == 7
    params = seen[0].url.params
    assert params["bar_id"] == "eq.bar-1"
    assert params["order"] == "disk_number.desc"
    assert params["limit"] == "1"


@pytest.mark.asyncio
async def test_max_disk_number_of_empty_catalog() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    assert await _catalog(handler).max_disk_number("bar-1") is None


@pytest.mark.asyncio
async def test_upload_and_set_cover() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.startswith("/storage/"):
            return httpx.Response(200, json={"Key": "album-covers/bar-1/album-1.jpeg"})
        return httpx.Response(204)

    catalog = _catalog(handler)
    url = await catalog.upload("album-covers", "bar-1/album-1.jpeg", b"jpeg", "image/jpeg")
    await catalog.set_album_cover("album-1", url)

    assert url == f"{BASE_URL}/storage/v1/object/public/album-covers/bar-1/album-1.jpeg"
    upload, patch = seen
    assert upload.url.path == "/storage/v1/object/album-covers/bar-1/album-1.jpeg"
    assert upload.headers["content-type"] == "image/jpeg"
    assert upload.headers["x-upsert"] == "true"
    assert upload.content == b"jpeg"
    assert patch.method == "PATCH"
    assert patch.url.params["id"] == "eq.album-1"
    assert json.loads(patch.content) == {"cover_url": url}
