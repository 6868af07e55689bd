"""Tests for UploadSession, including a full scan-and-commit run."""

from __future__ import annotations

import httpx
import pytest

from namjukes.core.catalog import AlbumCreate, InMemoryCatalog
from namjukes.core.config.models import ScanServiceConfig
from namjukes.core.ingest.errors import MalformedResponse, QuotaExhausted
from namjukes.core.ingest.extraction import ExtractionClient
from namjukes.core.ingest.images import BytesImageRef
from namjukes.core.ingest.models import ScanStatus, SongsOnly
from namjukes.core.ingest.session import UploadSession, default_title
from tests.fixtures.ingest import (
    FakeExtractionClient,
    RecordingSleep,
    decode_image,
    song_rows,
    songs,
)


@pytest.mark.asyncio
async def test_end_to_end_two_images_with_rate_limiting(
    catalog: InMemoryCatalog, recording_sleep: RecordingSleep
) -> None:
    """One image scans cleanly; the other is rate limited three times, then succeeds."""
    calls = {b"side-a": 0, b"side-b": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        image = decode_image(request)
        calls[image] += 1
        if image == b"side-a":
            return httpx.Response(200, json={"songs": song_rows("1", "2", "3", "4", "5")})
        if calls[image] <= 3:
            return httpx.Response(
                429, json={"error": "Rate limit exceeded. Please try again later."}
            )
        return httpx.Response(200, json={"songs": song_rows("A", "B", "C")})

    client = ExtractionClient.from_config(
        ScanServiceConfig(url="https://scan.test", api_key="anon"),
        transport=httpx.MockTransport(handler),
    )
    images = [
        BytesImageRef(b"side-a", name="abbey_road.jpg"),
        BytesImageRef(b"side-b", name="revolver.jpg"),
    ]

    async with await UploadSession.open(
        catalog, "bar-1", client, sleep=recording_sleep
    ) as session:
        items = session.add_images(images)
        scanned = await session.wait_until_scanned()

        assert [i.status for i in scanned] == [ScanStatus.SCANNED, ScanStatus.SCANNED]
        assert [len(i.songs) for i in scanned] == [5, 3]
        assert scanned[1].attempts == 4
        assert calls == {b"side-a": 1, b"side-b": 4}
        assert recording_sleep.total >= 14

        result = await session.commit()

        assert len(result.created) == 2
        assert sorted(c.song_count for c in result.created) == [3, 5]
        assert session.items == []

    await client.aclose()
    assert [items[0].editable.disk_number, items[1].editable.disk_number] == [1, 2]
    assert sorted(len(catalog.songs_for(album_id)) for album_id in catalog.albums) == [3, 5]
    assert all(image.released for image in images)


@pytest.mark.asyncio
async def test_open_allocates_past_persisted_disks(
    catalog: InMemoryCatalog, recording_sleep: RecordingSleep
) -> None:
    await catalog.create_album(AlbumCreate(bar_id="bar-1", title="Old", disk_number=7))
    await catalog.create_album(AlbumCreate(bar_id="other", title="Far", disk_number=40))

    async with await UploadSession.open(
        catalog, "bar-1", FakeExtractionClient(), sleep=recording_sleep
    ) as session:
        first = session.add_images([BytesImageRef(b"1"), BytesImageRef(b"2")])
        second = session.add_images([BytesImageRef(b"3")])
        await session.wait_until_scanned()

    assert [i.editable.disk_number for i in first + second] == [8, 9, 10]


@pytest.mark.asyncio
async def test_default_titles_come_from_file_names(
    catalog: InMemoryCatalog, recording_sleep: RecordingSleep
) -> None:
    async with UploadSession(
        catalog, "bar-1", FakeExtractionClient(), sleep=recording_sleep
    ) as session:
        items = session.add_images([BytesImageRef(b"1", name="dark_side-of-the_moon.png")])
        await session.wait_until_scanned()

    assert items[0].editable.title == "dark side of the moon"
    assert default_title(BytesImageRef(b"", name="___.jpg"), 3) == "Album 3"


@pytest.mark.asyncio
async def test_edits_apply_in_any_status_and_feed_the_allocator(
    catalog: InMemoryCatalog, recording_sleep: RecordingSleep
) -> None:
    async with UploadSession(
        catalog, "bar-1", FakeExtractionClient(), sleep=recording_sleep
    ) as session:
        (item,) = session.add_images([BytesImageRef(b"1", name="a.jpg")])
        session.edit(item.id, title="Thriller", disk_number=30)
        await session.wait_until_scanned()
        session.edit(item.id, artist="Michael Jackson")

        edited = session.store.require(item.id)
        assert edited.editable.title == "Thriller"
        assert edited.editable.artist == "Michael Jackson"
        assert edited.status is ScanStatus.SCANNED

        (next_item,) = session.add_images([BytesImageRef(b"2")])
        assert next_item.editable.disk_number == 31

        with pytest.raises(KeyError):
            session.edit("missing", title="x")
        await session.wait_until_scanned()


@pytest.mark.asyncio
async def test_commit_keeps_failed_items_and_removes_created(
    recording_sleep: RecordingSleep,
) -> None:
    catalog = InMemoryCatalog(fail_albums={"broken"})
    client = FakeExtractionClient(
        {
            "good.jpg": [SongsOnly(songs=songs("x"))],
            "broken.jpg": [SongsOnly(songs=songs("y"))],
            "empty.jpg": [SongsOnly()],
        }
    )
    async with UploadSession(catalog, "bar-1", client, sleep=recording_sleep) as session:
        good, broken, empty = session.add_images(
            [
                BytesImageRef(b"1", name="good.jpg"),
                BytesImageRef(b"2", name="broken.jpg"),
                BytesImageRef(b"3", name="empty.jpg"),
            ]
        )
        await session.wait_until_scanned()

        result = await session.commit()

        assert [c.item_id for c in result.created] == [good.id]
        assert [f.item_id for f in result.failures] == [broken.id]
        assert [s.item_id for s in result.skipped] == [empty.id]
        assert [i.id for i in session.items] == [broken.id, empty.id]
        assert good.image.released
        assert not broken.image.released


@pytest.mark.asyncio
async def test_commit_subset(catalog: InMemoryCatalog, recording_sleep: RecordingSleep) -> None:
    client = FakeExtractionClient(
        {"a.jpg": [SongsOnly(songs=songs("x"))], "b.jpg": [SongsOnly(songs=songs("y"))]}
    )
    async with UploadSession(catalog, "bar-1", client, sleep=recording_sleep) as session:
        a, b = session.add_images(
            [BytesImageRef(b"1", name="a.jpg"), BytesImageRef(b"2", name="b.jpg")]
        )
        await session.wait_until_scanned()

        result = await session.commit([b.id])

        assert [c.item_id for c in result.created] == [b.id]
        assert [i.id for i in session.items] == [a.id]


@pytest.mark.asyncio
async def test_discard_and_rescan(catalog: InMemoryCatalog, recording_sleep: RecordingSleep) -> None:
    client = FakeExtractionClient(
        {
            "a.jpg": [
                MalformedResponse("Failed to parse song list from image"),
                SongsOnly(songs=songs("x")),
            ]
        }
    )
    async with UploadSession(catalog, "bar-1", client, sleep=recording_sleep) as session:
        a, b = session.add_images([BytesImageRef(b"1", name="a.jpg"), BytesImageRef(b"2")])
        await session.wait_until_scanned()
        assert session.summary()["Failed"] == 1

        assert session.rescan(a.id)
        await session.wait_until_scanned()
        assert session.store.require(a.id).status is ScanStatus.SCANNED

        assert session.discard(b.id)
        assert not session.discard(b.id)
        assert b.image.released
        assert session.summary() == {"Pending": 0, "Scanning": 0, "Scanned": 1, "Failed": 0}


@pytest.mark.asyncio
async def test_attach_cover_uploads_and_links(
    catalog: InMemoryCatalog, recording_sleep: RecordingSleep
) -> None:
    album_id = await catalog.create_album(AlbumCreate(bar_id="bar-1", title="X", disk_number=1))
    async with UploadSession(
        catalog, "bar-1", FakeExtractionClient(), storage=catalog, sleep=recording_sleep
    ) as session:
        url = await session.attach_cover(album_id, b"jpeg-bytes")

    assert url == f"memory://storage/album-covers/bar-1/{album_id}.jpeg"
    assert catalog.objects[("album-covers", f"bar-1/{album_id}.jpeg")] == b"jpeg-bytes"
    assert catalog.albums[album_id].cover_url == url


@pytest.mark.asyncio
async def test_attach_cover_requires_storage(
    catalog: InMemoryCatalog, recording_sleep: RecordingSleep
) -> None:
    async with UploadSession(
        catalog, "bar-1", FakeExtractionClient(), sleep=recording_sleep
    ) as session:
        with pytest.raises(RuntimeError):
            await session.attach_cover("album-1", b"x")


@pytest.mark.asyncio
async def test_close_releases_everything_and_blocks_further_use(
    catalog: InMemoryCatalog, recording_sleep: RecordingSleep
) -> None:
    session = UploadSession(catalog, "bar-1", FakeExtractionClient(), sleep=recording_sleep)
    images = [BytesImageRef(b"1"), BytesImageRef(b"2")]
    session.add_images(images)

    await session.close()
    await session.close()

    assert all(image.released for image in images)
    with pytest.raises(RuntimeError, match="closed"):
        session.add_images([BytesImageRef(b"3")])


@pytest.mark.asyncio
async def test_exhausted_credits_are_reported_before_the_queue_moves_on(
    catalog: InMemoryCatalog, recording_sleep: RecordingSleep
) -> None:
    message = "AI credits depleted. Please add credits to continue."
    client = FakeExtractionClient(
        {"first.jpg": [QuotaExhausted(message)], "second.jpg": [SongsOnly(songs=songs("x"))]}
    )
    reported: list[tuple[str, list[ScanStatus]]] = []

    async with UploadSession(
        catalog,
        "bar-1",
        client,
        sleep=recording_sleep,
        on_quota_exhausted=lambda e: reported.append(
            (e.message, [i.status for i in session.items])
        ),
    ) as session:
        assert session.quota_error is None
        session.add_images(
            [BytesImageRef(b"1", name="first.jpg"), BytesImageRef(b"2", name="second.jpg")]
        )
        await session.wait_until_scanned()

        assert reported == [(message, [ScanStatus.SCANNING, ScanStatus.PENDING])]
        assert session.quota_error is not None
        assert session.quota_error.message == message
        assert recording_sleep.delays == []
