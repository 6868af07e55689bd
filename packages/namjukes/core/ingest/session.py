"""Upload session: one batch of photos from selection to commit.

The session owns the Item State Store, the scan scheduler and the disk-number allocator
for its lifetime, and tears them down explicitly in ``close()``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import PurePath
from uuid import uuid4

from namjukes.core.catalog.protocols import CatalogStore, ObjectStorage
from namjukes.core.ingest.backoff import BackoffPolicy
from namjukes.core.ingest.commit import BatchCommitter
from namjukes.core.ingest.disks import DiskNumberAllocator
from namjukes.core.ingest.errors import QuotaExhausted
from namjukes.core.ingest.extraction import ExtractionClient
from namjukes.core.ingest.images import ImageRef
from namjukes.core.ingest.models import CommitResult, EditableFields, ScanItem, ScanStatus
from namjukes.core.ingest.scheduler import QuotaListener, ScanScheduler, Sleep
from namjukes.core.ingest.store import ItemStore
from namjukes.core.utils.logging import get_logger

logger = logging.getLogger(__name__)


def default_title(image: ImageRef, position: int) -> str:
    """Album title guessed from the image file name, or its position in the batch."""
    stem = PurePath(image.name).stem.replace("_", " ").replace("-", " ").strip()
    return " ".join(stem.split()) or f"Album {position}"


class UploadSession:
    """Coordinates scanning and committing one batch of album photos.

    Use ``UploadSession.open`` so the disk-number allocator starts past the catalog's
    persisted maximum.

    Example:
        >>> async with await UploadSession.open(catalog, bar_id, client) as session:
        ...     items = session.add_images([FileImageRef(p) for p in paths])
        ...     await session.wait_until_scanned()
        ...     result = await session.commit()
    """

    def __init__(
        self,
        catalog: CatalogStore,
        catalog_id: str,
        client: ExtractionClient,
        *,
        policy: BackoffPolicy | None = None,
        persisted_max_disk: int | None = None,
        extract_metadata: bool = False,
        storage: ObjectStorage | None = None,
        covers_bucket: str = "album-covers",
        sleep: Sleep | None = None,
        on_quota_exhausted: QuotaListener | None = None,
    ) -> None:
        self.catalog = catalog
        self.catalog_id = catalog_id
        self.storage = storage
        self.covers_bucket = covers_bucket
        self.session_id = str(uuid4())
        self._log = get_logger(__name__, session_id=self.session_id)
        self.store = ItemStore()
        self.allocator = DiskNumberAllocator(persisted_max_disk)
        scheduler_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.scheduler = ScanScheduler(
            self.store,
            client,
            policy,
            extract_metadata=extract_metadata,
            on_quota_exhausted=on_quota_exhausted,
            **scheduler_kwargs,
        )
        self._committer = BatchCommitter(catalog)
        self._closed = False

    @classmethod
    async def open(
        cls,
        catalog: CatalogStore,
        catalog_id: str,
        client: ExtractionClient,
        **kwargs,
    ) -> UploadSession:
        """Create a session, reading the catalog's highest disk number first."""
        persisted_max = await catalog.max_disk_number(catalog_id)
        logger.debug("Bar %s: highest persisted disk number %s", catalog_id, persisted_max)
        return cls(catalog, catalog_id, client, persisted_max_disk=persisted_max, **kwargs)

    async def __aenter__(self) -> UploadSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def items(self) -> list[ScanItem]:
        return self.store.items()

    @property
    def quota_error(self) -> QuotaExhausted | None:
        """Set once the scan service reports exhausted credits; later scans will fail too."""
        return self.scheduler.quota_error

    def add_images(self, images: Iterable[ImageRef]) -> list[ScanItem]:
        """Create PENDING items for a batch of images and queue them for scanning.

        Disk numbers are allocated contiguously in the given order.
        """
        self._check_open()
        images = list(images)
        disk_numbers = self.allocator.allocate(len(images))
        start = len(self.store) + 1
        created: list[ScanItem] = []
        for offset, (image, disk) in enumerate(zip(images, disk_numbers, strict=True)):
            item = ScanItem(
                id=str(uuid4()),
                image=image,
                editable=EditableFields(
                    title=default_title(image, start + offset), disk_number=disk
                ),
            )
            created.append(self.store.add(item))

        self._log.info(
            "Queued %d images (disks %s)",
            len(created),
            f"{disk_numbers[0]}-{disk_numbers[-1]}" if disk_numbers else "none",
        )
        self.scheduler.enqueue(item.id for item in created)
        return created

    def edit(self, item_id: str, **fields) -> ScanItem:
        """Apply user edits to an item's album fields, whatever its scan status.

        Raises:
            KeyError: If the item does not exist
        """
        self._check_open()
        item = self.store.edit(item_id, **fields)
        if item is None:
            raise KeyError(f"Unknown scan item: {item_id}")
        if "disk_number" in fields:
            self.allocator.observe(item.editable.disk_number)
        return item

    def discard(self, item_id: str) -> bool:
        """Remove an item. A scan in flight for it finishes and its result is dropped."""
        removed = self.store.remove(item_id)
        if removed is not None:
            self._log.info("Discarded item %s (%s)", item_id, removed.status.value)
        return removed is not None

    def rescan(self, item_id: str) -> bool:
        """Manually retry a finished item; it joins the tail of the queue."""
        self._check_open()
        return self.scheduler.rescan(item_id)

    async def wait_until_scanned(self) -> list[ScanItem]:
        """Wait for the queue to drain and return a snapshot of all items."""
        await self.scheduler.wait_idle()
        return self.store.items()

    def summary(self) -> dict[str, int]:
        """Item counts per scan status."""
        counts = {status.value: 0 for status in ScanStatus}
        for item in self.store:
            counts[item.status.value] += 1
        return counts

    async def commit(self, item_ids: Iterable[str] | None = None) -> CommitResult:
        """Persist every item with extracted songs.

        Items whose album and songs were both written leave the store. Failed and skipped
        items stay so they can be fixed, rescanned or discarded.

        Args:
            item_ids: Restrict the commit to these items (default: all)
        """
        self._check_open()
        if item_ids is None:
            items = self.store.items()
        else:
            items = [self.store.require(item_id) for item_id in item_ids]

        result = await self._committer.commit(items, self.catalog_id)
        for created in result.created:
            committed = self.store.remove(created.item_id)
            if committed is not None:
                self.allocator.observe(committed.editable.disk_number)
        return result

    async def attach_cover(
        self, album_id: str, data: bytes, content_type: str = "image/jpeg"
    ) -> str:
        """Upload a cover image and point the album at it.

        Raises:
            RuntimeError: If the session has no object storage
            PersistenceError: If the upload or update fails
        """
        if self.storage is None:
            raise RuntimeError("No object storage configured for covers")
        extension = content_type.rsplit("/", 1)[-1]
        path = f"{self.catalog_id}/{album_id}.{extension}"
        url = await self.storage.upload(self.covers_bucket, path, data, content_type)
        await self.catalog.set_album_cover(album_id, url)
        self._log.info("Attached cover to album %s", album_id)
        return url

    async def close(self) -> None:
        """Stop scanning and release every remaining image."""
        if self._closed:
            return
        self._closed = True
        await self.scheduler.close()
        self.store.clear()
        self._log.debug("Session %s closed", self.session_id)

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Upload session is closed")
