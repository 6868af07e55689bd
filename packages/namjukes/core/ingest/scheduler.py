"""Single-flight scan scheduler.

Drains a FIFO queue of item ids through the extraction client, one item at a time.
Claiming the next item is synchronous (no await between the emptiness check and the
SCANNING mark), which is what keeps at most one item SCANNING on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable

from namjukes.core.ingest.backoff import BackoffPolicy, Retry
from namjukes.core.ingest.errors import ExtractionError, QuotaExhausted
from namjukes.core.ingest.extraction import ExtractionClient
from namjukes.core.ingest.images import ImageReleasedError
from namjukes.core.ingest.models import AlbumMetadata, ExtractionResponse, ScanStatus
from namjukes.core.ingest.store import ItemStore

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
QuotaListener = Callable[[QuotaExhausted], None]


class ScanScheduler:
    """Owns the scan queue for one upload session.

    Args:
        store: Item State Store shared with the session
        client: Extraction client
        policy: Retry/backoff policy
        extract_metadata: Ask the service for album title/artist as well
        sleep: Awaitable sleep, injectable so tests can observe backoff without waiting
        on_quota_exhausted: Called as soon as the service reports exhausted credits

    Example:
        >>> scheduler = ScanScheduler(store, client)
        >>> scheduler.enqueue([item.id for item in new_items])
        >>> await scheduler.wait_idle()
        >>> await scheduler.close()
    """

    def __init__(
        self,
        store: ItemStore,
        client: ExtractionClient,
        policy: BackoffPolicy | None = None,
        *,
        extract_metadata: bool = False,
        sleep: Sleep = asyncio.sleep,
        on_quota_exhausted: QuotaListener | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.policy = policy or BackoffPolicy()
        self.extract_metadata = extract_metadata
        self._sleep = sleep
        self._on_quota_exhausted = on_quota_exhausted
        self._queue: deque[str] = deque()
        self._draining = False
        self._closed = False
        self._task: asyncio.Task[None] | None = None
        self.quota_error: QuotaExhausted | None = None

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def pending(self) -> list[str]:
        """Queued ids not yet claimed, in processing order."""
        return list(self._queue)

    def enqueue(self, item_ids: Iterable[str]) -> None:
        """Append ids to the tail and start draining if idle.

        Ids already queued are not added twice.

        Raises:
            RuntimeError: If the scheduler was closed
        """
        if self._closed:
            raise RuntimeError("Scheduler is closed")
        for item_id in item_ids:
            if item_id not in self._queue:
                self._queue.append(item_id)
        self._kick()

    def rescan(self, item_id: str) -> bool:
        """Requeue a finished item at the tail with a fresh attempt budget.

        Returns:
            True if the item was requeued; False if it is unknown or still in flight
        """
        item = self.store.get(item_id)
        if item is None or not item.status.is_terminal:
            return False
        self.store.update(
            item_id,
            status=ScanStatus.PENDING,
            songs=(),
            attempts=0,
            last_error=None,
            error_kind=None,
            found_nothing=False,
        )
        logger.info("Requeued %s for a fresh scan", item_id)
        self.enqueue([item_id])
        return True

    async def drain(self) -> None:
        """Process queued items until the queue is empty.

        Re-entrant calls while a drain is active return immediately.
        """
        if self._draining:
            return
        self._draining = True
        try:
            while (item_id := self._claim_next()) is not None:
                await self._scan(item_id)
        finally:
            self._draining = False

    async def wait_idle(self) -> None:
        """Wait until every queued item has settled."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    async def close(self) -> None:
        """Stop draining and drop the queue. An in-flight item returns to PENDING."""
        self._closed = True
        self._queue.clear()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    def _kick(self) -> None:
        if self._queue and (self._task is None or self._task.done()):
            self._task = asyncio.get_running_loop().create_task(self.drain())

    def _claim_next(self) -> str | None:
        """Pop the next PENDING item and mark it SCANNING. Never suspends."""
        while self._queue:
            item_id = self._queue.popleft()
            item = self.store.get(item_id)
            if item is None or item.status is not ScanStatus.PENDING:
                continue
            self.store.update(item_id, status=ScanStatus.SCANNING)
            return item_id
        return None

    async def _scan(self, item_id: str) -> None:
        try:
            await self._attempt_until_settled(item_id)
        except asyncio.CancelledError:
            self.store.update(item_id, status=ScanStatus.PENDING)
            raise
        except Exception as e:
            logger.exception("Unexpected error scanning %s", item_id)
            self.store.update(
                item_id,
                status=ScanStatus.FAILED,
                songs=(),
                last_error=f"Failed to process image: {e}",
            )

    async def _attempt_until_settled(self, item_id: str) -> None:
        attempt = 0
        while True:
            item = self.store.get(item_id)
            if item is None:
                logger.debug("Item %s removed before attempt %d", item_id, attempt + 1)
                return

            attempt += 1
            self.store.update(item_id, attempts=attempt)
            try:
                result = await self.client.extract(
                    item.image, extract_metadata=self.extract_metadata
                )
            except ImageReleasedError:
                logger.debug("Item %s removed while its image was being read", item_id)
                return
            except ExtractionError as e:
                if isinstance(e, QuotaExhausted):
                    self.quota_error = e
                    logger.error("Scan service quota exhausted: %s", e.message)
                    if self._on_quota_exhausted is not None:
                        self._on_quota_exhausted(e)

                decision = self.policy.decide(e, attempt)
                if isinstance(decision, Retry):
                    logger.warning(
                        "Scan of %s attempt %d/%d failed (%s), retrying in %.1fs",
                        item_id,
                        attempt,
                        self.policy.max_attempts,
                        e.kind.value,
                        decision.after_s,
                    )
                    await self._sleep(decision.after_s)
                    continue

                logger.warning("Scan of %s failed: %s", item_id, decision.reason)
                self.store.update(
                    item_id,
                    status=ScanStatus.FAILED,
                    songs=(),
                    last_error=decision.reason,
                    error_kind=e.kind,
                    found_nothing=False,
                )
                return

            self._apply_result(item_id, result)
            return

    def _apply_result(self, item_id: str, result: ExtractionResponse) -> None:
        updated = self.store.update(
            item_id,
            status=ScanStatus.SCANNED,
            songs=result.songs,
            last_error=None,
            error_kind=None,
            found_nothing=result.is_empty,
            inferred_album=result.album,
        )
        if updated is None:
            logger.debug("Discarding scan result for removed item %s", item_id)
            return

        if result.is_empty:
            logger.info("No songs found for %s", item_id)
        else:
            logger.info("Scanned %s: %d songs", item_id, len(result.songs))

        if result.album is not None:
            self._fill_from_album(item_id, result.album)

    def _fill_from_album(self, item_id: str, album: AlbumMetadata) -> None:
        """Replace defaults the user has not touched with the inferred album fields."""
        item = self.store.get(item_id)
        if item is None:
            return
        candidates = {
            "title": album.title,
            "artist": album.artist,
            "genre": album.genre,
            "year": album.year,
        }
        fills = {
            name: value
            for name, value in candidates.items()
            if value and name not in item.edited
        }
        if fills:
            self.store.edit(item_id, mark_edited=False, **fills)
