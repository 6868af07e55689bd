"""Disk number allocation for new batches."""

from __future__ import annotations

from collections.abc import Iterable


class DiskNumberAllocator:
    """Hands out contiguous disk numbers past the highest one in use.

    "In use" is the larger of the catalog's persisted maximum and every number this
    session has allocated or observed, so batches queued back to back never collide.

    Example:
        >>> allocator = DiskNumberAllocator(persisted_max=7)
        >>> allocator.allocate(3)
        [8, 9, 10]
        >>> allocator.allocate(1)
        [11]
    """

    def __init__(self, persisted_max: int | None = None, seen: Iterable[int] = ()) -> None:
        self._highest = max([persisted_max or 0, *seen])

    @property
    def highest(self) -> int:
        return self._highest

    def observe(self, disk_number: int) -> None:
        """Record a number that is in use (user edit, committed album)."""
        if disk_number > self._highest:
            self._highest = disk_number

    def allocate(self, count: int) -> list[int]:
        """Reserve ``count`` numbers, in order."""
        if count < 0:
            raise ValueError("count must be >= 0")
        start = self._highest + 1
        numbers = list(range(start, start + count))
        if numbers:
            self._highest = numbers[-1]
        return numbers
