"""Item State Store: the single shared record of every ScanItem in an upload session.

Three parties write to it: scheduler completions, user edits, and user removals. Every
write is a merge against the item's current state, keyed by id, so a status update and an
edit landing in the same loop turn never overwrite one another.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

from namjukes.core.ingest.models import EditableFields, ScanItem, ScanStatus

logger = logging.getLogger(__name__)

StoreListener = Callable[[str, ScanItem | None], None]


class ItemStore:
    """Insertion-ordered, keyed collection of ScanItem.

    Listeners are called with ``(item_id, item)`` after each change, and with
    ``(item_id, None)`` after a removal.
    """

    def __init__(self) -> None:
        self._items: dict[str, ScanItem] = {}
        self._listeners: list[StoreListener] = []

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __iter__(self) -> Iterator[ScanItem]:
        return iter(list(self._items.values()))

    def items(self) -> list[ScanItem]:
        """Snapshot of all items in insertion order."""
        return list(self._items.values())

    def ids(self) -> list[str]:
        return list(self._items)

    def with_status(self, *statuses: ScanStatus) -> list[ScanItem]:
        return [item for item in self._items.values() if item.status in statuses]

    def get(self, item_id: str) -> ScanItem | None:
        return self._items.get(item_id)

    def require(self, item_id: str) -> ScanItem:
        """Get an item or raise KeyError."""
        try:
            return self._items[item_id]
        except KeyError:
            raise KeyError(f"Unknown scan item: {item_id}") from None

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def add(self, item: ScanItem) -> ScanItem:
        """Insert a new item.

        Raises:
            ValueError: If an item with the same id exists
        """
        if item.id in self._items:
            raise ValueError(f"Duplicate scan item id: {item.id}")
        self._items[item.id] = item
        self._notify(item.id, item)
        return item

    def update(self, item_id: str, **changes: Any) -> ScanItem | None:
        """Merge top-level field changes into the current item.

        ``editable`` may not be passed here; use ``edit`` so edits merge field by field.

        Returns:
            The merged item, or None if the item is gone (the change is dropped)
        """
        if "editable" in changes:
            raise ValueError("Use ItemStore.edit() to change editable fields")
        current = self._items.get(item_id)
        if current is None:
            logger.debug("Dropping update for removed item %s: %s", item_id, sorted(changes))
            return None
        merged = current.model_copy(update=changes)
        self._items[item_id] = merged
        self._notify(item_id, merged)
        return merged

    def edit(self, item_id: str, *, mark_edited: bool = True, **fields: Any) -> ScanItem | None:
        """Merge edits into the item's editable fields, leaving scan state untouched.

        Values are validated through EditableFields. Fields changed with
        ``mark_edited=True`` are recorded in ``ScanItem.edited``.

        Returns:
            The merged item, or None if the item is gone
        """
        current = self._items.get(item_id)
        if current is None:
            return None
        editable = EditableFields.model_validate({**current.editable.model_dump(), **fields})
        edited = current.edited | frozenset(fields) if mark_edited else current.edited
        merged = current.model_copy(update={"editable": editable, "edited": edited})
        self._items[item_id] = merged
        self._notify(item_id, merged)
        return merged

    def remove(self, item_id: str) -> ScanItem | None:
        """Remove an item and release its image handle.

        Returns:
            The removed item, or None if it was not present
        """
        item = self._items.pop(item_id, None)
        if item is None:
            return None
        item.image.release()
        self._notify(item_id, None)
        return item

    def clear(self) -> None:
        """Remove every item, releasing each image once."""
        for item_id in list(self._items):
            self.remove(item_id)

    def _notify(self, item_id: str, item: ScanItem | None) -> None:
        for listener in list(self._listeners):
            listener(item_id, item)
