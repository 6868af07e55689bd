"""Shared pytest fixtures for namjukes tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from namjukes.core.catalog import InMemoryCatalog
from namjukes.core.ingest import BytesImageRef, ItemStore, ScanItem
from tests.fixtures.ingest import RecordingSleep

# ============================================================================
# Ingestion Fixtures
# ============================================================================


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Empty in-memory catalog."""
    return InMemoryCatalog()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Sleep double that records backoff delays without waiting."""
    return RecordingSleep()


@pytest.fixture
def store() -> ItemStore:
    return ItemStore()


@pytest.fixture
def make_item() -> Callable[..., ScanItem]:
    """Factory for ScanItems backed by in-memory images named ``<id>.jpg``."""
    counter = {"n": 0}

    def _make(item_id: str | None = None, **kwargs: Any) -> ScanItem:
        counter["n"] += 1
        item_id = item_id or f"item-{counter['n']}"
        image = BytesImageRef(f"image-{counter['n']}".encode(), name=f"{item_id}.jpg")
        return ScanItem(id=item_id, image=image, **kwargs)

    return _make
