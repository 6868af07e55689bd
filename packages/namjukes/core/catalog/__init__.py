"""Persistence and object-storage collaborators for the ingestion pipeline."""

from namjukes.core.catalog.errors import PersistenceError
from namjukes.core.catalog.memory import InMemoryCatalog
from namjukes.core.catalog.models import AlbumCreate, SongCreate
from namjukes.core.catalog.protocols import CatalogStore, ObjectStorage
from namjukes.core.catalog.supabase import SupabaseCatalog

__all__ = [
    "AlbumCreate",
    "CatalogStore",
    "InMemoryCatalog",
    "ObjectStorage",
    "PersistenceError",
    "SongCreate",
    "SupabaseCatalog",
]
