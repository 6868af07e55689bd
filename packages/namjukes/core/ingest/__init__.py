"""Bulk album ingestion: photos of track listings in, album and song records out.

Flow: UploadSession.add_images -> ItemStore (PENDING) -> ScanScheduler drains one item at a
time through ExtractionClient, guarded by BackoffPolicy -> BatchCommitter writes albums and
songs for every item that has extracted songs.
"""

from namjukes.core.ingest.backoff import BackoffPolicy, GiveUp, Retry
from namjukes.core.ingest.commit import BatchCommitter
from namjukes.core.ingest.disks import DiskNumberAllocator
from namjukes.core.ingest.errors import (
    ExtractionError,
    MalformedResponse,
    QuotaExhausted,
    RateLimited,
    RequestRejected,
    TransportError,
)
from namjukes.core.ingest.extraction import ExtractionClient
from namjukes.core.ingest.images import BytesImageRef, FileImageRef, ImageRef
from namjukes.core.ingest.models import (
    AlbumMetadata,
    CommitResult,
    EditableFields,
    ErrorKind,
    ExtractedSong,
    ExtractionResponse,
    ScanItem,
    ScanStatus,
    SongsOnly,
    WithAlbum,
)
from namjukes.core.ingest.scheduler import ScanScheduler
from namjukes.core.ingest.session import UploadSession
from namjukes.core.ingest.store import ItemStore

__all__ = [
    "AlbumMetadata",
    "BackoffPolicy",
    "BatchCommitter",
    "BytesImageRef",
    "CommitResult",
    "DiskNumberAllocator",
    "EditableFields",
    "ErrorKind",
    "ExtractedSong",
    "ExtractionClient",
    "ExtractionError",
    "ExtractionResponse",
    "FileImageRef",
    "GiveUp",
    "ImageRef",
    "ItemStore",
    "MalformedResponse",
    "QuotaExhausted",
    "RateLimited",
    "RequestRejected",
    "Retry",
    "ScanItem",
    "ScanScheduler",
    "ScanStatus",
    "SongsOnly",
    "TransportError",
    "UploadSession",
    "WithAlbum",
]
