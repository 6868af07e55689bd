"""Image handles for queued scan items.

An ImageRef is acquired when an item is created and released exactly once, when the item
leaves the ItemStore (discarded, committed, or torn down with its session). The bytes are
captured on first read; later reads and retries see the same bytes.
"""

from __future__ import annotations

import base64
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path

import aiofiles  # type: ignore[import-untyped]


class ImageReleasedError(RuntimeError):
    """Raised when a released image handle is read or released again."""


class ImageRef(ABC):
    """Opaque handle to the bytes of one user-supplied image."""

    def __init__(self, name: str, mime_type: str | None = None) -> None:
        self.name = name
        self.mime_type = mime_type or mimetypes.guess_type(name)[0] or "image/jpeg"
        self._released = False
        self._captured: bytes | None = None

    @property
    def released(self) -> bool:
        return self._released

    async def read(self) -> bytes:
        """Return the image bytes, reading the source only the first time.

        Raises:
            ImageReleasedError: If the handle was already released
        """
        if self._released:
            raise ImageReleasedError(f"Image {self.name!r} was already released")
        if self._captured is None:
            data = await self._read()
            if self._released:
                raise ImageReleasedError(f"Image {self.name!r} was released while reading")
            self._captured = data
        return self._captured

    async def to_data_uri(self) -> str:
        """Encode the image as a ``data:`` URI for transport."""
        data = await self.read()
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    def release(self) -> None:
        """Release the underlying resource.

        Raises:
            ImageReleasedError: On a second release
        """
        if self._released:
            raise ImageReleasedError(f"Image {self.name!r} was already released")
        self._released = True
        self._captured = None
        self._close()

    @abstractmethod
    async def _read(self) -> bytes: ...

    def _close(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, released={self._released})"


class FileImageRef(ImageRef):
    """Image read lazily from disk with aiofiles."""

    def __init__(self, path: Path | str, mime_type: str | None = None) -> None:
        self.path = Path(path)
        super().__init__(self.path.name, mime_type)

    async def _read(self) -> bytes:
        async with aiofiles.open(self.path, "rb") as f:
            return await f.read()


class BytesImageRef(ImageRef):
    """Image already held in memory (uploads, tests)."""

    def __init__(self, data: bytes, name: str = "image.jpg", mime_type: str | None = None) -> None:
        super().__init__(name, mime_type)
        self._data: bytes | None = data

    async def _read(self) -> bytes:
        if self._data is None:
            raise ImageReleasedError(f"Image {self.name!r} was already released")
        return self._data

    def _close(self) -> None:
        self._data = None
