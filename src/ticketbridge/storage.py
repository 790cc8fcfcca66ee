"""
Content storage for migrated file payloads.

A content store is a byte-addressable store keyed by a relative path. The
migration engine needs exactly three things from it: write, read back the
stored length, and delete. A write that returns is assumed durable.

Implementations:
- LocalContentStorage: Files under a root directory on the local filesystem
- InMemoryContentStorage: Dictionary-backed store for tests
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ContentStorage(Protocol):
    """Protocol for byte stores addressed by relative path."""

    async def write(self, path: str, data: bytes) -> None:
        """
        Store ``data`` at ``path``, replacing anything already there.

        Args:
            path: Relative path (forward slashes)
            data: Payload bytes
        """
        ...

    async def size(self, path: str) -> int | None:
        """
        Get the stored length of the payload at ``path``.

        Returns:
            Size in bytes, or None if nothing is stored there
        """
        ...

    async def delete(self, path: str) -> None:
        """
        Remove the payload at ``path``.

        Deleting a missing path is not an error.
        """
        ...


def _normalize(path: str) -> PurePosixPath:
    relative = PurePosixPath(path)
    if relative.is_absolute() or ".." in relative.parts:
        raise ValueError(f"Storage paths must be relative and stay inside the root: {path!r}")
    return relative


class LocalContentStorage:
    """
    Filesystem content storage rooted at a directory.

    Blocking filesystem calls run in a worker thread so they do not stall
    the event loop. Parent directories are created on demand.

    Example:
        >>> storage = LocalContentStorage(Path("storage"))
        >>> await storage.write("archivos/12_ab3f.pdf", payload)
        >>> await storage.size("archivos/12_ab3f.pdf")
        1024
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str) -> Path:
        """Map a relative storage path to an absolute filesystem path."""
        return self._root.joinpath(*_normalize(path).parts)

    async def write(self, path: str, data: bytes) -> None:
        target = self.resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.debug("Stored %d bytes at %s", len(data), target)

    async def size(self, path: str) -> int | None:
        target = self.resolve(path)

        def _size() -> int | None:
            try:
                return target.stat().st_size
            except FileNotFoundError:
                return None

        return await asyncio.to_thread(_size)

    async def delete(self, path: str) -> None:
        target = self.resolve(path)
        await asyncio.to_thread(target.unlink, missing_ok=True)
        logger.debug("Deleted %s", target)


class InMemoryContentStorage:
    """
    In-memory content storage for testing.

    All data is lost when the process terminates.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._lock = asyncio.Lock()

    async def write(self, path: str, data: bytes) -> None:
        key = str(_normalize(path))
        async with self._lock:
            self._blobs[key] = bytes(data)

    async def size(self, path: str) -> int | None:
        key = str(_normalize(path))
        async with self._lock:
            blob = self._blobs.get(key)
            return len(blob) if blob is not None else None

    async def delete(self, path: str) -> None:
        key = str(_normalize(path))
        async with self._lock:
            self._blobs.pop(key, None)

    def read(self, path: str) -> bytes | None:
        """Return the stored payload (test helper)."""
        return self._blobs.get(str(_normalize(path)))

    @property
    def paths(self) -> list[str]:
        """All stored paths, sorted."""
        return sorted(self._blobs)


__all__ = ["ContentStorage", "LocalContentStorage", "InMemoryContentStorage"]
