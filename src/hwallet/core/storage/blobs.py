"""Blob storage for uploaded report files.

File bytes are kept apart from the database under generated keys that are
independent of row identifiers. Two backends are provided: a local
directory store and an in-memory store used by tests.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """Raised when a blob cannot be written, read or removed."""


@runtime_checkable
class BlobStore(Protocol):
    """Minimal key/value interface for file bytes."""

    def put(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``."""
        ...

    def get(self, key: str) -> bytes | None:
        """Return the bytes under ``key``, or None if absent."""
        ...

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns False if it was already absent."""
        ...


def new_blob_key(extension: str = "") -> str:
    """Generate a unique storage key, keeping the file extension."""
    suffix = f".{extension.lstrip('.')}" if extension else ""
    return f"{uuid.uuid4().hex}{suffix}"


class LocalBlobStore:
    """Stores each blob as a file in a single directory.

    Usage::

        store = LocalBlobStore("~/.hwallet/blobs")
        key = new_blob_key("pdf")
        store.put(key, data)
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        # Keys are generated by new_blob_key; reject anything path-like
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise BlobStoreError(f"Invalid blob key: {key!r}")
        return self._root / key

    def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        try:
            path.write_bytes(data)
        except OSError as exc:
            raise BlobStoreError(f"Failed to write blob {key}") from exc
        logger.debug("Wrote blob %s (%d bytes)", key, len(data))

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise BlobStoreError(f"Failed to read blob {key}") from exc

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise BlobStoreError(f"Failed to delete blob {key}") from exc
        logger.debug("Deleted blob %s", key)
        return True


class InMemoryBlobStore:
    """Dict-backed blob store for tests and ephemeral runs."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}

    def put(self, key: str, data: bytes) -> None:
        self.blobs[key] = bytes(data)

    def get(self, key: str) -> bytes | None:
        return self.blobs.get(key)

    def delete(self, key: str) -> bool:
        return self.blobs.pop(key, None) is not None
