"""
Session Cache -- Key-Scoped Blob Storage for Dataset Snapshots.

The case store writes one serialized ``AppData`` snapshot here after every
change and reads it back at startup, before falling back to the seed
source.  The cache holds strings, not models: serialization and validation
belong to the store, so a corrupted blob is detected there and treated as
a cache miss.

Two backends are provided:

* ``MemorySessionCache`` -- lives exactly as long as the process.
* ``DirectorySessionCache`` -- one file per key inside a session
  directory, so a restarted process can pick up where it left off.

Backends raise ``OSError`` (or a subclass) when storage is unavailable.
Callers that must never fail on a cache write catch it themselves.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class SessionCache(ABC):
    """Interface for a key-scoped string store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the blob stored under ``key``, or ``None`` if absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous blob."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``.  Deleting a missing key is not an error."""


class MemorySessionCache(SessionCache):
    """In-process cache.  Optionally bounded to mimic a storage quota.

    Args:
        max_bytes: If set, ``set()`` raises ``OSError`` for blobs larger
            than this many UTF-8 bytes.
    """

    def __init__(self, max_bytes: Optional[int] = None) -> None:
        self._blobs: dict[str, str] = {}
        self._max_bytes = max_bytes

    def get(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def set(self, key: str, value: str) -> None:
        if self._max_bytes is not None and len(value.encode("utf-8")) > self._max_bytes:
            raise OSError(
                f"Session cache quota exceeded: {len(value.encode('utf-8'))} bytes "
                f"> {self._max_bytes} bytes for key '{key}'"
            )
        self._blobs[key] = value

    def delete(self, key: str) -> None:
        self._blobs.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)


_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class DirectorySessionCache(SessionCache):
    """File-backed cache: each key maps to ``<directory>/<key>.json``.

    The directory is created on first write.  Keys are sanitized so that a
    key can never escape the session directory.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        safe = _UNSAFE_KEY_CHARS.sub("_", key)
        return self._directory / f"{safe}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        self._directory.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)

    def delete(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)
