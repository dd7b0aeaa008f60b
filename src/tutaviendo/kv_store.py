"""Key-value persistence backends for the analytics log and session data."""

import errno
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Protocol

from . import config
from .errors import PersistenceError

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class SaveResult(Enum):
    """Outcome of a write; quota exhaustion is an expected outcome, not an error."""

    SAVED = "saved"
    QUOTA_EXCEEDED = "quota_exceeded"


class KeyValueStore(Protocol):
    """A string-to-string store with a size quota."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        ...

    def set(self, key: str, value: str) -> SaveResult:
        """Store a value. Raises PersistenceError for non-quota failures."""
        ...

    def remove(self, key: str) -> None:
        """Delete a key; missing keys are ignored."""
        ...


def _size_of(key: str, value: str) -> int:
    # Browsers count UTF-16 code units for both key and value
    raw = key.encode("utf-16-le", "surrogatepass") + value.encode("utf-16-le", "surrogatepass")
    return len(raw) // 2


class MemoryKeyValueStore:
    """In-process store, used for session data and in tests."""

    def __init__(self, quota: int | None = None):
        """
        Initialize MemoryKeyValueStore.

        Args:
            quota: Maximum total size of keys plus values; None for unlimited.
        """
        self.quota = quota
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> SaveResult:
        if self.quota is not None:
            used = sum(_size_of(k, v) for k, v in self._data.items() if k != key)
            if used + _size_of(key, value) > self.quota:
                return SaveResult.QUOTA_EXCEEDED
        self._data[key] = value
        return SaveResult.SAVED

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileKeyValueStore:
    """Durable store keeping one file per key under a data directory."""

    def __init__(self, data_dir: Path | None = None, quota: int | None = None):
        """
        Initialize FileKeyValueStore.

        Args:
            data_dir: Override data directory (for testing).
            quota: Maximum total size of stored values; defaults to
                STORAGE_QUOTA_BYTES.
        """
        self.data_dir = Path(data_dir or config.DATA_DIR)
        self.quota = config.STORAGE_QUOTA_BYTES if quota is None else quota

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return self.data_dir / f"{safe}.json"

    def _used_bytes(self, exclude: Path) -> int:
        if not self.data_dir.exists():
            return 0
        return sum(
            p.stat().st_size
            for p in self.data_dir.glob("*.json")
            if p != exclude
        )

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(key, str(e)) from e

    def set(self, key: str, value: str) -> SaveResult:
        """
        Write a value atomically.

        Uses write-to-temp-then-rename for atomicity.
        """
        path = self._path(key)
        payload = value.encode("utf-8")
        if self._used_bytes(path) + len(payload) > self.quota:
            return SaveResult.QUOTA_EXCEEDED

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".kv_", suffix=".tmp")
        except OSError as e:
            raise PersistenceError(key, str(e)) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(temp_path, path)
        except OSError as e:
            # Clean up temp file on failure (ignore errors if already removed)
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            if e.errno in _QUOTA_ERRNOS:
                return SaveResult.QUOTA_EXCEEDED
            raise PersistenceError(key, str(e)) from e

        return SaveResult.SAVED

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(key, str(e)) from e
