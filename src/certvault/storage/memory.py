"""MemoryStorage — in-process storage backend.

Useful for tests and for single-process deployments that do not need
persistence across restarts.
"""
from __future__ import annotations

import fnmatch
import threading
import time
from typing import Callable

from certvault.errors import NotFoundError
from certvault.storage.base import CertificateStorage


class MemoryStorage(CertificateStorage):
    """Thread-safe dict-backed storage with optional per-key expiry.

    Parameters
    ----------
    clock:
        Monotonic time source used for TTL expiry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._data: dict[str, tuple[bytes, float | None]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    # ------------------------------------------------------------------
    # CertificateStorage interface
    # ------------------------------------------------------------------

    def get(self, key: str) -> bytes:
        with self._lock:
            if not self._live(key):
                raise NotFoundError(key)
            return self._data[key][0]

    def set(self, key: str, value: bytes, ttl: float = 0) -> None:
        with self._lock:
            self._data[key] = (bytes(value), self._expiry(ttl))

    def set_if_absent(self, key: str, value: bytes, ttl: float = 0) -> bool:
        """Atomic insert: check and write happen under a single lock."""
        with self._lock:
            if self._live(key):
                return False
            self._data[key] = (bytes(value), self._expiry(ttl))
            return True

    def list_keys(self, pattern: str) -> list[str]:
        with self._lock:
            return [
                key
                for key in list(self._data)
                if self._live(key) and fnmatch.fnmatchcase(key, pattern)
            ]

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._live(key)
            self._data.pop(key, None)
            return existed

    def delete_matching(self, pattern: str) -> bool:
        with self._lock:
            matched = [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]
            for key in matched:
                del self._data[key]
            return bool(matched)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _expiry(self, ttl: float) -> float | None:
        return self._clock() + ttl if ttl > 0 else None

    def _live(self, key: str) -> bool:
        """Return True if *key* exists and is unexpired. Caller holds the lock."""
        entry = self._data.get(key)
        if entry is None:
            return False
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return False
        return True


__all__ = ["MemoryStorage"]
