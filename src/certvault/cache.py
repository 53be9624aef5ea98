"""TTLCache — thread-safe expiring mapping with a background sweeper.

Entries expire a fixed time after insertion. Expired entries are never
returned: :meth:`TTLCache.get` treats them as misses and drops them on the
spot. A daemon thread additionally reclaims expired entries on a fixed
cadence so that keys which are never read again do not accumulate.

Each :class:`~certvault.certificates.manager.CertificateManager` owns its own
instances; nothing here is process-global.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")

_MISSING = object()


class TTLCache(Generic[V]):
    """Expiring key/value cache safe for concurrent use.

    Parameters
    ----------
    default_ttl:
        Lifetime in seconds for entries stored without an explicit TTL.
    sweep_interval:
        Seconds between background sweeps once :meth:`start` is called.
    clock:
        Monotonic time source, injectable for tests.
    name:
        Label used in log messages and for the sweeper thread.
    """

    def __init__(
        self,
        default_ttl: float,
        sweep_interval: float,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")
        if sweep_interval <= 0:
            raise ValueError(f"sweep_interval must be positive, got {sweep_interval}")
        self._default_ttl = default_ttl
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._name = name
        self._entries: dict[str, tuple[V, float]] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    # ------------------------------------------------------------------
    # Mapping operations
    # ------------------------------------------------------------------

    def get(self, key: str, default: V | None = None) -> V | None:
        """Return the live value for *key*, or *default* if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return default
            return value

    def set(self, key: str, value: V, ttl: float | None = None) -> None:
        """Store *value* under *key* for *ttl* seconds (default TTL if None)."""
        lifetime = self._default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (value, self._clock() + lifetime)

    def delete(self, key: str) -> bool:
        """Remove *key*. Returns True if an entry was present."""
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def flush(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Drop all expired entries and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Swept %d expired entries from %s", len(expired), self._name)
        return len(expired)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self.get(key, _MISSING) is not _MISSING  # type: ignore[arg-type]

    def __len__(self) -> int:
        """Number of stored entries, including expired ones not yet swept."""
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Background sweeping
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background sweeper thread. Idempotent."""
        with self._lock:
            if self._sweeper is not None and self._sweeper.is_alive():
                return
            self._stop.clear()
            self._sweeper = threading.Thread(
                target=self._run_sweeper,
                name=f"{self._name}-sweeper",
                daemon=True,
            )
            self._sweeper.start()

    def close(self) -> None:
        """Stop the background sweeper thread. Idempotent."""
        self._stop.set()
        with self._lock:
            sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None and sweeper is not threading.current_thread():
            sweeper.join()

    @property
    def running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def _run_sweeper(self) -> None:
        while not self._stop.wait(self._sweep_interval):
            self.sweep()


__all__ = ["TTLCache"]
