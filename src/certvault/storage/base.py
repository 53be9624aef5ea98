"""Storage contract for raw certificate bundles.

The certificate manager treats its backend as an opaque key/value service.
Keys are plain strings and values are raw bytes. Any backend (Redis, a
database table, a directory) can be plugged in by implementing
:class:`CertificateStorage`.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from certvault.errors import NotFoundError


class CertificateStorage(ABC):
    """Abstract base class for certificate storage backends."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the value stored under *key*.

        Raises
        ------
        NotFoundError
            If *key* does not exist (or has expired).
        StorageError
            On any other backend failure.
        """

    @abstractmethod
    def set(self, key: str, value: bytes, ttl: float = 0) -> None:
        """Store *value* under *key*, overwriting any existing value.

        Parameters
        ----------
        key:
            Storage key.
        value:
            Raw bytes to persist.
        ttl:
            Lifetime in seconds; 0 means no expiry.
        """

    @abstractmethod
    def list_keys(self, pattern: str) -> list[str]:
        """Return every key matching the glob *pattern*."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove *key*. Returns True if it existed."""

    @abstractmethod
    def delete_matching(self, pattern: str) -> bool:
        """Remove every key matching the glob *pattern*.

        Returns True if at least one key was removed.
        """

    def set_if_absent(self, key: str, value: bytes, ttl: float = 0) -> bool:
        """Store *value* only if *key* does not exist yet.

        The default implementation is a separate check and write and is
        therefore not atomic. Backends that can do better override it.

        Returns
        -------
        bool
            True if the value was written, False if *key* already existed.
        """
        try:
            self.get(key)
        except NotFoundError:
            self.set(key, value, ttl)
            return True
        return False


__all__ = ["CertificateStorage"]
