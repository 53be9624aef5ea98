"""FilesystemStorage — one file per key under a base directory.

Keys are percent-encoded into file names so that any key (including the
``:`` and ``/`` characters common in org prefixes) maps to a single file and
can be recovered exactly when listing.
"""
from __future__ import annotations

import fnmatch
from pathlib import Path
from urllib.parse import quote, unquote

from certvault.errors import NotFoundError, StorageError
from certvault.storage.base import CertificateStorage


class FilesystemStorage(CertificateStorage):
    """Directory-backed storage.

    Values never expire; a non-zero TTL is rejected.

    Parameters
    ----------
    base_dir:
        Root directory for stored records. Created if missing.
    """

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = base_dir
        self._base_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # CertificateStorage interface
    # ------------------------------------------------------------------

    def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise NotFoundError(key) from exc
        except OSError as exc:
            raise StorageError(f"Cannot read {key!r}: {exc}") from exc

    def set(self, key: str, value: bytes, ttl: float = 0) -> None:
        self._check_ttl(ttl)
        try:
            self._path(key).write_bytes(value)
        except OSError as exc:
            raise StorageError(f"Cannot write {key!r}: {exc}") from exc

    def set_if_absent(self, key: str, value: bytes, ttl: float = 0) -> bool:
        """Atomic insert using exclusive file creation."""
        self._check_ttl(ttl)
        path = self._path(key)
        try:
            fh = path.open("xb")
        except FileExistsError:
            return False
        except OSError as exc:
            raise StorageError(f"Cannot write {key!r}: {exc}") from exc
        try:
            with fh:
                fh.write(value)
        except OSError as exc:
            # a partial file would block every later insert of this key
            path.unlink(missing_ok=True)
            raise StorageError(f"Cannot write {key!r}: {exc}") from exc
        return True

    def list_keys(self, pattern: str) -> list[str]:
        try:
            keys = [unquote(p.name) for p in self._base_dir.iterdir() if p.is_file()]
        except OSError as exc:
            raise StorageError(f"Cannot list {self._base_dir}: {exc}") from exc
        return sorted(key for key in keys if fnmatch.fnmatchcase(key, pattern))

    def delete(self, key: str) -> bool:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Cannot delete {key!r}: {exc}") from exc
        return True

    def delete_matching(self, pattern: str) -> bool:
        removed = False
        for key in self.list_keys(pattern):
            removed = self.delete(key) or removed
        return removed

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _check_ttl(ttl: float) -> None:
        if ttl:
            raise StorageError("FilesystemStorage does not support expiring keys")

    def _path(self, key: str) -> Path:
        """Return the file path for a given key."""
        name = quote(key, safe="")
        if name in ("", ".", ".."):
            raise StorageError(f"Invalid storage key {key!r}")
        return self._base_dir / name


__all__ = ["FilesystemStorage"]
