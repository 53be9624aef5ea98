"""Storage backends for raw certificate bundles."""
from __future__ import annotations

from certvault.storage.base import CertificateStorage
from certvault.storage.filesystem import FilesystemStorage
from certvault.storage.memory import MemoryStorage

__all__ = ["CertificateStorage", "FilesystemStorage", "MemoryStorage"]
