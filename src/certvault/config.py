"""ManagerSettings — configuration model for CertificateManager.

The model only validates values; loading them from the environment or a
file is left to the embedding service.
"""
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

DEFAULT_STORAGE_PREFIX: str = "raw-"


class ManagerSettings(BaseModel):
    """Tunable parameters for a :class:`~certvault.certificates.manager.CertificateManager`.

    Parameters
    ----------
    secret:
        Passphrase used to encrypt private keys at rest and to decrypt
        encrypted PEM blocks on read.
    storage_prefix:
        Literal marker prepended to every storage key so certificate bundles
        are namespaced from other data sharing the backend.
    cache_ttl:
        Seconds a parsed certificate stays in the full-certificate cache.
    fingerprint_cache_ttl:
        Seconds a fingerprint stays in the fingerprint-only cache. Because
        :meth:`delete` does not evict this cache, it is also the upper bound
        on stale fingerprint reads after a deletion.
    sweep_interval:
        Seconds between background sweeps of expired cache entries.
    fail_open:
        When True, an allow-list entry that cannot be resolved causes peer
        validation to accept the connection. When False such entries are
        ignored and only fingerprint matches are accepted.
    """

    secret: str
    storage_prefix: str = DEFAULT_STORAGE_PREFIX
    cache_ttl: float = Field(default=300.0, gt=0.0)
    fingerprint_cache_ttl: float = Field(default=300.0, gt=0.0)
    sweep_interval: float = Field(default=600.0, gt=0.0)
    fail_open: bool = True

    model_config = {"frozen": True}

    @field_validator("secret")
    @classmethod
    def _secret_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("secret must be a non-empty string")
        return value


__all__ = ["DEFAULT_STORAGE_PREFIX", "ManagerSettings"]
