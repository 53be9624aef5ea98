"""Exception taxonomy for certvault.

Every error raised by the public API derives from :class:`CertificateError`
so callers can catch the whole family at once. Where a builtin exception
already carries the right meaning the error also subclasses it
(``NotFoundError`` is a ``KeyError``, ``DuplicateCertificateError`` is a
``ValueError``).
"""
from __future__ import annotations


class CertificateError(Exception):
    """Base class for all certvault errors."""


# ------------------------------------------------------------------
# Parsing / classification
# ------------------------------------------------------------------


class MalformedInputError(CertificateError):
    """Raised when input contains no decodable PEM structure or a block is corrupt."""


class DecryptionError(CertificateError):
    """Raised when an encrypted PEM block cannot be decrypted.

    Parameters
    ----------
    block_index:
        Zero-based position of the offending block in the input stream.
    reason:
        Human-readable description of the failure.
    """

    def __init__(self, block_index: int, reason: str = "decryption failed") -> None:
        self.block_index = block_index
        self.reason = reason
        super().__init__(f"Cannot decrypt PEM block #{block_index}: {reason}")


class UnsupportedKeyTypeError(CertificateError):
    """Raised when a private key is neither RSA nor elliptic-curve."""


class KeyParseError(CertificateError):
    """Raised when private key material matches none of the supported encodings."""


# ------------------------------------------------------------------
# Ingestion
# ------------------------------------------------------------------


class MultipleKeysError(CertificateError):
    """Raised when a bundle carries more than one private key."""


class MixedContentError(CertificateError):
    """Raised when a bundle combines certificates with a standalone public key."""


class EmptyBundleError(CertificateError):
    """Raised when a bundle has neither certificates nor a public key."""


class KeyMismatchError(CertificateError):
    """Raised when the private key does not belong to the leaf certificate."""


class DuplicateCertificateError(CertificateError, ValueError):
    """Raised when a bundle with the same identifier is already stored."""

    def __init__(self, certificate_id: str) -> None:
        self.certificate_id = certificate_id
        super().__init__(f"Certificate with id {certificate_id!r} already exists")


# ------------------------------------------------------------------
# Storage
# ------------------------------------------------------------------


class StorageError(CertificateError):
    """Generic storage backend failure."""


class NotFoundError(CertificateError, KeyError):
    """Raised when a storage key or local file does not exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"No record found for {key!r}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


# ------------------------------------------------------------------
# Peer validation
# ------------------------------------------------------------------


class PeerValidationError(CertificateError):
    """Base class for errors that should cause a connection to be rejected."""


class NoTLSError(PeerValidationError):
    """Raised when no TLS handshake took place on the connection."""


class NoPeerCertificateError(PeerValidationError):
    """Raised when the peer presented no certificate during the handshake."""


class UntrustedPeerError(PeerValidationError):
    """Raised when the peer certificate is not in the allow-list."""

    def __init__(self, fingerprint: str) -> None:
        self.fingerprint = fingerprint
        super().__init__(f"Certificate with SHA256 {fingerprint} not allowed")


__all__ = [
    "CertificateError",
    "DecryptionError",
    "DuplicateCertificateError",
    "EmptyBundleError",
    "KeyMismatchError",
    "KeyParseError",
    "MalformedInputError",
    "MixedContentError",
    "MultipleKeysError",
    "NoPeerCertificateError",
    "NoTLSError",
    "NotFoundError",
    "PeerValidationError",
    "StorageError",
    "UnsupportedKeyTypeError",
    "UntrustedPeerError",
]
