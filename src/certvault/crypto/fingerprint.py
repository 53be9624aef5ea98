"""Content-derived identifiers and fingerprints.

A fingerprint is the lowercase hex SHA-256 of DER bytes. Stored bundles are
keyed by ``org_prefix + fingerprint``, which makes ingestion content
addressed: the same leaf certificate always maps to the same identifier.

Identifiers handed in by callers are either such content identifiers or
paths to local PEM files. :func:`classify_identifier` is the single place
that decides which.
"""
from __future__ import annotations

import re
from enum import Enum

from cryptography.hazmat.primitives import hashes

FINGERPRINT_LENGTH: int = 64

_CONTENT_ID_PATTERN = re.compile(r"^(?P<prefix>.*?)(?P<digest>[0-9a-fA-F]{64})$", re.DOTALL)
_PATH_SEPARATORS = ("/", "\\")


class IdentifierKind(str, Enum):
    """Where the bytes behind an identifier live."""

    CONTENT = "content"
    PATH = "path"


def hex_sha256(data: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of *data* (64 characters)."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize().hex()


def classify_identifier(identifier: str) -> IdentifierKind:
    """Decide whether *identifier* names stored content or a local file.

    An identifier is a content identifier when it ends in exactly 64 hex
    digits and the org prefix in front of them contains no path separator.
    Everything else is treated as a filesystem path. The check is purely
    syntactic; it does not confirm that the content exists.

    Parameters
    ----------
    identifier:
        Caller-supplied identifier string.

    Returns
    -------
    IdentifierKind
    """
    match = _CONTENT_ID_PATTERN.match(identifier)
    if match is None:
        return IdentifierKind.PATH
    # A longer hex run means the digest boundary is ambiguous; only the
    # trailing 64 characters count.
    prefix = match.group("prefix")
    if any(sep in prefix for sep in _PATH_SEPARATORS):
        return IdentifierKind.PATH
    return IdentifierKind.CONTENT


def is_content_identifier(identifier: str) -> bool:
    """Return True if *identifier* refers to content in the persistent store."""
    return classify_identifier(identifier) is IdentifierKind.CONTENT


def content_identifier(org_prefix: str, primary_der: bytes) -> str:
    """Build the storage identifier for a bundle.

    Parameters
    ----------
    org_prefix:
        Organization / namespace prefix, used verbatim.
    primary_der:
        DER bytes of the first certificate, or of the public key for
        public-key-only bundles.
    """
    return org_prefix + hex_sha256(primary_der)


__all__ = [
    "FINGERPRINT_LENGTH",
    "IdentifierKind",
    "classify_identifier",
    "content_identifier",
    "hex_sha256",
    "is_content_identifier",
]
