"""certvault — content-addressed certificate store and peer trust validation.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import certvault
>>> certvault.__version__
'0.1.0'

Quick start
-----------
::

    from certvault import (
        CertificateManager, CertificateMode, HandshakeInfo,
        ManagerSettings, MemoryStorage,
    )

    manager = CertificateManager(MemoryStorage(), ManagerSettings(secret="s3cret"))
    cert_id = manager.add(pem_bytes, org_id="org1:")
    manager.validate_peer([cert_id], HandshakeInfo.from_ssl_socket(tls_sock))
"""
from __future__ import annotations

__version__: str = "0.1.0"

from certvault.cache import TTLCache
from certvault.config import ManagerSettings

# ------------------------------------------------------------------
# Certificates
# ------------------------------------------------------------------
from certvault.certificates.manager import CertificateManager, Resolution
from certvault.certificates.metadata import CertificateMeta, extract_metadata
from certvault.certificates.parsed import (
    CertificateMode,
    ParsedCertificate,
    parse_certificate_bundle,
)

# ------------------------------------------------------------------
# Crypto primitives
# ------------------------------------------------------------------
from certvault.crypto.fingerprint import (
    IdentifierKind,
    classify_identifier,
    hex_sha256,
    is_content_identifier,
)
from certvault.crypto.keys import KeyAlgorithm, PrivateKey, decode_private_key
from certvault.crypto.pem import BlockKind, PemBlock, parse_pem

# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------
from certvault.errors import (
    CertificateError,
    DecryptionError,
    DuplicateCertificateError,
    EmptyBundleError,
    KeyMismatchError,
    KeyParseError,
    MalformedInputError,
    MixedContentError,
    MultipleKeysError,
    NoPeerCertificateError,
    NoTLSError,
    NotFoundError,
    PeerValidationError,
    StorageError,
    UnsupportedKeyTypeError,
    UntrustedPeerError,
)

# ------------------------------------------------------------------
# Storage
# ------------------------------------------------------------------
from certvault.storage import CertificateStorage, FilesystemStorage, MemoryStorage

# ------------------------------------------------------------------
# Trust
# ------------------------------------------------------------------
from certvault.trust import HandshakeInfo, TrustPool

__all__ = [
    # version
    "__version__",
    # core
    "CertificateManager",
    "ManagerSettings",
    "Resolution",
    "TTLCache",
    # certificates
    "CertificateMeta",
    "CertificateMode",
    "ParsedCertificate",
    "extract_metadata",
    "parse_certificate_bundle",
    # crypto
    "BlockKind",
    "IdentifierKind",
    "KeyAlgorithm",
    "PemBlock",
    "PrivateKey",
    "classify_identifier",
    "decode_private_key",
    "hex_sha256",
    "is_content_identifier",
    "parse_pem",
    # errors
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
    # storage
    "CertificateStorage",
    "FilesystemStorage",
    "MemoryStorage",
    # trust
    "HandshakeInfo",
    "TrustPool",
]
