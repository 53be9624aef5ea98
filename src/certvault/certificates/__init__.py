"""Certificate bundles: parsing, metadata and the content-addressed manager."""
from __future__ import annotations

from certvault.certificates.manager import CertificateManager, Resolution
from certvault.certificates.metadata import CertificateMeta, extract_metadata
from certvault.certificates.parsed import (
    CertificateMode,
    ParsedCertificate,
    can_be_listed,
    parse_certificate_bundle,
)

__all__ = [
    "CertificateManager",
    "CertificateMeta",
    "CertificateMode",
    "ParsedCertificate",
    "Resolution",
    "can_be_listed",
    "extract_metadata",
    "parse_certificate_bundle",
]
