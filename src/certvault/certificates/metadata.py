"""CertificateMeta — read-only display projection of a parsed bundle."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from certvault.certificates.parsed import ParsedCertificate


class CertificateMeta(BaseModel):
    """Summary of a stored bundle for listing and audit consumers."""

    id: str
    fingerprint: str
    has_private: bool
    issuer: str = ""
    subject: str = ""
    not_before: Optional[datetime] = None
    not_after: Optional[datetime] = None
    dns_names: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


def extract_metadata(cert: ParsedCertificate, certificate_id: str) -> CertificateMeta:
    """Project *cert* into a :class:`CertificateMeta` labelled *certificate_id*."""
    return CertificateMeta(
        id=certificate_id,
        fingerprint=cert.fingerprint,
        has_private=cert.has_private_key,
        issuer=cert.issuer,
        subject=cert.subject,
        not_before=cert.not_before,
        not_after=cert.not_after,
        dns_names=cert.dns_names,
    )


__all__ = ["CertificateMeta", "extract_metadata"]
