"""ParsedCertificate — the in-memory form of a stored bundle.

A bundle is either a certificate chain (optionally with the leaf's private
key) or a single standalone public key. Parsing happens once per cache miss;
the resulting object is immutable and carries its fingerprint so later
comparisons never re-hash.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from certvault.crypto.fingerprint import hex_sha256
from certvault.crypto.keys import PrivateKey, decode_private_key
from certvault.crypto.pem import (
    CERTIFICATE_LABEL,
    PUBLIC_KEY_LABEL,
    BlockKind,
    encode_block,
    parse_pem,
)
from certvault.errors import EmptyBundleError, MalformedInputError, MixedContentError


class CertificateMode(str, Enum):
    """Filter applied to resolved bundles.

    PRIVATE — only bundles holding a decrypted private key.
    PUBLIC  — only bundles without a private key.
    ANY     — everything.
    """

    PRIVATE = "private"
    PUBLIC = "public"
    ANY = "any"


@dataclass(frozen=True)
class ParsedCertificate:
    """A parsed certificate chain or standalone public key.

    Parameters
    ----------
    fingerprint:
        Hex SHA-256 of the first certificate's DER, or of the public key DER
        when the bundle holds no certificate. Fixed at parse time.
    chain:
        DER-encoded certificates in input order; leaf first.
    leaf:
        The parsed first certificate, or None for public-key-only bundles.
    public_key:
        DER SubjectPublicKeyInfo for public-key-only bundles.
    private_key:
        The decrypted private key belonging to the leaf, if stored.
    """

    fingerprint: str
    chain: tuple[bytes, ...] = ()
    leaf: x509.Certificate | None = None
    public_key: bytes | None = None
    private_key: PrivateKey | None = None

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------

    @property
    def has_private_key(self) -> bool:
        return self.private_key is not None

    @property
    def is_public_key_only(self) -> bool:
        return self.leaf is None

    @property
    def subject(self) -> str:
        if self.leaf is None:
            return f"Public Key: {self.fingerprint}"
        return self.leaf.subject.rfc4514_string()

    @property
    def issuer(self) -> str:
        if self.leaf is None:
            return ""
        return self.leaf.issuer.rfc4514_string()

    @property
    def not_before(self) -> datetime.datetime | None:
        return self.leaf.not_valid_before_utc if self.leaf is not None else None

    @property
    def not_after(self) -> datetime.datetime | None:
        return self.leaf.not_valid_after_utc if self.leaf is not None else None

    @property
    def dns_names(self) -> list[str]:
        if self.leaf is None:
            return []
        try:
            san = self.leaf.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        except x509.ExtensionNotFound:
            return []
        return list(san.value.get_values_for_type(x509.DNSName))

    def to_pem(self) -> bytes:
        """Return the public part of the bundle (chain or public key) as PEM."""
        if self.public_key is not None:
            return encode_block(PUBLIC_KEY_LABEL, self.public_key)
        return b"".join(encode_block(CERTIFICATE_LABEL, der) for der in self.chain)


def load_certificate_der(der: bytes) -> x509.Certificate:
    """Parse certificate DER, raising :class:`MalformedInputError` on failure."""
    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as exc:
        raise MalformedInputError(f"Error while parsing certificate: {exc}") from exc


def check_public_key_der(der: bytes) -> None:
    """Ensure *der* is a loadable SubjectPublicKeyInfo."""
    try:
        serialization.load_der_public_key(der)
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise MalformedInputError(f"Error while parsing public key: {exc}") from exc


def can_be_listed(cert: ParsedCertificate, mode: CertificateMode) -> bool:
    """Return True if *cert* passes the *mode* filter."""
    if mode is CertificateMode.PRIVATE:
        return cert.has_private_key
    if mode is CertificateMode.PUBLIC:
        return not cert.has_private_key
    return True


def parse_certificate_bundle(data: bytes, secret: str) -> ParsedCertificate:
    """Fully parse a PEM bundle into a :class:`ParsedCertificate`.

    Parameters
    ----------
    data:
        Raw PEM bytes as stored (or as read from a local file).
    secret:
        Passphrase for encrypted private key blocks.

    Returns
    -------
    ParsedCertificate

    Raises
    ------
    MalformedInputError
        If the input is not PEM or a certificate / public key is corrupt.
    DecryptionError
        If an encrypted key block cannot be decrypted.
    KeyParseError, UnsupportedKeyTypeError
        If the private key cannot be decoded.
    MixedContentError
        If certificates and a standalone public key appear together.
    EmptyBundleError
        If there is neither a certificate nor a public key.
    """
    chain: list[bytes] = []
    public_key: bytes | None = None
    private_key: PrivateKey | None = None

    for block in parse_pem(data, secret):
        if block.kind is BlockKind.CERTIFICATE:
            chain.append(block.der)
        elif block.kind is BlockKind.PRIVATE_KEY:
            private_key = decode_private_key(block.der)
        elif block.kind is BlockKind.PUBLIC_KEY:
            public_key = block.der

    if chain and public_key is not None:
        raise MixedContentError("Public keys can't be combined with certificates")

    if chain:
        return ParsedCertificate(
            fingerprint=hex_sha256(chain[0]),
            chain=tuple(chain),
            leaf=load_certificate_der(chain[0]),
            private_key=private_key,
        )

    if public_key is not None:
        check_public_key_der(public_key)
        return ParsedCertificate(
            fingerprint=hex_sha256(public_key),
            public_key=public_key,
            private_key=private_key,
        )

    raise EmptyBundleError("Can't find CERTIFICATE or PUBLIC KEY block")


__all__ = [
    "CertificateMode",
    "ParsedCertificate",
    "can_be_listed",
    "check_public_key_der",
    "load_certificate_der",
    "parse_certificate_bundle",
]
