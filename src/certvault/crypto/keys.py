"""Private key codec — decoding legacy and modern encodings, at-rest encryption.

Three DER encodings are accepted, tried in this order:

1. PKCS#1 ``RSAPrivateKey`` (OpenSSL 0.9.8 default)
2. PKCS#8 ``PrivateKeyInfo`` (OpenSSL 1.0+ default), RSA or EC only
3. SEC1 ``ECPrivateKey`` (``openssl ecparam`` output)

Decoded keys are wrapped in :class:`PrivateKey`, a tagged variant over the
two supported algorithms.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from certvault.crypto.pem import (
    ENCRYPTED_PRIVATE_KEY_LABEL,
    BlockKind,
    encode_block,
    encrypt_block,
    parse_pem,
)
from certvault.errors import KeyParseError, UnsupportedKeyTypeError

SupportedPrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]

_LOAD_ERRORS = (TypeError, ValueError, UnsupportedAlgorithm)


class KeyAlgorithm(str, Enum):
    """Supported private key algorithms."""

    RSA = "rsa"
    EC = "ec"


@dataclass(frozen=True, eq=False)
class PrivateKey:
    """A decoded private key tagged with its algorithm.

    Parameters
    ----------
    algorithm:
        Which variant *key* is.
    key:
        The underlying ``cryptography`` key object.
    """

    algorithm: KeyAlgorithm
    key: SupportedPrivateKey

    @classmethod
    def from_key(cls, key: object) -> "PrivateKey":
        """Wrap a ``cryptography`` private key object.

        Raises
        ------
        UnsupportedKeyTypeError
            If *key* is neither RSA nor elliptic-curve.
        """
        if isinstance(key, rsa.RSAPrivateKey):
            return cls(algorithm=KeyAlgorithm.RSA, key=key)
        if isinstance(key, ec.EllipticCurvePrivateKey):
            return cls(algorithm=KeyAlgorithm.EC, key=key)
        raise UnsupportedKeyTypeError(
            f"Found unknown private key type {type(key).__name__} in PKCS#8 wrapping"
        )

    def to_der(self) -> bytes:
        """Serialize in the algorithm's traditional encoding (PKCS#1 or SEC1)."""
        return self.key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def public_key_der(self) -> bytes:
        """Return the DER SubjectPublicKeyInfo of the matching public key."""
        return self.key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.algorithm is other.algorithm and self.to_der() == other.to_der()

    def __hash__(self) -> int:
        return hash((self.algorithm, self.to_der()))


def _load_labelled(label: str, der: bytes) -> object:
    # The PEM label pins the loader to a single encoding.
    return serialization.load_pem_private_key(encode_block(label, der), password=None)


def decode_private_key(der: bytes) -> PrivateKey:
    """Decode private key DER in PKCS#1, PKCS#8 or SEC1 form.

    Parameters
    ----------
    der:
        Unencrypted key bytes.

    Returns
    -------
    PrivateKey

    Raises
    ------
    UnsupportedKeyTypeError
        If a PKCS#8 wrapper holds a key that is neither RSA nor EC.
    KeyParseError
        If none of the three encodings match.
    """
    try:
        return PrivateKey.from_key(_load_labelled("RSA PRIVATE KEY", der))
    except _LOAD_ERRORS:
        pass

    try:
        key = _load_labelled("PRIVATE KEY", der)
    except UnsupportedAlgorithm as exc:
        raise UnsupportedKeyTypeError(f"Unsupported algorithm in PKCS#8 wrapping: {exc}") from exc
    except (TypeError, ValueError):
        pass
    else:
        return PrivateKey.from_key(key)

    try:
        return PrivateKey.from_key(_load_labelled("EC PRIVATE KEY", der))
    except _LOAD_ERRORS:
        pass

    raise KeyParseError("Failed to parse private key")


def encrypt_private_key(key: PrivateKey, secret: str) -> bytes:
    """Serialize and encrypt *key* for storage.

    The key is written as an AES-256-CBC encrypted ``ENCRYPTED PRIVATE KEY``
    block with a random IV, so repeated calls produce different ciphertext.
    """
    return encrypt_block(ENCRYPTED_PRIVATE_KEY_LABEL, key.to_der(), secret)


def decrypt_private_key(block_pem: bytes, secret: str) -> PrivateKey:
    """Inverse of :func:`encrypt_private_key`.

    Raises
    ------
    DecryptionError
        If the block cannot be decrypted with *secret*.
    KeyParseError
        If no private key block is present or its contents do not parse.
    """
    for block in parse_pem(block_pem, secret):
        if block.kind is BlockKind.PRIVATE_KEY:
            return decode_private_key(block.der)
    raise KeyParseError("No private key block found")


def matches_certificate(key: PrivateKey, certificate: x509.Certificate) -> bool:
    """Return True if *key* is the private half of *certificate*'s public key."""
    cert_spki = certificate.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return cert_spki == key.public_key_der()


__all__ = [
    "KeyAlgorithm",
    "PrivateKey",
    "SupportedPrivateKey",
    "decode_private_key",
    "decrypt_private_key",
    "encrypt_private_key",
    "matches_certificate",
]
