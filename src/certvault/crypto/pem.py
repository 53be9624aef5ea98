"""PEM block classification and classic PEM encryption.

Raw input is split into PEM blocks with :mod:`asn1crypto.pem`, encrypted
blocks are decrypted in place, and each block is tagged as a certificate,
a private key or a public key. Blocks with any other label (certificate
requests, parameters, ...) are dropped so that unrelated sections in a
bundle never block ingestion.

Two encryption envelopes are understood:

* Classic RFC 1421 encryption, marked by ``Proc-Type: 4,ENCRYPTED`` and
  ``DEK-Info: <cipher>,<iv>`` headers. The symmetric key is derived from
  the passphrase with OpenSSL's ``EVP_BytesToKey`` (one MD5 round, salt =
  first 8 bytes of the IV). This is also the format private keys are
  written in at rest, see :func:`encrypt_block`.
* PKCS#8 ``ENCRYPTED PRIVATE KEY`` blocks without headers, as produced by
  ``openssl pkcs8 -topk8``.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from asn1crypto import pem as asn1_pem
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.ciphers import BlockCipherAlgorithm, Cipher, algorithms, modes

from certvault.errors import DecryptionError, MalformedInputError

logger = logging.getLogger(__name__)

CERTIFICATE_LABEL: str = "CERTIFICATE"
PUBLIC_KEY_LABEL: str = "PUBLIC KEY"
PRIVATE_KEY_SUFFIX: str = "PRIVATE KEY"
ENCRYPTED_PRIVATE_KEY_LABEL: str = "ENCRYPTED PRIVATE KEY"
DEFAULT_PEM_CIPHER: str = "AES-256-CBC"

_ENCRYPTED_MARKER = "ENCRYPTED "
_SALT_SIZE = 8


class BlockKind(str, Enum):
    """Classification of a PEM block by its label."""

    CERTIFICATE = "certificate"
    PRIVATE_KEY = "private_key"
    PUBLIC_KEY = "public_key"


def kind_for_label(label: str) -> BlockKind | None:
    """Map a PEM label to a :class:`BlockKind`, or None if it is not handled."""
    if label == CERTIFICATE_LABEL:
        return BlockKind.CERTIFICATE
    if label.endswith(PRIVATE_KEY_SUFFIX):
        return BlockKind.PRIVATE_KEY
    if label == PUBLIC_KEY_LABEL:
        return BlockKind.PUBLIC_KEY
    return None


@dataclass(frozen=True)
class PemBlock:
    """A single decoded PEM block.

    Parameters
    ----------
    label:
        The type label from the ``-----BEGIN <label>-----`` line.
    der:
        Decoded body bytes (DER, or ciphertext while still encrypted).
    headers:
        RFC 1421 headers that preceded the body, if any.
    """

    label: str
    der: bytes
    headers: dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def kind(self) -> BlockKind | None:
        return kind_for_label(self.label)

    @property
    def is_encrypted(self) -> bool:
        """True if the block uses classic RFC 1421 encryption."""
        return "DEK-Info" in self.headers

    def to_pem(self) -> bytes:
        """Re-armor the block, headers included."""
        return asn1_pem.armor(self.label, self.der, headers=self.headers or None)


# ------------------------------------------------------------------
# Classic PEM ciphers
# ------------------------------------------------------------------


@dataclass(frozen=True)
class _PemCipher:
    name: str
    key_size: int
    block_size: int
    algorithm: Callable[[bytes], BlockCipherAlgorithm]


def _single_des(key: bytes) -> BlockCipherAlgorithm:
    # K1 == K2 == K3 makes EDE equivalent to single DES
    return TripleDES(key * 3)


_PEM_CIPHERS: dict[str, _PemCipher] = {
    cipher.name: cipher
    for cipher in (
        _PemCipher("DES-CBC", 8, 8, _single_des),
        _PemCipher("DES-EDE3-CBC", 24, 8, TripleDES),
        _PemCipher("AES-128-CBC", 16, 16, algorithms.AES),
        _PemCipher("AES-192-CBC", 24, 16, algorithms.AES),
        _PemCipher("AES-256-CBC", 32, 16, algorithms.AES),
    )
}


def _derive_key(secret: bytes, salt: bytes, key_size: int) -> bytes:
    """OpenSSL EVP_BytesToKey with MD5 and a single iteration."""
    derived = b""
    previous = b""
    while len(derived) < key_size:
        digest = hashes.Hash(hashes.MD5())
        digest.update(previous + secret + salt)
        previous = digest.finalize()
        derived += previous
    return derived[:key_size]


def _parse_dek_info(dek_info: str) -> tuple[_PemCipher, bytes]:
    name, _, iv_hex = dek_info.partition(",")
    cipher = _PEM_CIPHERS.get(name.strip().upper())
    if cipher is None:
        raise ValueError(f"unsupported PEM cipher {name.strip()!r}")
    iv = bytes.fromhex(iv_hex.strip())
    if len(iv) != cipher.block_size:
        raise ValueError(
            f"IV for {cipher.name} must be {cipher.block_size} bytes, got {len(iv)}"
        )
    return cipher, iv


def decrypt_block(block: PemBlock, secret: str) -> bytes:
    """Decrypt the body of a classic encrypted PEM block.

    Parameters
    ----------
    block:
        A block whose headers include ``DEK-Info``.
    secret:
        The passphrase.

    Returns
    -------
    bytes
        The plaintext DER.

    Raises
    ------
    ValueError
        If the headers are malformed, the cipher is unsupported, or the
        padding is invalid (usually a wrong passphrase).
    """
    dek_info = block.headers.get("DEK-Info")
    if dek_info is None:
        raise ValueError("block has no DEK-Info header")
    cipher, iv = _parse_dek_info(dek_info)
    if not block.der or len(block.der) % cipher.block_size:
        raise ValueError("ciphertext is not a whole number of cipher blocks")

    key = _derive_key(secret.encode("utf-8"), iv[:_SALT_SIZE], cipher.key_size)
    decryptor = Cipher(cipher.algorithm(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(block.der) + decryptor.finalize()

    unpadder = padding.PKCS7(cipher.block_size * 8).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def encrypt_block(
    label: str,
    der: bytes,
    secret: str,
    cipher_name: str = DEFAULT_PEM_CIPHER,
) -> bytes:
    """Encrypt *der* and armor it as a classic encrypted PEM block.

    A fresh random IV (and therefore salt) is drawn on every call, so the
    output differs between calls even for identical input.

    Parameters
    ----------
    label:
        PEM label for the output block, e.g. ``"ENCRYPTED PRIVATE KEY"``.
    der:
        Plaintext bytes to protect.
    secret:
        The passphrase.
    cipher_name:
        One of the supported ``DEK-Info`` cipher names.

    Returns
    -------
    bytes
        The armored PEM block.
    """
    cipher = _PEM_CIPHERS.get(cipher_name)
    if cipher is None:
        raise ValueError(f"unsupported PEM cipher {cipher_name!r}")

    iv = os.urandom(cipher.block_size)
    key = _derive_key(secret.encode("utf-8"), iv[:_SALT_SIZE], cipher.key_size)

    padder = padding.PKCS7(cipher.block_size * 8).padder()
    padded = padder.update(der) + padder.finalize()
    encryptor = Cipher(cipher.algorithm(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    headers = {
        "Proc-Type": "4,ENCRYPTED",
        "DEK-Info": f"{cipher.name},{iv.hex().upper()}",
    }
    return asn1_pem.armor(label, ciphertext, headers=headers)


def encode_block(label: str, der: bytes) -> bytes:
    """Armor *der* as an unencrypted PEM block."""
    return asn1_pem.armor(label, der)


# ------------------------------------------------------------------
# Decoding / classification
# ------------------------------------------------------------------


def iter_blocks(data: bytes) -> list[PemBlock]:
    """Split *data* into raw PEM blocks without decrypting or filtering.

    Raises
    ------
    MalformedInputError
        If *data* contains no BEGIN/END delimited PEM structure.
    """
    try:
        return [
            PemBlock(label=label, der=der, headers=dict(headers))
            for label, headers, der in asn1_pem.unarmor(data, multiple=True)
        ]
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(f"Input is not PEM encoded: {exc}") from exc


def first_block(data: bytes) -> PemBlock:
    """Decode only the first PEM block of *data*.

    Raises
    ------
    MalformedInputError
        If *data* does not start with (or contain) a PEM block.
    """
    try:
        label, headers, der = asn1_pem.unarmor(data)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(f"Input is not PEM encoded: {exc}") from exc
    return PemBlock(label=label, der=der, headers=dict(headers))


def _decrypt_classic(index: int, block: PemBlock, secret: str) -> PemBlock:
    try:
        plaintext = decrypt_block(block, secret)
    except ValueError as exc:
        raise DecryptionError(index, str(exc)) from exc
    return PemBlock(label=block.label.replace(_ENCRYPTED_MARKER, "", 1), der=plaintext)


def _decrypt_pkcs8(index: int, block: PemBlock, secret: str) -> PemBlock:
    try:
        key = serialization.load_der_private_key(block.der, password=secret.encode("utf-8"))
    except (TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise DecryptionError(index, str(exc)) from exc
    plaintext = key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return PemBlock(label=block.label.replace(_ENCRYPTED_MARKER, "", 1), der=plaintext)


def parse_pem(data: bytes, secret: str) -> list[PemBlock]:
    """Decode, decrypt and classify every PEM block in *data*.

    Parameters
    ----------
    data:
        Raw bytes holding one or more concatenated PEM blocks.
    secret:
        Passphrase for encrypted private key blocks.

    Returns
    -------
    list[PemBlock]
        Certificate, private key and public key blocks in input order.
        Encrypted blocks are returned decrypted, without headers and with
        the ``ENCRYPTED`` marker stripped from the label.

    Raises
    ------
    MalformedInputError
        If *data* contains no PEM structure at all.
    DecryptionError
        If an encrypted block cannot be decrypted with *secret*.
    """
    classified: list[PemBlock] = []
    for index, block in enumerate(iter_blocks(data)):
        if block.is_encrypted:
            block = _decrypt_classic(index, block, secret)
        elif block.label == ENCRYPTED_PRIVATE_KEY_LABEL:
            block = _decrypt_pkcs8(index, block, secret)

        if block.kind is None:
            logger.info("Ignoring PEM block with type: %s", block.label)
            continue
        classified.append(block)
    return classified


__all__ = [
    "BlockKind",
    "CERTIFICATE_LABEL",
    "DEFAULT_PEM_CIPHER",
    "ENCRYPTED_PRIVATE_KEY_LABEL",
    "PRIVATE_KEY_SUFFIX",
    "PUBLIC_KEY_LABEL",
    "PemBlock",
    "decrypt_block",
    "encode_block",
    "encrypt_block",
    "first_block",
    "iter_blocks",
    "kind_for_label",
    "parse_pem",
]
