"""Cryptographic building blocks: PEM classification, key codec, fingerprints."""
from __future__ import annotations

from certvault.crypto.fingerprint import (
    IdentifierKind,
    classify_identifier,
    content_identifier,
    hex_sha256,
    is_content_identifier,
)
from certvault.crypto.keys import (
    KeyAlgorithm,
    PrivateKey,
    decode_private_key,
    decrypt_private_key,
    encrypt_private_key,
    matches_certificate,
)
from certvault.crypto.pem import BlockKind, PemBlock, encrypt_block, iter_blocks, parse_pem

__all__ = [
    "BlockKind",
    "IdentifierKind",
    "KeyAlgorithm",
    "PemBlock",
    "PrivateKey",
    "classify_identifier",
    "content_identifier",
    "decode_private_key",
    "decrypt_private_key",
    "encrypt_block",
    "encrypt_private_key",
    "hex_sha256",
    "is_content_identifier",
    "iter_blocks",
    "matches_certificate",
    "parse_pem",
]
