"""TrustPool — a set of certificates to be used as verification anchors.

The pool only collects anchors. Chain and signature verification is left to
the consumer: either an :class:`ssl.SSLContext` (see :meth:`TrustPool.configure`)
or a ``cryptography`` verification store (see :meth:`TrustPool.to_store`).
"""
from __future__ import annotations

import ssl
from typing import Iterable, Iterator

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.verification import Store

from certvault.crypto.fingerprint import hex_sha256


class TrustPool:
    """De-duplicated collection of anchor certificates.

    Parameters
    ----------
    certificates:
        Initial anchors. Duplicates (same DER) are kept once.
    """

    def __init__(self, certificates: Iterable[x509.Certificate] = ()) -> None:
        self._certificates: list[x509.Certificate] = []
        self._fingerprints: set[str] = set()
        for certificate in certificates:
            self.add(certificate)

    def add(self, certificate: x509.Certificate) -> bool:
        """Add *certificate* to the pool. Returns False if already present."""
        fingerprint = hex_sha256(certificate.public_bytes(serialization.Encoding.DER))
        if fingerprint in self._fingerprints:
            return False
        self._fingerprints.add(fingerprint)
        self._certificates.append(certificate)
        return True

    def fingerprints(self) -> frozenset[str]:
        return frozenset(self._fingerprints)

    def __len__(self) -> int:
        return len(self._certificates)

    def __iter__(self) -> Iterator[x509.Certificate]:
        return iter(list(self._certificates))

    def __contains__(self, item: object) -> bool:
        if isinstance(item, x509.Certificate):
            item = hex_sha256(item.public_bytes(serialization.Encoding.DER))
        return item in self._fingerprints

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_pem(self) -> bytes:
        """Concatenated PEM encoding of every anchor."""
        return b"".join(
            certificate.public_bytes(serialization.Encoding.PEM)
            for certificate in self._certificates
        )

    def to_store(self) -> Store:
        """Build a ``cryptography`` verification store from the anchors.

        Raises
        ------
        ValueError
            If the pool is empty.
        """
        if not self._certificates:
            raise ValueError("Cannot build a verification store from an empty trust pool")
        return Store(list(self._certificates))

    def configure(self, context: ssl.SSLContext) -> None:
        """Load the anchors into *context* as trusted CA certificates."""
        if not self._certificates:
            return
        context.load_verify_locations(cadata=self.to_pem().decode("ascii"))


__all__ = ["TrustPool"]
