"""HandshakeInfo — what the TLS layer reports about a connection's peer."""
from __future__ import annotations

import ssl
from dataclasses import dataclass
from typing import Iterable, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization


@dataclass(frozen=True)
class HandshakeInfo:
    """Outcome of a TLS handshake as seen by the validator.

    Parameters
    ----------
    completed:
        Whether a TLS handshake took place on the connection.
    peer_certificates:
        DER-encoded certificates presented by the peer, leaf first. Only the
        first one is consulted during validation.
    """

    completed: bool
    peer_certificates: tuple[bytes, ...] = ()

    @property
    def leaf(self) -> bytes | None:
        return self.peer_certificates[0] if self.peer_certificates else None

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def none(cls) -> "HandshakeInfo":
        """A plain-text connection with no TLS at all."""
        return cls(completed=False)

    @classmethod
    def from_certificates(cls, certificates: Iterable[x509.Certificate]) -> "HandshakeInfo":
        """A completed handshake in which the peer presented *certificates*."""
        return cls(
            completed=True,
            peer_certificates=tuple(
                certificate.public_bytes(serialization.Encoding.DER)
                for certificate in certificates
            ),
        )

    @classmethod
    def from_ssl_socket(cls, sock: Union[ssl.SSLSocket, ssl.SSLObject]) -> "HandshakeInfo":
        """Read the peer certificate from a live :mod:`ssl` connection.

        :meth:`ssl.SSLSocket.getpeercert` only exposes the leaf, which is all
        validation needs.
        """
        try:
            der = sock.getpeercert(binary_form=True)
        except ValueError:
            # raised while the handshake has not completed
            return cls(completed=False)
        if not der:
            return cls(completed=True)
        return cls(completed=True, peer_certificates=(der,))


__all__ = ["HandshakeInfo"]
