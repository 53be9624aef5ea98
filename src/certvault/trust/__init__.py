"""Trust anchors and peer handshake descriptors."""
from __future__ import annotations

from certvault.trust.handshake import HandshakeInfo
from certvault.trust.pool import TrustPool

__all__ = ["HandshakeInfo", "TrustPool"]
