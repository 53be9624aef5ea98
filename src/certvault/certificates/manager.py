"""CertificateManager — content-addressed certificate store and peer validator.

Ingestion
---------
:meth:`CertificateManager.add` classifies a PEM bundle, checks it, encrypts
any private key under the manager secret and persists it under
``org_id + sha256(leaf DER)`` (or the public key DER for key-only bundles).
Insertion is insert-only: storing the same leaf twice is an error.

Retrieval
---------
Identifiers are either content identifiers (looked up in storage) or paths
to local PEM files. Parsed results are cached per manager for
``cache_ttl`` seconds. Batch lookups never abort: an item that cannot be
fetched or parsed yields ``None`` at its position.

Peer validation
---------------
:meth:`CertificateManager.validate_peer` accepts a TLS peer when the SHA-256
fingerprint of its leaf certificate equals the fingerprint of one of the
allowed bundles. Only fingerprints are compared; chain verification is not
performed here.

Known staleness
---------------
:meth:`CertificateManager.delete` evicts the full-certificate cache entry
but not the fingerprint-only cache entry, so
:meth:`CertificateManager.resolve_fingerprints_only` can keep returning a
deleted fingerprint for up to ``fingerprint_cache_ttl`` seconds.
"""
from __future__ import annotations

import glob
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Callable, Iterable

from certvault.cache import TTLCache
from certvault.certificates.metadata import CertificateMeta, extract_metadata
from certvault.certificates.parsed import (
    CertificateMode,
    ParsedCertificate,
    can_be_listed,
    check_public_key_der,
    load_certificate_der,
    parse_certificate_bundle,
)
from certvault.config import ManagerSettings
from certvault.crypto.fingerprint import content_identifier, hex_sha256, is_content_identifier
from certvault.crypto.keys import decode_private_key, encrypt_private_key, matches_certificate
from certvault.crypto.pem import (
    CERTIFICATE_LABEL,
    PUBLIC_KEY_LABEL,
    BlockKind,
    PemBlock,
    encode_block,
    first_block,
    parse_pem,
)
from certvault.errors import (
    CertificateError,
    DuplicateCertificateError,
    EmptyBundleError,
    KeyMismatchError,
    MixedContentError,
    MultipleKeysError,
    NoPeerCertificateError,
    NoTLSError,
    NotFoundError,
    StorageError,
    UntrustedPeerError,
)
from certvault.storage.base import CertificateStorage
from certvault.trust.handshake import HandshakeInfo
from certvault.trust.pool import TrustPool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Per-identifier outcome of :meth:`CertificateManager.resolve_entries`.

    Parameters
    ----------
    identifier:
        The identifier as supplied by the caller.
    certificate:
        The parsed bundle, if it could be loaded.
    filtered:
        True when the bundle loaded but was excluded by the mode filter.
    error:
        The failure that prevented loading, if any.
    """

    identifier: str
    certificate: ParsedCertificate | None = None
    filtered: bool = False
    error: CertificateError | None = None

    @property
    def resolved(self) -> bool:
        """True if the bundle was fetched and parsed (whether or not filtered)."""
        return self.error is None

    @property
    def value(self) -> ParsedCertificate | None:
        """The certificate if it passed the filter, otherwise None."""
        if self.error is not None or self.filtered:
            return None
        return self.certificate


class CertificateManager:
    """Stores PEM bundles by content identifier and answers trust queries.

    Thread-safe: the caches synchronise internally and the manager holds no
    other mutable state. Concurrent lookups of the same uncached identifier
    may both fetch and parse; the results are identical.

    Parameters
    ----------
    storage:
        Backend holding raw bundles.
    settings:
        Secret, key namespace, cache lifetimes and the fail-open policy.
    clock:
        Monotonic time source for the caches, injectable for tests.

    Example
    -------
    ::

        manager = CertificateManager(MemoryStorage(), ManagerSettings(secret="s3cret"))
        cert_id = manager.add(pem_bytes, org_id="org1:")
        [cert] = manager.resolve([cert_id], CertificateMode.ANY)
        manager.close()
    """

    def __init__(
        self,
        storage: CertificateStorage,
        settings: ManagerSettings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._storage = storage
        self._settings = settings
        self._cert_cache: TTLCache[ParsedCertificate] = TTLCache(
            default_ttl=settings.cache_ttl,
            sweep_interval=settings.sweep_interval,
            clock=clock,
            name="certificate-cache",
        )
        self._fingerprint_cache: TTLCache[str] = TTLCache(
            default_ttl=settings.fingerprint_cache_ttl,
            sweep_interval=settings.sweep_interval,
            clock=clock,
            name="fingerprint-cache",
        )
        self._cert_cache.start()
        self._fingerprint_cache.start()

    @property
    def settings(self) -> ManagerSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop the background cache sweepers."""
        self._cert_cache.close()
        self._fingerprint_cache.close()

    def __enter__(self) -> "CertificateManager":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def add(self, data: bytes, org_id: str = "") -> str:
        """Validate and persist a PEM bundle.

        Parameters
        ----------
        data:
            PEM bytes holding a certificate chain (optionally followed by the
            leaf's private key) or a single public key. Blocks with other
            labels are ignored.
        org_id:
            Organization prefix prepended verbatim to the identifier.

        Returns
        -------
        str
            The new identifier, ``org_id + sha256hex(primary DER)``.

        Raises
        ------
        MalformedInputError
            If *data* is not PEM or a certificate / public key is corrupt.
        DecryptionError
            If an encrypted input key cannot be decrypted with the secret.
        MultipleKeysError, MixedContentError, EmptyBundleError
            If the combination of blocks is not allowed.
        KeyParseError, UnsupportedKeyTypeError, KeyMismatchError
            If the private key is unreadable or does not match the leaf.
        DuplicateCertificateError
            If a bundle with the same identifier already exists.
        StorageError
            If the backend write fails.
        """
        try:
            certificate_id, bundle = self._assemble(data, org_id)
            if not self._storage.set_if_absent(self._storage_key(certificate_id), bundle):
                raise DuplicateCertificateError(certificate_id)
        except CertificateError as exc:
            logger.error("Rejected certificate bundle: %s", exc)
            raise

        logger.info("Stored certificate %s", certificate_id)
        return certificate_id

    def _assemble(self, data: bytes, org_id: str) -> tuple[str, bytes]:
        """Run every ingestion check and build ``(identifier, bundle bytes)``."""
        certificates: list[PemBlock] = []
        public_key: PemBlock | None = None
        private_key: PemBlock | None = None

        for block in parse_pem(data, self._settings.secret):
            if block.kind is BlockKind.PRIVATE_KEY:
                if private_key is not None:
                    raise MultipleKeysError("Found multiple private keys")
                private_key = block
            elif block.kind is BlockKind.CERTIFICATE:
                certificates.append(block)
            elif block.kind is BlockKind.PUBLIC_KEY:
                public_key = block

        if certificates and public_key is not None:
            raise MixedContentError("Public keys can't be combined with certificates")

        if certificates:
            primary_der = certificates[0].der
            leaf = load_certificate_der(primary_der)
            parts = [encode_block(CERTIFICATE_LABEL, block.der) for block in certificates]
        elif public_key is not None:
            primary_der = public_key.der
            leaf = None
            check_public_key_der(primary_der)
            parts = [encode_block(PUBLIC_KEY_LABEL, primary_der)]
        else:
            raise EmptyBundleError("Failed to decode certificate. It should be PEM encoded.")

        if private_key is not None:
            if leaf is None:
                raise KeyMismatchError("A private key can only be stored with its certificate")
            key = decode_private_key(private_key.der)
            if not matches_certificate(key, leaf):
                raise KeyMismatchError("Private key does not match the leaf certificate")
            parts.append(encrypt_private_key(key, self._settings.secret))

        return content_identifier(org_id, primary_der), b"".join(parts)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def resolve_entries(
        self,
        certificate_ids: Iterable[str],
        mode: CertificateMode = CertificateMode.ANY,
    ) -> list[Resolution]:
        """Resolve identifiers and report how each one fared.

        The result has exactly one :class:`Resolution` per input identifier,
        in input order.
        """
        out: list[Resolution] = []
        for certificate_id in certificate_ids:
            cert = self._cert_cache.get(certificate_id)
            if cert is None:
                try:
                    cert = self._load(certificate_id)
                except CertificateError as exc:
                    out.append(Resolution(identifier=certificate_id, error=exc))
                    continue
                self._cert_cache.set(certificate_id, cert)

            out.append(
                Resolution(
                    identifier=certificate_id,
                    certificate=cert,
                    filtered=not can_be_listed(cert, mode),
                )
            )
        return out

    def resolve(
        self,
        certificate_ids: Iterable[str],
        mode: CertificateMode = CertificateMode.ANY,
    ) -> list[ParsedCertificate | None]:
        """Return parsed bundles for *certificate_ids*, one entry per input.

        An entry is None when the identifier could not be fetched or parsed,
        or when the bundle was excluded by *mode*.

        Parameters
        ----------
        certificate_ids:
            Content identifiers or local file paths.
        mode:
            PRIVATE keeps bundles with a private key, PUBLIC keeps bundles
            without one, ANY keeps everything.
        """
        return [entry.value for entry in self.resolve_entries(certificate_ids, mode)]

    def resolve_fingerprints_only(self, certificate_ids: Iterable[str]) -> list[str]:
        """Return the fingerprint of the first PEM block behind each identifier.

        No certificate or key parsing takes place, which makes this the cheap
        path for consumers that only compare public material. Failures yield
        an empty string at their position.
        """
        out: list[str] = []
        for certificate_id in certificate_ids:
            fingerprint = self._fingerprint_cache.get(certificate_id)
            if fingerprint is not None:
                out.append(fingerprint)
                continue

            try:
                block = first_block(self._read(certificate_id))
            except CertificateError as exc:
                logger.error("Can't parse public key %s: %s", certificate_id, exc)
                out.append("")
                continue

            fingerprint = hex_sha256(block.der)
            self._fingerprint_cache.set(certificate_id, fingerprint)
            out.append(fingerprint)
        return out

    def metadata(self, certificate_ids: Iterable[str]) -> list[CertificateMeta | None]:
        """Resolve identifiers with mode ANY and project them for display."""
        return [
            extract_metadata(entry.certificate, entry.identifier)
            if entry.certificate is not None
            else None
            for entry in self.resolve_entries(certificate_ids, CertificateMode.ANY)
        ]

    def list_ids(self, prefix: str = "") -> list[str]:
        """Return every stored identifier starting with *prefix*.

        Order is whatever the backend returns.
        """
        namespace = self._settings.storage_prefix
        keys = self._storage.list_keys(glob.escape(namespace + prefix) + "*")
        return [key[len(namespace):] for key in keys if key.startswith(namespace)]

    def get_raw(self, certificate_id: str) -> bytes:
        """Return the stored bundle bytes without parsing.

        Raises
        ------
        NotFoundError
            If nothing is stored under *certificate_id*.
        """
        return self._storage.get(self._storage_key(certificate_id))

    # ------------------------------------------------------------------
    # Deletion / invalidation
    # ------------------------------------------------------------------

    def delete(self, certificate_id: str) -> bool:
        """Remove a stored bundle and its full-certificate cache entry.

        The fingerprint-only cache entry is left to expire on its own.

        Returns
        -------
        bool
            True if a record was removed from storage.
        """
        existed = self._storage.delete(self._storage_key(certificate_id))
        self._cert_cache.delete(certificate_id)
        logger.info("Deleted certificate %s (existed=%s)", certificate_id, existed)
        return existed

    def flush_cache(self) -> None:
        """Drop every cached certificate and fingerprint."""
        self._cert_cache.flush()
        self._fingerprint_cache.flush()

    def flush_storage(self) -> bool:
        """Delete every record in this manager's storage namespace."""
        self.flush_cache()
        return self._storage.delete_matching(glob.escape(self._settings.storage_prefix) + "*")

    # ------------------------------------------------------------------
    # Trust
    # ------------------------------------------------------------------

    def build_trust_pool(self, certificate_ids: Iterable[str]) -> TrustPool:
        """Collect the public leaf certificates of *certificate_ids* as anchors.

        Unresolvable identifiers, bundles holding a private key and
        public-key-only bundles are skipped.
        """
        pool = TrustPool()
        for cert in self.resolve(certificate_ids, CertificateMode.PUBLIC):
            if cert is not None and cert.leaf is not None:
                pool.add(cert.leaf)
        return pool

    def validate_peer(
        self,
        certificate_ids: Iterable[str],
        handshake: HandshakeInfo | None,
    ) -> str:
        """Check the peer's leaf certificate against an allow-list.

        Parameters
        ----------
        certificate_ids:
            Identifiers of the allowed (public) certificates.
        handshake:
            TLS state of the connection, or None if TLS is not in use.

        Returns
        -------
        str
            Fingerprint of the accepted peer certificate.

        Raises
        ------
        NoTLSError
            If no TLS handshake took place.
        NoPeerCertificateError
            If the peer presented no certificate.
        UntrustedPeerError
            If no allowed certificate matches. With ``fail_open`` enabled
            this is only raised when every allow-list entry resolved.
        """
        if handshake is None or not handshake.completed:
            raise NoTLSError("TLS not enabled")
        leaf = handshake.leaf
        if leaf is None:
            raise NoPeerCertificateError("Client TLS certificate is required")

        fingerprint = hex_sha256(leaf)
        unresolved: list[str] = []
        for entry in self.resolve_entries(certificate_ids, CertificateMode.PUBLIC):
            if not entry.resolved:
                unresolved.append(entry.identifier)
                continue
            if entry.value is not None and entry.value.fingerprint == fingerprint:
                return fingerprint

        if unresolved and self._settings.fail_open:
            logger.warning(
                "Accepting peer certificate %s because allow-list entries could not be resolved: %s",
                fingerprint,
                ", ".join(unresolved),
            )
            return fingerprint

        raise UntrustedPeerError(fingerprint)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _storage_key(self, certificate_id: str) -> str:
        return self._settings.storage_prefix + certificate_id

    def _read(self, certificate_id: str) -> bytes:
        """Fetch raw bytes from storage or from a local file."""
        if is_content_identifier(certificate_id):
            try:
                return self._storage.get(self._storage_key(certificate_id))
            except CertificateError as exc:
                logger.warning("Can't retrieve certificate %s from storage: %s", certificate_id, exc)
                raise

        try:
            return Path(certificate_id).read_bytes()
        except FileNotFoundError as exc:
            logger.error("Certificate file %s does not exist", certificate_id)
            raise NotFoundError(certificate_id) from exc
        except (OSError, ValueError) as exc:
            # ValueError covers paths the OS cannot represent, e.g. embedded NUL
            logger.error("Error while reading certificate from file %s: %s", certificate_id, exc)
            raise StorageError(f"Cannot read {certificate_id!r}: {exc}") from exc

    def _load(self, certificate_id: str) -> ParsedCertificate:
        raw = self._read(certificate_id)
        try:
            return parse_certificate_bundle(raw, self._settings.secret)
        except CertificateError as exc:
            logger.error("Error while parsing certificate %s: %s", certificate_id, exc)
            logger.debug("Failed certificate: %r", raw)
            raise


__all__ = ["CertificateManager", "Resolution"]
