"""Tests for certvault.certificates.parsed and metadata."""
from __future__ import annotations

import pytest

from certvault.certificates.metadata import CertificateMeta, extract_metadata
from certvault.certificates.parsed import (
    CertificateMode,
    ParsedCertificate,
    can_be_listed,
    parse_certificate_bundle,
)
from certvault.crypto.fingerprint import hex_sha256
from certvault.crypto.keys import PrivateKey, encrypt_private_key
from certvault.crypto.pem import encode_block, iter_blocks
from certvault.errors import (
    DecryptionError,
    EmptyBundleError,
    KeyParseError,
    MalformedInputError,
    MixedContentError,
)

from conftest import SECRET, cert_der, cert_pem, public_key_der, public_key_pem


def _stored_bundle(cert, key) -> bytes:
    return cert_pem(cert) + encrypt_private_key(PrivateKey.from_key(key), SECRET)


class TestParseCertificateBundle:
    def test_chain_only(self, rsa_cert, other_cert) -> None:
        parsed = parse_certificate_bundle(cert_pem(rsa_cert) + cert_pem(other_cert), SECRET)
        assert parsed.chain == (cert_der(rsa_cert), cert_der(other_cert))
        assert parsed.leaf == rsa_cert
        assert parsed.fingerprint == hex_sha256(cert_der(rsa_cert))
        assert parsed.has_private_key is False
        assert parsed.is_public_key_only is False

    def test_chain_with_encrypted_key(self, rsa_cert, rsa_key) -> None:
        parsed = parse_certificate_bundle(_stored_bundle(rsa_cert, rsa_key), SECRET)
        assert parsed.has_private_key is True
        assert parsed.private_key == PrivateKey.from_key(rsa_key)

    def test_wrong_secret_fails(self, rsa_cert, rsa_key) -> None:
        with pytest.raises((DecryptionError, KeyParseError)):
            parse_certificate_bundle(_stored_bundle(rsa_cert, rsa_key), "wrong-secret")

    def test_public_key_only(self, ec_key) -> None:
        parsed = parse_certificate_bundle(public_key_pem(ec_key), SECRET)
        assert parsed.is_public_key_only is True
        assert parsed.public_key == public_key_der(ec_key)
        assert parsed.fingerprint == hex_sha256(public_key_der(ec_key))
        assert parsed.chain == ()

    def test_mixed_content_rejected(self, rsa_cert, ec_key) -> None:
        with pytest.raises(MixedContentError):
            parse_certificate_bundle(cert_pem(rsa_cert) + public_key_pem(ec_key), SECRET)

    def test_empty_bundle_rejected(self) -> None:
        with pytest.raises(EmptyBundleError, match="CERTIFICATE or PUBLIC KEY"):
            parse_certificate_bundle(encode_block("X509 CRL", b"\x30\x00"), SECRET)

    def test_non_pem_rejected(self) -> None:
        with pytest.raises(MalformedInputError):
            parse_certificate_bundle(b"not pem", SECRET)

    def test_corrupt_certificate_rejected(self) -> None:
        with pytest.raises(MalformedInputError):
            parse_certificate_bundle(encode_block("CERTIFICATE", b"\x30\x03\x02\x01\x00"), SECRET)

    def test_corrupt_public_key_rejected(self) -> None:
        with pytest.raises(MalformedInputError):
            parse_certificate_bundle(encode_block("PUBLIC KEY", b"\x30\x03\x02\x01\x00"), SECRET)


class TestDescriptors:
    def test_certificate_descriptors(self, rsa_cert) -> None:
        parsed = parse_certificate_bundle(cert_pem(rsa_cert), SECRET)
        assert parsed.subject == "CN=rsa.example.com"
        assert parsed.issuer == "CN=rsa.example.com"
        assert parsed.dns_names == ["rsa.example.com", "alt.example.com"]
        assert parsed.not_before == rsa_cert.not_valid_before_utc
        assert parsed.not_after == rsa_cert.not_valid_after_utc

    def test_certificate_without_san(self, other_cert) -> None:
        parsed = parse_certificate_bundle(cert_pem(other_cert), SECRET)
        assert parsed.dns_names == []

    def test_public_key_descriptors(self, ec_key) -> None:
        parsed = parse_certificate_bundle(public_key_pem(ec_key), SECRET)
        assert parsed.subject == f"Public Key: {parsed.fingerprint}"
        assert parsed.issuer == ""
        assert parsed.not_before is None
        assert parsed.not_after is None
        assert parsed.dns_names == []

    def test_to_pem_excludes_private_key(self, rsa_cert, rsa_key) -> None:
        parsed = parse_certificate_bundle(_stored_bundle(rsa_cert, rsa_key), SECRET)
        assert [b.der for b in iter_blocks(parsed.to_pem())] == [cert_der(rsa_cert)]

    def test_to_pem_public_key(self, ec_key) -> None:
        parsed = parse_certificate_bundle(public_key_pem(ec_key), SECRET)
        [block] = iter_blocks(parsed.to_pem())
        assert block.label == "PUBLIC KEY"
        assert block.der == public_key_der(ec_key)


class TestCanBeListed:
    @pytest.fixture()
    def with_key(self, rsa_cert, rsa_key) -> ParsedCertificate:
        return parse_certificate_bundle(_stored_bundle(rsa_cert, rsa_key), SECRET)

    @pytest.fixture()
    def without_key(self, rsa_cert) -> ParsedCertificate:
        return parse_certificate_bundle(cert_pem(rsa_cert), SECRET)

    def test_private_mode(self, with_key, without_key) -> None:
        assert can_be_listed(with_key, CertificateMode.PRIVATE) is True
        assert can_be_listed(without_key, CertificateMode.PRIVATE) is False

    def test_public_mode(self, with_key, without_key) -> None:
        assert can_be_listed(with_key, CertificateMode.PUBLIC) is False
        assert can_be_listed(without_key, CertificateMode.PUBLIC) is True

    def test_any_mode(self, with_key, without_key) -> None:
        assert can_be_listed(with_key, CertificateMode.ANY) is True
        assert can_be_listed(without_key, CertificateMode.ANY) is True


class TestExtractMetadata:
    def test_certificate_metadata(self, rsa_cert, rsa_key) -> None:
        parsed = parse_certificate_bundle(_stored_bundle(rsa_cert, rsa_key), SECRET)
        meta = extract_metadata(parsed, "orgA:" + parsed.fingerprint)
        assert isinstance(meta, CertificateMeta)
        assert meta.id == "orgA:" + parsed.fingerprint
        assert meta.fingerprint == parsed.fingerprint
        assert meta.has_private is True
        assert meta.subject == "CN=rsa.example.com"
        assert meta.dns_names == ["rsa.example.com", "alt.example.com"]
        assert meta.not_after == rsa_cert.not_valid_after_utc

    def test_public_key_metadata(self, ec_key) -> None:
        parsed = parse_certificate_bundle(public_key_pem(ec_key), SECRET)
        meta = extract_metadata(parsed, parsed.fingerprint)
        assert meta.has_private is False
        assert meta.not_before is None
        assert meta.subject.startswith("Public Key: ")

    def test_metadata_serializes(self, rsa_cert) -> None:
        parsed = parse_certificate_bundle(cert_pem(rsa_cert), SECRET)
        data = extract_metadata(parsed, parsed.fingerprint).model_dump(mode="json")
        assert data["fingerprint"] == parsed.fingerprint
        assert isinstance(data["not_before"], str)
