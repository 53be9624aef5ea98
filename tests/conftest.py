"""Shared key and certificate factories for the certvault test suite."""
from __future__ import annotations

import datetime
from typing import Callable, Iterator

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from certvault.certificates.manager import CertificateManager
from certvault.config import ManagerSettings
from certvault.storage.memory import MemoryStorage

SECRET = "test-secret"

CertFactory = Callable[..., x509.Certificate]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Keys (expensive, shared per session)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def make_cert() -> CertFactory:
    """Return a factory for self-signed certificates."""

    def _make(
        key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey,
        common_name: str = "test.example.com",
        dns_names: list[str] | None = None,
    ) -> x509.Certificate:
        now = datetime.datetime.now(datetime.timezone.utc)
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        builder = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(minutes=1))
            .not_valid_after(now + datetime.timedelta(days=30))
        )
        if dns_names:
            builder = builder.add_extension(
                x509.SubjectAlternativeName([x509.DNSName(n) for n in dns_names]),
                critical=False,
            )
        return builder.sign(key, hashes.SHA256())

    return _make


@pytest.fixture(scope="session")
def rsa_cert(make_cert: CertFactory, rsa_key: rsa.RSAPrivateKey) -> x509.Certificate:
    return make_cert(rsa_key, "rsa.example.com", dns_names=["rsa.example.com", "alt.example.com"])


@pytest.fixture(scope="session")
def other_cert(make_cert: CertFactory, other_rsa_key: rsa.RSAPrivateKey) -> x509.Certificate:
    return make_cert(other_rsa_key, "other.example.com")


@pytest.fixture(scope="session")
def ec_cert(make_cert: CertFactory, ec_key: ec.EllipticCurvePrivateKey) -> x509.Certificate:
    return make_cert(ec_key, "ec.example.com")


# ---------------------------------------------------------------------------
# PEM helpers
# ---------------------------------------------------------------------------


def cert_pem(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


def cert_der(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.DER)


def key_pem(
    key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey,
    fmt: serialization.PrivateFormat = serialization.PrivateFormat.TraditionalOpenSSL,
) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=fmt,
        encryption_algorithm=serialization.NoEncryption(),
    )


def key_der(
    key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey,
    fmt: serialization.PrivateFormat = serialization.PrivateFormat.TraditionalOpenSSL,
) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=fmt,
        encryption_algorithm=serialization.NoEncryption(),
    )


def public_key_pem(key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey) -> bytes:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_key_der(key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey) -> bytes:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def settings() -> ManagerSettings:
    return ManagerSettings(secret=SECRET)


@pytest.fixture()
def manager(
    storage: MemoryStorage, settings: ManagerSettings, clock: FakeClock
) -> Iterator[CertificateManager]:
    with CertificateManager(storage, settings, clock=clock) as mgr:
        yield mgr
