"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

CertFactory = Callable[..., tuple[Path, Path]]


def create_self_signed_cert(
    directory: Path,
    *,
    common_name: str = "example.test",
    dns_names: Sequence[str] = (),
    ca: bool = False,
) -> tuple[Path, Path]:
    """Write a self-signed certificate and its RSA key; return ``(cert, key)`` paths."""
    now = datetime.now(UTC)
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=90))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    if dns_names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(name) for name in dns_names]),
            critical=False,
        )
    cert = builder.sign(key, hashes.SHA256())

    safe = common_name.replace(".", "_").replace("*", "wildcard")
    cert_path = directory / f"{safe}.pem"
    key_path = directory / f"{safe}.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return cert_path, key_path


@pytest.fixture
def make_cert(tmp_path: Path) -> CertFactory:
    """Return a factory writing self-signed certificates into ``tmp_path``."""

    def factory(
        common_name: str = "example.test",
        *,
        dns_names: Sequence[str] = (),
        ca: bool = False,
        directory: Path | None = None,
    ) -> tuple[Path, Path]:
        return create_self_signed_cert(
            directory or tmp_path,
            common_name=common_name,
            dns_names=dns_names,
            ca=ca,
        )

    return factory
