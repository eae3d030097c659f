"""Shared pytest fixtures for certificate material."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

PemFactory = Callable[[str, datetime], tuple[bytes, bytes]]


def _build_self_signed_pem(domain_name: str, not_after: datetime) -> tuple[bytes, bytes]:
    private_key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domain_name)])
    certificate = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=90))
        .not_valid_after(not_after)
        .sign(private_key, hashes.SHA256())
    )
    fullchain_pem = certificate.public_bytes(serialization.Encoding.PEM)
    privkey_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return fullchain_pem, privkey_pem


@pytest.fixture
def pem_factory() -> PemFactory:
    """Return a builder of self-signed `(fullchain_pem, privkey_pem)` pairs.

    Returns:
        PemFactory: Callable taking domain name and `notAfter` timestamp.
    """

    return _build_self_signed_pem


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
