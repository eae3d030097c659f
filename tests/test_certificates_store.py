"""Tests for the filesystem certificate store."""

from __future__ import annotations

import os
import stat
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from edgedeploy.certificates import CertificateStore, store_parse_expiry
from edgedeploy.domain import Domain, IssuedCertificate


def _domain(root: Path, name: str = "a.example") -> Domain:
    return Domain(name=name, challenge_path=root / "www", certificate_directory=root / "live" / name)


def _issued(pem_factory, not_after: datetime, name: str = "a.example") -> IssuedCertificate:
    fullchain_pem, privkey_pem = pem_factory(name, not_after)
    return IssuedCertificate(domain=name, fullchain_pem=fullchain_pem, privkey_pem=privkey_pem)


def _assert_live_pair(domain: Domain, issued: IssuedCertificate) -> None:
    assert (domain.certificate_directory / "fullchain.pem").read_bytes() == issued.fullchain_pem
    assert (domain.certificate_directory / "privkey.pem").read_bytes() == issued.privkey_pem


def test_certificates_store_read_returns_none_when_pair_is_incomplete(tmp_path: Path, pem_factory) -> None:
    store = CertificateStore(root=str(tmp_path))
    domain = _domain(tmp_path)
    fullchain_pem, _ = pem_factory("a.example", datetime.now(timezone.utc) + timedelta(days=60))
    domain.certificate_directory.mkdir(parents=True)
    (domain.certificate_directory / "fullchain.pem").write_bytes(fullchain_pem)

    assert store.store_read(domain) is None
    assert store.store_read(_domain(tmp_path, "missing.example")) is None


def test_certificates_store_read_returns_none_for_unparsable_chain(tmp_path: Path) -> None:
    store = CertificateStore(root=str(tmp_path))
    domain = _domain(tmp_path)
    domain.certificate_directory.mkdir(parents=True)
    (domain.certificate_directory / "fullchain.pem").write_bytes(b"garbage")
    (domain.certificate_directory / "privkey.pem").write_bytes(b"garbage")

    assert store.store_read(domain) is None


def test_certificates_store_install_writes_pair_with_restricted_key_mode(tmp_path: Path, pem_factory) -> None:
    store = CertificateStore(root=str(tmp_path))
    domain = _domain(tmp_path)
    not_after = datetime(2027, 3, 1, tzinfo=timezone.utc)
    issued = _issued(pem_factory, not_after)

    certificate = store.store_install(domain, issued)

    assert certificate.fullchain_path == tmp_path / "live" / "a.example" / "fullchain.pem"
    assert certificate.expires_at_utc == not_after
    _assert_live_pair(domain, issued)
    assert stat.S_IMODE(os.stat(certificate.privkey_path).st_mode) == 0o600
    assert domain.certificate_directory.is_symlink()
    assert not os.path.isabs(os.readlink(domain.certificate_directory))
    assert sorted(path.name for path in domain.certificate_directory.iterdir()) == ["fullchain.pem", "privkey.pem"]
    assert [path.name for path in (tmp_path / "live").iterdir()] == ["a.example"]

    assert store.store_read(domain) == certificate


def test_certificates_store_install_rejects_material_for_another_domain(tmp_path: Path, pem_factory) -> None:
    store = CertificateStore(root=str(tmp_path))

    other_issued = _issued(pem_factory, datetime(2027, 3, 1, tzinfo=timezone.utc), "b.example")

    with pytest.raises(ValueError):
        store.store_install(_domain(tmp_path), other_issued)

    assert not (tmp_path / "live" / "a.example").exists()


def test_certificates_store_install_rejects_invalid_chain_and_keeps_previous_pair(
    tmp_path: Path,
    pem_factory,
) -> None:
    store = CertificateStore(root=str(tmp_path))
    domain = _domain(tmp_path)
    previous = _issued(pem_factory, datetime(2027, 3, 1, tzinfo=timezone.utc))
    store.store_install(domain, previous)

    with pytest.raises(ValueError):
        store.store_install(domain, IssuedCertificate(domain="a.example", fullchain_pem=b"broken", privkey_pem=b"key"))

    _assert_live_pair(domain, previous)


def test_certificates_store_failed_write_leaves_previous_pair_and_no_partial_version(
    tmp_path: Path,
    pem_factory,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A failure while writing the new chain must not replace either live file."""

    store = CertificateStore(root=str(tmp_path))
    domain = _domain(tmp_path)
    previous = _issued(pem_factory, datetime(2026, 2, 1, tzinfo=timezone.utc))
    store.store_install(domain, previous)
    replacement = _issued(pem_factory, datetime(2026, 5, 1, tzinfo=timezone.utc))

    real_fsync = os.fsync
    fsync_calls: list[int] = []

    def _failing_fsync(file_descriptor: int) -> None:
        fsync_calls.append(file_descriptor)
        if len(fsync_calls) == 2:
            raise OSError("disk full")
        real_fsync(file_descriptor)

    monkeypatch.setattr(os, "fsync", _failing_fsync)

    with pytest.raises(OSError, match="disk full"):
        store.store_install(domain, replacement)

    _assert_live_pair(domain, previous)
    assert len(list(store.store_archive_directory("a.example").iterdir())) == 1


def test_certificates_store_failed_switch_keeps_matching_previous_pair(
    tmp_path: Path,
    pem_factory,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Both new files are written; only the final swap fails."""

    store = CertificateStore(root=str(tmp_path))
    domain = _domain(tmp_path)
    previous = _issued(pem_factory, datetime(2026, 2, 1, tzinfo=timezone.utc))
    store.store_install(domain, previous)
    replacement = _issued(pem_factory, datetime(2026, 5, 1, tzinfo=timezone.utc))

    def _failing_replace(source, destination) -> None:
        _ = source, destination
        raise OSError("rename failed")

    monkeypatch.setattr(os, "replace", _failing_replace)

    with pytest.raises(OSError, match="rename failed"):
        store.store_install(domain, replacement)

    _assert_live_pair(domain, previous)
    assert store.store_read(domain).expires_at_utc == datetime(2026, 2, 1, tzinfo=timezone.utc)
    assert [path.name for path in (tmp_path / "live").iterdir()] == ["a.example"]
    assert len(list(store.store_archive_directory("a.example").iterdir())) == 1


def test_certificates_store_replaces_plain_directory_and_prunes_old_versions(tmp_path: Path, pem_factory) -> None:
    store = CertificateStore(root=str(tmp_path), retained_versions=2)
    domain = _domain(tmp_path)
    domain.certificate_directory.mkdir(parents=True)
    (domain.certificate_directory / "fullchain.pem").write_bytes(b"plain")
    (domain.certificate_directory / "privkey.pem").write_bytes(b"plain")

    installed: list[IssuedCertificate] = []
    for month in (2, 3, 4):
        issued = _issued(pem_factory, datetime(2026, month, 1, tzinfo=timezone.utc))
        store.store_install(domain, issued)
        installed.append(issued)

    _assert_live_pair(domain, installed[-1])
    assert len(list(store.store_archive_directory("a.example").iterdir())) == 2


def test_certificates_store_parse_expiry_uses_leaf_certificate(pem_factory) -> None:
    leaf_pem, _ = pem_factory("a.example", datetime(2026, 6, 1, tzinfo=timezone.utc))
    intermediate_pem, _ = pem_factory("intermediate", datetime(2030, 1, 1, tzinfo=timezone.utc))

    assert store_parse_expiry(leaf_pem + intermediate_pem) == datetime(2026, 6, 1, tzinfo=timezone.utc)


def test_certificates_store_rejects_invalid_arguments() -> None:
    with pytest.raises(ValueError):
        CertificateStore(root="  ")
    with pytest.raises(ValueError):
        CertificateStore(root="/srv/certs", retained_versions=0)
