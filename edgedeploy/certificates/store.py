"""Filesystem certificate store with atomic pair replacement."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Final

from cryptography import x509

from edgedeploy.domain import Certificate, Domain, IssuedCertificate

from .interfaces import CertificateStorePort

logger = logging.getLogger(__name__)

FULLCHAIN_FILE_NAME: Final[str] = "fullchain.pem"
PRIVKEY_FILE_NAME: Final[str] = "privkey.pem"
ARCHIVE_DIRECTORY_NAME: Final[str] = "archive"


def store_parse_expiry(fullchain_pem: bytes) -> datetime:
    """Return the leaf certificate `notAfter` timestamp of a PEM chain.

    Args:
        fullchain_pem: PEM chain bytes; the first certificate is the leaf.

    Returns:
        datetime: Timezone-aware UTC expiry timestamp.

    Raises:
        ValueError: Raised when no certificate can be parsed.
    """

    certificates = x509.load_pem_x509_certificates(fullchain_pem)
    if not certificates:
        raise ValueError("certificate chain is empty")
    return certificates[0].not_valid_after_utc


class CertificateStore(CertificateStorePort):
    """Certificate store serving `<domain.certificate_directory>/{fullchain,privkey}.pem`.

    Every installed pair is written into its own version directory under
    `<root>/archive/<domain>/`. The domain certificate directory is a relative
    symlink to the current version, so a pair is replaced by one `os.replace`
    of that link and readers see either the old pair or the new one.

    A certificate directory that is still a plain directory is moved into the
    archive right before the first link is put in its place. Only one writer
    is expected at a time.
    """

    def __init__(self, root: str, retained_versions: int = 2):
        """Initialize certificate store.

        Args:
            root: Store root directory.
            retained_versions: Installed versions kept per domain, current one included.

        Raises:
            ValueError: Raised when root is blank or retained_versions is below 1.
        """

        normalized_root = root.strip()
        if not normalized_root:
            raise ValueError("root must not be blank")
        if retained_versions < 1:
            raise ValueError("retained_versions must be >= 1")
        self._root = Path(normalized_root)
        self._retained_versions = retained_versions

    def store_archive_directory(self, domain_name: str) -> Path:
        return self._root / ARCHIVE_DIRECTORY_NAME / domain_name

    def store_read(self, domain: Domain) -> Certificate | None:
        directory = domain.certificate_directory
        fullchain_path = directory / FULLCHAIN_FILE_NAME
        privkey_path = directory / PRIVKEY_FILE_NAME
        if not fullchain_path.is_file() or not privkey_path.is_file():
            return None

        try:
            expires_at_utc = store_parse_expiry(fullchain_path.read_bytes())
        except (OSError, ValueError) as error:
            logger.warning("Unreadable certificate for %s at %s: %s", domain.name, fullchain_path, error)
            return None

        return Certificate(
            domain=domain.name,
            fullchain_path=fullchain_path,
            privkey_path=privkey_path,
            expires_at_utc=expires_at_utc,
        )

    def store_install(self, domain: Domain, issued: IssuedCertificate) -> Certificate:
        if issued.domain != domain.name:
            raise ValueError(f"issued certificate for {issued.domain} cannot be installed for {domain.name}")
        expires_at_utc = store_parse_expiry(issued.fullchain_pem)
        if not issued.privkey_pem.strip():
            raise ValueError("private key must not be empty")

        archive_directory = self.store_archive_directory(domain.name)
        archive_directory.mkdir(parents=True, exist_ok=True)
        version_stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        version_directory = Path(tempfile.mkdtemp(dir=archive_directory, prefix=f"{version_stamp}-1-"))
        try:
            os.chmod(version_directory, 0o755)
            _store_write_file(version_directory / PRIVKEY_FILE_NAME, issued.privkey_pem, 0o600)
            _store_write_file(version_directory / FULLCHAIN_FILE_NAME, issued.fullchain_pem, 0o644)
            self._store_switch_live_link(
                domain.certificate_directory,
                version_directory,
                archive_directory / f"{version_stamp}-0-previous",
            )
        except OSError:
            shutil.rmtree(version_directory, ignore_errors=True)
            raise

        self._store_prune_versions(archive_directory, version_directory)
        logger.info("Installed certificate for %s (expires %s)", domain.name, expires_at_utc.isoformat())
        return Certificate(
            domain=domain.name,
            fullchain_path=domain.certificate_directory / FULLCHAIN_FILE_NAME,
            privkey_path=domain.certificate_directory / PRIVKEY_FILE_NAME,
            expires_at_utc=expires_at_utc,
        )

    def _store_switch_live_link(self, live_path: Path, version_directory: Path, previous_path: Path) -> None:
        """Point the live certificate directory at a fully written version directory.

        Args:
            live_path: Domain certificate directory read by the proxy.
            version_directory: Version directory holding the new pair.
            previous_path: Archive path for a plain live directory being replaced.

        Raises:
            OSError: Raised when the link cannot be replaced; the previous pair stays live.
        """

        live_path.parent.mkdir(parents=True, exist_ok=True)
        temporary_link = live_path.parent / f".{live_path.name}.{uuid.uuid4().hex}.tmp"
        os.symlink(os.path.relpath(version_directory, live_path.parent), temporary_link)

        moved_plain_directory = False
        try:
            if live_path.is_dir() and not live_path.is_symlink():
                os.replace(live_path, previous_path)
                moved_plain_directory = True
            os.replace(temporary_link, live_path)
        except OSError:
            temporary_link.unlink(missing_ok=True)
            if moved_plain_directory:
                os.rename(previous_path, live_path)
            raise

    def _store_prune_versions(self, archive_directory: Path, current_version: Path) -> None:
        versions = sorted(
            path for path in archive_directory.iterdir() if path.is_dir() and not path.is_symlink()
        )
        for stale_version in versions[: -self._retained_versions]:
            if stale_version == current_version:
                continue
            try:
                shutil.rmtree(stale_version)
            except OSError as error:
                logger.warning("Could not remove old certificate version %s: %s", stale_version, error)


def _store_write_file(path: Path, payload: bytes, mode: int) -> None:
    file_descriptor = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
    with os.fdopen(file_descriptor, "wb") as handle:
        os.fchmod(handle.fileno(), mode)
        handle.write(payload)
        handle.flush()
        os.fsync(handle.fileno())
