"""Certbot adapter implementation for HTTP-01 webroot certificate requests."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final

from edgedeploy.domain import ChallengeFailedError, Domain, IssuedCertificate

from .certbot_errors import certbot_error_for_output
from .commands import CommandExecutor, adapter_run_command
from .errors import CommandExecutionError
from .interfaces import CertificateAuthorityClientPort

logger = logging.getLogger(__name__)


class CertbotDockerClient(CertificateAuthorityClientPort):
    """Certificate authority client running `certbot certonly --webroot` in a container.

    Certbot keeps its account, archive and renewal state in `work_dir`. Issued
    material is read back from `work_dir/live/<domain>/` and handed to the
    certificate store, which owns the installed layout.
    """

    _CONTAINER_WEBROOT: Final[str] = "/var/www/certbot"
    _CONTAINER_CONFIG_DIR: Final[str] = "/etc/letsencrypt"

    def __init__(
        self,
        work_dir: str,
        image: str = "certbot/certbot:latest",
        staging: bool = False,
        command_executor: CommandExecutor | None = None,
        request_timeout_seconds: float = 300.0,
    ):
        """Initialize certbot client.

        Args:
            work_dir: Host directory mounted as certbot's config directory.
            image: Certbot container image.
            staging: Use the certificate authority staging environment.
            command_executor: Optional `subprocess.run` compatible callable.
            request_timeout_seconds: Timeout for one certbot run.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when required config values are invalid.
        """

        normalized_work_dir = work_dir.strip()
        normalized_image = image.strip()
        if not normalized_work_dir:
            raise ValueError("work_dir must not be blank")
        if not normalized_image:
            raise ValueError("image must not be blank")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._work_dir = Path(normalized_work_dir).resolve()
        self._image = normalized_image
        self._staging = staging
        self._command_executor = command_executor
        self._request_timeout_seconds = request_timeout_seconds

    def ca_source_name(self) -> str:
        return "letsencrypt_staging" if self._staging else "letsencrypt"

    def ca_build_command(self, domain: Domain, email: str) -> list[str]:
        """Build the certbot container argument vector for one domain.

        Args:
            domain: Domain to certify.
            email: Registration email.

        Returns:
            list[str]: Complete `docker run` argument vector.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        command = [
            "docker",
            "run",
            "--rm",
            "-v",
            f"{Path(domain.challenge_path).resolve()}:{self._CONTAINER_WEBROOT}",
            "-v",
            f"{self._work_dir}:{self._CONTAINER_CONFIG_DIR}",
            self._image,
            "certonly",
            "--webroot",
            f"--webroot-path={self._CONTAINER_WEBROOT}",
            "--email",
            email,
            "--agree-tos",
            "--no-eff-email",
            "--non-interactive",
            "--force-renewal",
            "--cert-name",
            domain.name,
            "-d",
            domain.name,
        ]
        if self._staging:
            command.append("--staging")
        return command

    def ca_issue_certificate(self, domain: Domain, email: str) -> IssuedCertificate:
        """Run certbot for one domain and return the issued PEM material.

        Args:
            domain: Domain to certify.
            email: Registration email.

        Returns:
            IssuedCertificate: Issued chain and private key bytes.

        Raises:
            ChallengeFailedError: Raised when the challenge fails or certbot produced no files.
            DomainUnreachableError: Raised when the authority cannot reach the domain.
            RateLimitedError: Raised when the authority rate limits the request.
            ValueError: Raised when email is blank.
        """

        normalized_email = email.strip()
        if not normalized_email:
            raise ValueError("email must not be blank")

        Path(domain.challenge_path).mkdir(parents=True, exist_ok=True)
        self._work_dir.mkdir(parents=True, exist_ok=True)

        logger.info("Requesting certificate for %s from %s", domain.name, self.ca_source_name())
        try:
            adapter_run_command(
                self.ca_build_command(domain=domain, email=normalized_email),
                executor=self._command_executor,
                timeout_seconds=self._request_timeout_seconds,
            )
        except CommandExecutionError as error:
            if error.returncode is None:
                raise ChallengeFailedError(str(error), target=domain.name) from error
            raise certbot_error_for_output(domain_name=domain.name, output=error.output) from error

        live_directory = self._work_dir / "live" / domain.name
        try:
            fullchain_pem = (live_directory / "fullchain.pem").read_bytes()
            privkey_pem = (live_directory / "privkey.pem").read_bytes()
        except OSError as error:
            raise ChallengeFailedError(
                f"certbot reported success but no certificate was found in {live_directory}",
                target=domain.name,
            ) from error

        return IssuedCertificate(domain=domain.name, fullchain_pem=fullchain_pem, privkey_pem=privkey_pem)
