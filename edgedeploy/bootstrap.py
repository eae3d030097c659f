"""Runtime bootstrap wiring for settings-driven dependency assembly."""

from __future__ import annotations

import threading
from pathlib import Path

from edgedeploy.adapters import (
    CertbotDockerClient,
    DockerComposeServiceRunner,
    DockerNginxReloader,
    PublicAddressReachabilityChecker,
    ServiceHealthProbe,
    UvicornChallengeListener,
)
from edgedeploy.api import create_challenge_application
from edgedeploy.certificates import CertificateManager, CertificateManagerConfig, CertificateStore
from edgedeploy.config import AppSettings
from edgedeploy.domain import Domain, ServiceSpec
from edgedeploy.jobs import (
    DeploymentLockRegistry,
    DeploymentOrchestrator,
    DeploymentOrchestratorConfig,
    HealthPoller,
    HealthPollerConfig,
)


def bootstrap_build_domains(settings: AppSettings) -> tuple[Domain, ...]:
    """Build domain models from settings, in declared order.

    Args:
        settings: Validated runtime settings.

    Returns:
        tuple[Domain, ...]: TLS-required domains sharing the configured webroot.
    """

    certificate_root = Path(settings.certificate_root)
    return tuple(
        Domain(
            name=domain_name,
            challenge_path=Path(settings.challenge_webroot),
            certificate_directory=certificate_root / "live" / domain_name,
        )
        for domain_name in settings.domains
    )


def bootstrap_build_services(settings: AppSettings) -> tuple[ServiceSpec, ...]:
    return tuple(
        ServiceSpec(
            name=service.name,
            health_target=service.health_target,
            readiness_timeout_seconds=service.readiness_timeout_seconds,
        )
        for service in settings.services
    )


def bootstrap_create_service_runner(settings: AppSettings) -> DockerComposeServiceRunner:
    return DockerComposeServiceRunner(
        project_name=settings.service_group_name or Path.cwd().name,
        compose_file=settings.compose_file or "docker-compose.yml",
        env_file=settings.compose_env_file or None,
    )


def bootstrap_create_certificate_manager(settings: AppSettings) -> CertificateManager:
    """Assemble the certificate manager and its adapters from settings.

    Args:
        settings: Validated runtime settings.

    Returns:
        CertificateManager: Manager ready to ensure and renew certificates.

    Raises:
        ValueError: Raised when settings values are rejected by component constructors.
    """

    challenge_listener = None
    if settings.challenge_listener_enabled:
        challenge_listener = UvicornChallengeListener(
            application=create_challenge_application(webroots=[Path(settings.challenge_webroot)]),
            host=settings.challenge_listener_host,
            port=settings.challenge_listener_port,
        )

    reachability_checker = None
    if settings.reachability_policy != "ignore" and settings.public_ip_endpoints:
        reachability_checker = PublicAddressReachabilityChecker(public_ip_endpoints=settings.public_ip_endpoints)

    return CertificateManager(
        store=CertificateStore(root=settings.certificate_root),
        ca_client=CertbotDockerClient(
            work_dir=settings.certbot_work_dir,
            image=settings.certbot_image,
            staging=settings.certificate_authority_staging,
        ),
        config=CertificateManagerConfig(
            domains=bootstrap_build_domains(settings),
            certificate_email=settings.certificate_email,
            renewal_threshold_days=settings.renewal_threshold_days,
            reachability_policy=settings.reachability_policy,
        ),
        challenge_listener=challenge_listener,
        proxy_reloader=DockerNginxReloader(container_name=settings.proxy_container_name),
        reachability_checker=reachability_checker,
    )


def bootstrap_create_deployment_orchestrator(
    settings: AppSettings,
    cancel_event: threading.Event | None = None,
) -> DeploymentOrchestrator:
    """Assemble the deployment orchestrator and its adapters from settings.

    Args:
        settings: Validated runtime settings.
        cancel_event: Optional event that cancels readiness polling when set.

    Returns:
        DeploymentOrchestrator: Orchestrator ready to validate and deploy.

    Raises:
        ValueError: Raised when settings values are rejected by component constructors.
    """

    service_runner = bootstrap_create_service_runner(settings)
    health_poller = HealthPoller(
        probe=ServiceHealthProbe(
            service_runner=service_runner,
            request_timeout_seconds=settings.health_request_timeout_seconds,
        ),
        config=HealthPollerConfig(
            poll_interval_seconds=settings.poll_interval_seconds,
            max_wait_seconds=settings.max_wait_seconds,
        ),
        cancel_event=cancel_event,
    )
    return DeploymentOrchestrator(
        service_runner=service_runner,
        certificate_store=CertificateStore(root=settings.certificate_root),
        health_poller=health_poller,
        config=DeploymentOrchestratorConfig(
            service_group_name=settings.service_group_name,
            domains=bootstrap_build_domains(settings),
            certificate_email=settings.certificate_email,
            services=bootstrap_build_services(settings),
            compose_file=settings.compose_file,
            compose_env_file=settings.compose_env_file,
            required_environment_keys=tuple(settings.required_environment_keys),
            pull_images=settings.pull_images,
            log_tail_lines=settings.log_tail_lines,
            public_endpoints=tuple(settings.public_endpoints),
        ),
        lock_registry=DeploymentLockRegistry(lock_directory=settings.lock_directory),
    )
