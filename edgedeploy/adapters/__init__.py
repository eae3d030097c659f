"""Adapter layer package for container runtime, certificate authority and probe boundaries."""

from .certbot_client import CertbotDockerClient
from .certbot_errors import certbot_classify_failure, certbot_error_for_output
from .challenge_listener import UvicornChallengeListener, listener_port_in_use
from .commands import CommandExecutor, adapter_run_command
from .compose_runner import DockerComposeServiceRunner, runner_parse_ps_output
from .errors import CommandExecutionError
from .health_probes import CONTAINER_TARGET_PREFIX, ServiceHealthProbe, probe_smoke_test_endpoints
from .interfaces import (
	CertificateAuthorityClientPort,
	ChallengeListenerPort,
	DomainReachabilityPort,
	EndpointCheck,
	HealthProbePort,
	ProxyReloaderPort,
	ReachabilityResult,
	ServiceRunnerPort,
)
from .nginx_reloader import DockerNginxReloader
from .reachability import PublicAddressReachabilityChecker, reachability_resolve_ipv4

__all__ = [
	"CONTAINER_TARGET_PREFIX",
	"CertbotDockerClient",
	"CertificateAuthorityClientPort",
	"ChallengeListenerPort",
	"CommandExecutionError",
	"CommandExecutor",
	"DockerComposeServiceRunner",
	"DockerNginxReloader",
	"DomainReachabilityPort",
	"EndpointCheck",
	"HealthProbePort",
	"ProxyReloaderPort",
	"PublicAddressReachabilityChecker",
	"ReachabilityResult",
	"ServiceHealthProbe",
	"ServiceRunnerPort",
	"UvicornChallengeListener",
	"adapter_run_command",
	"certbot_classify_failure",
	"certbot_error_for_output",
	"listener_port_in_use",
	"probe_smoke_test_endpoints",
	"reachability_resolve_ipv4",
	"runner_parse_ps_output",
]
