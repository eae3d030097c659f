"""Job layer package for deployment orchestration and readiness polling."""

from .deployment_lock import DeploymentLockRegistry
from .deployment_orchestrator import (
	SMOKE_TEST_TIMEOUT_SECONDS,
	DeploymentOrchestrator,
	DeploymentOrchestratorConfig,
)
from .health_poller import (
	DeploymentState,
	HealthPoller,
	HealthPollerConfig,
	HealthPollResult,
	PollPhase,
)
from .interfaces import DeploymentResult, JobOrchestratorPort, ValidationResult

__all__ = [
	"DeploymentLockRegistry",
	"DeploymentOrchestrator",
	"DeploymentOrchestratorConfig",
	"DeploymentResult",
	"DeploymentState",
	"HealthPollResult",
	"HealthPoller",
	"HealthPollerConfig",
	"JobOrchestratorPort",
	"PollPhase",
	"SMOKE_TEST_TIMEOUT_SECONDS",
	"ValidationResult",
]
