"""Domain models and failure taxonomy used across application layer boundaries."""

from .errors import (
	ChallengeFailedError,
	DeploymentError,
	DeploymentInProgressError,
	DomainUnreachableError,
	FailureDetail,
	FailureKind,
	RateLimitedError,
	RuntimeUnavailableError,
	ServiceStartFailedError,
)
from .models import Certificate, Domain, HealthSignal, IssuedCertificate, ServiceSpec, ServiceStatus
from .timeline import domain_record_stage_event, domain_timeline_stage_status

__all__ = [
	"Certificate",
	"ChallengeFailedError",
	"DeploymentError",
	"DeploymentInProgressError",
	"Domain",
	"DomainUnreachableError",
	"FailureDetail",
	"FailureKind",
	"HealthSignal",
	"IssuedCertificate",
	"RateLimitedError",
	"RuntimeUnavailableError",
	"ServiceSpec",
	"ServiceStatus",
	"ServiceStartFailedError",
	"domain_record_stage_event",
	"domain_timeline_stage_status",
]
