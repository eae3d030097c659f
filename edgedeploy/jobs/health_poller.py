"""Health-gated readiness polling for one deployment attempt."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from edgedeploy.adapters import HealthProbePort
from edgedeploy.domain import HealthSignal, ServiceSpec

logger = logging.getLogger(__name__)


class PollPhase(str, Enum):
    """Phases of one readiness polling attempt."""

    PENDING = "pending"
    POLLING = "polling"
    HEALTHY = "healthy"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


_TERMINAL_PHASES = frozenset({PollPhase.HEALTHY, PollPhase.TIMED_OUT, PollPhase.CANCELLED})


@dataclass(frozen=True)
class HealthPollerConfig:
    """Configuration values for readiness polling.

    Attributes:
        poll_interval_seconds: Delay between poll iterations.
        max_wait_seconds: Maximum readiness wait for one attempt.
    """

    poll_interval_seconds: float = 5.0
    max_wait_seconds: float = 180.0


@dataclass
class DeploymentState:
    """Mutable readiness record owned by one polling attempt.

    Attributes:
        services: Declared services in declared order.
        phase: Current attempt phase.
        healthy_services: Names confirmed healthy during this attempt.
        last_signals: Most recent signal per service name.
        iterations: Completed poll iterations.
    """

    services: tuple[ServiceSpec, ...]
    phase: PollPhase = PollPhase.PENDING
    healthy_services: set[str] = field(default_factory=set)
    last_signals: dict[str, HealthSignal] = field(default_factory=dict)
    iterations: int = 0

    def state_pending_services(self) -> list[ServiceSpec]:
        return [service for service in self.services if service.name not in self.healthy_services]

    def state_transition(self, phase: PollPhase) -> None:
        """Move to a new phase; terminal phases are final.

        Args:
            phase: Target phase.

        Raises:
            RuntimeError: Raised when the attempt already reached a terminal phase.
        """

        if self.phase in _TERMINAL_PHASES:
            raise RuntimeError(f"polling attempt already finished in phase {self.phase.value}")
        self.phase = phase


@dataclass(frozen=True)
class HealthPollResult:
    """Final outcome of one polling attempt.

    Attributes:
        phase: Terminal phase (`healthy`, `timed_out` or `cancelled`).
        healthy_services: Services confirmed healthy, in declared order.
        unhealthy_services: Services never confirmed healthy, in declared order.
        iterations: Number of poll iterations performed.
        elapsed_seconds: Attempt duration measured by the poller clock.
        last_signals: Most recent signal value per service name.
    """

    phase: PollPhase
    healthy_services: tuple[str, ...]
    unhealthy_services: tuple[str, ...]
    iterations: int
    elapsed_seconds: float
    last_signals: dict[str, str]

    def poll_result_as_dict(self) -> dict[str, object]:
        return {
            "phase": self.phase.value,
            "healthy_services": list(self.healthy_services),
            "unhealthy_services": list(self.unhealthy_services),
            "iterations": self.iterations,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "last_signals": dict(self.last_signals),
        }


class HealthPoller:
    """Sequential wait-then-poll loop gating deployment success on service health.

    Every iteration checks each still-pending service once, in declared order,
    then sleeps for the poll interval. A service confirmed healthy stays healthy
    for the rest of the attempt. The attempt ends `healthy` as soon as every
    service is confirmed, `timed_out` when the maximum wait (or a service's own
    readiness timeout) elapses first, and `cancelled` when the cancel event is set.
    """

    def __init__(
        self,
        probe: HealthProbePort,
        config: HealthPollerConfig,
        clock: Callable[[], float] | None = None,
        sleeper: Callable[[float], object] | None = None,
        cancel_event: threading.Event | None = None,
    ):
        """Initialize health poller.

        Args:
            probe: Health probe used for every service check.
            config: Polling configuration.
            clock: Optional monotonic clock in seconds.
            sleeper: Optional sleep function; defaults to waiting on the cancel event.
            cancel_event: Optional external cancellation signal.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies or config values are invalid.
        """

        if probe is None:
            raise ValueError("probe must not be None")
        if config.poll_interval_seconds <= 0:
            raise ValueError("config.poll_interval_seconds must be > 0")
        if config.max_wait_seconds <= 0:
            raise ValueError("config.max_wait_seconds must be > 0")

        self._probe = probe
        self._config = config
        self._clock = clock or time.monotonic
        self._cancel_event = cancel_event or threading.Event()
        self._sleeper = sleeper or self._cancel_event.wait

    def poller_cancel(self) -> None:
        """Request cancellation of the running attempt. Started services keep running."""

        self._cancel_event.set()

    def poller_wait_until_healthy(self, services: Sequence[ServiceSpec]) -> HealthPollResult:
        """Run one polling attempt for the declared services.

        Args:
            services: Declared services to gate on.

        Returns:
            HealthPollResult: Terminal attempt outcome naming every still-unhealthy service.

        Raises:
            RuntimeError: Probe failures count as not yet healthy and are not raised.
        """

        state = DeploymentState(services=tuple(services))
        started_at = self._clock()
        max_wait_seconds = float(self._config.max_wait_seconds)

        if not state.services:
            state.state_transition(PollPhase.HEALTHY)
            return self._poller_build_result(state, started_at)

        state.state_transition(PollPhase.POLLING)
        logger.info(
            "Waiting up to %ss for %s service(s) to become healthy",
            self._config.max_wait_seconds,
            len(state.services),
        )

        while True:
            elapsed_seconds = self._clock() - started_at
            if elapsed_seconds >= max_wait_seconds:
                state.state_transition(PollPhase.TIMED_OUT)
                break
            if self._cancel_event.is_set():
                state.state_transition(PollPhase.CANCELLED)
                break

            state.iterations += 1
            for service in state.state_pending_services():
                signal = self._poller_check_service(service)
                state.last_signals[service.name] = signal
                if signal is HealthSignal.HEALTHY:
                    state.healthy_services.add(service.name)
                    logger.info("Service %s is healthy", service.name)

            pending_services = state.state_pending_services()
            if not pending_services:
                state.state_transition(PollPhase.HEALTHY)
                break

            elapsed_seconds = self._clock() - started_at
            expired_services = [
                service.name
                for service in pending_services
                if service.readiness_timeout_seconds is not None
                and elapsed_seconds >= min(service.readiness_timeout_seconds, max_wait_seconds)
            ]
            if expired_services:
                logger.warning("Readiness timeout elapsed for: %s", ", ".join(expired_services))
                state.state_transition(PollPhase.TIMED_OUT)
                break

            logger.info(
                "Poll %s: %s/%s healthy, waiting on %s",
                state.iterations,
                len(state.healthy_services),
                len(state.services),
                ", ".join(service.name for service in pending_services),
            )
            remaining_seconds = max(0.0, max_wait_seconds - elapsed_seconds)
            self._sleeper(min(float(self._config.poll_interval_seconds), remaining_seconds))

        result = self._poller_build_result(state, started_at)
        if result.phase is PollPhase.HEALTHY:
            logger.info("All services are healthy after %s poll(s)", result.iterations)
        elif result.phase is PollPhase.TIMED_OUT:
            logger.error(
                "Services failed to become healthy within %ss: %s",
                self._config.max_wait_seconds,
                ", ".join(result.unhealthy_services),
            )
        else:
            logger.warning("Health polling cancelled; started services were left running")
        return result

    def _poller_check_service(self, service: ServiceSpec) -> HealthSignal:
        try:
            return self._probe.probe_check(service)
        except (ConnectionError, TimeoutError, OSError, RuntimeError) as error:
            logger.debug("Health check for %s failed: %s", service.name, error)
            return HealthSignal.UNKNOWN

    def _poller_build_result(self, state: DeploymentState, started_at: float) -> HealthPollResult:
        return HealthPollResult(
            phase=state.phase,
            healthy_services=tuple(service.name for service in state.services if service.name in state.healthy_services),
            unhealthy_services=tuple(service.name for service in state.state_pending_services()),
            iterations=state.iterations,
            elapsed_seconds=max(0.0, self._clock() - started_at),
            last_signals={name: signal.value for name, signal in state.last_signals.items()},
        )
