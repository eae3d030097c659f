"""Tests for the readiness polling state machine with a simulated clock."""

from __future__ import annotations

import threading

import pytest

from edgedeploy.adapters import ServiceHealthProbe
from edgedeploy.domain import HealthSignal, ServiceSpec
from edgedeploy.jobs import DeploymentState, HealthPoller, HealthPollerConfig, PollPhase


class _SimulatedClock:
    """Monotonic clock advanced only by the simulated sleeper."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return False


class _ScriptedProbe:
    """Probe double returning scripted signals per service and recording calls."""

    def __init__(self, scripts: dict[str, list[HealthSignal]], default: HealthSignal = HealthSignal.UNHEALTHY):
        self._scripts = {name: list(signals) for name, signals in scripts.items()}
        self._default = default
        self.calls: list[str] = []

    def probe_check(self, service: ServiceSpec) -> HealthSignal:
        self.calls.append(service.name)
        script = self._scripts.get(service.name)
        if script:
            return script.pop(0)
        return self._default


def _poller(probe, clock: _SimulatedClock, interval: float = 5, max_wait: float = 10, cancel_event=None):
    return HealthPoller(
        probe=probe,
        config=HealthPollerConfig(poll_interval_seconds=interval, max_wait_seconds=max_wait),
        clock=clock.clock,
        sleeper=clock.sleep,
        cancel_event=cancel_event,
    )


def test_jobs_poller_times_out_after_two_iterations_naming_unhealthy_service() -> None:
    clock = _SimulatedClock()
    probe = _ScriptedProbe({"api": [HealthSignal.HEALTHY]})
    services = [
        ServiceSpec(name="api", health_target="http://api/health"),
        ServiceSpec(name="worker", health_target="container:worker"),
    ]

    result = _poller(probe, clock).poller_wait_until_healthy(services)

    assert result.phase is PollPhase.TIMED_OUT
    assert result.iterations == 2
    assert result.unhealthy_services == ("worker",)
    assert result.healthy_services == ("api",)
    assert clock.sleeps == [5, 5]


def test_jobs_poller_healthy_services_are_not_rechecked() -> None:
    clock = _SimulatedClock()
    probe = _ScriptedProbe(
        {
            "api": [HealthSignal.HEALTHY, HealthSignal.UNHEALTHY],
            "worker": [HealthSignal.UNKNOWN, HealthSignal.HEALTHY],
        }
    )
    services = [ServiceSpec(name="api", health_target="x"), ServiceSpec(name="worker", health_target="y")]

    result = _poller(probe, clock, max_wait=60).poller_wait_until_healthy(services)

    assert result.phase is PollPhase.HEALTHY
    assert result.iterations == 2
    assert probe.calls == ["api", "worker", "worker"]
    assert result.unhealthy_services == ()


def test_jobs_poller_all_healthy_on_first_iteration_does_not_sleep() -> None:
    clock = _SimulatedClock()
    probe = _ScriptedProbe({}, default=HealthSignal.HEALTHY)

    result = _poller(probe, clock).poller_wait_until_healthy([ServiceSpec(name="api", health_target="x")])

    assert result.phase is PollPhase.HEALTHY
    assert result.iterations == 1
    assert clock.sleeps == []


def test_jobs_poller_without_services_is_immediately_healthy() -> None:
    clock = _SimulatedClock()
    probe = _ScriptedProbe({})

    result = _poller(probe, clock).poller_wait_until_healthy([])

    assert result.phase is PollPhase.HEALTHY
    assert result.iterations == 0
    assert probe.calls == []


def test_jobs_poller_probe_errors_count_as_not_yet_healthy() -> None:
    clock = _SimulatedClock()
    attempts: list[int] = []

    class _FlakyProbe:
        def probe_check(self, service: ServiceSpec) -> HealthSignal:
            _ = service
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("connection reset")
            return HealthSignal.HEALTHY

    result = _poller(_FlakyProbe(), clock, max_wait=60).poller_wait_until_healthy(
        [ServiceSpec(name="api", health_target="x")]
    )

    assert result.phase is PollPhase.HEALTHY
    assert result.iterations == 2


def test_jobs_poller_per_service_readiness_timeout_ends_attempt_early() -> None:
    clock = _SimulatedClock()
    probe = _ScriptedProbe({})
    services = [ServiceSpec(name="api", health_target="x", readiness_timeout_seconds=12)]

    result = _poller(probe, clock, interval=5, max_wait=180).poller_wait_until_healthy(services)

    assert result.phase is PollPhase.TIMED_OUT
    assert result.iterations == 4
    assert result.unhealthy_services == ("api",)
    assert clock.now < 180


def test_jobs_poller_cancellation_during_sleep_stops_polling() -> None:
    clock = _SimulatedClock()
    cancel_event = threading.Event()
    probe = _ScriptedProbe({})

    def _sleep_then_cancel(seconds: float) -> bool:
        clock.sleep(seconds)
        cancel_event.set()
        return True

    poller = HealthPoller(
        probe=probe,
        config=HealthPollerConfig(poll_interval_seconds=5, max_wait_seconds=180),
        clock=clock.clock,
        sleeper=_sleep_then_cancel,
        cancel_event=cancel_event,
    )

    result = poller.poller_wait_until_healthy([ServiceSpec(name="api", health_target="x")])

    assert result.phase is PollPhase.CANCELLED
    assert result.iterations == 1
    assert result.unhealthy_services == ("api",)


def test_jobs_poller_cancel_before_first_poll_skips_checks() -> None:
    clock = _SimulatedClock()
    probe = _ScriptedProbe({})
    poller = _poller(probe, clock)
    poller.poller_cancel()

    result = poller.poller_wait_until_healthy([ServiceSpec(name="api", health_target="x")])

    assert result.phase is PollPhase.CANCELLED
    assert result.iterations == 0
    assert probe.calls == []


def test_jobs_poller_rejects_invalid_config() -> None:
    with pytest.raises(ValueError):
        HealthPoller(probe=_ScriptedProbe({}), config=HealthPollerConfig(poll_interval_seconds=0))
    with pytest.raises(ValueError):
        HealthPoller(probe=_ScriptedProbe({}), config=HealthPollerConfig(max_wait_seconds=0))


def test_jobs_deployment_state_terminal_phase_is_final() -> None:
    state = DeploymentState(services=(ServiceSpec(name="api", health_target="x"),))
    state.state_transition(PollPhase.POLLING)
    state.state_transition(PollPhase.TIMED_OUT)

    with pytest.raises(RuntimeError):
        state.state_transition(PollPhase.HEALTHY)


class _NoContainersRunner:
    def runner_status(self) -> list:
        return []


@pytest.mark.parametrize("health_target", ["   ", "curl 'http://127.0.0.1:8000/health"])
def test_jobs_poller_unusable_command_target_times_out_instead_of_raising(health_target: str) -> None:
    clock = _SimulatedClock()
    probe = ServiceHealthProbe(service_runner=_NoContainersRunner())

    result = _poller(probe, clock).poller_wait_until_healthy([ServiceSpec(name="api", health_target=health_target)])

    assert result.phase is PollPhase.TIMED_OUT
    assert result.unhealthy_services == ("api",)
    assert result.last_signals == {"api": "unhealthy"}
