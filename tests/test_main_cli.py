"""Tests for CLI command routing and exit codes."""

from __future__ import annotations

from pathlib import Path

import pytest

import edgedeploy.main as main_module
from edgedeploy.certificates import CertificateResult
from edgedeploy.domain import FailureDetail, FailureKind
from edgedeploy.jobs import DeploymentResult


class _FakeOrchestrator:
    def __init__(self, result: DeploymentResult):
        self._result = result
        self.executed: list[str] = []
        self.stopped = False

    def job_execute(self, job_name: str) -> DeploymentResult:
        self.executed.append(job_name)
        return self._result

    def job_stop(self) -> None:
        self.stopped = True


class _FakeCertificateManager:
    def __init__(self, results: list[CertificateResult]):
        self._results = results
        self.renew_calls: list[bool] = []

    def certificate_renew_all(self, force: bool = False) -> list[CertificateResult]:
        self.renew_calls.append(force)
        return self._results

    def certificate_domain_by_name(self, domain_name: str):
        raise KeyError(domain_name)


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(main_module, "main_install_cancel_handlers", lambda cancel_event: None)


def _patch_orchestrator(monkeypatch: pytest.MonkeyPatch, result: DeploymentResult) -> _FakeOrchestrator:
    orchestrator = _FakeOrchestrator(result)
    monkeypatch.setattr(
        main_module,
        "bootstrap_create_deployment_orchestrator",
        lambda settings, cancel_event=None: orchestrator,
    )
    return orchestrator


def _patch_certificate_manager(
    monkeypatch: pytest.MonkeyPatch,
    results: list[CertificateResult],
) -> _FakeCertificateManager:
    manager = _FakeCertificateManager(results)
    monkeypatch.setattr(main_module, "bootstrap_create_certificate_manager", lambda settings: manager)
    return manager


def test_main_config_load_failure_exits_with_code_2(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exit_info:
        main_module.main(["deploy", "--config", str(tmp_path / "missing.json")])

    assert exit_info.value.code == 2


def test_main_successful_deploy_returns_normally(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    orchestrator = _patch_orchestrator(monkeypatch, DeploymentResult(job_name="deploy", status="success"))

    main_module.main([])

    assert orchestrator.executed == ["deploy"]
    assert "success" in capsys.readouterr().out


def test_main_timed_out_deploy_exits_with_code_1(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    failed = DeploymentResult(
        job_name="deploy",
        status="failed",
        service_group="edge",
        failures=(FailureDetail(kind=FailureKind.TIMED_OUT, target="worker", detail="not healthy"),),
        captured_logs={"worker": "worker | boom\n"},
    )
    _patch_orchestrator(monkeypatch, failed)

    with pytest.raises(SystemExit) as exit_info:
        main_module.main(["deploy"])

    output = capsys.readouterr().out
    assert exit_info.value.code == 1
    assert "TimedOut worker" in output
    assert "worker | boom" in output


def test_main_no_wait_runs_start_job(monkeypatch: pytest.MonkeyPatch) -> None:
    orchestrator = _patch_orchestrator(monkeypatch, DeploymentResult(job_name="start", status="started"))

    main_module.main(["deploy", "--no-wait"])

    assert orchestrator.executed == ["start"]


def test_main_ensure_certificates_renews_before_deploying(monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _patch_certificate_manager(monkeypatch, [CertificateResult(domain="a.example", status="skipped")])
    orchestrator = _patch_orchestrator(monkeypatch, DeploymentResult(job_name="deploy", status="success"))

    main_module.main(["deploy", "--ensure-certificates"])

    assert manager.renew_calls == [False]
    assert orchestrator.executed == ["deploy"]


def test_main_stop_does_not_deploy(monkeypatch: pytest.MonkeyPatch) -> None:
    orchestrator = _patch_orchestrator(monkeypatch, DeploymentResult(job_name="deploy", status="success"))

    main_module.main(["deploy", "--stop"])

    assert orchestrator.stopped
    assert orchestrator.executed == []


def test_main_renew_failure_exits_with_code_1(monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _patch_certificate_manager(
        monkeypatch,
        [
            CertificateResult(
                domain="a.example",
                status="failed",
                failure=FailureDetail(kind=FailureKind.RATE_LIMITED, target="a.example", detail="slow down"),
            ),
            CertificateResult(domain="b.example", status="issued"),
        ],
    )

    with pytest.raises(SystemExit) as exit_info:
        main_module.main(["renew", "--force"])

    assert exit_info.value.code == 1
    assert manager.renew_calls == [True]


def test_main_certificates_for_unknown_domain_exits_with_code_1(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_certificate_manager(monkeypatch, [])

    with pytest.raises(SystemExit) as exit_info:
        main_module.main(["certificates", "--domain", "other.example"])

    assert exit_info.value.code == 1


def test_main_print_cron_emits_twice_daily_schedule(capsys) -> None:
    main_module.main(["renew", "--print-cron", "--config", "deploy.json"])

    output = capsys.readouterr().out.strip()
    assert output.startswith("0 */12 * * * ")
    assert output.endswith("renew --config deploy.json")
