"""Main module entrypoint for the edge-deploy command line.

This module loads configuration, wires components and maps outcomes to exit codes.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from dataclasses import asdict
from typing import Sequence

from edgedeploy.bootstrap import bootstrap_create_certificate_manager, bootstrap_create_deployment_orchestrator
from edgedeploy.certificates import CertificateResult
from edgedeploy.config import AppSettings, SettingsLoadError, config_configure_logging, config_load_settings
from edgedeploy.domain import DeploymentError

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2

RENEWAL_CRON_SCHEDULE = "0 */12 * * *"


def main_build_argument_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(
        prog="edge-deploy",
        description="Deploy a health-gated service group behind a TLS reverse proxy",
    )
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="deploy",
        choices=("deploy", "certificates", "renew"),
        help="Runtime command: `deploy` validates, starts and health-gates the service group, "
        "`certificates` ensures certificates, `renew` renews all certificates and reloads the proxy",
        type=str,
    )
    argument_parser.add_argument("--config", dest="config_file", type=str, help="JSON config file path")
    argument_parser.add_argument("--json", dest="json_output", action="store_true", help="Print JSON reports")
    argument_parser.add_argument("--stop", action="store_true", help="Stop the service group")
    argument_parser.add_argument("--status", action="store_true", help="Show service group status")
    argument_parser.add_argument("--logs", action="store_true", help="Show service group logs")
    argument_parser.add_argument("--follow", action="store_true", help="Follow logs (with --logs)")
    argument_parser.add_argument("--tail", type=int, help="Number of log lines (with --logs)")
    argument_parser.add_argument(
        "--no-wait",
        dest="no_wait",
        action="store_true",
        help="Return right after starting services without health polling",
    )
    argument_parser.add_argument(
        "--ensure-certificates",
        dest="ensure_certificates",
        action="store_true",
        help="Renew certificates before validating and deploying",
    )
    argument_parser.add_argument("--force", action="store_true", help="Request certificates even when valid")
    argument_parser.add_argument("--domain", type=str, help="Limit `certificates` to one configured domain")
    argument_parser.add_argument(
        "--print-cron",
        dest="print_cron",
        action="store_true",
        help="Print the crontab line for twice-daily renewal and exit",
    )
    return argument_parser


def main(argv: Sequence[str] | None = None) -> None:
    """Run selected command with validated startup configuration.

    Args:
        argv: Optional argument vector; defaults to `sys.argv[1:]`.

    Returns:
        None: Exits the process through `SystemExit` on failure.

    Raises:
        SystemExit: Raised with code 1 on command failure and 2 on configuration failure.
    """

    parsed_arguments = main_build_argument_parser().parse_args(argv)

    if parsed_arguments.command == "renew" and parsed_arguments.print_cron:
        print(main_renewal_cron_line(parsed_arguments.config_file))
        return

    try:
        settings = config_load_settings(config_file=parsed_arguments.config_file)
    except SettingsLoadError as error:
        config_configure_logging("INFO")
        logger.error("%s", error)
        raise SystemExit(EXIT_CONFIG_ERROR) from error
    config_configure_logging(settings.log_level)

    if parsed_arguments.command == "certificates":
        exit_code = main_run_certificates(settings, parsed_arguments)
    elif parsed_arguments.command == "renew":
        exit_code = main_run_renewal(settings, parsed_arguments)
    else:
        exit_code = main_run_deploy(settings, parsed_arguments)

    if exit_code != EXIT_SUCCESS:
        raise SystemExit(exit_code)


def main_renewal_cron_line(config_file: str | None = None) -> str:
    """Return the crontab entry that renews certificates twice a day.

    Args:
        config_file: Optional config file passed through to the scheduled command.

    Returns:
        str: Crontab line.
    """

    command = f"{sys.argv[0] or 'edge-deploy'} renew"
    if config_file:
        command += f" --config {config_file}"
    return f"{RENEWAL_CRON_SCHEDULE} {command}"


def main_run_certificates(settings: AppSettings, parsed_arguments: argparse.Namespace) -> int:
    certificate_manager = bootstrap_create_certificate_manager(settings)
    if not parsed_arguments.domain:
        results = certificate_manager.certificate_renew_all(force=parsed_arguments.force)
    else:
        try:
            domain = certificate_manager.certificate_domain_by_name(parsed_arguments.domain)
        except KeyError:
            logger.error("Domain %s is not configured", parsed_arguments.domain)
            return EXIT_FAILURE
        results = [certificate_manager.certificate_ensure(domain, force=parsed_arguments.force)]
    main_print_certificate_results(results, parsed_arguments.json_output)
    return EXIT_SUCCESS if all(result.certificate_result_succeeded() for result in results) else EXIT_FAILURE


def main_run_renewal(settings: AppSettings, parsed_arguments: argparse.Namespace) -> int:
    certificate_manager = bootstrap_create_certificate_manager(settings)
    results = certificate_manager.certificate_renew_all(force=parsed_arguments.force)
    main_print_certificate_results(results, parsed_arguments.json_output)
    return EXIT_SUCCESS if all(result.certificate_result_succeeded() for result in results) else EXIT_FAILURE


def main_run_deploy(settings: AppSettings, parsed_arguments: argparse.Namespace) -> int:
    """Run one `deploy` sub-action.

    Args:
        settings: Validated runtime settings.
        parsed_arguments: Parsed CLI arguments.

    Returns:
        int: Process exit code.

    Raises:
        RuntimeError: Runner failures are logged and mapped to exit code 1.
    """

    cancel_event = threading.Event()
    orchestrator = bootstrap_create_deployment_orchestrator(settings, cancel_event=cancel_event)

    try:
        if parsed_arguments.stop:
            orchestrator.job_stop()
            print("Service group stopped")
            return EXIT_SUCCESS
        if parsed_arguments.status:
            statuses = orchestrator.job_status()
            if parsed_arguments.json_output:
                print(json.dumps([asdict(status) for status in statuses], indent=2))
            else:
                for status in statuses:
                    health_text = f" ({status.health})" if status.health else ""
                    print(f"{status.name}: {status.state}{health_text}")
            return EXIT_SUCCESS
        if parsed_arguments.logs:
            output = orchestrator.job_logs(tail=parsed_arguments.tail, follow=parsed_arguments.follow)
            if output:
                print(output, end="" if output.endswith("\n") else "\n")
            return EXIT_SUCCESS
    except (RuntimeError, DeploymentError) as error:
        logger.error("%s", error)
        return EXIT_FAILURE

    if parsed_arguments.ensure_certificates:
        certificate_results = bootstrap_create_certificate_manager(settings).certificate_renew_all(
            force=parsed_arguments.force
        )
        main_print_certificate_results(certificate_results, parsed_arguments.json_output)

    main_install_cancel_handlers(cancel_event)
    job_name = "start" if parsed_arguments.no_wait else "deploy"
    execution_result = orchestrator.job_execute(job_name=job_name)

    if parsed_arguments.json_output:
        print(json.dumps(execution_result.deployment_as_dict(), indent=2))
    else:
        print(f"Deployment {execution_result.service_group}: {execution_result.status}")
        for failure in execution_result.failures:
            print(f"  {failure.kind.value} {failure.target}: {failure.detail}")
        for service_name, log_text in execution_result.captured_logs.items():
            print(f"--- last logs for {service_name} ---")
            print(log_text.rstrip())
        for check in execution_result.endpoint_checks:
            marker = "ok" if check.reachable else "unreachable"
            print(f"  endpoint {check.url}: {marker} ({check.detail})")

    return EXIT_SUCCESS if execution_result.deployment_succeeded() else EXIT_FAILURE


def main_install_cancel_handlers(cancel_event: threading.Event) -> None:
    """Route SIGINT and SIGTERM to the readiness cancel event.

    Args:
        cancel_event: Event observed by the health poller.
    """

    def _handle_signal(signal_number: int, _frame: object) -> None:
        logger.warning("Received signal %s; cancelling health polling", signal_number)
        cancel_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)


def main_print_certificate_results(results: Sequence[CertificateResult], json_output: bool) -> None:
    if json_output:
        print(json.dumps([result.certificate_result_as_dict() for result in results], indent=2))
        return
    for result in results:
        line = f"{result.domain}: {result.status}"
        if result.certificate is not None and result.status != "failed":
            line += f" (expires {result.certificate.expires_at_utc.date().isoformat()})"
        if result.failure is not None:
            line += f" [{result.failure.kind.value}] {result.failure.detail}"
        print(line)


if __name__ == "__main__":
    main()
