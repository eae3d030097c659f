"""Typed runtime settings with dotenv and config-file support."""

from __future__ import annotations

import json
import re
import shlex
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SettingsLoadError(RuntimeError):
    """Raised when runtime settings cannot be loaded or validated."""


class ServiceSettings(BaseModel):
    """Declared service entry of the managed service group.

    Attributes:
        name: Service name as known to docker compose.
        health_target: URL, `container:<name>` reference or shell command.
        readiness_timeout_seconds: Optional per-service readiness window.
    """

    name: str = Field(min_length=1)
    health_target: str = Field(min_length=1)
    readiness_timeout_seconds: float | None = Field(default=None, gt=0)

    @field_validator("health_target")
    @classmethod
    def _validate_health_target(cls, value: str) -> str:
        normalized_value = value.strip()
        if not normalized_value:
            raise ValueError("health_target must not be blank")
        if normalized_value.startswith(("http://", "https://", "container:")):
            return normalized_value
        try:
            command = shlex.split(normalized_value)
        except ValueError as error:
            raise ValueError(f"health_target command cannot be parsed: {error}") from error
        if not command or not command[0]:
            raise ValueError("health_target command must name a program")
        return normalized_value


class AppSettings(BaseSettings):
    """Application settings for certificate and deployment orchestration.

    Environment variable names map directly to field names in uppercase.
    Example: `certificate_email` reads from `CERTIFICATE_EMAIL`. List-valued
    fields are read from JSON-encoded environment values.

    Required orchestration keys (`domains`, `certificate_email`,
    `service_group_name`, `services`) default to empty values so that
    deployment validation can report every missing key at once.

    Attributes:
        log_level: Root logging level name.
        domains: Domain names that require TLS certificates.
        certificate_email: Registration email for the certificate authority.
        service_group_name: Compose project name of the managed service group.
        services: Declared services and their health targets.
        poll_interval_seconds: Delay between health poll iterations.
        max_wait_seconds: Maximum readiness wait for one deployment attempt.
        certificate_root: Certificate store root (`<root>/live/<domain>/`).
        challenge_webroot: Webroot directory for HTTP-01 challenge tokens.
        certbot_work_dir: Working directory for certbot account and archive state.
        certbot_image: Container image used to run certbot.
        certificate_authority_staging: Whether to use the CA staging environment.
        renewal_threshold_days: Renew certificates expiring within this many days.
        compose_file: Docker compose file path.
        compose_env_file: Env file passed to docker compose.
        required_environment_keys: Keys that must be non-blank in the compose env file.
        proxy_container_name: Reverse proxy container name used for reloads.
        challenge_listener_enabled: Whether to open a temporary port-80 listener for challenges.
        challenge_listener_host: Bind host for the challenge listener.
        challenge_listener_port: Bind port for the challenge listener.
        reachability_policy: Policy for DNS/public IP mismatches (`ignore`, `warn`, `fail`).
        public_ip_endpoints: Plain-text endpoints returning this machine's public IP.
        public_endpoints: Public URLs smoke-tested after a healthy deployment.
        pull_images: Whether to pull images before starting the service group.
        lock_directory: Directory holding per-service-group deployment lock files.
        log_tail_lines: Log lines captured per unhealthy service on timeout.
        health_request_timeout_seconds: Timeout for one health probe request.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    log_level: str = Field(default="INFO")
    domains: list[str] = Field(default_factory=list)
    certificate_email: str = Field(default="")
    service_group_name: str = Field(default="")
    services: list[ServiceSettings] = Field(default_factory=list)
    poll_interval_seconds: int = Field(default=5, gt=0)
    max_wait_seconds: int = Field(default=180, gt=0)
    certificate_root: str = Field(default="./certbot/conf")
    challenge_webroot: str = Field(default="./certbot/www")
    certbot_work_dir: str = Field(default="./certbot/work")
    certbot_image: str = Field(default="certbot/certbot:latest", min_length=1)
    certificate_authority_staging: bool = Field(default=False)
    renewal_threshold_days: int = Field(default=30, ge=0)
    compose_file: str = Field(default="docker-compose.yml")
    compose_env_file: str = Field(default=".env.stack")
    required_environment_keys: list[str] = Field(default_factory=list)
    proxy_container_name: str = Field(default="edge_nginx", min_length=1)
    challenge_listener_enabled: bool = Field(default=True)
    challenge_listener_host: str = Field(default="0.0.0.0")
    challenge_listener_port: int = Field(default=80, ge=1, le=65535)
    reachability_policy: Literal["ignore", "warn", "fail"] = Field(default="warn")
    public_ip_endpoints: list[str] = Field(
        default_factory=lambda: ["https://ifconfig.me/ip", "https://icanhazip.com"]
    )
    public_endpoints: list[str] = Field(default_factory=list)
    pull_images: bool = Field(default=True)
    lock_directory: str = Field(default="./.edge-deploy")
    log_tail_lines: int = Field(default=20, ge=1)
    health_request_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("domains", "required_environment_keys", "public_endpoints")
    @classmethod
    def _validate_string_list(cls, value: list[str]) -> list[str]:
        normalized_values: list[str] = []
        for item in value:
            stripped_item = item.strip()
            if stripped_item and stripped_item not in normalized_values:
                normalized_values.append(stripped_item)
        return normalized_values

    @field_validator("domains")
    @classmethod
    def _validate_domain_names(cls, value: list[str]) -> list[str]:
        return [domain_name.lower().rstrip(".") for domain_name in value]

    @field_validator("certificate_email", "service_group_name", "log_level")
    @classmethod
    def _validate_stripped_string(cls, value: str) -> str:
        return value.strip()

    @field_validator("services")
    @classmethod
    def _validate_unique_service_names(cls, value: list[ServiceSettings]) -> list[ServiceSettings]:
        seen_names: set[str] = set()
        for service in value:
            if service.name in seen_names:
                raise ValueError(f"duplicate service name: {service.name}")
            seen_names.add(service.name)
        return value


_CAMEL_CASE_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def config_normalize_key(key: str) -> str:
    """Convert a camelCase config-file key to the snake_case settings field name.

    Args:
        key: Raw config-file key (`maxWaitSeconds` or `max_wait_seconds`).

    Returns:
        str: Snake-case field name.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return _CAMEL_CASE_BOUNDARY.sub("_", key.strip()).lower()


def config_read_file(config_file: str) -> dict[str, Any]:
    """Read a JSON config file into settings keyword arguments.

    Args:
        config_file: Path to the JSON config file.

    Returns:
        dict[str, Any]: Normalized settings overrides.

    Raises:
        SettingsLoadError: Raised when the file is missing or not a JSON object.
    """

    config_path = Path(config_file)
    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as error:
        raise SettingsLoadError(f"Config file not found: {config_path}") from error
    except json.JSONDecodeError as error:
        raise SettingsLoadError(f"Config file is not valid JSON: {config_path}: {error}") from error

    if not isinstance(payload, dict):
        raise SettingsLoadError(f"Config file must contain a JSON object: {config_path}")

    normalized_payload: dict[str, Any] = {}
    for key, value in payload.items():
        normalized_key = config_normalize_key(str(key))
        if normalized_key == "services" and isinstance(value, list):
            value = [
                {config_normalize_key(str(item_key)): item_value for item_key, item_value in item.items()}
                if isinstance(item, dict)
                else item
                for item in value
            ]
        normalized_payload[normalized_key] = value
    return normalized_payload


def config_load_settings(config_file: str | None = None) -> AppSettings:
    """Load and validate runtime settings from environment, dotenv and config file.

    Config-file values take precedence over environment and dotenv values.

    Args:
        config_file: Optional JSON config file path.

    Returns:
        AppSettings: Validated runtime settings object.

    Raises:
        SettingsLoadError: Raised when settings are malformed or invalid.
    """

    overrides = config_read_file(config_file) if config_file else {}
    try:
        return AppSettings(**overrides)
    except ValidationError as error:
        raise SettingsLoadError(
            f"Startup configuration validation failed. Update .env, environment variables or config file. "
            f"Details: {error}"
        ) from error
