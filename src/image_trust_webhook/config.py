"""Process configuration.

Configuration is loaded once at startup and passed explicitly to every
component; nothing reads it from module state.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError

CONFIG_FILE_ENV = "IMAGE_TRUST_CONFIG"


@dataclass(frozen=True)
class NotaryConfig:
    """Trust authority connection parameters."""

    url: str
    timeout: float = 30.0
    verify_tls: bool = True


@dataclass(frozen=True)
class ServiceConfig:
    """Image validation configuration shared by all concurrent validations."""

    notary: NotaryConfig
    allowed_registries: tuple[str, ...] = ()
    insecure_registries: tuple[str, ...] = ()
    registry_timeout: float = 30.0


@dataclass(frozen=True)
class WebhookConfig:
    """Admission webhook server configuration."""

    timeout: float = 2.0
    host: str = "0.0.0.0"
    port: int = 8443
    tls_cert_file: str | None = None
    tls_key_file: str | None = None


@dataclass(frozen=True)
class AppConfig:
    """Top-level configuration."""

    service: ServiceConfig
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    log_level: str = "INFO"


def _load_yaml(path: str | None, env: Mapping[str, str]) -> dict[str, Any]:
    config_file = path or env.get(CONFIG_FILE_ENV)
    if not config_file:
        return {}
    config_path = Path(config_file)
    if not config_path.exists():
        raise ConfigError(f"Config file does not exist: {config_file}")
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {config_file}")
    return data


def _split_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value)
    raise ConfigError(f"Expected a list or comma separated string, got: {value!r}")


def _positive_float(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got: {value!r}") from e
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got: {number}")
    return number


def load_config(path: str | None = None, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Load configuration from a YAML file with environment overrides.

    Args:
        path: Config file path; defaults to $IMAGE_TRUST_CONFIG
        environ: Environment mapping (default: os.environ)

    Returns:
        Immutable AppConfig

    Raises:
        ConfigError: If the file is unreadable or values are invalid

    Examples:
        # config.yaml
        # notary:
        #   url: https://notary.example.com
        # allowedRegistries: ["eu.gcr.io/trusted/"]
        # webhook:
        #   timeout: 2
        config = load_config("config.yaml")
    """
    env = os.environ if environ is None else environ
    data = _load_yaml(path, env)

    notary_data = data.get("notary") or {}
    webhook_data = data.get("webhook") or {}

    notary_url = env.get("IMAGE_TRUST_NOTARY_URL", notary_data.get("url"))
    if not notary_url:
        raise ConfigError("notary url is required")

    allowed = env.get("IMAGE_TRUST_ALLOWED_REGISTRIES", data.get("allowedRegistries"))
    insecure = env.get("IMAGE_TRUST_INSECURE_REGISTRIES", data.get("insecureRegistries"))

    notary = NotaryConfig(
        url=str(notary_url).rstrip("/"),
        timeout=_positive_float(notary_data.get("timeout", 30), "notary.timeout"),
        verify_tls=bool(notary_data.get("verifyTLS", True)),
    )
    service = ServiceConfig(
        notary=notary,
        allowed_registries=_split_list(allowed),
        insecure_registries=_split_list(insecure),
        registry_timeout=_positive_float(data.get("registryTimeout", 30), "registryTimeout"),
    )
    webhook = WebhookConfig(
        timeout=_positive_float(
            env.get("IMAGE_TRUST_WEBHOOK_TIMEOUT", webhook_data.get("timeout", 2)),
            "webhook.timeout",
        ),
        host=str(webhook_data.get("host", "0.0.0.0")),
        port=int(webhook_data.get("port", 8443)),
        tls_cert_file=webhook_data.get("tlsCertFile"),
        tls_key_file=webhook_data.get("tlsKeyFile"),
    )
    return AppConfig(
        service=service,
        webhook=webhook,
        log_level=str(env.get("IMAGE_TRUST_LOG_LEVEL", data.get("logLevel", "INFO"))),
    )
