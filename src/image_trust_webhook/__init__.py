"""Image trust webhook - verifies pod images against a trust authority at admission time."""

__version__ = "0.1.0"

from .config import AppConfig, NotaryConfig, ServiceConfig, WebhookConfig, load_config
from .core.types import Credential, ValidationResult, worst_result
from .exceptions import (
    ClusterError,
    ConfigError,
    ImageTrustError,
    RegistryError,
    TrustAuthorityError,
    UnknownResultError,
    ValidationFailedError,
)
from .validate.image import ImageValidator

__all__ = [
    "AppConfig",
    "NotaryConfig",
    "ServiceConfig",
    "WebhookConfig",
    "load_config",
    "Credential",
    "ValidationResult",
    "worst_result",
    "ImageValidator",
    "ImageTrustError",
    "ValidationFailedError",
    "UnknownResultError",
    "RegistryError",
    "TrustAuthorityError",
    "ClusterError",
    "ConfigError",
]
