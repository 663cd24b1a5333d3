"""Registry access: credentials, manifest descriptors and digests."""

from .client import RegistryClient
from .credentials import BearerAuth, parse_docker_config, resolve_credentials
from .digests import fetch_digests

__all__ = [
    "RegistryClient",
    "BearerAuth",
    "parse_docker_config",
    "resolve_credentials",
    "fetch_digests",
]
