"""Registry credential resolution."""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Union
from urllib.parse import urlparse

import aiohttp

from ..core.types import Credential
from ..exceptions import ValidationFailedError
from ..utils.reference import normalize_registry


@dataclass(frozen=True)
class BearerAuth:
    """Registry bearer token authenticator."""

    token: str

    def encode(self) -> str:
        """Encode as an Authorization header value."""
        return f"Bearer {self.token}"


Authenticator = Union[aiohttp.BasicAuth, BearerAuth]


def resolve_credentials(credential: Credential) -> Authenticator:
    """Turn a pull credential into a concrete authenticator.

    Precedence: username/password, registry token, then base64 "user:pass" auth.

    Args:
        credential: Credential selected for the image's registry

    Returns:
        Basic or bearer authenticator

    Raises:
        ValidationFailedError: If the credential has no usable form
    """
    if credential.username and credential.password:
        try:
            return aiohttp.BasicAuth(credential.username, credential.password)
        except ValueError as e:
            raise ValidationFailedError(f"invalid username: {e}") from e

    if credential.registry_token:
        return BearerAuth(credential.registry_token)

    if credential.auth:
        try:
            decoded = base64.b64decode(credential.auth, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValidationFailedError(f"cannot decode base64 encoded auth: {e}") from e

        parts = decoded.split(":")
        if len(parts) != 2:
            raise ValidationFailedError("invalid auth format, expected username:password form")
        return aiohttp.BasicAuth(parts[0], parts[1])

    raise ValidationFailedError("unknown auth secret format")


def registry_key(server: str) -> str:
    """Normalize a docker config "auths" key to a registry host.

    Examples:
        registry_key("https://index.docker.io/v1/")  # "index.docker.io"
        registry_key("ghcr.io")                      # "ghcr.io"
    """
    if "://" in server:
        server = urlparse(server).netloc
    host = server.split("/", 1)[0]
    return normalize_registry(host)


def _credential_from_entry(entry: dict[str, Any]) -> Credential:
    return Credential(
        username=entry.get("username", "") or "",
        password=entry.get("password", "") or "",
        auth=entry.get("auth", "") or "",
        registry_token=entry.get("registrytoken", "") or "",
    )


def parse_docker_config(raw: Union[str, bytes]) -> dict[str, Credential]:
    """Parse a .dockerconfigjson payload into credentials keyed by registry host.

    Args:
        raw: JSON document with an "auths" mapping

    Returns:
        Mapping of registry host to Credential

    Raises:
        ValidationFailedError: If the payload is not a valid docker config
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationFailedError(f"invalid docker config json: {e}") from e

    if not isinstance(data, dict):
        raise ValidationFailedError("docker config json must be an object")

    auths = data.get("auths", {})
    if not isinstance(auths, dict):
        raise ValidationFailedError("docker config 'auths' must be an object")

    credentials = {}
    for server, entry in auths.items():
        if not isinstance(entry, dict):
            raise ValidationFailedError(f"invalid auth entry for {server}")
        credentials[registry_key(server)] = _credential_from_entry(entry)
    return credentials
