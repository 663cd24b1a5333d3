"""Notary v1 trust authority client."""

import asyncio
import base64
import binascii
from typing import Any, Optional, Protocol

import aiohttp

from ..config import NotaryConfig
from ..core.types import Target
from ..exceptions import TrustAuthorityError

# Delegation roles are consulted before the top-level targets role
TARGET_ROLES = ("targets/releases", "targets")


class TrustRepository(Protocol):
    """Signed-target lookup for one repository."""

    async def get_target_by_name(self, name: str) -> Target:
        ...


class RepoFactory(Protocol):
    """Creates trust repository clients."""

    async def new_repo_client(self, gun: str, config: NotaryConfig) -> TrustRepository:
        ...


class NotaryRepository:
    """Reads TUF targets metadata of one globally unique name (GUN) from a Notary server."""

    def __init__(self, session: aiohttp.ClientSession, gun: str, config: NotaryConfig) -> None:
        self.session = session
        self.gun = gun
        self.config = config

    def role_url(self, role: str) -> str:
        """URL of a role's metadata file."""
        return f"{self.config.url}/v2/{self.gun}/_trust/tuf/{role}.json"

    async def _get_role(self, role: str) -> Optional[dict[str, Any]]:
        url = self.role_url(role)
        try:
            async with self.session.get(url, ssl=self.config.verify_tls) as resp:
                if resp.status == 404:
                    return None
                if resp.status != 200:
                    raise TrustAuthorityError(
                        f"Failed to get {role} metadata for {self.gun}: unexpected status {resp.status}"
                    )
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TrustAuthorityError(
                f"Failed to get {role} metadata for {self.gun}: {e!r}"
            ) from e
        except ValueError as e:
            raise TrustAuthorityError(f"Invalid {role} metadata for {self.gun}: {e}") from e

    def _signed_targets(self, role: str, metadata: Any) -> dict[str, Any]:
        signed = metadata.get("signed") if isinstance(metadata, dict) else None
        if not isinstance(signed, dict):
            raise TrustAuthorityError(f"Invalid {role} metadata for {self.gun}")
        targets = signed.get("targets") or {}
        if not isinstance(targets, dict):
            raise TrustAuthorityError(f"Invalid {role} metadata for {self.gun}")
        return targets

    async def get_target_by_name(self, name: str) -> Target:
        """Look up a signed target by tag.

        Raises:
            TrustAuthorityError: If the repository has no trust data, the target is
                not signed, or the server cannot be read
        """
        found_role = False
        for role in TARGET_ROLES:
            metadata = await self._get_role(role)
            if metadata is None:
                continue
            found_role = True
            entry = self._signed_targets(role, metadata).get(name)
            if entry is not None:
                return _parse_target(name, entry)

        if not found_role:
            raise TrustAuthorityError(f"{self.config.url} does not have trust data for {self.gun}")
        raise TrustAuthorityError(f"No valid trust data for {name}")


def _parse_target(name: str, entry: Any) -> Target:
    if not isinstance(entry, dict) or not isinstance(entry.get("hashes") or {}, dict):
        raise TrustAuthorityError(f"Invalid target entry for {name}")

    hashes = {}
    for algorithm, encoded in (entry.get("hashes") or {}).items():
        try:
            hashes[algorithm] = base64.b64decode(encoded, validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise TrustAuthorityError(f"Invalid {algorithm} hash for target {name}: {e}") from e

    try:
        length = int(entry.get("length", 0))
    except (TypeError, ValueError) as e:
        raise TrustAuthorityError(f"Invalid length for target {name}: {e}") from e
    return Target(name=name, hashes=hashes, length=length)


class NotaryRepoFactory:
    """Creates NotaryRepository clients that share one HTTP session."""

    def __init__(self, timeout: float = 30, connector: Optional[aiohttp.TCPConnector] = None) -> None:
        self.timeout = timeout
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "NotaryRepoFactory":
        """Enter async context manager."""
        if not self.session:
            self.session = aiohttp.ClientSession(
                connector=self.connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def new_repo_client(self, gun: str, config: NotaryConfig) -> NotaryRepository:
        """Create a client for one repository.

        Raises:
            TrustAuthorityError: If the factory session is not open
        """
        if self.session is None or self.session.closed:
            raise TrustAuthorityError("notary client session is not open")
        return NotaryRepository(self.session, gun, config)
