"""Docker Registry API v2 async client for manifest descriptor lookups."""

import asyncio
import json
import re
from typing import Mapping, Optional

import aiohttp

from ..core.types import Descriptor
from ..exceptions import RegistryError
from ..utils.digest import calculate_digest
from ..utils.reference import ImageReference
from .credentials import Authenticator, BearerAuth

# Media types
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"

INDEX_MEDIA_TYPES = frozenset({OCI_IMAGE_INDEX, DOCKER_MANIFEST_LIST})
IMAGE_MEDIA_TYPES = frozenset({OCI_IMAGE_MANIFEST, DOCKER_MANIFEST_V2})

MANIFEST_ACCEPT = ", ".join(
    [OCI_IMAGE_INDEX, DOCKER_MANIFEST_LIST, OCI_IMAGE_MANIFEST, DOCKER_MANIFEST_V2]
)

CHALLENGE_PARAM_PATTERN = re.compile(r'(\w+)="([^"]*)"')

LOCAL_REGISTRIES = ("localhost", "127.0.0.1")


def is_index(media_type: str) -> bool:
    """Check if a media type is a multi-architecture index."""
    return media_type in INDEX_MEDIA_TYPES


def is_image(media_type: str) -> bool:
    """Check if a media type is a single image manifest."""
    return media_type in IMAGE_MEDIA_TYPES


def parse_bearer_challenge(header: str) -> Optional[dict[str, str]]:
    """Parse a WWW-Authenticate Bearer challenge.

    Args:
        header: WWW-Authenticate header value

    Returns:
        Dict with realm, service and scope keys, or None for other schemes

    Examples:
        parse_bearer_challenge('Bearer realm="https://ghcr.io/token",service="ghcr.io"')
        # {"realm": "https://ghcr.io/token", "service": "ghcr.io"}
    """
    if not header or not header.lower().startswith("bearer "):
        return None
    params = dict(CHALLENGE_PARAM_PATTERN.findall(header[len("bearer ") :]))
    if "realm" not in params:
        return None
    return params


class RegistryClient:
    """Docker Registry API v2 async client for anonymous and authenticated manifest reads."""

    def __init__(
        self,
        timeout: float = 30,
        insecure_registries: tuple[str, ...] = (),
        connector: Optional[aiohttp.TCPConnector] = None,
    ) -> None:
        """Initialize the registry client.

        Args:
            timeout: Request timeout in seconds
            insecure_registries: Registry hosts reached over plain http
            connector: aiohttp connector for connection pooling
        """
        self.timeout = timeout
        self.insecure_registries = insecure_registries
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "RegistryClient":
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

    def registry_url(self, registry: str) -> str:
        """Base URL for a registry host."""
        host = registry.split(":", 1)[0]
        if host in LOCAL_REGISTRIES or registry in self.insecure_registries:
            return f"http://{registry}"
        return f"https://{registry}"

    async def get_descriptor(
        self, ref: ImageReference, auth: Optional[Authenticator] = None
    ) -> Descriptor:
        """Fetch the manifest descriptor for a reference.

        Args:
            ref: Parsed image reference
            auth: Optional authenticator; None means anonymous

        Returns:
            Descriptor with media type, digest and raw manifest

        Raises:
            RegistryError: If the manifest cannot be fetched
        """
        url = f"{self.registry_url(ref.registry)}/v2/{ref.repository}/manifests/{ref.identifier}"
        headers = {"Accept": MANIFEST_ACCEPT}
        if auth is not None:
            headers["Authorization"] = auth.encode()

        try:
            status, resp_headers, body = await self._get(url, headers)

            if status == 401 and not isinstance(auth, BearerAuth):
                challenge = parse_bearer_challenge(resp_headers.get("WWW-Authenticate", ""))
                if challenge is not None:
                    token = await self._fetch_token(challenge, ref, auth)
                    headers["Authorization"] = BearerAuth(token).encode()
                    status, resp_headers, body = await self._get(url, headers)

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RegistryError(f"Failed to get manifest {ref}: {e!r}") from e

        if status != 200:
            raise RegistryError(f"Failed to get manifest {ref}: unexpected status {status}")

        media_type = resp_headers.get("Content-Type", "").split(";", 1)[0].strip()
        if not (is_index(media_type) or is_image(media_type)):
            media_type = _embedded_media_type(body) or media_type
        digest = calculate_digest(body)
        if ref.digest and ref.digest != digest:
            raise RegistryError(
                f"Manifest digest mismatch for {ref}: registry returned {digest}"
            )

        return Descriptor(media_type=media_type, digest=digest, manifest=body, size=len(body))

    async def _get(self, url: str, headers: dict[str, str]) -> tuple[int, Mapping[str, str], bytes]:
        async with self.session.get(url, headers=headers) as resp:
            body = await resp.read()
            return resp.status, resp.headers.copy(), body

    async def _fetch_token(
        self,
        challenge: dict[str, str],
        ref: ImageReference,
        auth: Optional[Authenticator],
    ) -> str:
        """Exchange credentials for a bearer token at the challenge realm.

        Raises:
            RegistryError: If the token endpoint fails or returns no token
        """
        params = {"scope": challenge.get("scope", f"repository:{ref.repository}:pull")}
        if challenge.get("service"):
            params["service"] = challenge["service"]

        async with self.session.get(challenge["realm"], params=params, auth=auth) as resp:
            if resp.status != 200:
                raise RegistryError(
                    f"Token request to {challenge['realm']} failed with status {resp.status}"
                )
            try:
                data = await resp.json(content_type=None)
            except ValueError as e:
                raise RegistryError(f"Token endpoint {challenge['realm']} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise RegistryError(f"Token endpoint {challenge['realm']} returned no token")
        token = data.get("token") or data.get("access_token")
        if not token:
            raise RegistryError(f"Token endpoint {challenge['realm']} returned no token")
        return token


def _embedded_media_type(body: bytes) -> Optional[str]:
    """Read the mediaType field some registries only declare inside the manifest."""
    try:
        manifest = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(manifest, dict):
        return manifest.get("mediaType")
    return None
