"""Registry digest lookup for trust verification."""

import json
from typing import Mapping, Optional

from ..core.context import logger_from_context
from ..core.types import Credential, Descriptor
from ..exceptions import RegistryError, UnknownResultError, ValidationFailedError
from ..utils.digest import decode_digest, validate_digest
from ..utils.reference import ImageReference
from .client import RegistryClient, is_image, is_index
from .credentials import resolve_credentials


async def get_descriptor(
    client: RegistryClient,
    ref: ImageReference,
    pull_credentials: Mapping[str, Credential],
) -> Descriptor:
    """Fetch a descriptor anonymously, falling back to the registry's pull credential.

    Anonymous access is tried first, the way the kubelet pulls public images
    even when a pull secret is present.

    Raises:
        UnknownResultError: If neither anonymous nor authenticated access works
        ValidationFailedError: If the pull credential is malformed
    """
    try:
        return await client.get_descriptor(ref)
    except RegistryError as e:
        credential = pull_credentials.get(ref.registry)
        if credential is None:
            raise UnknownResultError(f"get image descriptor anonymously: {e}") from e
        logger_from_context().debug(f"anonymous access to {ref.registry} failed, retrying with credentials")

    auth = resolve_credentials(credential)
    try:
        return await client.get_descriptor(ref, auth)
    except RegistryError as e:
        raise UnknownResultError(f"get image descriptor: {e}") from e


def _decode(digest: str, what: str) -> bytes:
    if not validate_digest(digest):
        raise UnknownResultError(f"{what} checksum error: invalid digest {digest!r}")
    try:
        return decode_digest(digest)
    except ValueError as e:
        raise UnknownResultError(f"{what} checksum error: {e}") from e


def get_index_digest(descriptor: Descriptor) -> bytes:
    """Raw digest bytes of a multi-architecture index."""
    return _decode(descriptor.digest, "index")


def get_image_digests(descriptor: Descriptor) -> tuple[bytes, bytes]:
    """Raw digest bytes of an image manifest and of its config blob.

    Deprecated: the config digest is only kept for images signed under the
    old scheme, which recorded the config digest instead of the manifest digest.

    Raises:
        UnknownResultError: If the manifest cannot be read or a digest is malformed
    """
    try:
        manifest = json.loads(descriptor.manifest)
        config_digest = manifest["config"]["digest"]
    except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError) as e:
        raise UnknownResultError(f"image manifest: {e}") from e

    if not isinstance(config_digest, str):
        raise UnknownResultError("image manifest: config digest is not a string")

    manifest_bytes = _decode(config_digest, "manifest")
    digest_bytes = _decode(descriptor.digest, "image")
    return digest_bytes, manifest_bytes


async def fetch_digests(
    client: RegistryClient,
    ref: ImageReference,
    pull_credentials: Mapping[str, Credential],
) -> tuple[bytes, Optional[bytes]]:
    """Fetch the registry's digest for an image reference.

    Args:
        client: Registry client with an open session
        ref: Parsed image reference
        pull_credentials: Credentials keyed by registry host

    Returns:
        (digest, legacy config digest or None for indexes), both raw bytes

    Raises:
        UnknownResultError: If the registry cannot be reached or returns corrupt data
        ValidationFailedError: If the credential is malformed or the reference
            is neither an image nor an image index
    """
    descriptor = await get_descriptor(client, ref, pull_credentials)

    if is_index(descriptor.media_type):
        return get_index_digest(descriptor), None

    if is_image(descriptor.media_type):
        return get_image_digests(descriptor)

    raise ValidationFailedError(f"not an image or image list: {descriptor.media_type}")
