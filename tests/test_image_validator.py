"""Tests for the image trust validation engine."""

import hashlib
import logging

import pytest

from image_trust_webhook.core.types import Target
from image_trust_webhook.exceptions import (
    RegistryError,
    TrustAuthorityError,
    UnknownResultError,
    ValidationFailedError,
)
from image_trust_webhook.registry.client import OCI_IMAGE_INDEX
from image_trust_webhook.validate.image import ImageValidator
from tests.helpers import (
    CONFIG_BLOB,
    FakeRegistryClient,
    FakeRepoFactory,
    make_descriptor,
    make_image_manifest,
    make_index_manifest,
    sha256_bytes,
)

IMAGE = "ghcr.io/org/app:v1"
GUN = "ghcr.io/org/app"
BODY = make_image_manifest()


def signed(digest: bytes, tag: str = "v1") -> FakeRepoFactory:
    return FakeRepoFactory({GUN: {tag: Target(name=tag, hashes={"sha256": digest})}})


@pytest.mark.asyncio
async def test_allowed_image_skips_network(service_config):
    """Test that allow-listed images are accepted without any lookups."""
    factory = FakeRepoFactory()
    registry = FakeRegistryClient()
    validator = ImageValidator(service_config, factory, registry)

    await validator.validate("allowed.io/trusted/app:v1", {})
    # Not even parsed
    await validator.validate("allowed.io/trusted/Not A Reference", {})

    assert factory.calls == []
    assert registry.calls == []


def test_allow_list_is_prefix_match(service_config):
    """Test that the allow-list matches string prefixes only."""
    validator = ImageValidator(service_config, FakeRepoFactory(), FakeRegistryClient())
    assert validator.is_image_allowed("allowed.io/trusted/app:v1")
    assert not validator.is_image_allowed("allowed.io/other/app:v1")
    assert not validator.is_image_allowed("mirror/allowed.io/trusted/app:v1")


@pytest.mark.asyncio
async def test_matching_digest(service_config):
    """Test that an image whose digest matches the signed digest is valid."""
    factory = signed(sha256_bytes(BODY))
    registry = FakeRegistryClient(make_descriptor(BODY))
    validator = ImageValidator(service_config, factory, registry)

    await validator.validate(IMAGE, {})

    assert factory.calls == [GUN]
    assert registry.calls == [None]


@pytest.mark.asyncio
@pytest.mark.parametrize("position", [0, 15, 31])
async def test_single_byte_difference(service_config, position):
    """Test that any single differing byte makes the image invalid."""
    expected = bytearray(sha256_bytes(BODY))
    expected[position] ^= 0x80
    validator = ImageValidator(
        service_config, signed(bytes(expected)), FakeRegistryClient(make_descriptor(BODY))
    )

    with pytest.raises(ValidationFailedError, match="unexpected image hash value"):
        await validator.validate(IMAGE, {})


@pytest.mark.asyncio
async def test_legacy_config_digest(service_config, caplog):
    """Test acceptance of images signed with their config digest."""
    validator = ImageValidator(
        service_config,
        signed(hashlib.sha256(CONFIG_BLOB).digest()),
        FakeRegistryClient(make_descriptor(BODY)),
    )

    with caplog.at_level(logging.WARNING):
        await validator.validate(IMAGE, {})

    assert "deprecated: manifest hash was used for verification" in caplog.text


@pytest.mark.asyncio
async def test_index_has_no_legacy_fallback(service_config):
    """Test that an index only matches its own digest."""
    index = make_index_manifest()
    validator = ImageValidator(
        service_config,
        signed(hashlib.sha256(CONFIG_BLOB).digest()),
        FakeRegistryClient(make_descriptor(index, OCI_IMAGE_INDEX)),
    )

    with pytest.raises(ValidationFailedError, match="unexpected image hash value"):
        await validator.validate(IMAGE, {})

    validator = ImageValidator(
        service_config,
        signed(sha256_bytes(index)),
        FakeRegistryClient(make_descriptor(index, OCI_IMAGE_INDEX)),
    )
    await validator.validate(IMAGE, {})


@pytest.mark.asyncio
async def test_missing_hash(service_config):
    """Test that a target without hashes is invalid."""
    factory = FakeRepoFactory({GUN: {"v1": Target(name="v1", hashes={})}})
    registry = FakeRegistryClient(make_descriptor(BODY))
    validator = ImageValidator(service_config, factory, registry)

    with pytest.raises(ValidationFailedError, match="image hash is missing"):
        await validator.validate(IMAGE, {})
    assert registry.calls == []


@pytest.mark.asyncio
async def test_more_than_one_hash(service_config):
    """Test that a target with several hashes is invalid."""
    digest = sha256_bytes(BODY)
    factory = FakeRepoFactory(
        {GUN: {"v1": Target(name="v1", hashes={"sha256": digest, "sha512": digest + digest})}}
    )
    validator = ImageValidator(service_config, factory, FakeRegistryClient(make_descriptor(BODY)))

    with pytest.raises(ValidationFailedError, match="more than one hash for image"):
        await validator.validate(IMAGE, {})


@pytest.mark.asyncio
async def test_unsigned_image_skips_registry(service_config):
    """Test that missing trust data fails before the registry is contacted."""
    registry = FakeRegistryClient(make_descriptor(BODY))
    validator = ImageValidator(service_config, FakeRepoFactory(), registry)

    with pytest.raises(ValidationFailedError, match="No valid trust data for v1"):
        await validator.validate(IMAGE, {})
    assert registry.calls == []


@pytest.mark.asyncio
async def test_trust_authority_unavailable(service_config):
    """Test that trust authority failures are unknown results."""
    registry = FakeRegistryClient(make_descriptor(BODY))
    validator = ImageValidator(
        service_config,
        FakeRepoFactory(error=TrustAuthorityError("connection refused")),
        registry,
    )

    with pytest.raises(UnknownResultError, match="connection refused"):
        await validator.validate(IMAGE, {})
    assert registry.calls == []


@pytest.mark.asyncio
async def test_repo_client_creation_failure(service_config):
    """Test that failing to create a trust client is an unknown result."""
    validator = ImageValidator(
        service_config,
        FakeRepoFactory(factory_error=TrustAuthorityError("session is not open")),
        FakeRegistryClient(make_descriptor(BODY)),
    )

    with pytest.raises(UnknownResultError, match="session is not open"):
        await validator.validate(IMAGE, {})


@pytest.mark.asyncio
async def test_registry_unavailable(service_config):
    """Test that an unreachable registry is an unknown result."""
    validator = ImageValidator(
        service_config,
        signed(sha256_bytes(BODY)),
        FakeRegistryClient(anonymous_error=RegistryError("connection refused")),
    )

    with pytest.raises(UnknownResultError, match="anonymously"):
        await validator.validate(IMAGE, {})


@pytest.mark.asyncio
async def test_unparseable_image(service_config):
    """Test that references without an explicit registry or tag are invalid."""
    factory = FakeRepoFactory()
    validator = ImageValidator(service_config, factory, FakeRegistryClient())

    with pytest.raises(ValidationFailedError, match="image name could not be parsed"):
        await validator.validate("nginx", {})
    assert factory.calls == []
