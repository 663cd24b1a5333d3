"""Image trust validation against the trust authority."""

from typing import Mapping, Optional, Protocol

from ..config import ServiceConfig
from ..core.context import bound_logger, log_start_time
from ..core.types import Credential
from ..exceptions import TrustAuthorityError, UnknownResultError, ValidationFailedError
from ..registry.client import RegistryClient
from ..registry.digests import fetch_digests
from ..trust.errors import classify_trust_error
from ..trust.notary import RepoFactory
from ..utils.digest import constant_time_compare
from ..utils.reference import ImageReference, parse_reference


class ImageValidatorService(Protocol):
    """Validates one container image."""

    async def validate(self, image: str, pull_credentials: Mapping[str, Credential]) -> None:
        ...


class ImageValidator:
    """Checks that an image's registry digest matches the digest the trust authority recorded."""

    def __init__(
        self,
        config: ServiceConfig,
        repo_factory: RepoFactory,
        registry_client: RegistryClient,
    ) -> None:
        """Initialize the validator.

        Args:
            config: Service configuration (trust authority and allow-list)
            repo_factory: Trust authority client factory
            registry_client: Registry client with an open session
        """
        self.config = config
        self.repo_factory = repo_factory
        self.registry_client = registry_client

    def is_image_allowed(self, image: str) -> bool:
        """Check if an image starts with an allow-listed registry/repository prefix."""
        return any(image.startswith(allowed) for allowed in self.config.allowed_registries)

    async def validate(self, image: str, pull_credentials: Mapping[str, Credential]) -> None:
        """Validate an image.

        The trust authority is queried before the registry so an unsigned image
        fails without a registry round trip.

        Args:
            image: Image reference as written in the pod spec
            pull_credentials: Credentials keyed by registry host

        Raises:
            ValidationFailedError: If the image is untrusted or malformed
            UnknownResultError: If the trust authority or registry is unavailable
        """
        with bound_logger(image=image) as logger:
            if self.is_image_allowed(image):
                logger.info("image validation skipped, because it's allowed")
                return

            ref = parse_reference(image)

            expected = await self._logged_get_notary_digest(ref)
            image_digest, manifest_digest = await self._logged_get_registry_digests(
                ref, pull_credentials
            )

            if constant_time_compare(image_digest, expected):
                return

            if manifest_digest is not None and constant_time_compare(manifest_digest, expected):
                logger.warning("deprecated: manifest hash was used for verification")
                return

            raise ValidationFailedError("unexpected image hash value")

    async def _logged_get_registry_digests(
        self, ref: ImageReference, pull_credentials: Mapping[str, Credential]
    ) -> tuple[bytes, Optional[bytes]]:
        close_log = log_start_time("request to image registry")
        try:
            return await fetch_digests(self.registry_client, ref, pull_credentials)
        finally:
            close_log()

    async def _logged_get_notary_digest(self, ref: ImageReference) -> bytes:
        close_log = log_start_time("request to notary")
        try:
            return await self._get_notary_digest(ref)
        finally:
            close_log()

    async def _get_notary_digest(self, ref: ImageReference) -> bytes:
        close_log = log_start_time("request to notary (new_repo_client)")
        try:
            repo = await self.repo_factory.new_repo_client(ref.name, self.config.notary)
        except TrustAuthorityError as e:
            raise UnknownResultError(str(e)) from e
        finally:
            close_log()

        close_log = log_start_time("request to notary (get_target_by_name)")
        try:
            target = await repo.get_target_by_name(ref.identifier)
        except TrustAuthorityError as e:
            raise classify_trust_error(e) from e
        finally:
            close_log()

        if not target.hashes:
            raise ValidationFailedError("image hash is missing")

        if len(target.hashes) > 1:
            raise ValidationFailedError("more than one hash for image")

        return next(iter(target.hashes.values()))
