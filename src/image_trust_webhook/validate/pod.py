"""Pod-level validation: namespace opt-in, pull secrets and result aggregation."""

import base64
import binascii
from typing import Any, Protocol

from ..cluster import Cluster
from ..core.context import logger_from_context
from ..core.types import Credential, ValidationResult, worst_result
from ..exceptions import ClusterError, UnknownResultError, ValidationFailedError
from ..registry.credentials import parse_docker_config
from .image import ImageValidatorService

NAMESPACE_VALIDATION_LABEL = "namespaces.image-trust.io/validate"
NAMESPACE_VALIDATION_ENABLED = "enabled"

DOCKER_CONFIG_SECRET_TYPE = "kubernetes.io/dockerconfigjson"
DOCKER_CONFIG_KEY = ".dockerconfigjson"

CONTAINER_FIELDS = ("initContainers", "containers", "ephemeralContainers")


class PodValidator(Protocol):
    """Decides the validation result of a whole pod."""

    async def validate_pod(self, pod: dict[str, Any], namespace: dict[str, Any]) -> ValidationResult:
        ...


def is_validation_enabled(namespace: dict[str, Any]) -> bool:
    """Check if a namespace opted in to image validation."""
    labels = (namespace.get("metadata") or {}).get("labels") or {}
    return labels.get(NAMESPACE_VALIDATION_LABEL) == NAMESPACE_VALIDATION_ENABLED


def pod_images(pod: dict[str, Any]) -> list[str]:
    """Collect container images of a pod, deduplicated in declaration order."""
    spec = pod.get("spec") or {}
    images: list[str] = []
    for field in CONTAINER_FIELDS:
        for container in spec.get(field) or []:
            image = container.get("image")
            if image and image not in images:
                images.append(image)
    return images


def credentials_from_secret(secret: dict[str, Any]) -> dict[str, Credential]:
    """Extract registry credentials from a dockerconfigjson Secret.

    Raises:
        ValidationFailedError: If the secret payload is malformed
    """
    if secret.get("type") != DOCKER_CONFIG_SECRET_TYPE:
        return {}
    encoded = (secret.get("data") or {}).get(DOCKER_CONFIG_KEY)
    if not encoded:
        return {}
    try:
        raw = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise ValidationFailedError(f"cannot decode {DOCKER_CONFIG_KEY}: {e}") from e
    return parse_docker_config(raw)


class PodImageValidator:
    """Validates every container image of a pod in namespaces that opted in."""

    def __init__(self, cluster: Cluster, image_validator: ImageValidatorService) -> None:
        self.cluster = cluster
        self.image_validator = image_validator

    async def pull_credentials(self, pod: dict[str, Any], namespace: str) -> dict[str, Credential]:
        """Merge credentials from the pod's imagePullSecrets.

        Secrets that cannot be read or parsed are skipped; later secrets win
        on registry conflicts.
        """
        logger = logger_from_context()
        credentials: dict[str, Credential] = {}
        for ref in (pod.get("spec") or {}).get("imagePullSecrets") or []:
            name = ref.get("name")
            if not name:
                continue
            try:
                secret = await self.cluster.get_secret(namespace, name)
                credentials.update(credentials_from_secret(secret))
            except (ClusterError, ValidationFailedError) as e:
                logger.warning(f"skipping image pull secret {namespace}/{name}: {e}")
        return credentials

    async def validate_image(self, image: str, credentials: dict[str, Credential]) -> ValidationResult:
        """Validate one image and map its outcome to a result."""
        logger = logger_from_context()
        try:
            await self.image_validator.validate(image, credentials)
        except ValidationFailedError as e:
            logger.info(f"image {image} is invalid: {e}")
            return ValidationResult.INVALID
        except UnknownResultError as e:
            logger.warning(f"image {image} could not be validated: {e}")
            return ValidationResult.SERVICE_UNAVAILABLE
        return ValidationResult.VALID

    async def validate_pod(self, pod: dict[str, Any], namespace: dict[str, Any]) -> ValidationResult:
        """Validate all images of a pod.

        Returns:
            NoAction when the namespace did not opt in, otherwise the worst
            result over all containers (Valid for a pod without images)
        """
        if not is_validation_enabled(namespace):
            return ValidationResult.NO_ACTION

        namespace_name = (namespace.get("metadata") or {}).get("name", "")
        credentials = await self.pull_credentials(pod, namespace_name)
        results = [await self.validate_image(image, credentials) for image in pod_images(pod)]
        return worst_result([ValidationResult.VALID, *results])
