"""Test fakes and builders shared across test modules."""

import hashlib
import json
from typing import Any, Optional

from image_trust_webhook.core.types import Descriptor, Target
from image_trust_webhook.exceptions import ClusterError, TrustAuthorityError
from image_trust_webhook.registry.client import DOCKER_MANIFEST_V2, OCI_IMAGE_INDEX

CONFIG_BLOB = b'{"architecture":"amd64","os":"linux"}'
CONFIG_DIGEST = "sha256:" + hashlib.sha256(CONFIG_BLOB).hexdigest()


def make_image_manifest(config_digest: str = CONFIG_DIGEST) -> bytes:
    """Create a Docker v2 image manifest body."""
    return json.dumps(
        {
            "schemaVersion": 2,
            "mediaType": DOCKER_MANIFEST_V2,
            "config": {
                "mediaType": "application/vnd.docker.container.image.v1+json",
                "size": len(CONFIG_BLOB),
                "digest": config_digest,
            },
            "layers": [],
        }
    ).encode("utf-8")


def make_index_manifest() -> bytes:
    """Create an OCI image index body."""
    return json.dumps(
        {
            "schemaVersion": 2,
            "mediaType": OCI_IMAGE_INDEX,
            "manifests": [
                {
                    "mediaType": "application/vnd.oci.image.manifest.v1+json",
                    "size": 123,
                    "digest": "sha256:" + "a" * 64,
                    "platform": {"architecture": "amd64", "os": "linux"},
                }
            ],
        }
    ).encode("utf-8")


def sha256_bytes(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def make_descriptor(body: bytes, media_type: str = DOCKER_MANIFEST_V2) -> Descriptor:
    """Descriptor whose digest matches the body, as a registry would return it."""
    return Descriptor(
        media_type=media_type,
        digest="sha256:" + hashlib.sha256(body).hexdigest(),
        manifest=body,
        size=len(body),
    )


class FakeTrustRepository:
    """Trust repository returning preset targets."""

    def __init__(self, targets: dict[str, Target], error: Optional[Exception] = None) -> None:
        self.targets = targets
        self.error = error

    async def get_target_by_name(self, name: str) -> Target:
        if self.error is not None:
            raise self.error
        if name not in self.targets:
            raise TrustAuthorityError(f"No valid trust data for {name}")
        return self.targets[name]


class FakeRepoFactory:
    """Trust repository factory keyed by repository name."""

    def __init__(
        self,
        targets: Optional[dict[str, dict[str, Target]]] = None,
        error: Optional[Exception] = None,
        factory_error: Optional[Exception] = None,
    ) -> None:
        self.targets = targets or {}
        self.error = error
        self.factory_error = factory_error
        self.calls: list[str] = []

    async def new_repo_client(self, gun, config) -> FakeTrustRepository:
        self.calls.append(gun)
        if self.factory_error is not None:
            raise self.factory_error
        return FakeTrustRepository(self.targets.get(gun, {}), self.error)


class FakeRegistryClient:
    """Registry client returning one preset descriptor."""

    def __init__(
        self,
        descriptor: Optional[Descriptor] = None,
        anonymous_error: Optional[Exception] = None,
        auth_error: Optional[Exception] = None,
    ) -> None:
        self.descriptor = descriptor
        self.anonymous_error = anonymous_error
        self.auth_error = auth_error
        self.calls: list[Any] = []

    async def get_descriptor(self, ref, auth=None) -> Descriptor:
        self.calls.append(auth)
        if auth is None and self.anonymous_error is not None:
            raise self.anonymous_error
        if auth is not None and self.auth_error is not None:
            raise self.auth_error
        return self.descriptor


class FakeCluster:
    """In-memory Namespace, Secret and ImagePolicy objects."""

    def __init__(
        self,
        namespaces: Optional[dict[str, dict]] = None,
        secrets: Optional[dict[tuple[str, str], dict]] = None,
        policies: Optional[dict[tuple[str, str], dict]] = None,
    ) -> None:
        self.namespaces = namespaces or {}
        self.secrets = secrets or {}
        self.policies = policies or {}

    async def get_namespace(self, name: str) -> dict:
        if name not in self.namespaces:
            raise ClusterError(f"Failed to get namespace {name}: 404 Not Found")
        return self.namespaces[name]

    async def get_secret(self, namespace: str, name: str) -> dict:
        if (namespace, name) not in self.secrets:
            raise ClusterError(f"Failed to get secret {namespace}/{name}: 404 Not Found")
        return self.secrets[(namespace, name)]

    async def get_image_policy(self, namespace: str, name: str) -> dict:
        if (namespace, name) not in self.policies:
            raise ClusterError(f"Failed to get imagepolicy {namespace}/{name}: 404 Not Found")
        return self.policies[(namespace, name)]


def make_namespace(name: str = "default", enabled: bool = True) -> dict:
    labels = {"namespaces.image-trust.io/validate": "enabled"} if enabled else {}
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name, "labels": labels}}


def make_pod(
    images: list[str],
    namespace: str = "default",
    labels: Optional[dict[str, str]] = None,
    pull_secrets: Optional[list[str]] = None,
) -> dict:
    metadata: dict[str, Any] = {"name": "test-pod", "namespace": namespace}
    if labels is not None:
        metadata["labels"] = labels
    spec: dict[str, Any] = {
        "containers": [{"name": f"c{i}", "image": image} for i, image in enumerate(images)]
    }
    if pull_secrets:
        spec["imagePullSecrets"] = [{"name": name} for name in pull_secrets]
    return {"apiVersion": "v1", "kind": "Pod", "metadata": metadata, "spec": spec}


def make_review(obj: Any, kind: str = "Pod", uid: str = "req-1", namespace: str = "default") -> dict:
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": uid,
            "kind": {"group": "", "version": "v1", "kind": kind},
            "namespace": namespace,
            "operation": "CREATE",
            "object": obj,
        },
    }
