"""Kubernetes API access."""

import asyncio
import functools
from typing import Any, AsyncIterator, Callable, Optional, Protocol

from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from .exceptions import ClusterError

IMAGE_POLICY_GROUP = "validate.image-trust.io"
IMAGE_POLICY_VERSION = "v1alpha1"
IMAGE_POLICY_PLURAL = "imagepolicies"


class Cluster(Protocol):
    """Read access to the cluster objects the webhook needs."""

    async def get_namespace(self, name: str) -> dict[str, Any]:
        ...

    async def get_secret(self, namespace: str, name: str) -> dict[str, Any]:
        ...


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except ConfigException:
        try:
            config.load_kube_config()
        except ConfigException as e:
            raise ClusterError(f"Cannot load Kubernetes configuration: {e}") from e


class KubernetesCluster:
    """Async facade over the blocking Kubernetes client.

    Calls run in the default thread-pool executor. A call abandoned by its
    awaiting task still runs to completion in its thread.
    """

    def __init__(
        self,
        core_api: Optional[client.CoreV1Api] = None,
        custom_api: Optional[client.CustomObjectsApi] = None,
    ) -> None:
        self.core_api = core_api or client.CoreV1Api()
        self.custom_api = custom_api or client.CustomObjectsApi()

    @classmethod
    def from_environment(cls) -> "KubernetesCluster":
        """Create a cluster client from in-cluster config or kubeconfig."""
        load_kube_config()
        return cls()

    async def _call(self, what: str, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(func, *args))
        except ApiException as e:
            raise ClusterError(f"Failed to get {what}: {e.status} {e.reason}") from e

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        return self.core_api.api_client.sanitize_for_serialization(obj)

    async def get_namespace(self, name: str) -> dict[str, Any]:
        """Read a Namespace object.

        Raises:
            ClusterError: If the namespace cannot be read
        """
        namespace = await self._call(f"namespace {name}", self.core_api.read_namespace, name)
        return self._to_dict(namespace)

    async def get_secret(self, namespace: str, name: str) -> dict[str, Any]:
        """Read a Secret object.

        Raises:
            ClusterError: If the secret cannot be read
        """
        secret = await self._call(
            f"secret {namespace}/{name}", self.core_api.read_namespaced_secret, name, namespace
        )
        return self._to_dict(secret)

    async def get_image_policy(self, namespace: str, name: str) -> dict[str, Any]:
        """Read an ImagePolicy custom resource.

        Raises:
            ClusterError: If the policy cannot be read
        """
        return await self._call(
            f"imagepolicy {namespace}/{name}",
            self.custom_api.get_namespaced_custom_object,
            IMAGE_POLICY_GROUP,
            IMAGE_POLICY_VERSION,
            namespace,
            IMAGE_POLICY_PLURAL,
            name,
        )

    async def watch_image_policies(self) -> AsyncIterator[dict[str, Any]]:
        """Yield ImagePolicy watch events across all namespaces."""
        stream = watch.Watch().stream(
            self.custom_api.list_cluster_custom_object,
            IMAGE_POLICY_GROUP,
            IMAGE_POLICY_VERSION,
            IMAGE_POLICY_PLURAL,
        )
        loop = asyncio.get_running_loop()
        while True:
            try:
                event = await loop.run_in_executor(None, next, stream, None)
            except ApiException as e:
                raise ClusterError(f"Failed to watch imagepolicies: {e.status} {e.reason}") from e
            if event is None:
                return
            yield event
