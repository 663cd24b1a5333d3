"""ImagePolicy reconciler.

Only fetches the policy object; policy synchronisation is not implemented.
"""

from dataclasses import dataclass
from typing import Any, AsyncIterable, Protocol

from ..core.context import logger_from_context
from ..exceptions import ClusterError


class PolicySource(Protocol):
    async def get_image_policy(self, namespace: str, name: str) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class ReconcileResult:
    requeue: bool = False


class ImagePolicyReconciler:
    """Reconciles ImagePolicy custom resources."""

    def __init__(self, cluster: PolicySource) -> None:
        self.cluster = cluster

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """Fetch the policy named by the request.

        Raises:
            ClusterError: If the policy cannot be read
        """
        logger = logger_from_context().bind(imagepolicy=f"{namespace}/{name}")
        try:
            await self.cluster.get_image_policy(namespace, name)
        except ClusterError as e:
            logger.error(f"unable to get ImagePolicy: {e}")
            raise
        return ReconcileResult()

    async def run(self, events: AsyncIterable[dict[str, Any]]) -> None:
        """Reconcile the object of every watch event."""
        async for event in events:
            metadata = (event.get("object") or {}).get("metadata") or {}
            if event.get("type") == "DELETED":
                continue
            try:
                await self.reconcile(metadata.get("namespace", ""), metadata.get("name", ""))
            except ClusterError:
                continue
