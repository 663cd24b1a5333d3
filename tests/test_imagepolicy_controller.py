"""Tests for the ImagePolicy reconciler."""

import pytest

from image_trust_webhook.controllers import ImagePolicyReconciler, ReconcileResult
from image_trust_webhook.exceptions import ClusterError
from tests.helpers import FakeCluster


class RecordingCluster(FakeCluster):
    def __init__(self, policies):
        super().__init__(policies=policies)
        self.fetched = []

    async def get_image_policy(self, namespace, name):
        self.fetched.append((namespace, name))
        return await super().get_image_policy(namespace, name)


def event(event_type, namespace, name):
    return {"type": event_type, "object": {"metadata": {"namespace": namespace, "name": name}}}


async def events_from(items):
    for item in items:
        yield item


@pytest.mark.asyncio
async def test_reconcile_existing_policy():
    """Test that an existing policy reconciles without requeue."""
    reconciler = ImagePolicyReconciler(RecordingCluster({("team", "default"): {"spec": {}}}))
    assert await reconciler.reconcile("team", "default") == ReconcileResult(requeue=False)


@pytest.mark.asyncio
async def test_reconcile_missing_policy():
    """Test that read failures propagate."""
    reconciler = ImagePolicyReconciler(RecordingCluster({}))
    with pytest.raises(ClusterError, match="imagepolicy team/missing"):
        await reconciler.reconcile("team", "missing")


@pytest.mark.asyncio
async def test_run_reconciles_watch_events():
    """Test that watch events are reconciled, skipping deletions and failures."""
    cluster = RecordingCluster({("team", "a"): {}, ("team", "c"): {}})
    reconciler = ImagePolicyReconciler(cluster)

    await reconciler.run(
        events_from(
            [
                event("ADDED", "team", "a"),
                event("DELETED", "team", "b"),
                event("MODIFIED", "team", "missing"),
                event("ADDED", "team", "c"),
            ]
        )
    )

    assert cluster.fetched == [("team", "a"), ("team", "missing"), ("team", "c")]
