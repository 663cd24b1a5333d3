"""Mutating admission webhook that labels pods with their image validation status."""

import asyncio
import copy
import time
from http import HTTPStatus
from typing import Any, Awaitable, Callable

from ..cluster import Cluster
from ..core.context import bound_logger, log_end_time, logger_from_context
from ..core.types import ValidationResult
from ..exceptions import ImageTrustError
from ..validate.pod import PodValidator
from .review import (
    AdmissionRequest,
    AdmissionResponse,
    allowed,
    errored,
    patch_response_from_raw,
)

DEFAULTING_PATH = "/defaulting/pods"

POD_KIND = "Pod"

POD_VALIDATION_LABEL = "validation-status"
VALIDATION_STATUS_SUCCESS = "success"
VALIDATION_STATUS_REJECT = "reject"
VALIDATION_STATUS_PENDING = "pending"

Handler = Callable[[AdmissionRequest], Awaitable[AdmissionResponse]]


def label_for_validation_result(result: ValidationResult) -> str:
    """Label value for a validation result; empty for NoAction."""
    if result == ValidationResult.NO_ACTION:
        return ""
    if result == ValidationResult.INVALID:
        return VALIDATION_STATUS_REJECT
    if result == ValidationResult.VALID:
        return VALIDATION_STATUS_SUCCESS
    return VALIDATION_STATUS_PENDING


def label_pod(result: ValidationResult, pod: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of the pod carrying the validation status label."""
    label = label_for_validation_result(result)
    logger_from_context().info(f"pod was labeled: `{label}`")
    if not label:
        return pod
    labeled = copy.deepcopy(pod)
    metadata = labeled.setdefault("metadata", {})
    if metadata.get("labels") is None:
        metadata["labels"] = {}
    metadata["labels"][POD_VALIDATION_LABEL] = label
    return labeled


def format_timeout(seconds: float) -> str:
    """Format a timeout the way it is configured (e.g., "2s", "0.5s")."""
    return f"{seconds:g}s"


def with_request_logger(handler: Handler) -> Handler:
    """Bind the admission request id to the context logger."""

    async def handle(req: AdmissionRequest) -> AdmissionResponse:
        with bound_logger(req_id=req.uid):
            return await handler(req)

    return handle


def with_time_measure(handler: Handler) -> Handler:
    """Log how long handling took, whatever the outcome."""

    async def handle(req: AdmissionRequest) -> AdmissionResponse:
        logger_from_context().debug("request handling started")
        start_time = time.monotonic()
        try:
            return await handler(req)
        finally:
            log_end_time("request handling finished", start_time)

    return handle


def _discard_result(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger_from_context().warning(f"abandoned request handling failed: {task.exception()}")


def with_timeout(handler: Handler, timeout: float) -> Handler:
    """Race the handler against a deadline.

    When the deadline wins the handler task is cancelled and a 408 response
    is returned; the handler's eventual result is discarded.
    """

    async def handle(req: AdmissionRequest) -> AdmissionResponse:
        task = asyncio.create_task(handler(req))
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task in done:
            return task.result()

        task.add_done_callback(_discard_result)
        task.cancel()
        message = f"request exceeded desired timeout: {format_timeout(timeout)}"
        logger_from_context().info(message)
        return errored(HTTPStatus.REQUEST_TIMEOUT, message)

    return handle


class DefaultingWebhook:
    """Pod mutating webhook: validates images and labels the pod instead of rejecting it."""

    def __init__(self, cluster: Cluster, validation_svc: PodValidator, timeout: float) -> None:
        """Initialize the webhook.

        Args:
            cluster: Kubernetes API access for Namespace lookups
            validation_svc: Pod validator deciding the result per pod
            timeout: Deadline for handling one request, in seconds
        """
        self.cluster = cluster
        self.validation_svc = validation_svc
        self.timeout = timeout
        self.pipeline = with_request_logger(
            with_time_measure(with_timeout(self.handle_request, timeout))
        )

    async def handle(self, req: AdmissionRequest) -> AdmissionResponse:
        """Handle an admission request through the logging, timing and timeout layers."""
        return await self.pipeline(req)

    async def handle_request(self, req: AdmissionRequest) -> AdmissionResponse:
        """Decode the pod, validate it and turn the result into a label patch."""
        if req.kind != POD_KIND:
            return errored(
                HTTPStatus.BAD_REQUEST,
                f"Invalid request kind:{req.kind}, expected:{POD_KIND}",
            )

        pod = req.object
        if not isinstance(pod, dict) or not isinstance(pod.get("metadata", {}), dict):
            return errored(HTTPStatus.INTERNAL_SERVER_ERROR, "cannot decode pod from request object")

        metadata = pod.get("metadata") or {}
        namespace_name = metadata.get("namespace") or req.namespace
        try:
            namespace = await self.cluster.get_namespace(namespace_name)
        except ImageTrustError as e:
            return errored(HTTPStatus.INTERNAL_SERVER_ERROR, e)

        try:
            result = await self.validation_svc.validate_pod(pod, namespace)
        except ImageTrustError as e:
            return errored(HTTPStatus.INTERNAL_SERVER_ERROR, e)

        if result == ValidationResult.NO_ACTION:
            return allowed("validation is not enabled for pod")

        labeled = label_pod(result, pod)
        pod_name = metadata.get("name") or metadata.get("generateName", "")
        logger_from_context().info(f"pod was validated: {result}, {pod_name}, {namespace_name}")
        return patch_response_from_raw(pod, labeled)
