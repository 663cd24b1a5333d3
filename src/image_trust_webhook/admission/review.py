"""AdmissionReview request and response types."""

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Optional

import jsonpatch

ADMISSION_API_VERSION = "admission.k8s.io/v1"


@dataclass(frozen=True)
class AdmissionRequest:
    """The request part of an AdmissionReview."""

    uid: str
    kind: str
    namespace: str = ""
    name: str = ""
    operation: str = ""
    object: Any = None

    @classmethod
    def from_review(cls, review: Any) -> "AdmissionRequest":
        """Parse an AdmissionReview document.

        Raises:
            ValueError: If the document has no request or uid
        """
        if not isinstance(review, dict) or not isinstance(review.get("request"), dict):
            raise ValueError("admission review has no request")
        request = review["request"]
        uid = request.get("uid")
        if not uid:
            raise ValueError("admission request has no uid")
        return cls(
            uid=str(uid),
            kind=(request.get("kind") or {}).get("kind", ""),
            namespace=request.get("namespace") or "",
            name=request.get("name") or "",
            operation=request.get("operation") or "",
            object=request.get("object"),
        )


@dataclass(frozen=True)
class AdmissionResponse:
    """Outcome of handling an admission request."""

    allowed: bool
    code: int
    message: str = ""
    patch: Optional[list[dict[str, Any]]] = field(default=None)


def allowed(message: str = "") -> AdmissionResponse:
    """Allow the request without modification."""
    return AdmissionResponse(allowed=True, code=200, message=message)


def errored(code: int, err: Exception | str) -> AdmissionResponse:
    """Reject the request because handling failed."""
    return AdmissionResponse(allowed=False, code=int(code), message=str(err))


def patch_response_from_raw(original: Any, current: Any) -> AdmissionResponse:
    """Allow the request with a JSON patch turning original into current."""
    patch = jsonpatch.make_patch(original, current)
    return AdmissionResponse(allowed=True, code=200, patch=patch.patch)


def to_review(uid: str, response: AdmissionResponse) -> dict[str, Any]:
    """Serialize a response as an AdmissionReview document."""
    body: dict[str, Any] = {
        "uid": uid,
        "allowed": response.allowed,
        "status": {"code": response.code, "message": response.message},
    }
    if response.patch:
        body["patchType"] = "JSONPatch"
        body["patch"] = base64.b64encode(json.dumps(response.patch).encode("utf-8")).decode("ascii")
    return {
        "apiVersion": ADMISSION_API_VERSION,
        "kind": "AdmissionReview",
        "response": body,
    }
