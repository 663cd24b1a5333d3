"""Admission webhook handling."""

from .review import AdmissionRequest, AdmissionResponse, to_review
from .webhook import DEFAULTING_PATH, DefaultingWebhook, label_for_validation_result

__all__ = [
    "AdmissionRequest",
    "AdmissionResponse",
    "to_review",
    "DEFAULTING_PATH",
    "DefaultingWebhook",
    "label_for_validation_result",
]
