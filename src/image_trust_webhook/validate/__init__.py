"""Image and pod validation."""

from .image import ImageValidator, ImageValidatorService
from .pod import PodImageValidator, PodValidator

__all__ = ["ImageValidator", "ImageValidatorService", "PodImageValidator", "PodValidator"]
