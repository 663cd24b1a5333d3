"""Utility functions for the image trust webhook."""

from .digest import calculate_digest, constant_time_compare, decode_digest, validate_digest
from .reference import ImageReference, parse_reference

__all__ = [
    "calculate_digest",
    "constant_time_compare",
    "decode_digest",
    "validate_digest",
    "ImageReference",
    "parse_reference",
]
