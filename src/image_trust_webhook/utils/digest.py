"""Digest calculation, decoding and comparison utilities."""

import hashlib
import hmac
import re
from typing import Union

# Regex pattern for valid digest format (algorithm:hex)
DIGEST_PATTERN = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$")

# Expected hex length per algorithm
DIGEST_HEX_LENGTHS = {"sha256": 64, "sha384": 96, "sha512": 128}


def calculate_digest(data: Union[bytes, bytearray], algorithm: str = "sha256") -> str:
    """Calculate digest of data.

    Args:
        data: Data to hash
        algorithm: Hash algorithm (default: sha256)

    Returns:
        Digest string in format "algorithm:hex"

    Raises:
        ValueError: If algorithm is not supported
        ValueError: If data is not bytes-like
    """
    if not isinstance(data, (bytes, bytearray)):
        raise ValueError("Data must be bytes or bytearray")

    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    hasher = hashlib.new(algorithm)
    hasher.update(data)
    return f"{algorithm}:{hasher.hexdigest()}"


def validate_digest(digest: str) -> bool:
    """Validate digest format.

    Args:
        digest: Digest string to validate

    Returns:
        True if valid digest format
    """
    if not isinstance(digest, str):
        return False

    if not DIGEST_PATTERN.match(digest):
        return False

    algorithm, encoded = digest.split(":", 1)
    expected_length = DIGEST_HEX_LENGTHS.get(algorithm)
    if expected_length is None:
        return False
    return len(encoded) == expected_length


def digest_hex(digest: str) -> str:
    """Return the encoded part of an "algorithm:hex" digest string."""
    _, sep, encoded = digest.partition(":")
    if not sep:
        raise ValueError(f"Invalid digest format: {digest}")
    return encoded


def decode_digest(digest: str) -> bytes:
    """Hex-decode the encoded part of a digest into raw bytes.

    Args:
        digest: Digest string (e.g., "sha256:abc...")

    Returns:
        Raw digest bytes

    Raises:
        ValueError: If the digest is not "algorithm:hex" or the hex is malformed
    """
    return bytes.fromhex(digest_hex(digest))


def constant_time_compare(left: bytes, right: bytes) -> bool:
    """Compare two byte strings without short-circuiting on the first difference."""
    return hmac.compare_digest(left, right)
