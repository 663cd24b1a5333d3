"""Core data types shared across the webhook."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class ValidationResult(str, Enum):
    """Outcome of validating a pod or a single container image."""

    NO_ACTION = "NoAction"
    VALID = "Valid"
    INVALID = "Invalid"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"

    def __str__(self) -> str:
        return self.value


# Higher value dominates when results are aggregated
RESULT_SEVERITY = {
    ValidationResult.NO_ACTION: 0,
    ValidationResult.VALID: 1,
    ValidationResult.SERVICE_UNAVAILABLE: 2,
    ValidationResult.INVALID: 3,
}


def worst_result(results: Iterable[ValidationResult]) -> ValidationResult:
    """Aggregate results, keeping the most severe one.

    Invalid dominates ServiceUnavailable, which dominates Valid, which
    dominates NoAction. An empty iterable yields NoAction.
    """
    worst = ValidationResult.NO_ACTION
    for result in results:
        if RESULT_SEVERITY[result] > RESULT_SEVERITY[worst]:
            worst = result
    return worst


@dataclass(frozen=True)
class Credential:
    """Registry pull credential as found in a docker config "auths" entry."""

    username: str = ""
    password: str = ""
    auth: str = ""
    registry_token: str = ""


@dataclass(frozen=True)
class Descriptor:
    """Manifest descriptor returned by a registry."""

    media_type: str
    digest: str
    manifest: bytes = field(repr=False)
    size: int = 0


@dataclass(frozen=True)
class Target:
    """A signed target recorded by the trust authority."""

    name: str
    hashes: dict[str, bytes]
    length: int = 0
