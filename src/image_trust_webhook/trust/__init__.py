"""Trust authority access."""

from .errors import classify_trust_error, is_missing_trust_data
from .notary import NotaryRepoFactory, NotaryRepository, RepoFactory, TrustRepository

__all__ = [
    "classify_trust_error",
    "is_missing_trust_data",
    "NotaryRepoFactory",
    "NotaryRepository",
    "RepoFactory",
    "TrustRepository",
]
