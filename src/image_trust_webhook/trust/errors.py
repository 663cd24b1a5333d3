"""Classification of trust authority failures."""

from ..exceptions import ImageTrustError, UnknownResultError, ValidationFailedError

# Substrings the trust authority uses when a repository or tag was never signed
NO_TRUST_DATA_MESSAGES = (
    "does not have trust data for",
    "No valid trust data for",
)


def is_missing_trust_data(err: Exception) -> bool:
    """Check if an error means the image simply has no trust data."""
    message = str(err)
    return any(fragment in message for fragment in NO_TRUST_DATA_MESSAGES)


def classify_trust_error(err: Exception) -> ImageTrustError:
    """Map a trust authority failure to a validation or unknown-result error.

    Unsigned images are a validation failure; anything else (unreachable
    server, bad response) is an unknown result.
    """
    if is_missing_trust_data(err):
        return ValidationFailedError(str(err))
    return UnknownResultError(str(err))
