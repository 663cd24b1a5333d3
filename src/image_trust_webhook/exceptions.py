"""Custom exceptions for the image trust webhook."""


class ImageTrustError(Exception):
    """Base exception for all image trust errors."""

    pass


class ValidationFailedError(ImageTrustError):
    """Raised when an image is definitively untrusted or its input is malformed."""

    pass


class UnknownResultError(ImageTrustError):
    """Raised when trust status cannot be determined because of an infrastructure failure."""

    pass


class RegistryError(ImageTrustError):
    """Raised when a request to an image registry fails."""

    pass


class TrustAuthorityError(ImageTrustError):
    """Raised when a request to the trust authority fails."""

    pass


class ClusterError(ImageTrustError):
    """Raised when an object cannot be read from the Kubernetes API."""

    pass


class ConfigError(ImageTrustError):
    """Raised when configuration is missing or invalid."""

    pass
