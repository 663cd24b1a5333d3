"""Strict image reference parsing."""

import re
from dataclasses import dataclass

from ..exceptions import ValidationFailedError

DEFAULT_REGISTRY_ALIAS = "docker.io"
DEFAULT_REGISTRY = "index.docker.io"

REGISTRY_PATTERN = re.compile(r"^(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?)(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?)*(?::[0-9]+)?$")
PATH_COMPONENT_PATTERN = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
TAG_PATTERN = re.compile(r"^[\w][\w.-]{0,127}$", re.ASCII)
SHA256_PATTERN = re.compile(r"^sha256:[a-f0-9]{64}$")


@dataclass(frozen=True)
class ImageReference:
    """A parsed image reference with an explicit registry and a tag and/or digest."""

    registry: str
    repository: str
    tag: str | None = None
    digest: str | None = None

    @property
    def name(self) -> str:
        """Fully qualified repository name (e.g., "ghcr.io/org/app")."""
        return f"{self.registry}/{self.repository}"

    @property
    def identifier(self) -> str:
        """Digest when pinned, otherwise the tag."""
        return self.digest or self.tag or ""

    def __str__(self) -> str:
        if self.digest:
            return f"{self.name}@{self.digest}"
        return f"{self.name}:{self.tag}"


def split_registry(name: str) -> tuple[str, str]:
    """Split a repository name into registry and repository path.

    The first path segment is a registry when it contains a "." or ":"
    or is "localhost".

    Raises:
        ValueError: If the name has no explicit registry
    """
    first, sep, rest = name.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        return first, rest
    raise ValueError(f"registry must be explicitly defined: {name}")


def normalize_registry(registry: str) -> str:
    """Map registry aliases to the host used for requests and credential lookup."""
    if registry == DEFAULT_REGISTRY_ALIAS:
        return DEFAULT_REGISTRY
    return registry


def _check_registry(registry: str) -> None:
    if not REGISTRY_PATTERN.match(registry):
        raise ValueError(f"invalid registry: {registry}")


def _check_repository(repository: str) -> None:
    if not repository or len(repository) > 255:
        raise ValueError(f"invalid repository length: {repository!r}")
    for component in repository.split("/"):
        if not PATH_COMPONENT_PATTERN.match(component):
            raise ValueError(f"invalid repository component: {component!r}")


def _split_tag(name: str) -> tuple[str, str | None]:
    base, sep, tag = name.rpartition(":")
    if sep and "/" not in tag:
        return base, tag
    return name, None


def _parse(image: str) -> ImageReference:
    digest = None
    name = image
    if "@" in image:
        parts = image.split("@")
        if len(parts) != 2:
            raise ValueError("a digest must contain exactly one '@' separator")
        name, digest = parts
        if not SHA256_PATTERN.match(digest):
            raise ValueError(f"invalid digest: {digest}")

    base, tag = _split_tag(name)
    if tag is not None and not TAG_PATTERN.match(tag):
        raise ValueError(f"invalid tag: {tag}")
    if digest is None and tag is None:
        raise ValueError("tag or digest must be explicitly defined")

    registry, repository = split_registry(base)
    _check_registry(registry)
    _check_repository(repository)

    registry = normalize_registry(registry)
    if registry == DEFAULT_REGISTRY and "/" not in repository:
        raise ValueError(
            f"strict validation requires the full repository path (missing 'library'): {repository}"
        )

    return ImageReference(
        registry=registry,
        repository=repository,
        tag=tag,
        digest=digest,
    )


def parse_reference(image: str) -> ImageReference:
    """Parse an image string under strict rules.

    A registry host and a tag and/or digest are required; nothing is defaulted.

    Args:
        image: Image reference (e.g., "ghcr.io/org/app:v1", "quay.io/x@sha256:...")

    Returns:
        Parsed ImageReference

    Raises:
        ValidationFailedError: If the reference cannot be parsed

    Examples:
        ref = parse_reference("docker.io/library/nginx:1.25")
        # ref.registry == "index.docker.io", ref.identifier == "1.25"
    """
    try:
        return _parse(image)
    except ValueError as e:
        raise ValidationFailedError(f"image name could not be parsed: {e}") from e
