"""Models for pods, image references, and registry images."""

import datetime
import re
from dataclasses import dataclass, field
from typing import Self, TypeAlias

DOCKER_DEFAULT_HOST = "docker.io"
"""Registry host implied by a reference that names no host."""

DOCKER_DEFAULT_TAG = "latest"
"""Implicit tag used by Docker/Kubernetes when no tag is specified."""

DOCKER_HUB_ALIASES = {"index.docker.io", "registry-1.docker.io"}

UsedImageSet: TypeAlias = dict[str, set[str]]

__all__ = [
    "DOCKER_DEFAULT_HOST",
    "DOCKER_DEFAULT_TAG",
    "ImageReference",
    "Pod",
    "RegistryImage",
    "Repository",
    "UsedImageSet",
]

# Regular expression components used to construct the parsing regexes.
# These follow the grammar in github.com/distribution/reference.

# us-east-1.example.com:5000, [::1]:5000
_HOST_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_HOST = (
    rf"(?:{_HOST_COMPONENT}(?:\.{_HOST_COMPONENT})*|\[[0-9a-fA-F:]+\])"
    r"(?::[0-9]+)?"
)
# team/app.server, my__lib, a-b--c
_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*"
# v1.2.3, 2024-01-01_build
_TAG = r"[\w][\w.-]{0,127}"
# sha256:0123...
_DIGEST = (
    r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"
)

_HOST_RE = re.compile(_HOST)
_NAME_RE = re.compile(
    rf"(?P<repository>{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*)"
    rf"(?::(?P<tag>{_TAG}))?"
    rf"(?:@(?P<digest>{_DIGEST}))?"
)


@dataclass
class Pod:
    """The parts of a Kubernetes pod we care about: where it lives and
    every image string it references.
    """

    name: str
    namespace: str
    images: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ImageReference:
    """An image reference as found in a container spec, split into its
    registry host, repository path, and tag and/or digest.
    """

    host: str
    repository: str
    tag: str | None = None
    digest: str | None = None

    def __str__(self) -> str:
        ref = f"{self.host}/{self.repository}"
        if self.tag:
            ref += f":{self.tag}"
        if self.digest:
            ref += f"@{self.digest}"
        return ref

    @property
    def identifiers(self) -> set[str]:
        """Tag and digest carried by this reference, whichever are set."""
        return {x for x in (self.tag, self.digest) if x}

    @classmethod
    def from_str(cls, image: str) -> Self:
        """Parse an image string such as ``host/team/app:1.0`` or
        ``app@sha256:...``.

        Parameters
        ----------
        image
            Image string from a container spec or container status.

        Returns
        -------
        ImageReference
            The parsed reference.  A reference with no host refers to
            Docker Hub, and one with neither tag nor digest carries the
            implicit ``latest`` tag.

        Raises
        ------
        ValueError
            The string is not a valid image reference.
        """
        host = DOCKER_DEFAULT_HOST
        remainder = image
        first, sep, rest = image.partition("/")
        if sep and ("." in first or ":" in first or first == "localhost"):
            if not _HOST_RE.fullmatch(first):
                raise ValueError(f"Malformed registry host in '{image}'")
            host, remainder = first, rest
        if host in DOCKER_HUB_ALIASES:
            host = DOCKER_DEFAULT_HOST
        match = _NAME_RE.fullmatch(remainder)
        if match is None:
            raise ValueError(f"Malformed image reference '{image}'")
        repository = match.group("repository")
        if host == DOCKER_DEFAULT_HOST and "/" not in repository:
            repository = f"library/{repository}"
        tag = match.group("tag")
        digest = match.group("digest")
        if tag is None and digest is None:
            tag = DOCKER_DEFAULT_TAG
        return cls(host=host, repository=repository, tag=tag, digest=digest)


@dataclass
class RegistryImage:
    """One entry in a repository's inventory.

    Registries that address images by content always supply a digest;
    tags are optional and may be empty.
    """

    digest: str | None = None
    tags: set[str] = field(default_factory=set)
    pushed_at: datetime.datetime | None = None

    def __str__(self) -> str:
        dig = "<none>"
        if self.digest:
            dig = self.digest.partition(":")[2] or self.digest
            if len(dig) > 8:
                dig = dig[:8] + "..."
            dig = f"<{dig}>"
        tags = ",".join(sorted(self.tags)) if self.tags else "<untagged>"
        return f"[{tags}] {dig}"

    @property
    def identifiers(self) -> set[str]:
        """Every name under which a pod could refer to this image."""
        ids = set(self.tags)
        if self.digest:
            ids.add(self.digest)
        return ids

    @property
    def identifier(self) -> str:
        """Primary identifier: the digest, or failing that, the lowest tag."""
        if self.digest:
            return self.digest
        if self.tags:
            return min(self.tags)
        raise ValueError("Image has neither digest nor tags")


@dataclass
class Repository:
    """A repository as returned by the registry's repository listing."""

    name: str
    uri: str | None = None
