"""Abstract superclass for container registry clients."""

from abc import abstractmethod
from collections.abc import Iterator

import structlog

from ..config import RegistryConfig
from ..models.image import ImageReference, RegistryImage, Repository


class ContainerRegistryClient:
    """Collection of methods we expect any registry client to provide.

    Note that these are synchronous.  That's on purpose.  A cleanup pass
    handles one repository at a time so that its errors come back in a
    stable order, and registries generally rate-limit requests in any
    event, so there is little to gain from concurrent requests.
    """

    @abstractmethod
    def list_repositories(self, names: list[str]) -> list[Repository]:
        """List the named repositories, or all of them if ``names`` is
        empty.
        """
        ...

    @abstractmethod
    def list_images(self, repository: str) -> list[RegistryImage]:
        """List every image in a repository."""
        ...

    @abstractmethod
    def delete_images(
        self, repository: str, images: list[RegistryImage]
    ) -> None:
        """Delete images from a repository."""
        ...

    @abstractmethod
    def repository_for(self, ref: ImageReference) -> str | None:
        """Return the name of the repository in this registry that an image
        reference points to, or `None` if it points to another registry.
        """
        ...

    def __init__(self, cfg: RegistryConfig, *, dry_run: bool = True) -> None:
        self._extract_registry_config(cfg, dry_run=dry_run)

    def _extract_registry_config(
        self, cfg: RegistryConfig, *, dry_run: bool
    ) -> None:
        # Load the generic items from the registry config
        self._dry_run = dry_run
        self._logger = structlog.get_logger(__name__)
        self._category = cfg.category
        self._region = cfg.region
        self._registry_id = cfg.registry_id
        self._project = cfg.project
        self._endpoint = str(cfg.endpoint) if cfg.endpoint else None
        self._logger.debug(
            "Initialized registry client",
            category=self._category.value,
            region=self._region,
            dry_run=self._dry_run,
        )

    def _chunk_images(
        self, inp: list[RegistryImage], n: int
    ) -> Iterator[list[RegistryImage]]:
        for i in range(0, len(inp), n):
            yield inp[i : i + n]
