"""Provides a single cleanup pass over a container registry."""

from typing import Protocol

import structlog
from structlog.stdlib import BoundLogger

from ..exceptions import (
    CleanupError,
    ImageDeleteError,
    ImageListError,
    PodListError,
    RepositoryListError,
)
from ..models.image import Pod
from ..storage.registry import ContainerRegistryClient
from .retention import filter_old_unused_images
from .usage import resolve_used_images


class ClusterClient(Protocol):
    """Anything that can list the pods in a cluster."""

    def list_all_pods(self, namespaces: list[str]) -> list[Pod]: ...


class Reaper:
    """Deletes images that no pod uses, beyond a per-repository margin.

    Parameters
    ----------
    cluster
        Client for the cluster whose pods define which images are in use.
    registry
        Client for the registry to clean.
    logger
        Logger to use for messages.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        registry: ContainerRegistryClient,
        logger: BoundLogger | None = None,
    ) -> None:
        self._cluster = cluster
        self._registry = registry
        self._logger = logger or structlog.get_logger(__name__)

    def run_pass(
        self, namespaces: list[str], repositories: list[str], max_images: int
    ) -> list[CleanupError]:
        """Run one cleanup pass.

        Parameters
        ----------
        namespaces
            Namespaces whose pods pin images; empty for all namespaces.
        repositories
            Repositories to clean; empty for all repositories.
        max_images
            Number of unused images each repository may keep.

        Returns
        -------
        list of CleanupError
            Errors encountered, in the order repositories were processed.
            If pods or repositories cannot be listed, this is a single
            error and nothing was deleted.  Empty if the pass succeeded.
        """
        errors: list[CleanupError] = []
        self._logger.info("Cleanup pass started.")

        try:
            pods = self._cluster.list_all_pods(namespaces)
        except Exception as e:
            errors.append(PodListError(e))
            return errors
        self._logger.info(f"There are currently {len(pods)} running pods.")

        used_images = resolve_used_images(pods, self._registry.repository_for)
        count = sum(len(x) for x in used_images.values())
        self._logger.info(
            f"There are currently {count} registry images in use."
        )

        try:
            repos = self._registry.list_repositories(repositories)
        except Exception as e:
            errors.append(RepositoryListError(e))
            return errors

        for repo in repos:
            name = repo.name
            self._logger.info(f"Processing '{name}' repository.")

            try:
                images = self._registry.list_images(name)
            except Exception as e:
                errors.append(ImageListError(name, e))
                continue
            self._logger.info(f"Number of images in repository: {len(images)}")

            unused = filter_old_unused_images(
                max_images, images, used_images.get(name, set())
            )
            if not unused:
                self._logger.info(
                    "There are no old unused images to remove. Continuing."
                )
                continue

            self._logger.info(f"Removing {len(unused)} old unused images.")
            try:
                self._registry.delete_images(name, unused)
            except Exception as e:
                errors.append(ImageDeleteError(name, e))
                continue

        self._logger.info("Cleanup pass finished.", errors=len(errors))
        return errors
