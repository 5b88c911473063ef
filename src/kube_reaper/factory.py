"""Component factory."""

from __future__ import annotations

import structlog
from structlog.stdlib import BoundLogger

from .config import Config
from .models.registry_category import RegistryCategory
from .services.reaper import Reaper
from .services.scheduler import CleanupScheduler
from .storage.cluster import KubernetesClient
from .storage.ecr import ECRClient
from .storage.gar import GARClient
from .storage.registry import ContainerRegistryClient


class Factory:
    """Build reaper components.

    Client construction talks to no remote service, but it does load
    credentials, and any failure to do so propagates to the caller.

    Parameters
    ----------
    config
        Reaper configuration.
    logger
        Logger to use for messages.
    """

    def __init__(
        self, config: Config, logger: BoundLogger | None = None
    ) -> None:
        self._config = config
        self._logger = logger or structlog.get_logger(__name__)

    def create_cluster_client(self) -> KubernetesClient:
        return KubernetesClient(self._config.cluster.kube_config)

    def create_registry_client(self) -> ContainerRegistryClient:
        cfg = self._config.registry
        dry_run = self._config.dry_run
        match cfg.category:
            case RegistryCategory.ECR:
                return ECRClient(cfg, dry_run=dry_run)
            case RegistryCategory.GAR:
                return GARClient(cfg, dry_run=dry_run)
            case _:
                raise NotImplementedError(
                    f"Storage driver for {cfg.category} not implemented yet"
                )

    def create_reaper(self) -> Reaper:
        return Reaper(
            self.create_cluster_client(),
            self.create_registry_client(),
            logger=self._logger,
        )

    def create_scheduler(self) -> CleanupScheduler:
        return CleanupScheduler(
            self.create_reaper(),
            namespaces=self._config.cluster.namespaces,
            repositories=self._config.repositories,
            max_images=self._config.max_images,
            logger=self._logger,
        )
