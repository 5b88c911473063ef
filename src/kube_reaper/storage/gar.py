"""Storage client for Google Artifact Registry."""

import datetime
from typing import Any
from urllib.parse import quote, unquote

from google.cloud.artifactregistry_v1 import (
    ArtifactRegistryClient,
    BatchDeleteVersionsRequest,
    ListDockerImagesRequest,
)
from google.cloud.artifactregistry_v1 import Repository as GARRepository
from google.cloud.artifactregistry_v1.types import DockerImage
from google.protobuf.empty_pb2 import Empty

from ..config import RegistryConfig
from ..models.image import ImageReference, RegistryImage, Repository
from ..models.registry_category import RegistryCategory
from .registry import ContainerRegistryClient


class GARClient(ContainerRegistryClient):
    """Client for Google Artifact Registry.

    Repositories, in the sense of the cleaner, are named
    ``<gar-repository>/<image>``: an image such as
    ``us-central1-docker.pkg.dev/my-project/sciplat/sciplat-lab:w_2024_01``
    lives in repository ``sciplat/sciplat-lab``.

    In production, we will use Workload Identity.  For testing, we will
    use application default credentials.
    """

    def __init__(
        self, cfg: RegistryConfig, *, dry_run: bool = True, client: Any = None
    ) -> None:
        if cfg.category != RegistryCategory.GAR:
            raise ValueError(
                "GAR registry client must have value "
                f"'{RegistryCategory.GAR.value}', not '{cfg.category.value}'"
            )
        super()._extract_registry_config(cfg, dry_run=dry_run)
        self._host = f"{self._region}-docker.pkg.dev"
        self._location_path = (
            f"projects/{self._project}/locations/{self._region}"
        )
        if client is None:
            options = None
            if self._endpoint:
                options = {"api_endpoint": self._endpoint}
            client = ArtifactRegistryClient(client_options=options)
        self._client = client

    def _split(self, repository: str) -> tuple[str, str]:
        gar_repo, sep, image = repository.partition("/")
        if not sep or not image:
            raise ValueError(
                f"GAR repository '{repository}' must have the form "
                "'<repository>/<image>'"
            )
        return gar_repo, image

    def _parent(self, gar_repo: str) -> str:
        return f"{self._location_path}/repositories/{gar_repo}"

    def _uri(self, repository: str) -> str:
        return f"{self._host}/{self._project}/{repository}"

    def list_repositories(self, names: list[str]) -> list[Repository]:
        if not names:
            return self._list_all_repositories()
        checked: set[str] = set()
        for name in names:
            gar_repo, _ = self._split(name)
            if gar_repo not in checked:
                # Raises NotFound if the repository does not exist.
                self._client.get_repository(name=self._parent(gar_repo))
                checked.add(gar_repo)
        return [Repository(name=x, uri=self._uri(x)) for x in names]

    def _list_all_repositories(self) -> list[Repository]:
        repos: list[Repository] = []
        for gar_repo in self._client.list_repositories(
            parent=self._location_path
        ):
            if gar_repo.format_ != GARRepository.Format.DOCKER:
                continue
            repo_id = gar_repo.name.split("/")[-1]
            for package in self._client.list_packages(parent=gar_repo.name):
                image = unquote(package.name.split("/")[-1])
                name = f"{repo_id}/{image}"
                repos.append(Repository(name=name, uri=self._uri(name)))
        self._logger.debug(f"Found {len(repos)} repositories")
        return repos

    def list_images(self, repository: str) -> list[RegistryImage]:
        gar_repo, image = self._split(repository)
        parent = self._parent(gar_repo)
        images: list[DockerImage] = []
        page_size = 100
        request = ListDockerImagesRequest(parent=parent, page_size=page_size)
        count = 0
        while True:
            self._logger.debug(
                f"Requesting {parent}: images "
                f"{count*page_size + 1}-{(count+1) * page_size}"
            )
            resp = self._client.list_docker_images(request=request)
            images.extend(list(resp.docker_images))
            if not resp.next_page_token:
                break
            request = ListDockerImagesRequest(
                parent=parent,
                page_token=resp.next_page_token,
                page_size=page_size,
            )
            count += 1
        return self._gar_to_images(images, image)

    def _gar_to_images(
        self, images: list[DockerImage], image: str
    ) -> list[RegistryImage]:
        ret: list[RegistryImage] = []
        for img in images:
            image_path, digest = img.name.split("@", 1)
            name = unquote(image_path.split("/")[-1])
            if name != image:
                continue
            ut = img.upload_time
            micros = int(ut.nanosecond / 1000)
            dt = datetime.datetime(
                year=ut.year,
                month=ut.month,
                day=ut.day,
                hour=ut.hour,
                minute=ut.minute,
                second=ut.second,
                microsecond=micros,
                tzinfo=datetime.UTC,
            )
            ret.append(
                RegistryImage(digest=digest, tags=set(img.tags), pushed_at=dt)
            )
        self._logger.debug(f"Found {len(ret)} images for {image}")
        return ret

    def delete_images(
        self, repository: str, images: list[RegistryImage]
    ) -> None:
        gar_repo, image = self._split(repository)
        package = f"{self._parent(gar_repo)}/packages/{quote(image, safe='')}"
        dry = " (not really)" if self._dry_run else ""
        count = len(images)
        limit = 50
        # Empirical:
        #
        # google.api_core.exceptions.InvalidArgument: 400
        # A maximum of 50 versions are allowed per request
        for chunk in self._chunk_images(images, limit):
            names = [f"{package}/versions/{x.identifier}" for x in chunk]
            req = BatchDeleteVersionsRequest(
                parent=package,
                names=names,
                validate_only=self._dry_run,
            )
            self._logger.debug(f"Request: {req}")
            self._logger.info(f"Deleting images {names}{dry}")
            operation = self._client.batch_delete_versions(request=req)
            resp = operation.result()
            if not isinstance(resp, Empty):
                e_str = f"Something went wrong with batch deletion: {resp}"
                self._logger.error(e_str, response=resp)
                raise RuntimeError(e_str)
        self._logger.info(f"Deleted {count} images from {repository}{dry}")

    def repository_for(self, ref: ImageReference) -> str | None:
        if ref.host != self._host:
            return None
        project, _, repository = ref.repository.partition("/")
        if project != self._project or "/" not in repository:
            return None
        return repository
