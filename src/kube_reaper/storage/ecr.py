"""Storage client for Amazon Elastic Container Registry."""

import datetime
import re
from typing import Any

import boto3
from botocore.config import Config as BotoConfig

from ..config import RegistryConfig
from ..models.image import ImageReference, RegistryImage, Repository
from ..models.registry_category import RegistryCategory
from .registry import ContainerRegistryClient

CONNECT_TIMEOUT = 10
READ_TIMEOUT = 60
MAX_ATTEMPTS = 10


class ECRClient(ContainerRegistryClient):
    """Client for Amazon Elastic Container Registry.

    Parameters
    ----------
    cfg
        Registry configuration.
    dry_run
        If set, log deletions instead of performing them.
    client
        Boto3 ECR client to use.  If not given, one is created for the
        configured region and endpoint.
    """

    def __init__(
        self, cfg: RegistryConfig, *, dry_run: bool = True, client: Any = None
    ) -> None:
        if cfg.category != RegistryCategory.ECR:
            raise ValueError(
                "ECR registry client must have value "
                f"'{RegistryCategory.ECR.value}', not '{cfg.category.value}'"
            )
        super()._extract_registry_config(cfg, dry_run=dry_run)
        account = r"\d{12}"
        if self._registry_id:
            account = re.escape(self._registry_id)
        self._host_re = re.compile(
            rf"{account}\.dkr\.ecr(?:-fips)?\.{re.escape(self._region)}"
            r"\.amazonaws\.com(?:\.cn)?"
        )
        if client is None:
            client = boto3.client(
                "ecr",
                region_name=self._region,
                endpoint_url=self._endpoint,
                config=BotoConfig(
                    connect_timeout=CONNECT_TIMEOUT,
                    read_timeout=READ_TIMEOUT,
                    retries={"max_attempts": MAX_ATTEMPTS},
                ),
            )
        self._client = client

    def _registry_args(self) -> dict[str, str]:
        if self._registry_id:
            return {"registryId": self._registry_id}
        return {}

    def list_repositories(self, names: list[str]) -> list[Repository]:
        args: dict[str, Any] = self._registry_args()
        if names:
            args["repositoryNames"] = names
        repos: list[Repository] = []
        paginator = self._client.get_paginator("describe_repositories")
        for page in paginator.paginate(**args):
            repos.extend(
                Repository(
                    name=r["repositoryName"], uri=r.get("repositoryUri")
                )
                for r in page["repositories"]
            )
        self._logger.debug(f"Found {len(repos)} repositories")
        return repos

    def list_images(self, repository: str) -> list[RegistryImage]:
        images: list[RegistryImage] = []
        paginator = self._client.get_paginator("describe_images")
        for page in paginator.paginate(
            repositoryName=repository, **self._registry_args()
        ):
            for detail in page["imageDetails"]:
                pushed = detail.get("imagePushedAt")
                if pushed is not None and pushed.tzinfo is None:
                    pushed = pushed.replace(tzinfo=datetime.UTC)
                images.append(
                    RegistryImage(
                        digest=detail["imageDigest"],
                        tags=set(detail.get("imageTags", [])),
                        pushed_at=pushed,
                    )
                )
        self._logger.debug(f"Found {len(images)} images in {repository}")
        return images

    def delete_images(
        self, repository: str, images: list[RegistryImage]
    ) -> None:
        dry = " (not really)" if self._dry_run else ""
        count = len(images)
        # A maximum of 100 image IDs are allowed per request
        limit = 100
        for chunk in self._chunk_images(images, limit):
            ids = [self._image_id(x) for x in chunk]
            self._logger.info(
                f"Deleting images {[str(x) for x in chunk]} from "
                f"{repository}{dry}"
            )
            if self._dry_run:
                continue
            resp = self._client.batch_delete_image(
                repositoryName=repository,
                imageIds=ids,
                **self._registry_args(),
            )
            failures = resp.get("failures", [])
            if failures:
                e_str = (
                    f"Batch deletion failed for {len(failures)} of "
                    f"{len(ids)} images"
                )
                self._logger.error(e_str, failures=failures)
                detail = "; ".join(
                    f"{f.get('failureCode')}: {f.get('failureReason')}"
                    for f in failures
                )
                raise RuntimeError(f"{e_str}: {detail}")
        self._logger.info(f"Deleted {count} images from {repository}{dry}")

    def _image_id(self, img: RegistryImage) -> dict[str, str]:
        if img.digest:
            return {"imageDigest": img.digest}
        return {"imageTag": img.identifier}

    def repository_for(self, ref: ImageReference) -> str | None:
        if not self._host_re.fullmatch(ref.host):
            return None
        return ref.repository
