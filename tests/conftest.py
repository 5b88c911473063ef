"""Test fixtures for Kubernetes image reaper."""

import datetime
from pathlib import Path

import pytest

from kube_reaper.config import RegistryConfig
from kube_reaper.models.image import (
    ImageReference,
    Pod,
    RegistryImage,
    Repository,
)
from kube_reaper.models.registry_category import RegistryCategory
from kube_reaper.storage.registry import ContainerRegistryClient

FAKE_HOST = "registry.example.com"
BASE_TIME = datetime.datetime(2024, 6, 1, 12, 0, 0, tzinfo=datetime.UTC)


def make_digest(n: int) -> str:
    """Return a well-formed sha256 digest unique to ``n``."""
    return f"sha256:{n:064x}"


def make_image(n: int, *, age_hours: int | None = None) -> RegistryImage:
    """Make an image tagged ``T<n>``, pushed ``age_hours`` (default ``n``)
    hours before `BASE_TIME`, so a lower ``n`` is a newer image.
    """
    hours = n if age_hours is None else age_hours
    return RegistryImage(
        digest=make_digest(n),
        tags={f"T{n}"},
        pushed_at=BASE_TIME - datetime.timedelta(hours=hours),
    )


def make_pod(name: str, *images: str, namespace: str = "default") -> Pod:
    return Pod(name=name, namespace=namespace, images=list(images))


class FakeClusterClient:
    """Cluster client serving a fixed list of pods, or failing."""

    def __init__(
        self, pods: list[Pod] | None = None, error: Exception | None = None
    ) -> None:
        self.pods = pods or []
        self.error = error
        self.calls: list[list[str]] = []

    def list_all_pods(self, namespaces: list[str]) -> list[Pod]:
        self.calls.append(namespaces)
        if self.error:
            raise self.error
        return list(self.pods)


class FakeRegistryClient(ContainerRegistryClient):
    """In-memory registry at `FAKE_HOST`.

    Deletions are recorded in ``delete_calls`` and remove the images from
    the inventory, so a second pass sees the result of the first.
    """

    def __init__(
        self,
        inventory: dict[str, list[RegistryImage]],
        *,
        list_error: Exception | None = None,
        image_errors: dict[str, Exception] | None = None,
        delete_errors: dict[str, Exception] | None = None,
    ) -> None:
        self.inventory = inventory
        self.list_error = list_error
        self.image_errors = image_errors or {}
        self.delete_errors = delete_errors or {}
        self.delete_calls: list[tuple[str, list[str]]] = []

    def list_repositories(self, names: list[str]) -> list[Repository]:
        if self.list_error:
            raise self.list_error
        return [Repository(name=x) for x in names or self.inventory]

    def list_images(self, repository: str) -> list[RegistryImage]:
        if repository in self.image_errors:
            raise self.image_errors[repository]
        return list(self.inventory.get(repository, []))

    def delete_images(
        self, repository: str, images: list[RegistryImage]
    ) -> None:
        self.delete_calls.append((repository, [x.identifier for x in images]))
        if repository in self.delete_errors:
            raise self.delete_errors[repository]
        doomed = {x.identifier for x in images}
        self.inventory[repository] = [
            x for x in self.inventory[repository] if x.identifier not in doomed
        ]

    def repository_for(self, ref: ImageReference) -> str | None:
        if ref.host != FAKE_HOST:
            return None
        return ref.repository


@pytest.fixture
def five_images() -> list[RegistryImage]:
    """Five unused images, T1 newest through T5 oldest, listed in a
    shuffled order.
    """
    return [make_image(n) for n in (3, 1, 5, 2, 4)]


@pytest.fixture
def ecr_cfg() -> RegistryConfig:
    """Config for Amazon Elastic Container Registry."""
    return RegistryConfig(category=RegistryCategory.ECR, region="us-east-1")


@pytest.fixture
def gar_cfg() -> RegistryConfig:
    """Config for Google Artifact Registry."""
    return RegistryConfig(
        category=RegistryCategory.GAR,
        region="us-central1",
        project="rubin-shared-services-71ec",
    )


@pytest.fixture
def test_config() -> Path:
    """YAML configuration file."""
    return Path(__file__).parent / "support" / "config.yaml"
