"""Configuration for reaper of images unused by a Kubernetes cluster."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Self

import yaml
from pydantic import Field, HttpUrl, model_validator
from safir.pydantic import CamelCaseModel

from .models.registry_category import RegistryCategory


class ClusterConfig(CamelCaseModel):
    """How to reach the Kubernetes cluster and which pods to inspect."""

    namespaces: Annotated[
        list[str],
        Field(
            title="Namespaces",
            description=(
                "Namespaces whose pods pin images as in use.  Empty means "
                "all namespaces."
            ),
            examples=[["default", "apps"]],
        ),
    ] = []

    kube_config: Annotated[
        Path | None,
        Field(
            title="Kubeconfig",
            description=(
                "Path to kubeconfig file.  If unset, use the in-cluster "
                "service account when running in a pod, and the default "
                "kubeconfig otherwise."
            ),
        ),
    ] = None


class RegistryConfig(CamelCaseModel):
    """Configuration to talk to a particular container registry."""

    category: Annotated[
        RegistryCategory,
        Field(
            title="Category",
            description="Category of registry",
            examples=[RegistryCategory.ECR],
        ),
    ] = RegistryCategory.ECR

    region: Annotated[
        str,
        Field(
            title="Region",
            description="AWS region for ECR; location for GAR",
            examples=["us-east-1", "us-central1"],
        ),
    ]

    registry_id: Annotated[
        str | None,
        Field(
            title="Registry ID",
            description=(
                "AWS account ID owning the ECR registry.  If unset, the "
                "default registry for the credentials is used."
            ),
            examples=["123456789012"],
        ),
    ] = None

    project: Annotated[
        str | None,
        Field(
            title="Project",
            description="Google Cloud project ID (GAR only)",
            examples=["rubin-shared-services-71ec"],
        ),
    ] = None

    endpoint: Annotated[
        HttpUrl | None,
        Field(
            title="Endpoint",
            description="Override for the registry API endpoint URL",
        ),
    ] = None

    @model_validator(mode="after")
    def _validate_project(self) -> Self:
        if self.category == RegistryCategory.GAR and not self.project:
            raise ValueError("GAR registry requires 'project'")
        return self


class Config(CamelCaseModel):
    """Configuration for the periodic image cleanup."""

    interval: Annotated[
        int,
        Field(
            title="Interval",
            description="Minutes between cleanup passes",
            gt=0,
            examples=[60],
        ),
    ] = 60

    max_images: Annotated[
        int,
        Field(
            title="Maximum images",
            description=(
                "Number of most-recently-pushed images to keep in each "
                "repository beyond those in use."
            ),
            ge=0,
            examples=[10],
        ),
    ]

    repositories: Annotated[
        list[str],
        Field(
            title="Repositories",
            description=(
                "Names of repositories to clean.  Empty means every "
                "repository in the registry."
            ),
            examples=[["app", "worker"]],
        ),
    ] = []

    cluster: Annotated[
        ClusterConfig,
        Field(
            title="Cluster",
            description="Kubernetes cluster whose pods define usage.",
        ),
    ] = ClusterConfig()

    registry: Annotated[
        RegistryConfig,
        Field(
            title="Registry",
            description="Container registry to clean.",
        ),
    ]

    dry_run: Annotated[
        bool,
        Field(
            title="Dry run",
            description="Do not actually delete any images from registry.",
        ),
    ] = True

    debug: Annotated[
        bool,
        Field(
            title="Debug",
            description="Much more verbose logging.",
        ),
    ] = False

    @classmethod
    def from_file(cls, path: Path) -> Self:
        return cls.model_validate(yaml.safe_load(path.read_text()))
