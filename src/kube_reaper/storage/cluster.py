"""Client for listing pods in a Kubernetes cluster."""

import os
from pathlib import Path
from typing import Any

import structlog
from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from ..models.image import Pod

SERVICE_ACCOUNT_TOKEN = Path(
    "/var/run/secrets/kubernetes.io/serviceaccount/token"
)
TERMINATED_PHASES = ("Succeeded", "Failed")

# Prefix some container runtimes put on the image ID in container statuses.
_IMAGE_ID_SCHEMES = ("docker-pullable://", "docker://")


def _in_cluster() -> bool:
    return bool(
        os.environ.get("KUBERNETES_SERVICE_HOST")
        or SERVICE_ACCOUNT_TOKEN.exists()
    )


class KubernetesClient:
    """Read-only view of the pods running in a cluster.

    Parameters
    ----------
    kube_config
        Path to a kubeconfig file.  If not given, use the in-cluster
        service account when running in a pod, and the default kubeconfig
        otherwise.
    api
        Core API client to use.  If given, no configuration is loaded.
    page_size
        Number of pods to request at a time.
    """

    def __init__(
        self,
        kube_config: Path | None = None,
        *,
        api: Any = None,
        page_size: int = 500,
    ) -> None:
        self._logger = structlog.get_logger(__name__)
        self._page_size = page_size
        if api is None:
            self._load_config(kube_config)
            api = client.CoreV1Api()
        self._api = api

    def _load_config(self, kube_config: Path | None) -> None:
        if kube_config is not None:
            config.load_kube_config(config_file=str(kube_config))
            self._logger.info(
                f"Kubernetes client initialized from {kube_config}"
            )
            return
        if _in_cluster():
            try:
                config.load_incluster_config()
            except ConfigException as e:
                self._logger.warning(
                    f"In-cluster config failed ({e}); trying kubeconfig"
                )
            else:
                self._logger.info(
                    "Kubernetes client initialized with in-cluster config"
                )
                return
        config.load_kube_config()
        self._logger.info(
            "Kubernetes client initialized from local kubeconfig"
        )

    def list_all_pods(self, namespaces: list[str]) -> list[Pod]:
        """List live pods in the given namespaces, or in all namespaces if
        ``namespaces`` is empty.

        Pods that have terminated are left out, since they will not pull
        their images again.  API errors propagate to the caller.
        """
        selector = ",".join(f"status.phase!={x}" for x in TERMINATED_PHASES)
        pods: list[Pod] = []
        if not namespaces:
            pods.extend(
                self._list(self._api.list_pod_for_all_namespaces, selector)
            )
        for namespace in namespaces:
            pods.extend(
                self._list(
                    self._api.list_namespaced_pod,
                    selector,
                    namespace=namespace,
                )
            )
        self._logger.debug(f"Found {len(pods)} pods")
        return pods

    def _list(self, method: Any, selector: str, **kwargs: Any) -> list[Pod]:
        pods: list[Pod] = []
        cont: str | None = None
        while True:
            args = dict(kwargs, field_selector=selector)
            args["limit"] = self._page_size
            if cont:
                args["_continue"] = cont
            resp = method(**args)
            pods.extend(self._to_pod(x) for x in resp.items)
            cont = resp.metadata._continue if resp.metadata else None
            if not cont:
                return pods

    def _to_pod(self, pod: Any) -> Pod:
        images: list[str] = []
        spec = pod.spec
        if spec is not None:
            for containers in (
                spec.containers,
                spec.init_containers,
                spec.ephemeral_containers,
            ):
                images.extend(c.image for c in containers or [] if c.image)
        status = pod.status
        if status is not None:
            for statuses in (
                status.container_statuses,
                status.init_container_statuses,
            ):
                for cs in statuses or []:
                    image_id = self._strip_scheme(cs.image_id or "")
                    # A bare digest is a local image ID, not a reference.
                    if "@" in image_id:
                        images.append(image_id)
        return Pod(
            name=pod.metadata.name,
            namespace=pod.metadata.namespace,
            images=images,
        )

    def _strip_scheme(self, image_id: str) -> str:
        for scheme in _IMAGE_ID_SCHEMES:
            if image_id.startswith(scheme):
                return image_id[len(scheme) :]
        return image_id
