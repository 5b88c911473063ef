"""Determine which registry images are in use by pods."""

from collections.abc import Callable, Iterable
from typing import TypeAlias

import structlog

from ..models.image import ImageReference, Pod, UsedImageSet

RepositoryLocator: TypeAlias = Callable[[ImageReference], str | None]


def resolve_used_images(
    pods: Iterable[Pod], locate: RepositoryLocator | None = None
) -> UsedImageSet:
    """Map each repository to the tags and digests referenced by pods.

    Parameters
    ----------
    pods
        Snapshot of pods in the cluster.
    locate
        Maps a parsed reference to the name of the repository it refers to
        in the registry being cleaned, or `None` if the reference points at
        some other registry.  If not given, every reference counts, keyed by
        its repository path.

    Returns
    -------
    dict of str to set of str
        Identifiers in use, by repository name.

    Notes
    -----
    Image strings that cannot be parsed are logged and skipped.  They are
    not treated as in use.
    """
    logger = structlog.get_logger(__name__)
    used: UsedImageSet = {}
    for pod in pods:
        for image in pod.images:
            try:
                ref = ImageReference.from_str(image)
            except ValueError:
                logger.warning(
                    "Skipping unparseable image reference",
                    image=image,
                    pod=pod.name,
                    namespace=pod.namespace,
                )
                continue
            repository = locate(ref) if locate else ref.repository
            if repository is None:
                logger.debug(f"Ignoring image {ref} from another registry")
                continue
            used.setdefault(repository, set()).update(ref.identifiers)
    return used
