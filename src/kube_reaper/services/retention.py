"""Retention filter choosing which unused images to delete."""

import datetime
from collections.abc import Iterable

from ..models.image import RegistryImage

_UNDATED = datetime.datetime.min.replace(tzinfo=datetime.UTC)


def _pushed_at(img: RegistryImage) -> datetime.datetime:
    if img.pushed_at is None:
        return _UNDATED
    if img.pushed_at.tzinfo is None:
        return img.pushed_at.replace(tzinfo=datetime.UTC)
    return img.pushed_at


def filter_old_unused_images(
    max_images: int, images: Iterable[RegistryImage], used: set[str]
) -> list[RegistryImage]:
    """Choose the images in one repository that are safe to delete.

    Images with any identifier in ``used`` are never returned.  Of the
    rest, the newest ``max_images`` minus the number of in-use images are
    kept and everything older is returned.

    Parameters
    ----------
    max_images
        Retention margin for the repository.
    images
        The repository's full inventory.
    used
        Tags and digests of the repository that pods reference.

    Returns
    -------
    list of RegistryImage
        Images to delete, newest first.  Equal push times are ordered by
        identifier; images with no push time count as oldest.

    Raises
    ------
    ValueError
        ``max_images`` is negative.
    """
    if max_images < 0:
        raise ValueError(f"max_images must be non-negative, not {max_images}")
    in_use: list[RegistryImage] = []
    candidates: list[RegistryImage] = []
    for img in images:
        if img.identifiers & used:
            in_use.append(img)
        else:
            candidates.append(img)
    # Sorts are stable, so sort by the tie-breaker first.
    candidates.sort(key=lambda x: x.identifier)
    candidates.sort(key=_pushed_at, reverse=True)
    keep_count = max(0, max_images - len(in_use))
    return candidates[keep_count:]
