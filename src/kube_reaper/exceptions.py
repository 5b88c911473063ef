"""Errors reported by a cleanup pass."""

__all__ = [
    "CleanupError",
    "ImageDeleteError",
    "ImageListError",
    "PodListError",
    "RepositoryListError",
]


class CleanupError(Exception):
    """Base class for errors collected during a cleanup pass.

    These are returned to the caller of the pass rather than raised.  The
    underlying client exception is kept as ``__cause__``.

    Parameters
    ----------
    message
        Human-readable description of what failed.
    cause
        Exception raised by the cluster or registry client.
    repository
        Repository being processed, if the failure is specific to one.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        repository: str | None = None,
    ) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.__cause__ = cause
        self.repository = repository


class PodListError(CleanupError):
    """Pods could not be listed; the whole pass was abandoned."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__("Cannot list pods", cause)


class RepositoryListError(CleanupError):
    """Repositories could not be listed; the whole pass was abandoned."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__("Cannot list repositories", cause)


class ImageListError(CleanupError):
    """One repository's inventory could not be listed."""

    def __init__(self, repository: str, cause: BaseException) -> None:
        super().__init__(
            f"Cannot list images from repository '{repository}'",
            cause,
            repository=repository,
        )


class ImageDeleteError(CleanupError):
    """Batch deletion failed for one repository."""

    def __init__(self, repository: str, cause: BaseException) -> None:
        super().__init__(
            f"Could not batch remove images from repository '{repository}'",
            cause,
            repository=repository,
        )
