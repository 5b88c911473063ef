"""Run cleanup passes on a fixed interval in a background thread."""

import datetime
import threading
from collections.abc import Callable
from enum import Enum
from typing import TypeAlias

import structlog
from structlog.stdlib import BoundLogger

from ..exceptions import CleanupError
from .reaper import Reaper

ErrorHandler: TypeAlias = Callable[[list[CleanupError]], None]


class SchedulerState(Enum):
    """Lifecycle of a scheduler.  Stopped is terminal."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class CleanupScheduler:
    """Repeatedly runs a reaper's cleanup pass until stopped.

    Passes never overlap: the next interval starts counting only when a
    pass finishes.  A pass in progress is never interrupted; `stop` waits
    for it.

    Parameters
    ----------
    reaper
        Reaper whose pass to run.
    namespaces
        Namespaces whose pods pin images.
    repositories
        Repositories to clean.
    max_images
        Number of unused images each repository may keep.
    on_errors
        Called with the errors of each pass that had any.  By default, each
        error is logged.
    logger
        Logger to use for messages.
    """

    def __init__(
        self,
        reaper: Reaper,
        *,
        namespaces: list[str],
        repositories: list[str],
        max_images: int,
        on_errors: ErrorHandler | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._reaper = reaper
        self._namespaces = namespaces
        self._repositories = repositories
        self._max_images = max_images
        self._logger = logger or structlog.get_logger(__name__)
        self._on_errors = on_errors or self._log_errors
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.state = SchedulerState.IDLE

    def start(self, interval: datetime.timedelta) -> None:
        """Start running a pass every ``interval``.

        The first pass runs one interval after this call.

        Raises
        ------
        ValueError
            ``interval`` is not positive.
        RuntimeError
            The scheduler has already been started or stopped.
        """
        if interval <= datetime.timedelta(0):
            raise ValueError(f"Interval must be positive, not {interval}")
        with self._lock:
            if self.state != SchedulerState.IDLE:
                raise RuntimeError(
                    f"Cannot start scheduler in state {self.state.value}"
                )
            self._thread = threading.Thread(
                target=self._loop,
                args=(interval.total_seconds(),),
                name="cleanup-scheduler",
                daemon=True,
            )
            self.state = SchedulerState.RUNNING
            self._thread.start()
        self._logger.info(f"Started cleanup scheduler every {interval}.")

    def stop(self) -> None:
        """Stop the scheduler.

        When this returns, the loop has exited and no further pass will
        start.  Stopping more than once is harmless.
        """
        with self._lock:
            self._stopping.set()
            thread = self._thread
            self.state = SchedulerState.STOPPED
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._logger.info("Stopped cleanup scheduler.")

    def _loop(self, interval: float) -> None:
        while not self._stopping.wait(interval):
            self._run_once()

    def _run_once(self) -> None:
        try:
            errors = self._reaper.run_pass(
                self._namespaces, self._repositories, self._max_images
            )
            if errors:
                self._on_errors(errors)
        except Exception:
            # The next pass must still run.
            self._logger.exception("Cleanup pass raised an exception")

    def _log_errors(self, errors: list[CleanupError]) -> None:
        for err in errors:
            self._logger.error(str(err), repository=err.repository)
