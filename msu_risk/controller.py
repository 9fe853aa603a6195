"""
Progress and cancellation state shared between a caller and an analysis worker.

The caller owns the controller and may set the stop flag at any time; the
worker polls it at bounded checkpoints and writes the progress value. The two
fields are independent, so no joint snapshot is ever needed.
"""

import logging
import threading

logger = logging.getLogger(__name__)


class AnalysisInterruptedError(RuntimeError):
    """Raised when an analysis observes its stop flag and aborts."""

    def __init__(self, message: str = "MSU analysis was interrupted"):
        super().__init__(message)


class AnalysisController:
    """
    Stop flag plus a 0..100 progress value for exactly one analysis run.

    The stop flag is a ``threading.Event`` so that a UI or CLI thread can
    request cancellation without any extra locking. Progress is a plain int:
    it is only ever written by the worker and reads of a stale value are
    harmless.

    Example:
        >>> controller = AnalysisController()
        >>> controller.request_stop()
        >>> controller.stop_requested
        True
    """

    def __init__(self):
        self._stop = threading.Event()
        self._progress = 0

    @property
    def progress(self) -> int:
        return self._progress

    @progress.setter
    def progress(self, value: int) -> None:
        value = int(value)
        if not 0 <= value <= 100:
            raise ValueError(f"Progress must be within [0, 100], got {value}")
        # Progress never moves backwards within a run
        if value > self._progress:
            self._progress = value

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def request_stop(self) -> None:
        """Ask the worker to abort at its next checkpoint."""
        if not self._stop.is_set():
            logger.info("Stop requested for running MSU analysis")
        self._stop.set()

    def check_interrupt(self) -> None:
        """Raise AnalysisInterruptedError if a stop was requested."""
        if self._stop.is_set():
            raise AnalysisInterruptedError()

    def reset(self) -> None:
        """Return to the initial (not stopped, 0%) state before reuse."""
        self._stop.clear()
        self._progress = 0

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(stop_requested={self.stop_requested}, "
                f"progress={self._progress})")
