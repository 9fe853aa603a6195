"""
Runs MSU analyses on a background worker, at most one at a time.

Starting a new analysis first cancels the running one and waits for it to
observe its stop flag. Results are only handed out once complete.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Optional

import yaml
from tqdm import tqdm

from .controller import AnalysisController
from .data_handle import DataHandle
from .risk_model import RiskModelMSU

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class AnalysisRun:
    """One started analysis and its outcome (result or error, never both)."""
    controller: AnalysisController
    thread: Optional[threading.Thread] = None
    result: Optional[RiskModelMSU] = None
    error: Optional[Exception] = None
    done: threading.Event = field(default_factory=threading.Event)


class MSUAnalysisRunner:
    """
    Single-flight executor for RiskModelMSU over one dataset.

    Attributes:
        handle (DataHandle): Dataset analyzed by every run
        poll_interval (float): Seconds between progress polls in run()

    Example:
        >>> runner = MSUAnalysisRunner(handle)
        >>> runner.start(identifiers=None, max_key_length=3)
        >>> model = runner.wait()
        >>> runner.export_results(model, "results/")
    """

    def __init__(self, handle: DataHandle, poll_interval: float = 0.1):
        self.handle = handle
        self.poll_interval = poll_interval

        self._lock = threading.Lock()
        self._run: Optional[AnalysisRun] = None

    @property
    def progress(self) -> int:
        """Progress of the current (or last) analysis, 0..100."""
        run = self._run
        return run.controller.progress if run is not None else 0

    @property
    def is_running(self) -> bool:
        run = self._run
        return run is not None and not run.done.is_set()

    def start(
        self,
        identifiers: Optional[Iterable[str]] = None,
        max_key_length: int = 3
    ) -> AnalysisController:
        """
        Launch an analysis on a worker thread.

        Any analysis still running is cancelled and joined first.

        Args:
            identifiers: Attribute names to consider (None = all)
            max_key_length: Largest key size to search for

        Returns:
            The controller of the new run
        """
        return self._launch(identifiers, max_key_length).controller

    def _launch(self, identifiers, max_key_length: int) -> AnalysisRun:
        identifiers = None if identifiers is None else list(identifiers)

        with self._lock:
            self._cancel_and_join()

            run = AnalysisRun(controller=AnalysisController())
            run.thread = threading.Thread(
                target=self._work,
                args=(run, identifiers, max_key_length),
                name="msu-analysis",
                daemon=True,
            )
            self._run = run
            run.thread.start()

        logger.info(f"Started MSU analysis (max key length {max_key_length})")
        return run

    def _work(
        self,
        run: AnalysisRun,
        identifiers: Optional[list],
        max_key_length: int
    ) -> None:
        start_time = time.time()
        try:
            run.result = RiskModelMSU(self.handle, identifiers, run.controller, max_key_length)
        except Exception as e:
            # Handed to the caller by wait(); nothing partial is published
            run.error = e
            logger.warning(f"MSU analysis ended without result: {e}")
        else:
            logger.info(f"MSU analysis finished in {time.time() - start_time:.1f} seconds")
        finally:
            run.done.set()

    def _cancel_and_join(self) -> None:
        run = self._run
        if run is not None and not run.done.is_set():
            logger.info("Cancelling running MSU analysis")
            run.controller.request_stop()
            run.thread.join()

    def cancel(self) -> None:
        """Request cancellation of the running analysis and wait for it to exit."""
        with self._lock:
            self._cancel_and_join()

    def wait(self, timeout: Optional[float] = None) -> RiskModelMSU:
        """
        Block until the current analysis finishes.

        The outcome is that of the run that was current when wait() was
        called, even if another analysis is started meanwhile.

        Args:
            timeout: Optional seconds to wait; the analysis keeps running if
                     it expires

        Returns:
            The completed RiskModelMSU

        Raises:
            TimeoutError: If the analysis is still running after timeout
            AnalysisInterruptedError: If the analysis was cancelled
            UnknownAttributeError: If an identifier was not in the dataset
        """
        run = self._run
        if run is None:
            raise RuntimeError("No analysis has been started")

        if not run.done.wait(timeout):
            raise TimeoutError("MSU analysis still running")

        if run.error is not None:
            raise run.error
        return run.result

    def run(
        self,
        identifiers: Optional[Iterable[str]] = None,
        max_key_length: int = 3,
        show_progress: bool = True
    ) -> RiskModelMSU:
        """
        Run an analysis and block until it finishes.

        Args:
            identifiers: Attribute names to consider (None = all)
            max_key_length: Largest key size to search for
            show_progress: Whether to show a progress bar

        Returns:
            The completed RiskModelMSU
        """
        run = self._launch(identifiers, max_key_length)
        controller = run.controller

        if show_progress:
            with tqdm(total=100, desc="MSU analysis", unit="%") as bar:
                try:
                    while not run.done.wait(self.poll_interval):
                        bar.update(controller.progress - bar.n)
                except KeyboardInterrupt:
                    controller.request_stop()
                    run.done.wait()
                bar.update(controller.progress - bar.n)
        else:
            try:
                run.done.wait()
            except KeyboardInterrupt:
                controller.request_stop()
                run.done.wait()

        if run.error is not None:
            raise run.error
        return run.result

    def export_results(
        self,
        model: RiskModelMSU,
        output_dir: str,
        prefix: str = ""
    ) -> Dict[str, str]:
        """
        Export MSU statistics to CSV tables and a YAML summary.

        Args:
            model: Completed analysis to export
            output_dir: Directory for output files
            prefix: Optional prefix for filenames

        Returns:
            Dict mapping result type to file path
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        file_prefix = f"{prefix}_" if prefix else ""
        statistics = model.statistics

        exported_files = {}

        # Per-attribute contributions and average key sizes
        attributes_path = output_dir / f"{file_prefix}msu_attributes.csv"
        statistics.to_frame().to_csv(attributes_path, index=False)
        exported_files['attributes'] = str(attributes_path)

        # Key size distribution
        sizes_path = output_dir / f"{file_prefix}msu_size_distribution.csv"
        statistics.size_distribution_frame().to_csv(sizes_path, index=False)
        exported_files['size_distribution'] = str(sizes_path)

        summary_path = output_dir / f"{file_prefix}msu_summary.yaml"
        with open(summary_path, 'w') as f:
            yaml.safe_dump(statistics.to_dict(), f, default_flow_style=False, sort_keys=False)
        exported_files['summary'] = str(summary_path)

        logger.info(f"Exported MSU results to {output_dir}")

        return exported_files
