"""
Risk model based on the minimal sample uniques (MSUs) of a dataset.

Ties projection, key search and aggregation together behind a single
read-only result object.
"""

import logging
from typing import Iterable, Optional, Tuple

from .controller import AnalysisController
from .data_handle import DataHandle
from .key_search import KeySearchEngine
from .projection import project_dataset
from .statistics import MSUStatistics

# Configure logging
logger = logging.getLogger(__name__)

# Share of the progress range used up once the projection is built
PROJECTION_PROGRESS = 10


class RiskModelMSU:
    """
    MSU statistics for a set of attributes of a dataset.

    The analysis runs synchronously in the constructor. Run it on a worker
    thread (see MSUAnalysisRunner) to keep a caller responsive; cancellation
    goes through the controller's stop flag.

    Attributes:
        statistics (MSUStatistics): The complete, immutable result

    Example:
        >>> controller = AnalysisController()
        >>> model = RiskModelMSU(handle, {'age', 'zip'}, controller, max_key_length=2)
        >>> model.num_keys, model.attributes
    """

    def __init__(
        self,
        handle: DataHandle,
        identifiers: Optional[Iterable[str]],
        controller: AnalysisController,
        max_key_length: int
    ):
        """
        Run the analysis.

        Args:
            handle: Dataset to analyze
            identifiers: Attribute names to consider (None or empty = all)
            controller: Shared stop flag and progress value for this run
            max_key_length: Largest key size to search for

        Raises:
            UnknownAttributeError: If an identifier is not in the dataset
            AnalysisInterruptedError: If the stop flag was set during the run
            ValueError: If max_key_length is not positive
        """
        if max_key_length < 1:
            raise ValueError(f"max_key_length must be positive, got {max_key_length}")

        self.controller = controller

        # An already cancelled run must leave progress untouched
        controller.check_interrupt()

        projection = project_dataset(handle, identifiers)

        controller.progress = PROJECTION_PROGRESS
        controller.check_interrupt()

        engine = KeySearchEngine(
            projection.matrix,
            controller=controller,
            progress_listener=self._on_progress,
        )
        statistics = engine.get_statistics(max_key_length)

        self.statistics: MSUStatistics = statistics.with_attributes(projection.attributes)
        controller.progress = 100

        logger.info(f"MSU analysis complete: {self.statistics.num_keys} MSUs over "
                    f"{len(projection.attributes)} attributes")

    def _on_progress(self, progress: float) -> None:
        # The engine only reports 1.0 once done; 100 is set after finalizing
        value = PROJECTION_PROGRESS + int(progress * (100 - PROJECTION_PROGRESS))
        self.controller.progress = min(value, 99)

    @property
    def attributes(self) -> Tuple[str, ...]:
        return self.statistics.attributes

    @property
    def num_keys(self) -> int:
        return self.statistics.num_keys

    @property
    def average_key_size(self) -> float:
        return self.statistics.average_key_size

    @property
    def column_key_contributions(self) -> Tuple[float, ...]:
        """Share of all MSU column memberships per attribute."""
        return self.statistics.column_key_contributions

    @property
    def key_size_distribution(self) -> Tuple[float, ...]:
        return self.statistics.key_size_distribution

    @property
    def column_average_key_size(self) -> Tuple[Optional[float], ...]:
        """Average MSU size per attribute; None where the attribute is in no MSU."""
        return self.statistics.column_average_key_size

    @property
    def max_key_length(self) -> int:
        return self.statistics.max_key_length

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(num_keys={self.num_keys}, "
                f"max_key_length={self.max_key_length}, attributes={list(self.attributes)})")


def compute_msu_statistics(
    handle: DataHandle,
    identifiers: Optional[Iterable[str]] = None,
    max_key_length: int = 3
) -> MSUStatistics:
    """
    Convenience function to compute MSU statistics without managing a controller.

    Args:
        handle: Dataset to analyze
        identifiers: Attribute names to consider (None = all)
        max_key_length: Largest key size to search for

    Returns:
        MSUStatistics labelled with the analyzed attribute names
    """
    model = RiskModelMSU(handle, identifiers, AnalysisController(), max_key_length)
    return model.statistics
