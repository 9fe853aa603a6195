# =============================================================================
# key_search.py
# =============================================================================
# Core module for finding Minimal Sample Uniques (MSUs).
#
# An MSU is a record together with a set of attributes on which that record's
# values occur nowhere else in the dataset, such that no proper subset of the
# attributes is already unique for the record. MSUs are the building blocks of
# SUDA-style re-identification risk: short MSUs mean that a record can be
# singled out from very little information.
#
# Algorithm:
#   The search walks the lattice of attribute subsets level by level (by key
#   length), keeping for every subset S a *stripped partition*: the records
#   that share their S-values with at least one other record, grouped into
#   equivalence classes. Records missing from the partition of S are unique on
#   S and are never expanded further, which keeps the work proportional to the
#   number of non-unique records rather than to 2^(number of attributes).
#
#   Refining the partition of X = S - {c} by column c splits its classes;
#   records that end up alone are unique on S. Such a record is reported only
#   if it is still non-unique on every other subset of S one element shorter.
#
# References:
#   - Elliot, M. et al. (2002). SUDA: A program for detecting special uniques.
#   - Manning, A. et al. (2008). SUDA2: A Program for Detecting Minimal Sample
#     Uniques.
#   - Huhtala, Y. et al. (1999). TANE: An Efficient Algorithm for Discovering
#     Functional and Approximate Dependencies (stripped partitions).
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np

from .controller import AnalysisController
from .statistics import KeyStatisticsAggregator, MSUStatistics

# Configure logging
logger = logging.getLogger(__name__)

ProgressListener = Callable[[float], None]

# Progress stays below this until the search has actually finished
_MAX_PARTIAL_PROGRESS = 0.99


@dataclass(frozen=True)
class MinimalUniqueKey:
    """
    A record and a minimal set of columns that is unique for it.

    Attributes:
        row: Index of the record in the projected matrix
        columns: Strictly ascending column indices of the key
    """
    row: int
    columns: Tuple[int, ...]

    def __len__(self) -> int:
        return len(self.columns)


@dataclass
class StrippedPartition:
    """
    Records that are not unique on a set of columns, grouped by value tuple.

    Records are held as two parallel arrays rather than a tree of groups:
    ``rows`` lists the record indices in ascending order and ``labels`` gives
    the equivalence class of each. Unique records (singleton classes) are
    stripped.

    Attributes:
        columns: The column subset this partition is induced by
        rows: Ascending indices of records sharing their value tuple
        labels: Class label per entry of rows
    """
    columns: Tuple[int, ...]
    rows: np.ndarray
    labels: np.ndarray

    def __len__(self) -> int:
        return len(self.rows)

    @classmethod
    def from_column(
        cls,
        column: int,
        codes: np.ndarray
    ) -> Tuple["StrippedPartition", np.ndarray]:
        """
        Partition all records by one column.

        Args:
            column: Column index
            codes: Dense non-negative value codes of that column

        Returns:
            Tuple of (partition, ascending indices of records unique on column)
        """
        counts = np.bincount(codes)
        shared = counts[codes] > 1
        rows = np.arange(len(codes), dtype=np.int64)
        return cls((column,), rows[shared], codes[shared]), rows[~shared]

    def refine(
        self,
        column: int,
        codes: np.ndarray,
        cardinality: int
    ) -> Tuple["StrippedPartition", np.ndarray]:
        """
        Split every class by an additional column.

        Args:
            column: Column to add, larger than every column of this partition
            codes: Dense value codes of that column for all records
            cardinality: Number of distinct codes in the column

        Returns:
            Tuple of (partition for columns + (column,), records that became
            unique by adding the column)
        """
        keys = self.labels * cardinality + codes[self.rows]
        _, inverse, counts = np.unique(keys, return_inverse=True, return_counts=True)
        inverse = inverse.reshape(-1)
        shared = counts[inverse] > 1
        partition = StrippedPartition(self.columns + (column,), self.rows[shared], inverse[shared])
        return partition, self.rows[~shared]

    def covers(self, rows: np.ndarray) -> np.ndarray:
        """Boolean mask telling which of the given records are in this partition."""
        if len(self.rows) == 0:
            return np.zeros(len(rows), dtype=bool)
        positions = np.searchsorted(self.rows, rows)
        positions = np.minimum(positions, len(self.rows) - 1)
        return self.rows[positions] == rows


class KeySearchEngine:
    """
    Level-wise search for minimal sample uniques in an integer matrix.

    The engine is meant to run on one worker thread. It polls the
    controller's stop flag and reports progress at every checkpoint, which is
    after each processed column subset (or every ``checkpoint_interval``
    subsets).

    Attributes:
        num_rows (int): Number of records
        num_columns (int): Number of columns searched

    Example:
        >>> engine = KeySearchEngine(np.array([[1, 1], [1, 2], [2, 1]]))
        >>> [(k.row, k.columns) for k in engine.find_keys(2)]
        [(2, (0,)), (1, (1,)), (0, (0, 1))]
    """

    def __init__(
        self,
        matrix: np.ndarray,
        controller: Optional[AnalysisController] = None,
        progress_listener: Optional[ProgressListener] = None,
        checkpoint_interval: int = 1
    ):
        """
        Initialize the engine.

        Args:
            matrix: Row-major 2-D array of value codes, one column per attribute
            controller: Optional stop flag holder polled at checkpoints
            progress_listener: Optional callable receiving progress in [0, 1]
            checkpoint_interval: Number of column subsets between checkpoints
        """
        matrix = np.asarray(matrix)
        if matrix.ndim != 2:
            raise ValueError(f"Expected a 2-D matrix, got {matrix.ndim} dimensions")
        if checkpoint_interval < 1:
            raise ValueError("checkpoint_interval must be at least 1")

        self.num_rows, self.num_columns = matrix.shape
        self.controller = controller
        self.progress_listener = progress_listener
        self.checkpoint_interval = checkpoint_interval

        self._codes: List[np.ndarray] = []
        self._cardinalities: List[int] = []
        self._encode_columns(matrix)

        self._last_progress = 0.0
        self._pending = 0

    def _encode_columns(self, matrix: np.ndarray) -> None:
        """Re-encode each column to dense codes 0..cardinality-1."""
        for column in range(self.num_columns):
            uniques, inverse = np.unique(matrix[:, column], return_inverse=True)
            self._codes.append(inverse.reshape(-1).astype(np.int64))
            self._cardinalities.append(len(uniques))

    def _report(self, progress: float) -> None:
        progress = max(progress, self._last_progress)
        self._last_progress = progress
        if self.progress_listener is not None:
            self.progress_listener(progress)

    def _checkpoint(self, progress: float, force: bool = False) -> None:
        """Poll for cancellation and publish progress at bounded intervals."""
        self._pending += 1
        if not force and self._pending < self.checkpoint_interval:
            return
        self._pending = 0
        if self.controller is not None:
            self.controller.check_interrupt()
        self._report(min(progress, _MAX_PARTIAL_PROGRESS))

    def effective_max_key_length(self, max_key_length: int) -> int:
        """Clamp the requested key length to the number of columns."""
        if max_key_length < 1:
            raise ValueError(f"max_key_length must be positive, got {max_key_length}")
        return min(max_key_length, self.num_columns)

    def iter_keys(self, max_key_length: int) -> Iterator[MinimalUniqueKey]:
        """
        Generate all MSUs up to the given key length.

        Keys come ordered by length, then by column subset, then by row.

        Args:
            max_key_length: Largest key size to search for

        Yields:
            MinimalUniqueKey for every minimal unique (row, columns) pair

        Raises:
            AnalysisInterruptedError: If the controller's stop flag gets set
        """
        max_length = self.effective_max_key_length(max_key_length)
        self._last_progress = 0.0
        self._pending = 0

        if self.controller is not None:
            self.controller.check_interrupt()

        if self.num_rows == 0 or max_length == 0:
            logger.info("Nothing to search: empty projection")
            self._report(1.0)
            return

        logger.info(f"Searching MSUs in {self.num_rows} records, {self.num_columns} "
                    f"attributes, max key length {max_length}")

        # Level 1: partition by each column on its own
        level: Dict[Tuple[int, ...], StrippedPartition] = {}
        found = 0
        for column in range(self.num_columns):
            partition, uniques = StrippedPartition.from_column(column, self._codes[column])
            for row in uniques:
                yield MinimalUniqueKey(int(row), (column,))
            found += len(uniques)
            if len(partition) > 0:
                level[(column,)] = partition
            self._checkpoint((column + 1) / self.num_columns / max_length)

        logger.debug(f"Key length 1: {found} MSUs, {len(level)} subsets carried forward")

        length = 1
        while length < max_length and level:
            candidates = self._generate_candidates(level)
            next_level: Dict[Tuple[int, ...], StrippedPartition] = {}
            found = 0

            for index, subset in enumerate(candidates):
                last = subset[-1]
                partition, uniques = level[subset[:-1]].refine(
                    last, self._codes[last], self._cardinalities[last]
                )

                if len(uniques) > 0:
                    minimal = self._is_minimal(subset, uniques, level)
                    for row in uniques[minimal]:
                        yield MinimalUniqueKey(int(row), subset)
                    found += int(minimal.sum())

                if len(partition) > 0:
                    next_level[subset] = partition

                self._checkpoint((length + (index + 1) / len(candidates)) / max_length)

            length += 1
            logger.debug(f"Key length {length}: {len(candidates)} candidates, {found} MSUs, "
                         f"{len(next_level)} subsets carried forward")
            level = next_level

        self._checkpoint(1.0, force=True)
        self._report(1.0)

    @staticmethod
    def _is_minimal(
        subset: Tuple[int, ...],
        uniques: np.ndarray,
        level: Dict[Tuple[int, ...], StrippedPartition]
    ) -> np.ndarray:
        """
        Mask of records for which no one-shorter subset of subset is unique.

        The subset without its last column is the parent the records were
        refined from, so it is skipped. All other one-shorter subsets are
        present in level, which _generate_candidates guarantees.
        """
        minimal = np.ones(len(uniques), dtype=bool)
        for drop in range(len(subset) - 1):
            sub = subset[:drop] + subset[drop + 1:]
            minimal &= level[sub].covers(uniques)
            if not minimal.any():
                break
        return minimal

    @staticmethod
    def _generate_candidates(
        level: Dict[Tuple[int, ...], StrippedPartition]
    ) -> List[Tuple[int, ...]]:
        """
        Join subsets sharing all but their last column into longer candidates.

        A candidate is kept only if every one-shorter subset of it still has a
        non-empty partition; if any of them is missing every record is unique
        on it, so no record can have the candidate as a minimal key.

        Returns:
            Candidates in ascending lexicographic order
        """
        ordered = sorted(level)
        candidates = []

        start = 0
        while start < len(ordered):
            prefix = ordered[start][:-1]
            end = start
            while end < len(ordered) and ordered[end][:-1] == prefix:
                end += 1

            block = ordered[start:end]
            for i, left in enumerate(block):
                for right in block[i + 1:]:
                    candidate = left + (right[-1],)
                    if all(
                        candidate[:drop] + candidate[drop + 1:] in level
                        for drop in range(len(candidate) - 2)
                    ):
                        candidates.append(candidate)
            start = end

        return candidates

    def find_keys(self, max_key_length: int) -> List[MinimalUniqueKey]:
        """Return all MSUs as a list (see iter_keys)."""
        return list(self.iter_keys(max_key_length))

    def get_statistics(self, max_key_length: int) -> MSUStatistics:
        """
        Stream all MSUs into an aggregator and return the summary statistics.

        Individual keys are not retained.

        Args:
            max_key_length: Largest key size to search for

        Returns:
            MSUStatistics without attribute names
        """
        max_length = self.effective_max_key_length(max_key_length)
        aggregator = KeyStatisticsAggregator(self.num_columns, max_length)

        # The clamped length is 0 for a projection without columns
        for key in self.iter_keys(max_key_length):
            aggregator.register(key)

        statistics = aggregator.finalize()
        logger.info(f"Found {statistics.num_keys} MSUs "
                    f"(average key size {statistics.average_key_size:.3f})")
        return statistics
