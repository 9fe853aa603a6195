"""
Summary statistics over the minimal sample uniques of a dataset.

The aggregator consumes keys one at a time and only keeps running counters,
so the full list of MSUs never has to be held in memory.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Sequence, Tuple

import pandas as pd
import numpy as np

# Configure logging
logger = logging.getLogger(__name__)

NO_MSUS_FOUND = "No MSUs found"


@dataclass(frozen=True)
class MSUStatistics:
    """
    Immutable result of one MSU analysis.

    All per-column tuples are aligned with ``attributes`` (ascending original
    column order). A column average of None means the column is part of no
    MSU, so its average key size is undefined.

    Attributes:
        num_keys: Number of MSUs found
        max_key_length: Largest key size actually searched
        key_size_distribution: Fraction of MSUs per key size 1..max_key_length
        column_key_contributions: Share of all MSU column memberships per column
        column_average_key_size: Mean MSU size among MSUs containing the column
        average_key_size: Mean MSU size (0.0 when there are no MSUs)
        attributes: Attribute names of the analyzed columns
    """
    num_keys: int
    max_key_length: int
    key_size_distribution: Tuple[float, ...]
    column_key_contributions: Tuple[float, ...]
    column_average_key_size: Tuple[Optional[float], ...]
    average_key_size: float
    attributes: Tuple[str, ...] = ()

    @property
    def num_columns(self) -> int:
        return len(self.column_key_contributions)

    def with_attributes(self, attributes: Sequence[str]) -> "MSUStatistics":
        """Return a copy labelled with attribute names."""
        attributes = tuple(attributes)
        if len(attributes) != self.num_columns:
            raise ValueError(f"Expected {self.num_columns} attribute names, "
                             f"got {len(attributes)}")
        return replace(self, attributes=attributes)

    def _labels(self) -> Tuple[str, ...]:
        if self.attributes:
            return self.attributes
        return tuple(str(i) for i in range(self.num_columns))

    def to_frame(self) -> pd.DataFrame:
        """Per-attribute table of contribution and average key size."""
        return pd.DataFrame({
            'attribute': list(self._labels()),
            'contribution': list(self.column_key_contributions),
            'average_key_size': [
                np.nan if value is None else value
                for value in self.column_average_key_size
            ],
        })

    def size_distribution_frame(self) -> pd.DataFrame:
        """Table of key size versus fraction of MSUs."""
        return pd.DataFrame({
            'key_size': list(range(1, self.max_key_length + 1)),
            'fraction': list(self.key_size_distribution),
        })

    def to_dict(self) -> Dict[str, Any]:
        """Convert to builtins for YAML/JSON export."""
        return {
            'num_keys': self.num_keys,
            'max_key_length': self.max_key_length,
            'average_key_size': self.average_key_size,
            'key_size_distribution': list(self.key_size_distribution),
            'attributes': {
                label: {
                    'contribution': contribution,
                    'average_key_size': average,
                }
                for label, contribution, average in zip(
                    self._labels(),
                    self.column_key_contributions,
                    self.column_average_key_size
                )
            },
        }

    def format_summary(self) -> str:
        """Human-readable multi-line summary."""
        if self.num_keys == 0:
            lines = [f"MSUs:              {NO_MSUS_FOUND}",
                     f"Average key size:  {NO_MSUS_FOUND}"]
        else:
            lines = [f"MSUs:              {self.num_keys:,}",
                     f"Average key size:  {self.average_key_size:.3f}"]
        lines.append(f"Max key length:    {self.max_key_length}")

        for size, fraction in enumerate(self.key_size_distribution, 1):
            lines.append(f"  size {size}: {fraction:6.1%}")

        for label, contribution, average in zip(
            self._labels(), self.column_key_contributions, self.column_average_key_size
        ):
            average_text = NO_MSUS_FOUND if average is None else f"{average:.3f}"
            lines.append(f"  {label:25} contribution={contribution:6.1%}  "
                         f"avg size={average_text}")

        return "\n".join(lines)


class KeyStatisticsAggregator:
    """
    Running counters over a stream of MSUs.

    Example:
        >>> aggregator = KeyStatisticsAggregator(num_columns=2, max_key_length=2)
        >>> aggregator.register_columns((0,))
        >>> aggregator.register_columns((0, 1))
        >>> aggregator.finalize().average_key_size
        1.5
    """

    def __init__(self, num_columns: int, max_key_length: int):
        """
        Initialize empty counters.

        Args:
            num_columns: Number of analyzed columns
            max_key_length: Largest key size that will be registered
        """
        if num_columns < 0 or max_key_length < 0:
            raise ValueError("num_columns and max_key_length must be non-negative")

        self.num_columns = num_columns
        self.max_key_length = max_key_length

        self._size_counts = np.zeros(max_key_length, dtype=np.int64)
        self._column_counts = np.zeros(num_columns, dtype=np.int64)
        self._column_size_sums = np.zeros(num_columns, dtype=np.int64)
        self._num_keys = 0
        self._size_sum = 0

    def register(self, key) -> None:
        """Count one MSU (anything with a ``columns`` attribute)."""
        self.register_columns(key.columns)

    def register_columns(self, columns: Sequence[int]) -> None:
        """Count one MSU given the column indices of its key."""
        size = len(columns)
        if not 1 <= size <= self.max_key_length:
            raise ValueError(f"Key size {size} outside [1, {self.max_key_length}]")

        self._size_counts[size - 1] += 1
        for column in columns:
            self._column_counts[column] += 1
            self._column_size_sums[column] += size
        self._num_keys += 1
        self._size_sum += size

    def finalize(self) -> MSUStatistics:
        """
        Normalize the counters into an MSUStatistics value.

        Fractions are all zero and column averages all None when nothing was
        registered; no division by zero is ever performed.
        """
        if self._num_keys > 0:
            distribution = tuple(float(c) / self._num_keys for c in self._size_counts)
            average = self._size_sum / self._num_keys
        else:
            distribution = tuple(0.0 for _ in self._size_counts)
            average = 0.0

        # Each MSU of size k contributes k column memberships
        memberships = int(self._column_counts.sum())
        if memberships > 0:
            contributions = tuple(float(c) / memberships for c in self._column_counts)
        else:
            contributions = tuple(0.0 for _ in self._column_counts)

        column_averages = tuple(
            float(total) / int(count) if count > 0 else None
            for total, count in zip(self._column_size_sums, self._column_counts)
        )

        return MSUStatistics(
            num_keys=self._num_keys,
            max_key_length=self.max_key_length,
            key_size_distribution=distribution,
            column_key_contributions=contributions,
            column_average_key_size=column_averages,
            average_key_size=float(average),
        )
