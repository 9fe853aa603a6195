#!/usr/bin/env python3
"""
Unit tests for the level-wise MSU search.

The engine is checked against hand-worked examples and against a brute-force
enumeration of every column subset on small random datasets.
"""

import itertools
import sys
from collections import Counter
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from msu_risk.controller import AnalysisController, AnalysisInterruptedError
from msu_risk.key_search import KeySearchEngine, MinimalUniqueKey, StrippedPartition


def brute_force_msus(matrix: np.ndarray, max_key_length: int) -> set:
    """Enumerate all (row, columns) MSUs by checking every column subset."""
    n_rows, n_columns = matrix.shape
    found = set()
    for size in range(1, min(max_key_length, n_columns) + 1):
        for columns in itertools.combinations(range(n_columns), size):
            tuples = [tuple(row) for row in matrix[:, list(columns)]]
            counts = Counter(tuples)
            for row in range(n_rows):
                if counts[tuples[row]] != 1:
                    continue
                # Shorter keys were found first, so any unique subset has a
                # minimal representative in found already
                if any(r == row and set(c) < set(columns) for r, c in found):
                    continue
                found.add((row, columns))
    return found


def as_pairs(keys) -> list:
    return [(k.row, k.columns) for k in keys]


class TestStrippedPartition:
    """Partition construction, refinement and membership."""

    def test_from_column_strips_singletons(self):
        codes = np.array([0, 1, 0, 2, 1])
        partition, uniques = StrippedPartition.from_column(3, codes)

        assert partition.columns == (3,)
        assert partition.rows.tolist() == [0, 1, 2, 4]
        assert uniques.tolist() == [3]

    def test_refine_splits_classes(self):
        partition, _ = StrippedPartition.from_column(0, np.array([0, 0, 0, 1, 1]))
        refined, uniques = partition.refine(1, np.array([0, 0, 1, 0, 0]), 2)

        assert refined.columns == (0, 1)
        assert refined.rows.tolist() == [0, 1, 3, 4]
        assert uniques.tolist() == [2]
        # Rows 0,1 and rows 3,4 stay in different classes
        assert refined.labels[0] == refined.labels[1]
        assert refined.labels[2] == refined.labels[3]
        assert refined.labels[0] != refined.labels[2]

    def test_covers(self):
        partition, _ = StrippedPartition.from_column(0, np.array([0, 1, 0, 2, 1]))
        mask = partition.covers(np.array([0, 3, 4]))
        assert mask.tolist() == [True, False, True]

    def test_covers_on_empty_partition(self):
        partition, uniques = StrippedPartition.from_column(0, np.array([0, 1, 2]))
        assert len(partition) == 0
        assert partition.covers(uniques).tolist() == [False, False, False]


class TestKeySearchScenarios:
    """Hand-worked datasets with known MSUs."""

    def test_three_rows_two_columns(self):
        """Row 0 needs both columns; rows 1 and 2 are unique on one column."""
        matrix = np.array([[1, 1], [1, 2], [2, 1]])
        keys = KeySearchEngine(matrix).find_keys(2)

        assert as_pairs(keys) == [(2, (0,)), (1, (1,)), (0, (0, 1))]

        stats = KeySearchEngine(matrix).get_statistics(2)
        assert stats.num_keys == 3
        assert stats.key_size_distribution == pytest.approx((2 / 3, 1 / 3))
        assert stats.average_key_size == pytest.approx(4 / 3)
        print("\n  ✓ 3 MSUs, distribution [2/3, 1/3], average 4/3")

    def test_identical_rows_have_no_msus(self):
        matrix = np.tile(np.array([[4, 7, 1, 1]]), (25, 1))
        engine = KeySearchEngine(matrix)

        assert engine.find_keys(4) == []
        stats = engine.get_statistics(4)
        assert stats.num_keys == 0
        assert stats.key_size_distribution == (0.0, 0.0, 0.0, 0.0)

    def test_unique_column_gives_one_key_per_row(self):
        matrix = np.column_stack([np.arange(10), np.zeros(10, dtype=int), np.arange(10) % 2])
        keys = KeySearchEngine(matrix).find_keys(3)

        assert as_pairs(keys) == [(row, (0,)) for row in range(10)]

    def test_max_key_length_is_clamped(self):
        matrix = np.array([[1, 1], [1, 2], [2, 1], [2, 2]])
        engine = KeySearchEngine(matrix)

        assert engine.effective_max_key_length(10) == 2
        stats = engine.get_statistics(10)
        assert stats.max_key_length == 2
        assert len(stats.key_size_distribution) == 2

    def test_key_length_limits_search(self):
        """Keys longer than the limit are not reported."""
        matrix = np.array([[1, 1], [1, 2], [2, 1]])
        keys = KeySearchEngine(matrix).find_keys(1)
        assert as_pairs(keys) == [(2, (0,)), (1, (1,))]

    def test_empty_inputs(self):
        assert KeySearchEngine(np.zeros((0, 3), dtype=int)).find_keys(2) == []
        assert KeySearchEngine(np.zeros((5, 0), dtype=int)).find_keys(2) == []

        stats = KeySearchEngine(np.zeros((5, 0), dtype=int)).get_statistics(2)
        assert stats.num_keys == 0
        assert stats.max_key_length == 0
        assert stats.key_size_distribution == ()

    def test_single_row_is_unique_everywhere(self):
        keys = KeySearchEngine(np.array([[3, 4, 5]])).find_keys(3)
        assert as_pairs(keys) == [(0, (0,)), (0, (1,)), (0, (2,))]

    def test_negative_and_sparse_values(self):
        """Arbitrary integers are re-encoded before searching."""
        matrix = np.array([[-5, 1000], [-5, 7], [99, 1000]])
        keys = KeySearchEngine(matrix).find_keys(2)
        assert as_pairs(keys) == [(2, (0,)), (1, (1,)), (0, (0, 1))]

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            KeySearchEngine(np.array([1, 2, 3]))
        with pytest.raises(ValueError):
            KeySearchEngine(np.array([[1]])).find_keys(0)
        with pytest.raises(ValueError):
            KeySearchEngine(np.array([[1]]), checkpoint_interval=0)


class TestKeySearchAgainstBruteForce:
    """Cross-check on random data."""

    @pytest.mark.parametrize("seed,n_rows,n_columns,cardinality,max_len", [
        (0, 30, 4, 3, 4),
        (1, 60, 5, 3, 3),
        (2, 40, 6, 2, 6),
        (3, 80, 5, 4, 2),
        (4, 15, 7, 2, 5),
    ])
    def test_matches_brute_force(self, seed, n_rows, n_columns, cardinality, max_len):
        rng = np.random.default_rng(seed)
        matrix = rng.integers(0, cardinality, size=(n_rows, n_columns))

        keys = KeySearchEngine(matrix).find_keys(max_len)
        expected = brute_force_msus(matrix, max_len)

        assert set(as_pairs(keys)) == expected
        assert len(keys) == len(expected), "Duplicate keys reported"

    def test_minimality_and_column_order(self):
        rng = np.random.default_rng(7)
        matrix = rng.integers(0, 3, size=(100, 6))
        keys = KeySearchEngine(matrix).find_keys(4)

        by_row = {}
        for key in keys:
            assert list(key.columns) == sorted(set(key.columns))
            assert all(0 <= c < 6 for c in key.columns)
            by_row.setdefault(key.row, []).append(set(key.columns))

        for row, column_sets in by_row.items():
            for a in column_sets:
                assert not any(b < a for b in column_sets), f"Row {row} has a non-minimal key"

    def test_output_order_is_deterministic(self):
        rng = np.random.default_rng(11)
        matrix = rng.integers(0, 3, size=(50, 5))

        first = as_pairs(KeySearchEngine(matrix).find_keys(3))
        second = as_pairs(KeySearchEngine(matrix).find_keys(3))

        assert first == second
        # Ordered by key size, then column subset, then row
        order = [(len(columns), columns, row) for row, columns in first]
        assert order == sorted(order)


class TestKeySearchProgress:
    """Progress reporting and cancellation."""

    @pytest.fixture
    def matrix(self):
        rng = np.random.default_rng(42)
        return rng.integers(0, 3, size=(300, 6))

    def test_progress_is_monotonic_and_finishes_at_one(self, matrix):
        observed = []
        engine = KeySearchEngine(matrix, progress_listener=observed.append)
        engine.find_keys(3)

        assert observed, "No progress was reported"
        assert observed == sorted(observed)
        assert observed[-1] == 1.0
        assert all(p < 1.0 for p in observed[:-1])

    def test_stop_before_start(self, matrix):
        controller = AnalysisController()
        controller.request_stop()
        observed = []
        engine = KeySearchEngine(matrix, controller=controller, progress_listener=observed.append)

        with pytest.raises(AnalysisInterruptedError):
            engine.find_keys(3)
        assert observed == []

    def test_stop_during_search(self, matrix):
        controller = AnalysisController()
        observed = []

        def listener(progress):
            observed.append(progress)
            if progress >= 0.3:
                controller.request_stop()

        engine = KeySearchEngine(matrix, controller=controller, progress_listener=listener)

        with pytest.raises(AnalysisInterruptedError):
            engine.get_statistics(3)
        assert max(observed) < 1.0

    def test_checkpoint_interval_reduces_reports(self, matrix):
        every, sparse = [], []
        KeySearchEngine(matrix, progress_listener=every.append).find_keys(3)
        KeySearchEngine(matrix, progress_listener=sparse.append,
                        checkpoint_interval=5).find_keys(3)

        assert len(sparse) < len(every)
        assert sparse[-1] == 1.0


class TestMinimalUniqueKey:

    def test_length(self):
        assert len(MinimalUniqueKey(3, (0, 2, 5))) == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
