#!/usr/bin/env python3
"""
Tests for the MSU risk model facade: attribute resolution, result contract,
progress and cancellation.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from msu_risk.controller import AnalysisController, AnalysisInterruptedError
from msu_risk.data_handle import DataFrameHandle
from msu_risk.projection import UnknownAttributeError
from msu_risk.risk_model import RiskModelMSU, compute_msu_statistics


class RecordingController(AnalysisController):
    """Controller that records progress and can stop itself at a threshold."""

    def __init__(self, stop_at: int = None):
        super().__init__()
        self.stop_at = stop_at
        self.observed = []

    @AnalysisController.progress.setter
    def progress(self, value):
        AnalysisController.progress.fset(self, value)
        self.observed.append(self.progress)
        if self.stop_at is not None and self.progress >= self.stop_at:
            self.request_stop()


@pytest.fixture
def small_handle():
    return DataFrameHandle(pd.DataFrame({
        'zip': ['A', 'A', 'B'],
        'age': ['30', '40', '30'],
    }))


@pytest.fixture(scope="module")
def large_handle():
    rng = np.random.default_rng(42)
    n = 3000
    return DataFrameHandle(pd.DataFrame({
        'age_decade': rng.choice(['20-29', '30-39', '40-49', '50-59', '60-69'], n),
        'sex': rng.choice(['M', 'F'], n),
        'race': rng.choice(['white', 'black', 'asian', 'other'], n, p=[0.6, 0.2, 0.15, 0.05]),
        'marital_status': rng.choice(['M', 'S', 'W', 'D'], n),
        'region': rng.choice(['N', 'E', 'S', 'W', 'C'], n),
        'education': rng.choice(['primary', 'secondary', 'tertiary'], n),
        'income_band': rng.choice(['low', 'mid', 'high'], n),
        'children': rng.choice(['0', '1', '2', '3+'], n),
    }))


class TestRiskModelResults:
    """Result contract of a completed analysis."""

    def test_small_dataset(self, small_handle):
        controller = AnalysisController()
        model = RiskModelMSU(small_handle, None, controller, max_key_length=2)

        assert model.attributes == ('zip', 'age')
        assert model.num_keys == 3
        assert model.max_key_length == 2
        assert model.key_size_distribution == pytest.approx((2 / 3, 1 / 3))
        assert model.average_key_size == pytest.approx(4 / 3)
        assert model.column_key_contributions == pytest.approx((0.5, 0.5))
        assert model.column_average_key_size == pytest.approx((1.5, 1.5))
        assert controller.progress == 100

    def test_attributes_follow_dataset_order(self, large_handle):
        model = RiskModelMSU(large_handle, ['region', 'age_decade', 'sex'],
                             AnalysisController(), max_key_length=2)
        assert model.attributes == ('age_decade', 'sex', 'region')
        assert len(model.column_key_contributions) == 3
        assert len(model.column_average_key_size) == 3

    def test_empty_identifiers_means_all(self, small_handle):
        model = RiskModelMSU(small_handle, set(), AnalysisController(), max_key_length=1)
        assert model.attributes == ('zip', 'age')

    def test_max_key_length_clamped_to_attributes(self, small_handle):
        model = RiskModelMSU(small_handle, ['age'], AnalysisController(), max_key_length=5)
        assert model.max_key_length == 1
        assert len(model.key_size_distribution) == 1

    def test_invariants_on_larger_data(self, large_handle):
        model = RiskModelMSU(large_handle, None, AnalysisController(), max_key_length=3)

        assert model.num_keys > 0
        assert sum(model.key_size_distribution) == pytest.approx(1.0)
        assert sum(model.column_key_contributions) == pytest.approx(1.0)
        weighted = sum(size * fraction
                       for size, fraction in enumerate(model.key_size_distribution, 1))
        assert model.average_key_size == pytest.approx(weighted)
        print(f"\n  ✓ {model.num_keys:,} MSUs, average size {model.average_key_size:.3f}")

    def test_idempotent(self, large_handle):
        first = compute_msu_statistics(large_handle, None, 3)
        second = compute_msu_statistics(large_handle, None, 3)
        assert first == second

    def test_identical_records(self):
        handle = DataFrameHandle(pd.DataFrame({'a': ['x'] * 5, 'b': ['y'] * 5}))
        stats = compute_msu_statistics(handle, None, 2)

        assert stats.num_keys == 0
        assert stats.key_size_distribution == (0.0, 0.0)
        assert stats.column_key_contributions == (0.0, 0.0)
        assert stats.column_average_key_size == (None, None)

    def test_zero_rows(self):
        handle = DataFrameHandle(pd.DataFrame({'a': pd.Series([], dtype=str)}))
        stats = compute_msu_statistics(handle, None, 3)
        assert stats.num_keys == 0
        assert stats.attributes == ('a',)

    def test_zero_columns(self):
        handle = DataFrameHandle(pd.DataFrame(index=range(5)))
        controller = AnalysisController()
        model = RiskModelMSU(handle, None, controller, max_key_length=3)

        assert model.attributes == ()
        assert model.num_keys == 0
        assert model.max_key_length == 0
        assert model.key_size_distribution == ()
        assert model.column_key_contributions == ()
        assert model.column_average_key_size == ()
        assert model.average_key_size == 0.0
        assert controller.progress == 100

    def test_invalid_max_key_length(self, small_handle):
        with pytest.raises(ValueError):
            RiskModelMSU(small_handle, None, AnalysisController(), max_key_length=0)


class TestRiskModelErrors:
    """Invalid input and cancellation."""

    def test_unknown_attribute(self, small_handle):
        controller = AnalysisController()
        with pytest.raises(UnknownAttributeError) as info:
            RiskModelMSU(small_handle, ['zip', 'income'], controller, max_key_length=2)

        assert info.value.attribute == 'income'
        assert "Unknown attribute 'income'" in str(info.value)
        assert controller.progress == 0

    def test_stop_before_start_leaves_progress(self, large_handle):
        controller = AnalysisController()
        controller.request_stop()

        with pytest.raises(AnalysisInterruptedError):
            RiskModelMSU(large_handle, None, controller, max_key_length=3)
        assert controller.progress == 0

    def test_stop_mid_run(self, large_handle):
        controller = RecordingController(stop_at=20)

        with pytest.raises(AnalysisInterruptedError):
            RiskModelMSU(large_handle, None, controller, max_key_length=4)

        assert controller.observed
        assert max(controller.observed) < 100
        assert controller.progress < 100

    def test_progress_monotonic_and_complete(self, large_handle):
        controller = RecordingController()
        RiskModelMSU(large_handle, None, controller, max_key_length=3)

        assert controller.observed[0] == 10
        assert controller.observed == sorted(controller.observed)
        assert controller.observed[-1] == 100
        assert 100 not in controller.observed[:-1]


class TestAnalysisController:

    def test_reset(self):
        controller = AnalysisController()
        controller.progress = 40
        controller.request_stop()
        controller.reset()
        assert controller.progress == 0
        assert not controller.stop_requested

    def test_progress_never_decreases(self):
        controller = AnalysisController()
        controller.progress = 50
        controller.progress = 30
        assert controller.progress == 50

    def test_progress_range(self):
        with pytest.raises(ValueError):
            AnalysisController().progress = 101


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
