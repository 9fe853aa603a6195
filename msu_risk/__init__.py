# =============================================================================
# Minimal Sample Unique (MSU) Risk Analysis
# =============================================================================
#
# This package estimates re-identification risk in tabular microdata by
# finding the smallest attribute combinations that single out a record.
#
# Modules:
#   - data_handle: Encode DataFrames / CSV files into integer codes
#   - projection: Select and order the analyzed attributes
#   - controller: Shared stop flag and progress value
#   - key_search: Level-wise search for minimal sample uniques
#   - statistics: Aggregate MSUs into summary statistics
#   - risk_model: Facade running one complete analysis
#   - analysis_runner: Background, single-flight execution and export
#   - visualization: Report figures
# =============================================================================

__version__ = "1.0.0"

from .data_handle import DataHandle, DataFrameHandle, load_dataset
from .projection import DatasetProjection, UnknownAttributeError, project_dataset
from .controller import AnalysisController, AnalysisInterruptedError
from .key_search import KeySearchEngine, MinimalUniqueKey, StrippedPartition
from .statistics import KeyStatisticsAggregator, MSUStatistics
from .risk_model import RiskModelMSU, compute_msu_statistics
from .analysis_runner import MSUAnalysisRunner

__all__ = [
    "DataHandle",
    "DataFrameHandle",
    "load_dataset",
    "DatasetProjection",
    "UnknownAttributeError",
    "project_dataset",
    "AnalysisController",
    "AnalysisInterruptedError",
    "KeySearchEngine",
    "MinimalUniqueKey",
    "StrippedPartition",
    "KeyStatisticsAggregator",
    "MSUStatistics",
    "RiskModelMSU",
    "compute_msu_statistics",
    "MSUAnalysisRunner",
]
