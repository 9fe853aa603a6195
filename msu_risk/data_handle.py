# =============================================================================
# data_handle.py
# =============================================================================
# Data access for MSU analysis.
#
# This module handles:
#   - The DataHandle protocol the risk model reads from
#   - Dictionary encoding of DataFrame columns into small integer codes
#   - Loading microdata CSV files into an encoded handle
#
# The analysis never looks at raw values: every attribute is replaced by a
# dense integer code per distinct value, so that two records share a code on
# a column exactly when they share the value.
# =============================================================================

import logging
from typing import Dict, List, Optional, Protocol, Sequence
from pathlib import Path

import pandas as pd
import numpy as np

# Configure logging
logger = logging.getLogger(__name__)


class DataHandle(Protocol):
    """Minimal read interface the risk model needs from a dataset."""

    def num_columns(self) -> int:
        ...

    def num_rows(self) -> int:
        ...

    def attribute_name(self, column: int) -> str:
        ...

    def column_index_of(self, name: str) -> int:
        ...

    def projected_matrix(self, columns: Sequence[int]) -> np.ndarray:
        ...


class DataFrameHandle:
    """
    DataHandle backed by a pandas DataFrame.

    Each column is factorized once at construction. Missing values get a code
    of their own, so "missing" counts as a value when looking for uniques.

    Attributes:
        data (pd.DataFrame): The original (unencoded) data
        codes (np.ndarray): Row-major matrix of per-column integer codes

    Example:
        >>> df = pd.DataFrame({'age': ['30-39', '40-49'], 'sex': ['F', 'F']})
        >>> handle = DataFrameHandle(df)
        >>> handle.column_index_of('sex')
        1
        >>> handle.projected_matrix([1]).ravel().tolist()
        [0, 0]
    """

    def __init__(self, data: pd.DataFrame):
        """
        Initialize the handle and encode all columns.

        Args:
            data: DataFrame with one row per record and one column per attribute
        """
        names = [str(c) for c in data.columns]
        if len(set(names)) != len(names):
            raise ValueError("Attribute names must be unique")

        self.data = data
        self._names: List[str] = names
        self._index: Dict[str, int] = {name: i for i, name in enumerate(names)}
        self.codes = self._encode(data)

        logger.info(f"DataFrameHandle initialized with {len(data)} records "
                    f"and {len(names)} attributes")

    @staticmethod
    def _encode(data: pd.DataFrame) -> np.ndarray:
        """Factorize each column into dense integer codes."""
        codes = np.empty((len(data), data.shape[1]), dtype=np.int64)
        for i, col in enumerate(data.columns):
            # use_na_sentinel=False gives NaN its own code instead of -1
            col_codes, _ = pd.factorize(data[col], use_na_sentinel=False)
            codes[:, i] = col_codes
        return codes

    def num_columns(self) -> int:
        return len(self._names)

    def num_rows(self) -> int:
        return self.codes.shape[0]

    def attribute_name(self, column: int) -> str:
        return self._names[column]

    def column_index_of(self, name: str) -> int:
        """Return the index of an attribute, or -1 if there is none."""
        return self._index.get(name, -1)

    def projected_matrix(self, columns: Sequence[int]) -> np.ndarray:
        """Return the codes of the given columns, in the order given."""
        return self.codes[:, list(columns)]

    def get_attribute_cardinalities(self) -> Dict[str, int]:
        """Number of distinct values per attribute."""
        if self.num_rows() == 0:
            return {name: 0 for name in self._names}
        return {
            name: int(self.codes[:, i].max()) + 1
            for i, name in enumerate(self._names)
        }

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(rows={self.num_rows()}, "
                f"columns={self.num_columns()})")


def load_dataset(
    path: str,
    columns: Optional[List[str]] = None,
    sep: str = ","
) -> DataFrameHandle:
    """
    Load a microdata CSV file into a DataFrameHandle.

    Every cell is read as a string and empty cells are kept as empty strings,
    so "" and "NA" are ordinary values rather than missing markers.

    Args:
        path: Path to the CSV file
        columns: Optional subset of columns to load (None = all)
        sep: Field separator

    Returns:
        Encoded handle over the loaded records

    Example:
        >>> handle = load_dataset("data/adult.csv", sep=";")
    """
    filepath = Path(path)
    if not filepath.exists():
        raise FileNotFoundError(f"Dataset not found: {filepath}")

    logger.info(f"Loading dataset from {filepath}")

    df = pd.read_csv(
        filepath,
        sep=sep,
        dtype=str,
        keep_default_na=False,
        usecols=columns,
    )

    logger.info(f"Loaded {len(df)} records with {len(df.columns)} attributes")

    handle = DataFrameHandle(df)
    for name, cardinality in handle.get_attribute_cardinalities().items():
        logger.info(f"  {name}: {cardinality} distinct values")

    return handle
