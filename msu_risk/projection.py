"""
Projection of a dataset onto the attributes selected for MSU analysis.

Resolves attribute names to column indices, orders them ascending by their
position in the dataset and extracts the matching integer matrix.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np

from .data_handle import DataHandle

# Configure logging
logger = logging.getLogger(__name__)


class UnknownAttributeError(ValueError):
    """Raised when a requested attribute does not exist in the dataset."""

    def __init__(self, attribute: str):
        self.attribute = attribute
        super().__init__(f"Unknown attribute '{attribute}'")


@dataclass(frozen=True)
class DatasetProjection:
    """
    Column-ordered projection of a dataset.

    Attributes:
        columns: Column indices in the source dataset, ascending
        attributes: Attribute names aligned with columns
        matrix: Read-only array of shape (num_rows, len(columns))
    """
    columns: Tuple[int, ...]
    attributes: Tuple[str, ...]
    matrix: np.ndarray

    @property
    def num_rows(self) -> int:
        return self.matrix.shape[0]

    @property
    def num_columns(self) -> int:
        return len(self.columns)

    @property
    def is_empty(self) -> bool:
        return self.num_rows == 0 or self.num_columns == 0


def resolve_columns(
    handle: DataHandle,
    identifiers: Optional[Iterable[str]] = None
) -> Tuple[int, ...]:
    """
    Resolve attribute names to ascending column indices.

    Args:
        handle: Dataset to resolve against
        identifiers: Attribute names; None or empty selects every column

    Returns:
        Sorted tuple of column indices

    Raises:
        UnknownAttributeError: If a name is not an attribute of the dataset
    """
    names = set(identifiers) if identifiers is not None else set()

    if not names:
        return tuple(range(handle.num_columns()))

    columns = []
    # Sorted so that the reported unknown attribute is deterministic
    for name in sorted(names):
        column = handle.column_index_of(name)
        if column == -1:
            raise UnknownAttributeError(name)
        columns.append(column)

    return tuple(sorted(columns))


def project_dataset(
    handle: DataHandle,
    identifiers: Optional[Iterable[str]] = None
) -> DatasetProjection:
    """
    Build the projection used as input to the key search.

    Args:
        handle: Dataset to project
        identifiers: Attribute names to keep (None or empty = all)

    Returns:
        DatasetProjection with columns in ascending original order

    Raises:
        UnknownAttributeError: If a requested attribute does not exist
    """
    columns = resolve_columns(handle, identifiers)
    attributes = tuple(handle.attribute_name(c) for c in columns)

    if columns:
        matrix = np.asarray(handle.projected_matrix(columns))
    else:
        matrix = np.zeros((handle.num_rows(), 0), dtype=np.int64)

    if matrix.ndim != 2:
        raise ValueError(f"Projected matrix must be 2-D, got {matrix.ndim} dimensions")

    # Never hand out a view that could mutate the dataset
    matrix = matrix.copy()
    matrix.setflags(write=False)

    logger.info(f"Projected {matrix.shape[0]} records onto {len(columns)} attributes")
    logger.debug(f"Selected attributes: {list(attributes)}")

    return DatasetProjection(columns=columns, attributes=attributes, matrix=matrix)
