"""
Local cell sets for data-parallel evaluation.

Example:
    >>> from macrodip.partition import partition_cells
    >>> [ids.tolist() for ids in partition_cells(5, 2)]
    [[0, 1, 2], [3, 4]]
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import ArrayLike

from macrodip.types import IntArray


def as_local_ids(local_ids: ArrayLike) -> IntArray:
    return np.ascontiguousarray(local_ids, dtype=np.int64).reshape(-1)


def validate_local_ids(local_ids: IntArray, num_cells: int) -> None:
    if local_ids.size == 0:
        return
    if int(local_ids.min()) < 0 or int(local_ids.max()) >= num_cells:
        raise ValueError(f"local cell ids must lie in [0, {num_cells})")
    if np.unique(local_ids).size != local_ids.size:
        raise ValueError("local cell ids must be unique")


def partition_cells(num_cells: int, num_units: int) -> list[IntArray]:
    """Split [0, num_cells) into num_units contiguous blocks, larger blocks first."""
    if num_cells < 0:
        raise ValueError("num_cells must be >= 0")
    if num_units <= 0:
        raise ValueError("num_units must be >= 1")
    base, extra = divmod(num_cells, num_units)
    parts: list[IntArray] = []
    start = 0
    for unit in range(num_units):
        size = base + (1 if unit < extra else 0)
        parts.append(np.arange(start, start + size, dtype=np.int64))
        start += size
    return parts


def validate_partition(parts: Sequence[IntArray], num_cells: int) -> None:
    """Every global cell must be owned by exactly one unit."""
    counts = np.zeros(num_cells, dtype=np.int64)
    for unit, ids in enumerate(parts):
        ids_arr = as_local_ids(ids)
        try:
            validate_local_ids(ids_arr, num_cells)
        except ValueError as exc:
            raise ValueError(f"unit {unit}: {exc}") from exc
        np.add.at(counts, ids_arr, 1)
    if np.any(counts == 0):
        missing = np.flatnonzero(counts == 0)
        raise ValueError(f"cells not owned by any unit: {missing[:8].tolist()}")
    if np.any(counts > 1):
        dup = np.flatnonzero(counts > 1)
        raise ValueError(f"cells owned by more than one unit: {dup[:8].tolist()}")


__all__ = ["as_local_ids", "validate_local_ids", "partition_cells", "validate_partition"]
