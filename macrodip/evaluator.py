from __future__ import annotations

import logging
from time import perf_counter

import numpy as np
from numpy.typing import ArrayLike

from macrodip.backends import FieldBackend, select_backend
from macrodip.config import DipoleConfig
from macrodip.partition import as_local_ids, partition_cells, validate_local_ids, validate_partition
from macrodip.tensor import InteractionTensor, validate_tensor_shape
from macrodip.types import CellState, FieldOutput, IntArray
from macrodip.units import self_demag_factor

logger = logging.getLogger(__name__)


def validate_inputs(
    cells: CellState,
    local_ids: IntArray,
    tensor: InteractionTensor,
    out: FieldOutput,
) -> None:
    n = cells.num_cells
    validate_local_ids(local_ids, n)
    validate_tensor_shape(tensor, local_ids, n)
    if out.num_cells != n:
        raise ValueError(f"output buffers hold {out.num_cells} cells, expected {n}")
    for label, arr in (("field", out.field), ("demag", out.demag)):
        if arr.dtype != np.float64 or not arr.flags.writeable:
            raise ValueError(f"output {label} must be a writable float64 array")
    self_demag_factor(cells.volumes[cells.occupancy > 0])


class DipolarFieldEvaluator:
    """
    Macrocell dipolar field for the cells owned by one execution unit.

    Each call overwrites field/demag of every owned, occupied cell and touches
    nothing else; zero-initialising the buffers is the caller's job.
    """

    def __init__(
        self,
        config: DipoleConfig,
        *,
        backend: FieldBackend | None = None,
        rank: int = 0,
    ) -> None:
        self.config = config
        self.rank = int(rank)
        self._backend = backend
        if self._backend is None and config.activated:
            self._backend = select_backend(config.backend, platform=config.platform)
            logger.info("dipole backend selected: %s (rank %d)", self._backend.name, self.rank)

    @property
    def backend(self) -> FieldBackend:
        if self._backend is None:
            self._backend = select_backend(self.config.backend, platform=self.config.platform)
        return self._backend

    def update_field(
        self,
        cells: CellState,
        local_ids: ArrayLike,
        tensor: InteractionTensor,
        out: FieldOutput,
    ) -> bool:
        """Return False without touching `out` when the subsystem is deactivated."""
        if not self.config.activated:
            return False

        if self.config.check:
            logger.info("dipole field update called on rank %d", self.rank)

        ids = as_local_ids(local_ids)
        validate_inputs(cells, ids, tensor, out)

        t0 = perf_counter()
        self.backend.update_field(cells, ids, tensor, out)
        logger.debug(
            "dipole field update done in %.3fs (rank=%d, local=%d, global=%d)",
            perf_counter() - t0,
            self.rank,
            ids.size,
            cells.num_cells,
        )
        return True


def evaluate_partitioned(
    config: DipoleConfig,
    cells: CellState,
    tensor: InteractionTensor,
    out: FieldOutput,
    *,
    num_units: int,
    backend: FieldBackend | None = None,
    row_ids: ArrayLike | None = None,
) -> list[IntArray]:
    """
    Run one evaluator per unit over a contiguous partition, sequentially.

    `tensor` must be a global x global store; each unit gets its rows.
    `row_ids[r]` names the cell that row r belongs to (default: row r is
    cell r), so stores written in any cell order are put back in global order.
    """
    n = cells.num_cells
    if tensor.num_local != n:
        raise ValueError(
            f"partitioned evaluation needs a ({n}, {n}) tensor store, got {tensor.shape}"
        )
    if row_ids is not None:
        order = as_local_ids(row_ids)
        validate_local_ids(order, n)
        if order.size != n:
            raise ValueError(f"row_ids must name all {n} cells, got {order.size}")
        tensor = tensor.rows(np.argsort(order))
    parts = partition_cells(n, num_units)
    validate_partition(parts, n)
    if not config.activated:
        return parts
    shared = backend if backend is not None else select_backend(
        config.backend, platform=config.platform
    )
    for rank, ids in enumerate(parts):
        evaluator = DipolarFieldEvaluator(config, backend=shared, rank=rank)
        evaluator.update_field(cells, ids, tensor.rows(ids), out)
    return parts


__all__ = ["DipolarFieldEvaluator", "evaluate_partitioned", "validate_inputs"]
