from __future__ import annotations

from typing import TypedDict

import numpy as np
from numpy.typing import ArrayLike

from macrodip.partition import as_local_ids
from macrodip.tensor import COMPONENTS, InteractionTensor
from macrodip.types import FieldOutput


class FieldSummary(TypedDict):
    occupied: int
    mean_field: list[float]
    mean_demag: list[float]
    mean_field_norm: float
    mean_demag_norm: float
    max_field_norm: float
    max_demag_norm: float


def summarize_fields(out: FieldOutput, occupancy: ArrayLike) -> FieldSummary:
    """Averages over occupied cells only; unoccupied slots may hold stale values."""
    occ = np.asarray(occupancy).reshape(-1) > 0
    if occ.shape[0] != out.num_cells:
        raise ValueError("occupancy length does not match output buffers")
    count = int(np.count_nonzero(occ))
    if count == 0:
        return FieldSummary(
            occupied=0,
            mean_field=[0.0, 0.0, 0.0],
            mean_demag=[0.0, 0.0, 0.0],
            mean_field_norm=0.0,
            mean_demag_norm=0.0,
            max_field_norm=0.0,
            max_demag_norm=0.0,
        )
    field = out.field[occ]
    demag = out.demag[occ]
    field_norm = np.linalg.norm(field, axis=1)
    demag_norm = np.linalg.norm(demag, axis=1)
    return FieldSummary(
        occupied=count,
        mean_field=[float(v) for v in field.mean(axis=0)],
        mean_demag=[float(v) for v in demag.mean(axis=0)],
        mean_field_norm=float(field_norm.mean()),
        mean_demag_norm=float(demag_norm.mean()),
        max_field_norm=float(field_norm.max()),
        max_demag_norm=float(demag_norm.max()),
    )


def tensor_symmetry_defect(tensor: InteractionTensor, local_ids: ArrayLike) -> float:
    """
    Largest |T_ab(i, j) - T_ab(j, i)| over pairs of locally owned cells.

    Only pairs with both rows stored can be compared. Zero for a store built
    from a reciprocal pair interaction.
    """
    ids = as_local_ids(local_ids)
    if ids.shape[0] != tensor.num_local:
        raise ValueError("local_ids length does not match tensor rows")
    if ids.size == 0:
        return 0.0
    defect = 0.0
    for name in COMPONENTS:
        block = getattr(tensor, name)[:, ids]
        defect = max(defect, float(np.max(np.abs(block - block.T))))
    return defect


__all__ = ["FieldSummary", "summarize_fields", "tensor_symmetry_defect"]
