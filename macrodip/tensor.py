"""
Six-coefficient symmetric interaction tensor store.

Each coefficient array is shaped (N_local, N_global): row l holds the
coupling of local cell l to every global cell j. Off-diagonal coefficients
serve both directions, so xy is used for (x-out, y-in) and (y-out, x-in).
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike

from macrodip.types import FloatArray, IntArray

COMPONENTS = ("xx", "xy", "xz", "yy", "yz", "zz")
_FULL_INDEX = {
    "xx": (0, 0),
    "xy": (0, 1),
    "xz": (0, 2),
    "yy": (1, 1),
    "yz": (1, 2),
    "zz": (2, 2),
}
SYMMETRY_ATOL = 1e-12


@dataclass(frozen=True)
class InteractionTensor:
    xx: FloatArray
    xy: FloatArray
    xz: FloatArray
    yy: FloatArray
    yz: FloatArray
    zz: FloatArray

    def __post_init__(self) -> None:
        shape = self.xx.shape
        if len(shape) != 2:
            raise ValueError(f"tensor coefficients must be 2D, got shape {shape}")
        for name in COMPONENTS:
            arr = getattr(self, name)
            if arr.shape != shape:
                raise ValueError(f"tensor_{name} has shape {arr.shape}, expected {shape}")

    @property
    def shape(self) -> tuple[int, int]:
        return (int(self.xx.shape[0]), int(self.xx.shape[1]))

    @property
    def num_local(self) -> int:
        return self.shape[0]

    @property
    def num_global(self) -> int:
        return self.shape[1]

    def components(self) -> tuple[FloatArray, ...]:
        return tuple(getattr(self, name) for name in COMPONENTS)

    def rows(self, local_rows: ArrayLike) -> InteractionTensor:
        """Select the rows of a store, e.g. one rank's slice of a global x global store."""
        idx = np.asarray(local_rows, dtype=np.int64).reshape(-1)
        if idx.size and (idx.min() < 0 or idx.max() >= self.num_local):
            raise ValueError("row index out of range")
        return InteractionTensor(
            **{name: np.ascontiguousarray(getattr(self, name)[idx]) for name in COMPONENTS}
        )

    def pair(self, local_index: int, global_index: int) -> FloatArray:
        """Expanded 3x3 operator for one (local, global) pair."""
        out = np.empty((3, 3), dtype=np.float64)
        for name, (a, b) in _FULL_INDEX.items():
            value = getattr(self, name)[local_index, global_index]
            out[a, b] = value
            out[b, a] = value
        return out

    @classmethod
    def zeros(cls, num_local: int, num_global: int) -> InteractionTensor:
        return cls(
            **{name: np.zeros((num_local, num_global), dtype=np.float64) for name in COMPONENTS}
        )

    @classmethod
    def from_arrays(cls, **coeffs: ArrayLike) -> InteractionTensor:
        missing = [name for name in COMPONENTS if name not in coeffs]
        if missing:
            raise KeyError(f"Missing tensor components: {', '.join(missing)}")
        return cls(
            **{
                name: np.ascontiguousarray(coeffs[name], dtype=np.float64)
                for name in COMPONENTS
            }
        )

    @classmethod
    def from_full(cls, full: ArrayLike, *, atol: float = SYMMETRY_ATOL) -> InteractionTensor:
        """Build from an (N_local, N_global, 3, 3) array; each 3x3 block must be symmetric."""
        arr = np.asarray(full, dtype=np.float64)
        if arr.ndim != 4 or arr.shape[-2:] != (3, 3):
            raise ValueError(f"full tensor must have shape (L, N, 3, 3), got {arr.shape}")
        defect = float(np.max(np.abs(arr - np.swapaxes(arr, -1, -2)))) if arr.size else 0.0
        if defect > atol:
            raise ValueError(f"full tensor is not symmetric (max defect {defect:.3e})")
        return cls(
            **{
                name: np.ascontiguousarray(arr[:, :, a, b])
                for name, (a, b) in _FULL_INDEX.items()
            }
        )


def validate_tensor_shape(tensor: InteractionTensor, local_ids: IntArray, num_cells: int) -> None:
    expected = (int(local_ids.shape[0]), int(num_cells))
    if tensor.shape != expected:
        raise ValueError(
            f"tensor shape {tensor.shape} does not match (N_local, N_global) = {expected}"
        )


__all__ = ["COMPONENTS", "InteractionTensor", "validate_tensor_shape"]
