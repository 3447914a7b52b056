from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

import numpy as np
from numpy.typing import ArrayLike, NDArray

FloatArray: TypeAlias = NDArray[np.float64]
IntArray: TypeAlias = NDArray[np.int64]


@dataclass(frozen=True)
class CellState:
    """
    Per-cell inputs for one field evaluation, indexed by global cell id.

    moments are in J/T, volumes in cubic Angstrom.
    """

    occupancy: IntArray
    moments: FloatArray
    volumes: FloatArray
    coords: FloatArray | None = None

    def __post_init__(self) -> None:
        if self.occupancy.ndim != 1:
            raise ValueError("occupancy must have shape (N,)")
        n = self.occupancy.shape[0]
        if self.moments.shape != (n, 3):
            raise ValueError(f"moments must have shape ({n}, 3), got {self.moments.shape}")
        if self.volumes.shape != (n,):
            raise ValueError(f"volumes must have shape ({n},), got {self.volumes.shape}")
        if self.coords is not None and self.coords.shape != (n, 3):
            raise ValueError(f"coords must have shape ({n}, 3), got {self.coords.shape}")
        if np.any(self.occupancy < 0):
            raise ValueError("occupancy must be >= 0")

    @property
    def num_cells(self) -> int:
        return int(self.occupancy.shape[0])

    @property
    def occupied(self) -> NDArray[np.bool_]:
        return np.asarray(self.occupancy > 0, dtype=np.bool_)

    @classmethod
    def from_arrays(
        cls,
        occupancy: ArrayLike,
        moments: ArrayLike,
        volumes: ArrayLike,
        coords: ArrayLike | None = None,
    ) -> CellState:
        return cls(
            occupancy=np.ascontiguousarray(occupancy, dtype=np.int64).reshape(-1),
            moments=np.ascontiguousarray(moments, dtype=np.float64),
            volumes=np.ascontiguousarray(volumes, dtype=np.float64).reshape(-1),
            coords=None if coords is None else np.ascontiguousarray(coords, dtype=np.float64),
        )


@dataclass
class FieldOutput:
    """Caller-owned output buffers, (N_global, 3) each."""

    field: FloatArray
    demag: FloatArray

    def __post_init__(self) -> None:
        if self.field.ndim != 2 or self.field.shape[1] != 3:
            raise ValueError(f"field must have shape (N, 3), got {self.field.shape}")
        if self.demag.shape != self.field.shape:
            raise ValueError("field and demag must have the same shape")

    @property
    def num_cells(self) -> int:
        return int(self.field.shape[0])

    @classmethod
    def zeros(cls, num_cells: int) -> FieldOutput:
        return cls(
            field=np.zeros((num_cells, 3), dtype=np.float64),
            demag=np.zeros((num_cells, 3), dtype=np.float64),
        )

    def copy(self) -> FieldOutput:
        return FieldOutput(field=self.field.copy(), demag=self.demag.copy())


__all__ = ["CellState", "FieldOutput", "FloatArray", "IntArray"]
