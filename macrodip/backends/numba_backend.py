from __future__ import annotations

from macrodip.kernels import update_field_kernel
from macrodip.tensor import InteractionTensor
from macrodip.types import CellState, FieldOutput, IntArray


class NumbaBackend:
    name = "numba"

    def update_field(
        self,
        cells: CellState,
        local_ids: IntArray,
        tensor: InteractionTensor,
        out: FieldOutput,
    ) -> None:
        update_field_kernel(
            local_ids,
            cells.occupancy,
            cells.moments,
            cells.volumes,
            tensor.xx,
            tensor.xy,
            tensor.xz,
            tensor.yy,
            tensor.yz,
            tensor.zz,
            out.field,
            out.demag,
        )


__all__ = ["NumbaBackend"]
