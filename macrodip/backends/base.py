from __future__ import annotations

from typing import Protocol

from macrodip.tensor import InteractionTensor
from macrodip.types import CellState, FieldOutput, IntArray


class AcceleratorUnavailableError(RuntimeError):
    """No compute platform or device could be found for the accelerator backend."""


class FieldBackend(Protocol):
    """Write field/demag for owned, occupied cells of `out`; leave every other slot alone."""

    name: str

    def update_field(
        self,
        cells: CellState,
        local_ids: IntArray,
        tensor: InteractionTensor,
        out: FieldOutput,
    ) -> None: ...


__all__ = ["AcceleratorUnavailableError", "FieldBackend"]
