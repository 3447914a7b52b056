from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

import numpy as np
from numpy.typing import ArrayLike

from macrodip.partition import as_local_ids
from macrodip.tensor import COMPONENTS, InteractionTensor
from macrodip.types import CellState, FieldOutput, IntArray

SCHEMA_VERSION = 1
_FIELDS_NAME = "fields.npz"
_META_NAME = "meta.json"
_TENSOR_PREFIX = "tensor_"


@dataclass(frozen=True)
class StepInputs:
    cells: CellState
    tensor: InteractionTensor
    local_ids: IntArray


def _require(data: np.lib.npyio.NpzFile, key: str) -> Any:
    if key not in data.files:
        raise KeyError(f"Missing required key in step file: {key}")
    return data[key]


def write_step(
    path: str | Path,
    cells: CellState,
    tensor: InteractionTensor,
    *,
    local_ids: ArrayLike | None = None,
) -> Path:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    arrays: dict[str, Any] = dict(
        occupancy=cells.occupancy,
        moments=cells.moments,
        volumes=cells.volumes,
    )
    if cells.coords is not None:
        arrays["coords"] = cells.coords
    if local_ids is not None:
        arrays["local_ids"] = as_local_ids(local_ids)
    for name in COMPONENTS:
        arrays[_TENSOR_PREFIX + name] = getattr(tensor, name)
    np.savez_compressed(out_path, **arrays)
    return out_path


def load_step(path: str | Path) -> StepInputs:
    """Load a step bundle; local_ids defaults to every cell."""
    in_path = Path(path)
    if not in_path.is_file():
        raise FileNotFoundError(f"Step file not found: {in_path}")
    with np.load(in_path, allow_pickle=False) as data:
        cells = CellState.from_arrays(
            _require(data, "occupancy"),
            _require(data, "moments"),
            _require(data, "volumes"),
            data["coords"] if "coords" in data.files else None,
        )
        tensor = InteractionTensor.from_arrays(
            **{name: _require(data, _TENSOR_PREFIX + name) for name in COMPONENTS}
        )
        if "local_ids" in data.files:
            local_ids = as_local_ids(data["local_ids"])
        else:
            local_ids = np.arange(cells.num_cells, dtype=np.int64)
    return StepInputs(cells=cells, tensor=tensor, local_ids=local_ids)


def write_fields(
    out_dir: str | Path,
    out: FieldOutput,
    *,
    meta: dict[str, Any],
) -> tuple[Path, Path]:
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    fields_path = out_path / _FIELDS_NAME
    np.savez_compressed(fields_path, field=out.field, demag=out.demag)

    payload = dict(meta)
    payload.setdefault("schema_version", SCHEMA_VERSION)
    payload.setdefault("created_at", datetime.now(UTC).isoformat())
    meta_path = out_path / _META_NAME
    with meta_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True)
    return fields_path, meta_path


def load_fields(path: str | Path) -> tuple[FieldOutput, dict[str, Any]]:
    """Accepts an output directory or the fields .npz itself."""
    in_path = Path(path)
    fields_path = in_path / _FIELDS_NAME if in_path.is_dir() else in_path
    if not fields_path.is_file():
        raise FileNotFoundError(f"Fields file not found: {fields_path}")
    with np.load(fields_path, allow_pickle=False) as data:
        out = FieldOutput(
            field=np.array(data["field"], dtype=np.float64, copy=True),
            demag=np.array(data["demag"], dtype=np.float64, copy=True),
        )
    meta_path = fields_path.with_name(_META_NAME)
    meta: dict[str, Any] = {}
    if meta_path.is_file():
        with meta_path.open("r", encoding="utf-8") as handle:
            loaded = json.load(handle)
        if not isinstance(loaded, dict):
            raise ValueError(f"{meta_path} must be a JSON object")
        meta = cast(dict[str, Any], loaded)
    return out, meta


__all__ = ["SCHEMA_VERSION", "StepInputs", "load_fields", "load_step", "write_fields", "write_step"]
