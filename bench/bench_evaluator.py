from __future__ import annotations

import argparse
import importlib.util
import json
import os
import statistics
from collections.abc import Callable
from dataclasses import dataclass
from time import perf_counter
from typing import Any, cast

import numpy as np

from macrodip.config import BackendName, DipoleConfig
from macrodip.constants import MU_B
from macrodip.evaluator import DipolarFieldEvaluator
from macrodip.tensor import InteractionTensor
from macrodip.types import CellState, FieldOutput


@dataclass(frozen=True)
class Preset:
    nx: int
    ny: int
    nz: int
    cell_size: float
    fill: float


PRESETS: dict[str, Preset] = {
    "tiny": Preset(nx=4, ny=4, nz=4, cell_size=10.0, fill=0.9),
    "dev": Preset(nx=8, ny=8, nz=8, cell_size=10.0, fill=0.9),
    "prod": Preset(nx=16, ny=16, nz=8, cell_size=10.0, fill=0.9),
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Micro-benchmark dipolar field backends")
    parser.add_argument("--preset", choices=sorted(PRESETS.keys()), default="dev")
    parser.add_argument("--repeats", type=int, default=10)
    parser.add_argument("--out", type=str, default=None)
    return parser.parse_args()


def point_dipole_tensor(coords: np.ndarray) -> InteractionTensor:
    """(3 r r^T / r^5 - I / r^3) between cell centres, zero on the diagonal."""
    r = coords[:, None, :] - coords[None, :, :]
    r2 = np.sum(r * r, axis=-1)
    np.fill_diagonal(r2, 1.0)
    inv_r3 = 1.0 / (r2 * np.sqrt(r2))
    inv_r5 = inv_r3 / r2
    full = 3.0 * r[..., :, None] * r[..., None, :] * inv_r5[..., None, None]
    full -= np.eye(3)[None, None] * inv_r3[..., None, None]
    idx = np.arange(coords.shape[0])
    full[idx, idx] = 0.0
    return InteractionTensor.from_full(full)


def build_inputs(cfg: Preset, rng: np.random.Generator) -> tuple[CellState, InteractionTensor]:
    a = cfg.cell_size
    grid = np.stack(
        np.meshgrid(np.arange(cfg.nx), np.arange(cfg.ny), np.arange(cfg.nz), indexing="ij"),
        axis=-1,
    ).reshape(-1, 3)
    coords = (grid.astype(np.float64) + 0.5) * a
    n = coords.shape[0]
    occupancy = (rng.random(n) < cfg.fill).astype(np.int64) * 125
    moments = rng.standard_normal((n, 3)) * 100.0 * MU_B
    volumes = np.full(n, a**3, dtype=np.float64)
    cells = CellState.from_arrays(occupancy, moments, volumes, coords)
    return cells, point_dipole_tensor(coords)


def measure(fn: Callable[[], Any], repeats: int) -> dict[str, float]:
    if repeats < 1:
        raise ValueError("repeats must be >= 1")
    start = perf_counter()
    _ = fn()
    compile_ms = (perf_counter() - start) * 1000.0
    samples: list[float] = []
    for _ in range(repeats):
        start = perf_counter()
        _ = fn()
        samples.append((perf_counter() - start) * 1000.0)
    return {
        "compile_ms": float(compile_ms),
        "mean_ms": float(statistics.fmean(samples)),
        "median_ms": float(statistics.median(samples)),
        "min_ms": float(min(samples)),
    }


def run_bench(preset_name: str, repeats: int) -> dict[str, Any]:
    cfg = PRESETS[preset_name]
    rng = np.random.default_rng(0)
    cells, tensor = build_inputs(cfg, rng)
    local_ids = np.arange(cells.num_cells, dtype=np.int64)
    out = FieldOutput.zeros(cells.num_cells)

    backend_names = ["numba"]
    if importlib.util.find_spec("jax") is not None:
        backend_names.append("jax")

    timings: dict[str, dict[str, float]] = {}
    for name in backend_names:
        config = DipoleConfig(activated=True, backend=cast(BackendName, name))
        evaluator = DipolarFieldEvaluator(config)

        def run_once(ev: DipolarFieldEvaluator = evaluator) -> bool:
            return ev.update_field(cells, local_ids, tensor, out)

        timings[name] = measure(run_once, repeats)

    return {
        "preset": preset_name,
        "repeats": int(repeats),
        "config": {
            "nx": cfg.nx,
            "ny": cfg.ny,
            "nz": cfg.nz,
            "cells": int(cells.num_cells),
            "occupied": int(np.count_nonzero(cells.occupied)),
        },
        "backends": timings,
    }


def print_summary(results: dict[str, Any]) -> None:
    cfg = results["config"]
    print(
        "preset={preset} repeats={repeats} cells={cells} occupied={occupied}".format(
            preset=results["preset"],
            repeats=results["repeats"],
            cells=cfg["cells"],
            occupied=cfg["occupied"],
        )
    )
    print(f"{'backend':<10} {'compile_ms':>11} {'mean_ms':>9} {'median_ms':>11} {'min_ms':>9}")
    for name, stats in results["backends"].items():
        print(
            f"{name:<10} {stats['compile_ms']:>11.3f} {stats['mean_ms']:>9.3f} "
            f"{stats['median_ms']:>11.3f} {stats['min_ms']:>9.3f}"
        )


def write_json(path: str, results: dict[str, Any]) -> None:
    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(results, f, indent=2)


def main() -> None:
    args = parse_args()
    results = run_bench(args.preset, args.repeats)
    print_summary(results)
    if args.out:
        write_json(args.out, results)


if __name__ == "__main__":
    main()
