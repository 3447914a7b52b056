from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from time import perf_counter
from typing import Any

import numpy as np

from macrodip.backends import BACKEND_NAMES, AcceleratorUnavailableError
from macrodip.config import DipoleConfig, load_config
from macrodip.diagnostics import summarize_fields, tensor_symmetry_defect
from macrodip.evaluator import DipolarFieldEvaluator, evaluate_partitioned
from macrodip.io import load_step, write_fields
from macrodip.tensor import SYMMETRY_ATOL
from macrodip.types import FieldOutput

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Evaluate macrocell dipolar fields for one step")
    ap.add_argument("--in", dest="in_path", required=True, help="input step .npz")
    ap.add_argument("--out", dest="out_dir", required=True, help="output directory")
    ap.add_argument("--config", default=None, help="JSON config with a 'dipole' section")
    toggle = ap.add_mutually_exclusive_group()
    toggle.add_argument(
        "--enable",
        dest="activated",
        action="store_const",
        const=True,
        default=None,
        help="activate the dipole field (default when no config is given)",
    )
    toggle.add_argument(
        "--disable",
        dest="activated",
        action="store_const",
        const=False,
        help="deactivate the dipole field; outputs stay zero",
    )
    ap.add_argument(
        "--check",
        action="store_const",
        const=True,
        default=None,
        help="log one line per evaluation naming the calling rank",
    )
    ap.add_argument("--backend", choices=list(BACKEND_NAMES), default=None, help="field backend")
    ap.add_argument("--platform", default=None, help="accelerator platform (e.g. gpu)")
    ap.add_argument(
        "--ranks",
        type=int,
        default=1,
        help="number of execution units to partition the cells over",
    )
    ap.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING"],
        help="logging level",
    )
    return ap.parse_args(argv)


def _log_path(out_dir: Path) -> Path:
    return out_dir / "evaluate.log"


def _configure_logging(level: str, out_dir: Path) -> logging.FileHandler:
    out_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(_log_path(out_dir), mode="a", encoding="utf-8")
    stream_handler = logging.StreamHandler(stream=sys.stdout)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    file_handler.setFormatter(formatter)
    stream_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[file_handler, stream_handler],
        force=True,
    )
    return file_handler


def resolve_config(args: argparse.Namespace) -> DipoleConfig:
    base = load_config(args.config) if args.config else DipoleConfig(activated=True)
    return base.with_overrides(
        activated=args.activated,
        check=args.check,
        backend=args.backend,
        platform=args.platform,
    )


def run_evaluate(args: argparse.Namespace) -> int:
    in_path = Path(args.in_path)
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    ranks = int(args.ranks)
    if ranks < 1:
        raise ValueError("ranks must be >= 1")

    config = resolve_config(args)
    logger.info(
        "config: activated=%s check=%s backend=%s platform=%s ranks=%d",
        config.activated,
        config.check,
        config.backend,
        config.platform,
        ranks,
    )

    logger.info("load_step start: %s", in_path)
    t_load = perf_counter()
    step = load_step(in_path)
    cells = step.cells
    logger.info(
        "load_step done in %.3fs (cells=%d, occupied=%d, local=%d)",
        perf_counter() - t_load,
        cells.num_cells,
        int(np.count_nonzero(cells.occupied)),
        step.local_ids.size,
    )
    if step.tensor.shape == (step.local_ids.size, cells.num_cells):
        defect = tensor_symmetry_defect(step.tensor, step.local_ids)
        if defect > SYMMETRY_ATOL:
            logger.warning("interaction tensor pair asymmetry: max defect %.3e", defect)

    out = FieldOutput.zeros(cells.num_cells)
    t_eval = perf_counter()
    try:
        if ranks > 1:
            if step.local_ids.size != cells.num_cells:
                raise ValueError("--ranks > 1 needs a step file covering every cell")
            evaluate_partitioned(
                config, cells, step.tensor, out, num_units=ranks, row_ids=step.local_ids
            )
        else:
            evaluator = DipolarFieldEvaluator(config)
            evaluator.update_field(cells, step.local_ids, step.tensor, out)
    except AcceleratorUnavailableError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc
    dt_eval = perf_counter() - t_eval
    if not config.activated:
        logger.info("dipole field deactivated; outputs left at zero")
    logger.info("evaluation done in %.3fs", dt_eval)

    summary = summarize_fields(out, cells.occupancy)
    logger.info(
        "occupied=%d mean|field|=%.6e T mean|demag|=%.6e T max|field|=%.6e T max|demag|=%.6e T",
        summary["occupied"],
        summary["mean_field_norm"],
        summary["mean_demag_norm"],
        summary["max_field_norm"],
        summary["max_demag_norm"],
    )
    logger.info(
        "mean_field=%s T mean_demag=%s T",
        np.array2string(np.asarray(summary["mean_field"]), precision=6),
        np.array2string(np.asarray(summary["mean_demag"]), precision=6),
    )

    meta: dict[str, Any] = {
        "name": out_dir.name,
        "input": str(in_path),
        "config": config.to_dict(),
        "ranks": ranks,
        "elapsed_s": float(dt_eval),
        "summary": dict(summary),
    }
    fields_path, meta_path = write_fields(out_dir, out, meta=meta)
    logger.info("Saved fields: %s", fields_path)
    logger.info("Saved meta: %s", meta_path)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.log_level, Path(args.out_dir))
    return run_evaluate(args)


if __name__ == "__main__":
    raise SystemExit(main())
