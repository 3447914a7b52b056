"""Macrocell dipolar field evaluation."""

from macrodip.config import DipoleConfig
from macrodip.evaluator import DipolarFieldEvaluator, evaluate_partitioned
from macrodip.tensor import InteractionTensor
from macrodip.types import CellState, FieldOutput

__all__ = [
    "CellState",
    "DipolarFieldEvaluator",
    "DipoleConfig",
    "FieldOutput",
    "InteractionTensor",
    "evaluate_partitioned",
]
