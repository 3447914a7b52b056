"""
Conversions between lab moment units, reduced moments and field units.

Example:
    >>> from macrodip.units import to_field_units
    >>> float(to_field_units(1.0))
    0.9274009994
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from macrodip.constants import EIGHT_PI, FIELD_SCALE, INV_MU_B


def to_reduced_moments(moments: ArrayLike) -> NDArray[np.float64]:
    """Moments in J/T to multiples of one Bohr magneton."""
    return np.asarray(moments, dtype=np.float64) * INV_MU_B


def to_field_units(field: ArrayLike) -> NDArray[np.float64]:
    """Accumulated reduced field to Tesla."""
    return np.asarray(field, dtype=np.float64) * FIELD_SCALE


def self_demag_factor(volume: ArrayLike) -> NDArray[np.float64]:
    vol = np.asarray(volume, dtype=np.float64)
    if not np.all(vol > 0.0):
        raise ValueError("cell volume must be > 0")
    return np.asarray(EIGHT_PI / (3.0 * vol), dtype=np.float64)


__all__ = ["to_reduced_moments", "to_field_units", "self_demag_factor"]
