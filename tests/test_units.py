import math

import numpy as np
import pytest

from macrodip.constants import (
    ANGSTROM3_PER_M3,
    DIPOLE_FACTOR_SI,
    FIELD_SCALE,
    INV_MU_B,
    MU_B,
)
from macrodip.units import self_demag_factor, to_field_units, to_reduced_moments


def test_field_scale_matches_derivation() -> None:
    derived = MU_B * DIPOLE_FACTOR_SI * ANGSTROM3_PER_M3
    np.testing.assert_allclose(derived, FIELD_SCALE, rtol=1e-12, atol=0.0)
    assert FIELD_SCALE == 9.274009994e-01


def test_reduced_moments_one_bohr_magneton() -> None:
    m = np.array([[MU_B, -2.0 * MU_B, 0.0]], dtype=np.float64)
    red = to_reduced_moments(m)
    assert red.dtype == np.float64
    np.testing.assert_allclose(red, [[1.0, -2.0, 0.0]], rtol=1e-15, atol=0.0)
    np.testing.assert_array_equal(red, m * INV_MU_B)


def test_field_units_is_pure_scaling() -> None:
    h = np.array([[1.0, 2.0, -3.0]], dtype=np.float64)
    before = h.copy()
    out = to_field_units(h)
    np.testing.assert_array_equal(out, h * FIELD_SCALE)
    np.testing.assert_array_equal(h, before)


def test_self_demag_factor() -> None:
    V = np.array([1.0, 1000.0], dtype=np.float64)
    np.testing.assert_allclose(self_demag_factor(V), 8.0 * math.pi / (3.0 * V), rtol=0.0)


def test_self_demag_factor_rejects_non_positive_volume() -> None:
    with pytest.raises(ValueError):
        self_demag_factor(np.array([1.0, 0.0]))


def test_self_demag_factor_rejects_nan_volume() -> None:
    with pytest.raises(ValueError, match="volume"):
        self_demag_factor(np.array([1000.0, np.nan]))
