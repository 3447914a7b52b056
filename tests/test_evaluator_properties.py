import logging
import math

import numpy as np
import pytest

from macrodip.config import DipoleConfig
from macrodip.constants import FIELD_SCALE, MU_B
from macrodip.evaluator import DipolarFieldEvaluator
from macrodip.tensor import COMPONENTS, InteractionTensor
from macrodip.types import CellState, FieldOutput
from macrodip.units import to_reduced_moments


def _evaluator(rank: int = 0, check: bool = False) -> DipolarFieldEvaluator:
    return DipolarFieldEvaluator(DipoleConfig(activated=True, check=check), rank=rank)


def _random_cells(rng: np.random.Generator, n: int) -> CellState:
    occupancy = rng.integers(1, 50, size=n)
    moments = rng.standard_normal((n, 3)) * MU_B
    volumes = rng.uniform(500.0, 1500.0, size=n)
    return CellState.from_arrays(occupancy, moments, volumes)


def _random_tensor(rng: np.random.Generator, n_local: int, n: int) -> InteractionTensor:
    return InteractionTensor.from_arrays(
        **{k: rng.standard_normal((n_local, n)) * 1e-3 for k in COMPONENTS}
    )


def test_single_cell_self_consistency() -> None:
    V = 1000.0
    m = np.array([[0.3, -1.2, 2.5]], dtype=np.float64) * MU_B
    cells = CellState.from_arrays([12], m, [V])
    out = FieldOutput.zeros(1)

    assert _evaluator().update_field(cells, [0], InteractionTensor.zeros(1, 1), out)

    self_demag = 8.0 * math.pi / (3.0 * V)
    expected = self_demag * to_reduced_moments(m) * FIELD_SCALE
    np.testing.assert_allclose(out.field, expected, rtol=1e-14, atol=0.0)
    np.testing.assert_array_equal(out.demag, -0.5 * out.field)


def test_two_cell_scenario_hand_computed() -> None:
    V = 1000.0
    c = 0.25
    m = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], dtype=np.float64) * MU_B
    cells = CellState.from_arrays([4, 4], m, [V, V])
    tensor = InteractionTensor.zeros(2, 2)
    tensor.xy[0, 1] = c
    tensor.xy[1, 0] = c
    out = FieldOutput.zeros(2)

    _evaluator().update_field(cells, [0, 1], tensor, out)

    sd = 8.0 * math.pi / (3.0 * V)
    m_red = to_reduced_moments(m)
    # xy couples the x output to the y input and vice versa
    field0 = np.array([sd * m_red[0, 0] + m_red[1, 1] * c, 0.0, 0.0]) * FIELD_SCALE
    field1 = np.array([0.0, sd * m_red[1, 1] + m_red[0, 0] * c, 0.0]) * FIELD_SCALE
    np.testing.assert_allclose(out.field[0], field0, rtol=1e-14, atol=0.0)
    np.testing.assert_allclose(out.field[1], field1, rtol=1e-14, atol=0.0)

    demag0 = np.array([-0.5 * sd * m_red[0, 0] + m_red[1, 1] * c, 0.0, 0.0]) * FIELD_SCALE
    np.testing.assert_allclose(out.demag[0], demag0, rtol=1e-14, atol=0.0)

    # both outputs share the pairwise part and differ by 1.5x the self term
    np.testing.assert_allclose(
        out.field - out.demag, 1.5 * sd * m_red * FIELD_SCALE, rtol=1e-12, atol=1e-15
    )


def test_zero_occupancy_is_neither_source_nor_target() -> None:
    rng = np.random.default_rng(1)
    cells = _random_cells(rng, 4)
    tensor = _random_tensor(rng, 4, 4)
    occupancy = cells.occupancy.copy()
    occupancy[2] = 0

    loud = cells.moments.copy()
    loud[2] = [1e3 * MU_B, -5e2 * MU_B, 7e2 * MU_B]
    quiet = cells.moments.copy()
    quiet[2] = 0.0

    out_loud = FieldOutput(field=np.full((4, 3), 7.0), demag=np.full((4, 3), -7.0))
    out_quiet = out_loud.copy()
    _evaluator().update_field(
        CellState.from_arrays(occupancy, loud, cells.volumes), np.arange(4), tensor, out_loud
    )
    _evaluator().update_field(
        CellState.from_arrays(occupancy, quiet, cells.volumes), np.arange(4), tensor, out_quiet
    )

    np.testing.assert_array_equal(out_loud.field, out_quiet.field)
    np.testing.assert_array_equal(out_loud.demag, out_quiet.demag)
    np.testing.assert_array_equal(out_loud.field[2], [7.0, 7.0, 7.0])
    np.testing.assert_array_equal(out_loud.demag[2], [-7.0, -7.0, -7.0])


def test_unoccupied_cell_with_zero_volume_is_skipped() -> None:
    m = np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 1.0]], dtype=np.float64) * MU_B
    cells = CellState.from_arrays([3, 0], m, [1000.0, 0.0])
    out = FieldOutput.zeros(2)
    _evaluator().update_field(cells, [0, 1], InteractionTensor.zeros(2, 2), out)
    assert np.isfinite(out.field).all()
    np.testing.assert_array_equal(out.field[1], 0.0)


def test_symmetric_pair_round_trip() -> None:
    rng = np.random.default_rng(2)
    cells = _random_cells(rng, 2)
    full = InteractionTensor.zeros(2, 2)
    for name in ("xx", "xy", "xz", "yy", "yz", "zz"):
        value = rng.standard_normal()
        getattr(full, name)[0, 1] = value
        getattr(full, name)[1, 0] = value

    out = FieldOutput.zeros(2)
    ev = _evaluator()
    ev.update_field(cells, [0], full.rows([0]), out)
    ev.update_field(cells, [1], full.rows([1]), out)

    m_red = to_reduced_moments(cells.moments)
    sd = 8.0 * math.pi / (3.0 * cells.volumes)
    pair0 = out.field[0] / FIELD_SCALE - sd[0] * m_red[0]
    pair1 = out.field[1] / FIELD_SCALE - sd[1] * m_red[1]

    T01 = full.pair(0, 1)
    np.testing.assert_array_equal(T01, T01.T)
    np.testing.assert_array_equal(T01, full.pair(1, 0))
    np.testing.assert_allclose(pair0, T01 @ m_red[1], rtol=1e-10, atol=1e-12)
    np.testing.assert_allclose(pair1, T01 @ m_red[0], rtol=1e-10, atol=1e-12)
    np.testing.assert_allclose(
        float(m_red[0] @ pair0), float(m_red[1] @ pair1), rtol=1e-10, atol=1e-12
    )


def test_outputs_scale_linearly_with_moments() -> None:
    rng = np.random.default_rng(3)
    cells = _random_cells(rng, 6)
    tensor = _random_tensor(rng, 6, 6)
    k = 3.5

    out1 = FieldOutput.zeros(6)
    out2 = FieldOutput.zeros(6)
    _evaluator().update_field(cells, np.arange(6), tensor, out1)
    scaled = CellState.from_arrays(cells.occupancy, cells.moments * k, cells.volumes)
    _evaluator().update_field(scaled, np.arange(6), tensor, out2)

    np.testing.assert_allclose(out2.field, k * out1.field, rtol=1e-12, atol=1e-15)
    np.testing.assert_allclose(out2.demag, k * out1.demag, rtol=1e-12, atol=1e-15)


def test_deactivated_evaluator_leaves_outputs_untouched() -> None:
    rng = np.random.default_rng(4)
    cells = _random_cells(rng, 3)
    out = FieldOutput(field=rng.standard_normal((3, 3)), demag=rng.standard_normal((3, 3)))
    before = out.copy()

    ev = DipolarFieldEvaluator(DipoleConfig(activated=False, check=True))
    assert not ev.update_field(cells, np.arange(3), _random_tensor(rng, 3, 3), out)

    np.testing.assert_array_equal(out.field, before.field)
    np.testing.assert_array_equal(out.demag, before.demag)


def test_full_recompute_has_no_carry_over() -> None:
    rng = np.random.default_rng(5)
    cells = _random_cells(rng, 4)
    tensor = _random_tensor(rng, 4, 4)
    fresh = FieldOutput.zeros(4)
    dirty = FieldOutput(field=np.full((4, 3), 1e9), demag=np.full((4, 3), -1e9))

    _evaluator().update_field(cells, np.arange(4), tensor, fresh)
    _evaluator().update_field(cells, np.arange(4), tensor, dirty)

    np.testing.assert_array_equal(dirty.field, fresh.field)
    np.testing.assert_array_equal(dirty.demag, fresh.demag)


def test_check_flag_logs_calling_rank(caplog: pytest.LogCaptureFixture) -> None:
    rng = np.random.default_rng(6)
    cells = _random_cells(rng, 2)
    ev = _evaluator(rank=3, check=True)
    with caplog.at_level(logging.INFO, logger="macrodip.evaluator"):
        ev.update_field(cells, [0, 1], _random_tensor(rng, 2, 2), FieldOutput.zeros(2))
    msgs = [r.getMessage() for r in caplog.records if "called on rank" in r.getMessage()]
    assert msgs == ["dipole field update called on rank 3"]


def test_shape_mismatch_fails_before_writing() -> None:
    rng = np.random.default_rng(7)
    cells = _random_cells(rng, 3)
    out = FieldOutput.zeros(3)

    with pytest.raises(ValueError, match="tensor shape"):
        _evaluator().update_field(cells, [0, 1], _random_tensor(rng, 2, 2), out)
    with pytest.raises(ValueError, match="output buffers"):
        _evaluator().update_field(cells, [0], _random_tensor(rng, 1, 3), FieldOutput.zeros(4))
    with pytest.raises(ValueError, match="local cell ids"):
        _evaluator().update_field(cells, [0, 3], _random_tensor(rng, 2, 3), out)
    with pytest.raises(ValueError, match="unique"):
        _evaluator().update_field(cells, [1, 1], _random_tensor(rng, 2, 3), out)
    np.testing.assert_array_equal(out.field, 0.0)


def test_occupied_cell_needs_positive_volume() -> None:
    cells = CellState.from_arrays([1], [[MU_B, 0.0, 0.0]], [0.0])
    with pytest.raises(ValueError, match="volume"):
        _evaluator().update_field(cells, [0], InteractionTensor.zeros(1, 1), FieldOutput.zeros(1))
