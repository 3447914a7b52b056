from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from macrodip.constants import DEMAG_SELF_WEIGHT, EIGHT_PI, FIELD_SCALE, INV_MU_B
from macrodip.numba_compat import njit, prange


@njit(cache=True, parallel=True)
def update_field_kernel(
    local_ids: NDArray[np.int64],
    occupancy: NDArray[np.int64],
    moments: NDArray[np.float64],
    volumes: NDArray[np.float64],
    txx: NDArray[np.float64],
    txy: NDArray[np.float64],
    txz: NDArray[np.float64],
    tyy: NDArray[np.float64],
    tyz: NDArray[np.float64],
    tzz: NDArray[np.float64],
    field: NDArray[np.float64],
    demag: NDArray[np.float64],
) -> None:
    """
    Macrocell dipole field for every owned, occupied cell, written in place.

    field[i] = scale * (8pi/3V_i m_i + sum_j T_ij m_j)
    demag[i] = scale * (-0.5 * 8pi/3V_i m_i + sum_j T_ij m_j)
    with m in Bohr magnetons and the sum over occupied j only.
    """
    n_local = local_ids.shape[0]
    n_cells = occupancy.shape[0]
    for lc in prange(n_local):
        i = local_ids[lc]
        if occupancy[i] > 0:
            self_demag = EIGHT_PI / (3.0 * volumes[i])

            mx_i = moments[i, 0] * INV_MU_B
            my_i = moments[i, 1] * INV_MU_B
            mz_i = moments[i, 2] * INV_MU_B

            hx = 0.0
            hy = 0.0
            hz = 0.0
            for j in range(n_cells):
                if occupancy[j] > 0:
                    mx = moments[j, 0] * INV_MU_B
                    my = moments[j, 1] * INV_MU_B
                    mz = moments[j, 2] * INV_MU_B
                    hx += mx * txx[lc, j] + my * txy[lc, j] + mz * txz[lc, j]
                    hy += mx * txy[lc, j] + my * tyy[lc, j] + mz * tyz[lc, j]
                    hz += mx * txz[lc, j] + my * tyz[lc, j] + mz * tzz[lc, j]

            field[i, 0] = (self_demag * mx_i + hx) * FIELD_SCALE
            field[i, 1] = (self_demag * my_i + hy) * FIELD_SCALE
            field[i, 2] = (self_demag * mz_i + hz) * FIELD_SCALE
            demag[i, 0] = (DEMAG_SELF_WEIGHT * self_demag * mx_i + hx) * FIELD_SCALE
            demag[i, 1] = (DEMAG_SELF_WEIGHT * self_demag * my_i + hy) * FIELD_SCALE
            demag[i, 2] = (DEMAG_SELF_WEIGHT * self_demag * mz_i + hz) * FIELD_SCALE


__all__ = ["update_field_kernel"]
