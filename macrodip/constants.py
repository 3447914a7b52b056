from __future__ import annotations

import numpy as np

MU_B = 9.274009994e-24
INV_MU_B = 1.0 / MU_B

MU0_SI = 4 * np.pi * 1e-7
DIPOLE_FACTOR_SI = MU0_SI / (4 * np.pi)
ANGSTROM3_PER_M3 = 1e30

# mu_B * mu0/(4 pi) * 1e30, cell volumes in cubic Angstrom
FIELD_SCALE = 9.274009994e-01

EIGHT_PI = 8.0 * np.pi
DEMAG_SELF_WEIGHT = -0.5

__all__ = [
    "MU_B",
    "INV_MU_B",
    "MU0_SI",
    "DIPOLE_FACTOR_SI",
    "ANGSTROM3_PER_M3",
    "FIELD_SCALE",
    "EIGHT_PI",
    "DEMAG_SELF_WEIGHT",
]
