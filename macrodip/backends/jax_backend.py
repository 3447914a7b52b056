"""
Accelerator backend on JAX.

Cell coordinates, field buffers and the tensor are mirrored to device-resident
buffers once per session. Moments, volumes, occupancy and local ids are
uploaded every step, so sources and targets of one call see the same occupancy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, cast

import jax
import jax.numpy as jnp
import numpy as np

from macrodip.backends.base import AcceleratorUnavailableError
from macrodip.constants import DEMAG_SELF_WEIGHT, EIGHT_PI, FIELD_SCALE, INV_MU_B
from macrodip.tensor import InteractionTensor
from macrodip.types import CellState, FieldOutput, IntArray

cast(Any, jax.config).update("jax_enable_x64", True)

logger = logging.getLogger(__name__)


def discover_devices(platform: str | None = None) -> list[Any]:
    try:
        devices = jax.devices(platform) if platform else jax.devices()
    except RuntimeError as exc:
        target = platform or "default"
        raise AcceleratorUnavailableError(
            f"Accelerator backend is enabled but no {target} platforms are available: {exc}"
        ) from exc
    if not devices:
        raise AcceleratorUnavailableError(
            "Accelerator backend is enabled but no suitable devices can be found."
        )
    return list(devices)


@dataclass
class DeviceBuffers:
    coords: jnp.ndarray | None
    moments: jnp.ndarray
    field: jnp.ndarray
    demag: jnp.ndarray
    volumes: jnp.ndarray
    occupancy: jnp.ndarray
    local_ids: jnp.ndarray
    tensor: tuple[jnp.ndarray, ...]


@jax.jit
def _dipole_fields(
    local_ids: jnp.ndarray,
    occupancy: jnp.ndarray,
    moments: jnp.ndarray,
    volumes: jnp.ndarray,
    txx: jnp.ndarray,
    txy: jnp.ndarray,
    txz: jnp.ndarray,
    tyy: jnp.ndarray,
    tyz: jnp.ndarray,
    tzz: jnp.ndarray,
) -> tuple[jnp.ndarray, jnp.ndarray, jnp.ndarray]:
    occupied = occupancy > 0
    m = jnp.where(occupied[:, None], moments * INV_MU_B, 0.0)
    mx = m[:, 0]
    my = m[:, 1]
    mz = m[:, 2]
    hx = txx @ mx + txy @ my + txz @ mz
    hy = txy @ mx + tyy @ my + tyz @ mz
    hz = txz @ mx + tyz @ my + tzz @ mz
    h = jnp.stack([hx, hy, hz], axis=-1)

    occ_local = occupied[local_ids]
    vol_local = jnp.where(occ_local, volumes[local_ids], 1.0)
    self_demag = (EIGHT_PI / (3.0 * vol_local))[:, None]
    m_local = moments[local_ids] * INV_MU_B
    field = (self_demag * m_local + h) * FIELD_SCALE
    demag = (DEMAG_SELF_WEIGHT * self_demag * m_local + h) * FIELD_SCALE
    return field, demag, occ_local


class JaxBackend:
    name = "jax"

    def __init__(self, platform: str | None = None) -> None:
        self.platform = platform
        self.devices = discover_devices(platform)
        self.device = self.devices[0]
        logger.info(
            "accelerator backend using device %s (%d found)", self.device, len(self.devices)
        )
        self.buffers: DeviceBuffers | None = None
        self._sources: dict[str, object] = {}

    def _put(self, arr: Any) -> jnp.ndarray:
        return jax.device_put(jnp.asarray(arr), self.device)

    def _stale(self, key: str, obj: object) -> bool:
        return self._sources.get(key) is not obj

    def stage(
        self, cells: CellState, local_ids: IntArray, tensor: InteractionTensor
    ) -> DeviceBuffers:
        """Mirror inputs to device; coords and tensor are re-uploaded only when replaced."""
        buf = self.buffers
        if buf is None or buf.field.shape[0] != cells.num_cells:
            self._sources.clear()
            zeros = np.zeros((cells.num_cells, 3), dtype=np.float64)
            buf = DeviceBuffers(
                coords=None,
                moments=self._put(cells.moments),
                field=self._put(zeros),
                demag=self._put(zeros),
                volumes=self._put(cells.volumes),
                occupancy=self._put(cells.occupancy),
                local_ids=self._put(local_ids),
                tensor=tuple(self._put(c) for c in tensor.components()),
            )
        else:
            buf.moments = self._put(cells.moments)
            buf.volumes = self._put(cells.volumes)
            buf.occupancy = self._put(cells.occupancy)
            buf.local_ids = self._put(local_ids)
            if self._stale("tensor", tensor):
                buf.tensor = tuple(self._put(c) for c in tensor.components())
        if cells.coords is not None and self._stale("coords", cells.coords):
            buf.coords = self._put(cells.coords)

        self._sources["tensor"] = tensor
        if cells.coords is not None:
            self._sources["coords"] = cells.coords
        self.buffers = buf
        return buf

    def update_field(
        self,
        cells: CellState,
        local_ids: IntArray,
        tensor: InteractionTensor,
        out: FieldOutput,
    ) -> None:
        buf = self.stage(cells, local_ids, tensor)
        field_l, demag_l, occ_l = _dipole_fields(
            buf.local_ids, buf.occupancy, buf.moments, buf.volumes, *buf.tensor
        )

        occ_local = np.asarray(occ_l, dtype=np.bool_)
        targets = local_ids[occ_local]
        field_np = np.asarray(field_l, dtype=np.float64)[occ_local]
        demag_np = np.asarray(demag_l, dtype=np.float64)[occ_local]
        out.field[targets] = field_np
        out.demag[targets] = demag_np

        target_dev = self._put(targets)
        buf.field = buf.field.at[target_dev].set(self._put(field_np))
        buf.demag = buf.demag.at[target_dev].set(self._put(demag_np))


__all__ = ["AcceleratorUnavailableError", "DeviceBuffers", "JaxBackend", "discover_devices"]
