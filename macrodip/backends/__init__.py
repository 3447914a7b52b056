"""Field evaluation backends (CPU via numba, accelerator via JAX)."""

from __future__ import annotations

import importlib.util
import logging

from macrodip.backends.base import AcceleratorUnavailableError, FieldBackend
from macrodip.backends.numba_backend import NumbaBackend

logger = logging.getLogger(__name__)

BACKEND_NAMES = ("numba", "jax")


def _require_jax() -> None:
    if importlib.util.find_spec("jax") is None:
        raise ModuleNotFoundError(
            "JAX is required for the accelerator backend. "
            "Install `jax` and `jaxlib` or use the numba backend."
        )


def select_backend(name: str = "numba", *, platform: str | None = None) -> FieldBackend:
    """
    Build the backend once at startup.

    The accelerator backend raises AcceleratorUnavailableError when no
    platform or device is found; there is no fallback to the CPU backend.
    """
    if name == "numba":
        if platform is not None:
            logger.warning("platform=%s ignored by the numba backend", platform)
        return NumbaBackend()
    if name == "jax":
        _require_jax()
        from macrodip.backends.jax_backend import JaxBackend

        return JaxBackend(platform=platform)
    raise ValueError(f"Unsupported backend: {name} (expected one of {', '.join(BACKEND_NAMES)})")


__all__ = [
    "AcceleratorUnavailableError",
    "BACKEND_NAMES",
    "FieldBackend",
    "NumbaBackend",
    "select_backend",
]
