from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal, cast

BackendName = Literal["numba", "jax"]
_BACKENDS = ("numba", "jax")


@dataclass(frozen=True)
class DipoleConfig:
    activated: bool = False
    check: bool = False
    backend: BackendName = "numba"
    platform: str | None = None

    def __post_init__(self) -> None:
        if self.backend not in _BACKENDS:
            raise ValueError(f"Unsupported backend: {self.backend}")

    def with_overrides(self, **overrides: Any) -> DipoleConfig:
        """Replace fields whose override is not None."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **updates)

    def to_dict(self) -> dict[str, Any]:
        return dict(
            activated=bool(self.activated),
            check=bool(self.check),
            backend=str(self.backend),
            platform=self.platform,
        )


def _require_bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"dipole.{key} must be a bool, got {type(value).__name__}")
    return value


def config_from_meta(meta: dict[str, Any]) -> DipoleConfig:
    """Read the "dipole" section of a JSON-style dict; a missing section keeps the defaults."""
    section = meta.get("dipole", {})
    if not isinstance(section, dict):
        raise ValueError("meta['dipole'] must be a dict")
    backend = section.get("backend", "numba")
    if backend not in _BACKENDS:
        raise ValueError(f"dipole.backend must be one of {', '.join(_BACKENDS)}, got {backend!r}")
    platform = section.get("platform")
    if platform is not None and not isinstance(platform, str):
        raise ValueError("dipole.platform must be a string when provided")
    return DipoleConfig(
        activated=_require_bool(section, "activated", False),
        check=_require_bool(section, "check", False),
        backend=cast(BackendName, backend),
        platform=platform,
    )


def load_config(path: str | Path) -> DipoleConfig:
    cfg_path = Path(path)
    if not cfg_path.is_file():
        raise FileNotFoundError(f"config not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"config {cfg_path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"config {cfg_path} must be a JSON object")
    return config_from_meta(data)


__all__ = ["BackendName", "DipoleConfig", "config_from_meta", "load_config"]
