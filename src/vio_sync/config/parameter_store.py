"""Named key-value parameter store backed by Kalibr-style YAML files."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

_MISSING = object()


class ParameterStore:
    """Read-only key-value store with '/'-separated nested keys.

    Values are looked up either as a literal top-level key ("imu_vars/w_var")
    or by walking nested mappings ({"imu_vars": {"w_var": ...}}), so both flat
    and nested YAML layouts resolve the same way.

    Example usage:
        store = ParameterStore.from_yaml("camchain-imucam.yaml", "tuning.yaml")
        w_var = store.get("imu_vars/w_var", 1e-5)
        T = store.require("cam0/T_cam_imu")
    """

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    @classmethod
    def from_yaml(
        cls,
        camchain_path: str | Path,
        tuning_path: str | Path | None = None,
    ) -> ParameterStore:
        """Load a camera chain file and an optional tuning file.

        Keys from the tuning file override keys from the camera chain.

        Args:
            camchain_path: Kalibr camchain YAML (cam0: {intrinsics, T_cam_imu, ...})
            tuning_path: Optional YAML with filter/tracker tuning constants

        Raises:
            FileNotFoundError: If either file doesn't exist
            ValueError: If a file does not contain a YAML mapping
        """
        values = cls._load_mapping(Path(camchain_path))
        if tuning_path is not None:
            values.update(cls._load_mapping(Path(tuning_path)))
        return cls(values)

    @staticmethod
    def _load_mapping(path: Path) -> dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Parameter file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f)

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(
                f"Expected a mapping at the top level of {path}, "
                f"got {type(data).__name__}"
            )
        return data

    def _lookup(self, key: str) -> Any:
        if key in self._values:
            return self._values[key]

        node: Any = self._values
        for part in key.split("/"):
            if not isinstance(node, Mapping) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def has(self, key: str) -> bool:
        """Return True if the key resolves to a value."""
        return self._lookup(key) is not _MISSING

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for key, or default when it is absent."""
        value = self._lookup(key)
        return default if value is _MISSING else value

    def require(self, key: str) -> Any:
        """Return the value for key.

        Raises:
            KeyError: If the key is absent
        """
        value = self._lookup(key)
        if value is _MISSING:
            raise KeyError(f"Required parameter missing: {key}")
        return value

    def with_overrides(self, overrides: Mapping[str, Any]) -> ParameterStore:
        """Return a new store with the given top-level keys replaced."""
        values = dict(self._values)
        values.update(overrides)
        return ParameterStore(values)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __len__(self) -> int:
        return len(self._values)
