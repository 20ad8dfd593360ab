"""YAML settings read from ``<base>/config/config.yml`` with dotted, case-insensitive keys."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _normalise(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key).lower(): _normalise(item) for key, item in value.items()}
    return value


@dataclass
class Settings:
    """Nested configuration values looked up by dotted key."""

    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.data = _normalise(self.data)

    def get(self, key: str, default: Any = None) -> Any:
        """Value at ``key`` such as ``"Mysql.Port"``, or ``default`` when absent."""
        node: Any = self.data
        for part in key.lower().split("."):
            if not isinstance(node, Mapping) or part not in node:
                return default
            node = node[part]
        return node

    def get_bool(self, key: str) -> bool:
        """Value at ``key`` as a boolean; absent or unparsable values are False."""
        value = self.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            text = value.strip()
            if text in _TRUE:
                return True
            return False
        return False

    def get_int(self, key: str) -> int:
        """Value at ``key`` as an integer; absent or unparsable values are 0."""
        value = self.get(key)
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip(), 0)
            except ValueError:
                return 0
        return 0


def load_settings(base_path=None) -> Settings:
    """Read ``config/config.yml`` under ``base_path`` (default: working directory)."""
    base = Path.cwd() if base_path is None else Path(base_path)
    path = base / "config" / "config.yml"
    with path.open(encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, Mapping):
        raise ValueError(f"{path} must hold a mapping at the top level")
    return Settings(loaded)