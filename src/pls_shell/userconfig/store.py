"""JSON-backed user configuration tree."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_VALUE_TYPES = ("string", "boolean", "number")


class ConfigError(RuntimeError):
    """User configuration cannot be read or written."""


def write_json(path: Path, payload: dict[str, Any]) -> None:
    """Persist JSON payload using deterministic formatting."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), "utf-8")


def load_json(path: Path) -> dict[str, Any]:
    """Load JSON document and validate top-level object type."""

    payload = json.loads(path.read_text("utf-8"))
    if not isinstance(payload, dict):
        raise TypeError(f"Expected JSON object in {path}")
    return payload


def flatten_config(tree: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """``{"a": {"b": 1}}`` -> ``{"a.b": 1}``."""

    flat: dict[str, Any] = {}
    for key, value in tree.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_config(value, dotted))
        else:
            flat[dotted] = value
    return flat


def unflatten_config(flat: Mapping[str, Any]) -> dict[str, Any]:
    """``{"a.b": 1}`` -> ``{"a": {"b": 1}}``."""

    tree: dict[str, Any] = {}
    for dotted, value in flat.items():
        _assign(tree, dotted, value)
    return tree


def _assign(tree: dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    current = tree
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


def is_valid_config_value(raw: str, value_type: str) -> bool:
    if value_type == "boolean":
        return raw.lower() in {"true", "false"}
    if value_type == "number":
        try:
            float(raw)
        except ValueError:
            return False
        return True
    return True


def coerce_config_value(raw: str, value_type: str | None = None) -> Any:
    """Typed value for a raw string; without a type, infer booleans and numbers."""

    if value_type == "string":
        return raw
    if value_type == "boolean" or (value_type is None and raw in {"true", "false"}):
        return raw.lower() == "true"
    if value_type == "number":
        number = float(raw)
        return int(number) if number.is_integer() and "." not in raw else number
    if value_type is None:
        return _infer_number(raw)
    return raw


def _infer_number(raw: str) -> Any:
    """Number for ``raw`` only when it prints back as the same text, e.g. not "0042"."""

    if raw.isascii() and raw.lstrip("-").isdigit():
        return int(raw) if str(int(raw)) == raw else raw
    try:
        number = float(raw)
    except ValueError:
        return raw
    return number if math.isfinite(number) and repr(number) == raw else raw


class UserConfigStore:
    """Read and update the nested JSON config file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return load_json(self.path)
        except (OSError, ValueError, TypeError) as error:
            raise ConfigError(f"Cannot read config file {self.path}: {error}") from error

    def save(
        self,
        values: Mapping[str, str],
        types: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Merge dotted ``values`` into the stored tree and return the result."""

        tree = self.load()
        for dotted, raw in values.items():
            _assign(tree, dotted, coerce_config_value(raw, (types or {}).get(dotted)))
        try:
            write_json(self.path, tree)
        except OSError as error:
            raise ConfigError(f"Cannot write config file {self.path}: {error}") from error
        logger.debug("Saved %d config value(s) to %s", len(values), self.path)
        return tree

    def set_value(self, dotted: str, raw: str) -> dict[str, Any]:
        return self.save({dotted: raw})
