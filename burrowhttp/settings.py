"""Hierarchical, dotted-key configuration store with typed accessors."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

_MISSING = object()
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})


def _normalise(value: Any) -> Any:
    """Deep-copy a value, lower-casing every mapping key."""
    if isinstance(value, Mapping):
        return {str(key).lower(): _normalise(item) for key, item in value.items()}
    return copy.deepcopy(value)


def _split(key: str) -> list[str]:
    return [part for part in key.lower().split(".") if part]


def _find(tree: dict, parts: list[str]) -> Any:
    node: Any = tree
    for part in parts:
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _merge(base: dict, top: dict) -> dict:
    merged = dict(base)
    for key, value in top.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _to_str(value: Any) -> str:
    if value is None or isinstance(value, (dict, list, tuple)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Settings:
    """Configuration values addressed by case-insensitive dotted keys.

    Explicitly set values take precedence over defaults; nested sections are
    merged from both layers.
    """

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._overrides: dict = {}
        self._defaults: dict = {}
        for key, value in (values or {}).items():
            self.set(key, value)

    def reset(self) -> None:
        """Forget every value and default."""
        self._overrides.clear()
        self._defaults.clear()

    @staticmethod
    def _store(tree: dict, key: str, value: Any) -> None:
        parts = _split(key)
        if not parts:
            raise ValueError("configuration key must not be empty")
        node = tree
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = _normalise(value)

    def set(self, key: str, value: Any) -> None:
        """Set a value that overrides any default."""
        self._store(self._overrides, key, value)

    def set_default(self, key: str, value: Any) -> None:
        """Set a value used only where nothing was set explicitly."""
        self._store(self._defaults, key, value)

    def _lookup(self, key: str) -> Any:
        parts = _split(key)
        override = _find(self._overrides, parts)
        default = _find(self._defaults, parts)
        if isinstance(override, dict) and isinstance(default, dict):
            return _merge(default, override)
        return default if override is _MISSING else override

    def is_set(self, key: str) -> bool:
        """Whether the key holds a value or a default."""
        return self._lookup(key) is not _MISSING

    def get(self, key: str, default: Any = None) -> Any:
        """Return the raw value at key, or default when absent."""
        value = self._lookup(key)
        return default if value is _MISSING else value

    def get_str(self, key: str) -> str:
        return _to_str(self.get(key))

    def get_int(self, key: str) -> int:
        value = self.get(key)
        if isinstance(value, (bool, int)):
            return int(value)
        if isinstance(value, float):
            return int(value)
        if isinstance(value, str):
            text = value.strip()
            for base in (0, 10):
                try:
                    return int(text, base)
                except ValueError:
                    continue
            try:
                return int(float(text))
            except ValueError:
                return 0
        return 0

    def get_bool(self, key: str) -> bool:
        value = self.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            return value.strip() in _TRUE_WORDS
        return False

    def get_list(self, key: str) -> list[str]:
        value = self.get(key)
        if isinstance(value, (list, tuple)):
            return [_to_str(item) for item in value]
        if isinstance(value, str):
            return value.split()
        return []

    def get_map(self, key: str) -> dict[str, Any]:
        value = self.get(key)
        return dict(value) if isinstance(value, dict) else {}

    def get_str_map(self, key: str) -> dict[str, str]:
        return {name: _to_str(item) for name, item in self.get_map(key).items()}

    def names(self, key: str) -> list[str]:
        """Sorted names of the entries in the section at key."""
        return sorted(self.get_map(key))