"""Deep merge for the configuration cascade."""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated with ``override``.

    Nested dicts merge recursively, lists and scalars are replaced, and a
    ``None`` in ``override`` leaves the base value alone so partial configs
    can omit keys. Neither input is mutated.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge configs left to right; later ones win."""
    merged: dict[str, Any] = {}
    for config in configs:
        if config:
            merged = deep_merge(merged, config)
    return merged
