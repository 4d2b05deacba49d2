"""Recursive merge of configuration mappings."""

from collections.abc import Mapping
from typing import Any


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge *override* into a copy of *base*.

    Keys from *override* win. When both sides hold a mapping under the
    same key the two are merged recursively; any other value (lists
    included) replaces the old one outright. Neither argument is mutated.

    Example::

        deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}, "b": 4})
        # {"a": {"x": 1, "y": 3}, "b": 4}
    """
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged
