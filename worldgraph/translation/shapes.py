# Shape predicates shared by both transformers

from __future__ import annotations

from typing import Any


def is_node(value: Any) -> bool:
    return isinstance(value, dict) and "Type" in value


def is_bare_vector(value: Any) -> bool:
    """Internal {x, y, z} record that is not wrapped in an operation node."""
    return isinstance(value, dict) and "x" in value and "Type" not in value


def is_point3d(value: Any) -> bool:
    """Native {X, Y, Z} record with at least one numeric axis and no Type."""
    if not isinstance(value, dict) or "Type" in value or "X" not in value:
        return False
    return any(is_number(value.get(axis)) for axis in ("X", "Y", "Z"))


def is_material_leaf(value: Any) -> bool:
    return isinstance(value, dict) and "Solid" in value and "Type" not in value


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def count_nodes(value: Any) -> int:
    """Number of typed nodes anywhere inside `value`."""
    if isinstance(value, list):
        return sum(count_nodes(v) for v in value)
    if isinstance(value, dict):
        own = 1 if "Type" in value else 0
        return own + sum(count_nodes(v) for v in value.values())
    return 0
