"""Set operators -> $in, $nin."""

from __future__ import annotations

from typing import Any

from .tags import FilterOperator


def compile_set(
    field: str, op: str, val: Any, _modifiers: dict[str, Any]
) -> dict[str, Any] | None:
    """Compile inclusion/exclusion operators. Returns None if not a set op."""
    try:
        filter_op = FilterOperator(op)
    except ValueError:
        return None
    values = list(val) if isinstance(val, (list, tuple, set)) else [val]
    if filter_op == FilterOperator.INQ:
        return {field: {"$in": values}}
    if filter_op == FilterOperator.NIN:
        return {field: {"$nin": values}}
    return None
