"""Standard comparison operators for MongoDB query compilation."""

from __future__ import annotations

from typing import Any

from ..exceptions import MongoQueryError
from .tags import FilterOperator


def compile_standard(
    field: str, op: str, val: Any, _modifiers: dict[str, Any]
) -> dict[str, Any] | None:
    """Compile ``between`` and ``neq``. Returns None for any other operator."""
    try:
        filter_op = FilterOperator(op)
    except ValueError:
        return None

    if filter_op == FilterOperator.BETWEEN:
        lo, hi = _validate_range_operand(val, op_name="between")
        return {field: {"$gte": lo, "$lte": hi}}

    if filter_op == FilterOperator.NEQ:
        return {field: {"$ne": val}}

    return None


def _validate_range_operand(val: Any, *, op_name: str) -> tuple[Any, Any]:
    if not isinstance(val, (list, tuple)) or len(val) != 2:
        raise MongoQueryError(f"{op_name} requires a list of two values")
    return val[0], val[1]
