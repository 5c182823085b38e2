"""MongoDB operator compilers for the abstract filter grammar."""

from __future__ import annotations

from typing import Any

from .geometry import compile_geometry
from .set import compile_set
from .standard import compile_standard
from .string import compile_string
from .tags import MODIFIER_KEYS, FilterOperator


def compile_passthrough(
    field: str, op: str, val: Any, _modifiers: dict[str, Any]
) -> dict[str, Any]:
    """Emit ``op`` as the native operator of the same name."""
    native = op if op.startswith("$") else f"${op}"
    return {field: {native: val}}


__all__ = [
    "MODIFIER_KEYS",
    "FilterOperator",
    "compile_geometry",
    "compile_passthrough",
    "compile_set",
    "compile_standard",
    "compile_string",
]
