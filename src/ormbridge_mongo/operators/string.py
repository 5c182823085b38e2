"""Pattern operators -> $regex, $options, $not."""

from __future__ import annotations

import logging
import re
from typing import Any

from bson.regex import Regex

from ..exceptions import MongoQueryError
from .tags import FilterOperator

logger = logging.getLogger("ormbridge.mongo.query")

_LITERAL_FORM = re.compile(r"^/(?P<pattern>.*)/(?P<flags>[a-z]*)$", re.DOTALL)
_SUFFIX_FORM = re.compile(r"^(?P<pattern>.*)/(?P<flags>[gimsuxy]+)$", re.DOTALL)

_RE_FLAG_OPTIONS = (
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
)

# Flags MongoDB understands in $options.
_SUPPORTED_OPTIONS = "imsx"


def _flags_to_options(flags: int | str) -> str:
    if isinstance(flags, str):
        return flags
    return "".join(option for flag, option in _RE_FLAG_OPTIONS if flags & flag)


def split_regex(val: Any) -> tuple[str, str]:
    """Return ``(pattern, options)`` for a string, ``re.Pattern`` or ``Regex``.

    Strings may carry trailing flags the way the model framework writes them:
    ``"^a/i"`` or ``"/^a/i"``.
    """
    if isinstance(val, re.Pattern):
        return val.pattern, _flags_to_options(val.flags)
    if isinstance(val, Regex):
        return val.pattern, _flags_to_options(val.flags)
    if not isinstance(val, str):
        raise MongoQueryError(f"Pattern operand must be a string, got {val!r}")
    match = _LITERAL_FORM.match(val) or _SUFFIX_FORM.match(val)
    if match:
        return match.group("pattern"), match.group("flags")
    return val, ""


def _native_options(field: str, options: str) -> str:
    if "g" in options:
        logger.warning(
            "Regex flag 'g' on %r is not supported by MongoDB and is ignored",
            field,
        )
    return "".join(o for o in options if o in _SUPPORTED_OPTIONS)


def compile_string(
    field: str, op: str, val: Any, modifiers: dict[str, Any]
) -> dict[str, Any] | None:
    """Compile like/nlike/regexp. Returns None if not a pattern op."""
    try:
        filter_op = FilterOperator(op)
    except ValueError:
        return None

    if filter_op == FilterOperator.REGEXP:
        pattern, options = split_regex(val)
        options = _native_options(field, options)
        return {field: {"$regex": pattern, "$options": options}}

    if filter_op == FilterOperator.LIKE:
        if isinstance(val, (re.Pattern, Regex)):
            return {field: {"$regex": val}}
        options = _native_options(field, str(modifiers.get("options") or ""))
        return {field: {"$regex": str(val), "$options": options}}

    if filter_op == FilterOperator.NLIKE:
        if isinstance(val, (re.Pattern, Regex)):
            return {field: {"$not": val}}
        options = _native_options(field, str(modifiers.get("options") or ""))
        return {field: {"$not": Regex(str(val), options)}}

    return None
