from enum import Enum


class FilterOperator(str, Enum):
    """Operator tags with dedicated compilation rules.

    Any other tag (``gt``, ``exists``, ``elemMatch``, ...) is passed through
    as the native ``$<tag>`` operator.
    """

    BETWEEN = "between"
    INQ = "inq"
    NIN = "nin"
    NEQ = "neq"
    LIKE = "like"
    NLIKE = "nlike"
    REGEXP = "regexp"
    NEAR = "near"


# Keys that travel alongside an operator tag instead of being one.
MODIFIER_KEYS = frozenset({"options", "maxDistance", "minDistance", "unit"})
