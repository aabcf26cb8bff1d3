"""Cell value coercion shared by classification, mapping and statistics."""

from __future__ import annotations

import math
import re

# Leading integer, as spreadsheet exports often carry "1 - Yes" style cells
_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")


def coerce_int(value: object) -> int | None:
    """Read a cell as an integer, or return None when it is not one.

    Strings are parsed from their leading digits ("3", " 3", "3 - Bus" all
    give 3).  Floats only count when integral.  Booleans are not numbers.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    if isinstance(value, str):
        m = _LEADING_INT.match(value)
        return int(m.group(1)) if m else None
    return None


def is_blank(value: object) -> bool:
    """True for an unanswered cell: absent (None) or an empty string."""
    return value is None or value == ""


def value_key(value: object) -> str:
    """String form of a cell used for grouping ("" for blank)."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
