"""Coerce untyped snapshot values to a leaf's declared value type."""

from __future__ import annotations

import json
import math
from typing import Any

from raumtree.models.tree import ValueType


def _to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else math.nan
    if isinstance(value, str):
        text = value.strip()
        if "_" in text:
            return math.nan
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return math.nan
        # Overflow ("1e999") is out of range, not infinity.
        return parsed if math.isfinite(parsed) else math.nan
    return math.nan


def _to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def convert_value(value: Any, value_type: ValueType | str) -> Any:
    """Convert *value* to *value_type*.

    ``None`` is returned unchanged; callers use it to signal deletion.
    Numbers that cannot be parsed become ``math.nan``, never ``0``.
    Boolean, JSON and unknown types pass through untouched.
    """
    if value is None:
        return None
    if value_type == ValueType.STRING:
        return _to_string(value)
    if value_type == ValueType.NUMBER:
        return _to_number(value)
    return value
