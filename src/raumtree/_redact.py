"""Log-safe rendering of provider payloads.

Snapshots carry media metadata with long album-art URLs and can repeat
dozens of rooms; bridge envelopes may include broker credentials.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_MASKED_KEYS = frozenset({"password", "token", "authorization"})


def redact_for_log(value: Any, *, max_string: int = 256, max_items: int = 20) -> Any:
    """Return a copy of *value* with long text cut and credentials masked."""
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…"
    if isinstance(value, Mapping):
        return {
            str(key): "<redacted>"
            if str(key).lower() in _MASKED_KEYS
            else redact_for_log(item, max_string=max_string, max_items=max_items)
            for key, item in value.items()
        }
    if isinstance(value, list):
        items = [redact_for_log(item, max_string=max_string, max_items=max_items) for item in value[:max_items]]
        if len(value) > max_items:
            items.append(f"<{len(value) - max_items} more>")
        return items
    return value
