"""Leaf synchronization: descriptor, then value write or removal."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from raumtree.backend.base import ObjectTreeBackend
from raumtree.models.tree import TreeObject, ValueType
from raumtree.tree.convert import convert_value

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LeafOutcome(StrEnum):
    DESCRIBED = "described"
    """Descriptor ensured, value untouched."""
    WRITTEN = "written"
    DELETED = "deleted"


async def sync_leaf(
    backend: ObjectTreeBackend,
    path: str,
    display_name: str,
    value_type: ValueType | str,
    role: str,
    value: Any,
    *,
    delete_on_null: bool = True,
    allow_write: bool = True,
    clock: Callable[[], datetime] = _utcnow,
) -> LeafOutcome:
    """Synchronize one typed leaf at *path*.

    1. ``None`` with *delete_on_null* (and *allow_write*): delete the value,
       then the descriptor. The descriptor is not created first, so an
       already absent leaf costs no mutation.
    2. Create the leaf descriptor if absent (never overwritten here).
    3. With *allow_write* unset, stop.
    4. Otherwise write the converted value, acknowledged and timestamped.

    The owning container must already exist; nothing here creates it.
    """
    if allow_write and value is None and delete_on_null:
        await backend.delete_value(path)
        await backend.delete_node(path)
        _logger.debug("Removed leaf %s", path)
        return LeafOutcome.DELETED

    await backend.create_if_absent(path, TreeObject.leaf(display_name, value_type, role))
    if not allow_write:
        return LeafOutcome.DESCRIBED

    converted = convert_value(value, value_type)
    await backend.write_value(path, converted, ack=True, ts=clock())
    return LeafOutcome.WRITTEN
