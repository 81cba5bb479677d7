"""Object-tree models: container/leaf descriptors and leaf values.

The shape follows the common ``type``/``common``/``native`` object
layout of path-addressed home-automation object stores.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NodeType(StrEnum):
    FOLDER = "folder"
    DEVICE = "device"
    CHANNEL = "channel"
    STATE = "state"


class ValueType(StrEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


class CommonAttributes(BaseModel):
    """Display/capability attributes shared by all tree objects."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    role: str | None = None
    type: str | None = None
    """Declared value type (leaves only). Unknown type strings are kept."""
    read: bool | None = None
    write: bool | None = None


class TreeObject(BaseModel):
    """Descriptor of a tree node (container) or leaf (state)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: NodeType
    common: CommonAttributes
    native: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def node(
        cls,
        name: str,
        node_type: NodeType = NodeType.DEVICE,
        native: dict[str, Any] | None = None,
    ) -> TreeObject:
        return cls(type=node_type, common=CommonAttributes(name=name), native=dict(native or {}))

    @classmethod
    def leaf(cls, name: str, value_type: ValueType | str, role: str = "") -> TreeObject:
        return cls(
            type=NodeType.STATE,
            common=CommonAttributes(name=name, role=role, type=str(value_type), read=True, write=True),
        )

    @property
    def is_leaf(self) -> bool:
        return self.type == NodeType.STATE


class LeafState(BaseModel):
    """The current value record of a leaf."""

    model_config = ConfigDict(frozen=True)

    val: Any = None
    ack: bool = False
    ts: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("ts")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
