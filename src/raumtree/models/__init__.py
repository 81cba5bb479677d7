"""Data models for topology snapshots and the object tree."""

from raumtree.models._base import TopologyBaseModel
from raumtree.models.snapshot import PowerState, Renderer, Room, SkippedEntity, Snapshot, Zone
from raumtree.models.tree import CommonAttributes, LeafState, NodeType, TreeObject, ValueType

__all__ = [
    "CommonAttributes",
    "LeafState",
    "NodeType",
    "PowerState",
    "Renderer",
    "Room",
    "SkippedEntity",
    "Snapshot",
    "TopologyBaseModel",
    "TreeObject",
    "ValueType",
    "Zone",
]
