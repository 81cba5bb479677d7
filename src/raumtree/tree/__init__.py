"""Object-tree primitives: value conversion, paths, node and leaf sync."""

from raumtree.tree.convert import convert_value
from raumtree.tree.leaves import LeafOutcome, sync_leaf
from raumtree.tree.paths import PathKey, build_room_path, join_path, sanitize_segment
from raumtree.tree.registrar import ensure_node

__all__ = [
    "LeafOutcome",
    "PathKey",
    "build_room_path",
    "convert_value",
    "ensure_node",
    "join_path",
    "sanitize_segment",
    "sync_leaf",
]
