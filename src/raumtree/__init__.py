"""raumtree - mirror a Raumfeld topology snapshot into a path-addressed object tree."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("raumtree")
except PackageNotFoundError:
    __version__ = "0+local"
from raumtree.backend import InMemoryObjectTree, ObjectTreeBackend, RestObjectTree
from raumtree.config import MirrorConfig, MqttSettings
from raumtree.exceptions import (
    BackendUnavailableError,
    MalformedSnapshotError,
    PathCollisionError,
    RaumtreeConfigError,
    RaumtreeError,
)
from raumtree.ingestion import parse_snapshot
from raumtree.models import (
    LeafState,
    NodeType,
    PowerState,
    Renderer,
    Room,
    Snapshot,
    TreeObject,
    ValueType,
    Zone,
)
from raumtree.reconcile import ReconcileReport, TopologyReconciler
from raumtree.runtime import MirrorRuntime
from raumtree.tree import LeafOutcome, PathKey, build_room_path, convert_value, ensure_node, sync_leaf

__all__ = [
    "__version__",
    "BackendUnavailableError",
    "InMemoryObjectTree",
    "LeafOutcome",
    "LeafState",
    "MalformedSnapshotError",
    "MirrorConfig",
    "MirrorRuntime",
    "MqttSettings",
    "NodeType",
    "ObjectTreeBackend",
    "PathCollisionError",
    "PathKey",
    "PowerState",
    "RaumtreeConfigError",
    "RaumtreeError",
    "ReconcileReport",
    "Renderer",
    "RestObjectTree",
    "Room",
    "Snapshot",
    "TopologyReconciler",
    "TreeObject",
    "ValueType",
    "Zone",
    "build_room_path",
    "convert_value",
    "ensure_node",
    "parse_snapshot",
    "sync_leaf",
]
