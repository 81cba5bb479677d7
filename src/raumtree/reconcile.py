"""Topology reconciliation.

One pass mirrors a :class:`~raumtree.models.snapshot.Snapshot` into the
object tree: every room gets a device node under the root with ``name``,
``powerState`` and ``udn`` leaves, and room nodes that are no longer in
the snapshot are removed together with their leaves.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from raumtree.backend.base import ObjectTreeBackend
from raumtree.config import MirrorConfig
from raumtree.exceptions import BackendUnavailableError, PathCollisionError
from raumtree.ingestion.snapshot import iter_rooms
from raumtree.models.snapshot import Room, SkippedEntity, Snapshot
from raumtree.models.tree import NodeType, ValueType
from raumtree.tree.leaves import LeafOutcome, sync_leaf
from raumtree.tree.paths import PathKey, build_identifier_path, build_room_path, join_path
from raumtree.tree.registrar import ensure_node

_logger = logging.getLogger(__name__)

# (leaf segment, Room attribute)
ROOM_LEAVES: tuple[tuple[str, str], ...] = (
    ("name", "name"),
    ("powerState", "power_state"),
    ("udn", "udn"),
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ReconcileReport:
    """What one pass did."""

    rooms: list[str] = field(default_factory=list)
    """Paths that should exist after the pass."""
    created_nodes: list[str] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    deleted_leaves: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    """Stale room nodes deleted with their subtree."""
    retained: list[str] = field(default_factory=list)
    """Room nodes kept untouched because their entry was skipped as malformed."""
    collisions: list[PathCollisionError] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    """Path -> error for rooms (or the removal step) that hit a backend failure."""
    skipped: list[SkippedEntity] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def _merge_room(existing: Room, incoming: Room) -> Room:
    """Combine two appearances of the same room; null never erases a value."""
    update = {
        attr: getattr(incoming, attr)
        for attr in ("name", "udn", "power_state")
        if getattr(incoming, attr) is not None
    }
    if incoming.renderers:
        update["renderers"] = incoming.renderers
    return existing.model_copy(update=update)


class TopologyReconciler:
    """Drives node registration and leaf sync for every room of a snapshot.

    Passes must not overlap; :class:`~raumtree.runtime.MirrorRuntime`
    serializes them.
    """

    def __init__(
        self,
        backend: ObjectTreeBackend,
        config: MirrorConfig | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._backend = backend
        self._config = config or MirrorConfig()
        self._clock = clock

    @property
    def root(self) -> str:
        return self._config.root

    def room_path(self, room: Room) -> str:
        return build_room_path(
            self._config.root,
            room,
            key=self._config.path_key,
            ascii_only=self._config.ascii_paths,
        )

    def plan(self, snapshot: Snapshot, report: ReconcileReport | None = None) -> dict[str, Room]:
        """Resolve every room of *snapshot* to its path, in iteration order.

        Repeated appearances of one room are merged. Distinct rooms sharing
        a path are recorded as collisions; the later one wins.
        """
        planned: dict[str, Room] = {}
        for list_name, room in iter_rooms(snapshot):
            path = self.room_path(room)
            existing = planned.get(path)
            if existing is None:
                planned[path] = room
                continue
            if existing.identity == room.identity or (
                self._config.path_key == PathKey.NAME and not (existing.udn and room.udn)
            ):
                planned[path] = _merge_room(existing, room)
                continue
            collision = PathCollisionError(path, previous=existing.identity, current=room.identity)
            _logger.warning("Path collision in %s: %s", list_name, collision)
            if report is not None:
                report.collisions.append(collision)
            planned[path] = room
        return planned

    async def reconcile(self, snapshot: Snapshot) -> ReconcileReport:
        """Run one full pass. Backend failures are contained per room."""
        report = ReconcileReport(skipped=list(snapshot.skipped))
        planned = self.plan(snapshot, report)
        report.rooms = list(planned)

        try:
            if await ensure_node(self._backend, self.root, self.root, NodeType.FOLDER):
                report.created_nodes.append(self.root)
        except BackendUnavailableError as exc:
            _logger.warning("Could not ensure root %s: %s", self.root, exc)
            report.failed[self.root] = str(exc)
            return report

        for path, room in planned.items():
            try:
                await self._sync_room(path, room, report)
            except BackendUnavailableError as exc:
                _logger.warning("Room %s left partially synchronized: %s", path, exc)
                report.failed[path] = str(exc)

        if self._config.prune_stale:
            report.retained = self._skipped_paths(snapshot, set(planned))
            await self._prune(set(planned) | set(report.retained), report)

        _logger.debug(
            "Reconciled %d rooms: %d created, %d written, %d leaves deleted, %d removed, %d failed",
            len(report.rooms),
            len(report.created_nodes),
            len(report.written),
            len(report.deleted_leaves),
            len(report.removed),
            len(report.failed),
        )
        return report

    async def _sync_room(self, path: str, room: Room, report: ReconcileReport) -> None:
        if await ensure_node(self._backend, path, room.name, NodeType.DEVICE):
            report.created_nodes.append(path)

        for segment, attr in ROOM_LEAVES:
            leaf_path = join_path(path, segment)
            outcome = await sync_leaf(
                self._backend,
                leaf_path,
                segment,
                ValueType.STRING,
                "",
                getattr(room, attr),
                delete_on_null=self._config.delete_on_null,
                clock=self._clock,
            )
            if outcome == LeafOutcome.WRITTEN:
                report.written.append(leaf_path)
            elif outcome == LeafOutcome.DELETED:
                report.deleted_leaves.append(leaf_path)

    def _skipped_paths(self, snapshot: Snapshot, planned: set[str]) -> list[str]:
        """Paths of rooms that are present but were dropped as malformed."""
        paths: list[str] = []
        for entity in snapshot.skipped:
            path = build_identifier_path(
                self.root,
                name=entity.name,
                udn=entity.udn,
                key=self._config.path_key,
                ascii_only=self._config.ascii_paths,
            )
            if path is None or path in planned or path in paths:
                continue
            _logger.info("Keeping %s; its entry %s[%s] was skipped", path, entity.list_name, entity.index)
            paths.append(path)
        return paths

    async def _prune(self, expected: set[str], report: ReconcileReport) -> None:
        try:
            existing = await self._backend.list_children(self.root)
        except BackendUnavailableError as exc:
            _logger.warning("Could not list %s; stale rooms kept: %s", self.root, exc)
            report.failed[self.root] = str(exc)
            return

        for path in existing:
            if path in expected:
                continue
            try:
                await self._backend.delete_node(path, recursive=True)
            except BackendUnavailableError as exc:
                _logger.warning("Could not remove stale room %s: %s", path, exc)
                report.failed[path] = str(exc)
                continue
            _logger.info("Removed stale room %s", path)
            report.removed.append(path)
