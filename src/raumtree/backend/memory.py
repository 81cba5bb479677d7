"""In-memory object tree."""

from __future__ import annotations

import copy
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from raumtree.exceptions import BackendUnavailableError
from raumtree.models.tree import LeafState, TreeObject
from raumtree.tree.paths import is_direct_child, is_within


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _same_value(left: Any, right: Any) -> bool:
    # NaN never equals itself; treat two NaNs as unchanged.
    if isinstance(left, float) and isinstance(right, float) and left != left and right != right:
        return True
    return type(left) is type(right) and left == right


class InMemoryObjectTree:
    """Dict-backed tree with read-before-write elision of unchanged values.

    Every mutating call that changed something is appended to
    :attr:`operations` as ``(operation, path)``. Tests may set
    :attr:`fail_on` to a predicate ``(operation, path) -> bool`` to
    simulate an unavailable backend.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._objects: dict[str, TreeObject] = {}
        self._states: dict[str, LeafState] = {}
        self.operations: list[tuple[str, str]] = []
        self.elided_writes = 0
        self.fail_on: Callable[[str, str], bool] | None = None

    def _check(self, operation: str, path: str) -> None:
        if self.fail_on is not None and self.fail_on(operation, path):
            raise BackendUnavailableError(f"{operation} failed for {path}", path=path)

    async def create_if_absent(self, path: str, descriptor: TreeObject) -> bool:
        self._check("create_if_absent", path)
        if path in self._objects:
            return False
        self._objects[path] = descriptor
        self.operations.append(("create", path))
        return True

    async def create_or_replace(self, path: str, descriptor: TreeObject) -> None:
        self._check("create_or_replace", path)
        self._objects[path] = descriptor
        self.operations.append(("replace", path))

    async def write_value(self, path: str, value: Any, *, ack: bool, ts: datetime | None = None) -> None:
        self._check("write_value", path)
        current = self._states.get(path)
        if current is not None and current.ack == ack and _same_value(current.val, value):
            self.elided_writes += 1
            return
        self._states[path] = LeafState(val=copy.deepcopy(value), ack=ack, ts=ts or self._clock())
        self.operations.append(("write", path))

    async def delete_value(self, path: str) -> None:
        self._check("delete_value", path)
        if self._states.pop(path, None) is not None:
            self.operations.append(("delete_value", path))

    async def delete_node(self, path: str, *, recursive: bool = False) -> None:
        self._check("delete_node", path)
        if recursive:
            targets = sorted({p for p in (*self._objects, *self._states) if is_within(path, p)})
        else:
            targets = [path]
        for target in targets:
            if self._objects.pop(target, None) is not None:
                self.operations.append(("delete_node", target))
            if self._states.pop(target, None) is not None:
                self.operations.append(("delete_value", target))

    async def list_children(self, prefix: str) -> list[str]:
        self._check("list_children", prefix)
        return sorted(path for path in self._objects if is_direct_child(prefix, path))

    async def get_object(self, path: str) -> TreeObject | None:
        return self._objects.get(path)

    async def get_state(self, path: str) -> LeafState | None:
        return self._states.get(path)

    def dump(self) -> dict[str, Any]:
        """Plain ``{path: value}`` view of every leaf, plus ``None`` for containers."""
        result: dict[str, Any] = {}
        for path in sorted(self._objects):
            state = self._states.get(path)
            result[path] = state.val if state is not None else None
        return result
