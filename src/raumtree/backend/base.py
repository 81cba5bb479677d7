"""Structural interface of the persistence backend.

Every call is a suspension point. Implementations raise
:class:`~raumtree.exceptions.BackendUnavailableError` on failure.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from raumtree.models.tree import LeafState, TreeObject


class ObjectTreeBackend(Protocol):
    async def create_if_absent(self, path: str, descriptor: TreeObject) -> bool:
        """Store *descriptor* unless an object exists at *path*. Returns whether it was stored."""
        ...

    async def create_or_replace(self, path: str, descriptor: TreeObject) -> None: ...

    async def write_value(self, path: str, value: Any, *, ack: bool, ts: datetime | None = None) -> None: ...

    async def delete_value(self, path: str) -> None: ...

    async def delete_node(self, path: str, *, recursive: bool = False) -> None: ...

    async def list_children(self, prefix: str) -> list[str]:
        """Paths of the objects exactly one level below *prefix*."""
        ...

    async def get_object(self, path: str) -> TreeObject | None: ...

    async def get_state(self, path: str) -> LeafState | None: ...
