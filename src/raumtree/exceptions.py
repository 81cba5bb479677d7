"""Custom exception hierarchy for raumtree."""

from __future__ import annotations


class RaumtreeError(Exception):
    """Base exception for all raumtree errors."""


class RaumtreeConfigError(RaumtreeError):
    """Invalid or missing configuration."""


class MalformedSnapshotError(RaumtreeError):
    """Snapshot payload (or one of its entities) failed validation."""


class BackendUnavailableError(RaumtreeError):
    """A create/write/delete/list call against the object tree failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        path: str = "",
    ) -> None:
        self.status_code = status_code
        self.path = path
        super().__init__(message)


class PathCollisionError(RaumtreeError):
    """Two distinct entities resolved to the same tree path.

    This is a data-quality condition. The reconciler records it in its
    report (last writer in iteration order wins) and never raises it out
    of a pass.
    """

    def __init__(self, path: str, *, previous: str, current: str) -> None:
        self.path = path
        self.previous = previous
        self.current = current
        super().__init__(f"{current!r} collides with {previous!r} at {path}")
