"""Create-if-absent registration of container nodes."""

from __future__ import annotations

import logging
from typing import Any

from raumtree.backend.base import ObjectTreeBackend
from raumtree.models.tree import NodeType, TreeObject

_logger = logging.getLogger(__name__)


async def ensure_node(
    backend: ObjectTreeBackend,
    path: str,
    display_name: str,
    node_type: NodeType = NodeType.DEVICE,
    native: dict[str, Any] | None = None,
    *,
    force_overwrite: bool = False,
) -> bool:
    """Ensure a container descriptor exists at *path*.

    Issues exactly one backend write: a conditional create, or an
    unconditional replace when *force_overwrite* is set. Returns whether
    the backend stored a descriptor. Backend failures propagate as
    :class:`~raumtree.exceptions.BackendUnavailableError`.
    """
    descriptor = TreeObject.node(display_name, node_type, native)
    if force_overwrite:
        await backend.create_or_replace(path, descriptor)
        _logger.debug("Replaced %s node at %s", node_type, path)
        return True

    created = await backend.create_if_absent(path, descriptor)
    if created:
        _logger.debug("Created %s node at %s", node_type, path)
    return created
