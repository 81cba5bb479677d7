"""Snapshot ingestion.

Each list element is validated on its own: an entity that fails
validation is dropped and recorded on :attr:`Snapshot.skipped`, the rest
of the snapshot is kept.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import ValidationError

from raumtree.exceptions import MalformedSnapshotError
from raumtree.models.snapshot import Renderer, Room, SkippedEntity, Snapshot, Zone

_logger = logging.getLogger(__name__)

ZONED = "zones"
UNASSIGNED = "unassignedRooms"
AVAILABLE = "availableRooms"


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}" for error in exc.errors()
    )


def _as_list(
    payload: Mapping[str, Any],
    key: str,
    skipped: list[SkippedEntity],
    *,
    list_name: str | None = None,
) -> list[Any]:
    value = payload.get(key)
    if value is None:
        return []
    if isinstance(value, list):
        return value
    skipped.append(
        SkippedEntity(list_name=list_name or key, index=-1, reason=f"expected a list, got {type(value).__name__}")
    )
    return []


def _identifier(value: Any) -> str | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _parse_renderers(item: Mapping[str, Any], list_name: str, skipped: list[SkippedEntity]) -> list[Renderer]:
    # Renderers are not mirrored; a bad one must not cost the room.
    renderers: list[Renderer] = []
    for index, entry in enumerate(_as_list(item, "renderers", skipped, list_name=list_name)):
        if not isinstance(entry, Mapping):
            skipped.append(SkippedEntity(list_name=list_name, index=index, reason="not an object"))
            continue
        try:
            renderers.append(Renderer.model_validate(dict(entry)))
        except ValidationError as exc:
            skipped.append(SkippedEntity(list_name=list_name, index=index, reason=_describe(exc)))
    return renderers


def _parse_rooms(items: list[Any], list_name: str, skipped: list[SkippedEntity]) -> list[Room]:
    rooms: list[Room] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            skipped.append(SkippedEntity(list_name=list_name, index=index, reason="not an object"))
            continue
        fields = dict(item)
        fields["renderers"] = _parse_renderers(item, f"{list_name}[{index}].renderers", skipped)
        fields["raw"] = dict(item)
        try:
            rooms.append(Room.model_validate(fields))
        except ValidationError as exc:
            skipped.append(
                SkippedEntity(
                    list_name=list_name,
                    index=index,
                    reason=_describe(exc),
                    udn=_identifier(item.get("udn")),
                    name=_identifier(item.get("name")),
                )
            )
    return rooms


def _parse_zone(item: Mapping[str, Any], index: int, skipped: list[SkippedEntity]) -> Zone:
    zone_fields = {key: value for key, value in item.items() if key != "rooms"}
    zone_fields["raw"] = dict(item)
    try:
        zone = Zone.model_validate(zone_fields)
    except ValidationError as exc:
        # Zone attributes are informational; keep the rooms regardless.
        skipped.append(SkippedEntity(list_name=ZONED, index=index, reason=_describe(exc)))
        zone = Zone(raw=dict(item))
    list_name = f"{ZONED}[{index}].rooms"
    rooms = _parse_rooms(_as_list(item, "rooms", skipped, list_name=list_name), list_name, skipped)
    return zone.model_copy(update={"rooms": rooms})


def parse_snapshot(payload: Any) -> Snapshot:
    """Validate a combined-zone-state payload.

    Raises :class:`MalformedSnapshotError` only when the payload as a whole
    is not an object; malformed entities are skipped and logged.
    """
    if not isinstance(payload, Mapping):
        raise MalformedSnapshotError(f"Snapshot payload must be an object, got {type(payload).__name__}")

    skipped: list[SkippedEntity] = []

    zones: list[Zone] = []
    for index, item in enumerate(_as_list(payload, ZONED, skipped)):
        if not isinstance(item, Mapping):
            skipped.append(SkippedEntity(list_name=ZONED, index=index, reason="not an object"))
            continue
        zones.append(_parse_zone(item, index, skipped))

    unassigned = _parse_rooms(_as_list(payload, UNASSIGNED, skipped), UNASSIGNED, skipped)
    available = _parse_rooms(_as_list(payload, AVAILABLE, skipped), AVAILABLE, skipped)

    for entity in skipped:
        _logger.warning("Skipping malformed entity %s[%s]: %s", entity.list_name, entity.index, entity.reason)

    return Snapshot(
        zones=zones,
        unassigned_rooms=unassigned,
        available_rooms=available,
        skipped=skipped,
        raw=dict(payload),
    )


def iter_rooms(snapshot: Snapshot) -> Iterator[tuple[str, Room]]:
    """Yield ``(list_name, room)`` in reconciliation order: zoned, unassigned, available."""
    for zone in snapshot.zones:
        for room in zone.rooms:
            yield ZONED, room
    for room in snapshot.unassigned_rooms:
        yield UNASSIGNED, room
    for room in snapshot.available_rooms:
        yield AVAILABLE, room
