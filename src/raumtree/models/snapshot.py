"""Topology snapshot models.

A snapshot is one complete "combined zone state" report from the
topology provider: zones with their rooms, rooms not assigned to any
zone, and the rooms currently available regardless of assignment.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from raumtree.models._base import TopologyBaseModel


def _text_or_value(value: Any) -> Any:
    # Provider ids and names occasionally arrive as numbers.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


class PowerState(StrEnum):
    """Known room power states.

    The provider's set is open; unknown values are kept verbatim on
    :attr:`Room.power_state`.
    """

    ACTIVE = "ACTIVE"
    AUTOMATIC_STANDBY = "AUTOMATIC_STANDBY"
    MANUAL_STANDBY = "MANUAL_STANDBY"


class Renderer(TopologyBaseModel):
    """A playback endpoint within a room."""

    udn: str | None = None
    name: str | None = None
    media_item: dict[str, Any] | None = None
    """Currently playing track/station metadata (not mirrored)."""
    renderer_state: dict[str, Any] | None = None
    """Live transport/volume telemetry (not mirrored)."""

    @field_validator("udn", "name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _text_or_value(value)


class Room(TopologyBaseModel):
    """A physical location hosting one or more renderers."""

    name: str
    """Human-facing identifier. Not guaranteed unique across the topology."""
    udn: str | None = None
    """Globally unique device identifier."""
    power_state: str | None = None
    renderers: list[Renderer] = Field(default_factory=list)

    @field_validator("name", "udn", "power_state", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _text_or_value(value)

    @field_validator("renderers", mode="before")
    @classmethod
    def _drop_non_objects(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [item for item in value if isinstance(item, (dict, Renderer))]
        return value

    @property
    def identity(self) -> str:
        """Stable identity used to recognise the same room across lists."""
        return f"udn:{self.udn}" if self.udn else f"name:{self.name}"


class Zone(TopologyBaseModel):
    """A group of rooms playing audio together."""

    udn: str | None = None
    name: str | None = None
    rooms: list[Room] = Field(default_factory=list)


class SkippedEntity(BaseModel):
    """A list element dropped during ingestion."""

    model_config = ConfigDict(frozen=True)

    list_name: str
    index: int
    reason: str
    udn: str | None = None
    name: str | None = None
    """Identifiers still readable from the dropped room, if any."""


class Snapshot(TopologyBaseModel):
    """One full topology report; immutable for the duration of a pass."""

    zones: list[Zone] = Field(default_factory=list)
    unassigned_rooms: list[Room] = Field(default_factory=list)
    available_rooms: list[Room] = Field(default_factory=list)
    skipped: list[SkippedEntity] = Field(default_factory=list)
    """Entities dropped as malformed during ingestion."""
