from __future__ import annotations

import asyncio
import json

import pytest

from raumtree._mqtt import COMBINED_STATE_CHANGED, TopologyEvent, TopologyMqttSource, decode_event_payload
from raumtree.config import MqttSettings


def test_decode_event_envelope() -> None:
    payload = json.dumps({"event": "roomAddedToZone", "data": {"zoneUDN": "z", "roomUDN": "r"}}).encode()

    event = decode_event_payload(payload, "raumfeld/events")

    assert event == TopologyEvent(event="roomAddedToZone", payload={"zoneUDN": "z", "roomUDN": "r"}, topic="raumfeld/events")


def test_bare_snapshot_is_combined_state_event() -> None:
    snapshot = {"zones": [], "availableRooms": [{"name": "Bad"}]}

    event = decode_event_payload(json.dumps(snapshot).encode())

    assert event is not None
    assert event.event == COMBINED_STATE_CHANGED
    assert event.payload == snapshot


@pytest.mark.parametrize(
    "payload",
    [b"not json", b"\xff\xfe", b"[1, 2]", b'{"unrelated": true}', b'{"event": ""}'],
)
def test_unrecognised_payloads_are_dropped(payload: bytes) -> None:
    assert decode_event_payload(payload) is None


@pytest.mark.asyncio
async def test_messages_are_delivered_onto_the_loop() -> None:
    received: list[TopologyEvent] = []
    source = TopologyMqttSource(
        loop=asyncio.get_running_loop(),
        settings=MqttSettings(),
        on_event=received.append,
    )

    source._handle_message("raumfeld/events", b'{"event": "zoneRemoved", "data": "uuid:z"}')  # noqa: SLF001
    source._handle_message("raumfeld/events", b"garbage")  # noqa: SLF001
    await asyncio.sleep(0)

    assert [event.event for event in received] == ["zoneRemoved"]
    assert not source.is_running
