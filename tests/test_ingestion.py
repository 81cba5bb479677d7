from __future__ import annotations

import pytest

from raumtree.exceptions import MalformedSnapshotError
from raumtree.ingestion.snapshot import iter_rooms, parse_snapshot
from raumtree.models.snapshot import PowerState


def _payload() -> dict:
    return {
        "zones": [
            {
                "udn": "uuid:zone-1",
                "rooms": [
                    {
                        "name": "Schlafzimmer",
                        "udn": "uuid:8b4e-room",
                        "powerState": "ACTIVE",
                        "renderers": [
                            {
                                "udn": "uuid:renderer-1",
                                "name": "Speaker M",
                                "mediaItem": {"title": "Radio"},
                                "rendererState": {"Volume": 30},
                            }
                        ],
                    }
                ],
            }
        ],
        "unassignedRooms": [{"name": "Bad", "udn": "uuid:bad", "powerState": "AUTOMATIC_STANDBY"}],
        "availableRooms": [
            {"name": "Schlafzimmer", "udn": "uuid:8b4e-room"},
            {"name": "Bad", "udn": "uuid:bad"},
        ],
    }


def test_parse_snapshot_maps_camel_case_fields() -> None:
    snapshot = parse_snapshot(_payload())

    room = snapshot.zones[0].rooms[0]
    assert snapshot.zones[0].udn == "uuid:zone-1"
    assert room.name == "Schlafzimmer"
    assert room.power_state == PowerState.ACTIVE
    assert room.renderers[0].media_item == {"title": "Radio"}
    assert room.renderers[0].renderer_state == {"Volume": 30}
    assert snapshot.unassigned_rooms[0].power_state == "AUTOMATIC_STANDBY"
    assert snapshot.raw["zones"][0]["udn"] == "uuid:zone-1"
    assert snapshot.skipped == []


def test_iter_rooms_yields_zoned_then_unassigned_then_available() -> None:
    snapshot = parse_snapshot(_payload())

    order = [(list_name, room.name) for list_name, room in iter_rooms(snapshot)]

    assert order == [
        ("zones", "Schlafzimmer"),
        ("unassignedRooms", "Bad"),
        ("availableRooms", "Schlafzimmer"),
        ("availableRooms", "Bad"),
    ]


def test_malformed_rooms_are_skipped_not_fatal() -> None:
    payload = _payload()
    payload["unassignedRooms"] = [
        {"udn": "uuid:no-name"},
        {"name": "   "},
        "garbage",
        {"name": "Flur"},
    ]

    snapshot = parse_snapshot(payload)

    assert [room.name for room in snapshot.unassigned_rooms] == ["Flur"]
    assert [(s.list_name, s.index) for s in snapshot.skipped] == [
        ("unassignedRooms", 0),
        ("unassignedRooms", 1),
        ("unassignedRooms", 2),
    ]
    assert snapshot.skipped[2].reason == "not an object"


def test_bad_room_inside_zone_keeps_other_rooms() -> None:
    payload = {"zones": [{"udn": "uuid:z", "rooms": [{"powerState": "ACTIVE"}, {"name": "Küche"}]}]}

    snapshot = parse_snapshot(payload)

    assert [room.name for room in snapshot.zones[0].rooms] == ["Küche"]
    assert snapshot.skipped[0].list_name == "zones[0].rooms"


def test_missing_and_null_lists_are_empty() -> None:
    snapshot = parse_snapshot({"zones": None})

    assert snapshot.zones == []
    assert snapshot.unassigned_rooms == []
    assert snapshot.available_rooms == []
    assert list(iter_rooms(snapshot)) == []


def test_non_list_section_is_recorded() -> None:
    snapshot = parse_snapshot({"availableRooms": {"name": "Bad"}})

    assert snapshot.available_rooms == []
    assert snapshot.skipped[0].list_name == "availableRooms"


def test_null_power_state_and_numeric_names() -> None:
    snapshot = parse_snapshot({"unassignedRooms": [{"name": 5, "powerState": None}]})

    room = snapshot.unassigned_rooms[0]
    assert room.name == "5"
    assert room.power_state is None
    assert room.udn is None


def test_non_object_payload_raises() -> None:
    with pytest.raises(MalformedSnapshotError):
        parse_snapshot(["zones"])


def test_bad_renderer_is_skipped_and_room_kept() -> None:
    payload = {
        "unassignedRooms": [
            {
                "name": "Bad",
                "udn": "uuid:bad",
                "renderers": [{"udn": 17, "name": 5}, {"udn": "uuid:r2", "rendererState": "broken"}, "garbage"],
            }
        ]
    }

    snapshot = parse_snapshot(payload)

    room = snapshot.unassigned_rooms[0]
    assert [(r.udn, r.name) for r in room.renderers] == [("17", "5")]
    assert room.raw["renderers"][1]["rendererState"] == "broken"
    assert [(s.list_name, s.index) for s in snapshot.skipped] == [
        ("unassignedRooms[0].renderers", 1),
        ("unassignedRooms[0].renderers", 2),
    ]


def test_skipped_room_keeps_readable_identifiers() -> None:
    snapshot = parse_snapshot({"availableRooms": [{"name": None, "udn": " uuid:bad "}, {"name": 7, "powerState": {}}]})

    assert snapshot.available_rooms == []
    assert [(s.udn, s.name) for s in snapshot.skipped] == [("uuid:bad", None), (None, "7")]
