"""Hierarchical path construction.

Paths are ``.``-joined segments. Segments derived from display names are
percent-encoded so that a name can never introduce a separator, and so
that two distinct names can never map to the same segment.
"""

from __future__ import annotations

from enum import StrEnum

from raumtree.models.snapshot import Room

SEPARATOR = "."

# Characters an object id may not contain, plus the separator and the
# escape character itself.
_RESERVED = frozenset("[]*,;'\"`<>\\?%.")


class PathKey(StrEnum):
    NAME = "name"
    UDN = "udn"


def _escape(char: str) -> str:
    return "".join(f"%{byte:02X}" for byte in char.encode("utf-8"))


def sanitize_segment(text: str, *, ascii_only: bool = False) -> str:
    """Map *text* to a path-safe segment.

    Reserved characters, control characters and whitespace other than a
    plain space are percent-encoded (as UTF-8 bytes). With *ascii_only*
    every non-ASCII character is encoded too. The mapping is injective
    and never coerces the text to a number.
    """
    parts: list[str] = []
    for char in text:
        code = ord(char)
        if (
            char in _RESERVED
            or code < 0x20
            or code == 0x7F
            or (char.isspace() and char != " ")
            or (ascii_only and code > 0x7F)
        ):
            parts.append(_escape(char))
        else:
            parts.append(char)
    return "".join(parts)


def join_path(*segments: str) -> str:
    return SEPARATOR.join(segment for segment in segments if segment)


def parent_path(path: str) -> str:
    return path.rpartition(SEPARATOR)[0]


def is_direct_child(root: str, path: str) -> bool:
    prefix = root + SEPARATOR
    return path.startswith(prefix) and SEPARATOR not in path[len(prefix) :]


def is_within(root: str, path: str) -> bool:
    """Whether *path* is *root* itself or anywhere below it."""
    return path == root or path.startswith(root + SEPARATOR)


def room_key(room: Room, key: PathKey = PathKey.NAME) -> str:
    """The identifier a room's path segment is derived from."""
    if key == PathKey.UDN and room.udn:
        return room.udn
    return room.name


def build_room_path(
    prefix: str,
    room: Room,
    *,
    key: PathKey = PathKey.NAME,
    ascii_only: bool = False,
) -> str:
    """Return ``prefix + "." + sanitize(key)`` for *room*."""
    return join_path(prefix, sanitize_segment(room_key(room, key), ascii_only=ascii_only))


def build_identifier_path(
    prefix: str,
    *,
    name: str | None,
    udn: str | None,
    key: PathKey = PathKey.NAME,
    ascii_only: bool = False,
) -> str | None:
    """Like :func:`build_room_path` for bare identifiers; ``None`` if none applies."""
    identifier = udn if key == PathKey.UDN and udn else name
    if not identifier:
        return None
    return join_path(prefix, sanitize_segment(identifier, ascii_only=ascii_only))
