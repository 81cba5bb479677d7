"""Ingestion layer.

Turns untyped provider payloads into validated snapshot models.
"""

from raumtree.ingestion.snapshot import iter_rooms, parse_snapshot

__all__ = ["iter_rooms", "parse_snapshot"]
