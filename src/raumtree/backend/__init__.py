"""Persistence backends for the mirrored object tree."""

from raumtree.backend.base import ObjectTreeBackend
from raumtree.backend.memory import InMemoryObjectTree
from raumtree.backend.rest import RestObjectTree

__all__ = ["InMemoryObjectTree", "ObjectTreeBackend", "RestObjectTree"]
