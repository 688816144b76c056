"""Persistence layer adapters.

- ``base``     -- ``WikiStore``: the protocol the sync engine consumes.
- ``memory``   -- ``MemoryStore``: dict-backed implementation.
- ``snapshot`` -- ``SnapshotStore``: ``MemoryStore`` persisted as JSON.
"""

from .base import WikiStore
from .memory import MemoryStore
from .snapshot import SnapshotStore

__all__ = ["MemoryStore", "SnapshotStore", "WikiStore"]
