"""Local persistence of the last good configuration document."""

from .snapshot_store import (
    FileSnapshotStore,
    InMemorySnapshotStore,
    Snapshot,
    SnapshotStore,
)

__all__ = [
    "FileSnapshotStore",
    "InMemorySnapshotStore",
    "Snapshot",
    "SnapshotStore",
]
