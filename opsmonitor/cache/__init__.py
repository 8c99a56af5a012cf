"""
Snapshot cache.

Exports:
    Snapshot: Immutable versioned view of the last collection
    SnapshotCache: Holder of the current Snapshot
"""

from opsmonitor.cache.snapshot import Snapshot, SnapshotCache

__all__ = [
    "Snapshot",
    "SnapshotCache",
]
