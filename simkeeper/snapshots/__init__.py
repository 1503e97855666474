"""Snapshot lifecycle engine.

This package contains:
- tree manifests and the copy-validation comparison
- snapshot directory listing with display-name overrides
- progress phases/events for long-running operations
- ``SnapshotManager`` for take/restore/delete/rename
"""

from __future__ import annotations

from .listing import creation_time, list_snapshots, snapshot_from_path
from .manager import IN_USE_HINT, RESTORE_ATTEMPTS, SnapshotManager
from .manifest import build_manifest, manifests_match, trees_match
from .progress import OperationPhase, ProgressEvent, ProgressListener, ProgressReporter

__all__ = [
    "creation_time",
    "list_snapshots",
    "snapshot_from_path",
    "IN_USE_HINT",
    "RESTORE_ATTEMPTS",
    "SnapshotManager",
    "build_manifest",
    "manifests_match",
    "trees_match",
    "OperationPhase",
    "ProgressEvent",
    "ProgressListener",
    "ProgressReporter",
]
