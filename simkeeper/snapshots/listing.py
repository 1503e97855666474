"""Snapshot directory listing and display-name overrides."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from ..model import Application, Snapshot
from ..runtime import config

logger = logging.getLogger(__name__)


def creation_time(path: Path) -> datetime:
    """Filesystem creation time, falling back to inode change time."""
    stat = path.stat()
    timestamp = getattr(stat, "st_birthtime", None) or stat.st_ctime
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def snapshot_from_path(path: Path, display_names: dict[str, str] | None = None) -> Snapshot:
    if display_names is None:
        display_names = config.load_snapshot_names()
    return Snapshot(
        id=path.name,
        name=path.name,
        date=creation_time(path),
        path=path,
        display_name=display_names.get(path.name),
    )


def list_snapshots(app: Application) -> list[Snapshot]:
    """List snapshot directories of ``app``, newest first.

    A missing snapshots directory means no snapshots. Entries that vanish
    while listing are skipped.
    """
    root = app.snapshots_path
    if root is None or not root.is_dir():
        return []

    display_names = config.load_snapshot_names()
    snapshots: list[Snapshot] = []
    try:
        with os.scandir(root) as entries:
            for entry in entries:
                try:
                    if not entry.is_dir(follow_symlinks=False):
                        continue
                    snapshots.append(snapshot_from_path(Path(entry.path), display_names))
                except OSError:
                    continue
    except OSError as exc:
        logger.error("error listing snapshots for %s: %s", app.name, exc)
        return []

    snapshots.sort(key=lambda snapshot: (snapshot.date, snapshot.id), reverse=True)
    return snapshots


__all__ = [
    "creation_time",
    "snapshot_from_path",
    "list_snapshots",
]
