"""Tree manifests used to check that a copy matches its source."""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

from ..model import FileRecord


def build_manifest(root: Path) -> list[FileRecord]:
    """Return sorted ``(relative path, size)`` records for files under ``root``.

    Directories contribute no records. Relative paths use ``/`` separators.
    Raises ``OSError`` when ``root`` or any entry cannot be read, since an
    incomplete manifest must never compare equal.
    """
    records: list[FileRecord] = []
    stack: list[Path] = [root]
    while stack:
        directory = stack.pop()
        with os.scandir(directory) as entries:
            for entry in entries:
                entry_path = Path(entry.path)
                if entry.is_dir(follow_symlinks=False):
                    stack.append(entry_path)
                    continue
                records.append(
                    FileRecord(
                        relative_path=entry_path.relative_to(root).as_posix(),
                        size=entry.stat(follow_symlinks=False).st_size,
                    )
                )
    records.sort()
    return records


def manifests_match(left: Sequence[FileRecord], right: Sequence[FileRecord]) -> bool:
    """Compare two sorted manifests rank by rank."""
    if len(left) != len(right):
        return False
    for left_record, right_record in zip(left, right):
        if left_record.relative_path != right_record.relative_path:
            return False
        if left_record.size != right_record.size:
            return False
    return True


def trees_match(source: Path, copy: Path) -> bool:
    """Return whether ``copy`` holds the same files and sizes as ``source``.

    An unreadable tree on either side counts as a mismatch.
    """
    try:
        return manifests_match(build_manifest(source), build_manifest(copy))
    except OSError:
        return False


__all__ = [
    "build_manifest",
    "manifests_match",
    "trees_match",
]
