"""Recursive directory sizing plus a background scheduler for it.

Sizes are never cached: every request re-walks the tree. Workers only post
``SizeResult`` messages; the owner of published state drains and applies
them on its own thread.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from queue import Empty, Queue

logger = logging.getLogger(__name__)


class SizeScope(str, Enum):
    APPLICATION = "application"
    SNAPSHOT = "snapshot"
    ALL_SNAPSHOTS = "all-snapshots"


@dataclass(frozen=True)
class SizeResult:
    """Completed size job: ``size`` is ``None`` when the root was unreadable."""

    scope: SizeScope
    key: str
    size: int | None


def compute_size(path: Path) -> int:
    """Sum file sizes under ``path``.

    Raises ``OSError`` only when ``path`` itself cannot be scanned; nested
    entries that cannot be listed or stat'ed are skipped. Symlinks are not
    followed.
    """
    if path.is_file():
        return path.stat().st_size

    total = 0
    stack: list[Path] = []
    with os.scandir(path) as entries:
        total += _scan_entries(entries, stack)
    while stack:
        directory = stack.pop()
        try:
            with os.scandir(directory) as entries:
                total += _scan_entries(entries, stack)
        except OSError:
            continue
    return total


def _scan_entries(entries: Iterable[os.DirEntry], stack: list[Path]) -> int:
    total = 0
    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                stack.append(Path(entry.path))
                continue
            total += entry.stat(follow_symlinks=False).st_size
        except OSError:
            continue
    return total


def format_size(size: int | None) -> str:
    """Render a byte count as KB/MB/GB (decimal units, one decimal place)."""
    if size is None:
        return "--"
    value = float(size)
    for unit in ("KB", "MB", "GB"):
        value /= 1000.0
        if value < 1000.0 or unit == "GB":
            return f"{value:.1f} {unit}"
    return f"{value:.1f} GB"


def compute_total_size(roots: Iterable[Path | None]) -> int:
    """Sum several trees; missing or unreadable roots count as zero."""
    total = 0
    for root in roots:
        if root is None:
            continue
        try:
            total += compute_size(root)
        except OSError:
            continue
    return total


class SizeScheduler:
    """Run size jobs on a small thread pool and queue their results."""

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="simkeeper-size")
        self._results: Queue[SizeResult] = Queue()
        self._lock = threading.Lock()
        self._pending = 0
        self._idle = threading.Event()
        self._idle.set()

    def _run(self, scope: SizeScope, key: str, roots: tuple[Path, ...]) -> None:
        try:
            # The aggregate counts missing roots as zero; single trees report None.
            if scope == SizeScope.ALL_SNAPSHOTS or len(roots) != 1:
                size: int | None = compute_total_size(roots)
            else:
                try:
                    size = compute_size(roots[0])
                except OSError as exc:
                    logger.warning("cannot size %s: %s", roots[0], exc)
                    size = None
            self._results.put(SizeResult(scope=scope, key=key, size=size))
        finally:
            with self._lock:
                self._pending -= 1
                if self._pending == 0:
                    self._idle.set()

    def schedule(self, scope: SizeScope, key: str, *roots: Path) -> Future:
        """Queue sizing of ``roots`` (summed) reported under ``(scope, key)``."""
        with self._lock:
            self._pending += 1
            self._idle.clear()
        return self._executor.submit(self._run, scope, key, tuple(roots))

    def drain_results(self) -> list[SizeResult]:
        """Drain all completed size results."""
        out: list[SizeResult] = []
        while True:
            try:
                out.append(self._results.get_nowait())
            except Empty:
                break
        return out

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every scheduled job has posted its result."""
        return self._idle.wait(timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


__all__ = [
    "SizeScope",
    "SizeResult",
    "compute_size",
    "compute_total_size",
    "format_size",
    "SizeScheduler",
]
