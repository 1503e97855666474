"""Snapshot lifecycle: take, restore, delete, delete-all, and rename.

Take and restore share one process-wide lock; a second call while either is
running is rejected with ``ErrorKind.BUSY`` instead of queueing. Every public
method returns an ``OperationResult``; filesystem exceptions are translated
at the method boundary.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from .. import paths
from ..errors import ErrorKind, OperationResult, SnapshotError
from ..model import Application, Snapshot
from ..runtime import config
from .listing import snapshot_from_path
from .manifest import trees_match
from .progress import OperationPhase, ProgressListener, ProgressReporter

logger = logging.getLogger(__name__)

RESTORE_ATTEMPTS = 2
SETTLE_DELAY_SECONDS = 0.5
RETRY_PAUSE_SECONDS = 0.25
IN_USE_HINT = "Some files may be open or in use. Quit the app in the simulator and try again."

CopyTree = Callable[[Path, Path], object]


def _copy_tree(source: Path, destination: Path) -> object:
    return shutil.copytree(source, destination, symlinks=True)


class SnapshotManager:
    """Owns write access to every application's ``Snapshots`` directory."""

    def __init__(
        self,
        on_progress: ProgressListener | None = None,
        *,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        retry_pause: float = RETRY_PAUSE_SECONDS,
        restore_attempts: int = RESTORE_ATTEMPTS,
        copy_tree: CopyTree = _copy_tree,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.on_progress = on_progress
        self.settle_delay = settle_delay
        self.retry_pause = retry_pause
        self.restore_attempts = max(1, restore_attempts)
        self._copy_tree = copy_tree
        self._sleep = sleep
        self._now = now
        self._operation_lock = threading.Lock()

    @property
    def is_busy(self) -> bool:
        return self._operation_lock.locked()

    def _busy_result(self) -> OperationResult:
        return OperationResult.failure(ErrorKind.BUSY, "Another snapshot operation is already in progress")

    # -- take ---------------------------------------------------------------

    def _next_snapshot_dir(self, snapshots_root: Path) -> Path:
        base = paths.snapshot_name_for(self._now() if self._now is not None else None)
        candidate = snapshots_root / base
        suffix = 2
        while candidate.exists():
            candidate = snapshots_root / f"{base}-{suffix}"
            suffix += 1
        return candidate

    def take_snapshot(self, app: Application) -> OperationResult:
        """Copy ``app``'s documents tree into a new validated snapshot."""
        if not self._operation_lock.acquire(blocking=False):
            return self._busy_result()
        try:
            reporter = ProgressReporter("take", self.on_progress)
            try:
                snapshot = self._take(app, reporter)
            except SnapshotError as exc:
                logger.error("snapshot of %s failed: %s", app.name, exc.message)
                reporter.emit(OperationPhase.FAILED, reporter.fraction, exc.message)
                return OperationResult.from_error(exc)
            reporter.emit(OperationPhase.SUCCESS, 1.0, "Snapshot created successfully!")
            logger.info("snapshot %s created for %s", snapshot.id, app.name)
            return OperationResult.success("Snapshot created successfully!", snapshot=snapshot)
        finally:
            self._operation_lock.release()

    def _take(self, app: Application, reporter: ProgressReporter) -> Snapshot:
        reporter.emit(OperationPhase.PREPARING, 0.0, "Preparing snapshot...")
        documents = app.documents_path
        snapshots_root = app.snapshots_path
        if documents is None or snapshots_root is None:
            raise SnapshotError(ErrorKind.PATHS_INVALID, f"{app.name} has no data container")
        if not documents.is_dir():
            raise SnapshotError(ErrorKind.DOCUMENTS_MISSING, "Documents directory does not exist")

        reporter.emit(OperationPhase.PREPARING, 0.2, "Creating directories...")
        try:
            snapshots_root.mkdir(parents=True, exist_ok=True)
            snapshot_dir = self._next_snapshot_dir(snapshots_root)
            snapshot_dir.mkdir()
        except OSError as exc:
            raise SnapshotError(ErrorKind.IO_ERROR, f"Error creating snapshot directory: {exc}") from exc

        reporter.emit(OperationPhase.EXECUTING, 0.4, "Copying documents...")
        try:
            self._copy_tree(documents, paths.snapshot_documents_path(snapshot_dir))
        except OSError as exc:
            shutil.rmtree(snapshot_dir, ignore_errors=True)
            raise SnapshotError(ErrorKind.COPY_FAILED, f"Error copying documents: {exc}") from exc

        reporter.emit(OperationPhase.VALIDATING, 0.7, "Validating snapshot...")
        if not trees_match(documents, paths.snapshot_documents_path(snapshot_dir)):
            reporter.emit(OperationPhase.ROLLING_BACK, 0.8, "Removing incomplete snapshot...")
            shutil.rmtree(snapshot_dir, ignore_errors=True)
            raise SnapshotError(ErrorKind.VALIDATION_FAILED, f"Snapshot validation failed. {IN_USE_HINT}")

        reporter.emit(OperationPhase.VALIDATING, 0.9, "Finalizing snapshot...")
        try:
            return snapshot_from_path(snapshot_dir)
        except OSError as exc:
            raise SnapshotError(ErrorKind.IO_ERROR, f"Error reading new snapshot: {exc}") from exc

    # -- restore ------------------------------------------------------------

    def restore_snapshot(self, snapshot: Snapshot, app: Application) -> OperationResult:
        """Replace ``app``'s documents tree with the snapshot's copy.

        Each attempt copies into a staging sibling before swapping it in, waits
        ``settle_delay``, then validates. Validation failures are retried up to
        ``restore_attempts`` times; the tree is left as the last attempt wrote it.
        """
        if not self._operation_lock.acquire(blocking=False):
            return self._busy_result()
        try:
            reporter = ProgressReporter("restore", self.on_progress)
            result = self._restore(snapshot, app, reporter)
            if result.ok:
                reporter.emit(OperationPhase.SUCCESS, 1.0, result.message)
                logger.info("restored %s into %s", snapshot.id, app.name)
            else:
                reporter.emit(OperationPhase.FAILED, reporter.fraction, result.message)
                logger.error("restore of %s into %s failed: %s", snapshot.id, app.name, result.message)
            return result
        finally:
            self._operation_lock.release()

    def _restore(self, snapshot: Snapshot, app: Application, reporter: ProgressReporter) -> OperationResult:
        reporter.emit(OperationPhase.PREPARING, 0.0, "Preparing to restore snapshot...")
        source = paths.snapshot_documents_path(snapshot.path)
        documents = app.documents_path
        if documents is None:
            return OperationResult.failure(ErrorKind.PATHS_INVALID, f"{app.name} has no data container")
        if not source.is_dir():
            return OperationResult.failure(ErrorKind.NOT_FOUND, f"Snapshot {snapshot.title} has no Documents folder")

        span = 0.9 / self.restore_attempts
        last_error = ""
        for attempt in range(1, self.restore_attempts + 1):
            base = 0.05 + span * (attempt - 1)
            reporter.emit(
                OperationPhase.EXECUTING,
                base,
                f"Restoring snapshot documents (attempt {attempt} of {self.restore_attempts})...",
            )
            try:
                self._replace_tree(source, documents)
            except OSError as exc:
                last_error = str(exc)
                logger.warning("restore attempt %d for %s could not copy: %s", attempt, app.name, exc)
            self._sleep(self.settle_delay)

            reporter.emit(OperationPhase.VALIDATING, base + span * 0.8, "Validating restored documents...")
            if trees_match(source, documents):
                return OperationResult.success("Snapshot restored successfully!", attempts=attempt)
            logger.warning("restore attempt %d for %s failed validation", attempt, app.name)
            if attempt < self.restore_attempts:
                self._sleep(self.retry_pause)

        message = f"Restore failed after {self.restore_attempts} attempts. {IN_USE_HINT}"
        if last_error:
            message = f"{message} Last error: {last_error}"
        return OperationResult.failure(ErrorKind.RESTORE_FAILED, message, attempts=self.restore_attempts)

    def _replace_tree(self, source: Path, documents: Path) -> None:
        """Copy ``source`` next to ``documents`` and swap it into place.

        The live tree is only removed once the staging copy exists.
        """
        staging = documents.parent / f".{documents.name}.restore-{os.getpid()}"
        if staging.exists():
            shutil.rmtree(staging)
        try:
            self._copy_tree(source, staging)
        except OSError:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        if documents.exists():
            shutil.rmtree(documents)
        staging.rename(documents)

    # -- delete / rename ----------------------------------------------------

    def delete_snapshot(
        self,
        snapshot: Snapshot,
        refresh: Callable[[], Iterable[Snapshot]] | None = None,
    ) -> OperationResult:
        """Delete one snapshot, re-listing once if its path has gone stale."""
        target: Snapshot | None = snapshot
        if not snapshot.path.exists():
            logger.info("snapshot %s missing at %s; refreshing", snapshot.id, snapshot.path)
            target = None
            if refresh is not None:
                try:
                    target = next((item for item in refresh() if item.id == snapshot.id), None)
                except OSError as exc:
                    logger.warning("could not refresh snapshots: %s", exc)
            if target is None or not target.path.exists():
                return OperationResult.failure(ErrorKind.NOT_FOUND, f"Snapshot {snapshot.title} no longer exists")

        try:
            shutil.rmtree(target.path)
        except OSError as exc:
            logger.error("error deleting snapshot %s: %s", target.id, exc)
            return OperationResult.failure(ErrorKind.IO_ERROR, f"Error deleting snapshot: {exc}")
        config.forget_snapshot_names([target.id])
        return OperationResult.success(f"Deleted {target.title}", count=1)

    def delete_all_snapshots(
        self,
        apps: Iterable[Application],
        ensure_valid: Callable[[Application], Application | None],
    ) -> OperationResult:
        """Delete every snapshot of every application that still validates.

        Applications with no data container, or whose current container has
        no snapshots directory yet, are passed over without consulting
        ``ensure_valid``. Applications the guard cannot validate are logged and
        skipped.
        """
        deleted: list[str] = []
        failures: list[str] = []
        for app in apps:
            if app.documents_path is None or app.snapshots_path is None:
                continue
            if app.documents_path.is_dir() and not app.snapshots_path.is_dir():
                logger.debug("skipping %s: no snapshots directory", app.name)
                continue
            valid = ensure_valid(app)
            if valid is None or valid.snapshots_path is None:
                logger.warning("skipping %s: paths could not be validated", app.name)
                continue
            try:
                children = sorted(valid.snapshots_path.iterdir())
            except OSError as exc:
                logger.error("error listing snapshots for %s: %s", valid.name, exc)
                failures.append(valid.name)
                continue
            for child in children:
                if not child.is_dir():
                    continue
                try:
                    shutil.rmtree(child)
                except OSError as exc:
                    logger.error("error deleting snapshot %s: %s", child, exc)
                    failures.append(child.name)
                    continue
                deleted.append(child.name)

        config.forget_snapshot_names(deleted)
        if failures:
            return OperationResult.failure(
                ErrorKind.IO_ERROR,
                f"Deleted {len(deleted)} snapshots; could not delete {', '.join(failures)}",
            )
        return OperationResult.success(f"Deleted {len(deleted)} snapshots", count=len(deleted))

    def rename_snapshot(self, snapshot: Snapshot, display_name: str) -> Snapshot:
        """Store a display-name override; the directory name never changes."""
        config.save_snapshot_name(snapshot.id, display_name)
        return replace(snapshot, display_name=display_name.strip() or None)


__all__ = [
    "RESTORE_ATTEMPTS",
    "SETTLE_DELAY_SECONDS",
    "RETRY_PAUSE_SECONDS",
    "IN_USE_HINT",
    "SnapshotManager",
]
