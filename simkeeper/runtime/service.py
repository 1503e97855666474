"""Collaborator-facing facade over discovery, sizing, and snapshots.

``SimulatorService`` is what a UI (or the CLI) talks to. Every operation
returns its result directly and also publishes state changes through the
``StateStore``; background work only ever posts messages to it.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from ..errors import ErrorKind, OperationResult
from ..guard import PathStalenessGuard
from ..inventory import SYSTEM_APPLICATION_DIRS, list_applications, list_devices
from ..model import Application, Device, Snapshot
from ..sizes import SizeScheduler, SizeScope
from ..snapshots import SnapshotManager, list_snapshots
from . import config
from .state import (
    ALL_SNAPSHOTS_KEY,
    ApplicationSelected,
    ApplicationsLoaded,
    DevicesLoaded,
    EngineState,
    SizeRequested,
    SnapshotRenamed,
    SnapshotsLoaded,
    StateStore,
    StateUpdate,
    snapshot_size_key,
)

logger = logging.getLogger(__name__)


def _open_command(path: Path) -> list[str]:
    if sys.platform == "darwin":
        return ["open", str(path)]
    return ["xdg-open", str(path)]


class SimulatorService:
    """Discovery and snapshot operations plus their published state."""

    def __init__(
        self,
        root: Path | None = None,
        *,
        manager: SnapshotManager | None = None,
        sizes: SizeScheduler | None = None,
        store: StateStore | None = None,
        system_icon_dirs: Iterable[Path] = SYSTEM_APPLICATION_DIRS,
        background_sizes: bool = True,
    ) -> None:
        self.root = config.resolve_device_root(root)
        self.store = store or StateStore()
        self.manager = manager or SnapshotManager()
        if self.manager.on_progress is None:
            self.manager.on_progress = self._publish
        self.sizes = sizes or SizeScheduler()
        self.system_icon_dirs = tuple(system_icon_dirs)
        self.background_sizes = background_sizes
        self.guard = PathStalenessGuard(self._applications_for_device_id)
        self._operations = ThreadPoolExecutor(max_workers=1, thread_name_prefix="simkeeper-operation")

    @property
    def state(self) -> EngineState:
        return self.store.state

    def _publish(self, update: StateUpdate) -> None:
        self.store.post(update)
        if self.store.is_owner_thread():
            self.store.pump()

    def pump(self) -> int:
        """Apply completed background results to published state."""
        for result in self.sizes.drain_results():
            self.store.post(result)
        return self.store.pump()

    def close(self) -> None:
        self._operations.shutdown(wait=True)
        self.sizes.shutdown()

    # -- discovery ------------------------------------------------------------

    def list_devices(self) -> list[Device]:
        devices = list_devices(self.root)
        self._publish(DevicesLoaded(devices=tuple(devices)))
        return devices

    def toggle_pin(self, device: Device) -> list[Device]:
        """Flip ``device``'s pinned flag, persist it, and return the re-sorted list."""
        pinned = config.load_pinned_devices()
        if device.id in pinned:
            pinned.discard(device.id)
        else:
            pinned.add(device.id)
        config.save_pinned_devices(pinned)
        return self.list_devices()

    def _device_by_id(self, device_id: str) -> Device | None:
        for device in self.state.devices:
            if device.id == device_id:
                return device
        for device in list_devices(self.root, pinned=set()):
            if device.id == device_id:
                return device
        return None

    def _applications_for_device_id(self, device_id: str) -> list[Application]:
        device = self._device_by_id(device_id)
        if device is None:
            return []
        return list_applications(device, self.system_icon_dirs)

    def list_applications(self, device: Device) -> list[Application]:
        """List ``device``'s apps and start sizing their documents in the background."""
        apps = list_applications(device, self.system_icon_dirs)
        self._publish(ApplicationsLoaded(device=device, applications=tuple(apps)))
        for app in apps:
            self._schedule_documents_size(app)
        return apps

    def select_application(self, app: Application) -> list[Snapshot]:
        """Make ``app`` current: re-size its documents and load its snapshots."""
        self._publish(ApplicationSelected(application=app))
        self._schedule_documents_size(app)
        return self.refresh_snapshots(app)

    # -- sizes ----------------------------------------------------------------

    def _schedule_documents_size(self, app: Application) -> None:
        if not self.background_sizes or app.documents_path is None:
            return
        self._publish(SizeRequested(scope=SizeScope.APPLICATION, key=app.id))
        self.sizes.schedule(SizeScope.APPLICATION, app.id, app.documents_path)

    def refresh_total_snapshots_size(self) -> None:
        """Size every snapshots directory of the current application list."""
        if not self.background_sizes:
            return
        roots = [app.snapshots_path for app in self.state.applications if app.snapshots_path is not None]
        self._publish(SizeRequested(scope=SizeScope.ALL_SNAPSHOTS, key=ALL_SNAPSHOTS_KEY))
        self.sizes.schedule(SizeScope.ALL_SNAPSHOTS, ALL_SNAPSHOTS_KEY, *roots)

    # -- snapshots ------------------------------------------------------------

    def list_snapshots(self, app: Application) -> list[Snapshot]:
        return list_snapshots(app)

    def refresh_snapshots(self, app: Application) -> list[Snapshot]:
        """Re-list ``app``'s snapshots, replacing the published list wholesale."""
        snapshots = list_snapshots(app)
        self._publish(SnapshotsLoaded(app_id=app.id, snapshots=tuple(snapshots)))
        if self.background_sizes:
            for snapshot in snapshots:
                key = snapshot_size_key(snapshot)
                self._publish(SizeRequested(scope=SizeScope.SNAPSHOT, key=key))
                self.sizes.schedule(SizeScope.SNAPSHOT, key, snapshot.path)
            if snapshots:
                self.refresh_total_snapshots_size()
        return snapshots

    def _owning_application(self, snapshot: Snapshot, app: Application | None) -> Application | None:
        if app is not None:
            return app
        selected = self.state.selected_application
        if selected is not None and selected.snapshots_path is not None:
            if snapshot.path.parent == selected.snapshots_path:
                return selected
        for candidate in self.state.applications:
            if candidate.snapshots_path is not None and snapshot.path.parent == candidate.snapshots_path:
                return candidate
        return selected

    def take_snapshot(self, app: Application) -> OperationResult:
        valid = self.guard.ensure_documents(app)
        if valid is None:
            return OperationResult.failure(ErrorKind.PATHS_INVALID, f"Could not locate documents for {app.name}")
        result = self.manager.take_snapshot(valid)
        if result.ok:
            self.refresh_snapshots(valid)
        return result

    def restore_snapshot(self, snapshot: Snapshot, app: Application) -> OperationResult:
        valid = self.guard.ensure_valid(app)
        if valid is None:
            return OperationResult.failure(ErrorKind.PATHS_INVALID, f"Could not locate documents for {app.name}")
        result = self.manager.restore_snapshot(snapshot, valid)
        if result.ok:
            self.refresh_snapshots(valid)
            self._schedule_documents_size(valid)
        return result

    def submit(self, operation: str, *args: object) -> Future:
        """Run ``take_snapshot``/``restore_snapshot`` off the calling thread.

        Progress and list refreshes reach published state through ``pump``.
        """
        if operation not in {"take_snapshot", "restore_snapshot"}:
            raise ValueError(f"unsupported background operation: {operation}")
        return self._operations.submit(getattr(self, operation), *args)

    def delete_snapshot(self, snapshot: Snapshot, app: Application | None = None) -> OperationResult:
        owner = self._owning_application(snapshot, app)

        def refresh() -> list[Snapshot]:
            nonlocal owner
            if owner is None:
                return []
            valid = self.guard.ensure_valid(owner)
            if valid is None:
                return []
            owner = valid
            return self.refresh_snapshots(valid)

        result = self.manager.delete_snapshot(snapshot, refresh=refresh)
        if result.ok and owner is not None:
            self.refresh_snapshots(owner)
        return result

    def delete_all_snapshots(self) -> OperationResult:
        result = self.manager.delete_all_snapshots(list(self.state.applications), self.guard.ensure_valid)
        selected = self.state.selected_application
        if selected is not None:
            valid = self.guard.ensure_documents(selected)
            if valid is not None:
                self.refresh_snapshots(valid)
        self.refresh_total_snapshots_size()
        return result

    def rename_snapshot(self, snapshot: Snapshot, display_name: str) -> Snapshot:
        renamed = self.manager.rename_snapshot(snapshot, display_name)
        self._publish(SnapshotRenamed(snapshot=renamed))
        return renamed

    def open_documents_folder(self, app: Application) -> OperationResult:
        valid = self.guard.ensure_documents(app)
        if valid is None or valid.documents_path is None:
            return OperationResult.failure(ErrorKind.PATHS_INVALID, f"Could not locate documents for {app.name}")
        command = _open_command(valid.documents_path)
        try:
            subprocess.run(command, check=True, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
        except (OSError, subprocess.CalledProcessError) as exc:
            logger.error("could not open %s: %s", valid.documents_path, exc)
            return OperationResult.failure(ErrorKind.IO_ERROR, f"Could not open documents folder: {exc}")
        return OperationResult.success(str(valid.documents_path))


__all__ = [
    "SimulatorService",
]
