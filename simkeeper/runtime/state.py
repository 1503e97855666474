"""Single-owner published state for the snapshot engine.

Workers never assign fields here. They ``post`` update messages, and the
owning thread applies them in ``pump``. Size results for applications or
snapshots that are no longer listed are dropped.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from queue import Empty, Queue

from ..model import Application, Device, Snapshot
from ..sizes import SizeResult, SizeScope
from ..snapshots.progress import OperationPhase, ProgressEvent

ALL_SNAPSHOTS_KEY = "all"
SUCCESS_RESET_SECONDS = 1.0
FAILURE_RESET_SECONDS = 3.0


def snapshot_size_key(snapshot: Snapshot) -> str:
    """Size key for a snapshot; its full path, since ids repeat across apps."""
    return str(snapshot.path)


@dataclass(frozen=True)
class DevicesLoaded:
    devices: tuple[Device, ...]


@dataclass(frozen=True)
class ApplicationsLoaded:
    device: Device
    applications: tuple[Application, ...]


@dataclass(frozen=True)
class ApplicationSelected:
    application: Application | None


@dataclass(frozen=True)
class SnapshotsLoaded:
    app_id: str
    snapshots: tuple[Snapshot, ...]


@dataclass(frozen=True)
class SnapshotRenamed:
    snapshot: Snapshot


@dataclass(frozen=True)
class SizeRequested:
    scope: SizeScope
    key: str


@dataclass(frozen=True)
class ProgressReset:
    token: int


StateUpdate = (
    DevicesLoaded
    | ApplicationsLoaded
    | ApplicationSelected
    | SnapshotsLoaded
    | SnapshotRenamed
    | SizeRequested
    | SizeResult
    | ProgressEvent
    | ProgressReset
)


@dataclass
class EngineState:
    devices: list[Device] = field(default_factory=list)
    selected_device: Device | None = None
    applications: list[Application] = field(default_factory=list)
    selected_application: Application | None = None
    snapshots: list[Snapshot] = field(default_factory=list)
    snapshots_app_id: str | None = None
    total_snapshots_size: int | None = None
    is_loading_total_snapshots_size: bool = False
    operation_in_progress: bool = False
    operation_phase: OperationPhase = OperationPhase.IDLE
    operation_progress: float = 0.0
    operation_message: str = ""
    progress_token: int = 0


class StateStore:
    """Owns an ``EngineState`` and serializes every mutation through a queue."""

    def __init__(
        self,
        state: EngineState | None = None,
        *,
        success_reset_seconds: float | None = SUCCESS_RESET_SECONDS,
        failure_reset_seconds: float | None = FAILURE_RESET_SECONDS,
    ) -> None:
        self.state = state or EngineState()
        self.success_reset_seconds = success_reset_seconds
        self.failure_reset_seconds = failure_reset_seconds
        self._updates: Queue[StateUpdate] = Queue()
        self._owner = threading.get_ident()
        self._listeners: list[Callable[[EngineState], None]] = []

    def is_owner_thread(self) -> bool:
        return threading.get_ident() == self._owner

    def subscribe(self, listener: Callable[[EngineState], None]) -> None:
        """Call ``listener`` on the owner thread after each pump that changed state."""
        self._listeners.append(listener)

    def post(self, update: StateUpdate) -> None:
        """Queue an update; safe from any thread."""
        self._updates.put(update)

    def pump(self) -> int:
        """Apply queued updates on the owner thread and return how many were applied."""
        if not self.is_owner_thread():
            raise RuntimeError("state updates must be applied on the owning thread")
        applied = 0
        while True:
            try:
                update = self._updates.get_nowait()
            except Empty:
                break
            self._apply(update)
            applied += 1
        if applied:
            for listener in self._listeners:
                listener(self.state)
        return applied

    def _apply(self, update: StateUpdate) -> None:
        state = self.state
        if isinstance(update, DevicesLoaded):
            state.devices = list(update.devices)
            if state.selected_device is not None:
                state.selected_device = next(
                    (device for device in state.devices if device.id == state.selected_device.id),
                    None,
                )
        elif isinstance(update, ApplicationsLoaded):
            state.selected_device = update.device
            state.applications = list(update.applications)
            if state.selected_application is not None:
                state.selected_application = self._find_application(state.selected_application.id)
        elif isinstance(update, ApplicationSelected):
            state.selected_application = update.application
        elif isinstance(update, SnapshotsLoaded):
            state.snapshots = list(update.snapshots)
            state.snapshots_app_id = update.app_id
        elif isinstance(update, SnapshotRenamed):
            state.snapshots = [
                update.snapshot if snapshot.id == update.snapshot.id else snapshot for snapshot in state.snapshots
            ]
        elif isinstance(update, SizeRequested):
            self._apply_size(update.scope, update.key, None, loading=True)
        elif isinstance(update, SizeResult):
            self._apply_size(update.scope, update.key, update.size, loading=False)
        elif isinstance(update, ProgressEvent):
            state.operation_in_progress = not update.phase.is_terminal
            state.operation_phase = update.phase
            state.operation_progress = update.fraction
            state.operation_message = update.message
            state.progress_token += 1
            if update.phase.is_terminal:
                self._schedule_reset(update.phase, state.progress_token)
        elif isinstance(update, ProgressReset):
            if update.token == state.progress_token and not state.operation_in_progress:
                state.operation_phase = OperationPhase.IDLE
                state.operation_progress = 0.0
                state.operation_message = ""

    def _schedule_reset(self, phase: OperationPhase, token: int) -> None:
        """Clear a terminal banner after a delay unless a newer event replaced it."""
        delay = self.success_reset_seconds if phase == OperationPhase.SUCCESS else self.failure_reset_seconds
        if delay is None:
            return
        timer = threading.Timer(delay, self.post, args=(ProgressReset(token=token),))
        timer.daemon = True
        timer.start()

    def _find_application(self, app_id: str) -> Application | None:
        return next((app for app in self.state.applications if app.id == app_id), None)

    def _apply_size(self, scope: SizeScope, key: str, size: int | None, *, loading: bool) -> None:
        state = self.state
        if scope == SizeScope.ALL_SNAPSHOTS:
            state.is_loading_total_snapshots_size = loading
            if not loading:
                state.total_snapshots_size = size
            return

        if scope == SizeScope.APPLICATION:
            for index, app in enumerate(state.applications):
                if app.id != key:
                    continue
                updated = replace(
                    app,
                    is_loading_documents_size=loading,
                    documents_size=app.documents_size if loading else size,
                )
                state.applications[index] = updated
                if state.selected_application is not None and state.selected_application.id == key:
                    state.selected_application = updated
                return
            return

        for index, snapshot in enumerate(state.snapshots):
            if snapshot_size_key(snapshot) != key:
                continue
            state.snapshots[index] = replace(
                snapshot,
                is_loading_size=loading,
                size=snapshot.size if loading else size,
            )
            return


__all__ = [
    "ALL_SNAPSHOTS_KEY",
    "SUCCESS_RESET_SECONDS",
    "FAILURE_RESET_SECONDS",
    "snapshot_size_key",
    "DevicesLoaded",
    "ApplicationsLoaded",
    "ApplicationSelected",
    "SnapshotsLoaded",
    "SnapshotRenamed",
    "SizeRequested",
    "ProgressReset",
    "StateUpdate",
    "EngineState",
    "StateStore",
]
