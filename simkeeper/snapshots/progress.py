"""Operation phases and progress events shared by take and restore."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class OperationPhase(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    EXECUTING = "executing"
    VALIDATING = "validating"
    ROLLING_BACK = "rolling-back"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationPhase.SUCCESS, OperationPhase.FAILED)


@dataclass(frozen=True)
class ProgressEvent:
    operation: str
    phase: OperationPhase
    fraction: float
    message: str


ProgressListener = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Emit events for one operation, keeping the fraction monotonic in [0, 1]."""

    def __init__(self, operation: str, listener: ProgressListener | None) -> None:
        self.operation = operation
        self._listener = listener
        self._fraction = 0.0
        self.phase = OperationPhase.IDLE

    @property
    def fraction(self) -> float:
        return self._fraction

    def emit(self, phase: OperationPhase, fraction: float, message: str) -> None:
        self._fraction = max(self._fraction, min(1.0, max(0.0, fraction)))
        self.phase = phase
        if self._listener is None:
            return
        self._listener(
            ProgressEvent(
                operation=self.operation,
                phase=phase,
                fraction=self._fraction,
                message=message,
            )
        )


__all__ = [
    "OperationPhase",
    "ProgressEvent",
    "ProgressListener",
    "ProgressReporter",
]
