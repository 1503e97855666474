"""Error taxonomy and operation results for discovery and snapshot work.

Snapshot operations never leak raw ``OSError`` to callers. Failures are
translated at the operation boundary into an ``ErrorKind`` plus a
human-readable message carried by ``OperationResult``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import Snapshot


class ErrorKind(str, Enum):
    IO_ERROR = "io-error"
    NOT_FOUND = "not-found"
    DOCUMENTS_MISSING = "documents-missing"
    COPY_FAILED = "copy-failed"
    VALIDATION_FAILED = "validation-failed"
    RESTORE_FAILED = "restore-failed"
    PATHS_INVALID = "paths-invalid"
    BUSY = "busy"


class InventoryError(OSError):
    """Raised when the device root itself cannot be read."""


class SnapshotError(Exception):
    """Internal failure raised inside an operation and translated at its boundary."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one snapshot/facade operation."""

    ok: bool
    message: str
    kind: ErrorKind | None = None
    snapshot: Snapshot | None = None
    attempts: int = 0
    count: int = 0

    @classmethod
    def success(
        cls,
        message: str,
        *,
        snapshot: Snapshot | None = None,
        attempts: int = 0,
        count: int = 0,
    ) -> OperationResult:
        return cls(ok=True, message=message, snapshot=snapshot, attempts=attempts, count=count)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, *, attempts: int = 0) -> OperationResult:
        return cls(ok=False, message=message, kind=kind, attempts=attempts)

    @classmethod
    def from_error(cls, error: SnapshotError, *, attempts: int = 0) -> OperationResult:
        return cls.failure(error.kind, error.message, attempts=attempts)


__all__ = [
    "ErrorKind",
    "InventoryError",
    "SnapshotError",
    "OperationResult",
]
