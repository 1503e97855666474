"""Domain datatypes for discovered devices, applications, and snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path


class DeviceClass(str, Enum):
    PHONE = "phone"
    TABLET = "tablet"
    TV = "tv"
    WATCH = "watch"


# Checked in order; first substring hit wins.
_DEVICE_CLASS_MARKERS: tuple[tuple[str, DeviceClass], ...] = (
    ("iPhone", DeviceClass.PHONE),
    ("iPad", DeviceClass.TABLET),
    ("AppleTV", DeviceClass.TV),
    ("Watch", DeviceClass.WATCH),
)


def device_class_for(device_type: str) -> DeviceClass:
    """Classify a raw device-type identifier, defaulting to ``PHONE``."""
    for marker, device_class in _DEVICE_CLASS_MARKERS:
        if marker in device_type:
            return device_class
    return DeviceClass.PHONE


@dataclass(frozen=True)
class Device:
    """One simulated device with at least one installed application."""

    id: str
    name: str
    os_version: str
    device_class: DeviceClass
    data_path: Path
    is_pinned: bool = False


@dataclass(frozen=True)
class Application:
    """Installed application plus its resolved private data locations.

    ``id`` is the bundle-container directory name, which changes on every
    reinstall; ``bundle_identifier`` is the stable key.
    """

    id: str
    name: str
    bundle_identifier: str
    device_id: str
    icon_path: Path | None = None
    documents_path: Path | None = None
    snapshots_path: Path | None = None
    documents_size: int | None = None
    is_loading_documents_size: bool = False

    @property
    def has_data_container(self) -> bool:
        return self.documents_path is not None and self.snapshots_path is not None


@dataclass(frozen=True)
class Snapshot:
    """One ``snapshot_<timestamp>`` directory holding a captured ``Documents`` tree."""

    id: str
    name: str
    date: datetime
    path: Path
    display_name: str | None = None
    size: int | None = None
    is_loading_size: bool = False

    @property
    def title(self) -> str:
        """User-facing label: the display-name override, else the directory name."""
        return self.display_name or self.name


@dataclass(frozen=True, order=True)
class FileRecord:
    """Manifest entry: POSIX path relative to a tree root plus byte size."""

    relative_path: str
    size: int


__all__ = [
    "DeviceClass",
    "device_class_for",
    "Device",
    "Application",
    "Snapshot",
    "FileRecord",
]
