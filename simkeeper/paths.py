"""Pure path composition for simulator device trees.

Maps a device root plus container directory names to the metadata,
documents, and snapshots locations the rest of the package uses.
Nothing here touches the filesystem.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

DEFAULT_DEVICE_ROOT = Path("~/Library/Developer/CoreSimulator/Devices").expanduser()

DEVICE_METADATA_FILENAME = "device.plist"
BUNDLE_INFO_FILENAME = "Info.plist"
CONTAINER_METADATA_FILENAME = ".com.apple.mobile_container_manager.metadata.plist"
APP_BUNDLE_SUFFIX = ".app"
DOCUMENTS_DIRNAME = "Documents"
SNAPSHOTS_DIRNAME = "Snapshots"
SNAPSHOT_PREFIX = "snapshot_"


def device_metadata_path(device_path: Path) -> Path:
    return device_path / DEVICE_METADATA_FILENAME


def containers_path(device_path: Path) -> Path:
    return device_path / "data" / "Containers"


def bundle_root(device_path: Path) -> Path:
    """Directory holding one bundle container per installed application."""
    return containers_path(device_path) / "Bundle" / "Application"


def data_root(device_path: Path) -> Path:
    """Directory holding one private data container per application."""
    return containers_path(device_path) / "Data" / "Application"


def bundle_info_path(app_bundle: Path) -> Path:
    return app_bundle / BUNDLE_INFO_FILENAME


def container_metadata_path(data_container: Path) -> Path:
    return data_container / CONTAINER_METADATA_FILENAME


def documents_path(data_container: Path) -> Path:
    return data_container / DOCUMENTS_DIRNAME


def snapshots_path(data_container: Path) -> Path:
    return data_container / SNAPSHOTS_DIRNAME


def snapshot_documents_path(snapshot_path: Path) -> Path:
    """Location of the captured tree inside one snapshot directory."""
    return snapshot_path / DOCUMENTS_DIRNAME


def snapshot_name_for(moment: datetime | None = None) -> str:
    """Return ``snapshot_<ISO8601>`` for ``moment`` (UTC now when omitted).

    Seconds precision with a ``Z`` suffix, matching the timestamps written by
    earlier snapshot tooling.
    """
    if moment is None:
        moment = datetime.now(timezone.utc)
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    stamp = moment.astimezone(timezone.utc).replace(microsecond=0).isoformat()
    return SNAPSHOT_PREFIX + stamp.replace("+00:00", "Z")


__all__ = [
    "DEFAULT_DEVICE_ROOT",
    "DEVICE_METADATA_FILENAME",
    "BUNDLE_INFO_FILENAME",
    "CONTAINER_METADATA_FILENAME",
    "APP_BUNDLE_SUFFIX",
    "DOCUMENTS_DIRNAME",
    "SNAPSHOTS_DIRNAME",
    "SNAPSHOT_PREFIX",
    "device_metadata_path",
    "containers_path",
    "bundle_root",
    "data_root",
    "bundle_info_path",
    "container_metadata_path",
    "documents_path",
    "snapshots_path",
    "snapshot_documents_path",
    "snapshot_name_for",
]
