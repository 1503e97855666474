"""Device and application discovery over a simulator device root.

Layout consumed::

    <root>/<device-id>/device.plist
    <root>/<device-id>/data/Containers/Bundle/Application/<bundle-id>/<Name>.app/Info.plist
    <root>/<device-id>/data/Containers/Data/Application/<data-id>/.com.apple...metadata.plist

Discovery only reads. Entries with missing or unparseable metadata are
skipped, never reported as errors; only an unreadable root raises.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from .. import paths
from ..errors import InventoryError
from ..model import Application, Device, device_class_for
from .icons import SYSTEM_APPLICATION_DIRS, resolve_icon_path
from .metadata import BundleInfo, parse_bundle_info, parse_container_metadata, parse_device_metadata

logger = logging.getLogger(__name__)


def _sorted_child_dirs(directory: Path) -> list[Path]:
    """Child directories in name order; an unreadable directory yields ``[]``."""
    out: list[Path] = []
    try:
        with os.scandir(directory) as entries:
            for entry in entries:
                try:
                    if entry.is_dir():
                        out.append(Path(entry.path))
                except OSError:
                    continue
    except OSError:
        return []
    out.sort(key=lambda item: item.name)
    return out


def has_installed_apps(device_path: Path) -> bool:
    """Return whether the device has a non-empty bundle-container directory."""
    try:
        with os.scandir(paths.bundle_root(device_path)) as entries:
            return any(True for _ in entries)
    except OSError:
        return False


def sort_devices(devices: Iterable[Device]) -> list[Device]:
    """Pinned devices first, then alphabetical by display name."""
    return sorted(devices, key=lambda device: (not device.is_pinned, device.name, device.id))


def list_devices(root: Path, pinned: set[str] | None = None) -> list[Device]:
    """Discover simulated devices under ``root`` that have apps installed.

    ``pinned`` defaults to the persisted pinned-device ids.
    """
    if pinned is None:
        from ..runtime.config import load_pinned_devices

        pinned = load_pinned_devices()

    candidates: list[Path] = []
    try:
        with os.scandir(root) as entries:
            for entry in entries:
                try:
                    if entry.is_dir():
                        candidates.append(Path(entry.path))
                except OSError:
                    logger.debug("skipping unreadable entry %s", entry.path)
    except OSError as exc:
        raise InventoryError(f"cannot read device root {root}: {exc}") from exc
    candidates.sort()

    devices: list[Device] = []
    for device_path in candidates:
        metadata = parse_device_metadata(paths.device_metadata_path(device_path))
        if metadata is None:
            logger.debug("skipping %s: no readable device metadata", device_path.name)
            continue
        if not has_installed_apps(device_path):
            logger.debug("skipping %s: no installed applications", device_path.name)
            continue
        devices.append(
            Device(
                id=device_path.name,
                name=metadata.name,
                os_version=metadata.os_version,
                device_class=device_class_for(metadata.device_type),
                data_path=device_path,
                is_pinned=device_path.name in pinned,
            )
        )
    logger.debug("found %d devices under %s", len(devices), root)
    return sort_devices(devices)


def find_app_bundle(bundle_container: Path) -> Path | None:
    """Return the first ``*.app`` child of a bundle container."""
    for child in _sorted_child_dirs(bundle_container):
        if child.name.endswith(paths.APP_BUNDLE_SUFFIX):
            return child
    return None


def index_data_containers(device_path: Path) -> dict[str, Path]:
    """Map embedded bundle identifier -> data container directory.

    Containers are visited in name order and the first one claiming an
    identifier keeps it, so duplicate claims resolve deterministically.
    """
    index: dict[str, Path] = {}
    for container in _sorted_child_dirs(paths.data_root(device_path)):
        metadata = parse_container_metadata(paths.container_metadata_path(container))
        if metadata is None or not metadata.identifier:
            continue
        if metadata.identifier in index:
            logger.debug(
                "data container %s duplicates %s for %s; keeping the first",
                container.name,
                index[metadata.identifier].name,
                metadata.identifier,
            )
            continue
        index[metadata.identifier] = container
    return index


def _build_application(
    device: Device,
    bundle_container: Path,
    app_bundle: Path,
    info: BundleInfo,
    containers: dict[str, Path],
    system_icon_dirs: Iterable[Path],
) -> Application:
    data_container = containers.get(info.bundle_identifier) if info.bundle_identifier else None
    if data_container is None:
        logger.debug("no data container for %s on %s", info.bundle_identifier, device.id)
    return Application(
        id=bundle_container.name,
        name=info.name,
        bundle_identifier=info.bundle_identifier,
        device_id=device.id,
        icon_path=resolve_icon_path(app_bundle, info, system_icon_dirs),
        documents_path=paths.documents_path(data_container) if data_container is not None else None,
        snapshots_path=paths.snapshots_path(data_container) if data_container is not None else None,
    )


def list_applications(
    device: Device,
    system_icon_dirs: Iterable[Path] = SYSTEM_APPLICATION_DIRS,
) -> list[Application]:
    """Enumerate installed applications of ``device`` sorted by display name."""
    bundle_root = paths.bundle_root(device.data_path)
    if not bundle_root.is_dir():
        logger.debug("no bundle directory for %s", device.id)
        return []

    system_icon_dirs = tuple(system_icon_dirs)
    containers = index_data_containers(device.data_path)
    apps: list[Application] = []
    for bundle_container in _sorted_child_dirs(bundle_root):
        app_bundle = find_app_bundle(bundle_container)
        if app_bundle is None:
            continue
        info = parse_bundle_info(paths.bundle_info_path(app_bundle))
        if info is None:
            logger.debug("could not read bundle info for %s", app_bundle)
            continue
        apps.append(_build_application(device, bundle_container, app_bundle, info, containers, system_icon_dirs))

    logger.debug("found %d applications for %s", len(apps), device.name)
    return sorted(apps, key=lambda app: (app.name, app.id))


def find_device(root: Path, device_id: str, pinned: set[str] | None = None) -> Device | None:
    for device in list_devices(root, pinned=pinned):
        if device.id == device_id:
            return device
    return None


__all__ = [
    "has_installed_apps",
    "sort_devices",
    "list_devices",
    "find_app_bundle",
    "index_data_containers",
    "list_applications",
    "find_device",
]
