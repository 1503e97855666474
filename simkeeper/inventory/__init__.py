"""Read-only discovery of simulated devices and their installed applications.

This package contains:
- tolerant property-list readers for device/bundle/container metadata
- device and application listing with data-container correlation
- the icon lookup fallback chain
"""

from __future__ import annotations

from .icons import SYSTEM_APPLICATION_DIRS, resolve_icon_path, system_app_icon
from .metadata import (
    BundleInfo,
    ContainerMetadata,
    DeviceMetadata,
    parse_bundle_info,
    parse_container_metadata,
    parse_device_metadata,
    read_plist,
)
from .resolver import (
    find_app_bundle,
    find_device,
    has_installed_apps,
    index_data_containers,
    list_applications,
    list_devices,
    sort_devices,
)

__all__ = [
    "SYSTEM_APPLICATION_DIRS",
    "resolve_icon_path",
    "system_app_icon",
    "BundleInfo",
    "ContainerMetadata",
    "DeviceMetadata",
    "parse_bundle_info",
    "parse_container_metadata",
    "parse_device_metadata",
    "read_plist",
    "find_app_bundle",
    "find_device",
    "has_installed_apps",
    "index_data_containers",
    "list_applications",
    "list_devices",
    "sort_devices",
]
