"""Tolerant property-list readers for device, bundle, and container metadata.

Every field is optional. Missing files, unparseable plists, and mistyped
values all degrade to ``None``/defaults instead of raising.
"""

from __future__ import annotations

import plistlib
from dataclasses import dataclass
from pathlib import Path
from xml.parsers.expat import ExpatError

RUNTIME_PREFIX = "com.apple.CoreSimulator.SimRuntime."


def read_plist(path: Path) -> dict[str, object] | None:
    """Load a plist (XML or binary) as a dict, or ``None`` when unusable."""
    try:
        with path.open("rb") as handle:
            data = plistlib.load(handle)
    except (OSError, ValueError, ExpatError):
        return None
    return data if isinstance(data, dict) else None


def _string(data: dict[str, object], key: str) -> str | None:
    value = data.get(key)
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _string_list(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str) and item)


def _icon_files(data: dict[str, object], key: str) -> tuple[str, ...]:
    """Extract ``<key>.CFBundlePrimaryIcon.CFBundleIconFiles``."""
    icons = data.get(key)
    if not isinstance(icons, dict):
        return ()
    primary = icons.get("CFBundlePrimaryIcon")
    if not isinstance(primary, dict):
        return ()
    return _string_list(primary.get("CFBundleIconFiles"))


@dataclass(frozen=True)
class DeviceMetadata:
    name: str = "Unknown"
    runtime: str = "Unknown"
    device_type: str = "iPhone"

    @property
    def os_version(self) -> str:
        return self.runtime.replace(RUNTIME_PREFIX, "")


@dataclass(frozen=True)
class BundleInfo:
    bundle_identifier: str = ""
    display_name: str | None = None
    bundle_name: str | None = None
    phone_icon_files: tuple[str, ...] = ()
    tablet_icon_files: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        """Display name, then internal name, then the identifier itself."""
        return self.display_name or self.bundle_name or self.bundle_identifier


@dataclass(frozen=True)
class ContainerMetadata:
    identifier: str = ""


def parse_device_metadata(path: Path) -> DeviceMetadata | None:
    data = read_plist(path)
    if data is None:
        return None
    defaults = DeviceMetadata()
    return DeviceMetadata(
        name=_string(data, "name") or defaults.name,
        runtime=_string(data, "runtime") or defaults.runtime,
        device_type=_string(data, "deviceType") or defaults.device_type,
    )


def parse_bundle_info(path: Path) -> BundleInfo | None:
    data = read_plist(path)
    if data is None:
        return None
    return BundleInfo(
        bundle_identifier=_string(data, "CFBundleIdentifier") or "",
        display_name=_string(data, "CFBundleDisplayName"),
        bundle_name=_string(data, "CFBundleName"),
        phone_icon_files=_icon_files(data, "CFBundleIcons"),
        tablet_icon_files=_icon_files(data, "CFBundleIcons~ipad"),
    )


def parse_container_metadata(path: Path) -> ContainerMetadata | None:
    data = read_plist(path)
    if data is None:
        return None
    return ContainerMetadata(identifier=_string(data, "MCMMetadataIdentifier") or "")


__all__ = [
    "RUNTIME_PREFIX",
    "read_plist",
    "DeviceMetadata",
    "BundleInfo",
    "ContainerMetadata",
    "parse_device_metadata",
    "parse_bundle_info",
    "parse_container_metadata",
]
