"""Application icon lookup via a first-match fallback chain.

Order: phone primary icons, tablet primary icons, ``AppIcon*`` images, any
image with "icon" in its name, then host system applications with the same
bundle identifier. Lookup never raises; ``None`` means no icon was found.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from pathlib import Path

from .metadata import BundleInfo, parse_bundle_info

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg")
SYSTEM_APPLICATION_DIRS: tuple[Path, ...] = (
    Path("/Applications"),
    Path("/System/Applications"),
    Path("/System/Applications/Utilities"),
)

_PHONE_VARIANTS = ("{}@3x.png", "{}@2x.png", "{}.png")
_TABLET_VARIANTS = ("{}@2x~ipad.png", "{}~ipad.png", "{}@2x.png", "{}.png")


def _sorted_names(directory: Path) -> list[str]:
    try:
        return sorted(os.listdir(directory))
    except OSError:
        return []


def _first_existing(app_bundle: Path, icon_files: Sequence[str], variants: Sequence[str]) -> Path | None:
    for icon_file in icon_files:
        for variant in variants:
            candidate = app_bundle / variant.format(icon_file)
            if candidate.is_file():
                return candidate
    return None


def _is_image(name: str) -> bool:
    return name.lower().endswith(IMAGE_SUFFIXES)


def _scan_bundle_images(app_bundle: Path) -> Path | None:
    names = _sorted_names(app_bundle)
    for name in names:
        if name.startswith("AppIcon") and _is_image(name):
            return app_bundle / name
    for name in names:
        if _is_image(name) and "icon" in name.lower():
            return app_bundle / name
    return None


def system_app_icon(bundle_identifier: str, search_dirs: Iterable[Path] = SYSTEM_APPLICATION_DIRS) -> Path | None:
    """Find the icon of a host application bundle with ``bundle_identifier``."""
    if not bundle_identifier:
        return None
    for directory in search_dirs:
        for name in _sorted_names(directory):
            if not name.endswith(".app"):
                continue
            contents = directory / name / "Contents"
            info = parse_bundle_info(contents / "Info.plist")
            if info is None or info.bundle_identifier != bundle_identifier:
                continue
            resources = contents / "Resources"
            app_icon = resources / "AppIcon.icns"
            if app_icon.is_file():
                return app_icon
            for resource in _sorted_names(resources):
                if resource.endswith(".icns") or (resource.endswith(".png") and "Icon" in resource):
                    return resources / resource
    return None


def resolve_icon_path(
    app_bundle: Path,
    info: BundleInfo,
    system_dirs: Iterable[Path] = SYSTEM_APPLICATION_DIRS,
) -> Path | None:
    """Resolve an icon file for the ``.app`` bundle described by ``info``."""
    icon = _first_existing(app_bundle, info.phone_icon_files, _PHONE_VARIANTS)
    if icon is None:
        icon = _first_existing(app_bundle, info.tablet_icon_files, _TABLET_VARIANTS)
    if icon is None:
        icon = _scan_bundle_images(app_bundle)
    if icon is None:
        icon = system_app_icon(info.bundle_identifier, system_dirs)
    if icon is None:
        logger.debug("no icon found for %s", info.bundle_identifier)
    return icon


__all__ = [
    "IMAGE_SUFFIXES",
    "SYSTEM_APPLICATION_DIRS",
    "resolve_icon_path",
    "system_app_icon",
]
