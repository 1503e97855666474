"""Builders for fake CoreSimulator device trees used across tests."""

from __future__ import annotations

import contextlib
import plistlib
from collections.abc import Iterator
from pathlib import Path
from unittest import mock

from simkeeper import paths


def write_plist(path: Path, data: dict[str, object]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as handle:
        plistlib.dump(data, handle)
    return path


def write_files(root: Path, files: dict[str, bytes | str]) -> None:
    """Create ``files`` (relative path -> content) under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        target.write_bytes(content)


def make_device(
    root: Path,
    device_id: str,
    name: str = "iPhone 15",
    runtime: str = "com.apple.CoreSimulator.SimRuntime.iOS-17-0",
    device_type: str = "com.apple.CoreSimulator.SimDeviceType.iPhone-15",
) -> Path:
    device_path = root / device_id
    write_plist(
        paths.device_metadata_path(device_path),
        {"name": name, "runtime": runtime, "deviceType": device_type, "UDID": device_id},
    )
    return device_path


def install_app(
    device_path: Path,
    bundle_container_id: str,
    bundle_identifier: str,
    *,
    display_name: str | None = None,
    bundle_name: str | None = None,
    data_container_id: str | None = None,
    documents: dict[str, bytes | str] | None = None,
    info_extra: dict[str, object] | None = None,
) -> tuple[Path, Path | None]:
    """Install a fake app; returns ``(app_bundle, data_container)``."""
    app_bundle = paths.bundle_root(device_path) / bundle_container_id / f"{bundle_name or 'App'}.app"
    info: dict[str, object] = {"CFBundleIdentifier": bundle_identifier}
    if display_name is not None:
        info["CFBundleDisplayName"] = display_name
    if bundle_name is not None:
        info["CFBundleName"] = bundle_name
    info.update(info_extra or {})
    write_plist(paths.bundle_info_path(app_bundle), info)

    data_container: Path | None = None
    if data_container_id is not None:
        data_container = make_data_container(device_path, data_container_id, bundle_identifier, documents)
    return app_bundle, data_container


def make_data_container(
    device_path: Path,
    data_container_id: str,
    bundle_identifier: str,
    documents: dict[str, bytes | str] | None = None,
) -> Path:
    data_container = paths.data_root(device_path) / data_container_id
    write_plist(
        paths.container_metadata_path(data_container),
        {"MCMMetadataIdentifier": bundle_identifier},
    )
    write_files(paths.documents_path(data_container), documents or {})
    return data_container


@contextlib.contextmanager
def isolated_config(tmp: Path) -> Iterator[Path]:
    """Point persisted config at a throwaway file for the duration of a test."""
    config_path = tmp / "config" / "simkeeper.json"
    with mock.patch("simkeeper.runtime.config.CONFIG_PATH", config_path):
        yield config_path
