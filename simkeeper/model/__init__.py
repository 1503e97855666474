"""Domain records shared by discovery, sizing, and snapshot code."""

from __future__ import annotations

from .types import Application, Device, DeviceClass, FileRecord, Snapshot, device_class_for

__all__ = [
    "Application",
    "Device",
    "DeviceClass",
    "FileRecord",
    "Snapshot",
    "device_class_for",
]
