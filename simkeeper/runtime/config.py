"""Persistent JSON config helpers.

Stores pinned devices, snapshot display-name overrides, push-notification
history, and an optional device-root override. Malformed or missing config
reads as empty values instead of raising.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from platformdirs import user_config_dir

from ..paths import DEFAULT_DEVICE_ROOT

APP_NAME = "simkeeper"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH
DEVICE_ROOT_ENV = "SIMKEEPER_DEVICE_ROOT"


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Filesystem/serialization errors are ignored so a read-only config
    location never breaks snapshot work.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except (OSError, TypeError, ValueError):
        pass


def resolve_device_root(explicit: Path | str | None = None) -> Path:
    """Pick the device root: explicit argument, env var, config, then default."""
    if explicit:
        return Path(explicit).expanduser()
    from_env = os.environ.get(DEVICE_ROOT_ENV, "").strip()
    if from_env:
        return Path(from_env).expanduser()
    configured = load_config().get("device_root")
    if isinstance(configured, str) and configured.strip():
        return Path(configured.strip()).expanduser()
    return DEFAULT_DEVICE_ROOT


def load_pinned_devices() -> set[str]:
    """Return persisted pinned device ids; non-string entries are dropped."""
    value = load_config().get("pinned_devices")
    if not isinstance(value, list):
        return set()
    return {item for item in value if isinstance(item, str) and item}


def save_pinned_devices(device_ids: set[str]) -> None:
    config = load_config()
    config["pinned_devices"] = sorted(device_ids)
    save_config(config)


def load_snapshot_names() -> dict[str, str]:
    """Return snapshot-id -> display-name overrides."""
    value = load_config().get("snapshot_names")
    if not isinstance(value, dict):
        return {}
    return {
        key: name
        for key, name in value.items()
        if isinstance(key, str) and isinstance(name, str) and name.strip()
    }


def save_snapshot_name(snapshot_id: str, display_name: str) -> None:
    """Store a display name for ``snapshot_id``; a blank name clears it."""
    names = load_snapshot_names()
    stripped = display_name.strip()
    if stripped:
        names[snapshot_id] = stripped
    else:
        names.pop(snapshot_id, None)
    config = load_config()
    config["snapshot_names"] = names
    save_config(config)


def forget_snapshot_names(snapshot_ids: list[str]) -> None:
    """Drop overrides for deleted snapshots."""
    names = load_snapshot_names()
    dropped = set(snapshot_ids)
    remaining = {key: value for key, value in names.items() if key not in dropped}
    if remaining == names:
        return
    config = load_config()
    config["snapshot_names"] = remaining
    save_config(config)


def _history_key(device_id: str, bundle_identifier: str) -> str:
    return f"{device_id}|{bundle_identifier}"


def load_push_history(device_id: str, bundle_identifier: str) -> list[dict[str, object]]:
    """Return push history for one device/app pair, newest first.

    Entries without a string ``sent_at`` timestamp are discarded.
    """
    value = load_config().get("push_history")
    if not isinstance(value, dict):
        return []
    entries = value.get(_history_key(device_id, bundle_identifier))
    if not isinstance(entries, list):
        return []
    valid = [entry for entry in entries if isinstance(entry, dict) and isinstance(entry.get("sent_at"), str)]
    # Later appends win ties on identical timestamps.
    return sorted(reversed(valid), key=lambda entry: str(entry["sent_at"]), reverse=True)


def append_push_history(
    device_id: str,
    bundle_identifier: str,
    payload: str,
    *,
    succeeded: bool,
    output: str,
    sent_at: datetime | None = None,
) -> dict[str, object]:
    """Append one push-notification record and return it."""
    moment = sent_at or datetime.now(timezone.utc)
    entry: dict[str, object] = {
        "sent_at": moment.isoformat(),
        "payload": payload,
        "succeeded": bool(succeeded),
        "output": output,
    }
    config = load_config()
    history = config.get("push_history")
    if not isinstance(history, dict):
        history = {}
    key = _history_key(device_id, bundle_identifier)
    entries = history.get(key)
    if not isinstance(entries, list):
        entries = []
    entries.append(entry)
    history[key] = entries
    config["push_history"] = history
    save_config(config)
    return entry


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "DEFAULT_CONFIG_PATH",
    "DEVICE_ROOT_ENV",
    "load_config",
    "save_config",
    "resolve_device_root",
    "load_pinned_devices",
    "save_pinned_devices",
    "load_snapshot_names",
    "save_snapshot_name",
    "forget_snapshot_names",
    "load_push_history",
    "append_push_history",
]
