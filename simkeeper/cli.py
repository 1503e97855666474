"""Command-line front door for simkeeper.

Parses CLI options, resolves devices/apps/snapshots by id or name, and
dispatches into ``SimulatorService``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .errors import InventoryError, OperationResult
from .model import Application, Device, Snapshot
from .push import default_payload, push_history, send_push
from .runtime.service import SimulatorService
from .sizes import compute_size, format_size


def _pick_device(service: SimulatorService, selector: str) -> Device:
    devices = service.list_devices()
    for device in devices:
        if selector in (device.id, device.name):
            return device
    lowered = selector.lower()
    matches = [device for device in devices if lowered in device.name.lower()]
    if len(matches) == 1:
        return matches[0]
    raise SystemExit(f"Device not found: {selector}")


def _pick_app(service: SimulatorService, device: Device, selector: str) -> Application:
    apps = service.list_applications(device)
    for app in apps:
        if selector in (app.id, app.bundle_identifier, app.name):
            return app
    raise SystemExit(f"Application not found on {device.name}: {selector}")


def _pick_snapshot(service: SimulatorService, app: Application, selector: str) -> Snapshot:
    snapshots = service.select_application(app)
    for snapshot in snapshots:
        if selector in (snapshot.id, snapshot.display_name):
            return snapshot
    raise SystemExit(f"Snapshot not found for {app.name}: {selector}")


def _safe_size(path: Path | None) -> int | None:
    if path is None:
        return None
    try:
        return compute_size(path)
    except OSError:
        return None


def _report(result: OperationResult) -> int:
    if result.ok:
        print(result.message)
        return 0
    kind = result.kind.value if result.kind is not None else "error"
    print(f"{kind}: {result.message}", file=sys.stderr)
    return 1


def _cmd_devices(service: SimulatorService, _args: argparse.Namespace) -> int:
    for device in service.list_devices():
        pin = "*" if device.is_pinned else " "
        print(f"{pin} {device.name:<28} {device.os_version:<10} {device.device_class.value:<7} {device.id}")
    return 0


def _cmd_apps(service: SimulatorService, args: argparse.Namespace) -> int:
    device = _pick_device(service, args.device)
    for app in service.list_applications(device):
        size = format_size(_safe_size(app.documents_path)) if app.has_data_container else "no data"
        print(f"{app.name:<28} {app.bundle_identifier:<40} {size}")
    return 0


def _cmd_snapshots(service: SimulatorService, args: argparse.Namespace) -> int:
    device = _pick_device(service, args.device)
    app = _pick_app(service, device, args.app)
    for snapshot in service.list_snapshots(app):
        size = format_size(_safe_size(snapshot.path))
        print(f"{snapshot.title:<36} {snapshot.date.isoformat(timespec='seconds'):<26} {size:<10} {snapshot.id}")
    return 0


def _cmd_take(service: SimulatorService, args: argparse.Namespace) -> int:
    device = _pick_device(service, args.device)
    app = _pick_app(service, device, args.app)
    return _report(service.take_snapshot(app))


def _cmd_restore(service: SimulatorService, args: argparse.Namespace) -> int:
    device = _pick_device(service, args.device)
    app = _pick_app(service, device, args.app)
    snapshot = _pick_snapshot(service, app, args.snapshot)
    return _report(service.restore_snapshot(snapshot, app))


def _cmd_delete(service: SimulatorService, args: argparse.Namespace) -> int:
    device = _pick_device(service, args.device)
    app = _pick_app(service, device, args.app)
    snapshot = _pick_snapshot(service, app, args.snapshot)
    return _report(service.delete_snapshot(snapshot, app))


def _cmd_delete_all(service: SimulatorService, args: argparse.Namespace) -> int:
    device = _pick_device(service, args.device)
    service.list_applications(device)
    return _report(service.delete_all_snapshots())


def _cmd_rename(service: SimulatorService, args: argparse.Namespace) -> int:
    device = _pick_device(service, args.device)
    app = _pick_app(service, device, args.app)
    snapshot = _pick_snapshot(service, app, args.snapshot)
    renamed = service.rename_snapshot(snapshot, args.name)
    print(f"{renamed.id} -> {renamed.title}")
    return 0


def _cmd_pin(service: SimulatorService, args: argparse.Namespace) -> int:
    device = _pick_device(service, args.device)
    for updated in service.toggle_pin(device):
        if updated.id == device.id:
            print(f"{updated.name}: {'pinned' if updated.is_pinned else 'unpinned'}")
    return 0


def _cmd_open(service: SimulatorService, args: argparse.Namespace) -> int:
    device = _pick_device(service, args.device)
    app = _pick_app(service, device, args.app)
    return _report(service.open_documents_folder(app))


def _cmd_push(service: SimulatorService, args: argparse.Namespace) -> int:
    device = _pick_device(service, args.device)
    app = _pick_app(service, device, args.app)
    if args.history:
        for entry in push_history(device.id, app.bundle_identifier):
            status = "ok" if entry.get("succeeded") else "failed"
            print(f"{entry['sent_at']}  {status}")
        return 0
    payload = Path(args.payload).read_text(encoding="utf-8") if args.payload else default_payload()
    outcome = send_push(device.id, app.bundle_identifier, payload)
    if outcome.output:
        print(outcome.output)
    return 0 if outcome.succeeded else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Discover simulator apps and snapshot/restore their Documents folders."
    )
    parser.add_argument("--root", default=None, help="Simulator device root (default: CoreSimulator Devices).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("devices", help="List devices with installed apps.").set_defaults(handler=_cmd_devices)

    apps = commands.add_parser("apps", help="List applications on a device.")
    apps.add_argument("device")
    apps.set_defaults(handler=_cmd_apps)

    for name, handler, help_text in (
        ("snapshots", _cmd_snapshots, "List snapshots of an application."),
        ("take", _cmd_take, "Take a snapshot of an application's documents."),
        ("open", _cmd_open, "Open an application's documents folder."),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("device")
        sub.add_argument("app")
        sub.set_defaults(handler=handler)

    for name, handler, help_text in (
        ("restore", _cmd_restore, "Restore a snapshot over the current documents."),
        ("delete", _cmd_delete, "Delete one snapshot."),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("device")
        sub.add_argument("app")
        sub.add_argument("snapshot")
        sub.set_defaults(handler=handler)

    rename = commands.add_parser("rename", help="Set a snapshot display name (empty clears it).")
    rename.add_argument("device")
    rename.add_argument("app")
    rename.add_argument("snapshot")
    rename.add_argument("name")
    rename.set_defaults(handler=_cmd_rename)

    delete_all = commands.add_parser("delete-all", help="Delete every snapshot of every app on a device.")
    delete_all.add_argument("device")
    delete_all.set_defaults(handler=_cmd_delete_all)

    pin = commands.add_parser("pin", help="Toggle a device's pinned state.")
    pin.add_argument("device")
    pin.set_defaults(handler=_cmd_pin)

    push = commands.add_parser("push", help="Send a test push notification.")
    push.add_argument("device")
    push.add_argument("app")
    push.add_argument("--payload", default=None, help="Path to an APNs JSON payload.")
    push.add_argument("--history", action="store_true", help="Show sent notifications instead.")
    push.set_defaults(handler=_cmd_push)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run one command; exits with its status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    service = SimulatorService(Path(args.root) if args.root else None, background_sizes=False)
    try:
        status = args.handler(service, args)
    except InventoryError as exc:
        raise SystemExit(str(exc)) from exc
    finally:
        service.close()
    if status:
        raise SystemExit(status)


if __name__ == "__main__":
    main()
