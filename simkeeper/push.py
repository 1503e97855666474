"""Send a test push notification to a simulator app via ``simctl``.

One-shot: write the payload to a temp file, invoke the external tool, record
the outcome in the per-(device, app) history.
"""

from __future__ import annotations

import json
import os
import subprocess
import tempfile
from dataclasses import dataclass

from .runtime import config

DEFAULT_PAYLOAD = {"aps": {"alert": {"title": "Test", "body": "Hello from simkeeper"}, "sound": "default"}}


@dataclass(frozen=True)
class PushOutcome:
    succeeded: bool
    output: str


def default_payload() -> str:
    return json.dumps(DEFAULT_PAYLOAD, indent=2)


def send_push(
    device_id: str,
    bundle_identifier: str,
    payload: str,
    *,
    timeout_seconds: float = 30.0,
) -> PushOutcome:
    """Deliver ``payload`` (APNs JSON text) and append the result to history."""
    try:
        json.loads(payload)
    except ValueError as exc:
        return PushOutcome(succeeded=False, output=f"invalid payload JSON: {exc}")

    fd, payload_path = tempfile.mkstemp(prefix="simkeeper-push-", suffix=".apns")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
        try:
            proc = subprocess.run(
                ["xcrun", "simctl", "push", device_id, bundle_identifier, payload_path],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=timeout_seconds,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            outcome = PushOutcome(succeeded=False, output=str(exc))
        else:
            outcome = PushOutcome(succeeded=proc.returncode == 0, output=proc.stdout.strip())
    finally:
        try:
            os.unlink(payload_path)
        except OSError:
            pass

    config.append_push_history(
        device_id,
        bundle_identifier,
        payload,
        succeeded=outcome.succeeded,
        output=outcome.output,
    )
    return outcome


def push_history(device_id: str, bundle_identifier: str) -> list[dict[str, object]]:
    """History for one device/app pair, newest first."""
    return config.load_push_history(device_id, bundle_identifier)


__all__ = [
    "DEFAULT_PAYLOAD",
    "PushOutcome",
    "default_payload",
    "send_push",
    "push_history",
]
