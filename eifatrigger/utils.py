"""Helpers shared by the controller."""

from __future__ import annotations

import os
import socket
from typing import Any

from eifatrigger.api import Client, Condition, EifaTrigger

DEFAULT_ID = "eifa-trigger-controller-manager"
MAX_CONDITIONS = 10
_KNOWN_KINDS = frozenset({"ConfigMap", "Secret", "Deployment", "DaemonSet"})


def get_id() -> str:
    """Identity of this controller: POD_UID, else the host name, else a fixed name."""
    uid = os.environ.get("POD_UID")
    if uid is not None:
        return uid
    try:
        return socket.gethostname()
    except OSError:
        return DEFAULT_ID


def update_status(client: Client, et: EifaTrigger, cond: Condition | None) -> None:
    """Record a condition on the trigger, keeping the last ten, and save the status."""
    if cond is None:
        return
    et.status.conditions.append(cond)
    del et.status.conditions[:-MAX_CONDITIONS]
    et.status.last_message = cond.message
    client.update_status(et)


def detect_kind(obj: Any) -> str:
    """Kind of a watched or updated object, or "Unknown"."""
    kind = getattr(obj, "kind", None)
    return kind if kind in _KNOWN_KINDS else "Unknown"