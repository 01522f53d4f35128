"""Run identifier helpers."""

from __future__ import annotations

import secrets
from datetime import datetime, timezone


def generate_run_id(now: datetime | None = None) -> str:
    """``run-<UTC timestamp>-<6 hex chars>``; sorts by start time."""
    started = now or datetime.now(tz=timezone.utc)
    return f"run-{started:%Y%m%dT%H%M%SZ}-{secrets.token_hex(3)}"
