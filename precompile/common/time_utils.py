"""UTC-focused helpers for run metadata and cache ageing."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from pathlib import Path


def utc_timestamp_iso(epoch_seconds: float | None = None) -> str:
    if epoch_seconds is None:
        moment = datetime.now(tz=timezone.utc)
    else:
        moment = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds")


def file_age_seconds(path: Path, now: float | None = None) -> float:
    current = time.time() if now is None else now
    return current - path.stat().st_mtime


def is_older_than(path: Path, max_age_days: float, now: float | None = None) -> bool:
    return file_age_seconds(path, now=now) > max_age_days * 24 * 60 * 60
