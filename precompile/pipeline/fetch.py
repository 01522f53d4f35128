"""Conditional download of the regional SIGMINE archive."""

from __future__ import annotations

import logging
import time

from precompile.common.config_loader import RegionSettings
from precompile.common.errors import StageError
from precompile.common.fs import ensure_dir, remove_path
from precompile.common.http import HttpClient
from precompile.common.logging import log_event
from precompile.common.models import StageResult
from precompile.common.time_utils import is_older_than

STAGE = "fetch"


def archive_is_stale(settings: RegionSettings, now: float | None = None) -> bool:
    if not settings.archive_path.exists():
        return True
    return is_older_than(settings.archive_path, settings.age_limit_days, now=now)


def fetch_archive(
    settings: RegionSettings,
    client: HttpClient,
    logger: logging.Logger,
    *,
    now: float | None = None,
) -> StageResult:
    if not archive_is_stale(settings, now=now):
        log_event(logger, "local archive is fresh", stage=STAGE, region=settings.region, event="CACHE_HIT", status="ok")
        return StageResult.cached(STAGE, settings.archive_path)

    log_event(
        logger,
        f"downloading {settings.download_url}",
        stage=STAGE,
        region=settings.region,
        event="DOWNLOAD_START",
        status="ok",
    )
    # The previous archive stays in place until the new one is complete.
    staging_path = settings.input_dir.parent / f".{settings.region}-{settings.archive_path.name}.download"
    started = time.monotonic()
    try:
        size = client.download_file(settings.download_url, staging_path)
    except StageError as exc:
        staging_path.unlink(missing_ok=True)
        log_event(
            logger,
            f"download failed: {exc}",
            level=logging.ERROR,
            stage=STAGE,
            region=settings.region,
            event="DOWNLOAD_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return StageResult.failed(STAGE, exc.error_code)

    # A new archive invalidates everything derived from the previous one.
    for path in (settings.input_dir, settings.cache_dir):
        if remove_path(path):
            log_event(logger, f"purged {path}", stage=STAGE, region=settings.region, event="PURGE", status="ok")
    ensure_dir(settings.input_dir)
    staging_path.replace(settings.archive_path)

    log_event(
        logger,
        f"download completed ({size} bytes)",
        stage=STAGE,
        region=settings.region,
        event="DOWNLOAD_END",
        status="ok",
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    return StageResult.rebuilt(STAGE, settings.archive_path)
