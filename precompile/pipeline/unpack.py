"""KMZ decompression."""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path

from precompile.common.config_loader import RegionSettings
from precompile.common.fs import ensure_dir
from precompile.common.logging import log_event
from precompile.common.models import StageResult

STAGE = "unpack"


def _clean_stale_files(settings: RegionSettings, member_names: list[str]) -> None:
    candidates = [settings.kml_path, *(settings.input_dir / name for name in settings.stale_assets)]
    candidates.extend(settings.input_dir / name for name in member_names)
    for path in candidates:
        if path.is_file() and path != settings.archive_path:
            path.unlink()


def _safe_members(archive: zipfile.ZipFile, target_dir: Path) -> list[zipfile.ZipInfo]:
    root = target_dir.resolve()
    members = []
    for member in archive.infolist():
        destination = (root / member.filename).resolve()
        if root != destination and root not in destination.parents:
            raise zipfile.BadZipFile(f"Member escapes extraction directory: {member.filename}")
        members.append(member)
    return members


def unpack_archive(settings: RegionSettings, logger: logging.Logger) -> StageResult:
    if not settings.archive_path.exists():
        log_event(
            logger,
            f"archive not found: {settings.archive_path}",
            level=logging.ERROR,
            stage=STAGE,
            region=settings.region,
            event="UNPACK_FAIL",
            status="error",
            error_code="ARCHIVE_MISSING",
        )
        return StageResult.failed(STAGE, "ARCHIVE_MISSING")

    ensure_dir(settings.input_dir)
    try:
        with zipfile.ZipFile(settings.archive_path) as archive:
            members = _safe_members(archive, settings.input_dir)
            names = [member.filename for member in members if not member.is_dir()]
            kml_names = [name for name in names if name.lower().endswith(".kml")]
            if not kml_names:
                raise zipfile.BadZipFile("Archive does not contain a KML document")
            _clean_stale_files(settings, names)
            archive.extractall(settings.input_dir, members=members)
    except (zipfile.BadZipFile, OSError) as exc:
        log_event(
            logger,
            f"failed to unzip {settings.archive_path}: {exc}",
            level=logging.ERROR,
            stage=STAGE,
            region=settings.region,
            event="UNPACK_FAIL",
            status="error",
            error_code="ARCHIVE_INVALID",
        )
        return StageResult.failed(STAGE, "ARCHIVE_INVALID")

    log_event(
        logger,
        "archive extracted",
        stage=STAGE,
        region=settings.region,
        event="UNPACK_END",
        status="ok",
        items_out=len(names),
    )
    if settings.kml_path.name in kml_names:
        return StageResult.rebuilt(STAGE, settings.kml_path)
    return StageResult.rebuilt(STAGE, settings.input_dir / kml_names[0])
