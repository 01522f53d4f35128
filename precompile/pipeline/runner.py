"""Region update orchestration: fetch, unpack, convert, extract, partition."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from precompile.common.config_loader import Classification, RegionSettings
from precompile.common.errors import StageError
from precompile.common.fs import remove_path
from precompile.common.http import HttpClient
from precompile.common.logging import log_event
from precompile.common.models import StageResult
from precompile.pipeline.convert import convert_markup
from precompile.pipeline.export import plan_partition_files, projects_payload, write_files
from precompile.pipeline.extract import extract_records, load_cached_records
from precompile.pipeline.fetch import fetch_archive
from precompile.pipeline.partition import (
    assign_municipalities,
    build_index,
    group_by_phase,
    group_by_substance,
    load_municipalities,
    municipality_names,
    select_highlights,
)
from precompile.pipeline.unpack import unpack_archive


class RegionReport:
    def __init__(self, region: str, rebuild: str | None) -> None:
        self.region = region
        self.rebuild = rebuild
        self.stages: dict[str, str] = {}
        self.counts: dict[str, int] = {}
        self.warnings: list[str] = []
        self.error_code: str | None = None

    def record(self, result: StageResult) -> StageResult:
        self.stages[result.stage] = result.status.value
        if not result.ok:
            self.warnings.append(result.error_code or "UNKNOWN")
        return result

    def status(self) -> str:
        if self.error_code:
            return "error"
        if self.warnings:
            return "partial"
        return "ok"

    def to_dict(self) -> dict[str, Any]:
        return {
            "region": self.region,
            "rebuild": self.rebuild,
            "status": self.status(),
            "error_code": self.error_code,
            "warnings": list(self.warnings),
            "stages": dict(self.stages),
            "counts": dict(self.counts),
        }


def _stage_failed(report: RegionReport, result: StageResult) -> StageError:
    report.error_code = result.error_code
    return StageError(
        f"{result.stage} failed for region {report.region}: {result.error_code}",
        stage=result.stage,
        error_code=result.error_code,
    )


def _load_features(settings: RegionSettings, fetched: StageResult, report: RegionReport, logger: logging.Logger) -> dict:
    kml_path = None
    needs_unpack = fetched.recomputed or not (settings.raw_geo_path.exists() or settings.kml_path.exists())
    if needs_unpack:
        unpacked = report.record(unpack_archive(settings, logger))
        if not unpacked.ok:
            raise _stage_failed(report, unpacked)
        kml_path = unpacked.value

    converted = report.record(convert_markup(settings, logger, kml_path=kml_path))
    if not converted.ok:
        raise _stage_failed(report, converted)
    return converted.value


def _plan_partition(
    records: list[dict[str, Any]],
    settings: RegionSettings,
    classification: Classification,
    logger: logging.Logger,
) -> tuple[list[tuple[Path, Any]], int]:
    municipalities: list[dict[str, Any]] = []
    if settings.municipalities_path.exists():
        municipalities = load_municipalities(settings.municipalities_path)
    else:
        log_event(
            logger,
            f"municipality boundaries not found: {settings.municipalities_path}",
            level=logging.WARNING,
            stage="partition",
            region=settings.region,
            event="MUNICIPALITIES_MISSING",
            status="warning",
        )

    tagged, by_municipality = assign_municipalities(records, municipalities, logger)
    by_phase = group_by_phase(tagged, classification)
    by_substance = group_by_substance(tagged)
    highlights = select_highlights(tagged, classification.highlight_filters)
    index = build_index(
        by_municipality,
        by_phase,
        by_substance,
        classification,
        municipality_names=municipality_names(municipalities),
        total=len(tagged),
        highlights=len(highlights),
    )
    planned = plan_partition_files(
        settings.cache_dir,
        {"municipality": by_municipality, "phase": by_phase, "substance": by_substance},
        highlights=highlights,
        all_projects=tagged,
        index=index,
    )
    return planned, len(highlights)


def _partition(
    records: list[dict[str, Any]],
    settings: RegionSettings,
    classification: Classification,
    report: RegionReport,
    logger: logging.Logger,
    *,
    only_if_missing: bool = False,
) -> None:
    planned, highlight_count = _plan_partition(records, settings, classification, logger)
    report.counts["highlights"] = highlight_count
    missing = [path for path, _ in planned if not path.exists()]
    if only_if_missing and not missing:
        report.stages["partition"] = "cached"
        return
    if only_if_missing:
        log_event(
            logger,
            f"{len(missing)} partition files missing, rewriting",
            level=logging.WARNING,
            stage="partition",
            region=settings.region,
            event="PARTITION_INCOMPLETE",
            status="warning",
            items_out=len(missing),
        )

    written = write_files(planned)
    report.stages["partition"] = "recomputed"
    report.counts["files_written"] = len(written)
    log_event(
        logger,
        "partition files written",
        stage="partition",
        region=settings.region,
        event="PARTITION_END",
        status="ok",
        items_in=len(records),
        items_out=len(written),
    )


def rebuild_highlights(
    settings: RegionSettings,
    classification: Classification,
    logger: logging.Logger,
    report: RegionReport | None = None,
) -> dict[str, Any]:
    report = report or RegionReport(settings.region, "highlights")
    records = load_cached_records(settings)
    if records is None:
        log_event(
            logger,
            f"cannot rebuild highlights without {settings.all_projects_path}",
            level=logging.ERROR,
            stage="partition",
            region=settings.region,
            event="HIGHLIGHTS_FAIL",
            status="error",
            error_code="RECORDS_MISSING",
        )
        raise _stage_failed(report, report.record(StageResult.failed("extract", "RECORDS_MISSING")))

    highlights = select_highlights(records, classification.highlight_filters)
    written = write_files([(settings.highlights_path, projects_payload(highlights))])
    report.stages["extract"] = "cached"
    report.stages["partition"] = "recomputed"
    report.counts.update(records=len(records), highlights=len(highlights), files_written=len(written))
    log_event(
        logger,
        "highlights rebuilt",
        stage="partition",
        region=settings.region,
        event="HIGHLIGHTS_END",
        status="ok",
        items_in=len(records),
        items_out=len(highlights),
    )
    return report.to_dict()


def update_region(
    settings: RegionSettings,
    classification: Classification,
    client: HttpClient,
    logger: logging.Logger,
    *,
    rebuild: str | None = None,
) -> dict[str, Any]:
    """Bring the region cache up to date and return a report of what ran.

    ``rebuild`` is ``None`` for an incremental update, ``"cache"`` to rederive
    the cache from the local archive, ``"everything"`` to also discard the
    archive, or ``"highlights"`` to only rewrite ``highlights.json``.
    Raises ``StageError`` when a stage leaves no usable data behind.
    """
    report = RegionReport(settings.region, rebuild)
    if rebuild == "highlights":
        return rebuild_highlights(settings, classification, logger, report)
    if rebuild in ("cache", "everything"):
        remove_path(settings.cache_dir)
    if rebuild == "everything":
        remove_path(settings.input_dir)

    fetched = report.record(fetch_archive(settings, client, logger))

    records = None if fetched.recomputed else load_cached_records(settings)
    if records is not None:
        report.record(StageResult.cached("extract"))
        report.counts["records"] = len(records)
        _partition(records, settings, classification, report, logger, only_if_missing=True)
        return report.to_dict()

    collection = _load_features(settings, fetched, report, logger)
    report.counts["features"] = len(collection["features"])
    records = extract_records(
        collection,
        classification,
        logger,
        region=settings.region,
        tolerance=settings.center_point_tolerance,
    )
    report.record(StageResult.rebuilt("extract"))
    report.counts["records"] = len(records)

    _partition(records, settings, classification, report, logger)
    return report.to_dict()
