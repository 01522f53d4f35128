"""Record extraction from the HTML table embedded in each feature description."""

from __future__ import annotations

import copy
import json
import logging
import re
from collections import Counter
from typing import Any, Iterable

from precompile.common.config_loader import Classification, RegionSettings
from precompile.common.constants import LAST_EVENT_KEY, PHASE_KEY, SUBSTANCE_KEY
from precompile.common.fs import read_json
from precompile.common.geometry import center_point, has_coordinates
from precompile.common.logging import log_event
from precompile.common.slug import slugify

STAGE = "extract"
HEADER_ROWS = 2
LABEL_CELL_INDEX = 1

_DATE_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)


def extract_date_from_string(value: str | None) -> str:
    """Return the first ``D/M/YYYY`` date found in ``value`` as ``YYYY/MM/DD``.

    ``"100 - REQ PESQ/REQUERIMENTO PESQUISA PROTOCOLIZADO EM 14/07/2014"``
    gives ``"2014/07/14"``. No match gives an empty string.
    """
    if not value:
        return ""
    match = _DATE_RE.search(value)
    if match is None:
        return ""
    day, month, year = match.groups()
    return f"{year}/{int(month):02d}/{int(day):02d}"


def _parse_fragment(markup: str):
    from lxml import etree, html  # type: ignore[attr-defined]

    # lxml.html refuses unicode input that declares its own encoding.
    markup = _XML_DECLARATION_RE.sub("", markup, count=1)
    if not markup.strip():
        return None
    try:
        return html.fromstring(markup)
    except (etree.ParserError, ValueError):
        return None


def _row_cells(row) -> list[str]:
    return [cell.text_content().strip() for cell in row if cell.tag in ("td", "th")]


def parse_description(feature: dict[str, Any]) -> dict[str, Any] | None:
    """Build a record from one raw feature, or ``None`` when it holds no usable data."""
    properties = feature.get("properties") or {}
    description = properties.get("description") or ""
    if not description.strip():
        return None
    geometry = feature.get("geometry")
    if not has_coordinates(geometry):
        return None

    root = _parse_fragment(description)
    if root is None:
        return None

    attributes: dict[str, str] = {}
    modified = None
    for index, row in enumerate(root.iter("tr")):
        if index < HEADER_ROWS:
            continue
        cells = _row_cells(row)
        if len(cells) <= LABEL_CELL_INDEX or not cells[LABEL_CELL_INDEX]:
            continue
        key = slugify(cells[LABEL_CELL_INDEX])
        if not key:
            continue
        value = ""
        for position, text in enumerate(cells):
            if position != LABEL_CELL_INDEX and text:
                value = text
        attributes[key] = value
        if key == LAST_EVENT_KEY and modified is None:
            modified = extract_date_from_string(value)

    if not attributes:
        return None

    record: dict[str, Any] = {"geometry": copy.deepcopy(geometry)}
    record.update(attributes)
    record["modified"] = modified or ""
    return record


def classify_record(record: dict[str, Any], classification: Classification, tolerance: float) -> dict[str, Any]:
    classified = dict(record)
    classified["fase_slug"] = slugify(record.get(PHASE_KEY))
    classified["fase_id"] = classification.phases.get(classified["fase_slug"])
    classified["substance_slug"] = slugify(record.get(SUBSTANCE_KEY))
    geometry = dict(record["geometry"])
    geometry["centerPoint"] = center_point(geometry, tolerance)
    classified["geometry"] = geometry
    return classified


def sort_by_modified(records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    # Undated records carry "" and therefore land after every dated one.
    return sorted(records, key=lambda record: record.get("modified") or "", reverse=True)


def extract_records(
    collection: dict[str, Any],
    classification: Classification,
    logger: logging.Logger,
    *,
    region: str | None = None,
    tolerance: float = 0.4,
) -> list[dict[str, Any]]:
    features = collection.get("features") or []
    records: list[dict[str, Any]] = []
    unknown_phases: Counter[str] = Counter()
    unknown_substances: Counter[str] = Counter()
    skipped = 0

    for feature in features:
        record = parse_description(feature)
        if record is None:
            skipped += 1
            continue
        record = classify_record(record, classification, tolerance)
        if record["fase_id"] is None:
            unknown_phases[record["fase_slug"]] += 1
        if record["substance_slug"] and record["substance_slug"] not in classification.substance_icons:
            unknown_substances[record["substance_slug"]] += 1
        records.append(record)

    for slug, count in sorted(unknown_phases.items()):
        log_event(
            logger,
            f"missing key in phases table: {slug!r} ({count} records)",
            level=logging.WARNING,
            stage=STAGE,
            region=region,
            event="UNKNOWN_PHASE",
            status="warning",
        )
    for slug, count in sorted(unknown_substances.items()):
        log_event(
            logger,
            f"no icon for substance {slug!r} ({count} records)",
            level=logging.DEBUG,
            stage=STAGE,
            region=region,
            event="UNKNOWN_SUBSTANCE",
            status="ok",
        )

    if skipped:
        log_event(
            logger,
            f"{skipped} features without a readable description table were skipped",
            level=logging.WARNING,
            stage=STAGE,
            region=region,
            event="BAD_DESCRIPTION",
            status="warning",
            items_out=skipped,
        )

    undated = sum(1 for record in records if not record["modified"])
    if undated:
        log_event(
            logger,
            f"{undated} records without a last event date are sorted last",
            level=logging.WARNING,
            stage=STAGE,
            region=region,
            event="UNDATED_RECORDS",
            status="warning",
        )

    log_event(
        logger,
        "records extracted",
        stage=STAGE,
        region=region,
        event="EXTRACT_END",
        status="ok",
        items_in=len(features),
        items_out=len(records),
    )
    return sort_by_modified(records)


def load_cached_records(settings: RegionSettings) -> list[dict[str, Any]] | None:
    if not settings.all_projects_path.exists():
        return None
    try:
        payload = read_json(settings.all_projects_path)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get("projects"), list):
        return None
    return payload["projects"]
