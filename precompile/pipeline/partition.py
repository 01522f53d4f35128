"""Grouping of records by municipality, phase and substance, and highlight selection."""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Mapping, Sequence

from shapely.errors import GEOSException
from shapely.strtree import STRtree

from precompile.common.config_loader import Classification
from precompile.common.errors import ContractError
from precompile.common.fs import read_json
from precompile.common.geometry import to_shape
from precompile.common.logging import log_event
from precompile.common.slug import slugify

STAGE = "partition"
MUNICIPALITY_SEPARATOR = ", "

Buckets = dict[str, list[dict[str, Any]]]


def load_municipalities(path: Path) -> list[dict[str, Any]]:
    payload = read_json(path)
    if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
        raise ContractError(f"Municipality boundaries are not a feature collection: {path}")
    return [
        feature
        for feature in payload["features"]
        if (feature.get("properties") or {}).get("name") and feature.get("geometry")
    ]


def _record_shapes(records: Sequence[dict[str, Any]], logger: logging.Logger | None) -> list[tuple[int, Any]]:
    shapes = []
    for index, record in enumerate(records):
        try:
            geom = to_shape(record["geometry"])
        except (GEOSException, ValueError, TypeError, KeyError):
            if logger is not None:
                log_event(
                    logger,
                    f"skipping record {index} with unreadable geometry",
                    level=logging.WARNING,
                    stage=STAGE,
                    event="BAD_GEOMETRY",
                    status="warning",
                )
            continue
        if not geom.is_empty:
            shapes.append((index, geom))
    return shapes


def assign_municipalities(
    records: Sequence[dict[str, Any]],
    municipalities: Sequence[dict[str, Any]],
    logger: logging.Logger | None = None,
) -> tuple[list[dict[str, Any]], Buckets]:
    """Tag each record with the municipalities its polygon intersects.

    Returns new record dicts (input records are left untouched) in the same
    order, and buckets keyed by municipality slug. Names accumulate in
    municipality order; a record intersecting no municipality gets no
    ``municipality`` field and lands in no bucket.
    """
    shapes = _record_shapes(records, logger)
    tree = STRtree([geom for _, geom in shapes])
    names_by_record: dict[int, list[str]] = defaultdict(list)
    members_by_slug: dict[str, list[int]] = {}

    for municipality in municipalities:
        name = municipality["properties"]["name"]
        boundary = to_shape(municipality["geometry"])
        hits = sorted(shapes[position][0] for position in tree.query(boundary, predicate="intersects"))
        if not hits:
            continue
        slug = slugify(name)
        members = members_by_slug.setdefault(slug, [])
        for record_index in hits:
            names_by_record[record_index].append(name)
            members.append(record_index)

    tagged = []
    for index, record in enumerate(records):
        fresh = {key: value for key, value in record.items() if key != "municipality"}
        names = names_by_record.get(index)
        if names:
            fresh["municipality"] = MUNICIPALITY_SEPARATOR.join(names)
        tagged.append(fresh)

    buckets = {slug: [tagged[index] for index in indexes] for slug, indexes in members_by_slug.items()}
    return tagged, buckets


def group_by_phase(records: Sequence[dict[str, Any]], classification: Classification) -> Buckets:
    buckets: Buckets = {}
    for record in records:
        slug = record.get("fase_slug")
        if not slug:
            continue
        buckets.setdefault(slug, []).append(record)

    combined: list[dict[str, Any]] = []
    for slug in classification.advanced_phases:
        combined.extend(buckets.get(slug, []))
    buckets[classification.advanced_bucket] = combined
    return buckets


def group_by_substance(records: Sequence[dict[str, Any]]) -> Buckets:
    buckets: Buckets = {}
    for record in records:
        slug = record.get("substance_slug")
        if not slug:
            continue
        buckets.setdefault(slug, []).append(record)
    return buckets


def municipality_names(municipalities: Sequence[dict[str, Any]]) -> dict[str, str]:
    names: dict[str, str] = {}
    for municipality in municipalities:
        name = municipality["properties"]["name"]
        names.setdefault(slugify(name), name)
    return names


def matches_filters(record: Mapping[str, Any], filters: Mapping[str, frozenset[str]]) -> bool:
    return all(key in record and record[key] in allowed for key, allowed in filters.items())


def select_highlights(
    records: Sequence[dict[str, Any]], filters: Mapping[str, frozenset[str]]
) -> list[dict[str, Any]]:
    return [record for record in records if matches_filters(record, filters)]


def build_index(
    municipality_buckets: Buckets,
    phase_buckets: Buckets,
    substance_buckets: Buckets,
    classification: Classification,
    *,
    municipality_names: Mapping[str, str],
    total: int,
    highlights: int,
) -> dict[str, Any]:
    """Legend of the emitted bucket files, for the front-end filters."""
    municipalities = {
        slug: {"name": municipality_names.get(slug, slug), "count": len(bucket)}
        for slug, bucket in municipality_buckets.items()
    }

    phases = {
        slug: {"id": classification.phases.get(slug), "count": len(bucket)}
        for slug, bucket in phase_buckets.items()
        if bucket and slug != classification.advanced_bucket
    }
    substances = {
        slug: {"icon": classification.substance_icons.get(slug), "count": len(bucket)}
        for slug, bucket in substance_buckets.items()
    }
    return {
        "total": total,
        "highlights": highlights,
        "advanced_bucket": classification.advanced_bucket,
        "municipalities": municipalities,
        "phases": phases,
        "substances": substances,
    }
