"""KML to GeoJSON conversion with a cached result."""

from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import TYPE_CHECKING, Any

from precompile.common.config_loader import RegionSettings
from precompile.common.fs import read_json, write_json
from precompile.common.logging import log_event
from precompile.common.models import StageResult

if TYPE_CHECKING:
    from lxml.etree import _Element

STAGE = "convert"


def parse_coordinates_text(text: str) -> list[list[float]]:
    """Parse a KML ``<coordinates>`` string into ``[lon, lat(, alt)]`` positions."""
    positions: list[list[float]] = []
    for token in text.split():
        parts = [part for part in token.split(",") if part != ""]
        if len(parts) < 2:
            continue
        positions.append([float(part) for part in parts[:3]])
    return positions


def _ring(boundary: _Element | None) -> list[list[float]]:
    if boundary is None or not boundary.text:
        return []
    return parse_coordinates_text(boundary.text)


def _polygon_rings(polygon: _Element) -> list[list[list[float]]]:
    exterior = _ring(polygon.find("{*}outerBoundaryIs/{*}LinearRing/{*}coordinates"))
    if not exterior:
        return []
    rings = [exterior]
    for inner in polygon.findall("{*}innerBoundaryIs/{*}LinearRing/{*}coordinates"):
        ring = _ring(inner)
        if ring:
            rings.append(ring)
    return rings


def _placemark_geometry(placemark: _Element) -> dict[str, Any] | None:
    polygons = [rings for rings in (_polygon_rings(p) for p in placemark.iter("{*}Polygon")) if rings]
    if not polygons:
        return None
    if len(polygons) == 1:
        return {"type": "Polygon", "coordinates": polygons[0]}
    return {"type": "MultiPolygon", "coordinates": polygons}


def _element_markup(element: _Element | None) -> str:
    from lxml import etree  # type: ignore[attr-defined]

    if element is None:
        return ""
    parts = [element.text or ""]
    for child in element:
        parts.append(etree.tostring(child, encoding="unicode", with_tail=True))
    return "".join(parts).strip()


def _extended_data(placemark: _Element) -> dict[str, str]:
    data: dict[str, str] = {}
    for item in placemark.findall("{*}ExtendedData/{*}Data"):
        name = item.get("name")
        value = item.find("{*}value")
        if name and value is not None:
            data[name] = (value.text or "").strip()
    for item in placemark.findall("{*}ExtendedData/{*}SchemaData/{*}SimpleData"):
        name = item.get("name")
        if name:
            data[name] = (item.text or "").strip()
    return data


def placemark_to_feature(placemark: _Element) -> dict[str, Any] | None:
    geometry = _placemark_geometry(placemark)
    if geometry is None:
        return None
    properties: dict[str, Any] = _extended_data(placemark)
    name = placemark.find("{*}name")
    if name is not None:
        properties["name"] = (name.text or "").strip()
    properties["description"] = _element_markup(placemark.find("{*}description"))
    return {"type": "Feature", "geometry": geometry, "properties": properties}


def kml_to_geojson(kml_path: Path) -> dict[str, Any]:
    from lxml import etree  # type: ignore[attr-defined]

    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)
    root = etree.parse(str(kml_path), parser=parser).getroot()
    features = []
    for placemark in root.iter("{*}Placemark"):
        feature = placemark_to_feature(placemark)
        if feature is not None:
            features.append(feature)
    return {"type": "FeatureCollection", "features": features}


def cap_features(collection: dict[str, Any], cap: int, rng: random.Random | None = None) -> dict[str, Any]:
    """Keep ``cap`` uniformly chosen features; used to debug on a small sample."""
    if cap <= 0 or len(collection["features"]) <= cap:
        return collection
    features = list(collection["features"])
    (rng or random.Random()).shuffle(features)
    return {**collection, "features": features[:cap]}


def _load_cached(settings: RegionSettings, logger: logging.Logger) -> dict[str, Any] | None:
    if not settings.raw_geo_path.exists():
        return None
    try:
        cached = read_json(settings.raw_geo_path)
    except json.JSONDecodeError:
        cached = None
    if not isinstance(cached, dict) or "features" not in cached:
        log_event(
            logger,
            f"ignoring unreadable cache {settings.raw_geo_path}",
            level=logging.WARNING,
            stage=STAGE,
            region=settings.region,
            event="CACHE_INVALID",
            status="warning",
        )
        return None
    return cached


def convert_markup(
    settings: RegionSettings,
    logger: logging.Logger,
    *,
    kml_path: Path | None = None,
    rng: random.Random | None = None,
) -> StageResult:
    cached = _load_cached(settings, logger)
    if cached is not None:
        log_event(
            logger,
            "using cached feature collection",
            stage=STAGE,
            region=settings.region,
            event="CACHE_HIT",
            status="ok",
            items_out=len(cached["features"]),
        )
        return StageResult.cached(STAGE, cached)

    from lxml import etree  # type: ignore[attr-defined]

    source = kml_path or settings.kml_path
    if not source.exists():
        log_event(
            logger,
            f"markup not found: {source}",
            level=logging.ERROR,
            stage=STAGE,
            region=settings.region,
            event="CONVERT_FAIL",
            status="error",
            error_code="MARKUP_MISSING",
        )
        return StageResult.failed(STAGE, "MARKUP_MISSING")

    try:
        converted = kml_to_geojson(source)
    except (etree.XMLSyntaxError, OSError, ValueError) as exc:
        log_event(
            logger,
            f"failed to convert {source}: {exc}",
            level=logging.ERROR,
            stage=STAGE,
            region=settings.region,
            event="CONVERT_FAIL",
            status="error",
            error_code="MARKUP_INVALID",
        )
        return StageResult.failed(STAGE, "MARKUP_INVALID")

    total = len(converted["features"])
    converted = cap_features(converted, settings.debug_cap_items, rng=rng)
    write_json(settings.raw_geo_path, converted)
    log_event(
        logger,
        "markup converted",
        stage=STAGE,
        region=settings.region,
        event="CONVERT_END",
        status="ok",
        items_in=total,
        items_out=len(converted["features"]),
    )
    return StageResult.rebuilt(STAGE, converted)
