"""Geometry helpers backed by shapely."""

from __future__ import annotations

from typing import Any

from shapely.errors import GEOSException, TopologicalError
from shapely.geometry import MultiPolygon, Polygon, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import polylabel

POLYGON_TYPES = ("Polygon", "MultiPolygon")


def has_coordinates(geometry: dict[str, Any] | None) -> bool:
    if not geometry:
        return False
    coordinates = geometry.get("coordinates")
    return isinstance(coordinates, list) and len(coordinates) > 0


def to_shape(geometry: dict[str, Any]) -> BaseGeometry:
    return shape({"type": geometry["type"], "coordinates": geometry["coordinates"]})


def largest_polygon(geom: BaseGeometry) -> Polygon | None:
    if isinstance(geom, Polygon):
        return geom
    if isinstance(geom, MultiPolygon):
        parts = [part for part in geom.geoms if not part.is_empty]
        if not parts:
            return None
        return max(parts, key=lambda part: part.area)
    return None


def center_point(geometry: dict[str, Any], tolerance: float) -> list[float] | None:
    """Pole of inaccessibility of the largest polygon part, as ``[lon, lat]``."""
    try:
        polygon = largest_polygon(to_shape(geometry))
    except (GEOSException, ValueError, TypeError, KeyError):
        return None
    if polygon is None or polygon.is_empty:
        return None
    try:
        point = polylabel(polygon, tolerance=tolerance)
    except (TopologicalError, GEOSException, ValueError):
        # Self-intersecting rings still need a marker position.
        point = polygon.centroid
    return [point.x, point.y]
