import pytest

from precompile.common.geometry import center_point, has_coordinates, largest_polygon, to_shape

from conftest import square


def test_has_coordinates():
    assert has_coordinates({"type": "Polygon", "coordinates": square(0, 0, 1)})
    assert not has_coordinates({"type": "Polygon", "coordinates": []})
    assert not has_coordinates(None)


def test_center_point_of_square_is_inside():
    x, y = center_point({"type": "Polygon", "coordinates": square(0, 0, 10)}, 0.4)
    assert x == pytest.approx(5, abs=0.5)
    assert y == pytest.approx(5, abs=0.5)


def test_center_point_uses_largest_part():
    geometry = {"type": "MultiPolygon", "coordinates": [square(0, 0, 1), square(100, 100, 10)]}
    x, y = center_point(geometry, 0.4)
    assert 100 < x < 110
    assert 100 < y < 110


def test_center_point_ignores_extra_geometry_keys():
    geometry = {"type": "Polygon", "coordinates": square(0, 0, 2), "centerPoint": [9, 9]}
    assert center_point(geometry, 0.4) is not None


def test_center_point_without_polygon_is_none():
    assert center_point({"type": "Point", "coordinates": [1, 2]}, 0.4) is None
    assert center_point({"type": "Polygon"}, 0.4) is None


def test_largest_polygon_of_point_is_none():
    assert largest_polygon(to_shape({"type": "Point", "coordinates": [1, 2]})) is None
