import pytest

from lode.engine.geometry import (
    anchor,
    bbox,
    degrees_per_pixel,
    distance_to_segment,
    fit_extent,
    geometry_contains,
    point_in_polygon,
)

SQUARE = [[-74, 45], [-73, 45], [-73, 46], [-74, 46], [-74, 45]]
HOLE = [[-73.8, 45.2], [-73.2, 45.2], [-73.2, 45.8], [-73.8, 45.8], [-73.8, 45.2]]


class TestContainment:
    def test_point_in_polygon_with_hole(self):
        assert point_in_polygon(-73.9, 45.5, [SQUARE, HOLE])
        assert not point_in_polygon(-73.5, 45.5, [SQUARE, HOLE])
        assert not point_in_polygon(-72.5, 45.5, [SQUARE, HOLE])

    def test_multipolygon(self):
        geometry = {
            "type": "MultiPolygon",
            "coordinates": [[SQUARE], [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]]],
        }
        assert geometry_contains(geometry, 0.5, 0.5, 0)
        assert geometry_contains(geometry, -73.5, 45.5, 0)
        assert not geometry_contains(geometry, 5, 5, 0)

    def test_points_and_lines_use_tolerance(self):
        point = {"type": "Point", "coordinates": [-73.5, 45.5]}
        line = {"type": "LineString", "coordinates": [[0, 0], [10, 0]]}

        assert geometry_contains(point, -73.49, 45.5, 0.02)
        assert not geometry_contains(point, -73.4, 45.5, 0.02)
        assert geometry_contains(line, 5, 0.05, 0.1)
        assert not geometry_contains(line, 5, 1, 0.1)

    def test_geometry_collection(self):
        geometry = {
            "type": "GeometryCollection",
            "geometries": [{"type": "Point", "coordinates": [1, 1]}],
        }
        assert geometry_contains(geometry, 1, 1, 0.001)

    @pytest.mark.parametrize("geometry", [None, {}, {"type": "Unknown", "coordinates": []}])
    def test_missing_geometry_never_hits(self, geometry):
        assert not geometry_contains(geometry, 0, 0, 1)

    def test_distance_to_segment(self):
        assert distance_to_segment(5, 3, (0, 0), (10, 0)) == pytest.approx(3)
        assert distance_to_segment(13, 4, (0, 0), (10, 0)) == pytest.approx(5)
        assert distance_to_segment(3, 4, (0, 0), (0, 0)) == pytest.approx(5)


class TestAnchors:
    def test_bbox_and_anchor(self):
        polygon = {"type": "Polygon", "coordinates": [SQUARE]}

        assert bbox(polygon) == (-74, 45, -73, 46)
        assert anchor(polygon) == (-73.5, 45.5)

    def test_anchor_of_point_is_the_point(self):
        assert anchor({"type": "Point", "coordinates": [-73.5, 45.5, 12]}) == (-73.5, 45.5)

    def test_empty_geometry_has_no_anchor(self):
        assert anchor({"type": "Polygon", "coordinates": []}) is None


class TestCamera:
    def test_degrees_per_pixel(self):
        assert degrees_per_pixel(0) == pytest.approx(360 / 512)
        assert degrees_per_pixel(1) == pytest.approx(degrees_per_pixel(0) / 2)

    def test_fit_extent_centers_and_zooms(self):
        (lng, lat), zoom = fit_extent(((-74, 45), (-73, 46)), 1000, 600, padding=30)

        assert lng == pytest.approx(-73.5)
        assert 45.4 < lat < 45.6
        assert 7.5 < zoom < 8.5

    def test_padding_zooms_out(self):
        _, tight = fit_extent(((-74, 45), (-73, 46)), 1000, 600)
        _, padded = fit_extent(((-74, 45), (-73, 46)), 1000, 600, padding=100)

        assert padded < tight

    def test_zoom_is_clamped(self):
        _, zoom = fit_extent(((-73.5, 45.5), (-73.5, 45.5)), 1000, 600)
        assert zoom == 22.0

        _, zoom = fit_extent(((-180, -85), (180, 85)), 100, 100)
        assert zoom == 0.0
