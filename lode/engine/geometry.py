"""
Planar geometry helpers for hit-testing GeoJSON features in lng/lat space.
"""

import math
from collections.abc import Iterable, Sequence
from typing import Any

Position = Sequence[float]
Ring = Sequence[Position]

TILE_SIZE = 512
MAX_ZOOM = 22.0


def point_in_ring(lng: float, lat: float, ring: Ring) -> bool:
    """Ray casting test; points on the boundary may fall either way."""
    inside = False
    n = len(ring)
    if n < 3:
        return False
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lng < x_cross:
                inside = not inside
        j = i
    return inside


def point_in_polygon(lng: float, lat: float, rings: Sequence[Ring]) -> bool:
    """First ring is the exterior, the others are holes."""
    if not rings or not point_in_ring(lng, lat, rings[0]):
        return False
    return not any(point_in_ring(lng, lat, hole) for hole in rings[1:])


def distance_to_segment(lng: float, lat: float, a: Position, b: Position) -> float:
    ax, ay = a[0], a[1]
    bx, by = b[0], b[1]
    dx, dy = bx - ax, by - ay
    if dx == 0 and dy == 0:
        return math.hypot(lng - ax, lat - ay)
    t = max(0.0, min(1.0, ((lng - ax) * dx + (lat - ay) * dy) / (dx * dx + dy * dy)))
    return math.hypot(lng - (ax + t * dx), lat - (ay + t * dy))


def geometry_contains(
    geometry: dict[str, Any] | None, lng: float, lat: float, tolerance: float
) -> bool:
    """True when the point hits the geometry (within ``tolerance`` degrees for points/lines)."""
    if not geometry:
        return False
    kind = geometry.get("type")
    coords = geometry.get("coordinates") or []

    if kind == "Polygon":
        return point_in_polygon(lng, lat, coords)
    if kind == "MultiPolygon":
        return any(point_in_polygon(lng, lat, polygon) for polygon in coords)
    if kind == "Point":
        return math.hypot(lng - coords[0], lat - coords[1]) <= tolerance
    if kind == "MultiPoint":
        return any(math.hypot(lng - p[0], lat - p[1]) <= tolerance for p in coords)
    if kind == "LineString":
        return _near_line(lng, lat, coords, tolerance)
    if kind == "MultiLineString":
        return any(_near_line(lng, lat, line, tolerance) for line in coords)
    if kind == "GeometryCollection":
        return any(
            geometry_contains(g, lng, lat, tolerance) for g in geometry.get("geometries", [])
        )
    return False


def _near_line(lng: float, lat: float, line: Sequence[Position], tolerance: float) -> bool:
    return any(
        distance_to_segment(lng, lat, a, b) <= tolerance for a, b in zip(line, line[1:])
    )


def iter_positions(geometry: dict[str, Any] | None) -> Iterable[Position]:
    """Every position of a geometry, whatever its nesting depth."""
    if not geometry:
        return
    if geometry.get("type") == "GeometryCollection":
        for g in geometry.get("geometries", []):
            yield from iter_positions(g)
        return

    def _walk(obj: Any) -> Iterable[Position]:
        if isinstance(obj, list | tuple) and obj and isinstance(obj[0], int | float):
            yield obj
        elif isinstance(obj, list | tuple):
            for item in obj:
                yield from _walk(item)

    yield from _walk(geometry.get("coordinates") or [])


def bbox(geometry: dict[str, Any] | None) -> tuple[float, float, float, float] | None:
    lngs, lats = [], []
    for position in iter_positions(geometry):
        lngs.append(position[0])
        lats.append(position[1])
    if not lngs:
        return None
    return min(lngs), min(lats), max(lngs), max(lats)


def anchor(geometry: dict[str, Any] | None) -> tuple[float, float] | None:
    """A representative lng/lat for a geometry: the point itself, or its bbox center."""
    if geometry and geometry.get("type") == "Point":
        lng, lat = geometry["coordinates"][:2]
        return lng, lat
    box = bbox(geometry)
    if box is None:
        return None
    return (box[0] + box[2]) / 2, (box[1] + box[3]) / 2


def degrees_per_pixel(zoom: float) -> float:
    return 360.0 / (TILE_SIZE * 2**zoom)


def _mercator_y(lat: float) -> float:
    lat = max(min(lat, 85.0511), -85.0511)
    return math.log(math.tan(math.pi / 4 + math.radians(lat) / 2))


def fit_extent(
    extent: Sequence[Position], width: int, height: int, padding: int = 0
) -> tuple[tuple[float, float], float]:
    """Center ``(lng, lat)`` and zoom showing ``extent`` in a ``width`` x ``height`` viewport."""
    (min_lng, min_lat), (max_lng, max_lat) = extent
    center_lng = (min_lng + max_lng) / 2
    y_center = (_mercator_y(min_lat) + _mercator_y(max_lat)) / 2
    center_lat = math.degrees(2 * math.atan(math.exp(y_center)) - math.pi / 2)

    usable_w = max(width - 2 * padding, 1)
    usable_h = max(height - 2 * padding, 1)
    lng_span = max(max_lng - min_lng, 1e-9)
    y_span = max(_mercator_y(max_lat) - _mercator_y(min_lat), 1e-9)

    zoom_x = math.log2(usable_w * 360.0 / (TILE_SIZE * lng_span))
    zoom_y = math.log2(usable_h * 2 * math.pi / (TILE_SIZE * y_span))
    zoom = max(0.0, min(zoom_x, zoom_y, MAX_ZOOM))
    return (center_lng, center_lat), zoom
