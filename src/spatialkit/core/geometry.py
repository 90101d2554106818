"""
Geometry primitives and planar predicates.

Provides immutable Point, Ring, Polygon and MultiPolygon types together
with point-in-polygon tests, shoelace areas and perimeters.

Boundary convention
-------------------
A point lying on a ring edge or vertex (within ``BOUNDARY_TOLERANCE``)
counts as inside that ring. For polygons with holes, a point on a hole's
boundary is on the polygon's boundary and is therefore inside the polygon.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Sequence, Union

from spatialkit.errors import DegenerateGeometryError, InvalidCoordinateError


# Distance from an edge under which a point is treated as on the boundary
BOUNDARY_TOLERANCE = 1e-12


@dataclass(frozen=True)
class Point:
    """
    A coordinate pair.

    ``x`` is longitude or easting, ``y`` is latitude or northing, depending
    on the CRS of the collection holding the point.
    """

    x: float
    y: float

    def __post_init__(self):
        x = float(self.x)
        y = float(self.y)
        if not (math.isfinite(x) and math.isfinite(y)):
            raise InvalidCoordinateError(f"Point coordinates must be finite, got ({x}, {y})")
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y

    def bounds(self) -> "BoundingBox":
        return BoundingBox(self.x, self.y, self.x, self.y)


def _as_point(value: Union[Point, Sequence[float]]) -> Point:
    if isinstance(value, Point):
        return value
    x, y = value
    return Point(x, y)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned extent of a geometry or collection."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def of_points(cls, points: Iterable[Point]) -> "BoundingBox":
        xs = []
        ys = []
        for p in points:
            xs.append(p.x)
            ys.append(p.y)
        if not xs:
            raise DegenerateGeometryError("Cannot compute bounds of an empty point set")
        return cls(min(xs), min(ys), max(xs), max(ys))

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point:
        return Point((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    def contains_point(self, point: Point) -> bool:
        """Inclusive containment test."""
        return self.min_x <= point.x <= self.max_x and self.min_y <= point.y <= self.max_y

    def intersects(self, other: "BoundingBox") -> bool:
        return not (
            other.min_x > self.max_x
            or other.max_x < self.min_x
            or other.min_y > self.max_y
            or other.max_y < self.min_y
        )

    def union(self, other: "BoundingBox") -> "BoundingBox":
        return BoundingBox(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


class Ring:
    """
    Closed sequence of points describing a polygon boundary or hole.

    The first and last points must be equal, the ring must hold at least
    four points and no two consecutive points may coincide.

    Parameters
    ----------
    coords : iterable of Point or (x, y)
        Closed coordinate sequence.

    Raises
    ------
    DegenerateGeometryError
        If the ring is too short, open, or has a zero-length segment.
    """

    __slots__ = ("_points",)

    def __init__(self, coords: Iterable[Union[Point, Sequence[float]]]):
        points = tuple(_as_point(c) for c in coords)
        if len(points) < 4:
            raise DegenerateGeometryError(
                f"Ring needs at least 4 points, got {len(points)}"
            )
        if points[0] != points[-1]:
            raise DegenerateGeometryError(
                f"Ring is not closed: first point {tuple(points[0])} "
                f"differs from last point {tuple(points[-1])}"
            )
        for i in range(len(points) - 1):
            if points[i] == points[i + 1]:
                raise DegenerateGeometryError(f"Ring has a zero-length segment at vertex {i}")
        self._points = points

    @classmethod
    def closed(cls, coords: Iterable[Union[Point, Sequence[float]]]) -> "Ring":
        """Build a ring from a coordinate sequence, closing it if needed."""
        points = [_as_point(c) for c in coords]
        if points and points[0] != points[-1]:
            points.append(points[0])
        return cls(points)

    @property
    def points(self) -> tuple[Point, ...]:
        return self._points

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self._points)

    def __getitem__(self, i):
        return self._points[i]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Ring):
            return NotImplemented
        return self._points == other._points

    def __hash__(self) -> int:
        return hash(self._points)

    def __repr__(self) -> str:
        return f"Ring({len(self._points)} points)"

    def segments(self) -> Iterator[tuple[Point, Point]]:
        return zip(self._points, self._points[1:])

    def coords(self) -> list[tuple[float, float]]:
        return [(p.x, p.y) for p in self._points]

    def bounds(self) -> BoundingBox:
        return BoundingBox.of_points(self._points)

    def reversed(self) -> "Ring":
        return Ring(self._points[::-1])

    def rotated(self, k: int) -> "Ring":
        """Same cyclic ring starting at vertex ``k``."""
        open_points = self._points[:-1]
        k %= len(open_points)
        start = open_points[k:] + open_points[:k]
        return Ring(start + (start[0],))

    @property
    def is_ccw(self) -> bool:
        """True when the ring winds counter-clockwise."""
        return _signed_area(self._points) > 0


class Polygon:
    """
    One outer ring plus zero or more holes.

    Every hole vertex must lie inside (or on) the outer ring.
    """

    __slots__ = ("_outer", "_holes")

    def __init__(self, outer, holes: Iterable = ()):
        self._outer = outer if isinstance(outer, Ring) else Ring(outer)
        self._holes = tuple(h if isinstance(h, Ring) else Ring(h) for h in holes)
        for i, hole in enumerate(self._holes):
            if not all(point_in_ring(p, self._outer) for p in hole):
                raise DegenerateGeometryError(f"Hole {i} is not inside the outer ring")

    @property
    def outer(self) -> Ring:
        return self._outer

    @property
    def holes(self) -> tuple[Ring, ...]:
        return self._holes

    @property
    def rings(self) -> tuple[Ring, ...]:
        return (self._outer,) + self._holes

    def bounds(self) -> BoundingBox:
        return self._outer.bounds()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Polygon):
            return NotImplemented
        return self._outer == other._outer and self._holes == other._holes

    def __hash__(self) -> int:
        return hash((self._outer, self._holes))

    def __repr__(self) -> str:
        return f"Polygon(outer={self._outer!r}, holes={len(self._holes)})"


class MultiPolygon:
    """
    Two or more polygons forming one feature.

    A single polygon is always a ``Polygon``; shapefile records carry no
    marker that could tell the two apart.
    """

    __slots__ = ("_polygons",)

    def __init__(self, polygons: Iterable):
        self._polygons = tuple(p if isinstance(p, Polygon) else Polygon(*p) for p in polygons)
        if len(self._polygons) < 2:
            raise DegenerateGeometryError(
                f"MultiPolygon needs at least two polygons, got {len(self._polygons)}; use Polygon"
            )

    @property
    def polygons(self) -> tuple[Polygon, ...]:
        return self._polygons

    @property
    def rings(self) -> tuple[Ring, ...]:
        return tuple(r for p in self._polygons for r in p.rings)

    def __len__(self) -> int:
        return len(self._polygons)

    def __iter__(self) -> Iterator[Polygon]:
        return iter(self._polygons)

    def bounds(self) -> BoundingBox:
        box = self._polygons[0].bounds()
        for polygon in self._polygons[1:]:
            box = box.union(polygon.bounds())
        return box

    def __eq__(self, other) -> bool:
        if not isinstance(other, MultiPolygon):
            return NotImplemented
        return self._polygons == other._polygons

    def __hash__(self) -> int:
        return hash(self._polygons)

    def __repr__(self) -> str:
        return f"MultiPolygon({len(self._polygons)} polygons)"


Areal = Union[Polygon, MultiPolygon]
Geometry = Union[Point, Polygon, MultiPolygon]
DistanceFunction = Callable[[Point, Point], float]


# =============================================================================
# PREDICATES
# =============================================================================

def _on_segment(x: float, y: float, a: Point, b: Point, tolerance: float) -> bool:
    dx = b.x - a.x
    dy = b.y - a.y
    cross = dx * (y - a.y) - dy * (x - a.x)
    if abs(cross) > tolerance * math.hypot(dx, dy):
        return False
    return (
        min(a.x, b.x) - tolerance <= x <= max(a.x, b.x) + tolerance
        and min(a.y, b.y) - tolerance <= y <= max(a.y, b.y) + tolerance
    )


def point_on_ring_boundary(point, ring: Ring, tolerance: float = BOUNDARY_TOLERANCE) -> bool:
    """Return True if the point lies on an edge or vertex of the ring."""
    point = _as_point(point)
    return any(_on_segment(point.x, point.y, a, b, tolerance) for a, b in ring.segments())


def point_in_ring(point, ring: Ring, tolerance: float = BOUNDARY_TOLERANCE) -> bool:
    """
    Even-odd (ray casting) point-in-ring test.

    Parameters
    ----------
    point : Point or (x, y)
        Point to classify.
    ring : Ring
        Closed ring.
    tolerance : float, optional
        Distance from an edge under which the point counts as on the
        boundary.

    Returns
    -------
    bool
        True if the point is inside the ring or on its boundary.

    Examples
    --------
    >>> square = Ring([(0, 0), (0, 1), (1, 1), (1, 0), (0, 0)])
    >>> point_in_ring((0.5, 0.5), square)
    True
    >>> point_in_ring((1, 0.5), square)  # on an edge
    True
    """
    point = _as_point(point)
    x, y = point.x, point.y
    inside = False
    for a, b in ring.segments():
        if _on_segment(x, y, a, b, tolerance):
            return True
        if (a.y > y) != (b.y > y):
            x_cross = a.x + (y - a.y) * (b.x - a.x) / (b.y - a.y)
            if x < x_cross:
                inside = not inside
    return inside


def point_in_polygon(point, polygon: Polygon, tolerance: float = BOUNDARY_TOLERANCE) -> bool:
    """Inside the outer ring and not strictly inside any hole."""
    point = _as_point(point)
    if not point_in_ring(point, polygon.outer, tolerance):
        return False
    for hole in polygon.holes:
        if point_in_ring(point, hole, tolerance) and not point_on_ring_boundary(point, hole, tolerance):
            return False
    return True


def point_in_geometry(point, geometry: Areal, tolerance: float = BOUNDARY_TOLERANCE) -> bool:
    """Containment test for a Polygon or any part of a MultiPolygon."""
    if isinstance(geometry, Polygon):
        return point_in_polygon(point, geometry, tolerance)
    if isinstance(geometry, MultiPolygon):
        return any(point_in_polygon(point, p, tolerance) for p in geometry.polygons)
    raise TypeError(f"Cannot test containment in {type(geometry).__name__}")


# =============================================================================
# MEASURES
# =============================================================================

def _signed_area(points: Sequence[Point]) -> float:
    # Shoelace sum relative to the first vertex to limit cancellation error
    x0, y0 = points[0].x, points[0].y
    total = 0.0
    for a, b in zip(points, points[1:]):
        total += (a.x - x0) * (b.y - y0) - (b.x - x0) * (a.y - y0)
    return total / 2.0


def ring_area(ring: Ring) -> float:
    """
    Signed shoelace area of a ring in its native units.

    Positive for counter-clockwise rings, negative for clockwise rings.

    Raises
    ------
    DegenerateGeometryError
        If the ring encloses zero area.
    """
    area = _signed_area(ring.points)
    if area == 0.0:
        raise DegenerateGeometryError("Ring encloses zero area")
    return area


def polygon_area(polygon: Polygon) -> float:
    """Outer ring area minus hole areas, as an absolute value."""
    area = abs(ring_area(polygon.outer))
    for hole in polygon.holes:
        area -= abs(ring_area(hole))
    return abs(area)


def geometry_area(geometry: Geometry) -> float:
    if isinstance(geometry, Polygon):
        return polygon_area(geometry)
    if isinstance(geometry, MultiPolygon):
        return sum(polygon_area(p) for p in geometry.polygons)
    raise DegenerateGeometryError(f"{type(geometry).__name__} has no area")


def euclidean_distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def ring_perimeter(ring: Ring, distance: DistanceFunction = euclidean_distance) -> float:
    """
    Sum of consecutive vertex distances.

    ``distance`` selects the metric: planar by default, or a geodesic
    function such as ``great_circle_distance`` bound to a radius.
    """
    return sum(distance(a, b) for a, b in ring.segments())


def geometry_perimeter(geometry: Geometry, distance: DistanceFunction = euclidean_distance) -> float:
    if isinstance(geometry, (Polygon, MultiPolygon)):
        return sum(ring_perimeter(r, distance) for r in geometry.rings)
    raise DegenerateGeometryError(f"{type(geometry).__name__} has no perimeter")


def geometry_bounds(geometry: Geometry) -> BoundingBox:
    return geometry.bounds()


def almost_equals(a: Geometry, b: Geometry, tolerance: float = 1e-9) -> bool:
    """Structural equality with coordinates compared within ``tolerance``."""
    if type(a) is not type(b):
        return False
    if isinstance(a, Point):
        return abs(a.x - b.x) <= tolerance and abs(a.y - b.y) <= tolerance
    if isinstance(a, MultiPolygon):
        return len(a) == len(b) and all(
            almost_equals(p, q, tolerance) for p, q in zip(a.polygons, b.polygons)
        )
    if len(a.rings) != len(b.rings):
        return False
    for ring_a, ring_b in zip(a.rings, b.rings):
        if len(ring_a) != len(ring_b):
            return False
        for p, q in zip(ring_a, ring_b):
            if abs(p.x - q.x) > tolerance or abs(p.y - q.y) > tolerance:
                return False
    return True


# =============================================================================
# SHAPELY INTEROP
# =============================================================================

def to_shapely(geometry: Geometry):
    """Convert to the equivalent shapely geometry."""
    from shapely import geometry as sg

    if isinstance(geometry, Point):
        return sg.Point(geometry.x, geometry.y)
    if isinstance(geometry, Polygon):
        return sg.Polygon(geometry.outer.coords(), [h.coords() for h in geometry.holes])
    if isinstance(geometry, MultiPolygon):
        return sg.MultiPolygon([to_shapely(p) for p in geometry.polygons])
    raise TypeError(f"Cannot convert {type(geometry).__name__} to shapely")


def from_shapely(geom) -> Geometry:
    """Convert a shapely Point, Polygon or MultiPolygon."""
    kind = geom.geom_type
    if kind == "Point":
        return Point(geom.x, geom.y)
    if kind == "Polygon":
        return Polygon(
            list(geom.exterior.coords),
            [list(interior.coords) for interior in geom.interiors],
        )
    if kind == "MultiPolygon":
        parts = [from_shapely(g) for g in geom.geoms]
        return parts[0] if len(parts) == 1 else MultiPolygon(parts)
    raise TypeError(f"Unsupported shapely geometry type: {kind}")


__all__ = [
    "BOUNDARY_TOLERANCE",
    "Point",
    "BoundingBox",
    "Ring",
    "Polygon",
    "MultiPolygon",
    "Areal",
    "Geometry",
    "point_on_ring_boundary",
    "point_in_ring",
    "point_in_polygon",
    "point_in_geometry",
    "ring_area",
    "polygon_area",
    "geometry_area",
    "euclidean_distance",
    "ring_perimeter",
    "geometry_perimeter",
    "geometry_bounds",
    "almost_equals",
    "to_shapely",
    "from_shapely",
]
