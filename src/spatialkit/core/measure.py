"""
Area and perimeter measurement.

Planar areas come from the shoelace formula in the collection's native
units and are scaled by a pure unit factor. Geodesic areas of lon/lat
polygons are computed on the WGS84 ellipsoid through ``pyproj.Geod``.
Great-circle distances live in ``spatialkit.core.distance``.
"""

from __future__ import annotations

from functools import partial
from typing import Optional

from spatialkit.core.batch import ItemResult, run_batch
from spatialkit.core.crs import is_geographic, linear_unit_factor
from spatialkit.core.distance import validate_lonlat
from spatialkit.core.features import FeatureCollection
from spatialkit.core.geometry import (
    Geometry,
    MultiPolygon,
    Polygon,
    euclidean_distance,
    geometry_area,
    geometry_perimeter,
)
from spatialkit.errors import DegenerateGeometryError

try:
    from pyproj import Geod
    HAS_PYPROJ = True
except ImportError:
    HAS_PYPROJ = False
    Geod = None


# Square metres per unit
AREA_UNITS = {
    "m2": 1.0,
    "km2": 1_000_000.0,
    "ha": 10_000.0,
    "acre": 4046.8564224,
    "mi2": 2_589_988.110336,
    "ft2": 0.09290304,
}

AREA_METHODS = ("auto", "planar", "geodesic")


def area_factor(source_units: str, target_units: str) -> float:
    """
    Multiplier converting an area from ``source_units`` to ``target_units``.

    Examples
    --------
    >>> area_factor("m2", "km2")
    1e-06
    """
    for units in (source_units, target_units):
        if units not in AREA_UNITS:
            raise ValueError(f"Unknown area units '{units}'. Available: {', '.join(AREA_UNITS)}")
    return AREA_UNITS[source_units] / AREA_UNITS[target_units]


def area(geometry: Geometry, units: str = "m2", source_units: str = "m2") -> float:
    """
    Planar polygon area converted to ``units``.

    Parameters
    ----------
    geometry : Polygon or MultiPolygon
        Polygon in a projected CRS.
    units : str, optional
        Output units (m2, km2, ha, acre, mi2, ft2). Default m2.
    source_units : str, optional
        Units of the squared coordinate values. Default m2.

    Raises
    ------
    DegenerateGeometryError
        If a ring encloses zero area.

    Examples
    --------
    >>> square = Polygon([(0, 0), (0, 1000), (1000, 1000), (1000, 0), (0, 0)])
    >>> area(square, units="km2")
    1.0
    """
    return geometry_area(geometry) * area_factor(source_units, units)


def perimeter(geometry: Geometry, distance=euclidean_distance) -> float:
    """Ring-length sum using ``distance`` (planar by default)."""
    return geometry_perimeter(geometry, distance)


def geodesic_area(geometry: Geometry, units: str = "m2", ellps: str = "WGS84") -> float:
    """
    Ellipsoidal area of a lon/lat polygon.

    Raises
    ------
    InvalidCoordinateError
        If a vertex is outside geographic ranges.
    DegenerateGeometryError
        If a ring encloses zero area.
    """
    if not HAS_PYPROJ:
        raise ImportError("pyproj is required for geodesic areas. Install with: pip install pyproj")
    if isinstance(geometry, Polygon):
        polygons = (geometry,)
    elif isinstance(geometry, MultiPolygon):
        polygons = geometry.polygons
    else:
        raise DegenerateGeometryError(f"{type(geometry).__name__} has no area")

    geod = Geod(ellps=ellps)

    def ring_m2(ring) -> float:
        lons = [p.x for p in ring]
        lats = [p.y for p in ring]
        validate_lonlat(lons, lats)
        ring_area, _ = geod.polygon_area_perimeter(lons, lats)
        if ring_area == 0.0:
            raise DegenerateGeometryError("Ring encloses zero area")
        return abs(ring_area)

    total = 0.0
    for polygon in polygons:
        total += ring_m2(polygon.outer) - sum(ring_m2(h) for h in polygon.holes)
    return abs(total) * area_factor("m2", units)


def _planar_area_m2(geometry: Geometry, scale: float, units: str) -> float:
    return geometry_area(geometry) * scale * area_factor("m2", units)


def collection_areas(
    fc: FeatureCollection,
    units: str = "m2",
    method: str = "auto",
    on_error: str = "raise",
    n_workers: Optional[int] = None,
) -> list[ItemResult]:
    """
    Area of every polygon in a collection.

    Parameters
    ----------
    fc : FeatureCollection
        Polygon collection with a CRS.
    units : str, optional
        Output area units. Default m2.
    method : {'auto', 'planar', 'geodesic'}
        'auto' uses geodesic areas for geographic CRSs and planar areas
        (scaled by the CRS linear unit) otherwise.
    on_error : {'raise', 'collect'}
        Abort on the first degenerate polygon, or record per-item errors.
    n_workers : int, optional
        Worker processes for large collections.

    Returns
    -------
    list[ItemResult]
        One result per feature, in collection order.
    """
    if method not in AREA_METHODS:
        raise ValueError(f"method must be one of {AREA_METHODS}, got '{method}'")
    if fc.geometry_type == "Point":
        raise TypeError("Area requires a polygon collection")
    area_factor("m2", units)

    if method == "auto":
        if fc.crs is None:
            raise ValueError("Collection has no CRS; pass method='planar' or 'geodesic' explicitly")
        method = "geodesic" if is_geographic(fc.crs) else "planar"

    if method == "geodesic":
        func = partial(geodesic_area, units=units)
    else:
        scale = linear_unit_factor(fc.crs) ** 2 if fc.crs is not None else 1.0
        func = partial(_planar_area_m2, scale=scale, units=units)

    return run_batch(fc.geometries, func, on_error=on_error, n_workers=n_workers)


def add_area_column(
    fc: FeatureCollection,
    name: str = "area",
    units: str = "m2",
    method: str = "auto",
    on_error: str = "raise",
) -> FeatureCollection:
    """
    New collection with a polygon area column.

    With ``on_error='collect'``, degenerate polygons get a missing value
    instead of aborting.

    Examples
    --------
    >>> neighborhoods = add_area_column(neighborhoods, "area_mi2", units="mi2")
    """
    results = collection_areas(fc, units=units, method=method, on_error=on_error)
    return fc.with_column(name, [r.value if r.ok else None for r in results], float)


__all__ = [
    "AREA_UNITS",
    "AREA_METHODS",
    "area_factor",
    "area",
    "perimeter",
    "geodesic_area",
    "collection_areas",
    "add_area_column",
]
