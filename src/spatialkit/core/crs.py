"""
Coordinate Reference System (CRS) utilities.

Provides CRS descriptor normalization, the projection adapter interface
used to move collections between coordinate systems, and helpers for
choosing projected systems suitable for planar measurement.
"""

from __future__ import annotations

import re
import warnings
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterator, Optional, Union

import numpy as np

from spatialkit.core.geometry import Geometry, MultiPolygon, Point, Polygon, Ring
from spatialkit.errors import UnsupportedCRSError

if TYPE_CHECKING:
    from spatialkit.core.features import FeatureCollection

try:
    from pyproj import CRS, Transformer
    from pyproj.enums import WktVersion
    from pyproj.exceptions import CRSError
    HAS_PYPROJ = True
except ImportError:
    HAS_PYPROJ = False
    CRS = None
    Transformer = None


# Common CRS codes
WGS84 = "EPSG:4326"
WEB_MERCATOR = "EPSG:3857"

CRSLike = Union[str, int]

_AUTHORITY_CODE = re.compile(r"^(EPSG|ESRI)\s*:\s*(\d+)$", re.IGNORECASE)


def _check_pyproj() -> None:
    """Raise ImportError if pyproj is not available."""
    if not HAS_PYPROJ:
        raise ImportError(
            "pyproj is required for CRS transforms. "
            "Install with: pip install pyproj"
        )


def normalize_crs(descriptor: CRSLike) -> str:
    """
    Canonical string form of a CRS descriptor.

    Parameters
    ----------
    descriptor : str or int
        EPSG code (``4326``, ``"4326"``, ``"epsg:4326"``), ESRI code, or a
        proj4 string starting with ``+``. pyproj CRS objects are also
        accepted.

    Returns
    -------
    str
        ``"EPSG:<code>"``, ``"ESRI:<code>"`` or a whitespace-normalized
        proj4 string.

    Raises
    ------
    UnsupportedCRSError
        If the descriptor is not recognized.

    Examples
    --------
    >>> normalize_crs("epsg:4326")
    'EPSG:4326'
    >>> normalize_crs(" +proj=longlat  +datum=WGS84 ")
    '+proj=longlat +datum=WGS84'
    """
    if isinstance(descriptor, bool):
        raise UnsupportedCRSError(f"Unrecognized CRS descriptor: {descriptor!r}")
    if isinstance(descriptor, (int, np.integer)):
        if descriptor <= 0:
            raise UnsupportedCRSError(f"Invalid EPSG code: {descriptor}")
        return f"EPSG:{int(descriptor)}"
    if hasattr(descriptor, "to_epsg"):
        return crs_from_pyproj(descriptor)
    if not isinstance(descriptor, str):
        raise UnsupportedCRSError(f"Unrecognized CRS descriptor: {descriptor!r}")

    text = descriptor.strip()
    if text.isdigit() and int(text) > 0:
        return f"EPSG:{int(text)}"
    match = _AUTHORITY_CODE.match(text)
    if match:
        return f"{match.group(1).upper()}:{int(match.group(2))}"
    if text.startswith("+") and "=" in text:
        return " ".join(text.split())
    raise UnsupportedCRSError(f"Unrecognized CRS descriptor: {descriptor!r}")


def crs_matches(crs1: Optional[CRSLike], crs2: Optional[CRSLike]) -> bool:
    """
    Check whether two CRS descriptors are the same.

    Returns False if either descriptor is None.

    Examples
    --------
    >>> crs_matches("EPSG:4326", 4326)
    True
    """
    if crs1 is None or crs2 is None:
        return False
    return normalize_crs(crs1) == normalize_crs(crs2)


def crs_from_pyproj(crs) -> str:
    """Descriptor string for a pyproj CRS (EPSG code when one matches)."""
    epsg = crs.to_epsg()
    if epsg is not None:
        return f"EPSG:{epsg}"
    proj4 = crs.to_proj4()
    if not proj4:
        raise UnsupportedCRSError(f"CRS has no EPSG code or proj4 form: {crs.name}")
    return normalize_crs(proj4)


def parse_crs(descriptor: CRSLike) -> "CRS":
    """Parse a descriptor into a pyproj CRS."""
    _check_pyproj()
    text = normalize_crs(descriptor)
    try:
        return CRS.from_user_input(text)
    except CRSError as e:
        raise UnsupportedCRSError(f"Unrecognized CRS descriptor: {text!r} ({e})") from e


# =============================================================================
# PROJECTION ADAPTERS
# =============================================================================

def _geometry_points(geometry: Geometry) -> Iterator[Point]:
    if isinstance(geometry, Point):
        yield geometry
    else:
        for ring in geometry.rings:
            yield from ring


def _rebuild(geometry: Geometry, points: Iterator[Point]) -> Geometry:
    if isinstance(geometry, Point):
        return next(points)
    if isinstance(geometry, Polygon):
        outer = Ring([next(points) for _ in geometry.outer])
        holes = [Ring([next(points) for _ in hole]) for hole in geometry.holes]
        return Polygon(outer, holes)
    if isinstance(geometry, MultiPolygon):
        return MultiPolygon([_rebuild(p, points) for p in geometry.polygons])
    raise TypeError(f"Cannot transform {type(geometry).__name__}")


class ProjectionAdapter(ABC):
    """
    Coordinate transform capability between two CRS descriptors.

    Implementations only provide ``transform_coords``; geometry and
    collection handling is shared. Transforms are pure: inputs are never
    modified and new geometries are returned.
    """

    @abstractmethod
    def transform_coords(
        self,
        xs: np.ndarray,
        ys: np.ndarray,
        source_crs: CRSLike,
        target_crs: CRSLike,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Transform coordinate arrays from ``source_crs`` to ``target_crs``."""

    def _transform_many(self, geometries, source_crs, target_crs) -> list[Geometry]:
        points = [p for g in geometries for p in _geometry_points(g)]
        if not points:
            return []
        xs = np.fromiter((p.x for p in points), dtype=float, count=len(points))
        ys = np.fromiter((p.y for p in points), dtype=float, count=len(points))
        new_xs, new_ys = self.transform_coords(xs, ys, source_crs, target_crs)
        transformed = (Point(x, y) for x, y in zip(new_xs.tolist(), new_ys.tolist()))
        return [_rebuild(g, transformed) for g in geometries]

    def transform(self, geometry: Union[Geometry, Ring], source_crs: CRSLike, target_crs: CRSLike):
        """
        Transform a Point, Ring, Polygon or MultiPolygon.

        Raises
        ------
        UnsupportedCRSError
            If either descriptor is unrecognized.
        """
        if isinstance(geometry, Ring):
            return self.transform(Polygon(geometry), source_crs, target_crs).outer
        return self._transform_many([geometry], source_crs, target_crs)[0]

    def transform_collection(self, fc: "FeatureCollection", target_crs: CRSLike) -> "FeatureCollection":
        """
        Transform every geometry of a collection.

        Returns a new collection tagged with ``target_crs``; attributes are
        carried over unchanged.
        """
        if fc.crs is None:
            raise UnsupportedCRSError("Collection has no CRS; assign one before transforming")
        geometries = self._transform_many(fc.geometries, fc.crs, target_crs)
        return fc.with_geometries(geometries, normalize_crs(target_crs))


class IdentityProjection(ProjectionAdapter):
    """
    No-op adapter that validates descriptors and returns coordinates as-is.

    Useful in tests and when data is already in the target system.
    """

    def transform_coords(self, xs, ys, source_crs, target_crs):
        normalize_crs(source_crs)
        normalize_crs(target_crs)
        return np.asarray(xs, dtype=float), np.asarray(ys, dtype=float)


class PyprojProjection(ProjectionAdapter):
    """
    Adapter backed by ``pyproj.Transformer``.

    Coordinates are always handled in (x, y) = (lon, lat) / (easting,
    northing) order regardless of the authority's axis order.
    """

    def __init__(self):
        _check_pyproj()

    def transform_coords(self, xs, ys, source_crs, target_crs):
        source = parse_crs(source_crs)
        target = parse_crs(target_crs)
        xs = np.asarray(xs, dtype=float)
        ys = np.asarray(ys, dtype=float)
        if source == target:
            return xs, ys
        transformer = Transformer.from_crs(source, target, always_xy=True)
        new_xs, new_ys = transformer.transform(xs, ys)
        return np.asarray(new_xs, dtype=float), np.asarray(new_ys, dtype=float)


def default_adapter() -> ProjectionAdapter:
    return PyprojProjection()


# =============================================================================
# CRS HELPERS
# =============================================================================

def ensure_crs(
    fc: "FeatureCollection",
    target_crs: CRSLike = WGS84,
    allow_override: bool = False,
    adapter: Optional[ProjectionAdapter] = None,
) -> "FeatureCollection":
    """
    Ensure a FeatureCollection has the specified CRS.

    If the collection has a different CRS, it will be reprojected.
    If the collection has no CRS, either the target CRS will be assigned
    (if allow_override=True) or an error will be raised.

    Parameters
    ----------
    fc : FeatureCollection
        The collection to check/transform.
    target_crs : str, optional
        Target CRS as EPSG code or proj4 string. Default is WGS84 (EPSG:4326).
    allow_override : bool, optional
        If True and the collection has no CRS, assign the target CRS
        without reprojection. Default is False.
    adapter : ProjectionAdapter, optional
        Transform implementation. Default is ``PyprojProjection``.

    Returns
    -------
    FeatureCollection
        Collection with the target CRS. The input is never modified.

    Raises
    ------
    ValueError
        If the collection has no CRS and allow_override is False.

    Warnings
    --------
    Using ``allow_override=True`` assumes the coordinates are already in
    the target CRS. This can produce incorrect results if the coordinates
    are actually in a different CRS.

    Examples
    --------
    >>> fc = ensure_crs(fc, target_crs="EPSG:4326")
    >>> fc = ensure_crs(fc, target_crs="EPSG:32618")  # UTM Zone 18N
    """
    if fc.crs is None:
        if not allow_override:
            raise ValueError(
                "FeatureCollection has no CRS. Set allow_override=True to assign "
                f"{target_crs} without reprojection, or set CRS explicitly."
            )
        warnings.warn(
            f"FeatureCollection had no CRS. Assigned {target_crs} without reprojection.",
            UserWarning,
        )
        return fc.set_crs(target_crs)

    if crs_matches(fc.crs, target_crs):
        return fc

    adapter = adapter or default_adapter()
    return adapter.transform_collection(fc, target_crs)


def estimate_utm_zone(lon: float) -> int:
    """
    Estimate the appropriate UTM zone for a given longitude.

    Examples
    --------
    >>> estimate_utm_zone(-74.0)  # New York
    18
    >>> estimate_utm_zone(-122.4)  # San Francisco
    10
    """
    # UTM zones are 6 degrees wide, starting at -180
    zone = int((lon + 180) / 6) + 1
    return min(max(zone, 1), 60)


def get_utm_crs(lon: float, lat: float) -> str:
    """
    Get the WGS84 UTM CRS covering a location.

    Examples
    --------
    >>> get_utm_crs(-74.0, 40.7)  # NYC
    'EPSG:32618'
    >>> get_utm_crs(0.0, -34.0)  # Southern hemisphere
    'EPSG:32731'
    """
    zone = estimate_utm_zone(lon)
    prefix = "326" if lat >= 0 else "327"
    return f"EPSG:{prefix}{zone:02d}"


def is_geographic(crs: CRSLike) -> bool:
    """True for lon/lat systems."""
    return parse_crs(crs).is_geographic


def to_projected(
    fc: "FeatureCollection",
    utm_zone: Optional[int] = None,
    adapter: Optional[ProjectionAdapter] = None,
) -> "FeatureCollection":
    """
    Convert a collection to a UTM projection suited to planar measurement.

    The zone is chosen from the centre of the collection's WGS84 extent
    unless ``utm_zone`` is given.

    Examples
    --------
    >>> fc_utm = to_projected(fc)
    >>> fc_utm = to_projected(fc, utm_zone=18)
    """
    adapter = adapter or default_adapter()
    if fc.crs is None:
        raise ValueError("FeatureCollection has no CRS; cannot choose a projection")

    wgs84 = fc if crs_matches(fc.crs, WGS84) else adapter.transform_collection(fc, WGS84)
    center = wgs84.bounds().center

    if utm_zone is not None:
        prefix = "326" if center.y >= 0 else "327"
        target_crs = f"EPSG:{prefix}{utm_zone:02d}"
    else:
        target_crs = get_utm_crs(center.x, center.y)

    return adapter.transform_collection(fc, target_crs)


def get_crs_info(crs: Optional[CRSLike]) -> dict:
    """
    Describe a CRS descriptor.

    Returns
    -------
    dict
        - 'crs': normalized descriptor or None
        - 'epsg': EPSG code if available, else None
        - 'is_geographic': True if lat/lon coordinates
        - 'is_projected': True if projected coordinates
        - 'units': Coordinate units (e.g., 'degree', 'metre')

    Examples
    --------
    >>> get_crs_info("EPSG:4326")["units"]
    'degree'
    """
    if crs is None:
        return {
            "crs": None,
            "epsg": None,
            "is_geographic": None,
            "is_projected": None,
            "units": None,
        }

    parsed = parse_crs(crs)

    try:
        units = parsed.axis_info[0].unit_name
    except (AttributeError, IndexError):
        units = None

    return {
        "crs": normalize_crs(crs),
        "epsg": parsed.to_epsg(),
        "is_geographic": parsed.is_geographic,
        "is_projected": parsed.is_projected,
        "units": units,
    }


def linear_unit_factor(crs: CRSLike) -> float:
    """
    Metres per coordinate unit of a projected CRS.

    Raises
    ------
    ValueError
        If the CRS is geographic (its units are angles).
    """
    parsed = parse_crs(crs)
    if parsed.is_geographic:
        raise ValueError(f"{normalize_crs(crs)} is geographic; it has no linear unit")
    return float(parsed.axis_info[0].unit_conversion_factor)


def crs_to_wkt(crs: CRSLike) -> str:
    """ESRI-flavoured WKT, as stored in shapefile ``.prj`` files."""
    return parse_crs(crs).to_wkt(WktVersion.WKT1_ESRI)


def crs_from_wkt(wkt: str) -> str:
    """Descriptor for the WKT text of a ``.prj`` file."""
    _check_pyproj()
    try:
        parsed = CRS.from_wkt(wkt.strip())
    except CRSError as e:
        raise UnsupportedCRSError(f"Unrecognized WKT: {e}") from e
    return crs_from_pyproj(parsed)


__all__ = [
    "WGS84",
    "WEB_MERCATOR",
    "normalize_crs",
    "crs_matches",
    "crs_from_pyproj",
    "parse_crs",
    "ProjectionAdapter",
    "IdentityProjection",
    "PyprojProjection",
    "default_adapter",
    "ensure_crs",
    "estimate_utm_zone",
    "get_utm_crs",
    "is_geographic",
    "to_projected",
    "get_crs_info",
    "linear_unit_factor",
    "crs_to_wkt",
    "crs_from_wkt",
]
