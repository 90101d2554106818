"""
Point-in-polygon overlay.

Assigns each point of a point collection to the first polygon (lowest
index) that contains it. Polygons whose bounding box excludes the point
are skipped before the containment test runs. The candidate lookup is
behind a small ``SpatialIndex`` interface so an R-tree can replace the
linear bounding-box scan.

Example usage:
    from spatialkit.overlay import assign, spatial_join

    assignment = assign(restaurants, neighborhoods)
    restaurants = spatial_join(restaurants, neighborhoods, field="name", name="neighborhood")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from typing import Callable, Optional, Sequence

from spatialkit.core.batch import ItemResult, run_batch
from spatialkit.core.features import FeatureCollection
from spatialkit.core.geometry import Geometry, Point, point_in_geometry
from spatialkit.errors import CRSMismatchError

ContainsFunction = Callable[[Point, Geometry], bool]


class SpatialIndex(ABC):
    """Candidate lookup over a fixed sequence of polygons."""

    @abstractmethod
    def candidates(self, point: Point) -> list[int]:
        """Indices of polygons that may contain ``point``, ascending."""


class BoundingBoxIndex(SpatialIndex):
    """
    Linear scan over per-polygon bounding boxes.

    Boxes are inclusive, so a point on a polygon edge is always a
    candidate.
    """

    def __init__(self, polygons: Sequence[Geometry]):
        self._boxes = [g.bounds() for g in polygons]

    def __len__(self) -> int:
        return len(self._boxes)

    def candidates(self, point: Point) -> list[int]:
        return [i for i, box in enumerate(self._boxes) if box.contains_point(point)]


class STRtreeIndex(SpatialIndex):
    """Shapely ``STRtree`` over polygon bounding boxes."""

    def __init__(self, polygons: Sequence[Geometry]):
        from shapely import geometry as sg
        from shapely.strtree import STRtree

        self._sg = sg
        self._size = len(polygons)
        self._tree = STRtree([sg.box(*g.bounds().as_tuple()) for g in polygons])

    def __len__(self) -> int:
        return self._size

    def candidates(self, point: Point) -> list[int]:
        if self._size == 0:
            return []
        hits = self._tree.query(self._sg.Point(point.x, point.y))
        return sorted(int(i) for i in hits)


class PointAssigner:
    """
    Callable mapping one point to its containing polygon index.

    Picklable when ``contains`` and ``index`` are, so it can be shipped to
    worker processes by ``assign_batch``.
    """

    def __init__(
        self,
        polygons: Sequence[Geometry],
        contains: ContainsFunction = point_in_geometry,
        index: Optional[SpatialIndex] = None,
    ):
        self.polygons = tuple(polygons)
        self.contains = contains
        self.index = index if index is not None else BoundingBoxIndex(self.polygons)

    def __call__(self, point: Point) -> Optional[int]:
        for i in self.index.candidates(point):
            if self.contains(point, self.polygons[i]):
                return i
        return None


def _check_inputs(points: FeatureCollection, polygons: FeatureCollection) -> None:
    if points.geometry_type not in (None, "Point"):
        raise TypeError(f"Expected a point collection, got {points.geometry_type}")
    if polygons.geometry_type not in (None, "Polygon"):
        raise TypeError(f"Expected a polygon collection, got {polygons.geometry_type}")
    if points.crs != polygons.crs:
        raise CRSMismatchError(
            f"Points are in {points.crs} but polygons are in {polygons.crs}. "
            f"Reproject one collection first."
        )


def assign(
    points: FeatureCollection,
    polygons: FeatureCollection,
    contains: ContainsFunction = point_in_geometry,
    index: Optional[SpatialIndex] = None,
) -> dict[int, Optional[int]]:
    """
    Assign each point to the polygon containing it.

    Parameters
    ----------
    points : FeatureCollection
        Point collection.
    polygons : FeatureCollection
        Polygon collection in the same CRS.
    contains : callable, optional
        Containment test ``(point, geometry) -> bool``. Default treats
        boundary points as inside.
    index : SpatialIndex, optional
        Candidate index built over ``polygons.geometries``. Default is a
        ``BoundingBoxIndex``.

    Returns
    -------
    dict
        Point index -> polygon index, or None when no polygon contains
        the point. Overlapping polygons resolve to the lowest index.

    Raises
    ------
    CRSMismatchError
        If the two collections carry different CRS descriptors.

    Examples
    --------
    >>> assign(restaurants, neighborhoods)
    {0: 3, 1: None, 2: 0}
    """
    _check_inputs(points, polygons)
    assigner = PointAssigner(polygons.geometries, contains, index)
    return {i: assigner(p) for i, p in enumerate(points.geometries)}


def assign_batch(
    points: FeatureCollection,
    polygons: FeatureCollection,
    on_error: str = "raise",
    n_workers: Optional[int] = None,
    chunk_size: Optional[int] = None,
    timeout: Optional[float] = None,
    contains: ContainsFunction = point_in_geometry,
) -> list[ItemResult]:
    """
    Chunked overlay with an explicit error mode.

    Chunks of points are processed independently (in worker processes
    when ``n_workers > 1``) and combined by position, so the result equals
    ``assign`` regardless of chunking.

    Parameters
    ----------
    on_error : {'raise', 'collect'}
        Abort on the first ``SpatialError`` or record it per point.
    n_workers : int, optional
        Worker processes. Default runs in the calling process.
    chunk_size : int, optional
        Points per chunk. Default ``OVERLAY_CHUNK_SIZE``.
    timeout : float, optional
        Deadline in seconds for the parallel run.

    Returns
    -------
    list[ItemResult]
        One result per point; ``value`` is the polygon index or None.
    """
    _check_inputs(points, polygons)
    assigner = PointAssigner(polygons.geometries, contains)
    return run_batch(
        points.geometries,
        assigner,
        on_error=on_error,
        n_workers=n_workers,
        chunk_size=chunk_size,
        timeout=timeout,
    )


def spatial_join(
    points: FeatureCollection,
    polygons: FeatureCollection,
    field: str,
    name: Optional[str] = None,
    index: Optional[SpatialIndex] = None,
) -> FeatureCollection:
    """
    Copy an attribute of the containing polygon onto each point.

    Points outside every polygon get a missing value.

    Examples
    --------
    >>> tagged = spatial_join(restaurants, neighborhoods, "name", name="neighborhood")
    >>> tagged.attributes.column("neighborhood")[:2]
    ['Mission', None]
    """
    source = polygons.attributes.field(field)
    assignment = assign(points, polygons, index=index)
    values = [
        polygons.attributes[j][field] if j is not None else None
        for _, j in sorted(assignment.items())
    ]
    return points.with_column(name or field, values, source.dtype)


def count_points(
    points: FeatureCollection,
    polygons: FeatureCollection,
    name: str = "count",
    index: Optional[SpatialIndex] = None,
) -> FeatureCollection:
    """Add the number of points falling in each polygon."""
    counts = Counter(j for j in assign(points, polygons, index=index).values() if j is not None)
    return polygons.with_column(name, [counts.get(i, 0) for i in range(len(polygons))], int)


__all__ = [
    "SpatialIndex",
    "BoundingBoxIndex",
    "STRtreeIndex",
    "PointAssigner",
    "assign",
    "assign_batch",
    "spatial_join",
    "count_points",
]
