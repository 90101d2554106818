"""
Core spatial building blocks: geometry, feature collections, CRS handling,
shapefile I/O, measurement and batch execution.
"""

from spatialkit.core.geometry import (
    Point,
    BoundingBox,
    Ring,
    Polygon,
    MultiPolygon,
    point_in_polygon,
    polygon_area,
)
from spatialkit.core.features import Field, AttributeTable, FeatureCollection
from spatialkit.core.crs import ensure_crs, to_projected, estimate_utm_zone, IdentityProjection
from spatialkit.core.distance import (
    haversine_distance,
    great_circle_distance,
    haversine_matrix,
    nearest_neighbor,
    distance_to_nearest,
)
from spatialkit.core.shapefile import ShapefileCodec
from spatialkit.core.io import load_shapefile, save_shapefile, load_spatial, save_spatial
from spatialkit.core.measure import area, geodesic_area
from spatialkit.core.batch import ItemResult, run_batch

__all__ = [
    "Point",
    "BoundingBox",
    "Ring",
    "Polygon",
    "MultiPolygon",
    "point_in_polygon",
    "polygon_area",
    "Field",
    "AttributeTable",
    "FeatureCollection",
    "ensure_crs",
    "to_projected",
    "estimate_utm_zone",
    "IdentityProjection",
    "haversine_distance",
    "great_circle_distance",
    "haversine_matrix",
    "nearest_neighbor",
    "distance_to_nearest",
    "ShapefileCodec",
    "load_shapefile",
    "save_shapefile",
    "load_spatial",
    "save_spatial",
    "area",
    "geodesic_area",
    "ItemResult",
    "run_batch",
]
