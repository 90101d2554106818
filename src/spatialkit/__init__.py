"""
Geospatial overlay and measurement toolkit.

This package provides immutable point/polygon geometry, CRS-tagged feature
collections, a native shapefile codec, point-in-polygon overlay, and area
and great-circle distance measurement.

Example usage:
    from spatialkit import load_shapefile, FeatureCollection, spatial_join, add_area_column

    # Load neighborhoods and tag restaurants with the one containing them
    neighborhoods = load_shapefile('data_raw/neighborhoods.shp')
    restaurants = FeatureCollection.from_coordinates(df, 'lon', 'lat', crs='EPSG:4326')
    restaurants = spatial_join(restaurants, neighborhoods, field='name', name='neighborhood')

    # Polygon areas in square miles
    neighborhoods = add_area_column(neighborhoods, 'area_mi2', units='mi2')
"""

__version__ = "0.1.0"

from spatialkit.errors import (
    SpatialError,
    DegenerateGeometryError,
    UnsupportedCRSError,
    MalformedFileError,
    EmptyInputError,
    CRSMismatchError,
    InvalidCoordinateError,
    AttributeSchemaError,
)
from spatialkit.core.geometry import (
    Point,
    BoundingBox,
    Ring,
    Polygon,
    MultiPolygon,
    point_in_ring,
    point_in_polygon,
    point_in_geometry,
    ring_area,
    polygon_area,
    ring_perimeter,
)
from spatialkit.core.features import Field, AttributeTable, FeatureCollection
from spatialkit.core.crs import (
    ProjectionAdapter,
    IdentityProjection,
    PyprojProjection,
    normalize_crs,
    crs_matches,
    ensure_crs,
    to_projected,
    estimate_utm_zone,
    get_utm_crs,
    get_crs_info,
)
from spatialkit.core.distance import (
    EARTH_RADIUS_M,
    EARTH_RADIUS_KM,
    EARTH_RADIUS_MI,
    haversine_distance,
    great_circle_distance,
    haversine_matrix,
    nearest_neighbor,
    distance_to_nearest,
    distance_band_neighbors,
    add_distance_column,
)
from spatialkit.core.shapefile import ShapefileCodec, decode_shapefile, encode_shapefile
from spatialkit.core.io import load_shapefile, save_shapefile, load_spatial, save_spatial
from spatialkit.core.measure import (
    AREA_UNITS,
    area,
    perimeter,
    geodesic_area,
    collection_areas,
    add_area_column,
)
from spatialkit.core.batch import ItemResult, run_batch
from spatialkit.overlay import (
    BoundingBoxIndex,
    STRtreeIndex,
    assign,
    assign_batch,
    spatial_join,
    count_points,
)

__all__ = [
    # Errors
    "SpatialError",
    "DegenerateGeometryError",
    "UnsupportedCRSError",
    "MalformedFileError",
    "EmptyInputError",
    "CRSMismatchError",
    "InvalidCoordinateError",
    "AttributeSchemaError",
    # Geometry
    "Point",
    "BoundingBox",
    "Ring",
    "Polygon",
    "MultiPolygon",
    "point_in_ring",
    "point_in_polygon",
    "point_in_geometry",
    "ring_area",
    "polygon_area",
    "ring_perimeter",
    # Features
    "Field",
    "AttributeTable",
    "FeatureCollection",
    # CRS
    "ProjectionAdapter",
    "IdentityProjection",
    "PyprojProjection",
    "normalize_crs",
    "crs_matches",
    "ensure_crs",
    "to_projected",
    "estimate_utm_zone",
    "get_utm_crs",
    "get_crs_info",
    # Distance
    "EARTH_RADIUS_M",
    "EARTH_RADIUS_KM",
    "EARTH_RADIUS_MI",
    "haversine_distance",
    "great_circle_distance",
    "haversine_matrix",
    "nearest_neighbor",
    "distance_to_nearest",
    "distance_band_neighbors",
    "add_distance_column",
    # Shapefile I/O
    "ShapefileCodec",
    "decode_shapefile",
    "encode_shapefile",
    "load_shapefile",
    "save_shapefile",
    "load_spatial",
    "save_spatial",
    # Measurement
    "AREA_UNITS",
    "area",
    "perimeter",
    "geodesic_area",
    "collection_areas",
    "add_area_column",
    # Batch and overlay
    "ItemResult",
    "run_batch",
    "BoundingBoxIndex",
    "STRtreeIndex",
    "assign",
    "assign_batch",
    "spatial_join",
    "count_points",
]
