"""
Shapefile main-file (.shp) and index (.shx) codec.

Supports the Point (1) and Polygon (5) shape types of the ESRI layout:

- 100-byte header: file code 9994 and file length (16-bit words), both
  big-endian; version 1000, shape type and the bounding box as eight
  doubles, little-endian.
- Records: 8-byte big-endian header (1-based record number, content length
  in words), then little-endian content. A point holds (type, x, y); a
  polygon holds (type, box, part count, point count, part start indices,
  coordinate pairs).

Attributes are not part of the main file; they are paired with records by
position from a separately supplied table (see ``spatialkit.core.dbf``).
Decoding works on a pre-loaded buffer and performs no file I/O.

Usage
-----
    from spatialkit.core.shapefile import ShapefileCodec

    codec = ShapefileCodec(crs="EPSG:4326")
    fc = codec.decode(shp_bytes, attributes=table)
    data = codec.encode(fc)
"""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import Sequence, Union

from spatialkit.core.features import AttributeInput, FeatureCollection, as_attribute_table
from spatialkit.core.geometry import (
    MultiPolygon,
    Point,
    Polygon,
    Ring,
    _signed_area,
    point_in_ring,
    point_on_ring_boundary,
)
from spatialkit.errors import (
    DegenerateGeometryError,
    EmptyInputError,
    InvalidCoordinateError,
    MalformedFileError,
)


FILE_CODE = 9994
VERSION = 1000
HEADER_SIZE = 100
RECORD_HEADER_SIZE = 8


class ShapeType(IntEnum):
    NULL = 0
    POINT = 1
    POLYLINE = 3
    POLYGON = 5
    MULTIPOINT = 8
    POINTZ = 11
    POLYLINEZ = 13
    POLYGONZ = 15
    MULTIPOINTZ = 18
    POINTM = 21
    POLYLINEM = 23
    POLYGONM = 25
    MULTIPOINTM = 28
    MULTIPATCH = 31


SUPPORTED_SHAPE_TYPES = (ShapeType.POINT, ShapeType.POLYGON)

_HEADER_BE = struct.Struct(">7i")
_HEADER_LE = struct.Struct("<2i8d")
_RECORD_HEADER = struct.Struct(">2i")
_SHAPE_TYPE = struct.Struct("<i")
_POINT = struct.Struct("<i2d")
_POLYGON_HEAD = struct.Struct("<i4d2i")


def shape_type_name(code: int) -> str:
    try:
        return ShapeType(code).name
    except ValueError:
        return "UNKNOWN"


# =============================================================================
# DECODING
# =============================================================================

def _ring_inside(inner: Ring, outer: Ring) -> bool:
    # Probe with a vertex that is not on the other ring's boundary
    for p in inner.points[:-1]:
        if not point_on_ring_boundary(p, outer):
            return point_in_ring(p, outer)
    return False


def assemble_rings(rings: Sequence[Ring]) -> Union[Polygon, MultiPolygon]:
    """
    Group a record's rings into polygons by nesting depth.

    A ring nested inside an even number of larger rings is an outer ring;
    an odd depth makes it a hole of the smallest enclosing outer ring.
    Winding order is not consulted, so rings of either orientation decode.
    Outer rings keep their record order and holes keep theirs.
    """
    if len(rings) == 1:
        return Polygon(rings[0])

    areas = [abs(_signed_area(r.points)) for r in rings]
    if any(a == 0.0 for a in areas):
        raise DegenerateGeometryError("Ring encloses zero area")

    containers = [
        [j for j in range(len(rings)) if j != i and areas[j] > areas[i] and _ring_inside(rings[i], rings[j])]
        for i in range(len(rings))
    ]
    depth = [len(c) for c in containers]

    outers = [i for i in range(len(rings)) if depth[i] % 2 == 0]
    holes_of = {i: [] for i in outers}
    for i in range(len(rings)):
        if depth[i] % 2 == 0:
            continue
        parents = [j for j in containers[i] if depth[j] == depth[i] - 1]
        if not parents:
            raise DegenerateGeometryError(f"Hole ring {i} has no enclosing outer ring")
        parent = min(parents, key=lambda j: areas[j])
        holes_of[parent].append(rings[i])

    polygons = [Polygon(rings[i], holes_of[i]) for i in outers]
    if len(polygons) == 1:
        return polygons[0]
    return MultiPolygon(polygons)


def _decode_point(content: bytes, record: int, offset: int) -> Point:
    if len(content) != _POINT.size:
        raise MalformedFileError(
            f"Point record must be {_POINT.size} bytes, got {len(content)}",
            offset=offset,
            record=record,
        )
    _, x, y = _POINT.unpack_from(content)
    try:
        return Point(x, y)
    except InvalidCoordinateError as e:
        raise MalformedFileError(str(e), offset=offset, record=record) from e


def _decode_polygon(content: bytes, record: int, offset: int) -> Union[Polygon, MultiPolygon]:
    if len(content) < _POLYGON_HEAD.size:
        raise MalformedFileError(
            f"Truncated polygon record: {len(content)} bytes", offset=offset, record=record
        )
    _, _, _, _, _, n_parts, n_points = _POLYGON_HEAD.unpack_from(content)
    if n_parts < 1 or n_points < 4 * n_parts:
        raise MalformedFileError(
            f"Inconsistent ring counts: {n_parts} rings with {n_points} points",
            offset=offset,
            record=record,
        )

    expected = _POLYGON_HEAD.size + 4 * n_parts + 16 * n_points
    if len(content) != expected:
        raise MalformedFileError(
            f"Polygon record declares {n_parts} rings and {n_points} points "
            f"({expected} bytes) but holds {len(content)} bytes",
            offset=offset,
            record=record,
        )

    parts = struct.unpack_from(f"<{n_parts}i", content, _POLYGON_HEAD.size)
    if parts[0] != 0 or parts[-1] >= n_points or any(b <= a for a, b in zip(parts, parts[1:])):
        raise MalformedFileError(
            f"Inconsistent ring start indices {list(parts)} for {n_points} points",
            offset=offset,
            record=record,
        )
    coords = struct.unpack_from(f"<{2 * n_points}d", content, _POLYGON_HEAD.size + 4 * n_parts)

    bounds = list(parts) + [n_points]
    rings = []
    for k, (start, stop) in enumerate(zip(bounds, bounds[1:])):
        try:
            rings.append(Ring((coords[2 * i], coords[2 * i + 1]) for i in range(start, stop)))
        except (DegenerateGeometryError, InvalidCoordinateError) as e:
            raise MalformedFileError(f"Ring {k}: {e}", offset=offset, record=record) from e

    try:
        return assemble_rings(rings)
    except DegenerateGeometryError as e:
        raise MalformedFileError(str(e), offset=offset, record=record) from e


def _read_header(buf: bytes) -> tuple[int, int]:
    if len(buf) < HEADER_SIZE:
        raise MalformedFileError(
            f"Truncated header: need {HEADER_SIZE} bytes, got {len(buf)}", offset=len(buf)
        )
    values = _HEADER_BE.unpack_from(buf, 0)
    file_code, file_length = values[0], values[6] * 2
    if file_code != FILE_CODE:
        raise MalformedFileError(f"Bad file code {file_code}, expected {FILE_CODE}", offset=0)

    version, shape_type = _HEADER_LE.unpack_from(buf, 28)[:2]
    if version != VERSION:
        raise MalformedFileError(f"Unsupported version {version}, expected {VERSION}", offset=28)
    if shape_type not in SUPPORTED_SHAPE_TYPES:
        raise MalformedFileError(
            f"Unsupported shape type {shape_type} ({shape_type_name(shape_type)}); "
            f"only Point (1) and Polygon (5) are supported",
            offset=32,
        )
    if file_length < HEADER_SIZE:
        raise MalformedFileError(f"File length {file_length} is shorter than the header", offset=24)
    if file_length > len(buf):
        raise MalformedFileError(
            f"Header declares {file_length} bytes but buffer holds {len(buf)}", offset=24
        )
    return shape_type, file_length


def read_shape_type(data: bytes) -> int:
    """Shape type code from a main-file header, without decoding records."""
    if len(data) < HEADER_SIZE:
        raise MalformedFileError(
            f"Truncated header: need {HEADER_SIZE} bytes, got {len(data)}", offset=len(data)
        )
    return _HEADER_LE.unpack_from(data, 28)[1]


# =============================================================================
# ENCODING
# =============================================================================

def _encode_point(point: Point) -> bytes:
    return _POINT.pack(ShapeType.POINT, point.x, point.y)


def _encode_polygon(geometry: Union[Polygon, MultiPolygon], enforce_winding: bool) -> bytes:
    polygons = geometry.polygons if isinstance(geometry, MultiPolygon) else (geometry,)
    rings = []
    for polygon in polygons:
        outer = polygon.outer
        if enforce_winding and outer.is_ccw:
            outer = outer.reversed()
        rings.append(outer)
        for hole in polygon.holes:
            if enforce_winding and not hole.is_ccw:
                hole = hole.reversed()
            rings.append(hole)

    parts = []
    coords = []
    for ring in rings:
        parts.append(len(coords) // 2)
        for p in ring:
            coords.extend((p.x, p.y))

    box = geometry.bounds()
    return (
        _POLYGON_HEAD.pack(
            ShapeType.POLYGON, box.min_x, box.min_y, box.max_x, box.max_y, len(rings), len(coords) // 2
        )
        + struct.pack(f"<{len(parts)}i", *parts)
        + struct.pack(f"<{len(coords)}d", *coords)
    )


def _file_header(shape_type: int, fc: FeatureCollection, file_length: int) -> bytes:
    box = fc.bounds()
    return _HEADER_BE.pack(FILE_CODE, 0, 0, 0, 0, 0, file_length // 2) + _HEADER_LE.pack(
        VERSION, shape_type, box.min_x, box.min_y, box.max_x, box.max_y, 0.0, 0.0, 0.0, 0.0
    )


class ShapefileCodec:
    """
    Decoder and encoder for Point and Polygon shapefiles.

    Parameters
    ----------
    crs : str or int, optional
        CRS descriptor attached to decoded collections when ``decode`` is
        not given one.
    enforce_winding : bool, optional
        Write ESRI ring orientation (outer rings clockwise, holes
        counter-clockwise). Default False keeps each ring's vertex order so
        that ``decode(encode(fc))`` reproduces the input exactly.
    """

    def __init__(self, crs: Union[str, int, None] = None, enforce_winding: bool = False):
        self.crs = crs
        self.enforce_winding = enforce_winding

    def decode(
        self,
        data: bytes,
        attributes: AttributeInput = None,
        crs: Union[str, int, None] = None,
    ) -> FeatureCollection:
        """
        Decode a .shp buffer into a FeatureCollection.

        Parameters
        ----------
        data : bytes
            Complete main-file contents.
        attributes : AttributeTable, DataFrame, list or mapping, optional
            One record per shape, paired by position.
        crs : str or int, optional
            CRS descriptor; defaults to the codec's ``crs``.

        Returns
        -------
        FeatureCollection
            Newly allocated geometries; the input buffer is not modified.

        Raises
        ------
        MalformedFileError
            On a bad header, truncated or inconsistent records, or an
            unsupported shape type. No partial collection is returned.
        EmptyInputError
            If the file holds no records.
        """
        buf = bytes(data)
        shape_type, end = _read_header(buf)

        geometries = []
        offset = HEADER_SIZE
        record = 0
        while offset < end:
            if offset + RECORD_HEADER_SIZE > end:
                raise MalformedFileError("Truncated record header", offset=offset, record=record)
            number, content_words = _RECORD_HEADER.unpack_from(buf, offset)
            if number != record + 1:
                raise MalformedFileError(
                    f"Record number {number}, expected {record + 1}", offset=offset, record=record
                )
            start = offset + RECORD_HEADER_SIZE
            stop = start + content_words * 2
            if content_words * 2 < _SHAPE_TYPE.size or stop > end:
                raise MalformedFileError(
                    f"Truncated record content: declared {content_words * 2} bytes, "
                    f"{end - start} available",
                    offset=start,
                    record=record,
                )

            content = buf[start:stop]
            record_type = _SHAPE_TYPE.unpack_from(content)[0]
            if record_type != shape_type:
                raise MalformedFileError(
                    f"Record shape type {record_type} ({shape_type_name(record_type)}) "
                    f"differs from file shape type {shape_type}",
                    offset=start,
                    record=record,
                )
            if shape_type == ShapeType.POINT:
                geometries.append(_decode_point(content, record, start))
            else:
                geometries.append(_decode_polygon(content, record, start))

            offset = stop
            record += 1

        if not geometries:
            raise EmptyInputError("Shapefile contains no records")

        table = as_attribute_table(attributes, len(geometries))
        return FeatureCollection(geometries, table, crs if crs is not None else self.crs)

    def _records(self, fc: FeatureCollection) -> tuple[int, list[bytes]]:
        if len(fc) == 0:
            raise EmptyInputError("Cannot encode an empty FeatureCollection")
        if fc.geometry_type == "Point":
            return ShapeType.POINT, [_encode_point(p) for p in fc.geometries]
        return ShapeType.POLYGON, [_encode_polygon(g, self.enforce_winding) for g in fc.geometries]

    def encode(self, fc: FeatureCollection) -> bytes:
        """
        Encode a collection's geometry as .shp bytes.

        Attributes are not written; use ``encode_dbf`` for those.

        Raises
        ------
        EmptyInputError
            If the collection has no features.
        """
        shape_type, records = self._records(fc)
        body = bytearray()
        for number, content in enumerate(records, 1):
            body += _RECORD_HEADER.pack(number, len(content) // 2)
            body += content
        return _file_header(shape_type, fc, HEADER_SIZE + len(body)) + bytes(body)

    def encode_index(self, fc: FeatureCollection) -> bytes:
        """Encode the .shx index matching ``encode(fc)``."""
        shape_type, records = self._records(fc)
        body = bytearray()
        offset = HEADER_SIZE
        for content in records:
            body += _RECORD_HEADER.pack(offset // 2, len(content) // 2)
            offset += RECORD_HEADER_SIZE + len(content)
        return _file_header(shape_type, fc, HEADER_SIZE + len(body)) + bytes(body)


def decode_shapefile(
    data: bytes,
    attributes: AttributeInput = None,
    crs: Union[str, int, None] = None,
) -> FeatureCollection:
    """Module-level shortcut for ``ShapefileCodec().decode``."""
    return ShapefileCodec().decode(data, attributes, crs)


def encode_shapefile(fc: FeatureCollection, enforce_winding: bool = False) -> bytes:
    """Module-level shortcut for ``ShapefileCodec().encode``."""
    return ShapefileCodec(enforce_winding=enforce_winding).encode(fc)


__all__ = [
    "ShapeType",
    "SUPPORTED_SHAPE_TYPES",
    "ShapefileCodec",
    "assemble_rings",
    "decode_shapefile",
    "encode_shapefile",
    "read_shape_type",
    "shape_type_name",
]
