"""
Attribute tables and feature collections.

A FeatureCollection pairs an ordered sequence of geometries with an
AttributeTable holding one record per geometry, and carries the CRS
descriptor shared by every geometry in it. Collections are immutable:
operations that derive new fields or new coordinates return new
collections.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from spatialkit.core.geometry import (
    BoundingBox,
    Geometry,
    MultiPolygon,
    Point,
    Polygon,
    from_shapely,
    to_shapely,
)
from spatialkit.errors import AttributeSchemaError, InvalidCoordinateError

try:
    import geopandas as gpd
    HAS_GEOPANDAS = True
except ImportError:
    HAS_GEOPANDAS = False
    gpd = None


FIELD_TYPES = (str, int, float, bool)


def _check_geopandas() -> None:
    """Raise ImportError if geopandas is not available."""
    if not HAS_GEOPANDAS:
        raise ImportError(
            "geopandas is required for GeoDataFrame conversion. "
            "Install with: pip install geopandas"
        )


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return value is pd.NA or value is pd.NaT


def _infer_type(value: Any) -> type:
    if isinstance(value, (bool, np.bool_)):
        return bool
    if isinstance(value, numbers.Integral):
        return int
    if isinstance(value, numbers.Real):
        return float
    if isinstance(value, str):
        return str
    raise AttributeSchemaError(f"Unsupported attribute value type: {type(value).__name__}")


@dataclass(frozen=True)
class Field:
    """A named, typed attribute column."""

    name: str
    dtype: type

    def __post_init__(self):
        if not self.name:
            raise AttributeSchemaError("Field name must not be empty")
        if self.dtype not in FIELD_TYPES:
            raise AttributeSchemaError(
                f"Field '{self.name}' has unsupported type {self.dtype!r}; "
                f"expected one of str, int, float, bool"
            )

    def coerce(self, value: Any) -> Any:
        """Validate a value against this field, returning its stored form."""
        if _is_missing(value):
            return None
        kind = _infer_type(value)
        if kind is self.dtype:
            return self.dtype(value)
        if self.dtype is float and kind is int:
            return float(value)
        raise AttributeSchemaError(
            f"Field '{self.name}' expects {self.dtype.__name__}, "
            f"got {type(value).__name__} ({value!r})"
        )


class AttributeTable:
    """
    Fixed-schema attribute records, one per feature.

    The schema is decided at construction; every row value must be missing
    (``None``) or match its field type. Integers are widened to float for
    float fields. Rows are exposed as read-only mappings.

    Parameters
    ----------
    fields : iterable of Field
        Column schema, in output order.
    rows : iterable of mapping
        Records keyed by field name. Absent keys are stored as ``None``.

    Raises
    ------
    AttributeSchemaError
        If a row holds an unknown field or a value of the wrong type.
    """

    def __init__(self, fields: Iterable[Field], rows: Iterable[Mapping[str, Any]] = ()):
        self._fields = tuple(fields)
        names = [f.name for f in self._fields]
        if len(set(names)) != len(names):
            raise AttributeSchemaError(f"Duplicate field names: {names}")
        self._index = {f.name: f for f in self._fields}
        self._rows = tuple(self._coerce_row(i, row) for i, row in enumerate(rows))

    def _coerce_row(self, i: int, row: Mapping[str, Any]) -> Mapping[str, Any]:
        unknown = set(row) - set(self._index)
        if unknown:
            raise AttributeSchemaError(f"Row {i} has unknown fields: {sorted(unknown)}")
        return MappingProxyType({
            f.name: f.coerce(row.get(f.name)) for f in self._fields
        })

    @classmethod
    def empty(cls, n_rows: int) -> "AttributeTable":
        """A table with no fields and ``n_rows`` empty records."""
        return cls((), [{}] * n_rows)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "AttributeTable":
        """
        Build a table, inferring the schema once from all records.

        Fields appear in first-seen order. A field holding both ints and
        floats becomes float; a field holding only missing values becomes str.
        """
        records = [dict(r) for r in records]
        kinds: dict[str, set] = {}
        for record in records:
            for name, value in record.items():
                seen = kinds.setdefault(name, set())
                if not _is_missing(value):
                    seen.add(_infer_type(value))

        fields = []
        for name, seen in kinds.items():
            if not seen:
                dtype = str
            elif seen == {int, float}:
                dtype = float
            elif len(seen) == 1:
                dtype = next(iter(seen))
            else:
                raise AttributeSchemaError(
                    f"Field '{name}' mixes types: {sorted(t.__name__ for t in seen)}"
                )
            fields.append(Field(name, dtype))
        return cls(fields, records)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "AttributeTable":
        """Build a table from a DataFrame, typing fields from its dtypes."""
        fields = []
        for col in df.columns:
            series = df[col]
            if pd.api.types.is_bool_dtype(series):
                dtype = bool
            elif pd.api.types.is_integer_dtype(series):
                dtype = int
            elif pd.api.types.is_float_dtype(series):
                dtype = float
            else:
                present = [v for v in series if not _is_missing(v)]
                dtype = _infer_type(present[0]) if present else str
            fields.append(Field(str(col), dtype))

        # itertuples yields nothing for a frame without columns
        if len(df.columns) == 0:
            return cls.empty(len(df))

        records = [
            {str(col): (None if _is_missing(v) else v) for col, v in zip(df.columns, row)}
            for row in df.itertuples(index=False, name=None)
        ]
        return cls(fields, records)

    @property
    def fields(self) -> tuple[Field, ...]:
        return self._fields

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self._fields]

    def field(self, name: str) -> Field:
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(f"No field named '{name}'. Available: {self.field_names}") from None

    def __len__(self) -> int:
        return len(self._rows)

    def __getitem__(self, i: int) -> Mapping[str, Any]:
        return self._rows[i]

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        return iter(self._rows)

    def __eq__(self, other) -> bool:
        if not isinstance(other, AttributeTable):
            return NotImplemented
        return self._fields == other._fields and [dict(r) for r in self._rows] == [
            dict(r) for r in other._rows
        ]

    def __repr__(self) -> str:
        return f"AttributeTable({len(self._rows)} rows, fields={self.field_names})"

    def column(self, name: str) -> list[Any]:
        self.field(name)
        return [row[name] for row in self._rows]

    def with_column(
        self,
        name: str,
        values: Sequence[Any],
        dtype: Optional[type] = None,
    ) -> "AttributeTable":
        """
        Return a new table with ``name`` added (or replaced).

        Parameters
        ----------
        name : str
            Column name.
        values : sequence
            One value per row.
        dtype : type, optional
            Field type. Inferred from the values when omitted.
        """
        values = list(values)
        if len(values) != len(self._rows):
            raise AttributeSchemaError(
                f"Column '{name}' has {len(values)} values for {len(self._rows)} rows"
            )
        if dtype is None:
            inferred = AttributeTable.from_records([{name: v} for v in values])
            dtype = inferred.field(name).dtype if values else str
        new_field = Field(name, dtype)
        fields = [new_field if f.name == name else f for f in self._fields]
        if name not in self._index:
            fields.append(new_field)
        rows = [{**row, name: value} for row, value in zip(self._rows, values)]
        return AttributeTable(fields, rows)

    def take(self, indices: Iterable[int]) -> "AttributeTable":
        return AttributeTable(self._fields, [self._rows[i] for i in indices])

    def to_records(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self._rows]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.to_records(), columns=self.field_names, index=pd.RangeIndex(len(self)))


AttributeInput = Union[AttributeTable, pd.DataFrame, Sequence[Mapping[str, Any]], Mapping[int, Mapping[str, Any]], None]


def as_attribute_table(attributes: AttributeInput, n_rows: int) -> AttributeTable:
    """
    Coerce any supported attribute input to an AttributeTable.

    Accepts an AttributeTable, a DataFrame, a list of records, or a mapping
    from 0-based row index to record.
    """
    if attributes is None:
        return AttributeTable.empty(n_rows)
    if isinstance(attributes, AttributeTable):
        return attributes
    if isinstance(attributes, pd.DataFrame):
        return AttributeTable.from_dataframe(attributes)
    if isinstance(attributes, Mapping):
        missing = [i for i in range(n_rows) if i not in attributes]
        if missing:
            raise AttributeSchemaError(f"Attribute mapping is missing rows: {missing[:10]}")
        extra = set(attributes) - set(range(n_rows))
        if extra:
            raise AttributeSchemaError(f"Attribute mapping has rows beyond {n_rows}: {sorted(extra)[:10]}")
        return AttributeTable.from_records(attributes[i] for i in range(n_rows))
    return AttributeTable.from_records(attributes)


@dataclass(frozen=True)
class Feature:
    """Read-only view of one geometry and its attribute record."""

    index: int
    geometry: Geometry
    properties: Mapping[str, Any]


class FeatureCollection:
    """
    Ordered geometries sharing one CRS, each paired with an attribute record.

    Parameters
    ----------
    geometries : iterable of Point, Polygon or MultiPolygon
        All points, or all polygons/multipolygons.
    attributes : AttributeTable, DataFrame, list of records or row mapping, optional
        One record per geometry, in the same order.
    crs : str or int, optional
        CRS descriptor (EPSG code or proj4 string).

    Raises
    ------
    TypeError
        If geometries mix points and polygons.
    AttributeSchemaError
        If the attribute row count differs from the geometry count.
    UnsupportedCRSError
        If ``crs`` is not a recognizable descriptor.

    Examples
    --------
    >>> fc = FeatureCollection(
    ...     [Point(-122.42, 37.78), Point(-122.41, 37.77)],
    ...     [{"name": "a"}, {"name": "b"}],
    ...     crs="EPSG:4326",
    ... )
    >>> len(fc)
    2
    """

    def __init__(
        self,
        geometries: Iterable[Geometry],
        attributes: AttributeInput = None,
        crs: Union[str, int, None] = None,
    ):
        from spatialkit.core.crs import normalize_crs

        geometries = tuple(geometries)
        for g in geometries:
            if not isinstance(g, (Point, Polygon, MultiPolygon)):
                raise TypeError(f"Unsupported geometry type: {type(g).__name__}")
        n_points = sum(isinstance(g, Point) for g in geometries)
        if 0 < n_points < len(geometries):
            raise TypeError("FeatureCollection cannot mix point and polygon geometries")

        table = as_attribute_table(attributes, len(geometries))
        if len(table) != len(geometries):
            raise AttributeSchemaError(
                f"Attribute table has {len(table)} rows for {len(geometries)} geometries"
            )

        self._geometries = geometries
        self._attributes = table
        self._crs = normalize_crs(crs) if crs is not None else None

    @classmethod
    def from_points(
        cls,
        coords: Iterable[Sequence[float]],
        attributes: AttributeInput = None,
        crs: Union[str, int, None] = None,
    ) -> "FeatureCollection":
        return cls([Point(x, y) for x, y in coords], attributes, crs)

    @classmethod
    def from_coordinates(
        cls,
        df: pd.DataFrame,
        x: str,
        y: str,
        crs: Union[str, int],
        id: Optional[str] = None,
    ) -> "FeatureCollection":
        """
        Build a point collection from tabular (identifier, lon, lat) rows.

        Rows must already have finite coordinates; drop missing ones first
        with ``filter_missing_coordinates``.

        Parameters
        ----------
        df : pd.DataFrame
            Input rows.
        x, y : str
            Coordinate column names (e.g. 'longitude', 'latitude').
        crs : str or int
            CRS of the coordinates.
        id : str, optional
            Identifier column. When given, only it is kept as an attribute;
            otherwise every non-coordinate column is kept.

        Raises
        ------
        InvalidCoordinateError
            If a row has a missing or non-finite coordinate.
        """
        points = []
        for i, (px, py) in enumerate(zip(df[x], df[y])):
            try:
                points.append(Point(px, py))
            except (InvalidCoordinateError, TypeError) as e:
                raise InvalidCoordinateError(f"Row {i} has invalid coordinates: {e}") from e

        if id is not None:
            attrs = df[[id]]
        else:
            attrs = df.drop(columns=[x, y])
        return cls(points, AttributeTable.from_dataframe(attrs.reset_index(drop=True)), crs)

    @classmethod
    def from_geodataframe(cls, gdf: "gpd.GeoDataFrame") -> "FeatureCollection":
        """Convert a GeoDataFrame of points or (multi)polygons."""
        _check_geopandas()
        from spatialkit.core.crs import crs_from_pyproj

        geometries = [from_shapely(g) for g in gdf.geometry]
        attrs = pd.DataFrame(gdf.drop(columns=gdf.geometry.name)).reset_index(drop=True)
        crs = crs_from_pyproj(gdf.crs) if gdf.crs is not None else None
        return cls(geometries, AttributeTable.from_dataframe(attrs), crs)

    @property
    def geometries(self) -> tuple[Geometry, ...]:
        return self._geometries

    @property
    def attributes(self) -> AttributeTable:
        return self._attributes

    @property
    def crs(self) -> Optional[str]:
        return self._crs

    @property
    def geometry_type(self) -> Optional[str]:
        """'Point', 'Polygon', or None for an empty collection."""
        if not self._geometries:
            return None
        return "Point" if isinstance(self._geometries[0], Point) else "Polygon"

    def __len__(self) -> int:
        return len(self._geometries)

    def __iter__(self) -> Iterator[Feature]:
        for i, (g, row) in enumerate(zip(self._geometries, self._attributes)):
            yield Feature(i, g, row)

    def __getitem__(self, i: int) -> Feature:
        if i < 0:
            i += len(self)
        return Feature(i, self._geometries[i], self._attributes[i])

    def __eq__(self, other) -> bool:
        if not isinstance(other, FeatureCollection):
            return NotImplemented
        return (
            self._geometries == other._geometries
            and self._attributes == other._attributes
            and self._crs == other._crs
        )

    def __repr__(self) -> str:
        return (
            f"FeatureCollection({len(self)} {self.geometry_type or 'empty'} features, "
            f"crs={self._crs!r}, fields={self._attributes.field_names})"
        )

    def bounds(self) -> BoundingBox:
        """Extent of all geometries, recomputed on every call."""
        if not self._geometries:
            raise ValueError("Empty collection has no bounds")
        box = self._geometries[0].bounds()
        for g in self._geometries[1:]:
            box = box.union(g.bounds())
        return box

    def with_column(self, name: str, values: Sequence[Any], dtype: Optional[type] = None) -> "FeatureCollection":
        """New collection with an added or replaced attribute column."""
        return FeatureCollection(
            self._geometries, self._attributes.with_column(name, values, dtype), self._crs
        )

    def with_geometries(self, geometries: Iterable[Geometry], crs: Union[str, int, None]) -> "FeatureCollection":
        """New collection with replaced geometries and CRS, same attributes."""
        return FeatureCollection(geometries, self._attributes, crs)

    def set_crs(self, crs: Union[str, int, None]) -> "FeatureCollection":
        """Tag the same coordinates with a different CRS (no reprojection)."""
        return FeatureCollection(self._geometries, self._attributes, crs)

    def take(self, indices: Iterable[int]) -> "FeatureCollection":
        indices = list(indices)
        return FeatureCollection(
            [self._geometries[i] for i in indices], self._attributes.take(indices), self._crs
        )

    def to_dataframe(self) -> pd.DataFrame:
        """
        Attribute table as a DataFrame.

        Point collections get ``x`` and ``y`` columns; polygon collections
        get a ``geometry`` column holding the geometry objects.
        """
        df = self._attributes.to_dataframe()
        if self.geometry_type == "Point":
            df["x"] = [p.x for p in self._geometries]
            df["y"] = [p.y for p in self._geometries]
        else:
            df["geometry"] = list(self._geometries)
        return df

    def to_geodataframe(self) -> "gpd.GeoDataFrame":
        _check_geopandas()
        return gpd.GeoDataFrame(
            self._attributes.to_dataframe(),
            geometry=[to_shapely(g) for g in self._geometries],
            crs=self._crs,
        )


def filter_missing_coordinates(df: pd.DataFrame, x: str, y: str) -> pd.DataFrame:
    """
    Drop rows whose coordinates are missing or non-finite.

    Examples
    --------
    >>> df = pd.DataFrame({'lon': [-122.4, None], 'lat': [37.8, 37.7]})
    >>> len(filter_missing_coordinates(df, 'lon', 'lat'))
    1
    """
    xs = pd.to_numeric(df[x], errors="coerce")
    ys = pd.to_numeric(df[y], errors="coerce")
    mask = np.isfinite(xs.to_numpy(dtype=float)) & np.isfinite(ys.to_numpy(dtype=float))
    return df.loc[mask].reset_index(drop=True)


__all__ = [
    "Field",
    "AttributeTable",
    "Feature",
    "FeatureCollection",
    "as_attribute_table",
    "filter_missing_coordinates",
]
