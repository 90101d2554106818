"""
Spatial data I/O utilities.

Provides functions for loading and saving feature collections. Shapefiles
are read and written with the native codec (.shp/.shx/.dbf/.prj/.cpg);
GeoPackage and GeoJSON go through geopandas.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Optional, Union

from spatialkit.core.crs import crs_from_wkt, crs_to_wkt
from spatialkit.core.dbf import DEFAULT_ENCODING, decode_dbf, encode_dbf
from spatialkit.core.features import AttributeInput, FeatureCollection
from spatialkit.core.shapefile import ShapefileCodec

try:
    import geopandas as gpd
    HAS_GEOPANDAS = True
except ImportError:
    HAS_GEOPANDAS = False
    gpd = None


# Supported file extensions and their drivers
SPATIAL_FORMATS = {
    ".gpkg": "GPKG",
    ".shp": "ESRI Shapefile",
    ".geojson": "GeoJSON",
    ".json": "GeoJSON",
}


def _check_geopandas() -> None:
    """Raise ImportError if geopandas is not available."""
    if not HAS_GEOPANDAS:
        raise ImportError(
            "geopandas is required for GeoPackage and GeoJSON files. "
            "Install with: pip install geopandas"
        )


def _read_encoding(cpg_path: Path) -> str:
    if not cpg_path.exists():
        return DEFAULT_ENCODING
    name = cpg_path.read_text(encoding="ascii", errors="replace").strip()
    if name.isdigit():
        return f"cp{name}"
    return name or DEFAULT_ENCODING


def load_shapefile(
    path: Union[str, Path],
    attributes: AttributeInput = None,
    crs: Union[str, int, None] = None,
    encoding: Optional[str] = None,
) -> FeatureCollection:
    """
    Load a Point or Polygon shapefile.

    Parameters
    ----------
    path : str or Path
        Path to the .shp file.
    attributes : AttributeTable, DataFrame, list or mapping, optional
        Attribute table to pair with the shapes. If not given, the sibling
        .dbf file is read when present.
    crs : str or int, optional
        CRS descriptor. If not given, it is read from the sibling .prj file.
    encoding : str, optional
        DBF text encoding. Defaults to the .cpg file's value, else UTF-8.

    Returns
    -------
    FeatureCollection
        The decoded features.

    Raises
    ------
    FileNotFoundError
        If the .shp file does not exist.
    MalformedFileError
        If the .shp or .dbf contents are invalid.

    Warnings
    --------
    A UserWarning is emitted when no CRS is given and no .prj exists.

    Examples
    --------
    >>> neighborhoods = load_shapefile('data_raw/neighborhoods.shp')
    >>> restaurants = load_shapefile('data_raw/restaurants.shp', crs="EPSG:4326")
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Shapefile not found: {path}")

    if attributes is None:
        dbf_path = path.with_suffix(".dbf")
        if dbf_path.exists():
            encoding = encoding or _read_encoding(path.with_suffix(".cpg"))
            attributes = decode_dbf(dbf_path.read_bytes(), encoding)

    if crs is None:
        prj_path = path.with_suffix(".prj")
        if prj_path.exists():
            crs = crs_from_wkt(prj_path.read_text())
        else:
            warnings.warn(
                f"No .prj file next to {path.name}; CRS is unknown.",
                UserWarning,
            )

    return ShapefileCodec().decode(path.read_bytes(), attributes, crs)


def save_shapefile(
    fc: FeatureCollection,
    path: Union[str, Path],
    encoding: str = DEFAULT_ENCODING,
) -> Path:
    """
    Save a collection as a shapefile set (.shp, .shx, .dbf, .cpg, .prj).

    Rings are written in ESRI orientation (outer clockwise, holes
    counter-clockwise). The .prj file is only written when the
    collection has a CRS.

    Returns
    -------
    Path
        The path to the .shp file.

    Examples
    --------
    >>> save_shapefile(fc, 'data_work/spatial/neighborhoods.shp')
    """
    path = Path(path)
    if path.suffix.lower() != ".shp":
        raise ValueError(f"Shapefile path must end in .shp: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)

    codec = ShapefileCodec(enforce_winding=True)
    path.write_bytes(codec.encode(fc))
    path.with_suffix(".shx").write_bytes(codec.encode_index(fc))
    path.with_suffix(".dbf").write_bytes(encode_dbf(fc.attributes, encoding))
    path.with_suffix(".cpg").write_text(encoding.upper())
    if fc.crs is not None:
        path.with_suffix(".prj").write_text(crs_to_wkt(fc.crs))

    return path


def load_spatial(
    path: Union[str, Path],
    layer: Optional[str] = None,
    crs: Union[str, int, None] = None,
    **kwargs,
) -> FeatureCollection:
    """
    Load spatial data from file.

    Automatically detects format based on file extension. Shapefiles use
    the native codec; GeoPackage and GeoJSON require geopandas.

    Parameters
    ----------
    path : str or Path
        Path to the spatial data file.
    layer : str, optional
        Layer name for multi-layer formats (e.g., GeoPackage).
    crs : str or int, optional
        CRS to use when the file does not declare one.
    **kwargs
        Additional arguments passed to geopandas.read_file().

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file format is not supported.

    Examples
    --------
    >>> fc = load_spatial('data/neighborhoods.shp')
    >>> fc = load_spatial('data/boundaries.geojson')
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Spatial file not found: {path}")

    ext = path.suffix.lower()
    if ext not in SPATIAL_FORMATS:
        supported = ", ".join(SPATIAL_FORMATS.keys())
        raise ValueError(
            f"Unsupported spatial format: {ext}. "
            f"Supported formats: {supported}"
        )

    if ext == ".shp":
        return load_shapefile(path, crs=crs)

    _check_geopandas()

    read_kwargs = kwargs.copy()
    if layer is not None:
        read_kwargs["layer"] = layer

    fc = FeatureCollection.from_geodataframe(gpd.read_file(path, **read_kwargs))
    if fc.crs is None and crs is not None:
        fc = fc.set_crs(crs)
    return fc


def save_spatial(
    fc: FeatureCollection,
    path: Union[str, Path],
    layer: Optional[str] = None,
    driver: Optional[str] = None,
    **kwargs,
) -> Path:
    """
    Save a collection to file.

    Automatically selects driver based on file extension unless explicitly
    specified. Shapefiles use the native codec.

    Examples
    --------
    >>> save_spatial(fc, 'output/results.shp')
    >>> save_spatial(fc, 'output/results.gpkg', layer='restaurants')
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    ext = path.suffix.lower()

    if driver is None:
        if ext not in SPATIAL_FORMATS:
            supported = ", ".join(SPATIAL_FORMATS.keys())
            raise ValueError(
                f"Cannot determine driver for extension: {ext}. "
                f"Supported formats: {supported}"
            )
        driver = SPATIAL_FORMATS[ext]

    if driver == "ESRI Shapefile":
        return save_shapefile(fc, path)

    _check_geopandas()

    write_kwargs = kwargs.copy()
    write_kwargs["driver"] = driver
    if layer is not None:
        write_kwargs["layer"] = layer

    fc.to_geodataframe().to_file(path, **write_kwargs)

    return path


__all__ = [
    "SPATIAL_FORMATS",
    "load_shapefile",
    "save_shapefile",
    "load_spatial",
    "save_spatial",
]
