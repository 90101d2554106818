#!/usr/bin/env python3
"""
Stage 01: Point-in-Polygon Overlay

Purpose: Tag tabular point locations with the polygon that contains them.

This stage handles:
- Loading points from a CSV/parquet table with lon/lat (or x/y) columns
- Dropping rows with missing coordinates
- Loading polygons from a shapefile (or GeoPackage/GeoJSON)
- Reprojecting the points into the polygons' CRS when they differ
- Assigning each point to the first containing polygon
- Writing the joined table

Input Files
-----------
- Points table (e.g. data_raw/restaurants.csv)
- Polygon layer (e.g. data_raw/neighborhoods.shp)

Output Files
------------
- output/overlay.csv (default)

Usage
-----
    python src/pipeline.py overlay --points data_raw/restaurants.csv \\
        --polygons data_raw/neighborhoods.shp --field name
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union
import sys

# Add parent directory for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pandas as pd

from config import BATCH_ERROR_MODE, OVERLAY_PATH, SPATIAL_DEFAULT_CRS
from spatialkit.core.crs import ensure_crs
from spatialkit.core.features import FeatureCollection, filter_missing_coordinates
from spatialkit.core.io import load_spatial
from spatialkit.overlay import assign_batch
from utils.helpers import format_count, load_table, save_table


# ============================================================
# CONFIGURATION
# ============================================================

# Default coordinate columns
DEFAULT_X = 'longitude'
DEFAULT_Y = 'latitude'

# Column holding the matched polygon's row index
POLYGON_INDEX_COLUMN = 'polygon_index'


# ============================================================
# OVERLAY
# ============================================================

def load_points(
    path: Union[str, Path],
    x: str = DEFAULT_X,
    y: str = DEFAULT_Y,
    crs: Optional[str] = None,
) -> FeatureCollection:
    """
    Load a points table into a FeatureCollection.

    Rows with missing coordinates are dropped and reported.
    """
    df = load_table(path)
    for col in (x, y):
        if col not in df.columns:
            raise ValueError(f"Column '{col}' not found in {Path(path).name}. Columns: {list(df.columns)}")

    clean = filter_missing_coordinates(df, x, y)
    dropped = len(df) - len(clean)
    print(f"  Points: {format_count(len(clean), 'row')} ({dropped:,} dropped for missing coordinates)")

    return FeatureCollection.from_coordinates(clean.reset_index(drop=True), x, y, crs or SPATIAL_DEFAULT_CRS)


def overlay_table(
    points: FeatureCollection,
    polygons: FeatureCollection,
    field: str,
    name: Optional[str] = None,
    on_error: str = BATCH_ERROR_MODE,
    n_workers: Optional[int] = None,
) -> pd.DataFrame:
    """
    Join a polygon attribute onto every point.

    Parameters
    ----------
    points : FeatureCollection
        Points in the same CRS as ``polygons``.
    polygons : FeatureCollection
        Polygon layer.
    field : str
        Polygon attribute to copy.
    name : str, optional
        Output column name. Defaults to ``field``.
    on_error : {'raise', 'collect'}
        Batch error mode.
    n_workers : int, optional
        Worker processes.

    Returns
    -------
    pd.DataFrame
        Point attributes and coordinates, plus ``polygon_index``, the joined
        field, and an ``error`` column when errors were collected.
    """
    polygons.attributes.field(field)
    results = assign_batch(points, polygons, on_error=on_error, n_workers=n_workers)

    df = points.to_dataframe()
    matched = [r.value if r.ok else None for r in results]
    df[POLYGON_INDEX_COLUMN] = pd.array(matched, dtype='Int64')
    # object dtype keeps None for unmatched points under pandas string inference
    df[name or field] = pd.Series(
        [polygons.attributes[j][field] if j is not None else None for j in matched],
        index=df.index, dtype=object,
    )
    if any(not r.ok for r in results):
        df['error'] = pd.Series(
            [None if r.ok else str(r.error) for r in results], index=df.index, dtype=object,
        )
    return df


def main(
    points: Union[str, Path],
    polygons: Union[str, Path],
    field: str,
    x: str = DEFAULT_X,
    y: str = DEFAULT_Y,
    crs: Optional[str] = None,
    name: Optional[str] = None,
    output: Optional[Union[str, Path]] = None,
    on_error: str = BATCH_ERROR_MODE,
    n_workers: Optional[int] = None,
) -> pd.DataFrame:
    """
    Execute the overlay stage.

    Parameters
    ----------
    points : str or Path
        Points table (CSV or parquet)
    polygons : str or Path
        Polygon layer
    field : str
        Polygon attribute to join onto points
    x, y : str
        Coordinate column names
    crs : str, optional
        CRS of the point coordinates (default SPATIAL_DEFAULT_CRS)
    name : str, optional
        Output column name for the joined field
    output : str or Path, optional
        Output table path (default output/overlay.csv)
    on_error : {'raise', 'collect'}
        Batch error mode
    n_workers : int, optional
        Worker processes
    """
    print("=" * 60)
    print("Stage 01: Point-in-Polygon Overlay")
    print("=" * 60)

    output_path = Path(output) if output else OVERLAY_PATH

    print(f"\n  Loading points: {points}")
    point_fc = load_points(points, x, y, crs)

    print(f"\n  Loading polygons: {polygons}")
    polygon_fc = load_spatial(polygons)
    print(f"  Polygons: {format_count(len(polygon_fc), 'feature')}, CRS {polygon_fc.crs}")

    if polygon_fc.crs is None:
        print("\nERROR: Polygon layer has no CRS; add a .prj file.", file=sys.stderr)
        sys.exit(1)

    if point_fc.crs != polygon_fc.crs:
        print(f"  Reprojecting points {point_fc.crs} -> {polygon_fc.crs}")
        point_fc = ensure_crs(point_fc, polygon_fc.crs)

    df = overlay_table(point_fc, polygon_fc, field, name, on_error, n_workers)

    print(f"\n  Saving to: {output_path}")
    save_table(df, output_path)

    n_matched = int(df[POLYGON_INDEX_COLUMN].notna().sum())
    n_errors = int(df['error'].notna().sum()) if 'error' in df.columns else 0

    print("\n" + "-" * 60)
    print("SUMMARY")
    print("-" * 60)
    print(f"  Points: {len(df):,}")
    print(f"  Matched: {n_matched:,}")
    print(f"  Unmatched: {len(df) - n_matched - n_errors:,}")
    if n_errors:
        print(f"  Errors: {n_errors:,}")
    print(f"  Output: {output_path}")

    print("\n" + "=" * 60)
    print("Stage 01 complete.")
    print("=" * 60)

    return df


if __name__ == '__main__':
    main(sys.argv[1], sys.argv[2], sys.argv[3])
