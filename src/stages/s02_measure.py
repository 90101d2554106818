#!/usr/bin/env python3
"""
Stage 02: Area and Distance Measurement

Purpose: Derive measurement columns for polygon and point layers.

This stage handles:
- Polygon areas in a chosen unit (planar for projected layers, geodesic
  for lon/lat layers)
- Great-circle distance from each point to a reference location

Input Files
-----------
- Polygon layer (e.g. data_raw/neighborhoods.shp) for measure_area
- Points table with lon/lat columns for measure_distance

Output Files
------------
- output/areas.csv
- output/distances.csv

Usage
-----
    python src/pipeline.py measure_area --polygons data_raw/neighborhoods.shp --units mi2
    python src/pipeline.py measure_distance --points data_raw/restaurants.csv \\
        --lon -122.4194 --lat 37.7749 --units mi
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union
import sys

# Add parent directory for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pandas as pd

from config import (
    AREAS_PATH,
    BATCH_ERROR_MODE,
    DEFAULT_AREA_UNITS,
    DEFAULT_DISTANCE_UNITS,
    DISTANCES_PATH,
    SPATIAL_DEFAULT_CRS,
)
from spatialkit.core.crs import WGS84, ensure_crs
from spatialkit.core.distance import EARTH_RADII, add_distance_column
from spatialkit.core.geometry import Point
from spatialkit.core.io import load_spatial
from spatialkit.core.measure import AREA_UNITS, collection_areas
from stages.s01_overlay import DEFAULT_X, DEFAULT_Y, load_points
from utils.helpers import save_table


# ============================================================
# AREA
# ============================================================

def measure_areas(
    polygons: Union[str, Path],
    units: str = DEFAULT_AREA_UNITS,
    method: str = 'auto',
    output: Optional[Union[str, Path]] = None,
    on_error: str = BATCH_ERROR_MODE,
) -> pd.DataFrame:
    """
    Compute the area of every polygon in a layer.

    Parameters
    ----------
    polygons : str or Path
        Polygon layer
    units : str
        Output area units (see AREA_UNITS)
    method : {'auto', 'planar', 'geodesic'}
        Area method. 'auto' picks by CRS.
    output : str or Path, optional
        Output table path (default output/areas.csv)
    on_error : {'raise', 'collect'}
        Batch error mode

    Returns
    -------
    pd.DataFrame
        Polygon attributes plus ``area_<units>``.
    """
    print("=" * 60)
    print("Stage 02: Area Measurement")
    print("=" * 60)

    if units not in AREA_UNITS:
        print(f"\nERROR: Unknown area units '{units}'. Available: {', '.join(AREA_UNITS)}", file=sys.stderr)
        sys.exit(1)

    output_path = Path(output) if output else AREAS_PATH

    print(f"\n  Loading polygons: {polygons}")
    fc = load_spatial(polygons)
    print(f"  Polygons: {len(fc):,} features, CRS {fc.crs}")

    if fc.crs is None and method == 'auto':
        print("\nERROR: Polygon layer has no CRS; pass --method planar or add a .prj file.", file=sys.stderr)
        sys.exit(1)

    results = collection_areas(fc, units=units, method=method, on_error=on_error)
    column = f'area_{units}'

    df = fc.attributes.to_dataframe()
    df[column] = [r.value if r.ok else None for r in results]
    errors = [r for r in results if not r.ok]
    if errors:
        df['error'] = [None if r.ok else str(r.error) for r in results]

    print(f"\n  Saving to: {output_path}")
    save_table(df, output_path)

    print("\n" + "-" * 60)
    print("SUMMARY")
    print("-" * 60)
    print(f"  Polygons: {len(df):,}")
    print(f"  Total area: {df[column].sum():,.4f} {units}")
    if len(df):
        print(f"  Min / max: {df[column].min():,.4f} / {df[column].max():,.4f} {units}")
    if errors:
        print(f"  Errors: {len(errors):,}")
    print(f"  Output: {output_path}")

    print("\n" + "=" * 60)
    print("Stage 02 complete.")
    print("=" * 60)

    return df


# ============================================================
# DISTANCE
# ============================================================

def measure_distances(
    points: Union[str, Path],
    lon: float,
    lat: float,
    x: str = DEFAULT_X,
    y: str = DEFAULT_Y,
    crs: Optional[str] = None,
    units: str = DEFAULT_DISTANCE_UNITS,
    output: Optional[Union[str, Path]] = None,
) -> pd.DataFrame:
    """
    Great-circle distance from every point to a reference location.

    Parameters
    ----------
    points : str or Path
        Points table (CSV or parquet)
    lon, lat : float
        Reference location in WGS84 degrees
    x, y : str
        Coordinate column names
    crs : str, optional
        CRS of the point coordinates (default SPATIAL_DEFAULT_CRS)
    units : {'m', 'km', 'mi'}
        Distance units
    output : str or Path, optional
        Output table path (default output/distances.csv)

    Returns
    -------
    pd.DataFrame
        Point attributes and coordinates plus ``distance_<units>``.
    """
    print("=" * 60)
    print("Stage 02: Distance Measurement")
    print("=" * 60)

    if units not in EARTH_RADII:
        print(f"\nERROR: Unknown distance units '{units}'. Available: {', '.join(EARTH_RADII)}", file=sys.stderr)
        sys.exit(1)

    output_path = Path(output) if output else DISTANCES_PATH
    reference = Point(lon, lat)

    print(f"\n  Loading points: {points}")
    fc = load_points(points, x, y, crs or SPATIAL_DEFAULT_CRS)
    if fc.crs != WGS84:
        print(f"  Reprojecting points {fc.crs} -> {WGS84}")
        fc = ensure_crs(fc, WGS84)

    column = f'distance_{units}'
    print(f"  Reference: ({reference.x}, {reference.y})")
    fc = add_distance_column(fc, reference, name=column, radius=EARTH_RADII[units])
    df = fc.to_dataframe()

    print(f"\n  Saving to: {output_path}")
    save_table(df, output_path)

    print("\n" + "-" * 60)
    print("SUMMARY")
    print("-" * 60)
    print(f"  Points: {len(df):,}")
    if len(df):
        print(f"  Mean distance: {df[column].mean():,.4f} {units}")
        print(f"  Min / max: {df[column].min():,.4f} / {df[column].max():,.4f} {units}")
    print(f"  Output: {output_path}")

    print("\n" + "=" * 60)
    print("Stage 02 complete.")
    print("=" * 60)

    return df


def main(polygons: Union[str, Path], units: str = DEFAULT_AREA_UNITS) -> pd.DataFrame:
    """Run area measurement (default entry point)."""
    return measure_areas(polygons, units=units)


if __name__ == '__main__':
    main(sys.argv[1])
