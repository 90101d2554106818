#!/usr/bin/env python3
"""
Stage 00: Shapefile Inspection

Purpose: Decode a shapefile and summarize what it holds.

This stage reports:
- Shape type and feature count
- CRS (from the .prj file, if any) and extent
- Attribute fields from the .dbf file, with a few sample rows

Input Files
-----------
- Any Point or Polygon .shp file (with optional .dbf/.prj/.cpg)

Usage
-----
    python src/pipeline.py inspect --path data_raw/neighborhoods.shp
"""
from __future__ import annotations

from pathlib import Path
from typing import Union
import sys

# Add parent directory for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from spatialkit.core.crs import get_crs_info
from spatialkit.core.features import FeatureCollection
from spatialkit.core.io import load_shapefile
from spatialkit.core.shapefile import read_shape_type, shape_type_name


# ============================================================
# CONFIGURATION
# ============================================================

# Number of attribute rows shown in the summary
SAMPLE_ROWS = 5


# ============================================================
# SUMMARY
# ============================================================

def summarize(fc: FeatureCollection) -> dict:
    """
    Collect summary facts about a decoded collection.

    Parameters
    ----------
    fc : FeatureCollection
        Decoded collection.

    Returns
    -------
    dict
        Keys: n_features, geometry_type, crs, bounds, fields, n_rings.
    """
    n_rings = 0
    if fc.geometry_type == "Polygon":
        n_rings = sum(len(g.rings) for g in fc.geometries)

    return {
        'n_features': len(fc),
        'geometry_type': fc.geometry_type,
        'crs': fc.crs,
        'bounds': fc.bounds().as_tuple() if len(fc) else None,
        'fields': [(f.name, f.dtype.__name__) for f in fc.attributes.fields],
        'n_rings': n_rings,
    }


def main(path: Union[str, Path], verbose: bool = True) -> FeatureCollection:
    """
    Execute shapefile inspection.

    Parameters
    ----------
    path : str or Path
        Path to the .shp file
    verbose : bool
        Print sample attribute rows
    """
    print("=" * 60)
    print("Stage 00: Shapefile Inspection")
    print("=" * 60)

    path = Path(path)
    print(f"\n  Reading: {path}")

    shape_type = read_shape_type(path.read_bytes())
    print(f"  Shape type: {shape_type_name(shape_type)} ({shape_type})")

    fc = load_shapefile(path)
    info = summarize(fc)

    print("\n" + "-" * 60)
    print("SUMMARY")
    print("-" * 60)
    print(f"  Features: {info['n_features']:,}")
    print(f"  Geometry: {info['geometry_type']}")
    if info['n_rings']:
        print(f"  Rings: {info['n_rings']:,}")

    crs_info = get_crs_info(fc.crs)
    if crs_info['crs'] is None:
        print("  CRS: unknown (no .prj)")
    else:
        kind = "geographic" if crs_info['is_geographic'] else "projected"
        print(f"  CRS: {crs_info['crs']} ({kind})")

    min_x, min_y, max_x, max_y = info['bounds']
    print(f"  Extent: ({min_x:.6f}, {min_y:.6f}) - ({max_x:.6f}, {max_y:.6f})")

    print(f"\n  Fields ({len(info['fields'])}):")
    for name, dtype in info['fields']:
        print(f"    - {name}: {dtype}")

    if verbose and info['fields']:
        print(f"\n  First {min(SAMPLE_ROWS, len(fc))} rows:")
        for row in fc.attributes.to_records()[:SAMPLE_ROWS]:
            print(f"    {row}")

    print("\n" + "=" * 60)
    print("Stage 00 complete.")
    print("=" * 60)

    return fc


if __name__ == '__main__':
    main(sys.argv[1])
