#!/usr/bin/env python3
"""
Module: pipeline.py
Purpose: Command-line interface for spatialkit overlay and measurement workflows.

Each command runs one stage from ``src/stages`` and prints a banner-style
report. Errors raised by the library (malformed files, CRS mismatches,
invalid coordinates) are reported on stderr with a non-zero exit status.

Commands
--------
inspect : Decode and summarize a shapefile
    Options: --path
overlay : Tag points with the polygon containing them
    Options: --points, --polygons, --field, --x, --y, --crs, --name, --output
    Output: output/overlay.csv
measure_area : Area of every polygon in a layer
    Options: --polygons, --units, --method, --output
    Output: output/areas.csv
measure_distance : Great-circle distance of each point to a reference location
    Options: --points, --lon, --lat, --x, --y, --units, --output
    Output: output/distances.csv
show_config : Print and validate configuration

Usage
-----
    python src/pipeline.py inspect --path data_raw/neighborhoods.shp
    python src/pipeline.py overlay --points data_raw/restaurants.csv \\
        --polygons data_raw/neighborhoods.shp --field name
"""
from __future__ import annotations

import sys
import argparse
from pathlib import Path
from typing import Optional

# Add src/ for imports when run as a script
sys.path.insert(0, str(Path(__file__).parent))

from spatialkit.errors import SpatialError


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    from config import BATCH_ERROR_MODE, DEFAULT_AREA_UNITS, DEFAULT_DISTANCE_UNITS

    p = argparse.ArgumentParser(
        description='spatialkit overlay and measurement pipeline',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    sub = p.add_subparsers(dest='cmd', required=True)

    # Inspection
    p_inspect = sub.add_parser('inspect', help='Decode and summarize a shapefile')
    p_inspect.add_argument(
        '--path', '-p',
        required=True,
        help='Path to the .shp file'
    )

    # Overlay
    p_overlay = sub.add_parser('overlay', help='Tag points with their containing polygon')
    p_overlay.add_argument(
        '--points',
        required=True,
        help='Points table (CSV or parquet)'
    )
    p_overlay.add_argument(
        '--polygons',
        required=True,
        help='Polygon layer (.shp, .gpkg, .geojson)'
    )
    p_overlay.add_argument(
        '--field', '-f',
        required=True,
        help='Polygon attribute to join onto points'
    )
    p_overlay.add_argument('--x', default='longitude', help='X/longitude column (default: longitude)')
    p_overlay.add_argument('--y', default='latitude', help='Y/latitude column (default: latitude)')
    p_overlay.add_argument(
        '--crs',
        default=None,
        help='CRS of the point coordinates (default: SPATIAL_DEFAULT_CRS)'
    )
    p_overlay.add_argument('--name', default=None, help='Output column name (default: --field)')
    p_overlay.add_argument('--output', '-o', default=None, help='Output table path')
    p_overlay.add_argument(
        '--on-error',
        default=BATCH_ERROR_MODE,
        choices=['raise', 'collect'],
        help=f'Batch error mode (default: {BATCH_ERROR_MODE})'
    )
    p_overlay.add_argument(
        '--workers', '-w',
        type=int,
        default=None,
        help='Worker processes for large point sets'
    )

    # Measurement
    p_area = sub.add_parser('measure_area', help='Area of every polygon')
    p_area.add_argument('--polygons', required=True, help='Polygon layer')
    p_area.add_argument(
        '--units', '-u',
        default=DEFAULT_AREA_UNITS,
        help=f'Area units: m2, km2, ha, acre, mi2, ft2 (default: {DEFAULT_AREA_UNITS})'
    )
    p_area.add_argument(
        '--method',
        default='auto',
        choices=['auto', 'planar', 'geodesic'],
        help='Area method (default: auto, chosen by CRS)'
    )
    p_area.add_argument('--output', '-o', default=None, help='Output table path')
    p_area.add_argument(
        '--on-error',
        default=BATCH_ERROR_MODE,
        choices=['raise', 'collect'],
        help=f'Batch error mode (default: {BATCH_ERROR_MODE})'
    )

    p_dist = sub.add_parser('measure_distance', help='Distance of each point to a reference location')
    p_dist.add_argument('--points', required=True, help='Points table (CSV or parquet)')
    p_dist.add_argument('--lon', type=float, required=True, help='Reference longitude (WGS84)')
    p_dist.add_argument('--lat', type=float, required=True, help='Reference latitude (WGS84)')
    p_dist.add_argument('--x', default='longitude', help='X/longitude column (default: longitude)')
    p_dist.add_argument('--y', default='latitude', help='Y/latitude column (default: latitude)')
    p_dist.add_argument('--crs', default=None, help='CRS of the point coordinates')
    p_dist.add_argument(
        '--units', '-u',
        default=DEFAULT_DISTANCE_UNITS,
        choices=['m', 'km', 'mi'],
        help=f'Distance units (default: {DEFAULT_DISTANCE_UNITS})'
    )
    p_dist.add_argument('--output', '-o', default=None, help='Output table path')

    # Configuration
    sub.add_parser('show_config', help='Print and validate configuration')

    return p.parse_args(argv)


def run(args: argparse.Namespace) -> None:
    """Dispatch a parsed command to its stage."""
    if args.cmd == 'inspect':
        from stages import s00_inspect
        s00_inspect.main(path=args.path)

    elif args.cmd == 'overlay':
        from stages import s01_overlay
        s01_overlay.main(
            points=args.points,
            polygons=args.polygons,
            field=args.field,
            x=args.x,
            y=args.y,
            crs=args.crs,
            name=args.name,
            output=args.output,
            on_error=args.on_error,
            n_workers=args.workers,
        )

    elif args.cmd == 'measure_area':
        from stages import s02_measure
        s02_measure.measure_areas(
            polygons=args.polygons,
            units=args.units,
            method=args.method,
            output=args.output,
            on_error=args.on_error,
        )

    elif args.cmd == 'measure_distance':
        from stages import s02_measure
        s02_measure.measure_distances(
            points=args.points,
            lon=args.lon,
            lat=args.lat,
            x=args.x,
            y=args.y,
            crs=args.crs,
            units=args.units,
            output=args.output,
        )

    elif args.cmd == 'show_config':
        import config
        config.print_config()
        print()
        config.validate_config()
        print("Configuration valid.")


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    try:
        run(args)
    except (SpatialError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == '__main__':
    main()
