#!/usr/bin/env python3
"""
Configuration constants for spatialkit workflows.

This module centralizes paths, spatial defaults, and overlay/batch settings.
Library code reads these lazily and falls back to built-in defaults when
this module is not importable, so the library stays usable on its own.

Usage
-----
    from config import DATA_WORK_DIR, SPATIAL_DEFAULT_CRS

    # Or import specific sections
    from config import (
        # Paths
        PROJECT_ROOT,
        DATA_RAW_DIR,
        DATA_WORK_DIR,
        OUTPUT_DIR,

        # Spatial defaults
        SPATIAL_DEFAULT_CRS,
        DEFAULT_AREA_UNITS,
        DEFAULT_DISTANCE_UNITS,

        # Batch settings
        PARALLEL_ENABLED,
        OVERLAY_CHUNK_SIZE,
    )
"""
from __future__ import annotations

from pathlib import Path


# =============================================================================
# PATHS
# =============================================================================

def _find_project_root() -> Path:
    """Find project root by looking for characteristic files."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'src').exists() and (parent / 'pyproject.toml').exists():
            return parent
    # Fallback: use parent of src/
    return Path(__file__).resolve().parent.parent


PROJECT_ROOT = _find_project_root()

# Data directories
DATA_RAW_DIR = PROJECT_ROOT / 'data_raw'
DATA_WORK_DIR = PROJECT_ROOT / 'data_work'
SPATIAL_DATA_DIR = DATA_WORK_DIR / 'spatial'

# Output directories
OUTPUT_DIR = PROJECT_ROOT / 'output'


# =============================================================================
# SPATIAL DEFAULTS
# =============================================================================

# Default coordinate reference system for tabular lon/lat input
SPATIAL_DEFAULT_CRS = "EPSG:4326"  # WGS84

# Area units for measure_area (m2, km2, ha, acre, mi2, ft2)
DEFAULT_AREA_UNITS = 'm2'

# Great-circle distance units; selects the earth radius used
# Options: 'm', 'km', 'mi'
DEFAULT_DISTANCE_UNITS = 'km'

# Text encoding for DBF attribute tables written next to shapefiles
SHAPEFILE_ENCODING = 'utf-8'


# =============================================================================
# OVERLAY AND BATCH SETTINGS
# =============================================================================

# Enable process-pool execution for large batches
PARALLEL_ENABLED = True

# Maximum number of parallel workers (None = use CPU count)
PARALLEL_MAX_WORKERS = None

# Points per chunk submitted to a worker
OVERLAY_CHUNK_SIZE = 10_000

# Per-item error handling for batch operations
# Options: 'raise' (abort on first error), 'collect' (record per-item errors)
BATCH_ERROR_MODE = 'raise'


# =============================================================================
# FILE NAMING CONVENTIONS
# =============================================================================

OVERLAY_FILE = 'overlay.csv'
AREAS_FILE = 'areas.csv'
DISTANCES_FILE = 'distances.csv'

# Full paths
OVERLAY_PATH = OUTPUT_DIR / OVERLAY_FILE
AREAS_PATH = OUTPUT_DIR / AREAS_FILE
DISTANCES_PATH = OUTPUT_DIR / DISTANCES_FILE


# =============================================================================
# VALIDATION
# =============================================================================

def validate_config() -> bool:
    """
    Validate configuration settings.

    Returns
    -------
    bool
        True if all validations pass

    Raises
    ------
    ValueError
        If any configuration is invalid
    """
    from spatialkit.core.distance import EARTH_RADII
    from spatialkit.core.measure import AREA_UNITS

    errors = []

    if not PROJECT_ROOT.exists():
        errors.append(f"PROJECT_ROOT does not exist: {PROJECT_ROOT}")

    if DEFAULT_AREA_UNITS not in AREA_UNITS:
        errors.append(f"DEFAULT_AREA_UNITS must be one of {list(AREA_UNITS)}: {DEFAULT_AREA_UNITS}")

    if DEFAULT_DISTANCE_UNITS not in EARTH_RADII:
        errors.append(f"DEFAULT_DISTANCE_UNITS must be one of {list(EARTH_RADII)}: {DEFAULT_DISTANCE_UNITS}")

    if OVERLAY_CHUNK_SIZE < 1:
        errors.append(f"OVERLAY_CHUNK_SIZE must be positive: {OVERLAY_CHUNK_SIZE}")

    if PARALLEL_MAX_WORKERS is not None and PARALLEL_MAX_WORKERS < 1:
        errors.append(f"PARALLEL_MAX_WORKERS must be positive or None: {PARALLEL_MAX_WORKERS}")

    if BATCH_ERROR_MODE not in ('raise', 'collect'):
        errors.append(f"BATCH_ERROR_MODE must be 'raise' or 'collect': {BATCH_ERROR_MODE}")

    try:
        ''.encode(SHAPEFILE_ENCODING)
    except LookupError:
        errors.append(f"SHAPEFILE_ENCODING is not a known codec: {SHAPEFILE_ENCODING}")

    if errors:
        raise ValueError("Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors))

    return True


def ensure_directories() -> None:
    """Create required directories if they don't exist."""
    for path in [DATA_RAW_DIR, DATA_WORK_DIR, SPATIAL_DATA_DIR, OUTPUT_DIR]:
        path.mkdir(parents=True, exist_ok=True)


def print_config() -> None:
    """Print the current configuration."""
    print("spatialkit Configuration")
    print("=" * 50)
    print(f"PROJECT_ROOT:          {PROJECT_ROOT}")
    print(f"DATA_RAW_DIR:          {DATA_RAW_DIR}")
    print(f"DATA_WORK_DIR:         {DATA_WORK_DIR}")
    print(f"OUTPUT_DIR:            {OUTPUT_DIR}")
    print()
    print(f"SPATIAL_DEFAULT_CRS:   {SPATIAL_DEFAULT_CRS}")
    print(f"DEFAULT_AREA_UNITS:    {DEFAULT_AREA_UNITS}")
    print(f"DEFAULT_DISTANCE_UNITS: {DEFAULT_DISTANCE_UNITS}")
    print(f"SHAPEFILE_ENCODING:    {SHAPEFILE_ENCODING}")
    print()
    print(f"PARALLEL_ENABLED:      {PARALLEL_ENABLED}")
    print(f"PARALLEL_MAX_WORKERS:  {PARALLEL_MAX_WORKERS}")
    print(f"OVERLAY_CHUNK_SIZE:    {OVERLAY_CHUNK_SIZE}")
    print(f"BATCH_ERROR_MODE:      {BATCH_ERROR_MODE}")


# =============================================================================
# MODULE INITIALIZATION
# =============================================================================

if __name__ == '__main__':
    # Print configuration when run directly
    print_config()
    print()
    print("Validating configuration...")
    try:
        validate_config()
        print("Configuration valid.")
    except ValueError as e:
        print(f"Configuration invalid:\n{e}")
