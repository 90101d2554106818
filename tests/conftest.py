#!/usr/bin/env python3
"""
Shared pytest fixtures for the test suite.

This module provides common fixtures used across test modules including:
- Simple polygons (unit squares, a square with a hole)
- Point and polygon feature collections
- Sample point tables
- Project path fixtures
"""
from __future__ import annotations

import sys
from pathlib import Path

# Add src directory to Python path for test imports
_project_root = Path(__file__).parent.parent
_src_path = _project_root / 'src'
if str(_src_path) not in sys.path:
    sys.path.insert(0, str(_src_path))

import pytest
import pandas as pd

from spatialkit.core.features import FeatureCollection
from spatialkit.core.geometry import MultiPolygon, Point, Polygon, Ring


# ============================================================
# PATH FIXTURES
# ============================================================

@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


# ============================================================
# GEOMETRY FIXTURES
# ============================================================

def square(x0: float, y0: float, size: float = 1.0) -> Polygon:
    """Counter-clockwise axis-aligned square with its lower-left corner at (x0, y0)."""
    return Polygon([
        (x0, y0),
        (x0 + size, y0),
        (x0 + size, y0 + size),
        (x0, y0 + size),
        (x0, y0),
    ])


@pytest.fixture
def make_square():
    """Factory for axis-aligned squares."""
    return square


@pytest.fixture
def unit_square() -> Polygon:
    """The square (0, 0) - (1, 1)."""
    return square(0, 0)


@pytest.fixture
def donut() -> Polygon:
    """10 x 10 square with a 2 x 2 hole in the middle (area 96)."""
    outer = Ring([(0, 0), (10, 0), (10, 10), (0, 10), (0, 0)])
    hole = Ring([(4, 4), (4, 6), (6, 6), (6, 4), (4, 4)])
    return Polygon(outer, [hole])


@pytest.fixture
def two_islands() -> MultiPolygon:
    """Two disjoint unit squares forming one feature."""
    return MultiPolygon([square(0, 0), square(5, 5)])


@pytest.fixture
def grid_polygons() -> FeatureCollection:
    """Three disjoint unit squares in a row, with names."""
    return FeatureCollection(
        [square(0, 0), square(2, 0), square(4, 0)],
        [{"name": "west"}, {"name": "central"}, {"name": "east"}],
        crs="EPSG:3857",
    )


@pytest.fixture
def grid_points() -> FeatureCollection:
    """Inside west, inside east, in a gap, on the central west edge, far outside."""
    return FeatureCollection(
        [Point(0.5, 0.5), Point(4.5, 0.5), Point(3.5, 0.5), Point(2.0, 0.5), Point(50, 50)],
        [{"id": i} for i in range(5)],
        crs="EPSG:3857",
    )


# ============================================================
# DATA FIXTURES
# ============================================================

@pytest.fixture
def cities_df() -> pd.DataFrame:
    """A few US cities with lon/lat columns."""
    return pd.DataFrame({
        'city': ['NYC', 'LA', 'Chicago', 'SF'],
        'longitude': [-74.0060, -118.2437, -87.6298, -122.4194],
        'latitude': [40.7128, 34.0522, 41.8781, 37.7749],
    })


@pytest.fixture
def cities(cities_df) -> FeatureCollection:
    """City points in WGS84."""
    return FeatureCollection.from_coordinates(cities_df, 'longitude', 'latitude', crs='EPSG:4326')
