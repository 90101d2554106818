#!/usr/bin/env python3
"""
Tests for src/stages/s01_overlay.py

Tests cover:
- Loading point tables (load_points)
- Overlay table construction (overlay_table)
- End-to-end stage execution with reprojection
"""
from __future__ import annotations

import pytest
import numpy as np
import pandas as pd
from pathlib import Path
import sys

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from spatialkit.core.features import FeatureCollection
from spatialkit.core.geometry import Point, Polygon
from spatialkit.core.io import save_shapefile
from spatialkit.errors import CRSMismatchError
from stages.s01_overlay import POLYGON_INDEX_COLUMN, load_points, main, overlay_table


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def points_csv(tmp_path) -> Path:
    """Point table in lon/lat with one row missing coordinates."""
    path = tmp_path / 'points.csv'
    pd.DataFrame({
        'id': [10, 11, 12, 13, 14],
        'longitude': [0.5, 4.5, np.nan, 3.5, 2.0],
        'latitude': [0.5, 0.5, 0.5, 0.5, 0.5],
    }).to_csv(path, index=False)
    return path


@pytest.fixture
def polygons_shp(grid_polygons, tmp_path) -> Path:
    """The grid squares saved as a lon/lat shapefile."""
    return save_shapefile(grid_polygons.set_crs(4326), tmp_path / 'grid.shp')


# ============================================================
# LOAD POINTS TESTS
# ============================================================

class TestLoadPoints:
    """Tests for the load_points function."""

    def test_drops_missing_coordinates(self, points_csv, capsys):
        fc = load_points(points_csv)
        assert len(fc) == 4
        assert fc.attributes.column('id') == [10, 11, 13, 14]
        assert fc.crs == 'EPSG:4326'
        assert '1 dropped' in capsys.readouterr().out

    def test_custom_crs(self, points_csv):
        assert load_points(points_csv, crs='EPSG:3857').crs == 'EPSG:3857'

    def test_missing_column(self, points_csv):
        with pytest.raises(ValueError, match="Column 'lon' not found"):
            load_points(points_csv, x='lon')


# ============================================================
# OVERLAY TABLE TESTS
# ============================================================

class TestOverlayTable:
    """Tests for the overlay_table function."""

    def test_joined_columns(self, grid_points, grid_polygons):
        df = overlay_table(grid_points, grid_polygons, 'name', name='area')

        assert list(df.columns) == ['id', 'x', 'y', POLYGON_INDEX_COLUMN, 'area']
        assert df[POLYGON_INDEX_COLUMN].tolist() == [0, 2, pd.NA, 1, pd.NA]
        assert df['area'].tolist() == ['west', 'east', None, 'central', None]
        assert df['area'].dtype == object

    def test_unknown_field(self, grid_points, grid_polygons):
        with pytest.raises(KeyError):
            overlay_table(grid_points, grid_polygons, 'population')

    def test_crs_mismatch(self, grid_points, grid_polygons):
        with pytest.raises(CRSMismatchError):
            overlay_table(grid_points.set_crs(4326), grid_polygons, 'name')


# ============================================================
# MAIN TESTS
# ============================================================

class TestMain:
    """Tests for end-to-end stage execution."""

    def test_writes_output(self, points_csv, polygons_shp, tmp_path):
        output = tmp_path / 'out' / 'overlay.csv'

        df = main(points_csv, polygons_shp, 'name', output=output)

        assert output.exists()
        saved = pd.read_csv(output)
        assert len(saved) == 4
        assert df['name'].tolist() == ['west', 'east', None, 'central']
        assert saved['id'].tolist() == [10, 11, 13, 14]

    def test_reprojects_points(self, polygons_shp, tmp_path):
        """Points given in Web Mercator are moved into the polygon CRS."""
        from pyproj import Transformer

        to_mercator = Transformer.from_crs('EPSG:4326', 'EPSG:3857', always_xy=True)
        x, y = to_mercator.transform([0.5, 4.5], [0.5, 0.5])
        points = tmp_path / 'mercator.csv'
        pd.DataFrame({'x': x, 'y': y}).to_csv(points, index=False)

        df = main(points, polygons_shp, 'name', x='x', y='y', crs='EPSG:3857', output=tmp_path / 'o.csv')

        assert df['name'].tolist() == ['west', 'east']

    def test_polygons_without_crs_exit(self, points_csv, grid_polygons, tmp_path):
        polygons = save_shapefile(grid_polygons.set_crs(None), tmp_path / 'nocrs.shp')
        with pytest.warns(UserWarning):
            with pytest.raises(SystemExit):
                main(points_csv, polygons, 'name', output=tmp_path / 'o.csv')

    def test_parquet_output(self, points_csv, polygons_shp, tmp_path):
        pytest.importorskip('pyarrow')
        output = tmp_path / 'overlay.parquet'
        main(points_csv, polygons_shp, 'name', output=output)
        saved = pd.read_parquet(output)['name']
        assert saved[[0, 1, 3]].tolist() == ['west', 'east', 'central']
        assert pd.isna(saved[2])
