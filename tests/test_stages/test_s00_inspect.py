#!/usr/bin/env python3
"""
Tests for src/stages/s00_inspect.py

Tests cover:
- Summary facts for point and polygon collections
- The inspection report
"""
from __future__ import annotations

import pytest
from pathlib import Path
import sys

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from spatialkit.core.features import FeatureCollection
from spatialkit.core.io import save_shapefile
from stages.s00_inspect import main, summarize


class TestSummarize:
    """Tests for the summarize function."""

    def test_points(self, grid_points):
        info = summarize(grid_points)
        assert info['n_features'] == 5
        assert info['geometry_type'] == 'Point'
        assert info['crs'] == 'EPSG:3857'
        assert info['bounds'] == (0.5, 0.5, 50.0, 50.0)
        assert info['fields'] == [('id', 'int')]
        assert info['n_rings'] == 0

    def test_polygon_rings(self, donut, two_islands):
        info = summarize(FeatureCollection([donut, two_islands]))
        assert info['geometry_type'] == 'Polygon'
        assert info['n_rings'] == 4
        assert info['crs'] is None

    def test_empty(self):
        info = summarize(FeatureCollection([]))
        assert info['n_features'] == 0
        assert info['bounds'] is None


class TestMain:
    """Tests for the inspection report."""

    def test_report(self, grid_polygons, tmp_path, capsys):
        path = save_shapefile(grid_polygons.set_crs(4326), tmp_path / 'grid.shp')

        fc = main(path)

        out = capsys.readouterr().out
        assert len(fc) == 3
        assert 'POLYGON (5)' in out
        assert 'EPSG:4326 (geographic)' in out
        assert '- name: str' in out
        assert "'central'" in out

    def test_report_without_prj(self, grid_polygons, tmp_path, capsys):
        path = save_shapefile(grid_polygons.set_crs(None), tmp_path / 'grid.shp')

        with pytest.warns(UserWarning):
            main(path, verbose=False)

        out = capsys.readouterr().out
        assert 'unknown (no .prj)' in out
        assert "'central'" not in out
