#!/usr/bin/env python3
"""
Tests for src/pipeline.py

Tests cover:
- CLI argument parsing
- Command routing
- Error reporting and exit codes
"""
from __future__ import annotations

import pytest
import sys
from pathlib import Path
from unittest.mock import patch

import pandas as pd

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))


class TestParseArgs:
    """Tests for argument parsing."""

    def test_inspect_command(self):
        """Parse inspect command."""
        from pipeline import parse_args
        args = parse_args(['inspect', '--path', 'data_raw/areas.shp'])
        assert args.cmd == 'inspect'
        assert args.path == 'data_raw/areas.shp'

    def test_inspect_requires_path(self):
        """inspect requires --path."""
        from pipeline import parse_args
        with pytest.raises(SystemExit):
            parse_args(['inspect'])

    def test_overlay_defaults(self):
        """Parse overlay with defaults."""
        from pipeline import parse_args
        args = parse_args(['overlay', '--points', 'p.csv', '--polygons', 'a.shp', '-f', 'name'])
        assert args.cmd == 'overlay'
        assert args.field == 'name'
        assert args.x == 'longitude'
        assert args.y == 'latitude'
        assert args.crs is None
        assert args.on_error == 'raise'
        assert args.workers is None

    def test_overlay_with_options(self):
        """Parse overlay with custom options."""
        from pipeline import parse_args
        args = parse_args([
            'overlay', '--points', 'p.csv', '--polygons', 'a.shp', '--field', 'name',
            '--x', 'lon', '--y', 'lat', '--crs', 'EPSG:3857',
            '--name', 'area', '-o', 'out.csv', '--on-error', 'collect', '-w', '4',
        ])
        assert (args.x, args.y, args.crs) == ('lon', 'lat', 'EPSG:3857')
        assert args.name == 'area'
        assert args.output == 'out.csv'
        assert args.on_error == 'collect'
        assert args.workers == 4

    def test_overlay_rejects_unknown_error_mode(self):
        """--on-error only accepts raise/collect."""
        from pipeline import parse_args
        with pytest.raises(SystemExit):
            parse_args(['overlay', '--points', 'p.csv', '--polygons', 'a.shp', '-f', 'x', '--on-error', 'skip'])

    def test_measure_area(self):
        """Parse measure_area command."""
        from pipeline import parse_args
        args = parse_args(['measure_area', '--polygons', 'a.shp', '-u', 'mi2', '--method', 'planar'])
        assert args.cmd == 'measure_area'
        assert args.units == 'mi2'
        assert args.method == 'planar'

    def test_measure_distance(self):
        """Parse measure_distance command."""
        from pipeline import parse_args
        args = parse_args([
            'measure_distance', '--points', 'p.csv', '--lon', '-122.4194', '--lat', '37.7749', '-u', 'mi',
        ])
        assert args.lon == pytest.approx(-122.4194)
        assert args.lat == pytest.approx(37.7749)
        assert args.units == 'mi'

    def test_measure_distance_units_restricted(self):
        """Distance units are m, km or mi."""
        from pipeline import parse_args
        with pytest.raises(SystemExit):
            parse_args(['measure_distance', '--points', 'p.csv', '--lon', '0', '--lat', '0', '-u', 'ft'])

    def test_reads_sys_argv(self):
        """parse_args falls back to sys.argv."""
        from pipeline import parse_args
        with patch('sys.argv', ['pipeline.py', 'show_config']):
            assert parse_args().cmd == 'show_config'

    def test_command_required(self):
        """A subcommand is required."""
        from pipeline import parse_args
        with pytest.raises(SystemExit):
            parse_args([])


class TestRouting:
    """Tests for command dispatch."""

    def test_overlay_routes_to_stage(self):
        """overlay calls the stage with parsed options."""
        from pipeline import main
        with patch('stages.s01_overlay.main') as stage:
            main(['overlay', '--points', 'p.csv', '--polygons', 'a.shp', '-f', 'name', '-w', '2'])
        kwargs = stage.call_args.kwargs
        assert kwargs['points'] == 'p.csv'
        assert kwargs['field'] == 'name'
        assert kwargs['n_workers'] == 2

    def test_measure_area_routes_to_stage(self):
        """measure_area calls measure_areas."""
        from pipeline import main
        with patch('stages.s02_measure.measure_areas') as stage:
            main(['measure_area', '--polygons', 'a.shp', '-u', 'ha'])
        assert stage.call_args.kwargs['units'] == 'ha'

    def test_show_config(self, capsys):
        """show_config prints and validates configuration."""
        from pipeline import main
        main(['show_config'])
        out = capsys.readouterr().out
        assert 'SPATIAL_DEFAULT_CRS' in out
        assert 'Configuration valid.' in out


class TestErrors:
    """Tests for error reporting."""

    def test_missing_file_exits_1(self, tmp_path, capsys):
        """A missing input file is reported with exit status 1."""
        from pipeline import main
        with pytest.raises(SystemExit) as exc:
            main(['inspect', '--path', str(tmp_path / 'missing.shp')])
        assert exc.value.code == 1
        assert 'ERROR' in capsys.readouterr().err

    def test_malformed_file_exits_1(self, tmp_path, capsys):
        """A corrupt shapefile is reported with exit status 1."""
        from pipeline import main
        path = tmp_path / 'bad.shp'
        path.write_bytes(b'\x00' * 120)
        with pytest.raises(SystemExit) as exc:
            main(['inspect', '--path', str(path)])
        assert exc.value.code == 1
        assert 'file code' in capsys.readouterr().err

    def test_bad_column_exits_2(self, tmp_path, grid_polygons):
        """A missing coordinate column is a usage error (exit 2)."""
        from pipeline import main
        from spatialkit.core.io import save_shapefile

        polygons = save_shapefile(grid_polygons.set_crs(4326), tmp_path / 'grid.shp')
        points = tmp_path / 'points.csv'
        pd.DataFrame({'lon': [0.5], 'lat': [0.5]}).to_csv(points, index=False)

        with pytest.raises(SystemExit) as exc:
            main(['overlay', '--points', str(points), '--polygons', str(polygons), '-f', 'name'])
        assert exc.value.code == 2
