#!/usr/bin/env python3
"""
End-to-end integration tests for the spatialkit pipeline.

These tests run ``src/pipeline.py`` as a subprocess against a small
synthetic shapefile and point table written to a temporary directory.
"""
from __future__ import annotations

import pytest
import subprocess
import sys
from pathlib import Path

import pandas as pd

# Mark all tests as integration and e2e
pytestmark = [pytest.mark.integration, pytest.mark.e2e]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def pipeline_script(project_root):
    """Get the pipeline.py script path."""
    return project_root / 'src' / 'pipeline.py'


@pytest.fixture
def neighborhoods(grid_polygons, tmp_path) -> Path:
    """Polygon layer in lon/lat saved as a shapefile set."""
    from spatialkit.core.io import save_shapefile
    return save_shapefile(grid_polygons.set_crs(4326), tmp_path / 'neighborhoods.shp')


@pytest.fixture
def restaurants(tmp_path) -> Path:
    """Point table with one row missing its longitude."""
    path = tmp_path / 'restaurants.csv'
    pd.DataFrame({
        'restaurant': ['a', 'b', 'c', 'd'],
        'longitude': [0.5, 2.5, None, 4.25],
        'latitude': [0.5, 0.75, 0.5, 0.1],
    }).to_csv(path, index=False)
    return path


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def run_pipeline_command(project_root, *args, timeout=120):
    """Run a pipeline command and return the result."""
    cmd = [
        sys.executable,
        'src/pipeline.py',
        *[str(a) for a in args]
    ]
    result = subprocess.run(
        cmd,
        cwd=project_root,
        capture_output=True,
        text=True,
        timeout=timeout
    )
    return result


# ============================================================
# PIPELINE AVAILABILITY TESTS
# ============================================================

class TestPipelineAvailable:
    """Tests that verify the pipeline is available and runnable."""

    def test_pipeline_script_exists(self, pipeline_script):
        """Test that pipeline.py exists."""
        assert pipeline_script.exists()

    def test_help(self, project_root):
        """--help lists the commands."""
        result = run_pipeline_command(project_root, '--help')
        assert result.returncode == 0
        assert 'overlay' in result.stdout

    def test_show_config(self, project_root):
        """show_config validates the default configuration."""
        result = run_pipeline_command(project_root, 'show_config')
        assert result.returncode == 0, f"Failed: {result.stderr}"
        assert 'Configuration valid.' in result.stdout


# ============================================================
# WORKFLOW TESTS
# ============================================================

class TestWorkflow:
    """Inspect, overlay and measure a synthetic layer."""

    def test_inspect(self, project_root, neighborhoods):
        result = run_pipeline_command(project_root, 'inspect', '--path', neighborhoods)
        assert result.returncode == 0, f"Failed: {result.stderr}"
        assert 'Features: 3' in result.stdout

    def test_overlay(self, project_root, neighborhoods, restaurants, tmp_path):
        output = tmp_path / 'overlay.csv'
        result = run_pipeline_command(
            project_root, 'overlay',
            '--points', restaurants,
            '--polygons', neighborhoods,
            '--field', 'name',
            '--name', 'neighborhood',
            '--output', output,
        )
        assert result.returncode == 0, f"Failed: {result.stderr}"

        df = pd.read_csv(output)
        assert df['restaurant'].tolist() == ['a', 'b', 'd']
        assert df['neighborhood'].fillna('').tolist() == ['west', 'central', 'east']

    def test_measure_area(self, project_root, neighborhoods, tmp_path):
        output = tmp_path / 'areas.csv'
        result = run_pipeline_command(
            project_root, 'measure_area', '--polygons', neighborhoods, '--units', 'km2', '--output', output,
        )
        assert result.returncode == 0, f"Failed: {result.stderr}"
        assert len(pd.read_csv(output)) == 3

    def test_missing_input_fails(self, project_root, tmp_path):
        result = run_pipeline_command(project_root, 'inspect', '--path', tmp_path / 'missing.shp')
        assert result.returncode == 1
        assert 'ERROR' in result.stderr
