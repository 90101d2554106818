"""Tests for spatial data I/O utilities."""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from spatialkit.core.features import FeatureCollection
from spatialkit.core.io import (
    SPATIAL_FORMATS,
    load_shapefile,
    load_spatial,
    save_shapefile,
    save_spatial,
)
from spatialkit.errors import MalformedFileError

# Try to import geopandas for the GeoJSON/GeoPackage paths
try:
    import geopandas as gpd
    HAS_GEOPANDAS = True
except ImportError:
    HAS_GEOPANDAS = False


class TestSpatialFormats:
    """Tests for supported spatial formats."""

    def test_gpkg_supported(self):
        """GeoPackage should be supported."""
        assert SPATIAL_FORMATS[".gpkg"] == "GPKG"

    def test_shp_supported(self):
        """Shapefile should be supported."""
        assert SPATIAL_FORMATS[".shp"] == "ESRI Shapefile"

    def test_geojson_supported(self):
        """GeoJSON (.geojson and .json) should be supported."""
        assert SPATIAL_FORMATS[".geojson"] == "GeoJSON"
        assert SPATIAL_FORMATS[".json"] == "GeoJSON"


class TestShapefileFiles:
    """Tests for save_shapefile / load_shapefile."""

    def test_writes_sidecar_files(self, cities, tmp_path):
        """Should write .shp, .shx, .dbf, .cpg and .prj."""
        path = save_shapefile(cities, tmp_path / "cities.shp")

        for suffix in (".shp", ".shx", ".dbf", ".cpg", ".prj"):
            assert path.with_suffix(suffix).exists()
        assert path.with_suffix(".cpg").read_text() == "UTF-8"

    def test_points_round_trip(self, cities, tmp_path):
        path = save_shapefile(cities, tmp_path / "cities.shp")
        loaded = load_shapefile(path)

        assert loaded.geometries == cities.geometries
        assert loaded.attributes.column("city") == ["NYC", "LA", "Chicago", "SF"]
        assert loaded.crs == "EPSG:4326"

    def test_polygons_round_trip(self, grid_polygons, donut, tmp_path):
        """Rings are rewound on save but describe the same polygons."""
        fc = grid_polygons.set_crs(4326)
        path = save_shapefile(fc, tmp_path / "grid.shp")
        loaded = load_shapefile(path)

        assert len(loaded) == 3
        assert loaded.attributes.column("name") == ["west", "central", "east"]
        for original, result in zip(fc.geometries, loaded.geometries):
            assert result.outer.reversed() == original.outer

    def test_no_prj_warns(self, grid_polygons, tmp_path):
        """Missing .prj leaves the CRS unknown with a warning."""
        path = save_shapefile(grid_polygons.set_crs(None), tmp_path / "grid.shp")
        assert not path.with_suffix(".prj").exists()

        with pytest.warns(UserWarning, match="No .prj"):
            loaded = load_shapefile(path)
        assert loaded.crs is None

    def test_explicit_crs_overrides_prj(self, cities, tmp_path):
        path = save_shapefile(cities, tmp_path / "cities.shp")
        assert load_shapefile(path, crs=4269).crs == "EPSG:4269"

    def test_explicit_attributes(self, cities, tmp_path):
        path = save_shapefile(cities, tmp_path / "cities.shp")
        loaded = load_shapefile(path, attributes=[{"rank": i} for i in range(4)])
        assert loaded.attributes.field_names == ["rank"]

    def test_without_dbf(self, cities, tmp_path):
        path = save_shapefile(cities, tmp_path / "cities.shp")
        path.with_suffix(".dbf").unlink()
        assert load_shapefile(path).attributes.field_names == []

    def test_corrupt_file(self, cities, tmp_path):
        path = save_shapefile(cities, tmp_path / "cities.shp")
        path.write_bytes(path.read_bytes()[:150])
        with pytest.raises(MalformedFileError):
            load_shapefile(path)

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="not found"):
            load_shapefile(tmp_path / "missing.shp")

    def test_wrong_suffix(self, cities, tmp_path):
        with pytest.raises(ValueError, match=".shp"):
            save_shapefile(cities, tmp_path / "cities.dat")


class TestLoadSpatial:
    """Tests for load_spatial function."""

    def test_shapefile_dispatch(self, cities, tmp_path):
        path = save_spatial(cities, tmp_path / "nested" / "cities.shp")
        assert path.parent.exists()
        assert load_spatial(path) == load_shapefile(path)

    def test_file_not_found(self, tmp_path):
        """Should raise FileNotFoundError for missing files."""
        with pytest.raises(FileNotFoundError, match="not found"):
            load_spatial(tmp_path / "nonexistent.gpkg")

    def test_unsupported_format(self, tmp_path):
        """Should raise ValueError for unsupported formats."""
        filepath = tmp_path / "test.xyz"
        filepath.touch()

        with pytest.raises(ValueError, match="Unsupported spatial format"):
            load_spatial(filepath)


class TestSaveSpatial:
    """Tests for save_spatial function."""

    def test_unsupported_format(self, cities, tmp_path):
        """Should raise ValueError for unsupported formats."""
        with pytest.raises(ValueError, match="Cannot determine driver"):
            save_spatial(cities, tmp_path / "output.xyz")


@pytest.mark.skipif(not HAS_GEOPANDAS, reason="geopandas not installed")
class TestGeoPandasFormats:
    """GeoJSON and GeoPackage round trips through geopandas."""

    @pytest.mark.parametrize("extension", [".geojson", ".gpkg"])
    def test_round_trip(self, cities, tmp_path, extension):
        """Data should survive a save/load round trip."""
        filepath = tmp_path / f"test{extension}"

        result_path = save_spatial(cities, filepath)
        loaded = load_spatial(filepath)

        assert result_path == filepath
        assert len(loaded) == len(cities)
        assert loaded.attributes.column("city") == cities.attributes.column("city")
        assert loaded.geometries == cities.geometries
        assert loaded.crs == "EPSG:4326"

    def test_polygons_with_holes(self, donut, two_islands, tmp_path):
        fc = FeatureCollection([donut, two_islands], [{"id": 1}, {"id": 2}], crs=4326)
        filepath = tmp_path / "shapes.geojson"
        save_spatial(fc, filepath)

        loaded = gpd.read_file(filepath)
        assert list(loaded.geometry.geom_type) == ["Polygon", "MultiPolygon"]
        assert loaded.geometry.iloc[0].area == pytest.approx(96.0)
