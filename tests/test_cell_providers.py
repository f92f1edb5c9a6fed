"""
Tests for cell_providers module.

Run with: pytest tests/test_cell_providers.py -v
"""

from datetime import datetime

import geopandas as gpd
import pytest
from pyproj import Transformer
from shapely.geometry import box

from cell_providers import GeoDataFrameProvider, new_geojson_provider
from grid_cells import CellSize, GridError, MDGID, NotFoundError
from grid_registry import Registry


@pytest.fixture
def grid_gdf():
    """Two neighbouring 50K cells in southern Norway."""
    return gpd.GeoDataFrame(
        {
            "mdg_id": ["V795X16", "NK-32-12"],
            "sheet": ["4431", "4432"],
            "series": ["V795", "V795"],
            "country": ["NO", "NO"],
            "city": ["Egersund", None],
            "nrn": ["N1", "N2"],
            "edited_by": ["gdey", None],
            "edited_at": ["2021-03-02", None],
            "published_at": ["2020-01-15", None],
            "source": ["survey", None],
        },
        geometry=[box(5.0, 57.0, 5.25, 57.25), box(5.25, 57.0, 5.5, 57.25)],
        crs="EPSG:4326",
    )


@pytest.fixture
def provider(grid_gdf):
    return GeoDataFrameProvider(grid_gdf, CellSize.CELL_50K)


class TestLookups:
    """Tests for point and MDGID lookups."""

    def test_cell_for_lat_lng(self, provider):
        cell = provider.cell_for_lat_lng(57.1, 5.1)
        assert cell.mdgid == MDGID("V795X16")
        assert cell.sw.lat == pytest.approx(57.0)
        assert cell.ne.lng == pytest.approx(5.25)
        assert cell.sheet == "4431"
        assert cell.city == "Egersund"

    def test_cell_for_lat_lng_other_srid(self, provider):
        """Test lookups with a point in web mercator."""
        transformer = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
        x, y = transformer.transform(5.4, 57.1)
        cell = provider.cell_for_lat_lng(y, x, srid=3857)
        assert cell.mdgid.id == "NK-32-12"

    def test_cell_for_lat_lng_not_found(self, provider):
        with pytest.raises(NotFoundError):
            provider.cell_for_lat_lng(10.0, 10.0)

    def test_cell_for_mdgid(self, provider):
        cell = provider.cell_for_mdgid(MDGID("V795X16"))
        assert cell.series == "V795"
        assert cell.nrn == "N1"

    def test_ids_ending_in_digits_are_kept(self, provider):
        """Test that stored IDs are not split into a part number."""
        cell = provider.cell_for_mdgid(MDGID("NK-32-12"))
        assert cell.mdgid == MDGID("NK-32-12")
        assert cell.reference_number() == "NK-32-12"

    def test_cell_for_mdgid_not_found(self, provider):
        with pytest.raises(NotFoundError):
            provider.cell_for_mdgid(MDGID("NOPE"))

    def test_cell_size(self, provider):
        assert provider.cell_size() == CellSize.CELL_50K


class TestRowParsing:
    """Tests for reading cell attributes from rows."""

    def test_dates(self, provider):
        cell = provider.cell_for_mdgid(MDGID("V795X16"))
        assert cell.publication_date() == datetime(2020, 1, 15)
        assert cell.edit_by() == "gdey"
        assert cell.edit_date() == datetime(2021, 3, 2)

    def test_missing_values(self, provider):
        cell = provider.cell_for_mdgid(MDGID("NK-32-12"))
        assert cell.city == ""
        assert cell.publication_date() is None
        assert cell.edit_by() == ""
        assert cell.metadata == {}

    def test_metadata_columns(self, provider):
        cell = provider.cell_for_mdgid(MDGID("V795X16"))
        assert cell.metadata == {"source": "survey"}

    def test_corner_columns_override_geometry(self, grid_gdf):
        grid_gdf["swlat"] = [56.9, None]
        provider = GeoDataFrameProvider(grid_gdf)
        assert provider.cell_for_mdgid(MDGID("V795X16")).sw.lat == pytest.approx(56.9)
        assert provider.cell_for_mdgid(MDGID("NK-32-12")).sw.lat == pytest.approx(57.0)

    def test_reprojects_to_wgs84(self, grid_gdf):
        provider = GeoDataFrameProvider(grid_gdf.to_crs(epsg=3857))
        assert provider.gdf.crs.to_epsg() == 4326
        cell = provider.cell_for_lat_lng(57.1, 5.1)
        assert cell.ne.lat == pytest.approx(57.25)


class TestCellForBounds:
    """Tests for ad-hoc extents."""

    def test_bounds_become_corners(self, provider):
        cell = provider.cell_for_bounds((5.1, 57.1, 5.2, 57.2))
        assert cell.mdgid.id == "V795X16"
        assert cell.sw.lat == pytest.approx(57.1)
        assert cell.sw.lng == pytest.approx(5.1)
        assert cell.ne.lat == pytest.approx(57.2)
        assert cell.ne_lat_dms().startswith("57°12'")

    def test_filename_metadata(self, provider):
        cell = provider.cell_for_bounds((5.1, 57.1, 5.2, 57.2))
        assert len(cell.metadata["filename"]) == 40

    def test_invalid_extent(self, provider):
        with pytest.raises(GridError):
            provider.cell_for_bounds((5.1, float("nan"), 5.2, 57.2))

    def test_no_intersection(self, provider):
        with pytest.raises(NotFoundError):
            provider.cell_for_bounds((10.0, 10.0, 11.0, 11.0))


class TestFromFile:
    """Tests for loading grids from files."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            GeoDataFrameProvider.from_file(tmp_path / "missing.geojson")

    def test_geojson_file(self, grid_gdf, tmp_path):
        path = tmp_path / "grid.geojson"
        grid_gdf.to_file(path, driver="GeoJSON")
        provider = new_geojson_provider({"file": str(path), "scale": 50000}, Registry())
        assert provider.cell_for_lat_lng(57.1, 5.1).mdgid.id == "V795X16"

    def test_config_needs_file(self):
        with pytest.raises(GridError):
            new_geojson_provider({}, Registry())

    def test_config_missing_file(self, tmp_path):
        with pytest.raises(GridError):
            new_geojson_provider({"file": str(tmp_path / "missing.geojson")}, Registry())

    def test_config_unknown_scale(self, tmp_path):
        with pytest.raises(GridError):
            new_geojson_provider({"file": str(tmp_path / "grid.geojson"), "scale": 12345}, Registry())
