"""
Tests for grid_cells module.

Run with: pytest tests/test_grid_cells.py -v
"""

from datetime import datetime

import pytest
import resolution
from geodesy import Hemisphere, UTMZone, ZoneKind, calculate_sec_lengths
from grid_cells import (
    Cell,
    CellSize,
    EditInfo,
    GridError,
    LatLng,
    MDGID,
    NotFoundError,
    UTMInfo,
    cell_size_label,
    is_finite_extent,
    new_cell,
    new_mdgid,
    to_wgs84,
)


@pytest.fixture
def cell():
    """A 1 degree cell in UTM zone 13."""
    return new_cell(
        "V795X16",
        sw=(40.0, -106.0),
        ne=(41.0, -105.0),
        country="US",
        city="Denver",
        sheet="4431",
        series="V795",
        nrn="NRN-1",
        published_at=datetime(2020, 1, 15),
        edit_info=EditInfo(by="gdey", date=datetime(2021, 3, 2)),
    )


class TestMDGID:
    """Tests for MDGID parsing and formatting."""

    @pytest.mark.parametrize("text,expected", [
        ("V795X16", MDGID("V795X16", 0)),
        ("V795X16:23", MDGID("V795X16", 23)),
        ("  V795X16-7 ", MDGID("V795X16", 7)),
        ("V795-X16", MDGID("V795-X16", 0)),
        ("V795X16:", MDGID("V795X16:", 0)),
        ("A-1:B", MDGID("A-1:B", 0)),
        ("NK-32:12", MDGID("NK-32", 12)),
    ])
    def test_new_mdgid(self, text, expected):
        assert new_mdgid(text) == expected

    def test_as_string(self):
        assert MDGID("V795X16").as_string() == "V795X16"
        assert MDGID("V795X16", 5).as_string() == "V795X16:5"
        assert str(MDGID("V795X16", 5)) == "V795X16:5"

    @pytest.mark.parametrize("part", [0, 1, 42, 100])
    def test_round_trip(self, part):
        for mdgid in (MDGID("V795X16", part), MDGID("E5A", part)):
            assert new_mdgid(mdgid.as_string()) == mdgid

    def test_without_part(self):
        assert MDGID("V795X16", 5).without_part() == MDGID("V795X16")


class TestCellSize:
    """Tests for cell size labels."""

    def test_labels(self):
        assert str(CellSize.CELL_5K) == "5K"
        assert str(CellSize.CELL_50K) == "50K"
        assert str(CellSize.CELL_250K) == "250K"
        assert cell_size_label(1234) == "1234m"


class TestUTMInfo:
    """Tests for UTMInfo construction."""

    def test_new(self):
        info = UTMInfo.new(32, Hemisphere.NORTH)
        assert info.zone == UTMZone.numbered(32)

    def test_new_out_of_range(self):
        with pytest.raises(ValueError):
            UTMInfo.new(61, Hemisphere.NORTH)

    def test_from_lat_lng_polar(self):
        info = UTMInfo.from_lat_lng(-85.0, 10.0)
        assert info.zone.kind is ZoneKind.POLAR
        assert info.hemi is Hemisphere.SOUTH


class TestCell:
    """Tests for the Cell model."""

    def test_init_fills_derived_fields(self, cell):
        """Test UTM, DMS and arc lengths are derived."""
        assert cell.utm.zone == UTMZone.numbered(13)
        assert cell.hemi() == "N"
        assert cell.ne_dms.lat == "41°0'0.000000\"N"
        assert cell.sw_dms.lng == "106°0'0.000000\"W"
        lat_len, lng_len = calculate_sec_lengths(40.0)
        assert cell.lat_len() == pytest.approx(lat_len)
        assert cell.lng_len() == pytest.approx(lng_len)

    def test_corners(self, cell):
        """Test corner accessors return (lng, lat)."""
        assert cell.ne_corner() == (-105.0, 41.0)
        assert cell.sw_corner() == (-106.0, 40.0)
        assert cell.nw_corner() == (-106.0, 41.0)
        assert cell.se_corner() == (-105.0, 40.0)

    def test_hull(self, cell):
        assert cell.hull() == (-106.0, 40.0, -105.0, 41.0)

    def test_missing_corner_raises(self):
        with pytest.raises(GridError):
            Cell(mdgid=MDGID("X1")).hull()

    def test_reference_and_sheet_numbers(self, cell):
        assert cell.reference_number() == "V795X16"
        assert cell.sheet_number() == "4431"
        cell.mdgid = MDGID("V795X16", 23)
        assert cell.reference_number() == "V795X16-23"
        assert cell.sheet_number() == "4431-23"

    def test_metadata_accessors(self, cell):
        assert cell.publication_date() == datetime(2020, 1, 15)
        assert cell.edit_by() == "gdey"
        assert cell.edit_date() == datetime(2021, 3, 2)

    def test_no_edit_info(self):
        bare = new_cell("X1", sw=(0.0, 0.0), ne=(1.0, 1.0))
        assert bare.edit_by() == ""
        assert bare.edit_date() is None

    def test_zone_unknown_without_utm(self):
        assert Cell(mdgid=MDGID("X1")).zone() == UTMZone.unknown()

    def test_southern_cell(self):
        south = new_cell("S1", sw=(-34.0, 151.0), ne=(-33.0, 152.0))
        assert south.hemi() == "S"
        assert south.ne_lat_dms().endswith("S")

    def test_stored_dms_are_kept(self):
        stored = new_cell(
            "X1", sw=(40.0, -106.0), ne=(41.0, -105.0),
            dms_sw=("40N", "106W"), dms_ne=("41N", "105W"),
        )
        assert stored.sw_lat_dms() == "40N"
        assert stored.ne_lng_dms() == "105W"

    def test_dms_computed_when_missing(self):
        bare = Cell(mdgid=MDGID("X1"), sw=LatLng(40.5, -106.0), ne=LatLng(41.0, -105.0))
        assert bare.sw_lat_dms() == "40°30'0.0\"N"

    def test_zoom_for_scale_dpi(self, cell):
        expected = resolution.zoom(resolution.MERCATOR_EARTH_CIRCUMFERENCE, 50000, 96, 40.0)
        assert cell.zoom_for_scale_dpi(50000, 96) == pytest.approx(expected)

    def test_width_height_for_zoom(self, cell):
        """Test the mercator pixel size at 512px tiles."""
        width, height = cell.width_height_for_zoom(4)
        assert width == pytest.approx(512 * 16 / 360)
        assert height > width

    def test_center_pt_for_zoom(self, cell):
        lat, lng = cell.center_pt_for_zoom(10)
        assert lng == pytest.approx(-105.5)
        assert 40.5 < lat < 41.0


class TestHelpers:
    """Tests for module helpers."""

    def test_is_finite_extent(self):
        assert is_finite_extent((0, 0, 1, 1)) is True
        assert is_finite_extent((0, float("nan"), 1, 1)) is False
        assert is_finite_extent((0, 0, float("inf"), 1)) is False

    def test_not_found_message(self):
        assert str(NotFoundError()) == "grid not found"


class TestToWgs84:
    """Tests for reprojecting lookup points."""

    def test_wgs84_unchanged(self):
        assert to_wgs84(5.24, 57.21) == (5.24, 57.21)

    def test_web_mercator(self):
        lng, lat = to_wgs84(556597.4539663679, 7361866.113051185, 3857)
        assert lng == pytest.approx(5.0)
        assert lat == pytest.approx(55.0, abs=1e-6)
