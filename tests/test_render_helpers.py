"""
Tests for render_helpers module.

Run with: pytest tests/test_render_helpers.py -v
"""

import pytest
import svgwrite
from grating import new_grating
from map_utils import Bounds, PixelBox
from render_helpers import (
    clip_line,
    render_bars,
    render_frame,
    render_grating,
    render_label_part,
    render_trellis_labels,
)
from trellis import GRID_1K, Bar, LabelPart, ShowParts, new_structure


@pytest.fixture
def dwg():
    return svgwrite.Drawing()


@pytest.fixture
def pixel_box():
    """A 10 km square page at 10 m per pixel."""
    return PixelBox.from_page(50, 50, 10000, 10000, ground_pixel=10.0)


def make_bar(index, x1, y1, x2, y2):
    return Bar(index=index, value=index * 1000, start=None, end=None, x1=x1, y1=y1, x2=x2, y2=y2)


class TestClipLine:
    """Tests for clip_line function."""

    def test_inside(self):
        coords = clip_line(((1, 1), (5, 5)), Bounds.page(10, 10))
        assert coords == [(1, 1), (5, 5)]

    def test_partly_outside(self):
        coords = clip_line(((-5, 5), (5, 5)), Bounds.page(10, 10))
        assert coords[0] == pytest.approx((0, 5))
        assert coords[-1] == pytest.approx((5, 5))

    def test_outside(self):
        assert clip_line(((-5, -5), (-1, -1)), Bounds.page(10, 10)) is None

    def test_no_clip(self):
        assert clip_line(((-5, -5), (-1, -1)), None) == [(-5, -5), (-1, -1)]


class TestRenderBars:
    """Tests for render_bars function."""

    def test_renders_lines(self, dwg, pixel_box):
        layer = dwg.g()
        bars = [make_bar(0, 0, 1000, 10000, 1200), make_bar(1, 0, 2000, 10000, 2200)]
        assert render_bars(bars, layer, dwg, pixel_box) == 2
        line = layer.elements[0]
        assert line.attribs['x1'] == pytest.approx(50)
        assert line.attribs['y1'] == pytest.approx(950)

    def test_skips_bars_outside_clip(self, dwg, pixel_box):
        layer = dwg.g()
        bars = [make_bar(0, 0, -500, 10000, -100), make_bar(1, 0, 500, 10000, 700)]
        count = render_bars(bars, layer, dwg, pixel_box, clip_bounds=Bounds.page(10000, 10000))
        assert count == 1
        assert len(layer.elements) == 1

    def test_clips_to_page(self, dwg, pixel_box):
        layer = dwg.g()
        bars = [make_bar(0, 0, -1000, 10000, 1000)]
        render_bars(bars, layer, dwg, pixel_box, clip_bounds=Bounds.page(10000, 10000))
        line = layer.elements[0]
        # Starts where the bar crosses y = 0 at x = 5000
        assert line.attribs['x1'] == pytest.approx(550)
        assert line.attribs['y1'] == pytest.approx(1050)


class TestRenderLabelPart:
    """Tests for render_label_part function."""

    def test_all_parts(self, dwg):
        layer = dwg.g()
        label = LabelPart(4_512_000, GRID_1K, hemi="N.")
        assert render_label_part(layer, dwg, label, 10, 20, ShowParts.ALL) is True
        text = layer.elements[0]
        assert [span.text for span in text.elements] == ["45", "12", "000", "m", "N."]

    def test_label_only(self, dwg):
        layer = dwg.g()
        render_label_part(layer, dwg, LabelPart(4_512_000, GRID_1K), 0, 0, ShowParts.LABEL)
        assert [span.text for span in layer.elements[0].elements] == ["12"]

    def test_nothing_to_show(self, dwg):
        layer = dwg.g()
        assert render_label_part(layer, dwg, LabelPart(4_512_000, GRID_1K), 0, 0, ShowParts.NONE) is False
        assert layer.elements == []


class TestRenderTrellisLabels:
    """Tests for render_trellis_labels function."""

    @pytest.fixture(scope="class")
    def structure(self):
        return new_structure((-105.55, 40.55), (-105.45, 40.45))

    def test_outer_labels(self, dwg, structure):
        box = PixelBox.from_page(100, 100, structure.page_width, structure.page_height, 10.0)
        layer, inner = dwg.g(), dwg.g()
        outer_count, inner_count = render_trellis_labels(structure, layer, inner, dwg, box)
        assert outer_count > 0
        assert inner_count == 0
        assert len(layer.elements) == outer_count

    def test_inner_labels(self, dwg, structure):
        box = PixelBox.from_page(100, 100, structure.page_width, structure.page_height, 10.0)
        layer, inner = dwg.g(), dwg.g()
        _, inner_count = render_trellis_labels(structure, layer, inner, dwg, box, label_rows=[3], label_cols=[3])
        expected = structure.easting.steps + structure.northing.steps
        assert inner_count == expected
        assert len(inner.elements) == expected


class TestRenderGrating:
    """Tests for render_grating function."""

    def test_lines_and_labels(self, dwg, pixel_box):
        grate = new_grating(0, 0, 10000, 10000, 4, 5)
        layer, labels = dwg.g(), dwg.g()
        line_count, label_count = render_grating(grate, layer, labels, dwg, pixel_box)
        assert line_count == 5 + 6
        assert label_count == 20
        assert labels.elements[0].text == "D1"


class TestRenderFrame:
    """Tests for render_frame function."""

    def test_frame_rect(self, dwg, pixel_box):
        layer = dwg.g()
        render_frame(layer, dwg, pixel_box)
        rect = layer.elements[0]
        assert rect.attribs['width'] == pytest.approx(1000)
        assert rect.attribs['height'] == pytest.approx(1000)
        assert rect.attribs['fill'] == "none"
