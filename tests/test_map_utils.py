"""
Tests for map_utils module.

Run with: pytest tests/test_map_utils.py -v
"""

import pytest
from map_utils import Bounds, PixelBox, LayerManager, LayerZOrder


class TestBounds:
    """Tests for the Bounds dataclass."""

    def test_page(self):
        """Page bounds start at the frame's bottom-left corner."""
        bounds = Bounds.page(15000, 28000)
        assert bounds.as_tuple() == (0.0, 0.0, 15000, 28000)
        assert bounds.width == 15000
        assert bounds.height == 28000

    def test_contains_edges(self):
        bounds = Bounds(min_x=0, max_x=100, min_y=0, max_y=100)
        assert bounds.contains(0, 100)
        assert bounds.contains(100, 0)
        assert not bounds.contains(-0.001, 50)
        assert not bounds.contains(50, 100.5)

    def test_expand(self):
        """Expanding keeps the centre and grows each side."""
        expanded = Bounds(min_x=10, max_x=90, min_y=20, max_y=80).expand(10)
        assert expanded.as_tuple() == (0, 10, 100, 90)
        assert expanded.width == 100


class TestPixelBox:
    """Tests for the page space to SVG pixel transform."""

    @pytest.fixture
    def pixel_box(self):
        """A 10 km x 5 km page at 10 m per pixel, framed at (100, 200)."""
        return PixelBox.from_page(100, 200, 10000, 5000, ground_pixel=10.0)

    def test_from_page_size(self, pixel_box):
        """Test the frame is sized from the page and ground resolution."""
        assert pixel_box.starting == (100, 200)
        assert pixel_box.ending == (1100, 700)
        assert pixel_box.width == 1000
        assert pixel_box.height == 500

    def test_bottom_left_maps_to_bottom_of_frame(self, pixel_box):
        """Test page origin is the frame's bottom-left corner."""
        assert pixel_box.transform_point(0, 0) == (100, 700)

    def test_top_right(self, pixel_box):
        """Test y is flipped between page space and SVG."""
        assert pixel_box.transform_point(10000, 5000) == pytest.approx((1100, 200))

    def test_transform_line(self, pixel_box):
        start, end = pixel_box.transform_line(((0, 2500), (10000, 2500)))
        assert start == pytest.approx((100, 450))
        assert end == pytest.approx((1100, 450))

    def test_bounds(self, pixel_box):
        bounds = pixel_box.bounds
        assert bounds.as_tuple() == (100, 200, 1100, 700)
        assert bounds.contains(*pixel_box.transform_point(5000, 2500))

    def test_buffers(self):
        box = PixelBox.from_page(0, 0, 100, 100, 1.0, buffer=25)
        assert box.left_buffer == 25
        assert box.top_buffer == 25
        assert box.row_offset == 0


class TestLayerZOrder:
    """Tests for LayerZOrder constants."""

    def test_frame_layers_stack_basemap_first(self):
        assert LayerZOrder.BASEMAP < LayerZOrder.GRATING < LayerZOrder.GRATING_LABELS
        assert LayerZOrder.GRATING_LABELS < LayerZOrder.TRELLIS_BARS < LayerZOrder.TRELLIS_INNER_LABELS

    def test_margin_layers_above_frame_layers(self):
        """Frame outline and margin text draw over the map content."""
        assert LayerZOrder.FRAME > LayerZOrder.TRELLIS_INNER_LABELS
        assert LayerZOrder.FRAME < LayerZOrder.TRELLIS_LABELS < LayerZOrder.CORNER_LABELS < LayerZOrder.MARGINALIA


class TestLayerManager:
    """Tests for the LayerManager class."""

    @pytest.fixture
    def dwg(self):
        import svgwrite
        return svgwrite.Drawing()

    @pytest.fixture
    def manager(self, dwg):
        return LayerManager(dwg)

    def test_register_layer(self, manager):
        layer = manager.register_layer("Trellis_Bars", z_order=200)
        assert layer.attribs["id"] == "Trellis_Bars"
        assert manager.layers["Trellis_Bars"].group is layer
        assert manager.layers["Trellis_Bars"].in_frame is True

    def test_duplicate_layer(self, manager):
        manager.register_layer("Frame", z_order=1000)
        with pytest.raises(ValueError):
            manager.register_layer("Frame", z_order=1000)

    def test_stacked_by_z_order(self, manager):
        middle = manager.register_layer("middle", z_order=100)
        top = manager.register_layer("top", z_order=200)
        bottom = manager.register_layer("bottom", z_order=50)
        assert manager.stacked() == [bottom, middle, top]

    def test_stacked_frame_and_margin(self, manager):
        inside = manager.register_layer("inside", z_order=100)
        margin = manager.register_layer("margin", z_order=1000, in_frame=False)
        assert manager.stacked(in_frame=True) == [inside]
        assert manager.stacked(in_frame=False) == [margin]

    def test_hidden_layer(self, manager):
        layer = manager.register_layer("Grating", z_order=100, visible=False)
        assert layer.attribs.get("visibility") == "hidden"

    def test_assemble(self, manager, dwg):
        """Frame layers go into one clipped group, margin layers follow it."""
        margin = manager.register_layer("Marginalia", z_order=1100, in_frame=False)
        high = manager.register_layer("high", z_order=20)
        low = manager.register_layer("low", z_order=10)
        frame = manager.assemble(clip_path="url(#frame-clip)")
        assert frame.attribs["id"] == "Map_Frame"
        assert frame.attribs.get("clip-path") == "url(#frame-clip)"
        assert frame.elements == [low, high]
        assert dwg.elements[-2:] == [frame, margin]
