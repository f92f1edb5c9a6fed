"""
Utility classes for map sheet rendering.

This module provides reusable components for bounds management, the
page space to SVG pixel transform, and SVG layer management.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class Bounds:
    """An axis aligned box, in page meters or SVG pixels.

    Attributes:
        min_x: Left edge
        max_x: Right edge
        min_y: Bottom edge in page space, top edge in SVG pixels
        max_y: The opposite edge
    """
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @classmethod
    def page(cls, page_width: float, page_height: float) -> 'Bounds':
        """The map frame in page space."""
        return cls(min_x=0.0, max_x=page_width, min_y=0.0, max_y=page_height)

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def expand(self, buffer: float) -> 'Bounds':
        """Grow the box by buffer on every side, e.g. to place margin text."""
        return Bounds(
            min_x=self.min_x - buffer,
            max_x=self.max_x + buffer,
            min_y=self.min_y - buffer,
            max_y=self.max_y + buffer
        )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y), the order shapely expects."""
        return (self.min_x, self.min_y, self.max_x, self.max_y)


@dataclass
class PixelBox:
    """The map frame on the SVG canvas.

    Converts page space (meters from the frame's bottom-left corner, y up)
    to SVG pixels (y down). Buffers are the gaps between the frame and the
    outer coordinate labels.

    Attributes:
        starting: Top-left corner of the frame in pixels
        ending: Bottom-right corner of the frame in pixels
        ground_pixel: Meters per pixel
        left_buffer, bottom_buffer, right_buffer, top_buffer: Label gaps in pixels
        row_offset, col_offset: Extra offsets for internal labels in pixels
    """
    starting: Tuple[float, float]
    ending: Tuple[float, float]
    ground_pixel: float
    left_buffer: float = 10.0
    bottom_buffer: float = 10.0
    right_buffer: float = 10.0
    top_buffer: float = 10.0
    row_offset: float = 0.0
    col_offset: float = 0.0

    @classmethod
    def from_page(
        cls,
        x: float,
        y: float,
        page_width: float,
        page_height: float,
        ground_pixel: float,
        buffer: float = 10.0
    ) -> 'PixelBox':
        """Frame at pixel (x, y) sized to hold page_width x page_height meters."""
        return cls(
            starting=(x, y),
            ending=(x + page_width / ground_pixel, y + page_height / ground_pixel),
            ground_pixel=ground_pixel,
            left_buffer=buffer,
            bottom_buffer=buffer,
            right_buffer=buffer,
            top_buffer=buffer,
        )

    @property
    def width(self) -> float:
        return self.ending[0] - self.starting[0]

    @property
    def height(self) -> float:
        return self.ending[1] - self.starting[1]

    @property
    def bounds(self) -> Bounds:
        """Frame bounds in SVG pixels."""
        return Bounds(
            min_x=self.starting[0],
            max_x=self.ending[0],
            min_y=self.starting[1],
            max_y=self.ending[1]
        )

    def transform_point(self, x: float, y: float) -> Tuple[float, float]:
        """Convert a page space point to SVG pixels.

        Args:
            x: Meters right of the frame's left edge
            y: Meters above the frame's bottom edge

        Returns:
            Tuple of (svg_x, svg_y)
        """
        return (
            self.starting[0] + x / self.ground_pixel,
            self.ending[1] - y / self.ground_pixel
        )

    def transform_line(self, line) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        (x1, y1), (x2, y2) = line
        return self.transform_point(x1, y1), self.transform_point(x2, y2)


@dataclass
class Layer:
    """A named SVG group and where it stacks."""
    group: Any
    z_order: int
    in_frame: bool = True


class LayerManager:
    """Collects the sheet's SVG layer groups and stacks them by z-order.

    Layers inside the map frame end up in one group clipped to the frame;
    margin layers (frame outline, outer labels, marginalia) are added to
    the drawing after it, unclipped.

    Attributes:
        layers: Dictionary mapping layer ID to Layer
    """

    def __init__(self, dwg):
        self.dwg = dwg
        self.layers: Dict[str, Layer] = {}

    def register_layer(
        self,
        layer_id: str,
        z_order: int,
        in_frame: bool = True,
        visible: bool = True
    ) -> Any:
        """Create the group for a layer and return it for drawing into.

        Args:
            layer_id: Unique identifier, also the group's SVG id
            z_order: Stacking order (higher values render on top)
            in_frame: Whether the layer is drawn inside the map frame
            visible: Whether the layer is visible by default

        Raises:
            ValueError: layer_id is already registered
        """
        if layer_id in self.layers:
            raise ValueError(f"layer {layer_id} is already registered")

        group = self.dwg.g(id=layer_id)
        if not visible:
            group['visibility'] = 'hidden'
        self.layers[layer_id] = Layer(group=group, z_order=z_order, in_frame=in_frame)
        return group

    def stacked(self, in_frame: Optional[bool] = None) -> List[Any]:
        """Groups lowest z-order first, optionally only frame or margin layers."""
        layers = [layer for layer in self.layers.values() if in_frame is None or layer.in_frame == in_frame]
        return [layer.group for layer in sorted(layers, key=lambda layer: layer.z_order)]

    def assemble(self, frame_id: str = "Map_Frame", clip_path: Optional[str] = None) -> Any:
        """Add every layer to the drawing and return the frame group."""
        frame_group = self.dwg.g(id=frame_id)
        if clip_path:
            frame_group['clip-path'] = clip_path
        for group in self.stacked(in_frame=True):
            frame_group.add(group)
        self.dwg.add(frame_group)

        for group in self.stacked(in_frame=False):
            self.dwg.add(group)
        return frame_group


class LayerZOrder:
    """z-order values for sheet layers. Lower values render first."""
    # Inside the frame
    BASEMAP = 10
    GRATING = 100
    GRATING_LABELS = 110
    TRELLIS_BARS = 200
    TRELLIS_INNER_LABELS = 210

    # Frame and margins
    FRAME = 1000
    TRELLIS_LABELS = 1010
    CORNER_LABELS = 1020
    MARGINALIA = 1100
