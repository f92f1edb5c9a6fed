"""
Rendering helper functions for map sheet SVG generation.

These functions draw the trellis bars and their coordinate labels, the
grating and the map frame into svgwrite layers. Geometry comes in page
space (meters, y up) and is converted with a PixelBox.
"""

from typing import List, Optional, Tuple

from shapely.geometry import LineString, box as shapely_box

from grating import Grating
from map_utils import Bounds, PixelBox
from trellis import LabelPart, ShowParts, Structure, easting_label, northing_label

LABEL_FONT_SIZE = 12
PART_FONT_SIZE = 6
LABEL_COLOR = "black"


def clip_line(
    line: Tuple[Tuple[float, float], Tuple[float, float]],
    clip_bounds: Optional[Bounds]
) -> Optional[List[Tuple[float, float]]]:
    """Clip a two point line to a box.

    Returns:
        The clipped coordinates, or None when nothing is left
    """
    if clip_bounds is None or all(clip_bounds.contains(x, y) for x, y in line):
        return [tuple(point) for point in line]

    clipped = LineString(line).intersection(shapely_box(*clip_bounds.as_tuple()))
    if clipped.is_empty or clipped.geom_type != "LineString":
        return None
    return list(clipped.coords)


def render_bars(
    bars,
    layer,
    dwg,
    pixel_box: PixelBox,
    clip_bounds: Optional[Bounds] = None,
    color: str = "#000000",
    width: float = 0.5
) -> int:
    """Render trellis bars to an SVG layer.

    Args:
        bars: Iterable of trellis Bars
        layer: SVG group to add lines to
        dwg: svgwrite Drawing object
        pixel_box: Page space to SVG transform
        clip_bounds: Page space bounds to clip the bars to, usually the frame
        color: Stroke color
        width: Stroke width in pixels

    Returns:
        Number of bars rendered
    """
    count = 0
    for bar in bars:
        coords = clip_line(bar.line, clip_bounds)
        if coords is None or len(coords) < 2:
            continue
        start, end = pixel_box.transform_line((coords[0], coords[-1]))
        layer.add(dwg.line(
            start=start,
            end=end,
            stroke=color,
            stroke_width=width,
        ))
        count += 1
    return count


def render_label_part(
    layer,
    dwg,
    label: LabelPart,
    x: float,
    y: float,
    show: ShowParts,
    text_anchor: str = "middle"
) -> bool:
    """Draw a coordinate label as a text element with one tspan per part.

    The prefix and suffix are drawn small and raised; the two digit label
    is drawn full size.

    Returns:
        False when show selects nothing to draw
    """
    if not show & ShowParts.ALL:
        return False

    text = dwg.text(
        "",
        insert=(x, y),
        font_size=f"{LABEL_FONT_SIZE}px",
        text_anchor=text_anchor,
    )
    for part, value in label.texts(show):
        if part is ShowParts.PREFIX:
            text.add(dwg.tspan(value, font_size=f"{PART_FONT_SIZE}px", fill=LABEL_COLOR))
        elif part is ShowParts.LABEL:
            text.add(dwg.tspan(value, dy=[6], font_size=f"{LABEL_FONT_SIZE}px", fill=LABEL_COLOR))
        elif part is ShowParts.SUFFIX:
            text.add(dwg.tspan(value, dy=[-6], font_size=f"{PART_FONT_SIZE}px", fill=LABEL_COLOR))
        elif part is ShowParts.UNIT:
            text.add(dwg.tspan(value, font_size=f"{PART_FONT_SIZE}px", fill=LABEL_COLOR))
        elif part is ShowParts.HEMI:
            text.add(dwg.tspan(value, dy=[6], font_size=f"{LABEL_FONT_SIZE}px", fill=LABEL_COLOR))
    layer.add(text)
    return True


def render_trellis_labels(
    structure: Structure,
    layer,
    inner_layer,
    dwg,
    pixel_box: PixelBox,
    label_rows: Optional[List[int]] = None,
    label_cols: Optional[List[int]] = None
) -> Tuple[int, int]:
    """Render outer and inner coordinate labels for the trellis bars.

    Outer labels go in the margins where a bar meets the frame. Inner
    labels go along each easting bar midway between northing bars
    label_rows[i] - 1 and label_rows[i], and along each northing bar
    midway between easting bars label_cols[i] - 1 and label_cols[i].

    Returns:
        Tuple of (outer_count, inner_count)
    """
    grid = structure.grid
    outer = 0
    inner = 0
    left, top = pixel_box.starting
    right, bottom = pixel_box.ending

    for bar in structure.iter_easting_bars():
        label = easting_label(bar, grid)
        show = label.show_for(bar.index)
        if 0 <= bar.x1 <= structure.page_width:
            x, _ = pixel_box.transform_point(bar.x1, bar.y1)
            outer += render_label_part(layer, dwg, label, x, bottom + pixel_box.bottom_buffer + LABEL_FONT_SIZE, show)
        if 0 <= bar.x2 <= structure.page_width:
            x, _ = pixel_box.transform_point(bar.x2, bar.y2)
            outer += render_label_part(layer, dwg, label, x, top - pixel_box.top_buffer, show)

        for row in label_rows or []:
            x1, y1 = structure.intersection(bar.index, row - 1)
            x2, y2 = structure.intersection(bar.index, row)
            x, y = pixel_box.transform_point((x1 + x2) / 2, (y1 + y2) / 2)
            inner += render_label_part(inner_layer, dwg, label, x + pixel_box.col_offset, y, ShowParts.LABEL)

    for bar in structure.iter_northing_bars():
        label = northing_label(bar, grid)
        show = label.show_for(bar.index)
        if 0 <= bar.y1 <= structure.page_height:
            _, y = pixel_box.transform_point(bar.x1, bar.y1)
            outer += render_label_part(layer, dwg, label, left - pixel_box.left_buffer, y, show, text_anchor="end")
        if 0 <= bar.y2 <= structure.page_height:
            _, y = pixel_box.transform_point(bar.x2, bar.y2)
            outer += render_label_part(layer, dwg, label, right + pixel_box.right_buffer, y, show, text_anchor="start")

        for col in label_cols or []:
            x1, y1 = structure.intersection(col - 1, bar.index)
            x2, y2 = structure.intersection(col, bar.index)
            x, y = pixel_box.transform_point((x1 + x2) / 2, (y1 + y2) / 2)
            inner += render_label_part(inner_layer, dwg, label, x, y + pixel_box.row_offset, ShowParts.LABEL)

    return outer, inner


def render_grating(
    grate: Grating,
    layer,
    label_layer,
    dwg,
    pixel_box: PixelBox,
    color: str = "#555555",
    width: float = 0.5,
    label_size: float = 10
) -> Tuple[int, int]:
    """Render a grating's lines and cell labels.

    Returns:
        Tuple of (line_count, label_count)
    """
    line_count = 0
    for row in range(grate.rows + 1):
        start, end = pixel_box.transform_line(grate.line_for_row(row))
        layer.add(dwg.line(start=start, end=end, stroke=color, stroke_width=width))
        line_count += 1
    for col in range(grate.cols + 1):
        start, end = pixel_box.transform_line(grate.line_for_col(col))
        layer.add(dwg.line(start=start, end=end, stroke=color, stroke_width=width))
        line_count += 1

    label_count = 0
    for text, cx, cy in grate.cell_centers():
        x, y = pixel_box.transform_point(cx, cy)
        label_layer.add(dwg.text(
            text,
            insert=(x, y),
            text_anchor="middle",
            dominant_baseline="middle",
            font_size=label_size,
            fill=color,
            font_family="sans-serif",
            opacity=0.6,
        ))
        label_count += 1
    return line_count, label_count


def render_frame(layer, dwg, pixel_box: PixelBox, color: str = "#000000", width: float = 1.5):
    """Outline the map frame."""
    layer.add(dwg.rect(
        insert=pixel_box.starting,
        size=(pixel_box.width, pixel_box.height),
        fill="none",
        stroke=color,
        stroke_width=width,
    ))
