"""
Trellis - UTM grid bars over a lat/lng map frame.

A map sheet is a lat/lng box, but its reference grid is drawn in UTM
meters. Projected into UTM the box becomes a slightly skewed quad, so
northing bars are not parallel to the bottom edge and easting bars are
not parallel to the left edge.

The trellis projects the four corners into one UTM zone, works out where
each multiple of the grid size crosses each edge, and lays the bars out
in page space: meters, origin at the bottom-left corner of the frame,
x to the right and y up. The page is page_width x page_height, the
lengths of the bottom and left edges.

Northing bars run from the left edge (x = 0) to the right edge
(x = page_width); easting bars from the bottom edge (y = 0) to the top
edge (y = page_height). Bars whose value only crosses one of the two
edges still get both endpoints, so an endpoint may fall outside the
frame and renderers are expected to clip to it.
"""

import math
from dataclasses import dataclass
from enum import IntFlag
from typing import Callable, Iterator, List, Optional, Tuple

from geodesy import (
    Ellipsoid, Hemisphere, ProjectionError, UTMCoord, WGS84_ELLIPSOID, to_utm, zone_from_lat_lng,
)


@dataclass(frozen=True)
class Grid:
    """Grid spacing in meters."""
    size: int

    def parts_for(self, meters: int) -> Tuple[int, int, int]:
        """Split a coordinate into (prefix, label, suffix).

        The label is the two digit value printed on the bars, the prefix
        the leading digits above it and the suffix the meters below the
        grid size: 4_512_345 at 1000m is (45, 12, 345).
        """
        meters = int(meters)
        suffix = meters % self.size
        val = meters // self.size
        label = val % 100
        prefix = val // 100
        return prefix, label, suffix

    def width(self) -> int:
        """Digits needed to print a suffix."""
        widths = {1: 0, 10: 1, 100: 2, 1000: 3, 10000: 4}
        if self.size in widths:
            return widths[self.size]
        return int(math.log10(self.size))


GRID_100 = Grid(100)
GRID_1K = Grid(1000)


@dataclass(frozen=True)
class EdgeOffsets:
    """Where grid values cross one edge of the frame.

    Attributes:
        start: Aligned coordinate (northing or easting) at the edge's start
        end: Aligned coordinate at the edge's end
        length: Length of the edge in meters
        first: Value of the first grid multiple strictly after start
        last: Value of the last grid multiple strictly before end
        steps: Number of grid multiples crossing the edge
        start_offset: Aligned meters from start to first
        end_offset: Aligned meters from last to end
        step_size: Edge meters per grid step
    """
    start: float
    end: float
    length: float
    first: int
    last: int
    steps: int
    start_offset: float
    end_offset: float
    step_size: float

    @property
    def axis_delta(self) -> float:
        return self.end - self.start

    @property
    def scale(self) -> float:
        """Edge meters per aligned meter (>= 1 on a skewed edge)."""
        return self.length / self.axis_delta

    def distance_to(self, value: float) -> float:
        """Edge meters from the start of the edge to where value crosses it."""
        return (value - self.start) * self.scale

    def cross_at(self, value: float, start_cross: float, end_cross: float) -> float:
        """Interpolate the other coordinate where value crosses the edge."""
        t = (value - self.start) / self.axis_delta
        return start_cross + (end_cross - start_cross) * t


def calculate_step_offsets(start_coord: float, end_coord: float, cross_delta: float, grid: Grid) -> EdgeOffsets:
    """Grid crossings along one edge.

    Args:
        start_coord: Aligned coordinate at the start of the edge (northing for
            left/right edges, easting for bottom/top edges)
        end_coord: Aligned coordinate at the end of the edge
        cross_delta: Change in the other coordinate along the edge
        grid: Grid spacing

    Returns:
        EdgeOffsets for the edge

    Raises:
        ValueError: end_coord is not greater than start_coord
    """
    axis_delta = end_coord - start_coord
    if not axis_delta > 0:
        raise ValueError(f"edge must run forward, got {start_coord} -> {end_coord}")

    size = grid.size
    start_floor = math.floor(start_coord)
    _, _, suffix = grid.parts_for(start_floor)
    first = start_floor - suffix + size

    end_floor = math.floor(end_coord)
    _, _, suffix = grid.parts_for(end_floor)
    last = end_floor - suffix
    if last >= end_coord:
        last -= size

    steps = (last - first) // size + 1 if last >= first else 0
    length = math.hypot(axis_delta, cross_delta)

    return EdgeOffsets(
        start=start_coord,
        end=end_coord,
        length=length,
        first=first,
        last=last,
        steps=steps,
        start_offset=first - start_coord,
        end_offset=end_coord - last,
        step_size=size * length / axis_delta,
    )


@dataclass(frozen=True)
class Offset:
    """One family of bars (northing or easting) between two opposite edges.

    Attributes:
        start: Edge the bars start on (left for northing, bottom for easting)
        end: Edge the bars end on (right for northing, top for easting)
        first: Value of bar 0
        steps: Number of bars; covers every grid value crossing either edge
        grid: Grid spacing
    """
    start: EdgeOffsets
    end: EdgeOffsets
    first: int
    steps: int
    grid: Grid

    @classmethod
    def between(cls, start: EdgeOffsets, end: EdgeOffsets, grid: Grid) -> 'Offset':
        first = min(start.first, end.first)
        last = max(start.last, end.last)
        steps = (last - first) // grid.size + 1 if last >= first else 0
        return cls(start=start, end=end, first=first, steps=steps, grid=grid)

    def value_for(self, index: int) -> int:
        return self.first + index * self.grid.size

    @property
    def start_offset(self) -> float:
        """Edge meters along the start edge to bar 0."""
        return self.start.distance_to(self.first)

    @property
    def end_offset(self) -> float:
        """Edge meters along the end edge to bar 0."""
        return self.end.distance_to(self.first)


@dataclass(frozen=True)
class Bar:
    """A single grid bar.

    Attributes:
        index: Position in its family, from 0
        value: Northing or easting of the bar in meters
        start: UTM point where the bar crosses its start edge
        end: UTM point where the bar crosses its end edge
        x1, y1, x2, y2: Page space endpoints in meters
    """
    index: int
    value: int
    start: UTMCoord
    end: UTMCoord
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def line(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        return (self.x1, self.y1), (self.x2, self.y2)

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)


DrawFn = Callable[[int, Bar], None]


@dataclass(frozen=True)
class Structure:
    """Projected frame corners and the bar layout derived from them."""
    ellipsoid: Ellipsoid
    grid: Grid
    zone: int
    top_left_utm: UTMCoord
    top_right_utm: UTMCoord
    bottom_left_utm: UTMCoord
    bottom_right_utm: UTMCoord
    northing: Offset
    easting: Offset
    page_width: float
    page_height: float

    # Northing bars: left edge -> right edge

    def _northing_bar(self, index: int) -> Bar:
        value = self.northing.value_for(index)
        left, right = self.northing.start, self.northing.end
        bl, tl = self.bottom_left_utm, self.top_left_utm
        br, tr = self.bottom_right_utm, self.top_right_utm

        y1 = left.distance_to(value) * self.page_height / left.length
        y2 = right.distance_to(value) * self.page_height / right.length
        start = UTMCoord(
            easting=left.cross_at(value, bl.easting, tl.easting),
            northing=value,
            zone=self.zone,
            hemisphere=bl.hemisphere,
        )
        end = UTMCoord(
            easting=right.cross_at(value, br.easting, tr.easting),
            northing=value,
            zone=self.zone,
            hemisphere=br.hemisphere,
        )
        return Bar(index=index, value=value, start=start, end=end,
                   x1=0.0, y1=y1, x2=self.page_width, y2=y2)

    def iter_northing_bars(self) -> Iterator[Bar]:
        for index in range(self.northing.steps):
            yield self._northing_bar(index)

    def northing_bars(self, fn: DrawFn) -> int:
        """Call fn(index, bar) for every northing bar, bottom to top.

        Errors raised by fn stop the iteration and propagate.

        Returns:
            Number of bars visited
        """
        count = 0
        for bar in self.iter_northing_bars():
            fn(bar.index, bar)
            count += 1
        return count

    # Easting bars: bottom edge -> top edge

    def _easting_bar(self, index: int) -> Bar:
        value = self.easting.value_for(index)
        bottom, top = self.easting.start, self.easting.end
        bl, br = self.bottom_left_utm, self.bottom_right_utm
        tl, tr = self.top_left_utm, self.top_right_utm

        x1 = bottom.distance_to(value) * self.page_width / bottom.length
        x2 = top.distance_to(value) * self.page_width / top.length
        start = UTMCoord(
            easting=value,
            northing=bottom.cross_at(value, bl.northing, br.northing),
            zone=self.zone,
            hemisphere=bl.hemisphere,
        )
        end = UTMCoord(
            easting=value,
            northing=top.cross_at(value, tl.northing, tr.northing),
            zone=self.zone,
            hemisphere=tl.hemisphere,
        )
        return Bar(index=index, value=value, start=start, end=end,
                   x1=x1, y1=0.0, x2=x2, y2=self.page_height)

    def iter_easting_bars(self) -> Iterator[Bar]:
        for index in range(self.easting.steps):
            yield self._easting_bar(index)

    def easting_bars(self, fn: DrawFn) -> int:
        """Call fn(index, bar) for every easting bar, left to right."""
        count = 0
        for bar in self.iter_easting_bars():
            fn(bar.index, bar)
            count += 1
        return count

    def intersection(self, easting_index: int, northing_index: int) -> Tuple[float, float]:
        """Page space point where an easting bar crosses a northing bar.

        Indexes may lie outside the families (e.g. -1) to reach cells
        beyond the first or last bar.
        """
        e = self._easting_bar(easting_index)
        n = self._northing_bar(northing_index)
        return _line_intersection(e.line, n.line)


def _line_intersection(a, b) -> Tuple[float, float]:
    (x1, y1), (x2, y2) = a
    (x3, y3), (x4, y4) = b
    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if denom == 0:
        raise ValueError("bars are parallel")
    det_a = x1 * y2 - y1 * x2
    det_b = x3 * y4 - y3 * x4
    x = (det_a * (x3 - x4) - (x1 - x2) * det_b) / denom
    y = (det_a * (y3 - y4) - (y1 - y2) * det_b) / denom
    return x, y


def new_structure(
    top_left: Tuple[float, float],
    bottom_right: Tuple[float, float],
    ellipsoid: Ellipsoid = WGS84_ELLIPSOID,
    grid: Grid = GRID_1K,
    zone: Optional[int] = None
) -> Structure:
    """Build the trellis for a lat/lng frame.

    Args:
        top_left: North-west corner as (lng, lat)
        bottom_right: South-east corner as (lng, lat)
        ellipsoid: Ellipsoid to project on
        grid: Grid spacing
        zone: UTM zone to project all corners into; defaults to the zone
            of the frame's center

    Returns:
        Structure with the projected corners and bar families

    Raises:
        ProjectionError: a corner can not be projected (polar frame)
        ValueError: the frame is empty or inverted
    """
    left, top = top_left
    right, bottom = bottom_right
    if not (right > left and top > bottom):
        raise ValueError(f"invalid frame: top left {top_left}, bottom right {bottom_right}")

    if zone is None:
        zone = zone_from_lat_lng((top + bottom) / 2, (left + right) / 2)
    if zone == 0:
        raise ProjectionError(f"frame {top_left} {bottom_right} is in a polar region")

    corners = ((left, top), (right, top), (left, bottom), (right, bottom))
    tl, tr, bl, br = (to_utm(lng, lat, ellipsoid, zone) for lng, lat in corners)
    if tl.hemisphere is not bl.hemisphere:
        # Frames straddling the equator are laid out with the northern false northing
        tl, tr, bl, br = (_as_north(c) for c in (tl, tr, bl, br))

    left_edge = calculate_step_offsets(bl.northing, tl.northing, tl.easting - bl.easting, grid)
    right_edge = calculate_step_offsets(br.northing, tr.northing, tr.easting - br.easting, grid)
    bottom_edge = calculate_step_offsets(bl.easting, br.easting, br.northing - bl.northing, grid)
    top_edge = calculate_step_offsets(tl.easting, tr.easting, tr.northing - tl.northing, grid)

    return Structure(
        ellipsoid=ellipsoid,
        grid=grid,
        zone=zone,
        top_left_utm=tl,
        top_right_utm=tr,
        bottom_left_utm=bl,
        bottom_right_utm=br,
        northing=Offset.between(left_edge, right_edge, grid),
        easting=Offset.between(bottom_edge, top_edge, grid),
        page_width=bottom_edge.length,
        page_height=left_edge.length,
    )


def _as_north(coord: UTMCoord) -> UTMCoord:
    if coord.hemisphere is Hemisphere.SOUTH:
        return UTMCoord(coord.easting, coord.northing - 10_000_000, coord.zone, Hemisphere.NORTH)
    return coord


def structure_for_cell(cell, ellipsoid: Ellipsoid = WGS84_ELLIPSOID, grid: Grid = GRID_1K) -> Structure:
    """Trellis for a grid cell's frame."""
    return new_structure(cell.nw_corner(), cell.se_corner(), ellipsoid, grid)


class ShowParts(IntFlag):
    """Which parts of a coordinate label to draw."""
    NONE = 0
    PREFIX = 1
    LABEL = 2
    SUFFIX = 4
    UNIT = 8
    HEMI = 16

    MAIN = PREFIX | LABEL | SUFFIX
    ALL = PREFIX | LABEL | SUFFIX | UNIT | HEMI


@dataclass(frozen=True)
class LabelPart:
    """A coordinate label split into prefix, label and suffix."""
    coord: int
    grid: Grid
    unit: str = "m"
    hemi: str = ""

    def parts(self) -> Tuple[int, int, int]:
        return self.grid.parts_for(self.coord)

    def is_label_mod10(self) -> bool:
        _, label, _ = self.parts()
        return label % 10 == 0

    def show_for(self, index: int) -> ShowParts:
        """Parts to draw on an outer label: everything on the first bar,
        the prefix on every tenth, the label otherwise."""
        if index == 0:
            return ShowParts.ALL
        show = ShowParts.LABEL
        if self.is_label_mod10():
            show |= ShowParts.PREFIX
        return show

    def texts(self, show: ShowParts) -> List[Tuple[ShowParts, str]]:
        """Text of each visible part, in drawing order."""
        prefix, label, suffix = self.parts()
        texts = []
        if show & ShowParts.PREFIX:
            texts.append((ShowParts.PREFIX, str(prefix)))
        if show & ShowParts.LABEL:
            texts.append((ShowParts.LABEL, f"{label:02d}"))
        if show & ShowParts.SUFFIX:
            texts.append((ShowParts.SUFFIX, f"{suffix:0{self.grid.width()}d}" if self.grid.width() else ""))
        if show & ShowParts.UNIT:
            texts.append((ShowParts.UNIT, self.unit))
        if show & ShowParts.HEMI:
            texts.append((ShowParts.HEMI, self.hemi))
        return texts


def easting_label(bar: Bar, grid: Grid) -> LabelPart:
    return LabelPart(coord=bar.value, grid=grid, unit="m", hemi="W." if bar.value < 0 else "E.")


def northing_label(bar: Bar, grid: Grid) -> LabelPart:
    return LabelPart(coord=bar.value, grid=grid, unit="m", hemi="S." if bar.value < 0 else "N.")
