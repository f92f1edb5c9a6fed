"""
Grating - a lettered/numbered reference grid laid over a map frame.

Rows are labelled with letters (A, B, ... Z, then AA, AB, ...), skipping
letters that read like digits; columns are numbered from 1. By default
labels run top to bottom, so in a y-up frame row 0 (the bottom row) gets
the last letter.
"""

from dataclasses import dataclass
from typing import List, Tuple

from shapely.geometry import MultiLineString, Point, mapping

MIN_ROW_COL = 2
MAX_ROW_COL = 40

# Skip I and L (look like 1), O and Q (look like 0), S (looks like 5)
LABEL_LETTERS = (
    "A", "B", "C", "D", "E", "F", "G", "H", "J", "K",
    "M", "N", "P", "R", "T", "U", "V", "W", "X", "Y", "Z",
)


class GratingError(ValueError):
    """Raised for an out of range row/column count."""


def squarish(width: float, height: float, division: int) -> Tuple[float, float, int, int]:
    """Divide width x height into near-square cells.

    The longer side is split into division parts and the shorter side gets
    as many whole cells of that size as fit.

    Returns:
        (width_division, height_division, rows, cols)
    """
    width, height = abs(width), abs(height)
    rows = cols = division
    width_division = width / cols
    height_division = height / rows

    if width_division >= height_division:
        rows = max(1, int(height / width_division))
        height_division = height / rows
        return width_division, height_division, rows, cols

    cols = max(1, int(width / height_division))
    width_division = width / cols
    return width_division, height_division, rows, cols


def _validate(rows: int, cols: int):
    if rows < MIN_ROW_COL or rows > MAX_ROW_COL:
        raise GratingError(
            f"Invalid number of rows: {rows}; rows must be between {MIN_ROW_COL} and {MAX_ROW_COL}"
        )
    if cols < MIN_ROW_COL or cols > MAX_ROW_COL:
        raise GratingError(
            f"Invalid number of cols: {cols}; cols must be between {MIN_ROW_COL} and {MAX_ROW_COL}"
        )


@dataclass
class Grating:
    """A rows x cols grid over an extent.

    Attributes:
        rows: Number of rows
        cols: Number of columns
        extent: (min_x, min_y, max_x, max_y); y values are swapped when flip_y
        width: Column width
        height: Row height
        flip_y: Rows are counted downwards from extent[1]
        flip_y_label: Label rows bottom to top instead of top to bottom
    """
    rows: int
    cols: int
    extent: Tuple[float, float, float, float]
    width: float
    height: float
    flip_y: bool = False
    flip_y_label: bool = False

    def _label_for_row(self, row: int) -> str:
        count = len(LABEL_LETTERS)
        if row < count:
            return LABEL_LETTERS[row]
        return self._label_for_row(row // count - 1) + LABEL_LETTERS[row % count]

    def label_for_row(self, row: int) -> str:
        if row < 0 or row >= self.rows:
            return ""
        if not self.flip_y_label:
            row = self.rows - row - 1
        return self._label_for_row(row)

    def label_for_col(self, col: int) -> str:
        if col < 0 or col >= self.cols:
            return ""
        return str(col + 1)

    def y_for_row(self, row: int) -> float:
        offset = row * self.height
        if self.flip_y:
            offset = -offset
        return self.extent[1] + offset

    def x_for_col(self, col: int) -> float:
        return self.extent[0] + col * self.width

    def position_for(self, row: int, col: int) -> Tuple[float, float]:
        return self.x_for_col(col), self.y_for_row(row)

    def line_for_row(self, row: int) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Horizontal line at row (0 - rows), across the extent."""
        y = self.y_for_row(row)
        return (self.extent[0], y), (self.extent[2], y)

    def line_for_col(self, col: int) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Vertical line at col (0 - cols), across the extent."""
        x = self.x_for_col(col)
        return (x, self.extent[1]), (x, self.extent[3])

    def cell_centers(self) -> List[Tuple[str, float, float]]:
        """(label, x, y) at the center of every cell, e.g. ("C4", x, y)."""
        centers = []
        for col in range(self.cols):
            for row in range(self.rows):
                x0, y0 = self.position_for(row, col)
                x1, y1 = self.position_for(row + 1, col + 1)
                label = self.label_for_row(row) + self.label_for_col(col)
                centers.append((label, (x0 + x1) / 2, (y0 + y1) / 2))
        return centers


def new_grating(
    x: float,
    y: float,
    width: float,
    height: float,
    rows: int,
    cols: int,
    flip_y: bool = False,
    flip_y_label: bool = False
) -> Grating:
    """Build a grating over the box at (x, y) of size width x height.

    Raises:
        GratingError: rows or cols is outside 2-40
    """
    _validate(rows, cols)
    min_y, max_y = y, y + height
    if flip_y:
        min_y, max_y = max_y, min_y
    return Grating(
        rows=rows,
        cols=cols,
        extent=(x, min_y, x + width, max_y),
        width=width / cols,
        height=height / rows,
        flip_y=flip_y,
        flip_y_label=flip_y_label,
    )


def geojson_from(
    bounds: Tuple[float, float, float, float],
    rows: int,
    cols: int,
    flipped: bool = False,
    rectangle: bool = True
) -> dict:
    """Grating over bounds as a GeoJSON FeatureCollection.

    One point feature per cell center with its label in "name", plus a
    final MultiLineString feature holding every row and column line.

    Args:
        bounds: (min_x, min_y, max_x, max_y)
        rows: Number of rows
        cols: Number of columns
        flipped: Label rows bottom to top
        rectangle: Keep rows x cols as given; when False the cells are
            made near-square, using the larger of rows/cols for the longer
            side, as long as the resulting counts stay within 2-40

    Raises:
        GratingError: the row/column counts are out of range
    """
    min_x, min_y, max_x, max_y = bounds
    width = max_x - min_x
    height = max_y - min_y
    delta_x = width / cols if cols else 0.0
    delta_y = height / rows if rows else 0.0

    if not rectangle:
        division = max(rows, cols)
        sq_dx, sq_dy, sq_rows, sq_cols = squarish(width, height, division)
        if height < 0:
            sq_dy = -sq_dy
        if MIN_ROW_COL <= sq_rows <= MAX_ROW_COL and MIN_ROW_COL <= sq_cols <= MAX_ROW_COL:
            rows, cols = sq_rows, sq_cols
            delta_x, delta_y = sq_dx, sq_dy

    grate = new_grating(min_x, min_y, width, height, rows, cols, flip_y=False, flip_y_label=flipped)

    features = []
    for col in range(cols):
        x0 = min_x + delta_x * col
        x1 = min_x + delta_x * (col + 1)
        for row in range(rows):
            y0 = min_y + delta_y * row
            y1 = min_y + delta_y * (row + 1)
            label = grate.label_for_row(row) + grate.label_for_col(col)
            features.append({
                "type": "Feature",
                "geometry": mapping(Point(x0 + (x1 - x0) / 2, y0 + (y1 - y0) / 2)),
                "properties": {"name": label},
            })

    lines = [((min_x + delta_x * col, min_y), (min_x + delta_x * col, max_y)) for col in range(cols + 1)]
    lines += [((min_x, min_y + delta_y * row), (max_x, min_y + delta_y * row)) for row in range(rows + 1)]
    features.append({
        "type": "Feature",
        "geometry": mapping(MultiLineString(lines)),
        "properties": {},
    })

    return {"type": "FeatureCollection", "features": features}
