"""
5K grid provider.

Derives 1:5,000 cells by subdividing the 1:50,000 cells of a base
provider into a 10x10 grid of parts numbered 1-100. Rows are 0.025
degrees of latitude tall and counted from the north edge; columns are a
tenth of the parent's longitude span wide (never narrower than 0.025
degrees).

Part numbering follows the published sheets: parts 1-10 are the first
row west to east, 11-20 the second row and so on, with the last column
of each row carrying the row's multiple of ten.
"""

from dataclasses import replace
from enum import Enum
from typing import Tuple

from grid_cells import (
    MDGID, WGS84_SRID, Cell, CellSize, GridError, LatLng, Provider, cell_size_label, to_wgs84,
)

TYPE = "grid5k"
CONFIG_KEY_PROVIDER = "provider"
CONFIG_KEY_PART_MODE = "part_mode"

SQUARE_SIDE = 0.025
MAX_PART = 100


class BlankSubproviderError(GridError):
    def __init__(self):
        super().__init__("grid5k: sub provider name is blank")


class InvalidSheetNumberError(GridError):
    def __init__(self, part: int):
        self.part = part
        super().__init__(f"invalid sheet number: {part}, must be between 1 and {MAX_PART}")


class UnsupportedCellSizeError(GridError):
    def __init__(self, cell_size: int):
        self.cell_size = cell_size
        super().__init__(f"unsupported cell size ({cell_size_label(cell_size)}), only support 50K")


class PartMode(Enum):
    """How part numbers map to rows and columns.

    CURRENT places the last column of each row against the parent's east
    edge. SUSPECTED_FIX treats every part as row (part-1)//10, column
    (part-1)%10 measured from the west edge. The two agree whenever the
    parent is wider than 0.025 degrees.
    """
    CURRENT = "current"
    SUSPECTED_FIX = "suspected_fix"


def square_width(sw: LatLng, ne: LatLng) -> float:
    diff = abs(sw.lng - ne.lng)
    if diff > SQUARE_SIDE:
        return diff / 10
    return SQUARE_SIDE


def sheet_bounds(
    sw: LatLng,
    ne: LatLng,
    part: int,
    mode: PartMode = PartMode.CURRENT
) -> Tuple[float, float, float, float]:
    """Bounds of a part of the parent cell sw/ne.

    Args:
        sw: Parent south-west corner
        ne: Parent north-east corner
        part: Part number, values below 1 are treated as 1
        mode: Part numbering mode

    Returns:
        (north, south, west, east) in degrees

    Raises:
        InvalidSheetNumberError: part is above 100
    """
    if part > MAX_PART:
        raise InvalidSheetNumberError(part)
    part = max(part, 1)
    width = square_width(sw, ne)

    if mode is PartMode.SUSPECTED_FIX:
        a, b = divmod(part, 10)
        if b == 0:
            a, b = a - 1, 10
    elif part == MAX_PART:
        a, b = 10, 0
    elif part < 11:
        a, b = 0, part
    else:
        a, b = divmod(part, 10)

    if b == 0:
        north = ne.lat - a * SQUARE_SIDE + SQUARE_SIDE
        south = north - SQUARE_SIDE
        west = ne.lng - width
        east = ne.lng
    else:
        north = ne.lat - a * SQUARE_SIDE
        south = north - SQUARE_SIDE
        west = sw.lng + (b - 1) * width
        east = west + width
    return north, south, west, east


def mdgid_part(sw: LatLng, ne: LatLng, lat: float, lng: float) -> int:
    """Part number of the square containing lat/lng within the parent sw/ne."""
    width = square_width(sw, ne)
    east_diff = int(abs(sw.lng - lng) / width) + 1
    north_diff = int(abs(ne.lat - lat) / SQUARE_SIDE)
    if east_diff == 10:
        north_diff += 1
        east_diff = 0
    return north_diff * 10 + east_diff


def adjust_cell(parent: Cell, part: int, mode: PartMode = PartMode.CURRENT) -> Cell:
    """Build the part cell of a 50K parent.

    The part inherits the parent's metadata; corners, DMS strings, arc
    lengths and UTM info are recomputed for the part's own bounds.
    """
    if part > MAX_PART:
        raise InvalidSheetNumberError(part)
    part = max(part, 1)
    north, south, west, east = sheet_bounds(parent.sw, parent.ne, part, mode)
    cell = replace(
        parent,
        mdgid=MDGID(parent.mdgid.id, part),
        sw=LatLng(lat=south, lng=west),
        ne=LatLng(lat=north, lng=east),
        sec_len=None,
        sw_dms=None,
        ne_dms=None,
        utm=None,
        metadata=dict(parent.metadata),
    )
    return cell.init()


class Grid5KProvider(Provider):
    """Provider of 5K cells backed by a 50K provider."""

    def __init__(self, base: Provider, part_mode: PartMode = PartMode.CURRENT):
        if base.cell_size() != CellSize.CELL_50K:
            raise UnsupportedCellSizeError(base.cell_size())
        self.base = base
        self.part_mode = part_mode

    def cell_size(self) -> CellSize:
        return CellSize.CELL_5K

    def cell_for_bounds(self, extent, srid: int = WGS84_SRID) -> Cell:
        return self.base.cell_for_bounds(extent, srid)

    def cell_for_lat_lng(self, lat: float, lng: float, srid: int = WGS84_SRID) -> Cell:
        parent = self.base.cell_for_lat_lng(lat, lng, srid)
        lng, lat = to_wgs84(lng, lat, srid)
        part = mdgid_part(parent.sw, parent.ne, lat, lng)
        return adjust_cell(parent, part, self.part_mode)

    def cell_for_mdgid(self, mdgid: MDGID) -> Cell:
        if mdgid.part > MAX_PART:
            raise InvalidSheetNumberError(mdgid.part)
        parent = self.base.cell_for_mdgid(mdgid.without_part())
        return adjust_cell(parent, mdgid.part, self.part_mode)


def new_grid5k_provider(config, registry) -> Grid5KProvider:
    """Build a Grid5KProvider from a provider config.

    Config keys:
        provider: Name of a previously loaded 50K provider
        part_mode: "current" (default) or "suspected_fix"
    """
    name = str(config.get(CONFIG_KEY_PROVIDER, "")).strip()
    if not name:
        raise BlankSubproviderError()
    base = registry.named(name)
    try:
        mode = PartMode(config.get(CONFIG_KEY_PART_MODE, PartMode.CURRENT.value))
    except ValueError as e:
        raise GridError(f"grid5k: unknown part_mode {config.get(CONFIG_KEY_PART_MODE)!r}") from e
    return Grid5KProvider(base, mode)
