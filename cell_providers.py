"""
Grid cell providers backed by vector files.

Loads a 50K (or other size) grid from any file geopandas can read
(GeoJSON, GeoPackage, Shapefile) and answers point, MDGID and bounds
lookups against it.

Expected columns (all optional except mdg_id and the geometry):
    mdg_id, sheet, series, nrn, country, city
    swlat, swlng, nelat, nelng          - corners; geometry bounds if missing
    swlat_dms, swlng_dms, nelat_dms, nelng_dms
    edited_by, edited_at, published_at
"""

import hashlib
import math
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, Union

import geopandas as gpd
import pandas as pd
from shapely.geometry import Point, box

from grid_cells import (
    WGS84_SRID, Cell, CellSize, EditInfo, GridError, LatLng, MDGID, NotFoundError, Provider,
    is_finite_extent, new_cell, to_wgs84,
)

TYPE = "geojson"
CONFIG_KEY_FILE = "file"
CONFIG_KEY_SCALE = "scale"

_METADATA_COLUMNS = ("published_by", "source", "edition")


def _text(row, key: str) -> str:
    value = row.get(key)
    if value is None or pd.isna(value):
        return ""
    return str(value)


def _number(row, key: str) -> Optional[float]:
    value = row.get(key)
    if value is None or pd.isna(value):
        return None
    return float(value)


def _date(row, key: str) -> Optional[datetime]:
    value = row.get(key)
    if value is None or pd.isna(value):
        return None
    if isinstance(value, datetime):
        return value
    return pd.Timestamp(str(value)).to_pydatetime()


class GeoDataFrameProvider(Provider):
    """Grid cell provider over a GeoDataFrame of cell polygons.

    Args:
        gdf: Cell polygons; reprojected to EPSG:4326 if in another CRS
        cell_size: Nominal scale of the cells
    """

    def __init__(self, gdf: gpd.GeoDataFrame, cell_size: CellSize = CellSize.CELL_50K):
        if gdf.crs is not None and gdf.crs.to_epsg() != WGS84_SRID:
            gdf = gdf.to_crs(epsg=WGS84_SRID)
        self.gdf = gdf.reset_index(drop=True)
        self._cell_size = CellSize(cell_size)

    @classmethod
    def from_file(cls, path: Union[str, Path], cell_size: CellSize = CellSize.CELL_50K) -> 'GeoDataFrameProvider':
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Grid file not found: {path}")
        print(f"  Loading grid cells from {path.name}...")
        gdf = gpd.read_file(path)
        print(f"  Loaded {len(gdf)} cells")
        return cls(gdf, cell_size)

    def cell_size(self) -> CellSize:
        return self._cell_size

    def _candidates(self, geom) -> gpd.GeoDataFrame:
        possible_idx = list(self.gdf.sindex.intersection(geom.bounds))
        if not possible_idx:
            return self.gdf.iloc[[]]
        possible = self.gdf.iloc[sorted(possible_idx)]
        return possible[possible.intersects(geom)]

    def cell_for_lat_lng(self, lat: float, lng: float, srid: int = WGS84_SRID) -> Cell:
        """Cell containing the point; lat/lng are y/x in srid."""
        x, y = to_wgs84(lng, lat, srid)
        matches = self._candidates(Point(x, y))
        if len(matches) == 0:
            raise NotFoundError(f"no grid cell at ({lat}, {lng})")
        return self._cell_from_row(matches.iloc[0])

    def cell_for_mdgid(self, mdgid: MDGID) -> Cell:
        matches = self.gdf[self.gdf["mdg_id"].astype(str) == mdgid.id]
        if len(matches) == 0:
            raise NotFoundError(f"no grid cell with mdgid {mdgid.id}")
        return self._cell_from_row(matches.iloc[0])

    def cell_for_bounds(self, extent: Tuple[float, float, float, float], srid: int = WGS84_SRID) -> Cell:
        """Cell for an arbitrary extent.

        The first intersecting cell supplies the metadata; the corners are
        the requested extent. Each call gets a fresh "filename" in the
        metadata so outputs for ad-hoc extents never collide.
        """
        if not is_finite_extent(extent):
            raise GridError(f"invalid extent: {extent}")
        min_x, min_y = to_wgs84(extent[0], extent[1], srid)
        max_x, max_y = to_wgs84(extent[2], extent[3], srid)

        matches = self._candidates(box(min_x, min_y, max_x, max_y))
        if len(matches) == 0:
            raise NotFoundError(f"no grid cell intersects {extent}")
        cell = self._cell_from_row(matches.iloc[0])

        cell.sw = LatLng(lat=min_y, lng=min_x)
        cell.ne = LatLng(lat=max_y, lng=max_x)
        cell.sw_dms = None
        cell.ne_dms = None
        cell.sec_len = None
        cell.utm = None

        digest = hashlib.sha1(f"{extent!r} {srid} {datetime.now().isoformat()}".encode("utf-8"))
        cell.metadata["filename"] = digest.hexdigest()
        return cell.init()

    def _cell_from_row(self, row) -> Cell:
        min_x, min_y, max_x, max_y = row.geometry.bounds
        sw_lat = _number(row, "swlat")
        sw_lng = _number(row, "swlng")
        ne_lat = _number(row, "nelat")
        ne_lng = _number(row, "nelng")
        sw = (min_y if sw_lat is None else sw_lat, min_x if sw_lng is None else sw_lng)
        ne = (max_y if ne_lat is None else ne_lat, max_x if ne_lng is None else ne_lng)
        if not all(math.isfinite(v) for v in sw + ne):
            raise GridError(f"cell {_text(row, 'mdg_id')} has invalid corners")

        edited = EditInfo(by=_text(row, "edited_by"), date=_date(row, "edited_at"))
        metadata = {key: _text(row, key) for key in _METADATA_COLUMNS if _text(row, key)}

        cell = new_cell(
            mdgid=_text(row, "mdg_id"),
            sw=sw,
            ne=ne,
            country=_text(row, "country"),
            city=_text(row, "city"),
            edit_info=edited,
            published_at=_date(row, "published_at"),
            nrn=_text(row, "nrn"),
            sheet=_text(row, "sheet"),
            series=_text(row, "series"),
            dms_sw=(_text(row, "swlat_dms"), _text(row, "swlng_dms")),
            dms_ne=(_text(row, "nelat_dms"), _text(row, "nelng_dms")),
            metadata=metadata,
        )
        # Stored IDs are whole cell IDs, even ones ending in "-<digits>"
        cell.mdgid = MDGID(_text(row, "mdg_id"))
        return cell


def new_geojson_provider(config, registry) -> GeoDataFrameProvider:
    """Build a GeoDataFrameProvider from a provider config.

    Config keys:
        file: Path to the grid file
        scale: Cell size as the scale denominator (default 50000)
    """
    path = config.get(CONFIG_KEY_FILE)
    if not path:
        raise GridError("geojson provider needs a 'file'")
    try:
        cell_size = CellSize(int(config.get(CONFIG_KEY_SCALE, CellSize.CELL_50K)))
    except ValueError as e:
        raise GridError(f"geojson provider: unsupported scale {config.get(CONFIG_KEY_SCALE)!r}") from e
    try:
        return GeoDataFrameProvider.from_file(path, cell_size)
    except FileNotFoundError as e:
        raise GridError(str(e)) from e
