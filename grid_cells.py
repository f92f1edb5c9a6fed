"""
Grid cell model for atlas map sheets.

A grid cell is one rectangular map sheet in a national grid: a lat/lng
box identified by an MDGID (map sheet grid identifier, e.g. "V795X16"),
optionally subdivided into numbered parts ("V795X16:23"). Cells carry
the derived geodesy the sheet layout needs (DMS corners, arc lengths,
UTM zone) and the publication metadata printed in the marginalia.

Providers look cells up by point, by MDGID or by bounds.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Dict, Optional, Tuple

from pyproj import Transformer

import resolution
from geodesy import Hemisphere, UTMZone, calculate_sec_lengths, to_dms, zone_from_lat_lng

# Sheets are composed from 4096px tiles rendered at 8x
WEB_MERCATOR_TILE_SIZE = 4096 // 8

WGS84_SRID = 4326


class GridError(Exception):
    """Base class for grid cell errors."""


class NotFoundError(GridError):
    """Raised when no grid cell matches a lookup."""

    def __init__(self, message: str = "grid not found"):
        super().__init__(message)


class CellSize(IntEnum):
    """Nominal map scale of a grid cell, as the scale denominator."""
    CELL_5K = 5000
    CELL_50K = 50000
    CELL_250K = 250000

    def __str__(self) -> str:
        return cell_size_label(self)


def cell_size_label(size: int) -> str:
    """Human label for a cell size: "5K", "50K", "250K" or "<n>m"."""
    labels = {5000: "5K", 50000: "50K", 250000: "250K"}
    return labels.get(int(size), f"{int(size)}m")


@dataclass(frozen=True)
class MDGID:
    """Map sheet grid identifier with an optional part number.

    Part 0 means the whole cell; parts 1-100 are the 5K subdivisions.
    """
    id: str
    part: int = 0

    def as_string(self) -> str:
        if self.part > 0:
            return f"{self.id}:{self.part}"
        return self.id

    def without_part(self) -> 'MDGID':
        return MDGID(self.id)

    def __str__(self) -> str:
        return self.as_string()


def new_mdgid(m: str) -> MDGID:
    """Parse "ID", "ID:part" or "ID-part" into an MDGID.

    The last ":" wins over the last "-". A suffix that is not all digits
    is taken as part of the ID, so "V795-X16" parses to ID "V795-X16".
    """
    trimmed = m.strip()
    for sep in (":", "-"):
        idx = trimmed.rfind(sep)
        if idx == -1:
            continue
        suffix = trimmed[idx + 1:]
        if suffix.isascii() and suffix.isdigit():
            return MDGID(id=trimmed[:idx], part=int(suffix))
        break
    return MDGID(id=trimmed)


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float

    def lng_lat(self) -> Tuple[float, float]:
        return (self.lng, self.lat)


@dataclass(frozen=True)
class LatLngDMS:
    """Pre-formatted DMS strings for a corner."""
    lat: str
    lng: str


@dataclass(frozen=True)
class EditInfo:
    by: str = ""
    date: Optional[datetime] = None


@dataclass(frozen=True)
class UTMInfo:
    """UTM zone and hemisphere for a cell."""
    zone: UTMZone
    hemi: Hemisphere

    @classmethod
    def new(cls, zone: int, hemi: Hemisphere) -> 'UTMInfo':
        """Build from a zone number; raises ValueError outside 0-60."""
        return cls(UTMZone.from_number(zone), hemi)

    @classmethod
    def from_lat_lng(cls, lat: float, lng: float) -> 'UTMInfo':
        number = zone_from_lat_lng(lat, lng)
        if 0 <= number <= 60:
            zone = UTMZone.from_number(number)
        else:
            zone = UTMZone.unknown()
        return cls(zone, Hemisphere.for_lat(lat))


@dataclass
class Cell:
    """A grid cell (map sheet).

    Corners, DMS strings, arc lengths and UTM info may be left unset and
    filled in by init().
    """
    mdgid: MDGID
    sw: Optional[LatLng] = None
    ne: Optional[LatLng] = None
    sec_len: Optional[LatLng] = None
    sw_dms: Optional[LatLngDMS] = None
    ne_dms: Optional[LatLngDMS] = None
    utm: Optional[UTMInfo] = None
    country: str = ""
    city: str = ""
    series: str = ""
    sheet: str = ""
    nrn: str = ""
    published_at: Optional[datetime] = None
    edited: Optional[EditInfo] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def init(self) -> 'Cell':
        """Fill in derived fields that are not set yet.

        UTM info comes from the NE corner, DMS strings from both corners and
        arc lengths from the SW latitude.
        """
        if self.utm is None and self.ne is not None:
            self.utm = UTMInfo.from_lat_lng(self.ne.lat, self.ne.lng)

        if self.ne_dms is None and self.ne is not None:
            lat_dms, lng_dms = to_dms(self.ne.lat, self.ne.lng)
            self.ne_dms = LatLngDMS(lat=str(lat_dms), lng=str(lng_dms))

        if self.sw_dms is None and self.sw is not None:
            lat_dms, lng_dms = to_dms(self.sw.lat, self.sw.lng)
            self.sw_dms = LatLngDMS(lat=str(lat_dms), lng=str(lng_dms))

        if self.sec_len is None and self.sw is not None:
            lat_len, lng_len = calculate_sec_lengths(self.sw.lat)
            self.sec_len = LatLng(lat=lat_len, lng=lng_len)

        return self

    def _corner(self, name: str) -> LatLng:
        corner = getattr(self, name)
        if corner is None:
            raise GridError(f"cell {self.mdgid} has no {name.upper()} corner")
        return corner

    # Corners as (lng, lat)

    def ne_corner(self) -> Tuple[float, float]:
        return self._corner("ne").lng_lat()

    def sw_corner(self) -> Tuple[float, float]:
        return self._corner("sw").lng_lat()

    def nw_corner(self) -> Tuple[float, float]:
        return (self._corner("sw").lng, self._corner("ne").lat)

    def se_corner(self) -> Tuple[float, float]:
        return (self._corner("ne").lng, self._corner("sw").lat)

    def hull(self) -> Tuple[float, float, float, float]:
        """Extent of the cell as (min_lng, min_lat, max_lng, max_lat)."""
        ne = self._corner("ne")
        sw = self._corner("sw")
        return (
            min(ne.lng, sw.lng),
            min(ne.lat, sw.lat),
            max(ne.lng, sw.lng),
            max(ne.lat, sw.lat),
        )

    def width_height_for_zoom(self, zoom: float) -> Tuple[float, float]:
        """Pixel width/height of the cell in web mercator at zoom (512px tiles)."""
        min_lng, min_lat, max_lng, max_lat = self.hull()
        x1, y1 = resolution.lat_lng_to_pixel(max_lat, min_lng, zoom, WEB_MERCATOR_TILE_SIZE)
        x2, y2 = resolution.lat_lng_to_pixel(min_lat, max_lng, zoom, WEB_MERCATOR_TILE_SIZE)
        return abs(x2 - x1), abs(y2 - y1)

    def center_px_for_zoom(self, zoom: float) -> Tuple[float, float]:
        """Web mercator pixel center of the cell at zoom (512px tiles)."""
        min_lng, min_lat, max_lng, max_lat = self.hull()
        x1, y1 = resolution.lat_lng_to_pixel(max_lat, min_lng, zoom, WEB_MERCATOR_TILE_SIZE)
        x2, y2 = resolution.lat_lng_to_pixel(min_lat, max_lng, zoom, WEB_MERCATOR_TILE_SIZE)
        return (x1 + x2) / 2, (y1 + y2) / 2

    def center_pt_for_zoom(self, zoom: float) -> Tuple[float, float]:
        """Mercator center of the cell as (lat, lng)."""
        x, y = self.center_px_for_zoom(zoom)
        return resolution.pixel_to_lat_lng(x, y, zoom, WEB_MERCATOR_TILE_SIZE)

    def zoom_for_scale_dpi(self, scale: int, dpi: int) -> float:
        return resolution.zoom(
            resolution.MERCATOR_EARTH_CIRCUMFERENCE,
            scale,
            dpi,
            self._corner("sw").lat,
        )

    # Identification

    def reference_number(self) -> str:
        """MDGID as "ID" or "ID-part"."""
        if self.mdgid.part > 0:
            return f"{self.mdgid.id}-{self.mdgid.part}"
        return self.mdgid.id

    def sheet_number(self) -> str:
        """Sheet name as "SHEET" or "SHEET-part"."""
        if self.mdgid.part > 0:
            return f"{self.sheet}-{self.mdgid.part}"
        return self.sheet

    def zone(self) -> UTMZone:
        if self.utm is None:
            return UTMZone.unknown()
        return self.utm.zone

    def hemi(self) -> str:
        if self.utm is not None and self.utm.hemi is Hemisphere.SOUTH:
            return "S"
        return "N"

    def lat_len(self) -> float:
        """Meters per arc second of latitude at the SW corner."""
        if self.sec_len is None:
            return calculate_sec_lengths(self._corner("sw").lat)[0]
        return self.sec_len.lat

    def lng_len(self) -> float:
        """Meters per arc second of longitude at the SW corner."""
        if self.sec_len is None:
            return calculate_sec_lengths(self._corner("sw").lat)[1]
        return self.sec_len.lng

    def publication_date(self) -> Optional[datetime]:
        return self.published_at

    def edit_by(self) -> str:
        return self.edited.by if self.edited is not None else ""

    def edit_date(self) -> Optional[datetime]:
        return self.edited.date if self.edited is not None else None

    # DMS strings, computed when not provided

    def _dms(self, stored: Optional[LatLngDMS], corner: str) -> Tuple[str, str]:
        if stored is not None:
            return stored.lat, stored.lng
        pt = self._corner(corner)
        lat_dms, lng_dms = to_dms(pt.lat, pt.lng)
        return lat_dms.as_string(1), lng_dms.as_string(1)

    def ne_lat_dms(self) -> str:
        return self._dms(self.ne_dms, "ne")[0]

    def ne_lng_dms(self) -> str:
        return self._dms(self.ne_dms, "ne")[1]

    def sw_lat_dms(self) -> str:
        return self._dms(self.sw_dms, "sw")[0]

    def sw_lng_dms(self) -> str:
        return self._dms(self.sw_dms, "sw")[1]


def new_cell(
    mdgid: str,
    sw: Tuple[float, float],
    ne: Tuple[float, float],
    country: str = "",
    city: str = "",
    utm: Optional[UTMInfo] = None,
    edit_info: Optional[EditInfo] = None,
    published_at: Optional[datetime] = None,
    nrn: str = "",
    sheet: str = "",
    series: str = "",
    dms_sw: Tuple[str, str] = ("", ""),
    dms_ne: Tuple[str, str] = ("", ""),
    metadata: Optional[Dict[str, str]] = None
) -> Cell:
    """Build an initialized cell.

    Args:
        mdgid: MDGID string, parsed with new_mdgid
        sw: South-west corner as (lat, lng)
        ne: North-east corner as (lat, lng)
        dms_sw: Pre-formatted (lat, lng) DMS strings; recomputed if either is empty
        dms_ne: Same for the north-east corner

    Returns:
        Cell with derived fields filled in
    """
    cell = Cell(
        mdgid=new_mdgid(mdgid),
        sw=LatLng(lat=sw[0], lng=sw[1]),
        ne=LatLng(lat=ne[0], lng=ne[1]),
        utm=utm,
        country=country,
        city=city,
        series=series,
        sheet=sheet,
        nrn=nrn,
        published_at=published_at,
        edited=edit_info,
        metadata=dict(metadata or {}),
    )
    if all(dms_sw) and all(dms_ne):
        cell.sw_dms = LatLngDMS(lat=dms_sw[0], lng=dms_sw[1])
        cell.ne_dms = LatLngDMS(lat=dms_ne[0], lng=dms_ne[1])
    return cell.init()


class Provider(ABC):
    """Source of grid cells at one cell size."""

    @abstractmethod
    def cell_size(self) -> CellSize:
        ...

    @abstractmethod
    def cell_for_bounds(self, extent: Tuple[float, float, float, float], srid: int = WGS84_SRID) -> Cell:
        """Cell covering extent (min_x, min_y, max_x, max_y) in srid."""

    @abstractmethod
    def cell_for_lat_lng(self, lat: float, lng: float, srid: int = WGS84_SRID) -> Cell:
        ...

    @abstractmethod
    def cell_for_mdgid(self, mdgid: MDGID) -> Cell:
        ...


def is_finite_extent(extent: Tuple[float, float, float, float]) -> bool:
    return all(math.isfinite(v) for v in extent)


def to_wgs84(x: float, y: float, srid: int = WGS84_SRID) -> Tuple[float, float]:
    """Point x/y in srid as (lng, lat) in EPSG:4326."""
    if srid == WGS84_SRID:
        return x, y
    transformer = Transformer.from_crs(f"EPSG:{srid}", f"EPSG:{WGS84_SRID}", always_xy=True)
    return transformer.transform(x, y)
