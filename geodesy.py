"""
Geodesy helpers for atlas grid cells.

This module provides the coordinate conversions the grid cell model and the
trellis layout are built on:

- Decimal degrees to degree-minute-second (DMS) values
- UTM zone classification, including the Norway and Svalbard exceptions
  and the polar regions where UPS applies
- Arc lengths of one second of latitude/longitude at a given latitude
- UTM projection of lng/lat points through pyproj
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import mgrs
from pyproj import Transformer


class ProjectionError(ValueError):
    """Raised when a point can not be projected to UTM."""


class Hemisphere(Enum):
    """UTM hemisphere."""
    NORTH = "NORTH"
    SOUTH = "SOUTH"

    @classmethod
    def for_lat(cls, lat: float) -> 'Hemisphere':
        return cls.SOUTH if lat < 0 else cls.NORTH


class ZoneKind(Enum):
    NUMBERED = "numbered"
    POLAR = "polar"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class UTMZone:
    """A UTM zone: a numbered zone (1-60), a polar (UPS) region, or unknown.

    Attributes:
        kind: Which variant this zone is
        number: Zone number, only meaningful for numbered zones
    """
    kind: ZoneKind
    number: int = 0

    @classmethod
    def numbered(cls, number: int) -> 'UTMZone':
        if not 1 <= number <= 60:
            raise ValueError(f"UTM zone must be between 1 and 60, got {number}")
        return cls(ZoneKind.NUMBERED, number)

    @classmethod
    def polar(cls) -> 'UTMZone':
        return cls(ZoneKind.POLAR)

    @classmethod
    def unknown(cls) -> 'UTMZone':
        return cls(ZoneKind.UNKNOWN)

    @classmethod
    def from_number(cls, number: int) -> 'UTMZone':
        """Build a zone from the value returned by zone_from_lat_lng (0 = polar)."""
        if number == 0:
            return cls.polar()
        return cls.numbered(number)

    @property
    def is_numbered(self) -> bool:
        return self.kind is ZoneKind.NUMBERED

    def label(self, default: Optional[str] = None) -> Optional[str]:
        """Two digit zone label ("01"-"60"), or default for polar/unknown zones."""
        if not self.is_numbered:
            return default
        return f"{self.number:02d}"

    def __str__(self) -> str:
        return self.label(default=self.kind.value)


@dataclass(frozen=True)
class DMS:
    """Degree, minute, second value.

    Degree, minute and second are never negative; the sign is carried by
    the hemisphere letter (N/S for latitude, E/W for longitude).
    """
    degree: int
    minute: int
    second: float
    hemisphere: str

    def as_string(self, prec: int = 0) -> str:
        """Format as D°M'S"H with prec digits of seconds (0 = %f default)."""
        if prec:
            return f"{self.degree}°{self.minute}'{self.second:.{prec}f}\"{self.hemisphere}"
        return f"{self.degree}°{self.minute}'{self.second:f}\"{self.hemisphere}"

    def to_decimal(self) -> float:
        """Signed decimal degrees for this value."""
        value = self.degree + self.minute / 60 + self.second / 3600
        if self.hemisphere in ("S", "W"):
            return -value
        return value

    def __str__(self) -> str:
        return self.as_string(0)


def _split_dms(value: float) -> Tuple[int, int, float]:
    frac, whole = math.modf(value)
    min_frac, minutes = math.modf(60 * frac)
    seconds = 60 * min_frac
    return int(abs(whole)), int(abs(minutes)), abs(seconds)


def to_dms(lat: float, lng: float) -> Tuple[DMS, DMS]:
    """Convert a lat/lng pair in decimal degrees to (lat DMS, lng DMS).

    Zero is treated as the positive hemisphere (N / E).
    """
    lat_d, lat_m, lat_s = _split_dms(lat)
    lng_d, lng_m, lng_s = _split_dms(lng)
    return (
        DMS(lat_d, lat_m, lat_s, "S" if lat < 0 else "N"),
        DMS(lng_d, lng_m, lng_s, "W" if lng < 0 else "E"),
    )


def zone_from_lat_lng(lat: float, lng: float) -> int:
    """Get the UTM zone for a lat/lng.

    Returns a zone from 1-60. A return value of 0 means the point is in a
    polar region and UPS should be used instead of UTM.
    """
    if 84.0 < lat < 90.0 or -90.0 < lat < -80.0:
        return 0

    # Norway
    if 56.0 <= lat < 64.0 and 3.0 <= lng < 12.0:
        return 32

    # Svalbard
    if 72.0 <= lat < 84.0:
        if 0.0 <= lng < 9.0:
            return 31
        if 9.0 <= lng < 21.0:
            return 33
        if 21.0 <= lng < 33.0:
            return 35
        if 33.0 <= lng < 42.0:
            return 37

    # [-180, 180) recast to [0, 360) and split into 6 degree zones
    return int(math.floor((lng + 180) / 6)) + 1


# Empirical terms from the NGA degree length calculator
_LAT_TERMS = (111132.92, -559.82, 1.175, -0.0023)
_LNG_TERMS = (111412.84, -93.5, 0.118)


def calculate_sec_lengths(latitude: float) -> Tuple[float, float]:
    """Arc length in meters of one second of (latitude, longitude) at latitude."""
    m1, m2, m3, m4 = _LAT_TERMS
    p1, p2, p3 = _LNG_TERMS

    lat = latitude * ((2.0 * math.pi) / 360.0)
    lat_len = (m1 + m2 * math.cos(2 * lat) + m3 * math.cos(4 * lat) + m4 * math.cos(6 * lat)) / 3600
    lng_len = (p1 * math.cos(lat) + p2 * math.cos(3 * lat) + p3 * math.cos(5 * lat)) / 3600
    return lat_len, lng_len


@dataclass(frozen=True)
class Ellipsoid:
    """Reference ellipsoid used for UTM projection.

    Attributes:
        name: Display name
        radius: Equatorial radius in meters
        eccentricity: First eccentricity squared
        nato_compatible: Whether the ellipsoid is used for NATO grid references
    """
    name: str
    radius: float
    eccentricity: float
    nato_compatible: bool = True

    @property
    def proj_params(self) -> str:
        """PROJ ellipsoid parameters for this ellipsoid."""
        return f"+a={self.radius} +es={self.eccentricity}"


WGS84_ELLIPSOID = Ellipsoid(
    name="WGS_84",
    radius=6378137,
    eccentricity=0.00669438,
    nato_compatible=True,
)


@dataclass(frozen=True)
class UTMCoord:
    """A projected UTM coordinate."""
    easting: float
    northing: float
    zone: int
    hemisphere: Hemisphere


def to_utm(
    lng: float,
    lat: float,
    ellipsoid: Ellipsoid = WGS84_ELLIPSOID,
    zone: Optional[int] = None
) -> UTMCoord:
    """Project a lng/lat point to UTM.

    Args:
        lng: Longitude in degrees
        lat: Latitude in degrees
        ellipsoid: Ellipsoid to project on
        zone: Force a zone instead of deriving it from the point. Used to keep
            all corners of a cell in one zone.

    Returns:
        UTMCoord with easting/northing in meters

    Raises:
        ProjectionError: the point is in a polar region, the zone is invalid,
            or the projection produced a non-finite value
    """
    if zone is None:
        zone = zone_from_lat_lng(lat, lng)
    if zone == 0:
        raise ProjectionError(f"({lng}, {lat}) is in a polar region; UPS applies, not UTM")
    if not 1 <= zone <= 60:
        raise ProjectionError(f"invalid UTM zone {zone} for ({lng}, {lat})")

    hemisphere = Hemisphere.for_lat(lat)
    south = " +south" if hemisphere is Hemisphere.SOUTH else ""
    geographic = f"+proj=longlat {ellipsoid.proj_params} +no_defs +type=crs"
    projected = f"+proj=utm +zone={zone}{south} {ellipsoid.proj_params} +units=m +no_defs +type=crs"

    transformer = Transformer.from_crs(geographic, projected, always_xy=True)
    easting, northing = transformer.transform(lng, lat)
    if not (math.isfinite(easting) and math.isfinite(northing)):
        raise ProjectionError(f"could not project ({lng}, {lat}) to UTM zone {zone}")

    return UTMCoord(easting=easting, northing=northing, zone=zone, hemisphere=hemisphere)


def haversine_distance(
    pt1: Tuple[float, float],
    pt2: Tuple[float, float],
    ellipsoid: Ellipsoid = WGS84_ELLIPSOID
) -> float:
    """Great-circle distance in meters between two (lng, lat) points."""
    lng1, lat1 = pt1
    lng2, lat2 = pt2
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lng2 - lng1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return ellipsoid.radius * c


def mgrs_reference(lat: float, lng: float, precision: int = 5) -> str:
    """MGRS reference for a point, e.g. "51R TG 60625 68790".

    Args:
        lat: Latitude in degrees
        lng: Longitude in degrees
        precision: Number of digits per easting/northing (0-5)
    """
    converter = mgrs.MGRS()
    raw = converter.toMGRS(lat, lng, MGRSPrecision=precision)
    # "51RTG6062568790" -> "51R TG 60625 68790"
    zone_len = len(raw) - 2 - 2 * precision
    gzd = raw[:zone_len]
    square = raw[zone_len:zone_len + 2]
    digits = raw[zone_len + 2:]
    if precision == 0:
        return f"{gzd} {square}"
    return f"{gzd} {square} {digits[:precision]} {digits[precision:]}"
