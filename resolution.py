"""
Map resolution math.

Converts between paper scale (1:N at a given DPI), ground resolution
(meters per pixel) and web mercator zoom levels, and projects lat/lng
points into web mercator pixel space.

All zoom math assumes a 256 pixel tile. Web mercator pixel helpers take
the tile size as an argument since sheet rendering works with 512 pixel
tiles.
"""

import math
from typing import Tuple

from geodesy import to_utm, zone_from_lat_lng

MERCATOR_EARTH_RADIUS = 6378137
MERCATOR_EARTH_CIRCUMFERENCE = 2 * math.pi * MERCATOR_EARTH_RADIUS

RAD = math.pi / 180
TILE_SIZE = 256
METERS_PER_INCH = 0.0254

SCALE_50K = 50000

# Web mercator stops being usable past this latitude
MAX_MERCATOR_LAT = 85.05112878


def zoom_map_width(scale: int, dpi: int, map_width: float) -> float:
    """Zoom level at which map_width meters spans the map at scale/dpi."""
    ground = scale * METERS_PER_INCH / dpi
    return math.log2(map_width / ground)


def zoom(earth_circumference: float, scale: int, dpi: int, lat: float) -> float:
    """Web mercator zoom level giving a 1:scale map at dpi, at latitude lat.

    Args:
        earth_circumference: Earth circumference in meters
        scale: Paper scale denominator (50000 for 1:50,000)
        dpi: Output dots per inch
        lat: Latitude in degrees

    Returns:
        Fractional zoom level
    """
    ground = scale * METERS_PER_INCH / dpi
    width = math.cos(lat * RAD) * earth_circumference
    map_width = width / ground
    return math.log2(map_width / TILE_SIZE)


def ground(earth_circumference: float, zoom: float, lat: float) -> float:
    """Ground resolution in meters per pixel at the given zoom and latitude."""
    return math.cos(lat * RAD) * earth_circumference / (TILE_SIZE * math.pow(2, zoom))


def scale(dpi: int, ground: float) -> float:
    """Paper scale denominator for a ground resolution printed at dpi."""
    return ground * dpi / METERS_PER_INCH


def lat_in_meters(earth_circumference: float, lat: float) -> float:
    """Length in meters of the parallel at lat."""
    return math.cos(lat * RAD) * earth_circumference


def zoom_for_ground(earth_circumference: float, ground: float, lat: float) -> float:
    """Zoom level that yields the given ground resolution at lat."""
    return math.log2(math.cos(lat * RAD) * earth_circumference / (ground * TILE_SIZE))


def bounds_pixel_width_height(
    sw: Tuple[float, float],
    ne: Tuple[float, float],
    ground: float
) -> Tuple[float, float]:
    """Pixel width and height of the box between sw and ne at a ground resolution.

    Both corners are projected in the zone of the south-west corner so the
    easting/northing differences are taken in one coordinate system.

    Args:
        sw: South-west corner as (lng, lat)
        ne: North-east corner as (lng, lat)
        ground: Meters per pixel

    Returns:
        (width, height) in pixels
    """
    zone = zone_from_lat_lng(sw[1], sw[0])
    sw_utm = to_utm(sw[0], sw[1], zone=zone)
    ne_utm = to_utm(ne[0], ne[1], zone=zone)
    width = abs(ne_utm.easting - sw_utm.easting) / ground
    height = abs(ne_utm.northing - sw_utm.northing) / ground
    return width, height


def ground_from_map_width(
    sw: Tuple[float, float],
    ne: Tuple[float, float],
    image_width: float
) -> float:
    """Ground resolution that fits the sw/ne box into image_width pixels."""
    width, _ = bounds_pixel_width_height(sw, ne, 1)
    return width / image_width


def ground_from_map_height(
    sw: Tuple[float, float],
    ne: Tuple[float, float],
    image_height: float
) -> float:
    """Ground resolution that fits the sw/ne box into image_height pixels."""
    _, height = bounds_pixel_width_height(sw, ne, 1)
    return height / image_height


def lat_lng_to_pixel(lat: float, lng: float, zoom: float, tile_size: int = TILE_SIZE) -> Tuple[float, float]:
    """Project lat/lng to web mercator pixel coordinates at zoom.

    Pixel origin is the north-west corner of the world; y grows southwards.
    """
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    world = tile_size * math.pow(2, zoom)
    x = (lng + 180.0) / 360.0 * world
    lat_rad = math.radians(lat)
    y = (1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * world
    return x, y


def pixel_to_lat_lng(x: float, y: float, zoom: float, tile_size: int = TILE_SIZE) -> Tuple[float, float]:
    """Inverse of lat_lng_to_pixel, returns (lat, lng)."""
    world = tile_size * math.pow(2, zoom)
    lng = x / world * 360.0 - 180.0
    lat_rad = math.atan(math.sinh(math.pi * (1 - 2 * y / world)))
    return math.degrees(lat_rad), lng
