"""
Basemap rasters for map sheets.

Downloads XYZ tiles around a center point, stitches them with Pillow and
crops/resizes the result to the exact pixel size of the map frame. The
result is embedded in the sheet SVG as a base64 PNG.
"""

import base64
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, Optional, Tuple

import requests
from PIL import Image

import resolution

DEFAULT_TILE_URL = "https://tile.opentopomap.org/{z}/{x}/{y}.png"
TILE_SIZE = 256
MAX_TILES = 400
MIN_ZOOM = 1
MAX_ZOOM = 17


class BasemapError(RuntimeError):
    """Raised when no basemap could be produced."""


@dataclass
class Basemap:
    """A rendered basemap.

    Attributes:
        image: RGB image sized to the frame
        zoom: Tile zoom level the image was built from
        source: Tile URL template used
        tile_bounds: north/south/west/east of the downloaded tiles
    """
    image: Image.Image
    zoom: int
    source: str
    tile_bounds: Dict[str, float] = field(default_factory=dict)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def png_bytes(self) -> bytes:
        buffer = BytesIO()
        self.image.save(buffer, format="PNG")
        return buffer.getvalue()

    def data_uri(self) -> str:
        """PNG as a data: URI for embedding with svgwrite."""
        image_data = base64.b64encode(self.png_bytes()).decode("utf-8")
        return f"data:image/png;base64,{image_data}"


def lat_lon_to_tile(lat: float, lon: float, z: int) -> Tuple[int, int]:
    n = 2 ** z
    x = int((lon + 180) / 360 * n)
    y = int((1 - math.asinh(math.tan(math.radians(lat))) / math.pi) / 2 * n)
    return x, y


def tile_to_lat_lon(x: int, y: int, z: int) -> Tuple[float, float]:
    """North-west corner of tile x/y as (lat, lon)."""
    n = 2 ** z
    lon = x / n * 360 - 180
    lat = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * y / n))))
    return lat, lon


def tile_range(
    center_lat: float,
    center_lng: float,
    zoom: int,
    width: float,
    height: float
) -> Tuple[int, int, int, int, Tuple[float, float, float, float]]:
    """Tiles covering a width x height pixel window centered on a point at zoom.

    Returns:
        (x_min, y_min, x_max, y_max, window) where window is the
        (left, top, right, bottom) pixel box in world pixels at zoom
    """
    cx, cy = resolution.lat_lng_to_pixel(center_lat, center_lng, zoom, TILE_SIZE)
    left = cx - width / 2
    top = cy - height / 2
    right = cx + width / 2
    bottom = cy + height / 2
    count = 2 ** zoom
    x_min = max(0, int(math.floor(left / TILE_SIZE)))
    y_min = max(0, int(math.floor(top / TILE_SIZE)))
    x_max = min(count - 1, int(math.floor((right - 1e-9) / TILE_SIZE)))
    y_max = min(count - 1, int(math.floor((bottom - 1e-9) / TILE_SIZE)))
    return x_min, y_min, x_max, y_max, (left, top, right, bottom)


class BasemapGenerator(ABC):
    """Produces the raster drawn under the map frame."""

    @abstractmethod
    def generate(
        self,
        center_lat: float,
        center_lng: float,
        zoom: float,
        width: int,
        height: int,
        style: str = ""
    ) -> Basemap:
        ...


class TileBasemapGenerator(BasemapGenerator):
    """Basemap generator backed by an XYZ tile server.

    Args:
        url_template: Tile URL with {z}, {x}, {y} and optionally {style}
        session: requests session to download with
        delay: Seconds to wait between tile requests
    """

    def __init__(
        self,
        url_template: str = DEFAULT_TILE_URL,
        session: Optional[requests.Session] = None,
        delay: float = 0.1,
        timeout: float = 30
    ):
        self.url_template = url_template
        self.session = session or requests.Session()
        self.delay = delay
        self.timeout = timeout

    def _fetch_tiles(self, x_min, y_min, x_max, y_max, zoom, style) -> Tuple[Dict, int, int]:
        tiles = {}
        failed = 0
        not_found = 0
        for y in range(y_min, y_max + 1):
            for x in range(x_min, x_max + 1):
                url = self.url_template.format(z=zoom, x=x, y=y, style=style)
                try:
                    response = self.session.get(url, timeout=self.timeout, headers={
                        'Accept': 'image/png,image/*',
                    })
                except requests.exceptions.RequestException as e:
                    failed += 1
                    if failed <= 3:
                        print(f"      Tile {x},{y}: {e}")
                    continue

                if response.status_code == 200:
                    tiles[(x, y)] = Image.open(BytesIO(response.content)).convert("RGB")
                elif response.status_code == 404:
                    not_found += 1
                else:
                    failed += 1
                    if failed <= 3:
                        print(f"      Tile {x},{y}: HTTP {response.status_code}")
                if self.delay:
                    time.sleep(self.delay)
        return tiles, failed, not_found

    def generate(
        self,
        center_lat: float,
        center_lng: float,
        zoom: float,
        width: int,
        height: int,
        style: str = ""
    ) -> Basemap:
        """Render a width x height basemap centered on a point.

        Args:
            center_lat: Center latitude
            center_lng: Center longitude
            zoom: Fractional zoom for the frame (256px tiles)
            width: Output width in pixels
            height: Output height in pixels
            style: Style name substituted into the URL template

        Returns:
            Basemap sized width x height

        Raises:
            BasemapError: no tiles could be downloaded
        """
        width, height = int(round(width)), int(round(height))
        if width <= 0 or height <= 0:
            raise BasemapError(f"invalid basemap size {width}x{height}")

        tile_zoom = max(MIN_ZOOM, min(MAX_ZOOM, int(math.floor(zoom))))
        return self._generate_at(center_lat, center_lng, zoom, tile_zoom, width, height, style)

    def _generate_at(self, center_lat, center_lng, zoom, tile_zoom, width, height, style) -> Basemap:
        # Window size in tile pixels at tile_zoom
        factor = math.pow(2, zoom - tile_zoom)
        window_w = width / factor
        window_h = height / factor
        x_min, y_min, x_max, y_max, window = tile_range(center_lat, center_lng, tile_zoom, window_w, window_h)

        num_tiles = (x_max - x_min + 1) * (y_max - y_min + 1)
        print(f"    Need {num_tiles} tiles at zoom {tile_zoom}...")
        if num_tiles > MAX_TILES and tile_zoom > MIN_ZOOM:
            print(f"    Too many tiles, reducing zoom level to {tile_zoom - 1}")
            return self._generate_at(center_lat, center_lng, zoom, tile_zoom - 1, width, height, style)

        tiles, failed, not_found = self._fetch_tiles(x_min, y_min, x_max, y_max, tile_zoom, style)

        # Coverage may not exist at this zoom
        if not_found > num_tiles * 0.5 and tile_zoom > 12:
            print(f"    {not_found}/{num_tiles} tiles not found, trying zoom {tile_zoom - 1}...")
            return self._generate_at(center_lat, center_lng, zoom, tile_zoom - 1, width, height, style)

        print(f"    Downloaded {len(tiles)}/{num_tiles} tiles")
        if not tiles:
            raise BasemapError(f"no tiles downloaded ({failed} failed, {not_found} not found)")

        stitched = Image.new('RGB', ((x_max - x_min + 1) * TILE_SIZE, (y_max - y_min + 1) * TILE_SIZE), "white")
        for (x, y), tile in tiles.items():
            stitched.paste(tile, ((x - x_min) * TILE_SIZE, (y - y_min) * TILE_SIZE))

        left, top, right, bottom = window
        origin_x = x_min * TILE_SIZE
        origin_y = y_min * TILE_SIZE
        crop_box = (
            int(round(left - origin_x)),
            int(round(top - origin_y)),
            int(round(right - origin_x)),
            int(round(bottom - origin_y)),
        )
        image = stitched.crop(crop_box).resize((width, height), Image.LANCZOS)
        nw_lat, nw_lon = tile_to_lat_lon(x_min, y_min, tile_zoom)
        se_lat, se_lon = tile_to_lat_lon(x_max + 1, y_max + 1, tile_zoom)
        return Basemap(
            image=image,
            zoom=tile_zoom,
            source=self.url_template,
            tile_bounds={"north": nw_lat, "south": se_lat, "west": nw_lon, "east": se_lon},
        )
