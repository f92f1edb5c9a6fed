"""
Map sheet configuration and composition.

A sheet is one printed page for one grid cell: the cell's frame at a
fixed paper scale, an optional basemap under it, the UTM trellis bars
with their coordinate labels, an optional lettered grating and the
marginalia (title, scale, zone, corner coordinates).

Configuration is read from map_config.json:

    {
      "providers": [
        {"name": "grid50k", "type": "geojson", "file": "data/grid50k.geojson"},
        {"name": "grid5k", "type": "grid5k", "provider": "grid50k"}
      ],
      "sheets": [
        {"name": "50k", "provider": "grid50k", "scale": 50000, "dpi": 144},
        {"name": "5k", "provider": "grid5k", "scale": 5000, "grid_spacing": 100}
      ]
    }
"""

import json
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import svgwrite

import resolution
import status
from basemap import DEFAULT_TILE_URL, Basemap, BasemapGenerator
from export import ExportError, export_pdf, export_png
from geodesy import mgrs_reference
from grating import MAX_ROW_COL, MIN_ROW_COL, new_grating
from grid_cells import MDGID, WGS84_SRID, Cell, Provider
from map_utils import Bounds, LayerManager, LayerZOrder, PixelBox
from render_helpers import render_bars, render_frame, render_grating, render_trellis_labels
from trellis import Grid, Structure, structure_for_cell

DEFAULT_CONFIG_PATH = Path("map_config.json")

# A0 portrait
DEFAULT_WIDTH_MM = 841
DEFAULT_HEIGHT_MM = 1189
DEFAULT_DPI = 144
DEFAULT_SCALE = resolution.SCALE_50K
DEFAULT_GRID_SPACING = 1000
MM_PER_INCH = 25.4

# Zone label used when a cell has no numbered zone
DEFAULT_ZONE_LABEL = "01"


class SheetError(ValueError):
    """Raised for invalid sheet configuration."""


def mm_to_point(mm: float, dpi: int) -> int:
    """Millimeters to whole pixels at dpi."""
    return int(round(mm / MM_PER_INCH * dpi))


@dataclass
class SheetConfig:
    """Configuration for one kind of sheet."""
    name: str
    provider: str = ""
    scale: int = DEFAULT_SCALE
    dpi: int = DEFAULT_DPI
    width_mm: float = DEFAULT_WIDTH_MM
    height_mm: float = DEFAULT_HEIGHT_MM
    style: str = ""
    grid_spacing: int = DEFAULT_GRID_SPACING
    label_rows: List[int] = field(default_factory=list)
    label_cols: List[int] = field(default_factory=list)
    draw_grating: bool = False
    grating_rows: int = 10
    grating_cols: int = 10
    basemap: bool = True
    output_dir: str = "output"
    description: str = ""

    def __post_init__(self):
        self.name = self.name.strip().lower()
        if not self.name:
            raise SheetError("sheet name is blank")
        if self.scale <= 0 or self.dpi <= 0:
            raise SheetError(f"sheet {self.name}: scale and dpi must be positive")
        if self.width_mm <= 0 or self.height_mm <= 0:
            raise SheetError(f"sheet {self.name}: page size must be positive")
        if self.grid_spacing <= 0:
            raise SheetError(f"sheet {self.name}: grid_spacing must be positive")
        if self.draw_grating:
            for value in (self.grating_rows, self.grating_cols):
                if not MIN_ROW_COL <= value <= MAX_ROW_COL:
                    raise SheetError(
                        f"sheet {self.name}: grating rows/cols must be between {MIN_ROW_COL} and {MAX_ROW_COL}"
                    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SheetConfig':
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise SheetError(f"unknown sheet settings: {', '.join(sorted(unknown))}")
        try:
            return cls(**data)
        except TypeError as e:
            raise SheetError(f"invalid sheet settings {data}: {e}") from e

    @property
    def grid(self) -> Grid:
        return Grid(int(self.grid_spacing))

    @property
    def ground_pixel(self) -> float:
        """Meters on the ground per output pixel."""
        return self.scale * resolution.METERS_PER_INCH / self.dpi

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    def width_in_points(self, dpi: Optional[int] = None) -> int:
        return mm_to_point(self.width_mm, dpi or self.dpi)

    def height_in_points(self, dpi: Optional[int] = None) -> int:
        return mm_to_point(self.height_mm, dpi or self.dpi)


@dataclass
class AtlasConfig:
    """Providers and sheets loaded from a config file."""
    providers: List[Dict[str, Any]] = field(default_factory=list)
    sheets: Dict[str, SheetConfig] = field(default_factory=dict)
    tile_url: str = DEFAULT_TILE_URL

    def sheet(self, name: str) -> SheetConfig:
        key = name.strip().lower()
        if key not in self.sheets:
            raise SheetError(f"no sheet named {name}; available: {', '.join(sorted(self.sheets))}")
        return self.sheets[key]


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> Optional[AtlasConfig]:
    """Load configuration from a JSON file if it exists."""
    path = Path(path)
    if not path.exists():
        return None

    print(f"Loading configuration from {path}...")
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise SheetError(f"invalid config {path}: {e}") from e

    sheets = {}
    for entry in data.get("sheets", []):
        sheet = SheetConfig.from_dict(entry)
        if sheet.name in sheets:
            raise SheetError(f"duplicate sheet name: {sheet.name}")
        sheets[sheet.name] = sheet

    return AtlasConfig(
        providers=list(data.get("providers", [])),
        sheets=sheets,
        tile_url=data.get("tile_url", DEFAULT_TILE_URL),
    )


def template_context(cell: Cell, sheet: SheetConfig) -> Dict[str, Any]:
    """Values printed on a sheet for a cell."""
    zoom = cell.zoom_for_scale_dpi(sheet.scale, sheet.dpi)
    ground = resolution.ground(resolution.MERCATOR_EARTH_CIRCUMFERENCE, zoom, cell.sw.lat)
    min_lng, min_lat, max_lng, max_lat = cell.hull()
    published = cell.publication_date()
    edited = cell.edit_date()

    return {
        "mdgid": str(cell.mdgid),
        "reference_number": cell.reference_number(),
        "sheet_number": cell.sheet_number(),
        "series": cell.series,
        "nrn": cell.nrn,
        "country": cell.country,
        "city": cell.city,
        "zone": cell.zone().label(default=DEFAULT_ZONE_LABEL),
        "hemi": cell.hemi(),
        "ne_lat_dms": cell.ne_lat_dms(),
        "ne_lng_dms": cell.ne_lng_dms(),
        "sw_lat_dms": cell.sw_lat_dms(),
        "sw_lng_dms": cell.sw_lng_dms(),
        "lat_len": cell.lat_len(),
        "lng_len": cell.lng_len(),
        "zoom": zoom,
        "ground": ground,
        "scale": resolution.scale(sheet.dpi, ground),
        "dpi": sheet.dpi,
        "grid_spacing": sheet.grid_spacing,
        "mgrs": mgrs_reference((min_lat + max_lat) / 2, (min_lng + max_lng) / 2, precision=0),
        "published_at": published.date().isoformat() if published else "",
        "edited_by": cell.edit_by(),
        "edited_at": edited.date().isoformat() if edited else "",
    }


def output_stem(cell: Cell, sheet: SheetConfig) -> str:
    """File name (without extension) for a cell's sheet."""
    name = cell.metadata.get("filename") or cell.reference_number()
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", f"{sheet.name}_{name}")


@dataclass
class GeneratedFiles:
    svg: Path
    pdf: Optional[Path] = None
    png: Optional[Path] = None


class SheetRenderer:
    """Composes sheets for cells from a provider.

    Args:
        sheet: Sheet configuration
        provider: Cell provider for lookups
        basemap: Basemap generator; no basemap is drawn when None or when
            the sheet disables it
        status_sink: Receives job status events
        pdf: Also export a PDF next to the SVG
        png: Also export a PNG at the sheet dpi
    """

    def __init__(
        self,
        sheet: SheetConfig,
        provider: Optional[Provider] = None,
        basemap: Optional[BasemapGenerator] = None,
        status_sink: Optional[status.StatusSink] = None,
        pdf: bool = False,
        png: bool = False
    ):
        self.sheet = sheet
        self.provider = provider
        self.basemap = basemap
        self.status = status_sink or status.NullStatusSink()
        self.pdf = pdf
        self.png = png

    @contextmanager
    def _stage(self, job: str, description: str):
        self.status.emit(job, status.Processing(description))
        try:
            yield
        except Exception as e:
            self.status.emit(job, status.failed(description, e))
            raise

    def _require_provider(self) -> Provider:
        if self.provider is None:
            raise SheetError(f"sheet {self.sheet.name} has no provider")
        return self.provider

    def generate_for_lat_lng(self, lat: float, lng: float, srid: int = WGS84_SRID) -> GeneratedFiles:
        """Look up the cell at lat/lng and generate its sheet."""
        job = f"{self.sheet.name}@{lat},{lng}"
        self.status.emit(job, status.Requested())
        self.status.emit(job, status.Started())
        with self._stage(job, "cell lookup"):
            cell = self._require_provider().cell_for_lat_lng(lat, lng, srid)
        return self._render(cell, job)

    def generate_for_mdgid(self, mdgid: MDGID) -> GeneratedFiles:
        """Look up the cell for an MDGID and generate its sheet."""
        job = f"{self.sheet.name}@{mdgid}"
        self.status.emit(job, status.Requested())
        self.status.emit(job, status.Started())
        with self._stage(job, "cell lookup"):
            cell = self._require_provider().cell_for_mdgid(mdgid)
        return self._render(cell, job)

    def generate(self, cell: Cell) -> GeneratedFiles:
        """Render a cell's sheet to SVG, plus PDF and PNG when enabled.

        Returns:
            GeneratedFiles with the paths written
        """
        job = f"{self.sheet.name}@{cell.mdgid}"
        self.status.emit(job, status.Requested())
        self.status.emit(job, status.Started())
        return self._render(cell, job)

    def _render(self, cell: Cell, job: str) -> GeneratedFiles:
        with self._stage(job, "building trellis"):
            structure = structure_for_cell(cell, grid=self.sheet.grid)

        image = None
        if self.sheet.basemap and self.basemap is not None:
            with self._stage(job, "fetching basemap"):
                image = self._fetch_basemap(cell, structure)

        output_dir = self.sheet.output_path
        stem = output_stem(cell, self.sheet)
        svg_path = output_dir / f"{stem}.svg"
        with self._stage(job, "composing svg"):
            output_dir.mkdir(parents=True, exist_ok=True)
            dwg = self.render(cell, structure, image, filename=str(svg_path))
            dwg.save()
            print(f"  Saved SVG: {svg_path}")

        files = GeneratedFiles(svg=svg_path)
        if self.pdf:
            pdf_path = output_dir / f"{stem}.pdf"
            with self._stage(job, "exporting pdf"):
                if not export_pdf(svg_path, pdf_path):
                    raise ExportError(f"could not export {pdf_path}")
            files.pdf = pdf_path
        if self.png:
            png_path = output_dir / f"{stem}.png"
            with self._stage(job, "exporting png"):
                if not export_png(svg_path, png_path, dpi=self.sheet.dpi):
                    raise ExportError(f"could not export {png_path}")
            files.png = png_path

        self.status.emit(job, status.Completed())
        return files

    def _fetch_basemap(self, cell: Cell, structure: Structure) -> Basemap:
        ground = self.sheet.ground_pixel
        width = structure.page_width / ground
        height = structure.page_height / ground
        zoom = cell.zoom_for_scale_dpi(self.sheet.scale, self.sheet.dpi)
        min_lng, min_lat, max_lng, max_lat = cell.hull()
        return self.basemap.generate(
            (min_lat + max_lat) / 2,
            (min_lng + max_lng) / 2,
            zoom,
            int(round(width)),
            int(round(height)),
            self.sheet.style,
        )

    def render(
        self,
        cell: Cell,
        structure: Optional[Structure] = None,
        image: Optional[Basemap] = None,
        filename: str = "noname.svg"
    ) -> svgwrite.Drawing:
        """Compose the sheet SVG for a cell without writing it."""
        sheet = self.sheet
        if structure is None:
            structure = structure_for_cell(cell, grid=sheet.grid)
        context = template_context(cell, sheet)

        canvas_w = sheet.width_in_points()
        canvas_h = sheet.height_in_points()
        ground = sheet.ground_pixel
        frame_w = structure.page_width / ground
        frame_h = structure.page_height / ground
        pixel_box = PixelBox.from_page(
            (canvas_w - frame_w) / 2,
            (canvas_h - frame_h) / 2,
            structure.page_width,
            structure.page_height,
            ground,
        )
        page_bounds = Bounds.page(structure.page_width, structure.page_height)

        dwg = svgwrite.Drawing(
            filename,
            size=(f"{sheet.width_mm}mm", f"{sheet.height_mm}mm"),
            viewBox=f"0 0 {canvas_w} {canvas_h}",
        )
        clip_path = dwg.defs.add(dwg.clipPath(id="frame-clip"))
        frame = pixel_box.bounds
        clip_path.add(dwg.rect((frame.min_x, frame.min_y), (frame.width, frame.height)))
        dwg.add(dwg.rect((0, 0), (canvas_w, canvas_h), fill="white", id="page"))

        layers = LayerManager(dwg)
        layer_basemap = layers.register_layer("Basemap", LayerZOrder.BASEMAP)
        layer_grating = layers.register_layer("Grating", LayerZOrder.GRATING, visible=sheet.draw_grating)
        layer_grating_labels = layers.register_layer(
            "Grating_Labels", LayerZOrder.GRATING_LABELS, visible=sheet.draw_grating
        )
        layer_bars = layers.register_layer("Trellis_Bars", LayerZOrder.TRELLIS_BARS)
        layer_inner = layers.register_layer("Trellis_Inner_Labels", LayerZOrder.TRELLIS_INNER_LABELS)
        layer_frame = layers.register_layer("Frame", LayerZOrder.FRAME, in_frame=False)
        layer_labels = layers.register_layer("Trellis_Labels", LayerZOrder.TRELLIS_LABELS, in_frame=False)
        layer_corners = layers.register_layer("Corner_Labels", LayerZOrder.CORNER_LABELS, in_frame=False)
        layer_margin = layers.register_layer("Marginalia", LayerZOrder.MARGINALIA, in_frame=False)

        if image is not None:
            basemap_image = dwg.image(
                href=image.data_uri(),
                insert=pixel_box.starting,
                size=(pixel_box.width, pixel_box.height),
            )
            basemap_image["preserveAspectRatio"] = "none"
            layer_basemap.add(basemap_image)

        if sheet.draw_grating:
            grate = new_grating(
                0, 0, structure.page_width, structure.page_height,
                sheet.grating_rows, sheet.grating_cols,
            )
            render_grating(grate, layer_grating, layer_grating_labels, dwg, pixel_box)

        render_bars(structure.iter_northing_bars(), layer_bars, dwg, pixel_box, clip_bounds=page_bounds)
        render_bars(structure.iter_easting_bars(), layer_bars, dwg, pixel_box, clip_bounds=page_bounds)
        render_trellis_labels(
            structure, layer_labels, layer_inner, dwg, pixel_box,
            label_rows=sheet.label_rows, label_cols=sheet.label_cols,
        )
        render_frame(layer_frame, dwg, pixel_box)
        self._render_corners(dwg, layer_corners, pixel_box, context)
        self._render_marginalia(dwg, layer_margin, pixel_box, context)

        layers.assemble(clip_path="url(#frame-clip)")
        return dwg

    def _render_corners(self, dwg, layer, pixel_box: PixelBox, context: Dict[str, Any]):
        # SVG y grows downwards, so min_y is the top of the frame
        outer = pixel_box.bounds.expand(3 * pixel_box.top_buffer)
        corners = [
            (outer.min_x, outer.min_y, "start", f"{context['ne_lat_dms']} {context['sw_lng_dms']}"),
            (outer.max_x, outer.min_y, "end", f"{context['ne_lat_dms']} {context['ne_lng_dms']}"),
            (outer.min_x, outer.max_y + 12, "start", f"{context['sw_lat_dms']} {context['sw_lng_dms']}"),
            (outer.max_x, outer.max_y + 12, "end", f"{context['sw_lat_dms']} {context['ne_lng_dms']}"),
        ]
        for x, y, anchor, text in corners:
            layer.add(dwg.text(text, insert=(x, y), text_anchor=anchor, font_size=10,
                               font_family="sans-serif", fill="black"))

    def _render_marginalia(self, dwg, layer, pixel_box: PixelBox, context: Dict[str, Any]):
        left, top = pixel_box.starting
        _, bottom = pixel_box.ending
        title = " ".join(v for v in (context["series"], context["sheet_number"] or context["reference_number"]) if v)
        layer.add(dwg.text(title, insert=(left, top - 8 * pixel_box.top_buffer), font_size=28,
                           font_family="sans-serif", font_weight="bold", fill="black"))

        lines = [
            f"Scale 1:{int(round(context['scale']))}",
            f"UTM zone {context['zone']}{context['hemi']}  grid {context['grid_spacing']} m  {context['mgrs']}",
            f"MDGID {context['mdgid']}",
        ]
        if context["country"] or context["city"]:
            lines.append(", ".join(v for v in (context["city"], context["country"]) if v))
        if context["edited_by"] or context["edited_at"]:
            lines.append(f"Edited {context['edited_at']} {context['edited_by']}".strip())
        y = bottom + 8 * pixel_box.bottom_buffer
        for line in lines:
            layer.add(dwg.text(line, insert=(left, y), font_size=14, font_family="sans-serif", fill="black"))
            y += 18
