#!/usr/bin/env python3
"""
Atlas map sheet generator.

Looks up a grid cell by MDGID or by point and renders its map sheet
(basemap, UTM trellis, grating and marginalia) to SVG, optionally PDF.

Usage:
    python atlas_map.py --sheet 50k --mdgid V795X16
    python atlas_map.py --sheet 5k --lat 57.1 --lng 5.2 --pdf
    python atlas_map.py --list
"""

from dataclasses import replace
from pathlib import Path

from basemap import BasemapError, TileBasemapGenerator
from export import ExportError
from geodesy import ProjectionError
from grid_cells import GridError, new_mdgid, WGS84_SRID
from grid_registry import default_registry
from sheet import DEFAULT_CONFIG_PATH, SheetError, SheetRenderer, load_config
from status import PrintStatusSink


def main(argv=None) -> int:
    """Command-line interface for sheet generation."""
    import argparse

    parser = argparse.ArgumentParser(description='Generate atlas map sheets for grid cells')
    parser.add_argument('--config', type=Path, default=DEFAULT_CONFIG_PATH,
                        help='Path to the JSON config (default: map_config.json)')
    parser.add_argument('--sheet', help='Sheet name from the config')
    parser.add_argument('--mdgid', help='Grid cell ID, e.g. V795X16 or V795X16:23')
    parser.add_argument('--lat', type=float, help='Latitude of a point in the cell')
    parser.add_argument('--lng', type=float, help='Longitude of a point in the cell')
    parser.add_argument('--srid', type=int, default=WGS84_SRID,
                        help='SRID of --lat/--lng (default: 4326)')
    parser.add_argument('--output', type=Path, help='Override the sheet output directory')
    parser.add_argument('--no-basemap', action='store_true', help='Skip the basemap raster')
    parser.add_argument('--pdf', action='store_true', help='Also export a PDF')
    parser.add_argument('--png', action='store_true', help='Also export a PNG at the sheet dpi')
    parser.add_argument('--list', action='store_true', help='List configured sheets and providers')

    args = parser.parse_args(argv)
    if not args.list:
        if not args.sheet:
            parser.error("--sheet is required")
        if args.mdgid is None and (args.lat is None or args.lng is None):
            parser.error("give --mdgid or both --lat and --lng")

    registry = default_registry()
    try:
        config = load_config(args.config)
        if config is None:
            print(f"No config found at {args.config}")
            return 1

        if args.list:
            print("Sheets:")
            for name, sheet in sorted(config.sheets.items()):
                print(f"  {name}: 1:{sheet.scale} @ {sheet.dpi}dpi, provider {sheet.provider}")
            print("Providers:")
            for provider in config.providers:
                print(f"  {provider.get('name')}: {provider.get('type')}")
            return 0

        sheet = config.sheet(args.sheet)
        if args.output is not None:
            sheet = replace(sheet, output_dir=str(args.output))

        print("=" * 60)
        print(f"Atlas Map Sheet: {sheet.name}")
        print("=" * 60)
        print(f"Scale: 1:{sheet.scale} @ {sheet.dpi}dpi")
        print(f"Page: {sheet.width_mm} x {sheet.height_mm} mm")
        print(f"Grid: {sheet.grid_spacing}m")

        print("\nLoading providers...")
        registry.load_providers(config.providers)
        provider = registry.named(sheet.provider)

        basemap = None
        if sheet.basemap and not args.no_basemap:
            basemap = TileBasemapGenerator(config.tile_url)

        renderer = SheetRenderer(sheet, provider, basemap=basemap, status_sink=PrintStatusSink(),
                                 pdf=args.pdf, png=args.png)
        if args.mdgid is not None:
            files = renderer.generate_for_mdgid(new_mdgid(args.mdgid))
        else:
            files = renderer.generate_for_lat_lng(args.lat, args.lng, args.srid)
    except (GridError, SheetError, ProjectionError, BasemapError, ExportError) as e:
        print(f"\nERROR: {e}")
        return 1
    finally:
        registry.cleanup()

    print("\n" + "=" * 60)
    print("Done!")
    print(f"  SVG: {files.svg}")
    if files.pdf is not None:
        print(f"  PDF: {files.pdf}")
    if files.png is not None:
        print(f"  PNG: {files.png}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
