"""
SVG to PDF/PNG export.

Uses rsvg-convert when it is on the PATH and falls back to cairosvg.
The sheet SVG carries its physical size in millimeters, so the PDF comes
out at the paper size without extra arguments.
"""

import subprocess
from pathlib import Path
from typing import List, Optional


class ExportError(RuntimeError):
    """Raised when no converter could produce the output."""


def _rsvg_command(svg_path: Path, output_path: Path, fmt: str, dpi: Optional[int]) -> List[str]:
    cmd = ['rsvg-convert', '-f', fmt]
    if dpi is not None:
        cmd += ['-d', str(dpi), '-p', str(dpi)]
    return cmd + ['-o', str(output_path), str(svg_path)]


def _convert(svg_path: Path, output_path: Path, fmt: str, dpi: Optional[int] = None) -> bool:
    """Convert svg_path to fmt ("pdf" or "png"), reporting the outcome."""
    label = fmt.upper()
    try:
        subprocess.run(_rsvg_command(svg_path, output_path, fmt, dpi), check=True, capture_output=True)
        print(f"  Saved {label}: {output_path}")
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        pass

    # cairosvg is the optional "pdf" extra
    try:
        import cairosvg
    except ImportError:
        print(f"  Warning: Could not export {label} (install rsvg-convert or cairosvg)")
        return False

    options = {} if dpi is None else {'dpi': dpi}
    convert = getattr(cairosvg, f"svg2{fmt}")
    try:
        convert(url=str(svg_path), write_to=str(output_path), **options)
    except (OSError, ValueError) as e:
        print(f"  Warning: {label} export failed: {e}")
        return False
    print(f"  Saved {label}: {output_path}")
    return True


def export_pdf(svg_path: Path, output_path: Path) -> bool:
    """
    Export SVG to PDF at the SVG's physical page size.

    Returns:
        True if successful, False otherwise
    """
    return _convert(svg_path, output_path, 'pdf')


def export_png(svg_path: Path, output_path: Path, dpi: int = 150) -> bool:
    """
    Export SVG to PNG.

    Args:
        svg_path: Input SVG path
        output_path: Output PNG path
        dpi: Resolution in DPI, normally the sheet's dpi

    Returns:
        True if successful, False otherwise
    """
    return _convert(svg_path, output_path, 'png', dpi=dpi)
