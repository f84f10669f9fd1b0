"""Stage 5: Write channel PNGs to disk or bundle them into a ZIP archive."""

import io
import logging
import re
import zipfile
from pathlib import Path

from .processor import ChannelResult

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[\\/:*?\"<>|]+")


def safe_filename(result: ChannelResult) -> str:
    """Channel file name with path separators and shell-hostile chars removed."""
    return _UNSAFE.sub("_", result.filename)


def export_channel(result: ChannelResult, output_dir: Path) -> Path:
    """Write a single channel PNG."""
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / safe_filename(result)
    filepath.write_bytes(result.png)
    return filepath


def export_all_channels(results: list[ChannelResult], output_dir: Path) -> list[Path]:
    """Write every channel PNG into ``output_dir``."""
    paths = [export_channel(r, output_dir) for r in results]
    logger.info(f"Wrote {len(paths)} channel files to {output_dir}")
    return paths


def create_zip(results: list[ChannelResult]) -> bytes:
    """Create a ZIP archive containing all channel PNGs."""
    buf = io.BytesIO()
    # PNG data is already compressed
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_STORED) as zf:
        for r in results:
            zf.writestr(safe_filename(r), r.png)
    return buf.getvalue()


def channel_report(results: list[ChannelResult]) -> list[dict]:
    """Summarize the produced channels for display."""
    return [
        {
            "name": r.name,
            "color": r.color_hex,
            "file": safe_filename(r),
            "width": r.raster.width,
            "height": r.raster.height,
            "coverage_pct": round(r.coverage, 2),
            "png_bytes": len(r.png),
        }
        for r in results
    ]
