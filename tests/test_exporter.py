"""Tests for writing channel files and ZIP archives.

Run: pytest tests/test_exporter.py -v
"""
import io
import zipfile

import pytest

from conftest import solid
from separation.buffers import PillowCodec
from separation.config import ProcessingConfig, SeparationMode, SpotColorTarget
from separation.exporter import (
    channel_report,
    create_zip,
    export_all_channels,
    safe_filename,
)
from separation.processor import process_image


@pytest.fixture
def results():
    return process_image(solid(6, 4, (0, 128, 255, 255)), ProcessingConfig(include_white_base=True))


class TestExport:
    def test_filenames(self, results):
        assert [safe_filename(r) for r in results] == [
            "White Underbase_channel.png",
            "Cyan_channel.png",
            "Magenta_channel.png",
            "Yellow_channel.png",
            "Key (Black)_channel.png",
        ]

    def test_unsafe_names_sanitized(self):
        spots = [SpotColorTarget("1", "Red/Orange: 50%", "#ff4400", 50)]
        config = ProcessingConfig(mode=SeparationMode.SPOT, spot_colors=spots)
        (result,) = process_image(solid(2, 2, (255, 68, 0, 255)), config)
        assert safe_filename(result) == "Red_Orange_ 50%_channel.png"

    def test_export_all_channels(self, results, tmp_path):
        paths = export_all_channels(results, tmp_path / "out")
        assert len(paths) == len(results)
        codec = PillowCodec()
        for path, r in zip(paths, results):
            assert path.exists()
            assert codec.decode(path.read_bytes()) == r.raster

    def test_create_zip(self, results):
        data = create_zip(results)
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = zf.namelist()
            assert names == [safe_filename(r) for r in results]
            assert zf.read("Cyan_channel.png") == results[1].png

    def test_channel_report(self, results):
        report = channel_report(results)
        assert report[0]["name"] == "White Underbase"
        assert report[1]["width"] == 6 and report[1]["height"] == 4
        assert report[1]["coverage_pct"] == pytest.approx(100.0)
        assert all(row["png_bytes"] > 0 for row in report)
