"""Tests for the end-to-end separation pipeline.

Verifies:
    - Channel order for CMYK, SPOT and white underbase
    - Output rasters are black film positives, PNG encoded
    - Row-band threading gives the same output as the sequential path
    - Errors carry the failing stage and no partial results are returned

Run: pytest tests/test_processor.py -v
"""
import io
import logging

import numpy as np
import pytest
from PIL import Image

from conftest import solid
from separation.background_remover import apply_attributes
from separation.buffers import PillowCodec, PixelBuffer
from separation.config import (
    AdjustmentSettings,
    BgRemoveMode,
    MaskPolicy,
    ProcessingConfig,
    SeparationMode,
    SpotColorTarget,
)
from separation.errors import DecodeError, DimensionMismatch, InvalidParameter
from separation.processor import prepare_image, process_bytes, process_image, row_bands


def _png(buffer: PixelBuffer) -> bytes:
    buf = io.BytesIO()
    buffer.to_image().save(buf, format="PNG")
    return buf.getvalue()


class TestChannelOrder:
    def test_cmyk_order(self):
        results = process_image(solid(4, 4, (255, 0, 0, 255)), ProcessingConfig())
        assert [r.name for r in results] == ["Cyan", "Magenta", "Yellow", "Key (Black)"]
        assert [r.color_hex for r in results] == ["#00FFFF", "#FF00FF", "#FFFF00", "#000000"]

    def test_white_base_prepended(self):
        config = ProcessingConfig(include_white_base=True)
        results = process_image(solid(4, 4, (255, 0, 0, 255)), config)
        assert len(results) == 5
        assert results[0].name == "White Underbase"
        assert results[0].color_hex == "#e2e8f0"
        assert results[1].name == "Cyan"

    def test_spot_order_follows_config(self):
        spots = [
            SpotColorTarget("a", "Gold", "#ffcc00", 40),
            SpotColorTarget("b", "Navy", "#000080", 60),
        ]
        config = ProcessingConfig(mode=SeparationMode.SPOT, spot_colors=spots)
        results = process_image(solid(3, 3, (255, 204, 0, 255)), config)
        assert [r.name for r in results] == ["Gold", "Navy"]
        assert [r.color_hex for r in results] == ["#ffcc00", "#000080"]
        assert np.all(results[0].raster.alpha == 255)

    def test_spot_mode_without_targets(self):
        config = ProcessingConfig(mode="SPOT", spot_colors=[], include_white_base=True)
        results = process_image(solid(3, 3, (0, 0, 0, 255)), config)
        assert [r.name for r in results] == ["White Underbase"]


class TestOutputs:
    def test_red_image_rasters(self):
        results = process_image(solid(4, 3, (255, 0, 0, 255)), ProcessingConfig())
        cyan, magenta, yellow, key = results
        for r in results:
            assert r.raster.size == (4, 3)
            assert np.all(r.raster.rgb == 0)
        assert np.all(magenta.raster.alpha == 255)
        assert np.all(yellow.raster.alpha == 255)
        assert np.all(cyan.raster.alpha == 0)
        assert np.all(key.raster.alpha == 0)
        assert magenta.coverage == pytest.approx(100.0)

    def test_png_matches_raster(self, random_image):
        results = process_image(random_image, ProcessingConfig(include_white_base=True))
        codec = PillowCodec()
        for r in results:
            assert codec.decode(r.png) == r.raster
            assert r.filename == f"{r.name}_channel.png"

    def test_background_removal_clears_ink(self):
        pixels = np.full((2, 2, 4), 255, dtype=np.uint8)
        pixels[1, 1] = (0, 0, 0, 255)
        settings = AdjustmentSettings(remove_bg=True, bg_remove_mode=BgRemoveMode.WHITE)
        results = process_image(
            PixelBuffer(pixels),
            ProcessingConfig(include_white_base=True, adjustments=settings),
        )
        white, *_, key = results
        # White background removed -> transparency -> underbase follows alpha
        np.testing.assert_array_equal(white.raster.alpha, [[0, 0], [0, 255]])
        np.testing.assert_array_equal(key.raster.alpha, [[0, 0], [0, 255]])

    def test_identity_prepare_is_unchanged(self, random_image):
        assert prepare_image(random_image, ProcessingConfig()) == random_image

    def test_prepare_matches_apply_attributes(self, random_image, random_mask):
        settings = AdjustmentSettings(
            brightness=15, contrast=-20, gamma=1.3,
            remove_bg=True, bg_remove_mode=BgRemoveMode.AUTO, bg_threshold=30,
        )
        config = ProcessingConfig(adjustments=settings)
        assert prepare_image(random_image, config, random_mask) == apply_attributes(
            random_image, settings, random_mask
        )


class TestRowBands:
    @pytest.mark.parametrize("height,workers", [(0, 4), (1, 4), (10, 3), (37, 4), (5, 1)])
    def test_bands_cover_all_rows(self, height, workers):
        bands = row_bands(height, workers)
        rows = [r for s in bands for r in range(s.start, s.stop)]
        assert rows == list(range(height))
        assert len(bands) <= max(1, workers)

    @pytest.mark.parametrize("mode", [SeparationMode.CMYK, SeparationMode.SPOT])
    def test_threaded_matches_sequential(self, random_image, random_mask, mode):
        settings = AdjustmentSettings(
            brightness=-10, contrast=25, gamma=0.8,
            remove_bg=True, bg_remove_mode=BgRemoveMode.AUTO, bg_threshold=25,
        )
        base = dict(mode=mode, include_white_base=True, adjustments=settings)
        sequential = process_image(random_image, ProcessingConfig(**base), random_mask)
        threaded = process_image(
            random_image, ProcessingConfig(max_workers=4, **base), random_mask
        )
        assert [r.name for r in sequential] == [r.name for r in threaded]
        for a, b in zip(sequential, threaded):
            assert a.raster == b.raster


class TestMasksAndErrors:
    def test_mismatched_mask_same_as_no_mask(self, random_image):
        config = ProcessingConfig(include_white_base=True)
        wrong = solid(3, 3, (255, 0, 0, 255))
        with_mask = process_image(random_image, config, wrong)
        without = process_image(random_image, config)
        for a, b in zip(with_mask, without):
            assert a.raster == b.raster

    def test_mismatched_mask_raise_policy(self, random_image):
        config = ProcessingConfig(mask_policy=MaskPolicy.RAISE)
        with pytest.raises(DimensionMismatch) as exc:
            process_image(random_image, config, solid(3, 3, (255, 0, 0, 255)))
        assert exc.value.stage == "composite"

    def test_strict_rejects_out_of_range(self):
        config = ProcessingConfig(adjustments=AdjustmentSettings(brightness=500), strict=True)
        with pytest.raises(InvalidParameter) as exc:
            process_image(solid(2, 2, (0, 0, 0, 255)), config)
        assert exc.value.stage == "config"

    def test_lenient_clamps_out_of_range(self):
        config = ProcessingConfig(adjustments=AdjustmentSettings(brightness=500))
        results = process_image(solid(2, 2, (0, 0, 0, 255)), config)
        # Everything pushed to white -> no ink at all
        assert all(np.all(r.raster.alpha == 0) for r in results)

    def test_process_bytes(self):
        image = solid(5, 4, (0, 0, 0, 255))
        mask = solid(5, 4, (255, 0, 0, 255))
        results = process_bytes(_png(image), ProcessingConfig(), _png(mask))
        assert len(results) == 4
        # Stencil erased everything
        assert all(np.all(r.raster.alpha == 0) for r in results)

    def test_undecodable_input(self):
        with pytest.raises(DecodeError) as exc:
            process_bytes(b"\x00\x01garbage", ProcessingConfig())
        assert exc.value.stage == "decode"

    def test_grayscale_input_is_accepted(self):
        buf = io.BytesIO()
        Image.new("L", (3, 3), 0).save(buf, format="PNG")
        results = process_bytes(buf.getvalue(), ProcessingConfig())
        assert np.all(results[3].raster.alpha == 255)

    def test_unknown_background_mode_reports_composite(self):
        settings = AdjustmentSettings(remove_bg=True, bg_remove_mode="Auto")
        with pytest.raises(InvalidParameter) as exc:
            process_image(solid(2, 2, (0, 0, 0, 255)), ProcessingConfig(adjustments=settings))
        assert exc.value.stage == "composite"

    def test_bad_spot_color_reports_spot(self):
        spots = [SpotColorTarget("1", "Broken", "zzz", 50)]
        config = ProcessingConfig(mode=SeparationMode.SPOT, spot_colors=spots)
        with pytest.raises(InvalidParameter) as exc:
            process_image(solid(2, 2, (0, 0, 0, 255)), config)
        assert exc.value.stage == "spot"

    def test_bad_spot_color_threaded_reports_spot(self):
        spots = [SpotColorTarget("1", "Broken", "#12", 50)]
        config = ProcessingConfig(mode=SeparationMode.SPOT, spot_colors=spots, max_workers=3)
        with pytest.raises(InvalidParameter) as exc:
            process_image(solid(4, 6, (0, 0, 0, 255)), config)
        assert exc.value.stage == "spot"

    def test_unknown_mode_reports_config(self):
        with pytest.raises(InvalidParameter) as exc:
            process_image(solid(2, 2, (0, 0, 0, 255)), ProcessingConfig(mode="RGB"))
        assert exc.value.stage == "config"

    def test_stages_logged_at_debug(self, caplog):
        config = ProcessingConfig(include_white_base=True)
        with caplog.at_level(logging.DEBUG, logger="separation.processor"):
            process_image(solid(2, 2, (0, 0, 0, 255)), config)
        messages = [r.getMessage() for r in caplog.records]
        for name in ("config", "adjust", "composite", "white_base", "cmyk", "encode"):
            assert f"Stage {name}" in messages
