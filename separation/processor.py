"""Pipeline orchestration: decoded image + config -> channel results.

The image is adjusted and composited once; the resulting buffer feeds the
selected separator(s), and every density buffer is encoded as a black
film-positive PNG. An invocation either returns every channel or raises.

Per-pixel stages can run over contiguous row bands in a thread pool
(``ProcessingConfig.max_workers``). Values that depend on the whole image
(the AUTO background sample and the underbase transparency check) are
computed before the bands are split, so the output does not depend on the
number of workers.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .adjustments import adjust_rgb, is_identity
from .background_remover import composite_alpha, resolve_background_target, stencil_regions
from .buffers import PillowCodec, PixelBuffer, RasterCodec
from .channel_separator import (
    CMYK_CHANNELS,
    WHITE_BASE_CHANNEL,
    ChannelSpec,
    cmyk_densities,
    has_transparency,
    spot_density,
    white_base_density,
)
from .config import ProcessingConfig, SeparationMode
from .encoder import coverage, encode_channel
from .errors import InvalidParameter, ResourceUnavailable, SeparationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelResult:
    """One printable ink separation."""

    name: str
    color_hex: str  # UI swatch only
    raster: PixelBuffer
    png: bytes
    coverage: float  # mean ink, percent

    @property
    def filename(self) -> str:
        return f"{self.name}_channel.png"


@contextmanager
def _stage(name: str):
    """Tag failures with the stage they happened in."""
    logger.debug(f"Stage {name}")
    try:
        yield
    except SeparationError as exc:
        # Low-level helpers tag "color"; report the pipeline stage instead
        if exc.stage in (None, "color"):
            exc.stage = name
        logger.error(f"Stage {name} failed: {exc}")
        raise
    except ValueError as exc:
        logger.error(f"Stage {name} got a bad value: {exc}")
        raise InvalidParameter(str(exc), stage=name) from exc
    except MemoryError as exc:
        logger.error(f"Stage {name} ran out of memory")
        raise ResourceUnavailable(f"out of memory during {name}", stage=name) from exc


def row_bands(height: int, workers: int) -> list[slice]:
    """Split ``height`` rows into at most ``workers`` contiguous bands."""
    n = max(1, min(workers, height))
    edges = np.linspace(0, height, n + 1).astype(int)
    return [slice(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:])]


def _map_bands(fn: Callable[[slice], object], height: int, workers: int) -> list:
    bands = row_bands(height, workers)
    if len(bands) == 1:
        return [fn(bands[0])]
    with ThreadPoolExecutor(max_workers=len(bands)) as executor:
        return list(executor.map(fn, bands))


def _concat(parts: list[np.ndarray]) -> np.ndarray:
    return parts[0] if len(parts) == 1 else np.concatenate(parts, axis=0)


def prepare_image(
    image: PixelBuffer,
    config: ProcessingConfig,
    mask: PixelBuffer | None = None,
) -> PixelBuffer:
    """Adjust and composite ``image``; the buffer all separators read."""
    settings = config.adjustments
    workers = config.max_workers
    h = image.height

    with _stage("adjust"):
        out = np.array(image.pixels, copy=True)
        if not is_identity(settings):
            out[..., :3] = _concat(
                _map_bands(lambda s: adjust_rgb(image.rgb[s], settings), h, workers)
            )
        adjusted = PixelBuffer(out)

    with _stage("composite"):
        regions = stencil_regions(mask, adjusted, config.mask_policy)
        target = resolve_background_target(adjusted, settings)

        def band_alpha(s: slice) -> np.ndarray:
            band_regions = None
            if regions is not None:
                band_regions = (regions[0][s], regions[1][s])
            return composite_alpha(
                adjusted.rgb[s], adjusted.alpha[s], settings, target, band_regions
            )

        out = np.array(adjusted.pixels, copy=True)
        out[..., 3] = _concat(_map_bands(band_alpha, h, workers))
        return PixelBuffer(out)


def _separate(
    processed: PixelBuffer, config: ProcessingConfig
) -> list[tuple[ChannelSpec, np.ndarray]]:
    pixels = processed.pixels
    h = processed.height
    workers = config.max_workers
    channels: list[tuple[ChannelSpec, np.ndarray]] = []

    if config.include_white_base:
        with _stage("white_base"):
            # Document-level decision, made before splitting into bands
            transparent = has_transparency(pixels)
            density = _concat(
                _map_bands(lambda s: white_base_density(pixels[s], transparent), h, workers)
            )
            channels.append((WHITE_BASE_CHANNEL, density))

    if SeparationMode(config.mode) is SeparationMode.CMYK:
        with _stage("cmyk"):
            parts = _map_bands(lambda s: cmyk_densities(pixels[s]), h, workers)
            for i, spec in enumerate(CMYK_CHANNELS):
                channels.append((spec, _concat([p[i] for p in parts])))
    else:
        with _stage("spot"):
            for target in config.spot_colors:
                density = _concat(
                    _map_bands(lambda s, t=target: spot_density(pixels[s], t), h, workers)
                )
                channels.append((ChannelSpec(target.name, target.color), density))

    return channels


def process_image(
    image: PixelBuffer,
    config: ProcessingConfig,
    mask: PixelBuffer | None = None,
    codec: RasterCodec | None = None,
) -> list[ChannelResult]:
    """Separate a decoded image into ink channels.

    CMYK mode yields Cyan, Magenta, Yellow, Key (Black); SPOT mode yields one
    channel per configured spot in configuration order. The white underbase,
    when requested, comes first.
    """
    codec = codec or PillowCodec()
    with _stage("config"):
        if config.strict:
            config.validate()
        mode = SeparationMode(config.mode)

    logger.debug(
        f"Processing {image.width}x{image.height} image, mode={mode.value}, "
        f"white_base={config.include_white_base}, workers={config.max_workers}"
    )
    processed = prepare_image(image, config, mask)
    channels = _separate(processed, config)

    results = []
    with _stage("encode"):
        for spec, density in channels:
            raster = encode_channel(density, processed.width, processed.height)
            results.append(
                ChannelResult(
                    name=spec.name,
                    color_hex=spec.color_hex,
                    raster=raster,
                    png=codec.encode(raster),
                    coverage=coverage(density),
                )
            )

    logger.info(
        f"Separated {image.width}x{image.height} image into {len(results)} channels: "
        f"{', '.join(r.name for r in results)}"
    )
    return results


def process_bytes(
    data: bytes,
    config: ProcessingConfig,
    mask_data: bytes | None = None,
    codec: RasterCodec | None = None,
) -> list[ChannelResult]:
    """Decode ``data`` (and an optional stencil image) and process it."""
    codec = codec or PillowCodec()
    with _stage("decode"):
        image = codec.decode(data)
        mask = codec.decode(mask_data) if mask_data is not None else None
    return process_image(image, config, mask, codec)
