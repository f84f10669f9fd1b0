"""Stage 3: Ink separation into per-channel density buffers.

Each separator reads the processed (adjusted + composited) RGBA buffer and
returns uint8 density arrays of shape (H, W): 0 = no ink, 255 = full ink.
Pixels with alpha 0 never receive ink.

Three separators:
- CMYK: naive subtractive decomposition with a black (K) generator.
- Spot colors: per-ink similarity to a target color, sharpened with a cube.
- White underbase: coverage from transparency, or from darkness for fully
  opaque artwork.
"""

from dataclasses import dataclass

import numpy as np

from .buffers import PixelBuffer
from .color import MAX_RGB_DISTANCE, luma, to_uint8
from .config import SpotColorTarget

# Any alpha below this marks the document as having transparency
OPAQUE_ALPHA = 250


@dataclass(frozen=True)
class ChannelSpec:
    """Name and UI swatch for a produced channel."""

    name: str
    color_hex: str


CMYK_CHANNELS: tuple[ChannelSpec, ...] = (
    ChannelSpec("Cyan", "#00FFFF"),
    ChannelSpec("Magenta", "#FF00FF"),
    ChannelSpec("Yellow", "#FFFF00"),
    ChannelSpec("Key (Black)", "#000000"),
)

WHITE_BASE_CHANNEL = ChannelSpec("White Underbase", "#e2e8f0")


def _normalized_alpha(pixels: np.ndarray) -> np.ndarray:
    return pixels[..., 3].astype(np.float64) / 255.0


def cmyk_densities(pixels: np.ndarray) -> list[np.ndarray]:
    """CMYK densities for an (..., 4) uint8 block, in C, M, Y, K order."""
    alpha = _normalized_alpha(pixels)
    rgb = pixels[..., :3].astype(np.float64) / 255.0
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]

    k = 1.0 - rgb.max(axis=-1)
    denom = 1.0 - k
    solid_black = denom == 0
    safe = np.where(solid_black, 1.0, denom)

    channels = []
    for value in (r, g, b):
        # Pure black has no chroma; C = M = Y = 0 instead of 0/0
        chroma = np.where(solid_black, 0.0, (1.0 - value - k) / safe)
        channels.append(chroma)
    channels.append(k)

    visible = alpha > 0
    return [to_uint8(np.where(visible, ch * 255.0 * alpha, 0.0)) for ch in channels]


def separate_cmyk(buffer: PixelBuffer) -> list[np.ndarray]:
    """Split into Cyan, Magenta, Yellow and Key density buffers."""
    return cmyk_densities(buffer.pixels)


def spot_density(pixels: np.ndarray, target: SpotColorTarget) -> np.ndarray:
    """Density of one spot ink for an (..., 4) uint8 block."""
    alpha = _normalized_alpha(pixels)
    diff = pixels[..., :3].astype(np.float64) - np.array(target.rgb, dtype=np.float64)
    dist = np.sqrt(np.sum(diff * diff, axis=-1))

    # Higher threshold narrows the match radius (442 / sensitivity)
    sensitivity = 1.0 + target.threshold / 20.0
    similarity = np.maximum(0.0, 1.0 - dist / (MAX_RGB_DISTANCE / sensitivity))
    # Cube to suppress near misses
    similarity = similarity ** 3

    return to_uint8(np.where(alpha > 0, similarity * 255.0 * alpha, 0.0))


def separate_spot_colors(
    buffer: PixelBuffer, targets: list[SpotColorTarget]
) -> list[np.ndarray]:
    """One independent density buffer per target, in target order."""
    return [spot_density(buffer.pixels, target) for target in targets]


def has_transparency(pixels: np.ndarray) -> bool:
    """Whether any pixel is less than (almost) fully opaque."""
    return bool(np.any(pixels[..., 3] < OPAQUE_ALPHA))


def white_base_density(pixels: np.ndarray, transparent: bool) -> np.ndarray:
    """Underbase density for a block, given the document-level decision."""
    if transparent:
        return np.array(pixels[..., 3], dtype=np.uint8, copy=True)
    return to_uint8(255.0 - luma(pixels[..., :3]))


def separate_white_base(buffer: PixelBuffer) -> np.ndarray:
    """White underbase density.

    With any transparency present, existing alpha is the coverage signal.
    For fully opaque artwork darker colors get more underbase.
    """
    return white_base_density(buffer.pixels, has_transparency(buffer.pixels))
