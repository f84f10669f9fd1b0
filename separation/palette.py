"""Dominant color extraction for spot color suggestions.

Runs on the original decoded image, not the processed one. The image is
shrunk to a small square first so the cost does not depend on its size.
"""

import logging

import numpy as np
from PIL import Image

from .buffers import PixelBuffer
from .color import color_distance, quantize, rgb_to_hex

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 100
QUANT_STEP = 24
MIN_ALPHA = 128
MIN_DISTANCE = 60.0  # about 13% of the largest RGB distance


def _color_histogram(pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Quantized colors ordered by frequency, most frequent first.

    Ties keep the order in which the colors were first seen.
    """
    opaque = pixels[pixels[..., 3] >= MIN_ALPHA]
    if opaque.size == 0:
        return np.empty((0, 3), dtype=np.uint8), np.empty(0, dtype=np.int64)

    q = quantize(opaque[:, :3], QUANT_STEP).astype(np.uint32)
    keys = (q[:, 0] << 16) | (q[:, 1] << 8) | q[:, 2]
    uniq, first_seen, counts = np.unique(keys, return_index=True, return_counts=True)

    order = np.lexsort((first_seen, -counts))
    uniq = uniq[order]
    colors = np.stack(
        [(uniq >> 16) & 0xFF, (uniq >> 8) & 0xFF, uniq & 0xFF], axis=-1
    ).astype(np.uint8)
    return colors, counts[order]


def extract_dominant_colors(
    image: PixelBuffer, count: int = 4
) -> list[tuple[int, int, int]]:
    """Return up to ``count`` visually distinct colors, most common first."""
    if count <= 0 or image.width == 0 or image.height == 0:
        return []

    small = image.to_image().resize(
        (SAMPLE_SIZE, SAMPLE_SIZE), Image.Resampling.BILINEAR
    )
    colors, _ = _color_histogram(np.array(small.convert("RGBA")))

    selected: list[tuple[int, int, int]] = []
    for color in colors:
        candidate = (int(color[0]), int(color[1]), int(color[2]))
        if all(color_distance(candidate, c) >= MIN_DISTANCE for c in selected):
            selected.append(candidate)
            if len(selected) >= count:
                break

    logger.debug(
        f"Palette: {len(colors)} quantized colors, selected "
        f"{[rgb_to_hex(*c) for c in selected]}"
    )
    return selected


def extract_dominant_hex(image: PixelBuffer, count: int = 4) -> list[str]:
    """Same as extract_dominant_colors, as ``#rrggbb`` strings."""
    return [rgb_to_hex(*c) for c in extract_dominant_colors(image, count)]
