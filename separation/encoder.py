"""Stage 4: Density buffer -> film-positive raster.

Every output pixel is black; ink coverage is carried only by alpha. The
channel's display color is metadata and never reaches the pixels.
"""

import numpy as np

from .buffers import PixelBuffer, check_density


def encode_channel(density: np.ndarray, width: int, height: int) -> PixelBuffer:
    """Wrap a density buffer as an RGBA raster (0, 0, 0, density)."""
    alpha = check_density(density, width, height)
    out = np.zeros((height, width, 4), dtype=np.uint8)
    out[..., 3] = alpha
    return PixelBuffer(out)


def coverage(density: np.ndarray) -> float:
    """Mean ink coverage as a percentage of full ink."""
    if density.size == 0:
        return 0.0
    return float(density.astype(np.float64).mean() / 255.0 * 100.0)
