"""Stage 1: Tone adjustment (brightness, contrast, gamma).

Works on R, G, B only; alpha passes through untouched. Every step clamps
to 0..255 before the next one runs, and the result is rounded back to
8 bits once at the end.
"""

import numpy as np

from .buffers import PixelBuffer
from .color import to_uint8
from .config import AdjustmentSettings


def contrast_factor(contrast: float) -> float:
    """Standard 8-bit contrast curve: 1.0 at contrast 0."""
    return (259.0 * (contrast + 255.0)) / (255.0 * (259.0 - contrast))


def is_identity(settings: AdjustmentSettings) -> bool:
    return settings.brightness == 0 and settings.contrast == 0 and settings.gamma == 1


def adjust_rgb(rgb: np.ndarray, settings: AdjustmentSettings) -> np.ndarray:
    """Apply tone settings to an (..., 3) uint8 array, returning uint8."""
    c = rgb.astype(np.float64)

    # 1. Brightness
    c = np.clip(c + settings.brightness, 0.0, 255.0)

    # 2. Contrast around mid-grey
    c = np.clip(contrast_factor(settings.contrast) * (c - 128.0) + 128.0, 0.0, 255.0)

    # 3. Gamma
    if settings.gamma != 1:
        c = np.clip(255.0 * np.power(c / 255.0, 1.0 / settings.gamma), 0.0, 255.0)

    return to_uint8(c)


def adjust(source: PixelBuffer, settings: AdjustmentSettings) -> PixelBuffer:
    """Return a new buffer with brightness/contrast/gamma applied."""
    out = np.array(source.pixels, copy=True)
    if not is_identity(settings):
        out[..., :3] = adjust_rgb(source.rgb, settings)
    return PixelBuffer(out)
