"""Color helpers shared by the compositor, separators and palette."""

import numpy as np

from .errors import InvalidParameter

# sqrt(3 * 255**2) rounded; largest possible RGB distance
MAX_RGB_DISTANCE = 442.0

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return f"#{r:02x}{g:02x}{b:02x}"


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Parse ``#rrggbb`` (or ``#rgb``) into an RGB tuple."""
    value = hex_color.strip().lstrip("#") if isinstance(hex_color, str) else ""
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise InvalidParameter(f"not a hex color: {hex_color!r}", stage="color")
    try:
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
    except ValueError:
        raise InvalidParameter(f"not a hex color: {hex_color!r}", stage="color") from None


def _as_rgb(color) -> tuple[int, int, int]:
    if isinstance(color, str):
        return hex_to_rgb(color)
    r, g, b = color
    return int(r), int(g), int(b)


def color_distance(a, b) -> float:
    """Euclidean distance in RGB space. Accepts hex strings or tuples."""
    r1, g1, b1 = _as_rgb(a)
    r2, g2, b2 = _as_rgb(b)
    return float(np.sqrt((r1 - r2) ** 2 + (g1 - g2) ** 2 + (b1 - b2) ** 2))


def luma(rgb: np.ndarray) -> np.ndarray:
    """Perceptual brightness of an (..., 3) array, as float64."""
    return rgb.astype(np.float64) @ LUMA_WEIGHTS


def quantize(values: np.ndarray, step: int = 24) -> np.ndarray:
    """Round to the nearest multiple of ``step`` (halves up), clamped to 0..255."""
    q = np.floor(values.astype(np.float64) / step + 0.5) * step
    return np.clip(q, 0, 255).astype(np.uint8)


def to_uint8(values: np.ndarray) -> np.ndarray:
    """Clamp a float array to 0..255 and round to the nearest integer.

    Ties go to even, the same as storing into a clamped 8-bit canvas.
    """
    return np.rint(np.clip(values, 0.0, 255.0)).astype(np.uint8)
