"""Stage 2: Background removal with automatic detection and manual stencil.

The stencil (mask) is an RGBA image the same size as the source:
red > 10 forces a pixel to be erased, green > 10 forces it to be kept.
Precedence per pixel is erase > keep > automatic removal > unchanged.
Only alpha is ever changed, and only ever lowered to 0.
"""

import logging

import numpy as np

from .adjustments import adjust
from .buffers import PixelBuffer
from .color import MAX_RGB_DISTANCE, hex_to_rgb, luma
from .config import AdjustmentSettings, BgRemoveMode, BrushType, MaskPolicy
from .errors import DimensionMismatch, InvalidParameter

logger = logging.getLogger(__name__)

MASK_CUTOFF = 10


def _remove_mode(settings: AdjustmentSettings) -> BgRemoveMode:
    try:
        return BgRemoveMode(settings.bg_remove_mode)
    except ValueError:
        raise InvalidParameter(
            f"unknown background mode {settings.bg_remove_mode!r}", stage="composite"
        ) from None


def resolve_background_target(
    adjusted: PixelBuffer, settings: AdjustmentSettings
) -> tuple[int, int, int]:
    """Pick the color that auto-removal compares against."""
    if not settings.remove_bg:
        # Target is unused when removal is off
        return (255, 255, 255)
    mode = _remove_mode(settings)
    if mode is BgRemoveMode.WHITE:
        return (255, 255, 255)
    if mode is BgRemoveMode.BLACK:
        return (0, 0, 0)
    if mode is BgRemoveMode.CUSTOM:
        return hex_to_rgb(settings.custom_bg_color)
    if mode is BgRemoveMode.AUTO:
        # Single-sample estimate: the top-left pixel
        if adjusted.width == 0 or adjusted.height == 0:
            return (255, 255, 255)
        r, g, b = (int(v) for v in adjusted.pixels[0, 0, :3])
        return (r, g, b)
    raise AssertionError(f"unhandled background mode {mode!r}")


def stencil_regions(
    mask: PixelBuffer | None,
    source: PixelBuffer,
    policy: MaskPolicy = MaskPolicy.IGNORE,
) -> tuple[np.ndarray, np.ndarray] | None:
    """Split a stencil into (erase, keep) boolean arrays.

    Returns None when there is no usable stencil. A stencil with the wrong
    size is dropped as a whole under IGNORE and raises under RAISE.
    """
    if mask is None:
        return None
    if not mask.same_geometry(source):
        message = (
            f"mask is {mask.width}x{mask.height} but image is "
            f"{source.width}x{source.height}"
        )
        if MaskPolicy(policy) is MaskPolicy.RAISE:
            raise DimensionMismatch(message, stage="composite")
        logger.warning(f"Ignoring mask: {message}")
        return None
    erase = mask.pixels[..., 0] > MASK_CUTOFF
    keep = mask.pixels[..., 1] > MASK_CUTOFF
    return erase, keep


def composite_alpha(
    rgb: np.ndarray,
    alpha: np.ndarray,
    settings: AdjustmentSettings,
    target: tuple[int, int, int],
    regions: tuple[np.ndarray, np.ndarray] | None = None,
) -> np.ndarray:
    """Compute the new alpha for a block of pixels.

    Works on any matching slice of rows, so it can run per band.
    """
    remove = np.zeros(alpha.shape, dtype=bool)

    if settings.remove_bg:
        if _remove_mode(settings) is BgRemoveMode.WHITE:
            cutoff = 255.0 - settings.bg_threshold * 2.5
            remove = luma(rgb) > cutoff
        else:
            diff = rgb.astype(np.float64) - np.array(target, dtype=np.float64)
            dist_sq = np.sum(diff * diff, axis=-1)
            tolerance = (settings.bg_threshold / 100.0) * MAX_RGB_DISTANCE
            remove = dist_sq <= tolerance * tolerance

    if regions is not None:
        erase, keep = regions
        remove = erase | (remove & ~keep)

    return np.where(remove, np.uint8(0), alpha).astype(np.uint8)


def composite(
    adjusted: PixelBuffer,
    settings: AdjustmentSettings,
    mask: PixelBuffer | None = None,
    policy: MaskPolicy = MaskPolicy.IGNORE,
) -> PixelBuffer:
    """Return ``adjusted`` with background and stencil erasures applied."""
    regions = stencil_regions(mask, adjusted, policy)
    target = resolve_background_target(adjusted, settings)
    out = np.array(adjusted.pixels, copy=True)
    out[..., 3] = composite_alpha(adjusted.rgb, adjusted.alpha, settings, target, regions)
    return PixelBuffer(out)


def apply_attributes(
    source: PixelBuffer,
    settings: AdjustmentSettings,
    mask: PixelBuffer | None = None,
    policy: MaskPolicy = MaskPolicy.IGNORE,
) -> PixelBuffer:
    """Tone-adjust then composite; the processed image the separators see."""
    return composite(adjust(source, settings), settings, mask, policy)


# --- Stencil editing -------------------------------------------------------


def empty_mask(width: int, height: int) -> PixelBuffer:
    """A fully transparent stencil (no overrides)."""
    return PixelBuffer.blank(width, height)


def paint_mask(
    mask: PixelBuffer, x: float, y: float, diameter: float, brush: BrushType
) -> PixelBuffer:
    """Stamp a filled circle of erase (red) or keep (green) onto a stencil.

    Paints opaque over whatever was there, so keep over erase replaces it.
    """
    h, w = mask.height, mask.width
    radius = diameter / 2.0
    yy, xx = np.ogrid[:h, :w]
    # Pixel centers inside the circle
    inside = (xx + 0.5 - x) ** 2 + (yy + 0.5 - y) ** 2 <= radius * radius

    paint = (255, 0, 0, 255) if BrushType(brush) is BrushType.ERASE else (0, 255, 0, 255)
    out = np.array(mask.pixels, copy=True)
    out[inside] = paint
    return PixelBuffer(out)


def mask_from_regions(
    erase: np.ndarray | None = None, keep: np.ndarray | None = None
) -> PixelBuffer:
    """Build a stencil from boolean erase/keep arrays of the same shape."""
    ref = erase if erase is not None else keep
    if ref is None:
        raise ValueError("need at least one of erase or keep")
    h, w = ref.shape
    out = np.zeros((h, w, 4), dtype=np.uint8)
    if keep is not None:
        out[keep, 1] = 255
        out[keep, 3] = 255
    if erase is not None:
        out[erase, 0] = 255
        out[erase, 3] = 255
    return PixelBuffer(out)


def create_mask_overlay(image: PixelBuffer, mask: PixelBuffer | None) -> np.ndarray:
    """Create a preview with erased areas dimmed and tinted red.

    Kept areas get a light green tint. Returns an RGB numpy array (H, W, 3)
    for st.image display.
    """
    rgb = np.array(image.rgb, copy=True)
    regions = stencil_regions(mask, image)
    if regions is None:
        return rgb
    erase, keep = regions

    keep_only = keep & ~erase
    rgb[keep_only, 1] = np.clip(
        rgb[keep_only, 1].astype(np.int16) + 60, 0, 255
    ).astype(np.uint8)

    # Dim + red tint removed areas
    rgb[erase] = (rgb[erase] * 0.3).astype(np.uint8)
    rgb[erase, 0] = np.clip(
        rgb[erase, 0].astype(np.int16) + 80, 0, 255
    ).astype(np.uint8)

    return rgb
