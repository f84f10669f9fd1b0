"""Pixel buffers and the raster codec boundary.

A PixelBuffer wraps an (H, W, 4) uint8 RGBA array that is never written
to after construction. Stages build new arrays and wrap them again, so
the same buffer can be handed to several stages (or threads) safely.
"""

import io
import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, DimensionMismatch, InvalidParameter, ResourceUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """RGBA8 image data. ``pixels`` has shape (H, W, 4)."""

    pixels: np.ndarray

    def __post_init__(self):
        arr = np.asarray(self.pixels)
        if arr.dtype != np.uint8 or arr.ndim != 3 or arr.shape[2] != 4:
            raise InvalidParameter(
                f"expected (H, W, 4) uint8 pixels, got {arr.shape} {arr.dtype}",
                stage="buffer",
            )
        view = arr.view()
        view.flags.writeable = False
        object.__setattr__(self, "pixels", view)

    @classmethod
    def from_samples(cls, width: int, height: int, samples: Sequence[int]) -> "PixelBuffer":
        """Build from a flat R,G,B,A,R,G,B,A... sequence."""
        flat = np.asarray(samples, dtype=np.uint8).reshape(-1)
        if flat.size != width * height * 4:
            raise InvalidParameter(
                f"{flat.size} samples for a {width}x{height} image "
                f"(expected {width * height * 4})",
                stage="buffer",
            )
        return cls(flat.reshape(height, width, 4).copy())

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        return cls(np.array(image.convert("RGBA"), dtype=np.uint8))

    @classmethod
    def blank(cls, width: int, height: int) -> "PixelBuffer":
        return cls(np.zeros((height, width, 4), dtype=np.uint8))

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def samples(self) -> np.ndarray:
        """Flat read-only view, length width * height * 4."""
        return self.pixels.reshape(-1)

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[..., :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[..., 3]

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.pixels))

    def same_geometry(self, other: "PixelBuffer") -> bool:
        return self.size == other.size

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.pixels.shape == other.pixels.shape and np.array_equal(
            self.pixels, other.pixels
        )

    __hash__ = None


def check_density(density: np.ndarray, width: int, height: int) -> np.ndarray:
    """Validate a density buffer (one uint8 per pixel) and return it 2-D."""
    arr = np.asarray(density)
    if arr.dtype != np.uint8:
        raise InvalidParameter(f"density must be uint8, got {arr.dtype}", stage="encode")
    if arr.size != width * height:
        raise DimensionMismatch(
            f"density has {arr.size} values for a {width}x{height} image",
            stage="encode",
        )
    return arr.reshape(height, width)


class RasterCodec(Protocol):
    """Turns encoded image bytes into buffers and back."""

    def decode(self, data: bytes) -> PixelBuffer: ...

    def encode(self, buffer: PixelBuffer) -> bytes: ...


class PillowCodec:
    """Pillow-backed codec. Output is always lossless RGBA PNG."""

    def __init__(self, compress_level: int = 6):
        self.compress_level = compress_level

    def decode(self, data: bytes) -> PixelBuffer:
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                buffer = PixelBuffer.from_image(img)
        except Image.DecompressionBombError as exc:
            raise ResourceUnavailable(str(exc), stage="decode") from exc
        except MemoryError as exc:
            raise ResourceUnavailable("not enough memory to decode image", stage="decode") from exc
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
            raise DecodeError(f"cannot read image: {exc}", stage="decode") from exc
        logger.debug(f"Decoded {buffer.width}x{buffer.height} image ({len(data)} bytes)")
        return buffer

    def encode(self, buffer: PixelBuffer) -> bytes:
        buf = io.BytesIO()
        try:
            buffer.to_image().save(buf, format="PNG", compress_level=self.compress_level)
        except MemoryError as exc:
            raise ResourceUnavailable("not enough memory to encode PNG", stage="encode") from exc
        return buf.getvalue()
