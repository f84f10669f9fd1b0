import numpy as np
import pytest

from separation.buffers import PixelBuffer


def solid(width: int, height: int, rgba) -> PixelBuffer:
    """A buffer filled with one RGBA color."""
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[...] = rgba
    return PixelBuffer(pixels)


def single(rgba) -> PixelBuffer:
    return solid(1, 1, rgba)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def random_image(rng):
    """A 23x37 RGBA image with mixed alpha."""
    pixels = rng.integers(0, 256, size=(37, 23, 4), dtype=np.uint8)
    return PixelBuffer(pixels)


@pytest.fixture
def random_mask(rng):
    """A 23x37 stencil with scattered erase, keep and overlapping strokes."""
    pixels = np.zeros((37, 23, 4), dtype=np.uint8)
    choice = rng.integers(0, 4, size=(37, 23))
    pixels[choice == 1, 0] = 255
    pixels[choice == 2, 1] = 255
    pixels[choice == 3, 0] = 255
    pixels[choice == 3, 1] = 255
    pixels[..., 3] = 255
    return PixelBuffer(pixels)
