import io
import numpy as np
import pytest
from PIL import Image


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def quad_colors_image():
    """4x4 image made of four flat 2x2 blocks."""
    img = np.zeros((4, 4, 3), dtype=np.uint8)
    img[:2, :2] = [255, 0, 0]
    img[:2, 2:] = [0, 255, 0]
    img[2:, :2] = [0, 0, 255]
    img[2:, 2:] = [255, 255, 255]
    return img


@pytest.fixture
def png_bytes():
    def _encode(arr: np.ndarray) -> bytes:
        buf = io.BytesIO()
        Image.fromarray(arr).save(buf, format="PNG")
        return buf.getvalue()
    return _encode
