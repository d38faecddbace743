import cv2
import numpy as np
import pytest

from imgstamp.config import StampConfig
from imgstamp.modules.renderer import Renderer, TextRasterizer


def solid_image(width, height, color=(90, 140, 60)):
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, :] = color
    return img


def bordered_image(width, height, inset, subject_color=(40, 80, 160), background=(255, 255, 255)):
    """White canvas with a solid subject inset by (left, top, right, bottom)"""
    img = solid_image(width, height, background)
    left, top, right, bottom = inset
    img[top:height - bottom, left:width - right] = subject_color
    return img


def gradient_image(width, height):
    """Non-uniform content so corners differ"""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, :, 0] = xs[None, :].astype(np.uint8)
    img[:, :, 1] = ys[:, None].astype(np.uint8)
    img[:, :, 2] = 128
    return img


def encode(img, ext=".jpg"):
    ok, data = cv2.imencode(ext, cv2.cvtColor(img, cv2.COLOR_RGB2BGR))
    assert ok
    return data.tobytes()


def decode(data):
    img = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert img is not None
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


@pytest.fixture
def config():
    return StampConfig()


@pytest.fixture
def renderer(config, tmp_path):
    # Missing font files fall back to Pillow's built-in font
    rasterizer = TextRasterizer(tmp_path / "missing-latin.ttf", tmp_path / "missing-cjk.otf")
    return Renderer(config, rasterizer=rasterizer, quality=90)


@pytest.fixture
def photo_dir(tmp_path):
    """A small photo folder: landscape JPEG, portrait PNG in a sub-folder, a broken JPEG"""
    root = tmp_path / "photos"
    (root / "trip").mkdir(parents=True)
    (root / "landscape.jpg").write_bytes(encode(gradient_image(300, 200), ".jpg"))
    (root / "trip" / "portrait.png").write_bytes(encode(gradient_image(200, 300), ".png"))
    (root / "broken.jpg").write_bytes(b"definitely not a jpeg")
    return root
