"""Shared fixtures for qr_backdrop tests."""

import numpy as np
import pytest
from PIL import Image

from qr_backdrop.config import reset_config


def make_noise(width, height, seed=0):
    """Per-pixel random RGB noise, the busiest background there is."""
    rng = np.random.RandomState(seed)
    pixels = rng.randint(0, 256, size=(height, width, 3), dtype=np.uint8)
    return Image.fromarray(pixels, "RGB")


def make_blotches(width, height, seed=0):
    """Coarse noise upscaled smoothly, a stand-in for a busy photo."""
    return make_noise(max(width // 20, 1), max(height // 20, 1), seed).resize((width, height), Image.BILINEAR)


def make_gradient(width, height):
    """Smooth diagonal gradient background."""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    red = np.broadcast_to(xs[None, :], (height, width))
    green = np.broadcast_to(ys[:, None], (height, width))
    blue = (red + green) / 2
    pixels = np.stack([red, green, blue], axis=-1).astype(np.uint8)
    return Image.fromarray(pixels, "RGB")


@pytest.fixture
def noise_background():
    return make_noise(800, 600)


@pytest.fixture
def gradient_background():
    return make_gradient(800, 600)


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Isolate tests from the caller's environment and the config singleton."""
    monkeypatch.delenv("UNSPLASH_API_KEY", raising=False)
    reset_config()
    yield
    reset_config()
