"""Shared test fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from hierseg.engine.pixels import PixelBuffer


# Constant mid-gray 4×4 RGB image: every superpixel has the same color
GRAY_4X4 = bytes([128] * (4 * 4 * 3))

# 16×16 RGB: left half red, right half blue
TWO_TONE_W = 16
TWO_TONE_H = 16


def two_tone_array(width: int = TWO_TONE_W, height: int = TWO_TONE_H) -> np.ndarray:
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, : width // 2] = (220, 30, 30)
    image[:, width // 2:] = (30, 30, 220)
    return image


def quadrants_array(size: int = 24) -> np.ndarray:
    """Four flat quadrants with distinct colors."""
    image = np.zeros((size, size, 3), dtype=np.uint8)
    half = size // 2
    image[:half, :half] = (250, 10, 10)
    image[:half, half:] = (10, 250, 10)
    image[half:, :half] = (10, 10, 250)
    image[half:, half:] = (240, 240, 20)
    return image


def gradient_array(width: int = 20, height: int = 15) -> np.ndarray:
    """Smooth horizontal ramp plus a vertical tint, no flat areas."""
    xs = np.linspace(0, 255, width)
    ys = np.linspace(0, 120, height)
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :, 0] = xs[np.newaxis, :].astype(np.uint8)
    image[:, :, 1] = ys[:, np.newaxis].astype(np.uint8)
    image[:, :, 2] = 90
    return image


TWO_TONE = two_tone_array().tobytes()


@pytest.fixture
def gray_buffer() -> PixelBuffer:
    return PixelBuffer.from_bytes(GRAY_4X4, 4, 4, 3)


@pytest.fixture
def two_tone_buffer() -> PixelBuffer:
    return PixelBuffer.from_array(two_tone_array())


@pytest.fixture
def quadrants_buffer() -> PixelBuffer:
    return PixelBuffer.from_array(quadrants_array())


@pytest.fixture
def gradient_buffer() -> PixelBuffer:
    return PixelBuffer.from_array(gradient_array())
