"""
Pytest configuration and fixtures for recognizer tests.

Charts are drawn synthetically with numpy so tests need no image files.
"""

import numpy as np
import pytest

from kline_recognizer.config import RecognitionConfig
from kline_recognizer.types import Region

RED = (0, 0, 255)  # BGR
GREEN = (0, 255, 0)


def draw_candle(
    img: np.ndarray,
    x: int,
    body_top: int,
    body_bottom: int,
    wick_top: int,
    wick_bottom: int,
    color=RED,
    body_width: int = 20,
    wick_width: int = 4,
) -> None:
    """Paint a candle whose body spans columns x..x+body_width-1 (bottom rows exclusive)."""
    wick_x = x + (body_width - wick_width) // 2
    img[wick_top:wick_bottom, wick_x : wick_x + wick_width] = color
    img[body_top:body_bottom, x : x + body_width] = color


@pytest.fixture
def candle_image() -> np.ndarray:
    """120x300 black chart with one red candle: body rows 110-189, wick rows 50-249."""
    img = np.zeros((300, 120, 3), dtype=np.uint8)
    draw_candle(img, x=50, body_top=110, body_bottom=190, wick_top=50, wick_bottom=250)
    return img


@pytest.fixture
def split_candle_image() -> np.ndarray:
    """Same layout as ``candle_image`` but the wicks (rows 50-99, 200-249) do not touch the body."""
    img = np.zeros((300, 120, 3), dtype=np.uint8)
    img[50:100, 58:62] = RED
    img[200:250, 58:62] = RED
    img[110:190, 50:70] = RED
    return img


@pytest.fixture
def candle_region() -> Region:
    """Region around the candle in ``candle_image`` with 10px of background on each side."""
    return Region(40, 40, 40, 220)


@pytest.fixture
def chart_image() -> np.ndarray:
    """400x300 black chart with three red candles at x=70, 190, 310."""
    img = np.zeros((300, 400, 3), dtype=np.uint8)
    draw_candle(img, x=70, body_top=100, body_bottom=180, wick_top=60, wick_bottom=230)
    draw_candle(img, x=190, body_top=110, body_bottom=170, wick_top=50, wick_bottom=240)
    draw_candle(img, x=310, body_top=90, body_bottom=200, wick_top=70, wick_bottom=220)
    return img


@pytest.fixture
def blank_image() -> np.ndarray:
    return np.full((300, 400, 3), 255, dtype=np.uint8)


@pytest.fixture
def lenient_config() -> RecognitionConfig:
    """Default thresholds except a lower acceptance bar.

    Synthetic red-on-black crops score about 0.48 overall: the color
    confidence is ~0 because the dominant sample averages candle and
    background pixels.
    """
    return RecognitionConfig(min_confidence=0.4)


@pytest.fixture
def paint():
    """The candle painter, for tests that build their own charts."""
    return draw_candle
