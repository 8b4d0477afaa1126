"""
Dominant-color classification of a candle crop.

The dominant color is the mean HSV of pixels around the peak of a 180-bin
hue histogram. This is a heuristic, not a clustering: with two large hue
populations the bigger one wins outright, and achromatic pixels (white or
black background) all fall into hue bin 0.
"""

import logging
from dataclasses import replace

import cv2
import numpy as np

from ..config import ColorConfig, RecognitionConfig
from ..errors import InvalidInputError
from ..imaging import clip_region, crop, ensure_bgr
from ..types import HSV, ColorClass, ColorClassification, HueFamily, Region

logger = logging.getLogger(__name__)

HUE_BINS = 180


def hue_distance(a, b):
    """Circular distance on the 0..180 OpenCV hue wheel (works on arrays)."""
    d = np.abs(np.asarray(a, dtype=np.float64) - b)
    return np.minimum(d, HUE_BINS - d)


def hue_in_range(hue: float, lo: int, hi: int) -> bool:
    if lo <= hi:
        return lo <= hue <= hi
    # range wraps through 0, e.g. red as 170..10
    return hue >= lo or hue <= hi


def dominant_color(hsv: np.ndarray, hue_tolerance: int) -> HSV:
    hist = cv2.calcHist([hsv], [0], None, [HUE_BINS], [0, HUE_BINS]).ravel()
    peak = int(np.argmax(hist))

    h = hsv[..., 0].astype(np.float64)
    window = hue_distance(h, peak) <= hue_tolerance
    # average hue as signed offsets from the peak so 179 and 1 give 0, not 90
    offsets = (h[window] - peak + HUE_BINS / 2) % HUE_BINS - HUE_BINS / 2
    hue = float((peak + offsets.mean()) % HUE_BINS)
    sat = float(hsv[..., 1][window].mean())
    val = float(hsv[..., 2][window].mean())
    return HSV(hue, sat, val)


def color_confidence(hsv: np.ndarray, dominant: HSV, cfg: ColorConfig) -> float:
    """Fraction of pixels within the HSV tolerances of ``dominant``."""
    h = hsv[..., 0]
    s = hsv[..., 1].astype(np.float64)
    v = hsv[..., 2].astype(np.float64)
    match = (
        (hue_distance(h, dominant.hue) <= cfg.hue_tolerance)
        & (np.abs(s - dominant.saturation) <= cfg.saturation_tolerance)
        & (np.abs(v - dominant.value) <= cfg.value_tolerance)
    )
    return float(np.clip(match.mean(), 0.0, 1.0))


def hue_family(dominant: HSV, cfg: ColorConfig) -> HueFamily:
    if hue_in_range(dominant.hue, cfg.red_hue_min, cfg.red_hue_max):
        return HueFamily.RED
    if hue_in_range(dominant.hue, cfg.green_hue_min, cfg.green_hue_max):
        return HueFamily.GREEN
    return HueFamily.NONE


def determine_color_class(dominant: HSV, cfg: ColorConfig) -> tuple[ColorClass, HueFamily]:
    if dominant.saturation < cfg.gray_threshold:
        return ColorClass.NEUTRAL, HueFamily.NONE
    if dominant.value < cfg.darkness_threshold:
        return ColorClass.UNKNOWN, HueFamily.NONE

    family = hue_family(dominant, cfg)
    if family is HueFamily.NONE:
        return ColorClass.UNKNOWN, family
    rising = HueFamily.GREEN if cfg.polarity == "green_up" else HueFamily.RED
    return (ColorClass.BULLISH if family is rising else ColorClass.BEARISH), family


def classify(
    image: np.ndarray, region: Region, config: RecognitionConfig | None = None
) -> ColorClassification:
    """Classify the dominant color of ``region`` (already clipped to the image)."""
    cfg = (config or RecognitionConfig()).color
    patch = crop(image, region)
    if patch.size == 0:
        raise ValueError(f"empty crop for region {region}")
    hsv = cv2.cvtColor(patch, cv2.COLOR_BGR2HSV)

    dominant = dominant_color(hsv, cfg.hue_tolerance)
    confidence = color_confidence(hsv, dominant, cfg)
    color_class, family = determine_color_class(dominant, cfg)

    logger.debug(
        "color %s (%s) hsv=(%.1f, %.1f, %.1f) confidence=%.2f",
        color_class.value,
        family.value,
        dominant.hue,
        dominant.saturation,
        dominant.value,
        confidence,
    )
    return ColorClassification(
        color_class=color_class, dominant=dominant, confidence=confidence, hue_family=family
    )


def calibrate(
    image: np.ndarray, config: RecognitionConfig | None = None, region: Region | None = None
) -> ColorConfig:
    """
    Derive HSV tolerances from the image's own spread.

    Noisy or themed screenshots have a wider HSV spread, so tolerances grow
    with the standard deviation of each channel, clamped to usable bounds.
    The rest of the color section is returned unchanged.
    """
    base = (config or RecognitionConfig()).color
    image = ensure_bgr(image)
    patch = image
    if region is not None:
        clipped = clip_region(image, region)
        if clipped is None:
            raise InvalidInputError(f"calibration region {region} is outside the image")
        patch = crop(image, clipped)
    hsv = cv2.cvtColor(patch, cv2.COLOR_BGR2HSV)
    _, std = cv2.meanStdDev(hsv)
    std_h, std_s, std_v = (float(x) for x in std.ravel()[:3])

    hue_tol = int(base.hue_tolerance * (1 + std_h / 30.0))
    sat_tol = int(base.saturation_tolerance * (1 + std_s / 50.0))
    val_tol = int(base.value_tolerance * (1 + std_v / 60.0))

    calibrated = replace(
        base,
        hue_tolerance=max(5, min(30, hue_tol)),
        saturation_tolerance=max(20, min(80, sat_tol)),
        value_tolerance=max(30, min(100, val_tol)),
    )
    logger.info(
        "calibrated color tolerances: hue=%d sat=%d val=%d",
        calibrated.hue_tolerance,
        calibrated.saturation_tolerance,
        calibrated.value_tolerance,
    )
    return calibrated
