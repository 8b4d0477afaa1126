"""
Body / shadow segmentation of a single candle crop.

Works in crop-local coordinates and translates the result back into image
coordinates at the end.
"""

import logging
import math
from dataclasses import dataclass

import cv2
import numpy as np

from ..config import ContourConfig, PreprocessConfig, RecognitionConfig, StructureConfig
from ..imaging import crop
from ..types import Boundaries, Region

logger = logging.getLogger(__name__)

_MORPH_OPS = {
    "close": cv2.MORPH_CLOSE,
    "open": cv2.MORPH_OPEN,
    "dilate": cv2.MORPH_DILATE,
    "erode": cv2.MORPH_ERODE,
}


@dataclass
class ContourInfo:
    points: np.ndarray
    area: float
    perimeter: float
    rect: Region
    aspect_ratio: float
    compactness: float  # perimeter^2 / area; a circle is 4*pi
    center_y: float


def preprocess(gray: np.ndarray, cfg: PreprocessConfig) -> np.ndarray:
    out = gray
    if cfg.blur_enabled:
        out = cv2.GaussianBlur(out, (cfg.blur_kernel, cfg.blur_kernel), 0)
    if cfg.contrast_enabled:
        out = cv2.convertScaleAbs(out, alpha=cfg.contrast_factor, beta=0)
    if cfg.morph_enabled:
        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (cfg.morph_kernel, cfg.morph_kernel))
        out = cv2.morphologyEx(out, _MORPH_OPS[cfg.morph_operation], kernel)
    return out


def describe_contour(points: np.ndarray) -> ContourInfo:
    area = float(cv2.contourArea(points))
    perimeter = float(cv2.arcLength(points, True))
    x, y, w, h = cv2.boundingRect(points)
    rect = Region(int(x), int(y), int(w), int(h))
    m = cv2.moments(points)
    center_y = m["m01"] / m["m00"] if m["m00"] else rect.center_y
    return ContourInfo(
        points=points,
        area=area,
        perimeter=perimeter,
        rect=rect,
        aspect_ratio=w / h if h else math.inf,
        compactness=perimeter * perimeter / area if area > 0 else math.inf,
        center_y=float(center_y),
    )


def _is_edge_noise(rect: Region, width: int, height: int, margin: int) -> bool:
    return (
        rect.left < margin
        or rect.top < margin
        or rect.right > width - margin
        or rect.bottom > height - margin
    )


def filter_contours(
    contours, width: int, height: int, cfg: ContourConfig
) -> list[ContourInfo]:
    """Keep candle-like contours, largest first, at most ``max_contours``."""
    valid = []
    for c in contours:
        info = describe_contour(c)
        if not cfg.min_area <= info.area <= cfg.max_area:
            continue
        if info.aspect_ratio > cfg.max_aspect_ratio:
            continue
        if info.compactness < cfg.min_compactness:
            continue
        if _is_edge_noise(info.rect, width, height, cfg.edge_margin):
            continue
        valid.append(info)
    valid.sort(key=lambda z: z.area, reverse=True)
    return valid[: cfg.max_contours]


def _bounding(infos: list[ContourInfo]) -> Region:
    x, y, w, h = cv2.boundingRect(np.vstack([c.points for c in infos]))
    return Region(int(x), int(y), int(w), int(h))


def split_structure(
    contours: list[ContourInfo], full: Region, cfg: StructureConfig
) -> Boundaries:
    """Infer body and shadows inside ``full`` from the retained contours."""
    band = full.height * cfg.body_height_ratio
    center_y = full.y + full.height // 2
    body_contours = [
        c
        for c in contours
        if abs(c.center_y - center_y) <= band / 2 and c.rect.width >= cfg.min_body_width
    ]

    if body_contours:
        body: Region | None = _bounding(body_contours)
    else:
        # no clear body: assume a centered one of the configured height
        body_h = int(band)
        body = Region(full.x, center_y - body_h // 2, full.width, body_h) if body_h > 0 else None

    upper = lower = None
    if body is not None:
        if body.top > full.top:
            upper = Region(full.x, full.top, full.width, body.top - full.top)
        if body.bottom < full.bottom:
            lower = Region(full.x, body.bottom, full.width, full.bottom - body.bottom)

    return Boundaries(
        full=full,
        body=body,
        upper_shadow=upper,
        lower_shadow=lower,
        contour_count=len(contours),
        body_inferred=bool(body_contours),
    )


def extract(
    image: np.ndarray, region: Region, config: RecognitionConfig | None = None
) -> Boundaries:
    """Segment ``region`` (already clipped) into full/body/shadow rectangles."""
    config = config or RecognitionConfig()
    patch = crop(image, region)
    if patch.size == 0:
        raise ValueError(f"empty crop for region {region}")
    h, w = patch.shape[:2]

    gray = cv2.cvtColor(patch, cv2.COLOR_BGR2GRAY)
    prepared = preprocess(gray, config.preprocess)
    edges = cv2.Canny(prepared, config.preprocess.canny_low, config.preprocess.canny_high)
    cnts, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    kept = filter_contours(cnts, w, h, config.contours)
    logger.debug("kept %d of %d contours", len(kept), len(cnts))
    if not kept:
        return Boundaries()

    local = split_structure(kept, _bounding(kept), config.structure)
    return local.translate(region.x, region.y)
