import logging

import cv2
import numpy as np

from ..config import RecognitionConfig, RegionConfig
from ..types import Region

logger = logging.getLogger(__name__)


def overlap_ratio(a: Region, b: Region) -> float:
    """Intersection area over the smaller of the two areas."""
    inter = a.intersect(b)
    if inter is None:
        return 0.0
    smaller = min(a.area, b.area)
    return inter.area / smaller if smaller > 0 else 0.0


def deduplicate(regions: list[Region], threshold: float) -> list[Region]:
    """Drop regions overlapping an earlier (left-most first) kept region."""
    kept: list[Region] = []
    for r in sorted(regions, key=lambda z: (z.x, z.y)):
        if any(overlap_ratio(r, k) > threshold for k in kept):
            continue
        kept.append(r)
    return kept


def _passes_filters(rect: Region, img_w: int, img_h: int, cfg: RegionConfig) -> bool:
    if not cfg.min_width <= rect.width <= cfg.max_width:
        return False
    if not cfg.min_height <= rect.height <= cfg.max_height:
        return False
    if rect.width / rect.height > cfg.max_aspect_ratio:
        return False
    # candles hugging the border are usually axis labels or frame lines
    m = cfg.edge_margin
    return not (
        rect.left < m or rect.top < m or rect.right > img_w - m or rect.bottom > img_h - m
    )


def _pad(rect: Region, pad: int, img_w: int, img_h: int) -> Region:
    x0 = max(rect.left - pad, 0)
    y0 = max(rect.top - pad, 0)
    x1 = min(rect.right + pad, img_w)
    y1 = min(rect.bottom + pad, img_h)
    return Region.from_xyxy(x0, y0, x1, y1)


def locate(image: np.ndarray, config: RecognitionConfig | None = None) -> list[Region]:
    """Find candidate candle boxes in a full chart image, left to right."""
    cfg = (config or RecognitionConfig()).region
    h, w = image.shape[:2]
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image
    edges = cv2.Canny(gray, cfg.canny_low, cfg.canny_high)
    cnts, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    candidates = []
    for c in cnts:
        x, y, ww, hh = cv2.boundingRect(c)
        rect = Region(int(x), int(y), int(ww), int(hh))
        if _passes_filters(rect, w, h, cfg):
            candidates.append(rect)

    kept = deduplicate(candidates, cfg.overlap_threshold)[: cfg.max_regions]
    regions = [_pad(r, cfg.padding, w, h) for r in kept]
    logger.debug(
        "located %d regions (%d contours, %d candidates)", len(regions), len(cnts), len(candidates)
    )
    return regions
