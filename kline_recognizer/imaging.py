from pathlib import Path

import cv2
import numpy as np

from .errors import InvalidInputError
from .types import Region


def read_image(img: str | Path | np.ndarray) -> np.ndarray:
    """Read image into a BGR np.ndarray."""
    if isinstance(img, np.ndarray):
        return ensure_bgr(img)
    p = Path(img)
    if not p.exists():
        raise FileNotFoundError(p)
    im = cv2.imread(str(p), cv2.IMREAD_COLOR)
    if im is None:
        raise InvalidInputError(f"Failed to read image: {p}")
    return im


def ensure_bgr(image: np.ndarray | None) -> np.ndarray:
    """Validate a pixel buffer and return it as 3-channel uint8 BGR.

    BGR uint8 input is returned as is (no copy); gray and BGRA input is
    converted into a new array.
    """
    if image is None:
        raise InvalidInputError("image is required")
    if not isinstance(image, np.ndarray):
        raise InvalidInputError(f"image must be a numpy array, got {type(image).__name__}")
    if image.size == 0 or image.ndim not in (2, 3) or image.shape[0] == 0 or image.shape[1] == 0:
        raise InvalidInputError(f"image is empty or malformed: shape={image.shape}")
    if image.dtype != np.uint8:
        raise InvalidInputError(f"image must be uint8, got {image.dtype}")
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    channels = image.shape[2]
    if channels == 3:
        return image
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if channels == 1:
        return cv2.cvtColor(np.ascontiguousarray(image[:, :, 0]), cv2.COLOR_GRAY2BGR)
    raise InvalidInputError(f"unsupported channel count: {channels}")


def image_bounds(image: np.ndarray) -> Region:
    h, w = image.shape[:2]
    return Region(0, 0, w, h)


def clip_region(image: np.ndarray, region: Region) -> Region | None:
    """Intersect a region with the image; None when nothing is left."""
    if region.is_empty:
        return None
    return region.intersect(image_bounds(image))


def crop(image: np.ndarray, region: Region) -> np.ndarray:
    """Return a read-only view of ``region`` (must already be clipped)."""
    x1, y1, x2, y2 = region.to_xyxy()
    view = image[y1:y2, x1:x2]
    view.flags.writeable = False
    return view
