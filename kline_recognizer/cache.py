"""
Caller-owned result cache.

The pipeline never caches anything itself. Callers that re-run recognition
on unchanged screenshots can keep one of these next to their pipeline; keys
are content fingerprints, so a changed pixel or a changed threshold is a miss.
"""

import hashlib
import logging
import threading
from collections import OrderedDict
from typing import TYPE_CHECKING

import numpy as np

from .config import RecognitionConfig
from .imaging import clip_region, crop
from .types import RecognitionResult, Region

if TYPE_CHECKING:
    from .pipeline import RecognitionPipeline

logger = logging.getLogger(__name__)


def fingerprint(image: np.ndarray, region: Region, config: RecognitionConfig) -> str:
    """sha256 over the clipped crop pixels, the region and the config."""
    h = hashlib.sha256()
    clipped = clip_region(image, region)
    h.update(repr(region.to_xyxy()).encode())
    if clipped is not None:
        patch = np.ascontiguousarray(crop(image, clipped))
        h.update(repr((patch.shape, str(patch.dtype))).encode())
        h.update(patch.tobytes())
    h.update(config.to_json().encode())
    return h.hexdigest()


class RecognitionCache:
    """Thread-safe LRU of successful recognition results."""

    def __init__(self, max_size: int = 1024):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._items: OrderedDict[str, RecognitionResult] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def get(self, key: str) -> RecognitionResult | None:
        with self._lock:
            result = self._items.get(key)
            if result is None:
                self.misses += 1
                return None
            self._items.move_to_end(key)
            self.hits += 1
            return result

    def put(self, key: str, result: RecognitionResult) -> None:
        with self._lock:
            self._items[key] = result
            self._items.move_to_end(key)
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self.hits = self.misses = 0

    def recognize(
        self,
        pipeline: "RecognitionPipeline",
        image: np.ndarray,
        region: Region,
        config: RecognitionConfig | None = None,
    ) -> RecognitionResult:
        """Return a cached result or run ``pipeline.recognize`` and store it.

        Failed results are not stored, so a re-capture gets a fresh attempt.
        """
        config = config or RecognitionConfig()
        key = fingerprint(image, region, config)
        cached = self.get(key)
        if cached is not None:
            logger.debug("cache hit for region %s", region)
            return cached
        result = pipeline.recognize(image, region, config)
        if result.ok:
            self.put(key, result)
        return result
