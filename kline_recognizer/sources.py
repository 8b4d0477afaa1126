from pathlib import Path
from typing import Protocol, runtime_checkable

import numpy as np

from .imaging import ensure_bgr, read_image


@runtime_checkable
class ImageSource(Protocol):
    """Supplies chart frames to the pipeline.

    Screen or window capture lives behind this interface, outside the
    recognizer.
    """

    def capture(self) -> np.ndarray: ...


class ArrayImageSource:
    """Serves an in-memory BGR frame (a capture already taken)."""

    def __init__(self, image: np.ndarray):
        self._image = ensure_bgr(image)

    def capture(self) -> np.ndarray:
        return self._image


class FileImageSource:
    """Reads the frame from disk on every capture, so a refreshed screenshot is picked up."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def capture(self) -> np.ndarray:
        return read_image(self.path)
