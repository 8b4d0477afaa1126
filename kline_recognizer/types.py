from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle in image space (top-left origin).

    ``right`` and ``bottom`` are exclusive, so a region at ``x=10`` with
    ``width=5`` covers columns 10..14 and has ``right == 15``.
    """

    x: int
    y: int
    width: int
    height: int

    @property
    def left(self) -> int:
        return self.x

    @property
    def top(self) -> int:
        return self.y

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return max(self.width, 0) * max(self.height, 0)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    def contains(self, other: "Region") -> bool:
        return (
            other.left >= self.left
            and other.top >= self.top
            and other.right <= self.right
            and other.bottom <= self.bottom
        )

    def intersect(self, other: "Region") -> "Region | None":
        x1 = max(self.left, other.left)
        y1 = max(self.top, other.top)
        x2 = min(self.right, other.right)
        y2 = min(self.bottom, other.bottom)
        if x2 <= x1 or y2 <= y1:
            return None
        return Region(x1, y1, x2 - x1, y2 - y1)

    def translate(self, dx: int, dy: int) -> "Region":
        return Region(self.x + dx, self.y + dy, self.width, self.height)

    def to_xyxy(self) -> tuple[int, int, int, int]:
        return self.left, self.top, self.right, self.bottom

    @classmethod
    def from_xyxy(cls, x1: int, y1: int, x2: int, y2: int) -> "Region":
        return cls(int(x1), int(y1), int(x2 - x1), int(y2 - y1))

    @classmethod
    def parse(cls, text: str) -> "Region":
        """Parse ``"x,y,w,h"`` (the CLI form)."""
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Expected 'x,y,width,height', got {text!r}")
        x, y, w, h = (int(p) for p in parts)
        return cls(x, y, w, h)

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class HSV:
    hue: float  # 0..180 (OpenCV scale)
    saturation: float  # 0..255
    value: float  # 0..255

    def to_dict(self) -> dict[str, float]:
        return {"hue": self.hue, "saturation": self.saturation, "value": self.value}


class ColorClass(Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"
    UNKNOWN = "unknown"


class HueFamily(Enum):
    RED = "red"
    GREEN = "green"
    NONE = "none"


class PatternType(Enum):
    NORMAL = "normal"
    DOJI = "doji"
    HAMMER = "hammer"
    INVERTED_HAMMER = "inverted_hammer"
    UNKNOWN = "unknown"


class ErrorKind(Enum):
    INVALID_INPUT = "invalid_input"
    STAGE_FAILURE = "stage_failure"
    VALIDATION_FAILURE = "validation_failure"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ColorClassification:
    """Dominant color of a candle crop.

    Attributes
    ----------
    color_class : ColorClass
        Market meaning after the configured polarity is applied.
    dominant : HSV
        Average HSV of the pixels around the hue-histogram peak.
    confidence : float
        Fraction of crop pixels within tolerance of ``dominant``.
    hue_family : HueFamily
        Raw hue family, independent of polarity.
    """

    color_class: ColorClass
    dominant: HSV
    confidence: float
    hue_family: HueFamily = HueFamily.NONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "color_class": self.color_class.value,
            "dominant": self.dominant.to_dict(),
            "confidence": self.confidence,
            "hue_family": self.hue_family.value,
        }


def _region_dict(r: Region | None) -> dict[str, int] | None:
    return r.to_dict() if r is not None else None


@dataclass(frozen=True)
class Boundaries:
    """Candle rectangles in original image coordinates.

    Attributes
    ----------
    full : Region | None
        Union of all retained contours; None when nothing was found.
    body, upper_shadow, lower_shadow : Region | None
        Sub-rectangles of ``full``; shadows are omitted when degenerate.
    contour_count : int
        Number of contours that survived filtering.
    body_inferred : bool
        False when the body is the centered fallback rectangle.
    """

    full: Region | None = None
    body: Region | None = None
    upper_shadow: Region | None = None
    lower_shadow: Region | None = None
    contour_count: int = 0
    body_inferred: bool = False

    @property
    def is_empty(self) -> bool:
        return self.full is None or self.full.is_empty

    def translate(self, dx: int, dy: int) -> "Boundaries":
        def shift(r: Region | None) -> Region | None:
            return r.translate(dx, dy) if r is not None else None

        return Boundaries(
            full=shift(self.full),
            body=shift(self.body),
            upper_shadow=shift(self.upper_shadow),
            lower_shadow=shift(self.lower_shadow),
            contour_count=self.contour_count,
            body_inferred=self.body_inferred,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "full": _region_dict(self.full),
            "body": _region_dict(self.body),
            "upper_shadow": _region_dict(self.upper_shadow),
            "lower_shadow": _region_dict(self.lower_shadow),
            "contour_count": self.contour_count,
            "body_inferred": self.body_inferred,
        }


@dataclass(frozen=True)
class StructureMetrics:
    body_height: int
    upper_shadow_height: int
    lower_shadow_height: int
    total_height: int
    pattern_type: PatternType = PatternType.UNKNOWN
    confidence: float = 0.0

    @property
    def body_ratio(self) -> float:
        return self.body_height / max(1, self.total_height)

    @property
    def upper_shadow_ratio(self) -> float:
        return self.upper_shadow_height / max(1, self.total_height)

    @property
    def lower_shadow_ratio(self) -> float:
        return self.lower_shadow_height / max(1, self.total_height)

    @property
    def shadow_ratio(self) -> float:
        return (self.upper_shadow_height + self.lower_shadow_height) / max(
            1, self.total_height
        )

    @property
    def height_discrepancy(self) -> int:
        parts = self.body_height + self.upper_shadow_height + self.lower_shadow_height
        return abs(parts - self.total_height)

    @property
    def is_bald_top(self) -> bool:
        return self.upper_shadow_height == 0

    @property
    def is_bald_bottom(self) -> bool:
        return self.lower_shadow_height == 0

    @property
    def has_long_upper_shadow(self) -> bool:
        return self.upper_shadow_ratio > 0.5

    @property
    def has_long_lower_shadow(self) -> bool:
        return self.lower_shadow_ratio > 0.5

    @property
    def clarity_score(self) -> float:
        """How clearly the candle's parts are separated, 0..1."""
        score = 0.0
        if self.body_height > 5:
            score += 0.3
        elif self.body_height > 0:
            score += 0.1
        if self.upper_shadow_height > 3 or self.lower_shadow_height > 3:
            score += 0.3
        if 0.1 <= self.body_ratio <= 0.8:
            score += 0.2
        if self.height_discrepancy == 0:
            score += 0.2
        return min(1.0, score)

    def to_dict(self) -> dict[str, Any]:
        return {
            "body_height": self.body_height,
            "upper_shadow_height": self.upper_shadow_height,
            "lower_shadow_height": self.lower_shadow_height,
            "total_height": self.total_height,
            "pattern_type": self.pattern_type.value,
            "confidence": self.confidence,
            "body_ratio": self.body_ratio,
            "upper_shadow_ratio": self.upper_shadow_ratio,
            "lower_shadow_ratio": self.lower_shadow_ratio,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class KLineInfo:
    """Fused recognition of one candle.

    Attributes
    ----------
    boundaries : Boundaries
        Full/body/shadow rectangles in image coordinates.
    color : ColorClassification
        Color class and its confidence.
    structure : StructureMetrics
        Heights, pattern and structure confidence.
    confidence : float
        Weighted fusion of color and structure confidence.
    created_at : datetime
        UTC creation time; ignored by ``==`` so repeated runs compare equal.
    """

    boundaries: Boundaries
    color: ColorClassification
    structure: StructureMetrics
    confidence: float
    created_at: datetime = field(default_factory=_utcnow, compare=False)

    @property
    def color_confidence(self) -> float:
        return self.color.confidence

    @property
    def structure_confidence(self) -> float:
        return self.structure.confidence

    @property
    def pattern_type(self) -> PatternType:
        return self.structure.pattern_type

    @property
    def is_bullish(self) -> bool:
        return self.color.color_class is ColorClass.BULLISH

    @property
    def is_bearish(self) -> bool:
        return self.color.color_class is ColorClass.BEARISH

    @property
    def high_y(self) -> int | None:
        # pixel row of the candle high (screen y grows downwards)
        full = self.boundaries.full
        return full.top if full is not None else None

    @property
    def low_y(self) -> int | None:
        full = self.boundaries.full
        return full.bottom - 1 if full is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "boundaries": self.boundaries.to_dict(),
            "color": self.color.to_dict(),
            "structure": self.structure.to_dict(),
            "confidence": self.confidence,
            "high_y": self.high_y,
            "low_y": self.low_y,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class RecognitionResult:
    """Outcome of recognizing one region.

    ``kline`` is set on success and also on validation failures, where it is
    kept for diagnostics.
    """

    ok: bool
    region: Region | None
    kline: KLineInfo | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    validation_errors: tuple[str, ...] = ()
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "region": _region_dict(self.region),
            "kline": self.kline.to_dict() if self.kline is not None else None,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "validation_errors": list(self.validation_errors),
            "elapsed_ms": self.elapsed_ms,
        }
