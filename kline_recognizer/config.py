"""
Recognition configuration.

Every threshold used by the detectors lives here, grouped per concern.
All sections are frozen so a config can be shared by worker threads.
"""

import json
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from .errors import ConfigError

POLARITIES = ("green_up", "red_up")
MORPH_OPERATIONS = ("close", "open", "dilate", "erode")


def _check_ratio(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{name} must be within [0, 1], got {value}")


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")


def _build(section_cls, values: dict[str, Any], name: str):
    # wrongly typed values surface as TypeError from __init__ or __post_init__
    try:
        return section_cls(**values)
    except TypeError as e:
        raise ConfigError(f"invalid value in {name!r}: {e}") from e


@dataclass(frozen=True)
class PreprocessConfig:
    """Crop preprocessing and edge detection for boundary extraction."""

    blur_enabled: bool = True
    blur_kernel: int = 3
    contrast_enabled: bool = True
    contrast_factor: float = 1.2
    morph_enabled: bool = True
    morph_kernel: int = 3
    morph_operation: str = "close"
    canny_low: float = 50
    canny_high: float = 150

    def __post_init__(self):
        if self.blur_kernel < 1 or self.blur_kernel % 2 == 0:
            raise ConfigError(f"blur_kernel must be odd and >= 1, got {self.blur_kernel}")
        _check_positive("contrast_factor", self.contrast_factor)
        _check_positive("morph_kernel", self.morph_kernel)
        if self.morph_operation not in MORPH_OPERATIONS:
            raise ConfigError(
                f"morph_operation must be one of {MORPH_OPERATIONS}, got {self.morph_operation!r}"
            )
        if self.canny_low > self.canny_high:
            raise ConfigError("canny_low must not exceed canny_high")


@dataclass(frozen=True)
class ContourConfig:
    """Contour filters used inside a candle crop."""

    min_area: float = 100
    max_area: float = 10000
    max_aspect_ratio: float = 3.0
    min_compactness: float = 10.0
    max_contours: int = 10
    edge_margin: int = 5

    def __post_init__(self):
        if self.min_area > self.max_area:
            raise ConfigError("min_area must not exceed max_area")
        _check_positive("max_contours", self.max_contours)
        if self.edge_margin < 0:
            raise ConfigError("edge_margin must be >= 0")


@dataclass(frozen=True)
class RegionConfig:
    """Candidate filters for locating candles in a full chart."""

    canny_low: float = 50
    canny_high: float = 150
    min_width: int = 5
    max_width: int = 50
    min_height: int = 20
    max_height: int = 500
    max_aspect_ratio: float = 1.0
    edge_margin: int = 10
    overlap_threshold: float = 0.3
    max_regions: int = 100
    # grown around each box so the boundary stage sees background on every side
    padding: int = 10

    def __post_init__(self):
        if self.canny_low > self.canny_high:
            raise ConfigError("canny_low must not exceed canny_high")
        if self.min_width > self.max_width or self.min_height > self.max_height:
            raise ConfigError("region size bounds are inverted")
        _check_ratio("overlap_threshold", self.overlap_threshold)
        _check_positive("max_regions", self.max_regions)
        if self.edge_margin < 0 or self.padding < 0:
            raise ConfigError("edge_margin and padding must be >= 0")


@dataclass(frozen=True)
class ColorConfig:
    """HSV thresholds, OpenCV scale (H 0..180, S/V 0..255).

    A hue range with ``min > max`` wraps through 0, which is how red is
    expressed by default (170..179 and 0..10).
    """

    hue_tolerance: int = 15
    saturation_tolerance: int = 50
    value_tolerance: int = 60
    gray_threshold: int = 30
    darkness_threshold: int = 40
    red_hue_min: int = 170
    red_hue_max: int = 10
    green_hue_min: int = 50
    green_hue_max: int = 90
    # "green_up": green candles rise, red fall. "red_up" is the inverse.
    polarity: str = "green_up"

    def __post_init__(self):
        if self.polarity not in POLARITIES:
            raise ConfigError(f"polarity must be one of {POLARITIES}, got {self.polarity!r}")
        for name in ("red_hue_min", "red_hue_max", "green_hue_min", "green_hue_max"):
            value = getattr(self, name)
            if not 0 <= value < 180:
                raise ConfigError(f"{name} must be within [0, 180), got {value}")
        if self.hue_tolerance < 0 or self.hue_tolerance > 90:
            raise ConfigError("hue_tolerance must be within [0, 90]")


@dataclass(frozen=True)
class StructureConfig:
    """Body inference and pattern cutoffs, as fractions of total height."""

    body_height_ratio: float = 0.6
    min_body_width: int = 5
    doji_body_ratio: float = 0.1
    hammer_shadow_ratio: float = 0.6
    hammer_body_ratio: float = 0.3
    min_body_ratio: float = 0.1
    max_body_ratio: float = 0.8
    max_shadow_ratio: float = 0.9

    def __post_init__(self):
        for f in fields(self):
            if f.name != "min_body_width":
                _check_ratio(f.name, getattr(self, f.name))
        if self.min_body_ratio > self.max_body_ratio:
            raise ConfigError("min_body_ratio must not exceed max_body_ratio")


@dataclass(frozen=True)
class ParallelConfig:
    enabled: bool = True
    threshold: int = 5
    max_workers: int = 4
    # run color and boundary stages of one recognition on two threads
    concurrent_stages: bool = False

    def __post_init__(self):
        if self.max_workers < 1:
            raise ConfigError("max_workers must be >= 1")
        if self.threshold < 0:
            raise ConfigError("threshold must be >= 0")


@dataclass(frozen=True)
class PostProcessConfig:
    """Auto-detect post-processing switches."""

    enabled: bool = True
    filter_low_confidence: bool = True
    sort_by_x: bool = True
    apply_correction: bool = False


_SECTIONS = {
    "preprocess": PreprocessConfig,
    "contours": ContourConfig,
    "region": RegionConfig,
    "color": ColorConfig,
    "structure": StructureConfig,
    "parallel": ParallelConfig,
    "post": PostProcessConfig,
}


@dataclass(frozen=True)
class RecognitionConfig:
    """Master configuration for one recognition run."""

    min_confidence: float = 0.6
    structure_tolerance: int = 5
    color_weight: float = 0.4

    preprocess: PreprocessConfig = field(default_factory=PreprocessConfig)
    contours: ContourConfig = field(default_factory=ContourConfig)
    region: RegionConfig = field(default_factory=RegionConfig)
    color: ColorConfig = field(default_factory=ColorConfig)
    structure: StructureConfig = field(default_factory=StructureConfig)
    parallel: ParallelConfig = field(default_factory=ParallelConfig)
    post: PostProcessConfig = field(default_factory=PostProcessConfig)

    def __post_init__(self):
        _check_ratio("min_confidence", self.min_confidence)
        _check_ratio("color_weight", self.color_weight)
        if self.structure_tolerance < 0:
            raise ConfigError("structure_tolerance must be >= 0")

    def with_color(self, color: ColorConfig) -> "RecognitionConfig":
        return replace(self, color=color)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a JSON-ready dictionary."""
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecognitionConfig":
        """Build a config from a (possibly partial) dictionary.

        Missing keys keep their defaults; unknown keys raise ConfigError.
        """
        if not isinstance(data, dict):
            raise ConfigError(f"config must be a mapping, got {type(data).__name__}")
        top_level = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in top_level:
                raise ConfigError(f"Unknown config key: {key!r}")
            if key in _SECTIONS:
                if not isinstance(value, dict):
                    raise ConfigError(f"{key!r} must be a mapping, got {type(value).__name__}")
                section_cls = _SECTIONS[key]
                known = {f.name for f in fields(section_cls)}
                unknown = set(value) - known
                if unknown:
                    raise ConfigError(f"Unknown keys in {key!r}: {sorted(unknown)}")
                kwargs[key] = _build(section_cls, value, key)
            else:
                kwargs[key] = value
        return _build(cls, kwargs, "config")

    def save_to_file(self, filepath: str | Path) -> None:
        """Save configuration to a JSON file."""
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_from_file(cls, filepath: str | Path) -> "RecognitionConfig":
        """Load configuration from a JSON file."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)


DEFAULT_CONFIG = RecognitionConfig()
