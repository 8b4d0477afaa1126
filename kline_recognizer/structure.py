from dataclasses import replace

from .config import RecognitionConfig, StructureConfig
from .types import Boundaries, PatternType, Region, StructureMetrics


def _height(r: Region | None) -> int:
    return max(r.height, 0) if r is not None else 0


def classify_pattern(
    body_ratio: float, upper_ratio: float, lower_ratio: float, cfg: StructureConfig
) -> PatternType:
    """First matching rule wins: doji, hammer, inverted hammer, normal."""
    if body_ratio < cfg.doji_body_ratio:
        return PatternType.DOJI
    if lower_ratio > cfg.hammer_shadow_ratio and body_ratio < cfg.hammer_body_ratio:
        return PatternType.HAMMER
    if upper_ratio > cfg.hammer_shadow_ratio and body_ratio < cfg.hammer_body_ratio:
        return PatternType.INVERTED_HAMMER
    return PatternType.NORMAL


def structure_confidence(
    boundaries: Boundaries, metrics: StructureMetrics, cfg: StructureConfig
) -> float:
    confidence = 0.0
    if not boundaries.is_empty:
        confidence += 0.3
    if metrics.total_height > 0 and metrics.body_height <= metrics.total_height:
        confidence += 0.3
    if cfg.min_body_ratio <= metrics.body_ratio <= cfg.max_body_ratio:
        confidence += 0.2
    if metrics.shadow_ratio <= cfg.max_shadow_ratio:
        confidence += 0.2
    return max(0.0, min(1.0, confidence))


def analyze(boundaries: Boundaries, config: RecognitionConfig | None = None) -> StructureMetrics:
    """Turn boundaries into heights, a pattern and a structure confidence."""
    cfg = (config or RecognitionConfig()).structure
    metrics = StructureMetrics(
        body_height=_height(boundaries.body),
        upper_shadow_height=_height(boundaries.upper_shadow),
        lower_shadow_height=_height(boundaries.lower_shadow),
        total_height=_height(boundaries.full),
    )
    if boundaries.is_empty:
        pattern = PatternType.UNKNOWN
    else:
        pattern = classify_pattern(
            metrics.body_ratio, metrics.upper_shadow_ratio, metrics.lower_shadow_ratio, cfg
        )
    return replace(
        metrics,
        pattern_type=pattern,
        confidence=structure_confidence(boundaries, metrics, cfg),
    )
