"""
Unit tests for the recognition data model.
"""

import json
from dataclasses import FrozenInstanceError

import pytest

from kline_recognizer.types import (
    HSV,
    Boundaries,
    ColorClass,
    ColorClassification,
    ErrorKind,
    HueFamily,
    KLineInfo,
    PatternType,
    RecognitionResult,
    Region,
    StructureMetrics,
)


def _kline(**overrides) -> KLineInfo:
    full = Region(10, 20, 8, 100)
    values = dict(
        boundaries=Boundaries(
            full=full,
            body=Region(10, 50, 8, 40),
            upper_shadow=Region(10, 20, 8, 30),
            lower_shadow=Region(10, 90, 8, 30),
            contour_count=2,
            body_inferred=True,
        ),
        color=ColorClassification(
            ColorClass.BULLISH, HSV(60.0, 200.0, 180.0), 0.9, HueFamily.GREEN
        ),
        structure=StructureMetrics(40, 30, 30, 100, PatternType.NORMAL, 1.0),
        confidence=0.96,
    )
    values.update(overrides)
    return KLineInfo(**values)


class TestRegion:
    """Test Region geometry helpers."""

    def test_edges_are_exclusive(self):
        r = Region(10, 5, 4, 3)
        assert (r.left, r.top, r.right, r.bottom) == (10, 5, 14, 8)
        assert r.area == 12
        assert r.center_y == 6.5

    def test_empty_regions(self):
        assert Region(0, 0, 0, 10).is_empty
        assert Region(0, 0, 10, -1).is_empty
        assert Region(0, 0, -3, 4).area == 0
        assert not Region(0, 0, 1, 1).is_empty

    def test_contains(self):
        outer = Region(0, 0, 10, 10)
        assert outer.contains(Region(2, 2, 8, 8))
        assert outer.contains(outer)
        assert not outer.contains(Region(2, 2, 9, 8))

    def test_intersect(self):
        a = Region(0, 0, 10, 10)
        assert a.intersect(Region(5, 5, 10, 10)) == Region(5, 5, 5, 5)
        # touching edges share no pixel
        assert a.intersect(Region(10, 0, 5, 5)) is None

    def test_translate_and_xyxy(self):
        r = Region(1, 2, 3, 4).translate(10, 20)
        assert r == Region(11, 22, 3, 4)
        assert r.to_xyxy() == (11, 22, 14, 26)
        assert Region.from_xyxy(*r.to_xyxy()) == r

    def test_parse(self):
        assert Region.parse("1, 2,3 ,4") == Region(1, 2, 3, 4)
        with pytest.raises(ValueError):
            Region.parse("1,2,3")
        with pytest.raises(ValueError):
            Region.parse("a,b,c,d")

    def test_frozen(self):
        with pytest.raises(FrozenInstanceError):
            Region(0, 0, 1, 1).x = 5


class TestStructureMetrics:
    """Test derived structure ratios."""

    def test_ratios(self):
        m = StructureMetrics(40, 30, 30, 100)
        assert m.body_ratio == pytest.approx(0.4)
        assert m.upper_shadow_ratio == pytest.approx(0.3)
        assert m.lower_shadow_ratio == pytest.approx(0.3)
        assert m.shadow_ratio == pytest.approx(0.6)
        assert m.height_discrepancy == 0

    def test_zero_total_height_does_not_divide_by_zero(self):
        m = StructureMetrics(0, 0, 0, 0)
        assert m.body_ratio == 0.0
        assert m.shadow_ratio == 0.0

    def test_bald_and_long_shadows(self):
        m = StructureMetrics(30, 0, 70, 100)
        assert m.is_bald_top
        assert not m.is_bald_bottom
        assert m.has_long_lower_shadow
        assert not m.has_long_upper_shadow

    def test_clarity_score(self):
        assert StructureMetrics(40, 30, 30, 100).clarity_score == pytest.approx(1.0)
        # body only, no shadows, body ratio 1.0
        assert StructureMetrics(100, 0, 0, 100).clarity_score == pytest.approx(0.5)
        assert StructureMetrics(0, 0, 0, 0).clarity_score == pytest.approx(0.2)


class TestKLineInfo:
    """Test the fused recognition record."""

    def test_accessors(self):
        info = _kline()
        assert info.is_bullish
        assert not info.is_bearish
        assert info.pattern_type is PatternType.NORMAL
        assert info.color_confidence == 0.9
        assert info.structure_confidence == 1.0
        assert info.high_y == 20
        assert info.low_y == 119

    def test_high_low_without_boundaries(self):
        info = _kline(boundaries=Boundaries())
        assert info.high_y is None
        assert info.low_y is None

    def test_equality_ignores_creation_time(self):
        a = _kline()
        b = _kline()
        assert a == b
        assert a != _kline(confidence=0.5)

    def test_to_dict_is_json_serializable(self):
        data = _kline().to_dict()
        text = json.dumps(data)
        assert '"color_class": "bullish"' in text
        assert data["boundaries"]["body"] == {"x": 10, "y": 50, "width": 8, "height": 40}
        assert data["structure"]["pattern_type"] == "normal"


class TestRecognitionResult:
    """Test result serialization."""

    def test_failure_to_dict(self):
        result = RecognitionResult(
            ok=False,
            region=Region(0, 0, 5, 5),
            error="boom",
            error_kind=ErrorKind.STAGE_FAILURE,
        )
        data = result.to_dict()
        assert data["ok"] is False
        assert data["kline"] is None
        assert data["error_kind"] == "stage_failure"
        assert data["validation_errors"] == []

    def test_success_to_dict(self):
        result = RecognitionResult(ok=True, region=Region(0, 0, 5, 5), kline=_kline())
        data = json.loads(json.dumps(result.to_dict()))
        assert data["error_kind"] is None
        assert data["kline"]["confidence"] == pytest.approx(0.96)
