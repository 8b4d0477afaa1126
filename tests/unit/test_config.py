"""
Unit tests for recognition configuration.
"""

import json
from dataclasses import FrozenInstanceError, replace

import pytest

from kline_recognizer.config import (
    DEFAULT_CONFIG,
    ColorConfig,
    PreprocessConfig,
    RecognitionConfig,
    StructureConfig,
)
from kline_recognizer.errors import ConfigError


class TestDefaults:
    """Test default thresholds."""

    def test_top_level_defaults(self):
        cfg = RecognitionConfig()
        assert cfg.min_confidence == 0.6
        assert cfg.structure_tolerance == 5
        assert cfg.color_weight == 0.4
        assert cfg == DEFAULT_CONFIG

    def test_section_defaults(self):
        cfg = RecognitionConfig()
        assert cfg.preprocess.blur_kernel == 3
        assert cfg.preprocess.morph_operation == "close"
        assert (cfg.contours.min_area, cfg.contours.max_area) == (100, 10000)
        assert cfg.region.max_regions == 100
        assert (cfg.color.red_hue_min, cfg.color.red_hue_max) == (170, 10)
        assert cfg.color.polarity == "green_up"
        assert cfg.structure.doji_body_ratio == 0.1
        assert cfg.parallel.threshold == 5
        assert cfg.post.apply_correction is False

    def test_frozen(self):
        with pytest.raises(FrozenInstanceError):
            RecognitionConfig().min_confidence = 0.1

    def test_with_color(self):
        cfg = RecognitionConfig().with_color(ColorConfig(polarity="red_up"))
        assert cfg.color.polarity == "red_up"
        assert cfg.structure == RecognitionConfig().structure


class TestValidation:
    """Test that impossible values are rejected on construction."""

    @pytest.mark.parametrize("kernel", [0, 2, 4])
    def test_blur_kernel_must_be_odd(self, kernel):
        with pytest.raises(ConfigError):
            PreprocessConfig(blur_kernel=kernel)

    def test_unknown_morph_operation(self):
        with pytest.raises(ConfigError):
            PreprocessConfig(morph_operation="tophat")

    def test_bad_polarity(self):
        with pytest.raises(ConfigError):
            ColorConfig(polarity="blue_up")

    def test_hue_out_of_range(self):
        with pytest.raises(ConfigError):
            ColorConfig(red_hue_min=180)

    def test_structure_ratios(self):
        with pytest.raises(ConfigError):
            StructureConfig(doji_body_ratio=1.5)
        with pytest.raises(ConfigError):
            StructureConfig(min_body_ratio=0.9, max_body_ratio=0.5)

    def test_top_level_ratios(self):
        with pytest.raises(ConfigError):
            RecognitionConfig(min_confidence=1.2)
        with pytest.raises(ConfigError):
            RecognitionConfig(color_weight=-0.1)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            RecognitionConfig(structure_tolerance=-1)


class TestSerialization:
    """Test dict/JSON round trips."""

    def test_dict_round_trip(self):
        cfg = replace(RecognitionConfig(min_confidence=0.7), color=ColorConfig(hue_tolerance=20))
        assert RecognitionConfig.from_dict(cfg.to_dict()) == cfg

    def test_partial_dict_keeps_defaults(self):
        cfg = RecognitionConfig.from_dict({"color": {"polarity": "red_up"}, "min_confidence": 0.5})
        assert cfg.color.polarity == "red_up"
        assert cfg.color.hue_tolerance == 15
        assert cfg.min_confidence == 0.5

    def test_unknown_top_level_key(self):
        with pytest.raises(ConfigError, match="Unknown config key"):
            RecognitionConfig.from_dict({"threshold": 1})

    def test_unknown_section_key(self):
        with pytest.raises(ConfigError, match="color"):
            RecognitionConfig.from_dict({"color": {"hue": 1}})

    def test_invalid_value_in_file_data(self):
        with pytest.raises(ConfigError):
            RecognitionConfig.from_dict({"preprocess": {"blur_kernel": 4}})

    @pytest.mark.parametrize(
        "data",
        [
            {"color": None},
            {"color": 5},
            {"preprocess": {"blur_kernel": "3"}},
            {"min_confidence": "0.5"},
            [1, 2],
        ],
    )
    def test_malformed_data_raises_config_error(self, data):
        with pytest.raises(ConfigError):
            RecognitionConfig.from_dict(data)

    def test_malformed_file_raises_config_error(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"color": null}', encoding="utf-8")
        with pytest.raises(ConfigError, match="color"):
            RecognitionConfig.load_from_file(path)

    def test_file_round_trip(self, tmp_path):
        path = tmp_path / "config.json"
        cfg = RecognitionConfig(min_confidence=0.45)
        cfg.save_to_file(path)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["min_confidence"] == 0.45
        assert RecognitionConfig.load_from_file(path) == cfg

    def test_to_json_is_stable(self):
        assert RecognitionConfig().to_json() == RecognitionConfig().to_json()
        assert RecognitionConfig().to_json() != RecognitionConfig(min_confidence=0.5).to_json()
