# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for platform presets and resolutions."""

import pytest

from browserrecorder.core.presets import (
    PlatformPreset,
    Resolution,
    even,
    parse_preset,
    parse_resolution,
    preset_dimensions,
)
from browserrecorder.exceptions import InvalidRequestError


class TestPresetDimensions:
    """Tests for preset_dimensions()."""

    def test_1080p_presets(self):
        """Test the 1080p preset sizes."""
        assert preset_dimensions(PlatformPreset.SQUARE, Resolution.P1080) == (1080, 1080)
        assert preset_dimensions(PlatformPreset.VERTICAL_9_16, Resolution.P1080) == (1080, 1920)
        assert preset_dimensions(PlatformPreset.PORTRAIT_4_5, Resolution.P1080) == (1080, 1350)
        assert preset_dimensions(PlatformPreset.WIDESCREEN_16_9, Resolution.P1080) == (1920, 1080)
        assert preset_dimensions(PlatformPreset.ULTRAWIDE_21_9, Resolution.P1080) == (2520, 1080)

    def test_all_dimensions_even(self):
        """Test every preset/resolution combination gives even sides."""
        for preset in PlatformPreset:
            for resolution in Resolution:
                width, height = preset_dimensions(preset, resolution)
                assert width % 2 == 0
                assert height % 2 == 0

    def test_short_side_matches_resolution(self):
        """Test the short side matches the resolution."""
        for preset in PlatformPreset:
            width, height = preset_dimensions(preset, Resolution.P720)
            assert min(width, height) == 720

    def test_aspect_ratio_notation(self):
        """Test presets expose their aspect ratio."""
        assert PlatformPreset.VERTICAL_9_16.aspect_ratio == "9:16"
        assert PlatformPreset.SQUARE.aspect_ratio == "1:1"


class TestParsing:
    """Tests for parse_preset() and parse_resolution()."""

    def test_parse_preset_case_insensitive(self):
        """Test preset names parse regardless of case."""
        assert parse_preset("square") is PlatformPreset.SQUARE
        assert parse_preset(" vertical_9_16 ") is PlatformPreset.VERTICAL_9_16
        assert parse_preset(PlatformPreset.SQUARE) is PlatformPreset.SQUARE

    def test_parse_preset_unknown(self):
        """Test an unknown preset name is rejected."""
        with pytest.raises(InvalidRequestError, match="Unknown platform preset"):
            parse_preset("TIKTOK_HD")

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1080p", Resolution.P1080),
            ("1080", Resolution.P1080),
            (720, Resolution.P720),
            ("4K", Resolution.P2160),
            ("hd", Resolution.P720),
        ],
    )
    def test_parse_resolution(self, value, expected):
        """Test resolution names parse."""
        assert parse_resolution(value) is expected

    def test_parse_resolution_unknown(self):
        """Test an unknown resolution is rejected."""
        with pytest.raises(InvalidRequestError, match="Unknown resolution"):
            parse_resolution("999p")


class TestEven:
    """Tests for even()."""

    def test_rounds_down(self):
        """Test sizes are rounded down to even."""
        assert even(1081) == 1080
        assert even(1080) == 1080
        assert even(607.5) == 606

    def test_minimum(self):
        """Test sizes never drop below the minimum."""
        assert even(1) == 2
