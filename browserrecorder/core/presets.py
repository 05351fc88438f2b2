# Copyright 2026 Firefly Software Solutions Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Presentation presets: aspect ratio and resolution combinations.

A preset fixes the aspect ratio, a resolution fixes the length of the short
side. Together they give exact, even pixel dimensions:

    >>> preset_dimensions(PlatformPreset.VERTICAL_9_16, Resolution.P1080)
    (1080, 1920)
"""

from __future__ import annotations

from enum import Enum
from typing import Tuple, Union

from browserrecorder.exceptions import InvalidRequestError


class PlatformPreset(str, Enum):
    """Supported presentation presets."""

    SQUARE = "SQUARE"                    # 1:1 feeds
    VERTICAL_9_16 = "VERTICAL_9_16"      # stories, shorts, reels
    PORTRAIT_4_5 = "PORTRAIT_4_5"        # portrait feed posts
    WIDESCREEN_16_9 = "WIDESCREEN_16_9"  # standard landscape video
    ULTRAWIDE_21_9 = "ULTRAWIDE_21_9"    # cinematic banners

    @property
    def ratio(self) -> Tuple[int, int]:
        """Aspect ratio as (width, height) terms."""
        return _RATIOS[self]

    @property
    def aspect_ratio(self) -> str:
        """Aspect ratio in "W:H" notation."""
        w, h = self.ratio
        return f"{w}:{h}"


class Resolution(str, Enum):
    """Resolution classes, named after the short side in pixels."""

    P480 = "480p"
    P720 = "720p"
    P1080 = "1080p"
    P1440 = "1440p"
    P2160 = "2160p"

    @property
    def short_side(self) -> int:
        return int(self.value[:-1])


_RATIOS = {
    PlatformPreset.SQUARE: (1, 1),
    PlatformPreset.VERTICAL_9_16: (9, 16),
    PlatformPreset.PORTRAIT_4_5: (4, 5),
    PlatformPreset.WIDESCREEN_16_9: (16, 9),
    PlatformPreset.ULTRAWIDE_21_9: (21, 9),
}

_RESOLUTION_ALIASES = {
    "4k": Resolution.P2160,
    "uhd": Resolution.P2160,
    "fhd": Resolution.P1080,
    "hd": Resolution.P720,
    "sd": Resolution.P480,
}


def even(value: float) -> int:
    """Round down to the nearest even integer (yuv420p needs even sides)."""
    return max(2, int(value) - int(value) % 2)


def parse_preset(value: Union[str, PlatformPreset]) -> PlatformPreset:
    """Parse a preset name case-insensitively.

    Raises:
        InvalidRequestError: If the name is unknown
    """
    if isinstance(value, PlatformPreset):
        return value
    try:
        return PlatformPreset(str(value).strip().upper())
    except ValueError:
        known = ", ".join(p.value for p in PlatformPreset)
        raise InvalidRequestError(f"Unknown platform preset '{value}'. Known presets: {known}")


def parse_resolution(value: Union[str, int, Resolution]) -> Resolution:
    """Parse "1080p", "1080", 1080 or an alias such as "4k".

    Raises:
        InvalidRequestError: If the resolution is unknown
    """
    if isinstance(value, Resolution):
        return value
    text = str(value).strip().lower()
    if text in _RESOLUTION_ALIASES:
        return _RESOLUTION_ALIASES[text]
    if not text.endswith("p"):
        text += "p"
    try:
        return Resolution(text)
    except ValueError:
        known = ", ".join(r.value for r in Resolution)
        raise InvalidRequestError(f"Unknown resolution '{value}'. Known resolutions: {known}")


def preset_dimensions(preset: PlatformPreset, resolution: Resolution) -> Tuple[int, int]:
    """Exact (width, height) for a preset at a resolution."""
    w, h = preset.ratio
    short = resolution.short_side
    if w >= h:
        return even(short * w / h), even(short)
    return even(short), even(short * h / w)
