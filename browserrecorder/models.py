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

"""
Pydantic models for recording requests and results.

This module defines the value objects exchanged with the HTTP layer and the
batch coordinator:
- RecordingRequest: validated, immutable description of one recording
- RecordingResult: outcome of one recording session
- BatchOptions / BatchEntry / BatchResult: multi-preset recordings

Requests are normally built with RecordingRequest.build(), which applies
configuration defaults, clamps the duration and turns validation failures
into InvalidRequestError.

Example:
    >>> request = RecordingRequest.build("https://example.com", 5)
    >>> request.duration_seconds
    5
    >>> RecordingRequest.build("https://example.com", 500).duration_seconds
    60
"""

from __future__ import annotations

from enum import Enum
from math import gcd
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from browserrecorder.config import DURATION_CEILING, DURATION_FLOOR, RecorderConfig
from browserrecorder.core.presets import (
    PlatformPreset,
    Resolution,
    even,
    parse_preset,
    parse_resolution,
    preset_dimensions,
)
from browserrecorder.core.transcode import QualityProfile
from browserrecorder.exceptions import InvalidRequestError


class SessionOutcome(str, Enum):
    """Terminal (or pending) outcome of a recording session."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED_NO_CAPTURE = "failed_no_capture"
    FAILED_TRANSCODE = "failed_transcode"
    FAILED_FATAL = "failed_fatal"


def _coerce_duration(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("duration must be an integer number of seconds")
    if isinstance(value, float):
        value = int(value)
    elif isinstance(value, str):
        try:
            value = int(float(value.strip()))
        except ValueError:
            raise ValueError(f"duration must be an integer number of seconds, got '{value}'")
    if not isinstance(value, int):
        raise ValueError("duration must be an integer number of seconds")
    return max(DURATION_FLOOR, min(DURATION_CEILING, value))


def _parse_quality(value: Union[str, QualityProfile]) -> QualityProfile:
    if isinstance(value, QualityProfile):
        return value
    return QualityProfile(str(value).strip().lower())


def aspect_ratio_of(width: int, height: int) -> str:
    """Reduced "W:H" notation for a frame size."""
    divisor = gcd(width, height) or 1
    return f"{width // divisor}:{height // divisor}"


class Dimensions(BaseModel):
    """Viewport and output frame size in pixels (always even)."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(..., gt=0, le=7680, description="Width in pixels")
    height: int = Field(..., gt=0, le=7680, description="Height in pixels")

    @field_validator("width", "height")
    @classmethod
    def _even(cls, value: int) -> int:
        return even(value)


class RecordingRequest(BaseModel):
    """
    Request to record a URL for a fixed duration.

    Attributes:
        target_url: Absolute http(s) URL to record
        duration_seconds: Recording length, clamped to [1, 60]
        quality: Transcode quality profile
        dimensions: Viewport and output frame size
        fps: Output frame rate
        aspect_ratio: Output display aspect ratio ("W:H")
        platform_preset: Preset the dimensions were derived from
        resolution: Resolution class used with the preset
        speed: Optional animation speed forwarded to the page as ?speed=

    Example:
        >>> request = RecordingRequest(
        ...     target_url="https://example.com",
        ...     duration_seconds=5,
        ...     dimensions=Dimensions(width=1280, height=720),
        ... )
    """

    model_config = ConfigDict(frozen=True)

    target_url: str = Field(..., description="Absolute http(s) URL")
    duration_seconds: int = Field(10, description="Recording duration in seconds")
    quality: QualityProfile = Field(QualityProfile.BALANCED, description="Quality profile")
    dimensions: Dimensions = Field(
        default_factory=lambda: Dimensions(width=1280, height=720),
        description="Viewport and output size",
    )
    fps: int = Field(30, ge=1, le=60, description="Output frame rate")
    aspect_ratio: Optional[str] = Field(None, description="Display aspect ratio")
    platform_preset: Optional[PlatformPreset] = Field(None, description="Presentation preset")
    resolution: Optional[Resolution] = Field(None, description="Resolution class")
    speed: Optional[str] = Field(None, description="Page animation speed parameter")

    @model_validator(mode="before")
    @classmethod
    def _apply_preset_and_speed(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        preset = data.get("platform_preset")
        if preset is not None:
            preset = parse_preset(preset)
            resolution = parse_resolution(data.get("resolution") or Resolution.P1080)
            width, height = preset_dimensions(preset, resolution)
            data["platform_preset"] = preset
            data["resolution"] = resolution
            data["dimensions"] = {"width": width, "height": height}
            data["aspect_ratio"] = preset.aspect_ratio
        elif data.get("resolution") is not None:
            data["resolution"] = parse_resolution(data["resolution"])

        if data.get("aspect_ratio") is None:
            dims = data.get("dimensions") or {"width": 1280, "height": 720}
            if isinstance(dims, Dimensions):
                data["aspect_ratio"] = aspect_ratio_of(dims.width, dims.height)
            elif isinstance(dims, dict) and dims.get("width") and dims.get("height"):
                data["aspect_ratio"] = aspect_ratio_of(even(dims["width"]), even(dims["height"]))

        speed = data.get("speed")
        url = data.get("target_url")
        if speed not in (None, "") and isinstance(url, str) and "speed=" not in url:
            separator = "&" if "?" in url else "?"
            data["target_url"] = f"{url}{separator}speed={speed}"
        return data

    @field_validator("target_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        parsed = urlparse(value.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"URL must be an absolute http(s) URL, got '{value}'")
        return value.strip()

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def _clamp_duration(cls, value: Any) -> int:
        return _coerce_duration(value)

    @property
    def width(self) -> int:
        return self.dimensions.width

    @property
    def height(self) -> int:
        return self.dimensions.height

    @classmethod
    def build(
        cls,
        url: str,
        duration: Optional[Union[int, str]] = None,
        *,
        quality: Optional[Union[str, QualityProfile]] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        fps: Optional[int] = None,
        aspect_ratio: Optional[str] = None,
        platform_preset: Optional[Union[str, PlatformPreset]] = None,
        resolution: Optional[Union[str, Resolution]] = None,
        speed: Optional[str] = None,
        config: Optional[RecorderConfig] = None,
    ) -> "RecordingRequest":
        """
        Build a request from loose inputs, applying configuration defaults.

        Raises:
            InvalidRequestError: If the URL, duration, quality or preset is invalid
        """
        config = config or RecorderConfig()
        try:
            seconds = _coerce_duration(config.default_duration if duration is None else duration)
            data: Dict[str, Any] = {
                "target_url": url,
                "duration_seconds": config.clamp_duration(seconds),
                "quality": _parse_quality(quality or config.default_quality),
                "dimensions": {
                    "width": width or config.default_width,
                    "height": height or config.default_height,
                },
                "fps": fps or config.default_fps,
                "aspect_ratio": aspect_ratio,
                "platform_preset": platform_preset,
                "resolution": resolution,
                "speed": speed,
            }
            return cls(**data)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise InvalidRequestError(f"Invalid recording request: {messages}") from e
        except ValueError as e:
            raise InvalidRequestError(f"Invalid recording request: {e}") from e


class VideoDescriptor(BaseModel):
    """Descriptor of a finished delivery file."""

    filename: str
    size: int
    width: int
    height: int
    fps: int
    duration: int
    aspect_ratio: Optional[str] = None


class RecordingResult(BaseModel):
    """
    Outcome of one recording session.

    Every result, including failed ones, references the session's trace and
    metrics files so the failure can be diagnosed.
    """

    session_id: str = Field(..., description="Session identifier")
    file_name: Optional[str] = Field(None, description="Delivery file name")
    file_path: Optional[str] = Field(None, description="Absolute delivery file path")
    log_file: Optional[str] = Field(None, description="Trace log path")
    metrics_file: Optional[str] = Field(None, description="Metrics log path")
    enhanced: bool = Field(False, description="Transcoder produced the delivery file")
    degraded: bool = Field(False, description="Raw capture delivered unenhanced")
    width: int = 0
    height: int = 0
    fps: int = 0
    duration: int = 0
    quality: Optional[QualityProfile] = None
    size: int = 0
    aspect_ratio: Optional[str] = None
    platform_preset: Optional[PlatformPreset] = None
    outcome: SessionOutcome = SessionOutcome.PENDING
    error: Optional[str] = None
    batch_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == SessionOutcome.SUCCEEDED

    def video_descriptor(self) -> Optional[VideoDescriptor]:
        """Descriptor of the delivery file, None when nothing was delivered."""
        if not self.file_name or not self.succeeded:
            return None
        return VideoDescriptor(
            filename=self.file_name,
            size=self.size,
            width=self.width,
            height=self.height,
            fps=self.fps,
            duration=self.duration,
            aspect_ratio=self.aspect_ratio,
        )

    def to_response(self) -> Dict[str, Any]:
        """camelCase payload for the HTTP layer."""
        payload: Dict[str, Any] = {
            "fileName": self.file_name,
            "logFile": self.log_file,
            "metricsFile": self.metrics_file,
            "enhanced": self.enhanced,
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
            "duration": self.duration,
            "quality": self.quality.value if self.quality else None,
            "size": self.size,
        }
        if self.error:
            payload["error"] = self.error
        return payload


class BatchOptions(BaseModel):
    """Options shared by every preset of a batch."""

    resolution: Resolution = Field(Resolution.P1080, description="Resolution class")
    duration_seconds: Optional[int] = Field(None, description="Duration for every preset")
    quality: Optional[QualityProfile] = Field(None, description="Quality profile")
    fps: Optional[int] = Field(None, ge=1, le=60, description="Output frame rate")
    speed: Optional[str] = Field(None, description="Page animation speed parameter")

    @field_validator("resolution", mode="before")
    @classmethod
    def _parse_resolution(cls, value: Any) -> Resolution:
        return parse_resolution(value)


class BatchEntry(BaseModel):
    """Outcome of one preset in a batch."""

    preset: str
    success: bool
    video: Optional[VideoDescriptor] = None
    error: Optional[str] = None
    result: Optional[RecordingResult] = None


class BatchResult(BaseModel):
    """Ordered outcomes of a multi-preset recording."""

    batch_id: str
    url: str
    entries: List[BatchEntry] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for entry in self.entries if entry.success)

    @property
    def failed(self) -> int:
        return len(self.entries) - self.succeeded


class RecordingFile(BaseModel):
    """A finished recording in the output directory."""

    filename: str
    size: int
    modified: float
