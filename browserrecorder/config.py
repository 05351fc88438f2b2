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
Recorder configuration.

All tunables of the recording pipeline live in RecorderConfig. Values come
from keyword arguments or, through RecorderConfig.from_env(), from
environment variables prefixed with BROWSER_RECORDER_. The legacy variables
FFMPEG_PATH, HARDWARE_ACCELERATION and CHROME_PATH are honoured as fallbacks.

Example:
    >>> config = RecorderConfig.from_env()
    >>> errors = config.validate()
    >>> if errors:
    ...     raise ConfigurationError("; ".join(errors))
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

ENV_PREFIX = "BROWSER_RECORDER_"

# Absolute duration bounds; configured bounds may only narrow them.
DURATION_FLOOR = 1
DURATION_CEILING = 60

QUALITY_NAMES = ("low", "balanced", "high")
CODEC_NAMES = ("vp9", "h264")


def _cpu_count() -> int:
    return os.cpu_count() or 1


def _default_width() -> int:
    return 1920 if _cpu_count() >= 8 else 1280


def _default_height() -> int:
    return 1080 if _cpu_count() >= 8 else 720


def _default_fps() -> int:
    return 30 if _cpu_count() >= 4 else 24


def _env(name: str, default: Optional[str] = None, legacy: Optional[str] = None) -> Optional[str]:
    """Read a prefixed variable, falling back to a legacy unprefixed name."""
    value = os.environ.get(ENV_PREFIX + name)
    if value is None and legacy:
        value = os.environ.get(legacy)
    return default if value is None else value


def _env_bool(name: str, default: bool, legacy: Optional[str] = None) -> bool:
    value = _env(name, legacy=legacy)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RecorderConfig:
    """Configuration for the recording pipeline.

    Attributes:
        min_duration: Lower bound for recording duration in seconds
        max_duration: Upper bound for recording duration in seconds
        default_duration: Duration used when a request omits it
        default_quality: Quality profile used when a request omits it
        default_width: Viewport width used when a request omits it
        default_height: Viewport height used when a request omits it
        default_fps: Output frame rate used when a request omits it
        hardware_acceleration: Use GPU rendering flags and hardware encoders
        ffmpeg_path: Transcoder binary (name on PATH or absolute path)
        chrome_path: Optional browser executable overriding Playwright's
        codec: Delivery codec ("vp9" for webm, "h264" for mp4)
        storage_override: Explicit raw-capture root, skips tier probing
        cloud_scratch_root: Mount root of the cloud ephemeral SSD
        cloud_scratch_path: Scratch directory created under that mount
        ramdisk_path: Mount point of the RAM-backed volume
        ramdisk_size_mb: Size of a self-provisioned RAM volume
        provision_ramdisk: Allow the process to mount a RAM volume itself
        output_dir: Directory for finished delivery files
        log_dir: Directory for per-session trace logs
        metrics_dir: Directory for per-session metrics logs
        navigation_timeout_ms: Bound for page navigation
        settle_ms: Pause after navigation before activity starts
        activity_seconds: Length of the synthetic activity slice
        activity_interval_ms: Cadence of synthetic pointer movement
        frame_stats: Sample in-page frame rate while recording
        transcode_timeout: Bound for the transcoder process in seconds
        batch_cooldown_seconds: Pause between presets in a batch
        step_timeout_factor: Per-step deadline as a multiple of the duration
        min_step_timeout: Lower bound for any per-step deadline in seconds
        min_video_bytes: Smallest plausible raw capture size
    """

    min_duration: int = DURATION_FLOOR
    max_duration: int = DURATION_CEILING
    default_duration: int = 10
    default_quality: str = "balanced"
    default_width: int = field(default_factory=_default_width)
    default_height: int = field(default_factory=_default_height)
    default_fps: int = field(default_factory=_default_fps)

    hardware_acceleration: bool = False
    ffmpeg_path: str = "ffmpeg"
    chrome_path: Optional[str] = None
    codec: str = "vp9"

    storage_override: Optional[str] = None
    cloud_scratch_root: str = "/mnt/resource"
    cloud_scratch_path: str = "/mnt/resource/browser-recorder/temp"
    ramdisk_path: str = "/mnt/ramdisk"
    ramdisk_size_mb: int = 2048
    provision_ramdisk: bool = False

    output_dir: str = "./uploads"
    log_dir: str = "./logs"
    metrics_dir: str = "./logs/metrics"

    navigation_timeout_ms: int = 30000
    settle_ms: int = 500
    activity_seconds: float = 2.0
    activity_interval_ms: int = 300
    frame_stats: bool = True
    transcode_timeout: float = 60.0
    batch_cooldown_seconds: float = 2.0
    step_timeout_factor: float = 2.0
    min_step_timeout: float = 30.0
    min_video_bytes: int = 1024

    def clamp_duration(self, seconds: int) -> int:
        """Clamp a duration to the configured bounds."""
        low = max(self.min_duration, DURATION_FLOOR)
        high = min(self.max_duration, DURATION_CEILING)
        return max(low, min(high, seconds))

    def step_timeout(self, duration_seconds: int) -> float:
        """Deadline for a single session step."""
        return max(self.step_timeout_factor * duration_seconds, self.min_step_timeout)

    @classmethod
    def from_env(cls) -> "RecorderConfig":
        """Create RecorderConfig from environment variables.

        Environment variables (all prefixed with BROWSER_RECORDER_):
            MIN_DURATION, MAX_DURATION, DEFAULT_DURATION: Duration bounds
            DEFAULT_QUALITY: low, balanced or high
            WIDTH, HEIGHT, FPS: Default capture geometry
            HARDWARE_ACCELERATION: Enable GPU flags (legacy: HARDWARE_ACCELERATION)
            FFMPEG_PATH: Transcoder binary (legacy: FFMPEG_PATH)
            CHROME_PATH: Browser executable (legacy: CHROME_PATH)
            CODEC: vp9 or h264
            STORAGE_ROOT: Raw capture root override
            CLOUD_SCRATCH_ROOT, CLOUD_SCRATCH, RAMDISK_PATH, RAMDISK_SIZE_MB, PROVISION_RAMDISK
            OUTPUT_DIR, LOG_DIR, METRICS_DIR: Output locations
            NAVIGATION_TIMEOUT_MS, ACTIVITY_SECONDS, ACTIVITY_INTERVAL_MS
            FRAME_STATS, TRANSCODE_TIMEOUT, BATCH_COOLDOWN
            STEP_TIMEOUT_FACTOR, MIN_STEP_TIMEOUT, MIN_VIDEO_BYTES

        Returns:
            RecorderConfig with values from environment
        """
        defaults = cls()
        return cls(
            min_duration=int(_env("MIN_DURATION", str(defaults.min_duration))),
            max_duration=int(_env("MAX_DURATION", str(defaults.max_duration))),
            default_duration=int(_env("DEFAULT_DURATION", str(defaults.default_duration))),
            default_quality=_env("DEFAULT_QUALITY", defaults.default_quality).lower(),
            default_width=int(_env("WIDTH", str(defaults.default_width))),
            default_height=int(_env("HEIGHT", str(defaults.default_height))),
            default_fps=int(_env("FPS", str(defaults.default_fps))),
            hardware_acceleration=_env_bool(
                "HARDWARE_ACCELERATION", False, legacy="HARDWARE_ACCELERATION"
            ),
            ffmpeg_path=_env("FFMPEG_PATH", defaults.ffmpeg_path, legacy="FFMPEG_PATH"),
            chrome_path=_env("CHROME_PATH", None, legacy="CHROME_PATH"),
            codec=_env("CODEC", defaults.codec).lower(),
            storage_override=_env("STORAGE_ROOT"),
            cloud_scratch_root=_env("CLOUD_SCRATCH_ROOT", defaults.cloud_scratch_root),
            cloud_scratch_path=_env("CLOUD_SCRATCH", defaults.cloud_scratch_path),
            ramdisk_path=_env("RAMDISK_PATH", defaults.ramdisk_path),
            ramdisk_size_mb=int(_env("RAMDISK_SIZE_MB", str(defaults.ramdisk_size_mb))),
            provision_ramdisk=_env_bool("PROVISION_RAMDISK", False),
            output_dir=_env("OUTPUT_DIR", defaults.output_dir),
            log_dir=_env("LOG_DIR", defaults.log_dir),
            metrics_dir=_env("METRICS_DIR", defaults.metrics_dir),
            navigation_timeout_ms=int(
                _env("NAVIGATION_TIMEOUT_MS", str(defaults.navigation_timeout_ms))
            ),
            activity_seconds=float(_env("ACTIVITY_SECONDS", str(defaults.activity_seconds))),
            activity_interval_ms=int(
                _env("ACTIVITY_INTERVAL_MS", str(defaults.activity_interval_ms))
            ),
            frame_stats=_env_bool("FRAME_STATS", True),
            transcode_timeout=float(_env("TRANSCODE_TIMEOUT", str(defaults.transcode_timeout))),
            batch_cooldown_seconds=float(
                _env("BATCH_COOLDOWN", str(defaults.batch_cooldown_seconds))
            ),
            step_timeout_factor=float(
                _env("STEP_TIMEOUT_FACTOR", str(defaults.step_timeout_factor))
            ),
            min_step_timeout=float(_env("MIN_STEP_TIMEOUT", str(defaults.min_step_timeout))),
            min_video_bytes=int(_env("MIN_VIDEO_BYTES", str(defaults.min_video_bytes))),
        )

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not DURATION_FLOOR <= self.min_duration <= DURATION_CEILING:
            errors.append(f"min_duration must be between {DURATION_FLOOR} and {DURATION_CEILING}")

        if not DURATION_FLOOR <= self.max_duration <= DURATION_CEILING:
            errors.append(f"max_duration must be between {DURATION_FLOOR} and {DURATION_CEILING}")

        if self.min_duration > self.max_duration:
            errors.append("min_duration must not exceed max_duration")

        if self.default_quality not in QUALITY_NAMES:
            errors.append(f"default_quality must be one of {', '.join(QUALITY_NAMES)}")

        if self.codec not in CODEC_NAMES:
            errors.append(f"codec must be one of {', '.join(CODEC_NAMES)}")

        if self.default_width <= 0 or self.default_height <= 0:
            errors.append("default_width and default_height must be positive")

        if not 1 <= self.default_fps <= 60:
            errors.append("default_fps must be between 1 and 60")

        if self.ramdisk_size_mb <= 0:
            errors.append("ramdisk_size_mb must be positive")

        if self.step_timeout_factor < 1.0:
            errors.append("step_timeout_factor must be at least 1.0")

        return errors
