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

"""FFmpeg transcode step for raw browser captures.

Turns the raw capture written by the browser into a delivery file:
- Quality profiles (low, balanced, high) for VP9/webm and H.264/mp4
- Letterboxed scaling to the requested frame size and aspect ratio
- Constant output frame rate and duration trimming
- Hardware H.264 encoders when enabled and available

The step never fails the recording. When ffmpeg is missing, exits non-zero,
times out or writes nothing, the raw capture is delivered unchanged and the
result is flagged as degraded.
"""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Union

from browserrecorder.config import RecorderConfig
from browserrecorder.exceptions import TranscodeDegradedError
from browserrecorder.utils.logger import logger


class QualityProfile(str, Enum):
    """Pre-configured quality profiles."""

    LOW = "low"              # small files, fastest encode
    BALANCED = "balanced"    # default
    HIGH = "high"            # best quality, slowest encode


class VideoCodec(str, Enum):
    """Supported delivery codecs."""

    VP9 = "vp9"     # webm, same container as the raw capture
    H264 = "h264"   # mp4, widest player support

    @property
    def extension(self) -> str:
        return ".webm" if self == VideoCodec.VP9 else ".mp4"

    @property
    def software_encoder(self) -> str:
        return "libvpx-vp9" if self == VideoCodec.VP9 else "libx264"

    def get_encoder(self, use_hw_accel: bool = False, available: Iterable[str] = ()) -> str:
        """Get ffmpeg encoder name, preferring a hardware H.264 encoder in available."""
        if use_hw_accel and self == VideoCodec.H264:
            available = set(available)
            for encoder in HW_H264_ENCODERS:
                if encoder in available:
                    return encoder
        return self.software_encoder


HW_H264_ENCODERS = ("h264_nvenc", "h264_videotoolbox", "h264_qsv")

ENCODER_LIST_TIMEOUT = 5.0

# ffmpeg path -> encoder names it reported
_encoder_cache: Dict[str, FrozenSet[str]] = {}


def parse_encoder_list(output: str) -> FrozenSet[str]:
    """Encoder names from `ffmpeg -encoders` output (second column of each row).

    Rows before the ``------`` separator are the flag legend and are skipped.
    """
    lines = output.splitlines()
    for index, line in enumerate(lines):
        if line.strip().startswith("------"):
            lines = lines[index + 1:]
            break
    names = set()
    for line in lines:
        parts = line.split()
        if len(parts) >= 2 and len(parts[0]) == 6 and parts[0][0] in "VAS":
            names.add(parts[1])
    return frozenset(names)


async def available_encoders(ffmpeg_path: str = "ffmpeg") -> FrozenSet[str]:
    """Ask ffmpeg which encoders it was built with, once per binary.

    An ffmpeg that cannot be run or does not answer reports no encoders.
    """
    if ffmpeg_path in _encoder_cache:
        return _encoder_cache[ffmpeg_path]

    try:
        process = await asyncio.create_subprocess_exec(
            ffmpeg_path, "-hide_banner", "-encoders",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        logger.debug(f"[TRANSCODE] Encoder listing failed: {e}")
        return frozenset()

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=ENCODER_LIST_TIMEOUT)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        logger.warning(f"[TRANSCODE] Encoder listing timed out after {ENCODER_LIST_TIMEOUT:.0f}s")
        return frozenset()

    encoders = parse_encoder_list(stdout.decode(errors="replace"))
    _encoder_cache[ffmpeg_path] = encoders
    return encoders


@dataclass(frozen=True)
class EncodingParams:
    """Encoder settings for one quality profile.

    Attributes:
        bitrate: Target bitrate (e.g., "2M", "2500k")
        crf: Constant Rate Factor, lower is better quality
        speed: x264 preset or libvpx deadline
        cpu_used: libvpx speed/quality trade-off (VP9 only)
    """

    bitrate: str
    crf: int
    speed: str
    cpu_used: Optional[int] = None


PROFILES: Dict[VideoCodec, Dict[QualityProfile, EncodingParams]] = {
    VideoCodec.VP9: {
        QualityProfile.LOW: EncodingParams("1M", 40, "realtime", cpu_used=8),
        QualityProfile.BALANCED: EncodingParams("2M", 33, "realtime", cpu_used=5),
        QualityProfile.HIGH: EncodingParams("4M", 30, "good", cpu_used=1),
    },
    VideoCodec.H264: {
        QualityProfile.LOW: EncodingParams("1000k", 28, "ultrafast"),
        QualityProfile.BALANCED: EncodingParams("2500k", 23, "veryfast"),
        QualityProfile.HIGH: EncodingParams("5000k", 19, "medium"),
    },
}


@dataclass(frozen=True)
class Geometry:
    """Output frame geometry and timing."""

    width: int
    height: int
    fps: int
    aspect_ratio: Optional[str] = None
    duration: Optional[int] = None

    def video_filter(self) -> str:
        """Scale into the frame preserving aspect, pad the rest, fix SAR/DAR and fps."""
        w, h = self.width, self.height
        dar = (self.aspect_ratio or f"{w}:{h}").replace(":", "/")
        return (
            f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
            f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,"
            f"setsar=1,setdar={dar},fps={self.fps}"
        )


class TranscodeStatus(str, Enum):
    ENHANCED = "enhanced"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass
class TranscodeResult:
    """Outcome of the transcode step.

    path is the encoded file, the raw copy, or (when even the copy failed) a
    zero-byte placeholder. Only a placeholder that could not be written is
    missing from disk.
    """

    path: Path
    status: TranscodeStatus
    size: int = 0
    error: Optional[str] = None

    @property
    def enhanced(self) -> bool:
        return self.status == TranscodeStatus.ENHANCED

    @property
    def degraded(self) -> bool:
        return self.status != TranscodeStatus.ENHANCED


def build_command(
    input_path: Path,
    output_path: Path,
    quality: QualityProfile,
    geometry: Geometry,
    codec: VideoCodec = VideoCodec.VP9,
    ffmpeg_path: str = "ffmpeg",
    encoder: Optional[str] = None,
) -> List[str]:
    """Build the single-pass ffmpeg command line (software encoder unless one is given)."""
    params = PROFILES[codec][quality]
    encoder = encoder or codec.software_encoder

    cmd = [ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error", "-i", str(input_path)]
    if geometry.duration:
        cmd.extend(["-t", str(geometry.duration)])

    cmd.extend(["-vf", geometry.video_filter(), "-c:v", encoder, "-b:v", params.bitrate])

    if codec == VideoCodec.VP9:
        cmd.extend([
            "-crf", str(params.crf),
            "-deadline", params.speed,
            "-cpu-used", str(params.cpu_used),
            "-row-mt", "1",
        ])
    elif encoder == "libx264":
        cmd.extend(["-crf", str(params.crf), "-preset", params.speed])

    cmd.extend(["-pix_fmt", "yuv420p", "-r", str(geometry.fps), "-an"])

    if codec == VideoCodec.H264:
        cmd.extend(["-movflags", "+faststart"])

    cmd.append(str(output_path))
    return cmd


async def _run_ffmpeg(cmd: List[str], output_path: Path, timeout: float) -> int:
    """Run ffmpeg to completion and return the output size.

    Raises:
        TranscodeDegradedError: On missing binary, non-zero exit, timeout or empty output
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise TranscodeDegradedError(f"ffmpeg could not be started: {e}") from e

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"[TRANSCODE] ffmpeg exceeded {timeout:.0f}s, killing...")
        process.kill()
        await process.wait()
        raise TranscodeDegradedError(f"ffmpeg timed out after {timeout:.0f}s")

    if process.returncode != 0:
        tail = (stderr or b"").decode(errors="replace").strip()[-500:]
        raise TranscodeDegradedError(f"ffmpeg exited with code {process.returncode}: {tail}")

    try:
        size = output_path.stat().st_size
    except OSError:
        size = 0
    if size == 0:
        raise TranscodeDegradedError("ffmpeg produced no output")
    return size


def _deliver_raw(input_path: Path, output_path: Path, reason: str) -> TranscodeResult:
    """Copy the raw capture unchanged, or leave a placeholder if even that fails."""
    target = output_path.with_suffix(input_path.suffix or output_path.suffix)
    try:
        if output_path != target and output_path.exists():
            output_path.unlink()
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(input_path, target)
        size = target.stat().st_size
    except OSError as e:
        logger.error(f"[TRANSCODE] Raw copy of {input_path} failed: {e}")
        return _placeholder(target, f"{reason}; raw copy failed: {e}")

    logger.warning(f"[TRANSCODE] Delivering raw capture unenhanced: {reason}")
    return TranscodeResult(path=target, status=TranscodeStatus.DEGRADED, size=size, error=reason)


def _placeholder(target: Path, reason: str) -> TranscodeResult:
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.touch()
    except OSError as e:
        logger.error(f"[TRANSCODE] Placeholder {target} could not be written: {e}")
        reason = f"{reason}; placeholder failed: {e}"
    return TranscodeResult(path=target, status=TranscodeStatus.FAILED, size=0, error=reason)


async def transcode(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    quality: QualityProfile,
    geometry: Geometry,
    config: Optional[RecorderConfig] = None,
) -> TranscodeResult:
    """
    Transcode a raw capture into a delivery file.

    Never raises. On any transcoder failure the raw input is copied to
    output_path with the raw container's extension and the result is
    degraded. When not even a placeholder can be written the result is
    FAILED and its path does not exist.

    Args:
        input_path: Raw capture
        output_path: Desired delivery path (extension should match the codec)
        quality: Quality profile
        geometry: Output frame size, fps, aspect ratio and duration
        config: Recorder configuration (codec, ffmpeg path, timeout)

    Returns:
        TranscodeResult describing the delivered file
    """
    config = config or RecorderConfig()
    input_path = Path(input_path)
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return _placeholder(output_path, f"Output directory unavailable: {e}")

    codec = VideoCodec(config.codec)
    encoder = codec.software_encoder
    if config.hardware_acceleration:
        encoder = codec.get_encoder(True, await available_encoders(config.ffmpeg_path))
    cmd = build_command(
        input_path,
        output_path,
        quality,
        geometry,
        codec=codec,
        ffmpeg_path=config.ffmpeg_path,
        encoder=encoder,
    )
    logger.info(
        f"[TRANSCODE] {input_path.name} -> {output_path.name} "
        f"({encoder}, {quality.value}, {geometry.width}x{geometry.height}@{geometry.fps})"
    )
    logger.debug(f"[TRANSCODE] Command: {' '.join(cmd)}")

    try:
        size = await _run_ffmpeg(cmd, output_path, config.transcode_timeout)
    except TranscodeDegradedError as e:
        return _deliver_raw(input_path, output_path, e.message or str(e))

    logger.info(f"[TRANSCODE] Encoded {output_path.name} ({size} bytes)")
    return TranscodeResult(path=output_path, status=TranscodeStatus.ENHANCED, size=size)
