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
browser-recorder - Record web pages to video files.

This package drives a headless Chromium through Playwright for a fixed
duration, locates the raw capture and transcodes it with ffmpeg into a
delivery file, writing per-session trace and metrics logs along the way.
"""

__version__ = "1.0.0"
__author__ = "Firefly Software Solutions Inc"
__license__ = "Apache-2.0"

from browserrecorder.config import RecorderConfig
from browserrecorder.core.batch import BatchCoordinator
from browserrecorder.core.presets import PlatformPreset, Resolution
from browserrecorder.core.session import RecordingSession, SessionState
from browserrecorder.core.storage import StorageTier, StorageTierKind, StorageTierSelector
from browserrecorder.core.transcode import QualityProfile, VideoCodec
from browserrecorder.models import (
    BatchOptions,
    BatchResult,
    RecordingRequest,
    RecordingResult,
    SessionOutcome,
)
from browserrecorder.recorder import Recorder

__all__ = [
    # Entry point
    "Recorder",
    "RecorderConfig",
    # Sessions
    "RecordingRequest",
    "RecordingResult",
    "RecordingSession",
    "SessionOutcome",
    "SessionState",
    # Batches
    "BatchCoordinator",
    "BatchOptions",
    "BatchResult",
    "PlatformPreset",
    "Resolution",
    # Storage
    "StorageTier",
    "StorageTierKind",
    "StorageTierSelector",
    # Encoding
    "QualityProfile",
    "VideoCodec",
]
