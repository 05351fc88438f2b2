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
Process-level entry point for recording.

The Recorder owns the state that lives for the whole process: the resolved
storage tier and the telemetry writer. Request handlers and the CLI create
one Recorder, start it once and call record() or record_batch() per request.

Example:
    >>> async with Recorder(RecorderConfig.from_env()) as recorder:
    ...     result = await recorder.record("https://example.com", 5)
    ...     print(result.to_response())
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

from browserrecorder.config import RecorderConfig
from browserrecorder.core.batch import BatchCoordinator
from browserrecorder.core.discovery import list_captures
from browserrecorder.core.presets import PlatformPreset
from browserrecorder.core.session import RecordingSession
from browserrecorder.core.storage import StorageTier, StorageTierSelector
from browserrecorder.models import (
    BatchOptions,
    BatchResult,
    RecordingFile,
    RecordingRequest,
    RecordingResult,
)
from browserrecorder.observability.telemetry import LatestMetrics, SessionTelemetry, latest_metrics
from browserrecorder.utils.logger import logger


class Recorder:
    """
    Records URLs to video files.

    Attributes:
        config: Recorder configuration
        selector: Storage tier selector, resolved once by start()
        telemetry: Per-session telemetry writer
    """

    def __init__(
        self,
        config: Optional[RecorderConfig] = None,
        selector: Optional[StorageTierSelector] = None,
    ) -> None:
        self.config = config or RecorderConfig()
        self.selector = selector or StorageTierSelector(self.config)
        self.telemetry = SessionTelemetry(self.config.log_dir, self.config.metrics_dir)
        self._tier: Optional[StorageTier] = None

    @property
    def tier(self) -> Optional[StorageTier]:
        return self._tier

    @property
    def output_dir(self) -> Path:
        return Path(self.config.output_dir).resolve()

    async def start(self) -> StorageTier:
        """
        Resolve the storage tier and create the output directories.

        Raises:
            StorageUnavailableError: If no storage tier is writable
        """
        if self._tier is None:
            self._tier = self.selector.resolve()
            self.output_dir.mkdir(parents=True, exist_ok=True)
            logger.info(
                f"Recorder ready (storage={self._tier.kind.value}, output={self.output_dir})"
            )
        return self._tier

    async def record(self, url: str, duration: Optional[Union[int, str]] = None, **options: Any) -> RecordingResult:
        """
        Record a URL.

        Args:
            url: Page to record
            duration: Seconds to record, clamped to the configured bounds
            **options: quality, width, height, fps, aspect_ratio,
                platform_preset, resolution, speed

        Raises:
            InvalidRequestError: If the request is invalid
            EngineUnavailableError: If the browser cannot be launched
            StorageUnavailableError: If no storage is writable
        """
        request = RecordingRequest.build(url, duration, config=self.config, **options)
        return await self.record_request(request)

    async def record_request(
        self, request: RecordingRequest, batch_id: Optional[str] = None
    ) -> RecordingResult:
        tier = await self.start()
        session = RecordingSession(
            request, tier, config=self.config, telemetry=self.telemetry, batch_id=batch_id
        )
        return await session.run()

    async def record_batch(
        self,
        url: str,
        presets: Sequence[Union[str, PlatformPreset]],
        options: Optional[BatchOptions] = None,
    ) -> BatchResult:
        """Record url once per preset, sequentially."""
        tier = await self.start()
        coordinator = BatchCoordinator(tier, config=self.config, telemetry=self.telemetry)
        return await coordinator.record_batch(url, presets, options)

    def list_recordings(self) -> List[RecordingFile]:
        """Finished recordings in the output directory, newest first."""
        files = [
            RecordingFile(filename=c.path.name, size=c.size, modified=c.mtime)
            for c in list_captures(self.output_dir)
        ]
        return sorted(files, key=lambda f: f.modified, reverse=True)

    def latest_metrics(self) -> Optional[LatestMetrics]:
        return latest_metrics(self.config.metrics_dir)

    async def shutdown(self) -> None:
        """Release a self-provisioned RAM volume, if any."""
        if self._tier is not None:
            self.selector.release()
            self._tier = None

    async def __aenter__(self) -> "Recorder":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()
