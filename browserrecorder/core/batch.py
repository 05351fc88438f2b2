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
Multi-platform batch recording.

Records one URL once per platform preset. Presets run strictly one after
another with a fixed cool-down in between: each session owns a full browser
engine and writes its capture to the shared storage tier, so running them
side by side would have them compete for CPU and scratch space.

A failing preset never aborts the batch. Its entry is marked failed and the
next preset runs.

Example:
    >>> coordinator = BatchCoordinator(tier, config)
    >>> batch = await coordinator.record_batch(
    ...     "https://example.com",
    ...     ["SQUARE", "VERTICAL_9_16"],
    ...     BatchOptions(resolution="1080p", duration_seconds=5),
    ... )
    >>> [entry.video.width for entry in batch.entries if entry.success]
    [1080, 1080]
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Callable, List, Optional, Sequence, Union

from browserrecorder.config import RecorderConfig
from browserrecorder.core.presets import PlatformPreset, parse_preset
from browserrecorder.core.session import RecordingSession
from browserrecorder.core.storage import StorageTier
from browserrecorder.models import BatchEntry, BatchOptions, BatchResult, RecordingRequest
from browserrecorder.observability.telemetry import SessionTelemetry
from browserrecorder.utils.logger import logger

SessionFactory = Callable[..., RecordingSession]


class BatchCoordinator:
    """
    Runs one recording session per preset, sequentially.

    Attributes:
        storage: Storage tier shared by every session of the batch
        config: Recorder configuration
        telemetry: Telemetry writer shared by every session
    """

    def __init__(
        self,
        storage: StorageTier,
        config: Optional[RecorderConfig] = None,
        telemetry: Optional[SessionTelemetry] = None,
        session_factory: SessionFactory = RecordingSession,
    ) -> None:
        self.storage = storage
        self.config = config or RecorderConfig()
        self.telemetry = telemetry or SessionTelemetry(self.config.log_dir, self.config.metrics_dir)
        self._session_factory = session_factory

    async def _wait(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def record_batch(
        self,
        url: str,
        presets: Sequence[Union[str, PlatformPreset]],
        options: Optional[BatchOptions] = None,
    ) -> BatchResult:
        """
        Record url once per preset.

        Args:
            url: Page to record
            presets: Preset names or values, recorded in this order
            options: Resolution, duration, quality, fps and speed for every preset

        Returns:
            BatchResult with one entry per preset, in input order
        """
        options = options or BatchOptions()
        batch = BatchResult(batch_id=uuid.uuid4().hex, url=url)
        logger.info(
            f"[BATCH] {batch.batch_id}: {len(presets)} preset(s) for {url} "
            f"at {options.resolution.value}"
        )

        for index, preset in enumerate(presets):
            if index > 0:
                await self._wait(self.config.batch_cooldown_seconds)
            batch.entries.append(await self._record_one(url, preset, options, batch.batch_id))

        logger.info(
            f"[BATCH] {batch.batch_id}: {batch.succeeded} succeeded, {batch.failed} failed"
        )
        return batch

    async def _record_one(
        self,
        url: str,
        preset: Union[str, PlatformPreset],
        options: BatchOptions,
        batch_id: str,
    ) -> BatchEntry:
        name = preset.value if isinstance(preset, PlatformPreset) else str(preset)
        try:
            parsed = parse_preset(preset)
            name = parsed.value
            request = RecordingRequest.build(
                url,
                options.duration_seconds,
                quality=options.quality,
                fps=options.fps,
                platform_preset=parsed,
                resolution=options.resolution,
                speed=options.speed,
                config=self.config,
            )
            session = self._session_factory(
                request,
                self.storage,
                config=self.config,
                telemetry=self.telemetry,
                batch_id=batch_id,
            )
            result = await session.run()
        except Exception as e:
            logger.error(f"[BATCH] {batch_id}: preset {name} failed: {e}")
            return BatchEntry(
                preset=name,
                success=False,
                error=str(e),
                result=getattr(e, "result", None),
            )

        return BatchEntry(
            preset=name,
            success=result.succeeded,
            video=result.video_descriptor(),
            error=None if result.succeeded else result.error,
            result=result,
        )


def presets_from_names(names: Sequence[str]) -> List[PlatformPreset]:
    """Parse preset names, raising InvalidRequestError on the first unknown one."""
    return [parse_preset(name) for name in names]
