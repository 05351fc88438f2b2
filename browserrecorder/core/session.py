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
Recording session lifecycle.

A RecordingSession drives one browser through a fixed sequence of states and
turns a RecordingRequest into a RecordingResult:

    STARTING -> BROWSER_LAUNCHING -> CONTEXT_CREATED -> NAVIGATING ->
    RECORDING -> FINALIZING -> DISCOVERING -> TRANSCODING -> DONE

Failure handling:
- Engine missing or storage unwritable: fatal, the exception is raised with
  the partial result attached as ``exc.result``
- Any other unexpected failure: returned as a FAILED_FATAL result pointing at
  a blank placeholder and the telemetry files
- Navigation, activity and frame sampling failures: traced, recording continues
- No capture on disk: zero-byte placeholder, outcome FAILED_NO_CAPTURE
- Transcoder failure: raw capture delivered, result flagged degraded

Every step runs under a deadline derived from the requested duration, and
the browser is closed on every path.

Example:
    >>> session = RecordingSession(request, tier, config)
    >>> result = await session.run()
    >>> result.file_name
    'recording-3f2a9c....webm'
"""

from __future__ import annotations

import asyncio
import shutil
import time
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

from browserrecorder.config import RecorderConfig
from browserrecorder.core.browser import BrowserManager
from browserrecorder.core.discovery import discover
from browserrecorder.core.page import PageController
from browserrecorder.core.storage import StorageTier
from browserrecorder.core.transcode import Geometry, TranscodeStatus, VideoCodec, transcode
from browserrecorder.exceptions import (
    BrowserError,
    CaptureNotFoundError,
    EngineUnavailableError,
    InvalidRequestError,
    NavigationDegradedError,
    RecorderError,
    StorageUnavailableError,
)
from browserrecorder.models import RecordingRequest, RecordingResult, SessionOutcome
from browserrecorder.observability.telemetry import SessionTelemetry, TelemetryStreams
from browserrecorder.utils.logger import logger

# Raised out of run(); every other failure is returned as a FAILED_FATAL result.
FATAL_ERRORS = (InvalidRequestError, EngineUnavailableError, StorageUnavailableError)


class SessionState(str, Enum):
    """Lifecycle states of a recording session, in order."""

    STARTING = "starting"
    BROWSER_LAUNCHING = "browser_launching"
    CONTEXT_CREATED = "context_created"
    NAVIGATING = "navigating"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    DISCOVERING = "discovering"
    TRANSCODING = "transcoding"
    DONE = "done"


class RecordingSession:
    """
    One URL-to-video recording.

    A session is owned by a single task and is not reused: create a new one
    per request.

    Attributes:
        request: The validated request
        storage: Resolved storage tier for the raw capture
        config: Recorder configuration
        session_id: Unique id (uuid4 hex) used in every file name
        started_at: Wall-clock start time
        state: Current lifecycle state
        history: Every state entered, in order
        outcome: Terminal outcome once run() returns or raises
        capture_dir: Session-private raw capture directory
        raw_capture_path: Raw capture, once located
        delivery_path: Delivery file, once written
        degradations: Non-fatal problems encountered
    """

    def __init__(
        self,
        request: RecordingRequest,
        storage: StorageTier,
        config: Optional[RecorderConfig] = None,
        telemetry: Optional[SessionTelemetry] = None,
        batch_id: Optional[str] = None,
        browser_factory: Optional[Callable[[], BrowserManager]] = None,
    ) -> None:
        self.request = request
        self.storage = storage
        self.config = config or RecorderConfig()
        self.telemetry = telemetry or SessionTelemetry(self.config.log_dir, self.config.metrics_dir)
        self.batch_id = batch_id
        self._browser_factory = browser_factory or self._default_browser

        self.session_id = uuid.uuid4().hex
        self.started_at = time.time()
        self.state = SessionState.STARTING
        self.history: List[SessionState] = [SessionState.STARTING]
        self.outcome = SessionOutcome.PENDING
        self.capture_dir: Optional[Path] = None
        self.raw_capture_path: Optional[Path] = None
        self.delivery_path: Optional[Path] = None
        self.degradations: List[str] = []
        self.streams: Optional[TelemetryStreams] = None

    def _default_browser(self) -> BrowserManager:
        return BrowserManager(
            hardware_acceleration=self.config.hardware_acceleration,
            executable_path=self.config.chrome_path,
        )

    @property
    def output_dir(self) -> Path:
        return Path(self.config.output_dir).resolve()

    @property
    def step_timeout(self) -> float:
        return self.config.step_timeout(self.request.duration_seconds)

    async def _wait(self, seconds: float) -> None:
        """Timed pause; every wait in the session goes through here."""
        if seconds > 0:
            await asyncio.sleep(seconds)

    def _trace(self, message: str) -> None:
        if self.streams is not None:
            self.streams.trace(message)

    def _transition(self, state: SessionState) -> None:
        self.state = state
        self.history.append(state)
        self._trace(f"State -> {state.value}")

    def _degrade(self, reason: str) -> None:
        self.degradations.append(reason)
        logger.warning(f"[SESSION] {self.session_id}: {reason}")
        self._trace(f"Degraded: {reason}")
        if self.streams is not None:
            self.streams.metric("DEGRADED", state=self.state.value, reason=reason)

    async def _bounded(self, awaitable: Awaitable[Any], what: str) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.step_timeout)
        except asyncio.TimeoutError:
            raise asyncio.TimeoutError(f"{what} exceeded {self.step_timeout:.0f}s")

    def _new_result(self) -> RecordingResult:
        request = self.request
        return RecordingResult(
            session_id=self.session_id,
            log_file=str(self.streams.log_file) if self.streams else None,
            metrics_file=str(self.streams.metrics_file) if self.streams else None,
            width=request.width,
            height=request.height,
            fps=request.fps,
            duration=request.duration_seconds,
            quality=request.quality,
            aspect_ratio=request.aspect_ratio,
            platform_preset=request.platform_preset,
            batch_id=self.batch_id,
        )

    async def run(self) -> RecordingResult:
        """
        Run the session to completion.

        Returns:
            RecordingResult for every session that got past allocation,
            including failed ones (outcome FAILED_* and error set)

        Raises:
            EngineUnavailableError: If the browser cannot be launched
            StorageUnavailableError: If the capture directory or the
                telemetry files cannot be created
        """
        try:
            self.streams = self.telemetry.open(self.session_id)
        except OSError as e:
            self.outcome = SessionOutcome.FAILED_FATAL
            error = StorageUnavailableError(f"Cannot open session telemetry: {e}")
            result = self._new_result()
            result.outcome = self.outcome
            result.error = error.message
            error.result = result
            logger.error(f"[SESSION] {self.session_id}: {error.message}")
            raise error from e

        if self.batch_id:
            self.streams.fields["batch"] = self.batch_id
        result = self._new_result()
        browser: Optional[BrowserManager] = None

        logger.info(
            f"[SESSION] {self.session_id}: recording {self.request.target_url} "
            f"for {self.request.duration_seconds}s at {self.request.width}x{self.request.height}"
        )
        self.streams.metric(
            "SESSION_START",
            url=self.request.target_url,
            width=self.request.width,
            height=self.request.height,
            fps=self.request.fps,
            duration=self.request.duration_seconds,
            quality=self.request.quality.value,
            tier=self.storage.kind.value,
        )

        try:
            self.capture_dir = self.storage.session_dir(self.session_id)
            self._trace(f"Capture directory {self.capture_dir}")

            self._transition(SessionState.BROWSER_LAUNCHING)
            browser = self._browser_factory()
            try:
                await self._bounded(browser.start(), "Browser launch")
            except asyncio.TimeoutError as e:
                raise EngineUnavailableError(str(e)) from e

            page = await self._bounded(
                browser.new_capture_context(
                    self.request.width, self.request.height, self.capture_dir
                ),
                "Context creation",
            )
            self._transition(SessionState.CONTEXT_CREATED)
            controller = PageController(page, sleep=self._wait)

            self._transition(SessionState.NAVIGATING)
            await self._navigate(controller)

            self._transition(SessionState.RECORDING)
            await self._record(controller)

            self._transition(SessionState.FINALIZING)
            self.raw_capture_path = await self._finalize(browser)

            self._transition(SessionState.DISCOVERING)
            self.raw_capture_path = self._locate_capture(self.raw_capture_path)

            self._transition(SessionState.TRANSCODING)
            await self._deliver(result)

            self._transition(SessionState.DONE)
            self._cleanup_capture_dir()
            result.outcome = self.outcome
            self.streams.metric(
                "RECORDING_STATS",
                outcome=self.outcome.value,
                file=result.file_name,
                size=result.size,
                enhanced=result.enhanced,
                degraded=result.degraded,
                width=result.width,
                height=result.height,
                fps=result.fps,
                duration=result.duration,
                quality=self.request.quality.value,
                degradations=len(self.degradations),
            )
            logger.info(
                f"[SESSION] {self.session_id}: {self.outcome.value} -> {result.file_name} "
                f"({result.size} bytes, enhanced={result.enhanced})"
            )
            return result
        except FATAL_ERRORS as e:
            self._fail(result, e.message or str(e))
            e.result = result
            self._cleanup_capture_dir()
            raise
        except Exception as e:
            reason = e.message if isinstance(e, RecorderError) and e.message else f"Recording failed: {e}"
            self._fail(result, reason)
            self._write_placeholder(result)
            self._cleanup_capture_dir()
            return result
        finally:
            if browser is not None:
                try:
                    await browser.stop()
                except BrowserError as e:
                    self._trace(f"Browser cleanup failed: {e}")
            self.streams.close()

    async def _navigate(self, controller: PageController) -> None:
        try:
            status = await self._bounded(
                controller.navigate(
                    self.request.target_url, timeout=self.config.navigation_timeout_ms
                ),
                "Navigation",
            )
            self._trace(f"Navigated to {self.request.target_url} (status {status})")
        except (NavigationDegradedError, asyncio.TimeoutError) as e:
            self._degrade(f"Navigation degraded: {e}")
        await self._wait(self.config.settle_ms / 1000)

    async def _record(self, controller: PageController) -> None:
        duration = float(self.request.duration_seconds)
        loop = asyncio.get_running_loop()
        start = loop.time()
        self._trace(f"Recording for {duration:.0f}s")

        activity = min(self.config.activity_seconds, duration)
        try:
            steps = await self._bounded(
                controller.generate_activity(
                    activity,
                    self.config.activity_interval_ms,
                    self.request.width,
                    self.request.height,
                ),
                "Synthetic activity",
            )
            self._trace(f"Synthetic activity: {steps} steps")
        except (BrowserError, asyncio.TimeoutError) as e:
            self._degrade(f"Activity failed: {e}")

        if self.config.frame_stats:
            # At most one window per second; a window never runs past the duration
            for _ in range(int(duration)):
                remaining = duration - (loop.time() - start)
                if remaining < 1:
                    break
                try:
                    sample = await asyncio.wait_for(
                        controller.sample_frame_rate(1000), timeout=remaining
                    )
                except asyncio.TimeoutError:
                    self._trace("Frame sampling window cut at end of recording")
                    break
                except BrowserError as e:
                    self._degrade(f"Frame sampling stopped: {e}")
                    break
                self.streams.metric(
                    "FRAME_STATS",
                    fps=sample.fps,
                    avg_time=f"{sample.avg_frame_ms:.2f}ms",
                    min=f"{sample.min_frame_ms:.2f}ms",
                    max=f"{sample.max_frame_ms:.2f}ms",
                    frames=sample.frames,
                )

        await self._wait(duration - (loop.time() - start))

    async def _finalize(self, browser: BrowserManager) -> Optional[Path]:
        try:
            path = await self._bounded(browser.finalize(), "Finalize")
        except Exception as e:
            self._degrade(f"Finalize failed: {e}")
            return None
        self._trace(f"Reported capture path: {path}")
        return path

    def _locate_capture(self, reported: Optional[Path]) -> Optional[Path]:
        if reported is not None and reported.is_file():
            return reported

        self._trace("Reported capture path missing, scanning capture directory")
        found = discover(self.capture_dir, self.started_at, self.config.min_video_bytes)
        if found is None:
            return None
        self._trace(f"Discovered capture {found.path.name} ({found.size} bytes)")
        return found.path

    async def _deliver(self, result: RecordingResult) -> None:
        if self.raw_capture_path is None:
            missing = CaptureNotFoundError(f"No capture found for session {self.session_id}")
            self._degrade(missing.message)
            result.error = missing.message
            self.outcome = SessionOutcome.FAILED_NO_CAPTURE
            self._write_placeholder(result)
            return

        codec = VideoCodec(self.config.codec)
        output = self.output_dir / f"recording-{self.session_id}{codec.extension}"
        geometry = Geometry(
            width=self.request.width,
            height=self.request.height,
            fps=self.request.fps,
            aspect_ratio=self.request.aspect_ratio,
            duration=self.request.duration_seconds,
        )
        outcome = await transcode(
            self.raw_capture_path, output, self.request.quality, geometry, self.config
        )
        if outcome.degraded:
            self._degrade(f"Transcode {outcome.status.value}: {outcome.error}")

        self.outcome = (
            SessionOutcome.FAILED_TRANSCODE
            if outcome.status == TranscodeStatus.FAILED
            else SessionOutcome.SUCCEEDED
        )
        if outcome.path.exists():
            self.delivery_path = outcome.path
            result.file_name = outcome.path.name
            result.file_path = str(outcome.path)
        result.size = outcome.size
        result.enhanced = outcome.enhanced
        result.degraded = outcome.degraded
        if outcome.error and outcome.status == TranscodeStatus.FAILED:
            result.error = outcome.error

    def _fail(self, result: RecordingResult, reason: str) -> None:
        self.outcome = SessionOutcome.FAILED_FATAL
        result.outcome = self.outcome
        result.error = reason
        logger.error(f"[SESSION] {self.session_id}: {reason}")
        self._trace(f"Fatal: {reason}")
        self.streams.metric("SESSION_FAILED", state=self.state.value, error=reason)

    def _write_placeholder(self, result: RecordingResult) -> Optional[Path]:
        """Zero-byte blank-<id>.webm in the output directory, None if it cannot be written."""
        placeholder = self.output_dir / f"blank-{self.session_id}.webm"
        try:
            placeholder.parent.mkdir(parents=True, exist_ok=True)
            placeholder.touch()
        except OSError as e:
            self._trace(f"Placeholder {placeholder} could not be written: {e}")
            return None
        self.delivery_path = placeholder
        result.file_name = placeholder.name
        result.file_path = str(placeholder)
        result.size = 0
        return placeholder

    def _cleanup_capture_dir(self) -> None:
        if self.capture_dir is not None and self.capture_dir.exists():
            shutil.rmtree(self.capture_dir, ignore_errors=True)
            self._trace(f"Removed capture directory {self.capture_dir}")
