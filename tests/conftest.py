# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures for browser-recorder tests."""

import os
import stat
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from browserrecorder.config import RecorderConfig
from browserrecorder.core.storage import StorageTier, StorageTierKind


@pytest.fixture
def temp_dir(tmp_path):
    """Per-test scratch directory."""
    return tmp_path


@pytest.fixture
def config(temp_dir):
    """Configuration writing everything under the test directory with no pauses."""
    return RecorderConfig(
        default_width=1280,
        default_height=720,
        default_fps=30,
        ffmpeg_path=str(temp_dir / "no-such-ffmpeg"),
        storage_override=str(temp_dir / "raw"),
        cloud_scratch_root=str(temp_dir / "no-cloud"),
        cloud_scratch_path=str(temp_dir / "no-cloud" / "temp"),
        ramdisk_path=str(temp_dir / "no-ramdisk"),
        output_dir=str(temp_dir / "uploads"),
        log_dir=str(temp_dir / "logs"),
        metrics_dir=str(temp_dir / "logs" / "metrics"),
        settle_ms=0,
        activity_seconds=0.0,
        batch_cooldown_seconds=0.0,
        transcode_timeout=10.0,
    )


@pytest.fixture
def storage_tier(temp_dir):
    root = temp_dir / "raw"
    root.mkdir(exist_ok=True)
    return StorageTier(root=root, kind=StorageTierKind.OVERRIDE)


@pytest.fixture
def mock_page():
    """Playwright page double that records a video path on demand."""
    page = MagicMock()
    response = MagicMock()
    response.status = 200
    page.goto = AsyncMock(return_value=response)
    page.close = AsyncMock()
    page.evaluate = AsyncMock(return_value={"frames": 60, "elapsed": 1000.0, "min": 15.0, "max": 20.0})
    page.mouse = MagicMock()
    page.mouse.move = AsyncMock()
    page.mouse.wheel = AsyncMock()
    page.video = MagicMock()
    page.video.path = AsyncMock(return_value=None)
    return page


@pytest.fixture
def mock_playwright(mock_page):
    """Playwright double: chromium.launch -> browser -> context -> page."""
    context = MagicMock()
    context.new_page = AsyncMock(return_value=mock_page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()
    return playwright


def write_script(path: Path, body: str) -> Path:
    """Write an executable shell script (used as a fake ffmpeg)."""
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_ffmpeg(temp_dir):
    """ffmpeg stand-in that writes a small file to its last argument."""
    return write_script(
        temp_dir / "ffmpeg-ok",
        'for last; do :; done\nprintf "encoded-video-data" > "$last"\nexit 0',
    )


@pytest.fixture
def failing_ffmpeg(temp_dir):
    """ffmpeg stand-in that always exits non-zero."""
    return write_script(temp_dir / "ffmpeg-fail", 'echo "boom" >&2\nexit 1')


@pytest.fixture
def raw_capture(temp_dir):
    """A raw capture large enough to pass the discovery threshold."""
    path = temp_dir / "capture.webm"
    path.write_bytes(os.urandom(4096))
    return path


class FakeBrowser:
    """BrowserManager double that writes a capture into the context's video dir.

    capture: "reported" writes a file and reports its path, "unreported"
    writes a file but reports a path that does not exist, None writes nothing.
    """

    def __init__(self, page, capture="reported", start_error=None, context_error=None):
        self.page = page
        self.capture = capture
        self.start = AsyncMock(side_effect=start_error)
        self.stop = AsyncMock()
        self.context_error = context_error
        self.video_dir = None
        self.size = None
        self.capture_bytes = os.urandom(4096)

    async def new_capture_context(self, width, height, video_dir):
        if self.context_error is not None:
            raise self.context_error
        self.size = (width, height)
        self.video_dir = Path(video_dir)
        return self.page

    async def finalize(self):
        if self.capture is None:
            return None
        path = self.video_dir / "3b1c0e.webm"
        path.write_bytes(self.capture_bytes)
        if self.capture == "unreported":
            return self.video_dir / "reported-but-missing.webm"
        return path


@pytest.fixture
def make_browser(mock_page):
    """Factory for FakeBrowser instances bound to mock_page."""
    def factory(**kwargs):
        return FakeBrowser(mock_page, **kwargs)
    return factory
