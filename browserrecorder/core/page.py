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
Page controller for the page being recorded.

This module provides the PageController class which manages page-level
operations during a recording: bounded navigation, synthetic pointer and
scroll activity that keeps the compositor producing frames, and in-page
frame rate sampling.

The PageController wraps Playwright's Page API with error handling
and logging for production use.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from playwright.async_api import Page

from browserrecorder.exceptions import BrowserError, NavigationDegradedError
from browserrecorder.utils.logger import logger

# Counts animation frames for windowMs and reports the shortest and longest
# frame interval.
FRAME_RATE_SCRIPT = """
(windowMs) => new Promise((resolve) => {
    let frames = 0;
    let last = null;
    let min = Infinity;
    let max = 0;
    const start = performance.now();
    const tick = (now) => {
        frames++;
        if (last !== null) {
            min = Math.min(min, now - last);
            max = Math.max(max, now - last);
        }
        last = now;
        if (now - start < windowMs) {
            requestAnimationFrame(tick);
        } else {
            const elapsed = now - start;
            resolve({frames: frames, elapsed: elapsed, min: min === Infinity ? 0 : min, max: max});
        }
    };
    requestAnimationFrame(tick);
})
"""


@dataclass
class FrameSample:
    """One frame rate measurement window."""

    frames: int
    elapsed_ms: float
    min_frame_ms: float = 0.0
    max_frame_ms: float = 0.0

    @property
    def fps(self) -> int:
        if self.elapsed_ms <= 0:
            return 0
        return round(self.frames * 1000 / self.elapsed_ms)

    @property
    def avg_frame_ms(self) -> float:
        if self.frames <= 0:
            return 0.0
        return self.elapsed_ms / self.frames


class PageController:
    """
    Controls the page being recorded.

    Attributes:
        page: The underlying Playwright Page instance

    Example:
        >>> controller = PageController(page)
        >>> await controller.navigate("https://example.com", timeout=30000)
        >>> await controller.generate_activity(2.0, 300, 1280, 720)
        >>> sample = await controller.sample_frame_rate()
    """

    def __init__(
        self,
        page: Page,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the page controller.

        Args:
            page: Playwright Page instance to control
            sleep: Coroutine used for pauses between activity steps
        """
        self.page = page
        self._sleep = sleep

    async def navigate(
        self, url: str, wait_until: str = "domcontentloaded", timeout: int = 30000
    ) -> Optional[int]:
        """
        Navigate to a URL with a bounded timeout.

        Args:
            url: URL to navigate to (must include protocol, e.g., https://)
            wait_until: When to consider navigation succeeded
                ("load", "domcontentloaded", "networkidle", "commit")
            timeout: Maximum time to wait for navigation in milliseconds

        Returns:
            HTTP status of the main document, None when the browser reported
            no response

        Raises:
            NavigationDegradedError: On timeout, network error or non-2xx status
        """
        try:
            logger.info(f"Navigating to {url}")
            response = await self.page.goto(url, wait_until=wait_until, timeout=timeout)
        except Exception as e:
            logger.warning(f"Navigation failed: {e}")
            raise NavigationDegradedError(f"Failed to navigate to {url}: {e}") from e

        status = response.status if response is not None else None
        if status is not None and not 200 <= status < 300:
            logger.warning(f"Navigation to {url} returned HTTP {status}")
            raise NavigationDegradedError(f"Navigation to {url} returned HTTP {status}")

        logger.info(f"Successfully navigated to {url}")
        return status

    async def generate_activity(
        self, seconds: float, interval_ms: int, width: int, height: int
    ) -> int:
        """
        Move the pointer and scroll at a fixed cadence.

        Args:
            seconds: Total length of the activity slice
            interval_ms: Pause between steps in milliseconds
            width: Viewport width, bounds the pointer
            height: Viewport height, bounds the pointer

        Returns:
            Number of steps performed

        Raises:
            BrowserError: If the page rejects an input event
        """
        if seconds <= 0:
            return 0
        steps = max(1, int(seconds * 1000 // max(interval_ms, 1)))
        try:
            for _ in range(steps):
                x = random.randint(0, max(width - 1, 0))
                y = random.randint(0, max(height - 1, 0))
                await self.page.mouse.move(x, y, steps=5)
                await self.page.mouse.wheel(0, random.choice((-120, 120)))
                await self._sleep(interval_ms / 1000)
        except Exception as e:
            raise BrowserError(f"Synthetic activity failed: {e}") from e
        return steps

    async def sample_frame_rate(self, window_ms: int = 1000) -> FrameSample:
        """
        Measure the page's animation frame rate over one window.

        Raises:
            BrowserError: If script evaluation fails
        """
        try:
            data = await self.page.evaluate(FRAME_RATE_SCRIPT, window_ms)
        except Exception as e:
            raise BrowserError(f"Frame rate sampling failed: {e}") from e
        return FrameSample(
            frames=int(data["frames"]),
            elapsed_ms=float(data["elapsed"]),
            min_frame_ms=float(data.get("min", 0.0)),
            max_frame_ms=float(data.get("max", 0.0)),
        )
