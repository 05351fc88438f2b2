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
Browser management for recording sessions.

This module provides the BrowserManager class which handles the lifecycle
of the headless Chromium instance behind one recording session: launching
with an unattended-capture argument profile, creating the single recording
context and page, finalizing the capture and cleanup.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Union

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from browserrecorder.exceptions import BrowserError, EngineUnavailableError
from browserrecorder.utils.logger import logger

# Flags for unattended capture: no sandbox inside containers, no throttling
# of timers or rendering while the page is not focused.
CAPTURE_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--mute-audio",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
    "--disable-backgrounding-occluded-windows",
    "--disable-breakpad",
    "--hide-scrollbars",
]

GPU_ARGS = [
    "--enable-gpu-rasterization",
    "--enable-zero-copy",
    "--ignore-gpu-blocklist",
    "--use-gl=angle",
]

SOFTWARE_RENDER_ARGS = [
    "--disable-gpu",
    "--disable-software-rasterizer",
]

MISSING_EXECUTABLE_MARKER = "Executable doesn't exist"


class BrowserManager:
    """
    Manages the Chromium instance of one recording session.

    This class handles:
    - Browser launching with the capture argument profile
    - Creation of the single recording context and page
    - Finalizing the capture and reporting its path
    - Resource cleanup

    Attributes:
        headless: Whether browser runs in headless mode (no visible window)
        hardware_acceleration: Use GPU rendering flags instead of software rendering
        executable_path: Optional Chromium binary overriding Playwright's
        launch_options: Additional Playwright launch options

    Example:
        >>> manager = BrowserManager(hardware_acceleration=False)
        >>> await manager.start()
        >>> page = await manager.new_capture_context(1280, 720, capture_dir)
        >>> await page.goto("https://example.com")
        >>> raw_path = await manager.finalize()
        >>> await manager.stop()
    """

    def __init__(
        self,
        headless: bool = True,
        hardware_acceleration: bool = False,
        executable_path: Optional[str] = None,
        **launch_options: Any,
    ) -> None:
        self.headless = headless
        self.hardware_acceleration = hardware_acceleration
        self.executable_path = executable_path
        self.extra_args: List[str] = list(launch_options.pop("args", []))
        self.launch_options = launch_options
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    def launch_args(self) -> List[str]:
        """Command-line flags passed to Chromium."""
        extra = GPU_ARGS if self.hardware_acceleration else SOFTWARE_RENDER_ARGS
        return CAPTURE_ARGS + extra + self.extra_args

    async def start(self) -> None:
        """
        Start Playwright and launch Chromium.

        Raises:
            EngineUnavailableError: If the browser binary is missing or fails to launch

        Example:
            >>> manager = BrowserManager()
            >>> await manager.start()
        """
        options = dict(self.launch_options)
        if self.executable_path:
            options["executable_path"] = self.executable_path

        try:
            logger.info(
                f"Starting chromium browser (headless={self.headless}, "
                f"gpu={self.hardware_acceleration})"
            )
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, args=self.launch_args(), **options
            )
            logger.info("Browser started successfully")
        except Exception as e:
            logger.error(f"Failed to start browser: {e}")
            await self._stop_playwright()
            if MISSING_EXECUTABLE_MARKER in str(e):
                raise EngineUnavailableError(
                    f"Chromium executable not found. {EngineUnavailableError.INSTALL_HINT}"
                ) from e
            raise EngineUnavailableError(f"Failed to start browser: {e}") from e

    async def new_capture_context(
        self, width: int, height: int, video_dir: Union[str, Path]
    ) -> Page:
        """
        Create the recording context and its single page.

        The context's viewport and capture size both equal the requested
        dimensions, and the raw capture is written into video_dir.

        Args:
            width: Viewport and capture width in pixels
            height: Viewport and capture height in pixels
            video_dir: Session-private directory for the raw capture

        Returns:
            The page being recorded

        Raises:
            BrowserError: If the browser is not started or context creation fails
        """
        size = {"width": width, "height": height}
        try:
            self._context = await self.browser.new_context(
                viewport=size,
                record_video_dir=str(video_dir),
                record_video_size=size,
                ignore_https_errors=True,
            )
            self._page = await self._context.new_page()
        except BrowserError:
            raise
        except Exception as e:
            logger.error(f"Failed to create recording context: {e}")
            raise BrowserError(f"Failed to create recording context: {e}") from e
        return self._page

    async def finalize(self) -> Optional[Path]:
        """
        Close the page and context so the capture is flushed to disk.

        Returns:
            Path of the raw capture as reported by Playwright, or None when
            the page has no video or the path cannot be read
        """
        page, context = self._page, self._context
        self._page = None
        self._context = None

        video = page.video if page is not None else None
        if page is not None:
            await page.close()
        if context is not None:
            await context.close()

        if video is None:
            return None
        try:
            return Path(await video.path())
        except Exception as e:
            logger.warning(f"Video path unavailable: {e}")
            return None

    async def _stop_playwright(self) -> None:
        if self._playwright:
            try:
                await self._playwright.stop()
            finally:
                self._playwright = None

    async def stop(self) -> None:
        """
        Stop the browser and cleanup all resources.

        Raises:
            BrowserError: If cleanup fails
        """
        try:
            logger.info("Stopping browser")
            if self._page:
                await self._page.close()
            if self._context:
                await self._context.close()
            if self._browser:
                await self._browser.close()
            await self._stop_playwright()
            logger.info("Browser stopped successfully")
        except Exception as e:
            logger.error(f"Error stopping browser: {e}")
            raise BrowserError(f"Failed to stop browser: {e}") from e
        finally:
            self._page = None
            self._context = None
            self._browser = None

    @property
    def page(self) -> Page:
        """Get the page being recorded."""
        if not self._page:
            raise BrowserError("No active page. Call new_capture_context() first.")
        return self._page

    @property
    def context(self) -> BrowserContext:
        """Get the recording context."""
        if not self._context:
            raise BrowserError("Browser context not initialized. Call new_capture_context() first.")
        return self._context

    @property
    def browser(self) -> Browser:
        """Get the browser instance."""
        if not self._browser:
            raise BrowserError("Browser not initialized. Call start() first.")
        return self._browser

    async def __aenter__(self) -> "BrowserManager":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.stop()
