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

"""Custom exceptions for browser-recorder.

This module defines the exception hierarchy used throughout the recorder.
All exceptions inherit from RecorderError for easy catching and handling.

Exception Hierarchy:
    RecorderError (base)
    ├── InvalidRequestError - Bad URL, duration or preset (rejected up front)
    ├── EngineUnavailableError - Browser engine missing or failed to launch
    ├── StorageUnavailableError - No writable storage tier
    ├── CaptureNotFoundError - No raw capture could be located
    ├── TranscodeDegradedError - Transcoder failed, raw capture delivered
    ├── NavigationDegradedError - Page failed to load, recording continued
    ├── BrowserError - Other browser lifecycle errors
    └── ConfigurationError - Invalid configuration

Only InvalidRequestError, EngineUnavailableError and StorageUnavailableError
leave a recording session. The other kinds are absorbed by the session into
a best-effort result.

Example:
    try:
        result = await recorder.record("https://example.com", 5)
    except InvalidRequestError:
        # Reject with a client error
        pass
    except EngineUnavailableError as e:
        # Operator action required, e.result.log_file has the trace
        pass
"""

from __future__ import annotations

from typing import Any, Optional


class RecorderError(Exception):
    """Base exception for all browser-recorder errors.

    Attributes:
        message: Error message describing what went wrong
        result: Partial recording result carrying telemetry file
            references, when the failure happened inside a session
    """

    def __init__(self, message: str = "", result: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.result = result


class InvalidRequestError(RecorderError):
    """Exception raised for invalid recording requests.

    Raised before any resource is allocated.

    Examples:
        - URL is not an absolute http(s) URL
        - Duration is not an integer
        - Unknown platform preset or resolution
    """
    pass


class EngineUnavailableError(RecorderError):
    """Exception raised when the browser engine cannot be started.

    Fatal for the session and operator-actionable: the usual cause is that
    the Playwright browser binaries are not installed.
    """

    INSTALL_HINT = "Run 'playwright install chromium' to install the browser engine."


class StorageUnavailableError(RecorderError):
    """Exception raised when no writable storage tier is available."""
    pass


class CaptureNotFoundError(RecorderError):
    """Exception raised when no raw capture file could be located.

    Absorbed by the session, which writes a placeholder artifact instead.
    """
    pass


class TranscodeDegradedError(RecorderError):
    """Exception raised when the transcoder process fails.

    Absorbed by the transcode pipeline, which delivers the raw capture.
    """
    pass


class NavigationDegradedError(RecorderError):
    """Exception raised when the target page fails to load.

    Absorbed by the session; recording proceeds with whatever the page shows.

    Examples:
        - Navigation timeout
        - DNS or connection failure
        - Non-2xx response status
    """
    pass


class BrowserError(RecorderError):
    """Exception raised for browser-related errors.

    Raised when browser context creation or lifecycle operations fail
    after the engine has started.
    """
    pass


class ConfigurationError(RecorderError):
    """Exception raised for configuration errors.

    Examples:
        - Duration bounds outside 1..60
        - Unknown default quality profile
    """
    pass
