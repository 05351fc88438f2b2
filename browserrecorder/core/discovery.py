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

"""Locate a raw capture on disk when the browser does not report its path."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from browserrecorder.utils.logger import logger

VIDEO_EXTENSIONS = (".webm", ".mp4", ".mkv", ".mov")

# Captures at or below this size are partial writes or empty containers.
DEFAULT_MIN_VIDEO_BYTES = 1024


@dataclass(frozen=True)
class CaptureFile:
    """A candidate raw capture."""

    path: Path
    size: int
    mtime: float


def list_captures(directory: Union[str, Path]) -> List[CaptureFile]:
    """All video files directly inside directory, unfiltered."""
    root = Path(directory)
    if not root.is_dir():
        return []

    captures = []
    for entry in root.iterdir():
        if entry.suffix.lower() not in VIDEO_EXTENSIONS:
            continue
        try:
            stat = entry.stat()
        except OSError:
            # Removed between listing and stat
            continue
        if entry.is_file():
            captures.append(CaptureFile(path=entry, size=stat.st_size, mtime=stat.st_mtime))
    return captures


def discover(
    directory: Union[str, Path],
    session_start: float,
    min_size_bytes: int = DEFAULT_MIN_VIDEO_BYTES,
) -> Optional[CaptureFile]:
    """
    Pick the most recent plausible capture written since session_start.

    Only files modified at or after session_start and larger than
    min_size_bytes qualify. Callers pass a session-private directory, so a
    concurrent session's capture is never a candidate.

    Args:
        directory: Directory to scan (not recursive)
        session_start: Wall-clock time the session started
        min_size_bytes: Files of this size or smaller are ignored

    Returns:
        The newest qualifying CaptureFile, or None
    """
    candidates = [
        c for c in list_captures(directory)
        if c.mtime >= session_start and c.size > min_size_bytes
    ]
    if not candidates:
        logger.debug(f"[DISCOVERY] No capture newer than {session_start:.3f} in {directory}")
        return None

    newest = max(candidates, key=lambda c: c.mtime)
    logger.debug(
        f"[DISCOVERY] Selected {newest.path.name} ({newest.size} bytes) "
        f"from {len(candidates)} candidate(s)"
    )
    return newest
