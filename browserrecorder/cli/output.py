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

"""Terminal output helpers for the CLI."""

from __future__ import annotations

import os
import sys
from typing import Dict, List, Optional, TextIO

from browserrecorder.observability.telemetry import LatestMetrics

RESET = "\x1b[0m"
BOLD = "\x1b[1m"
RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
BLUE = "\x1b[34m"
MAGENTA = "\x1b[35m"
CYAN = "\x1b[36m"


class CLIOutput:
    """Section headers, status lines and metric summaries with optional color."""

    def __init__(self, stream: Optional[TextIO] = None, color: Optional[bool] = None) -> None:
        self._stream = stream
        self._color = color

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    @property
    def color(self) -> bool:
        if self._color is None:
            return self.stream.isatty() and "NO_COLOR" not in os.environ
        return self._color

    def paint(self, text: str, *codes: str) -> str:
        if not self.color or not codes:
            return text
        return "".join(codes) + text + RESET

    def write(self, text: str = "") -> None:
        print(text, file=self.stream)

    def print_section(self, title: str) -> None:
        self.write()
        self.write(self.paint(title, BOLD, CYAN))
        self.write(self.paint("-" * len(title), CYAN))

    def print_status_line(
        self, status: str, message: str, ok: bool = False, warn: bool = False, info: bool = False
    ) -> None:
        if ok:
            code = GREEN
        elif warn:
            code = YELLOW
        elif info:
            code = BLUE
        else:
            code = RED
        self.write(f"  {self.paint(f'[{status}]', BOLD, code)} {message}")

    def print_summary(self, title: str, items: Dict[str, object]) -> None:
        self.print_section(title)
        width = max((len(key) for key in items), default=0)
        for key, value in items.items():
            self.write(f"  {key.ljust(width)}  {value}")

    def fps_color(self, fps: float) -> str:
        if fps >= 30:
            return GREEN
        if fps >= 20:
            return YELLOW
        return RED

    def frame_time_color(self, ms: float) -> str:
        if ms < 30:
            return GREEN
        if ms < 50:
            return YELLOW
        return RED

    def format_metrics(self, metrics: Optional[LatestMetrics]) -> List[str]:
        """Render FRAME_STATS and RECORDING_STATS records of a metrics file."""
        if metrics is None or not metrics.records:
            return [self.paint("No frame rate metrics available", YELLOW)]

        lines = [self.paint(f"FRAME RATE METRICS ({metrics.filename}):", BOLD, CYAN)]
        for record in metrics.records:
            stamp = self.paint(f"[{record.timestamp}]", BOLD)
            if record.kind == "FRAME_STATS":
                parts = [stamp]
                fps = record.number("FPS")
                if fps is not None:
                    parts.append(self.paint(f"{fps:.0f} FPS", self.fps_color(fps)))
                avg = record.number("AVG_TIME")
                if avg is not None:
                    parts.append(self.paint(f"Avg: {avg:.2f}ms", self.frame_time_color(avg)))
                low, high = record.number("MIN"), record.number("MAX")
                if low is not None and high is not None:
                    parts.append(self.paint(f"Min: {low:.2f}ms", BLUE))
                    parts.append(self.paint(f"Max: {high:.2f}ms", MAGENTA))
                lines.append(" ".join(parts))
            elif record.kind == "RECORDING_STATS":
                summary = ",".join(
                    f"{key}={value}" for key, value in record.fields.items()
                    if key not in ("SESSION", "ELAPSED_MS")
                )
                lines.append(f"{stamp} {self.paint('RECORDING SUMMARY:', GREEN)} {summary}")
        return lines
