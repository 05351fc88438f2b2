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
Per-session telemetry for recording sessions.

Every session writes two append-only, line-oriented files:

- a human-readable trace log (``recording-<session>.log``)
- a machine-parseable metrics log (``metrics-<session>.log``)

Metric lines follow a fixed token grammar so a monitoring process can pick
out FPS, timing and outcome fields without a log parser::

    [2026-10-18T10:00:01.250+00:00] FRAME_STATS,SESSION=ab12,ELAPSED_MS=3120,FPS=58,AVG_TIME=17.20ms

Lines are flushed as they are written, so both files can be tailed while the
session is running. Files are never rewritten and outlive the session.

Example:
    >>> telemetry = SessionTelemetry("./logs", "./logs/metrics")
    >>> with telemetry.open("ab12") as streams:
    ...     streams.trace("Recording started")
    ...     streams.metric("FRAME_STATS", fps=58, avg_time="17.20ms")
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TextIO, Union

from browserrecorder.utils.logger import logger

_LINE_RE = re.compile(r"^\[(?P<timestamp>[^\]]+)\]\s+(?P<body>.*)$")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _format_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return f"{value:.2f}"
    text = str(value)
    return text.replace(",", ";").replace("=", ":").replace("\r", " ").replace("\n", " ")


def format_metric_line(kind: str, fields: Dict[str, Any], timestamp: Optional[str] = None) -> str:
    """Render one metric line (without trailing newline)."""
    tokens = [kind.upper()]
    for key, value in fields.items():
        tokens.append(f"{key.upper()}={_format_value(value)}")
    return f"[{timestamp or _now_iso()}] {','.join(tokens)}"


@dataclass
class MetricRecord:
    """A parsed metric line."""

    timestamp: str
    kind: str
    fields: Dict[str, str] = field(default_factory=dict)

    @property
    def session_id(self) -> Optional[str]:
        return self.fields.get("SESSION")

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.get(key.upper(), default)

    def number(self, key: str) -> Optional[float]:
        """Numeric value of a field, ignoring unit suffixes such as "ms"."""
        raw = self.get(key)
        if raw is None:
            return None
        match = re.match(r"^-?\d+(?:\.\d+)?", raw)
        return float(match.group(0)) if match else None


def parse_metric_line(line: str) -> Optional[MetricRecord]:
    """Parse a metric line, returning None for anything not in the grammar."""
    match = _LINE_RE.match(line.strip())
    if not match:
        return None
    tokens = match.group("body").split(",")
    kind = tokens[0].strip()
    if not kind or "=" in kind:
        return None
    fields: Dict[str, str] = {}
    for token in tokens[1:]:
        key, sep, value = token.partition("=")
        if sep:
            fields[key.strip().upper()] = value.strip()
    return MetricRecord(timestamp=match.group("timestamp"), kind=kind, fields=fields)


class TelemetryStreams:
    """The open trace and metrics streams of one session."""

    def __init__(
        self,
        session_id: str,
        log_file: Path,
        metrics_file: Path,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_id = session_id
        self.log_file = log_file
        self.metrics_file = metrics_file
        self._clock = clock
        self._origin = clock()
        self._trace: Optional[TextIO] = open(log_file, "a", buffering=1, encoding="utf-8")
        try:
            self._metrics: Optional[TextIO] = open(metrics_file, "a", buffering=1, encoding="utf-8")
        except OSError:
            self._trace.close()
            raise
        self.fields: Dict[str, Any] = {}

    @property
    def elapsed_ms(self) -> int:
        return int((self._clock() - self._origin) * 1000)

    @property
    def closed(self) -> bool:
        return self._trace is None

    def trace(self, message: str) -> None:
        """Append a human-readable line to the trace log."""
        logger.debug(f"[{self.session_id}] {message}")
        if self._trace is None:
            return
        self._trace.write(f"[{_now_iso()}] [{self.session_id}] {message}\n")
        self._trace.flush()

    def metric(self, kind: str, **fields: Any) -> str:
        """Append a KEY=value metric line and return it."""
        merged: Dict[str, Any] = {"session": self.session_id, "elapsed_ms": self.elapsed_ms}
        merged.update(self.fields)
        merged.update(fields)
        line = format_metric_line(kind, merged)
        if self._metrics is not None:
            self._metrics.write(line + "\n")
            self._metrics.flush()
        return line

    def close(self) -> None:
        for stream in (self._trace, self._metrics):
            if stream is not None:
                stream.close()
        self._trace = None
        self._metrics = None

    def __enter__(self) -> "TelemetryStreams":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class SessionTelemetry:
    """Opens per-session telemetry files under the trace and metrics directories."""

    def __init__(self, log_dir: Union[str, Path], metrics_dir: Union[str, Path]) -> None:
        self.log_dir = Path(log_dir).resolve()
        self.metrics_dir = Path(metrics_dir).resolve()

    def open(self, session_id: str) -> TelemetryStreams:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.metrics_dir.mkdir(parents=True, exist_ok=True)
        return TelemetryStreams(
            session_id,
            self.log_dir / f"recording-{session_id}.log",
            self.metrics_dir / f"metrics-{session_id}.log",
        )


@dataclass
class LatestMetrics:
    """Contents of the most recently written metrics file."""

    filename: str
    time: float
    lines: List[str]
    records: List[MetricRecord]

    def by_kind(self, kind: str) -> List[MetricRecord]:
        return [r for r in self.records if r.kind == kind]

    def to_response(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "time": int(self.time * 1000),
            "frameRateMetrics": self.lines,
        }


def latest_metrics(metrics_dir: Union[str, Path]) -> Optional[LatestMetrics]:
    """Read the newest metrics file in a directory, None when there is none."""
    directory = Path(metrics_dir)
    if not directory.is_dir():
        return None
    candidates = [p for p in directory.glob("metrics-*.log") if p.is_file()]
    if not candidates:
        return None
    newest = max(candidates, key=lambda p: p.stat().st_mtime)
    lines = [line.rstrip("\n") for line in newest.read_text(encoding="utf-8").splitlines() if line.strip()]
    records = [r for r in (parse_metric_line(line) for line in lines) if r is not None]
    return LatestMetrics(
        filename=newest.name,
        time=newest.stat().st_mtime,
        lines=lines,
        records=records,
    )
