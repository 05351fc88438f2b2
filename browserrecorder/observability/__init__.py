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
Observability for recording sessions.

Every session writes a human-readable trace log and a KEY=value metrics log
that can be tailed while the session runs:

Example:
    >>> from browserrecorder.observability import SessionTelemetry, latest_metrics
    >>> telemetry = SessionTelemetry("./logs", "./logs/metrics")
    >>> with telemetry.open("ab12") as streams:
    ...     streams.metric("FRAME_STATS", fps=60)
    >>> latest_metrics("./logs/metrics").by_kind("FRAME_STATS")
"""

from browserrecorder.observability.telemetry import (
    LatestMetrics,
    MetricRecord,
    SessionTelemetry,
    TelemetryStreams,
    format_metric_line,
    latest_metrics,
    parse_metric_line,
)

__all__ = [
    "LatestMetrics",
    "MetricRecord",
    "SessionTelemetry",
    "TelemetryStreams",
    "format_metric_line",
    "latest_metrics",
    "parse_metric_line",
]
