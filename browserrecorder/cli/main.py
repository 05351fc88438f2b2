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
browser-recorder CLI.

Usage:
    browser-recorder record URL [OPTIONS]          # Record one URL
    browser-recorder batch URL --presets P [P ...] # Record once per preset
    browser-recorder metrics [--watch]             # Show the latest frame rate metrics
    browser-recorder storage [--provision] [--release] # Show the raw capture storage tier
    browser-recorder list                          # List finished recordings
    browser-recorder doctor                        # Diagnose installation issues
    browser-recorder version                       # Show version information

Exit codes:
    0  success
    1  recording failed
    2  invalid request or configuration
    3  browser engine unavailable
    4  storage unavailable
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import platform
import shutil
import subprocess
import sys
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from browserrecorder.cli.output import CLIOutput
from browserrecorder.config import QUALITY_NAMES, RecorderConfig
from browserrecorder.core.batch import presets_from_names
from browserrecorder.core.presets import PlatformPreset, Resolution
from browserrecorder.core.storage import StorageTierSelector
from browserrecorder.exceptions import (
    ConfigurationError,
    EngineUnavailableError,
    InvalidRequestError,
    RecorderError,
    StorageUnavailableError,
)
from browserrecorder.models import BatchOptions, BatchResult, RecordingResult
from browserrecorder.observability.telemetry import latest_metrics
from browserrecorder.recorder import Recorder
from browserrecorder.utils.logger import LogFormat, configure_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2
EXIT_ENGINE = 3
EXIT_STORAGE = 4

cli_output = CLIOutput()


def get_version() -> str:
    """Get the browser-recorder version."""
    import browserrecorder
    return getattr(browserrecorder, "__version__", "unknown")


def exit_code_for(error: RecorderError) -> int:
    if isinstance(error, (InvalidRequestError, ConfigurationError)):
        return EXIT_INVALID
    if isinstance(error, EngineUnavailableError):
        return EXIT_ENGINE
    if isinstance(error, StorageUnavailableError):
        return EXIT_STORAGE
    return EXIT_FAILED


def load_config() -> RecorderConfig:
    """Configuration from the environment, validated.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    try:
        config = RecorderConfig.from_env()
    except ValueError as e:
        raise ConfigurationError(f"Invalid environment value: {e}") from e
    errors = config.validate()
    if errors:
        raise ConfigurationError("; ".join(errors))
    return config


def report_error(error: RecorderError) -> int:
    print(f"Error: {error.message or error}", file=sys.stderr)
    if isinstance(error, EngineUnavailableError) and EngineUnavailableError.INSTALL_HINT not in str(error):
        print(f"       {EngineUnavailableError.INSTALL_HINT}", file=sys.stderr)
    result = getattr(error, "result", None)
    if result is not None and result.log_file:
        print(f"       Trace log: {result.log_file}", file=sys.stderr)
    return exit_code_for(error)


def print_result(result: RecordingResult) -> None:
    cli_output.print_summary("Recording", {
        "Outcome": result.outcome.value,
        "File": result.file_path or "-",
        "Size": f"{result.size} bytes",
        "Geometry": f"{result.width}x{result.height} @ {result.fps} fps ({result.aspect_ratio})",
        "Duration": f"{result.duration}s",
        "Quality": result.quality.value if result.quality else "-",
        "Enhanced": "yes" if result.enhanced else "no (raw capture delivered)",
        "Trace log": result.log_file or "-",
        "Metrics": result.metrics_file or "-",
    })
    if result.error:
        cli_output.print_status_line("WARN", result.error, warn=True)


def print_batch(batch: BatchResult) -> None:
    cli_output.print_section(f"Batch {batch.batch_id}")
    for entry in batch.entries:
        if entry.success and entry.video is not None:
            video = entry.video
            cli_output.print_status_line(
                "OK",
                f"{entry.preset}: {video.filename} ({video.width}x{video.height}, {video.size} bytes)",
                ok=True,
            )
        else:
            cli_output.print_status_line("FAIL", f"{entry.preset}: {entry.error}", ok=False)
    cli_output.write(f"\n  {batch.succeeded} succeeded, {batch.failed} failed")


def cmd_record(args: argparse.Namespace) -> int:
    """Record one URL."""
    try:
        config = load_config()

        async def run() -> RecordingResult:
            async with Recorder(config) as recorder:
                return await recorder.record(
                    args.url,
                    args.duration,
                    quality=args.quality,
                    width=args.width,
                    height=args.height,
                    fps=args.fps,
                    platform_preset=args.preset,
                    resolution=args.resolution,
                    speed=args.speed,
                )

        result = asyncio.run(run())
    except RecorderError as e:
        return report_error(e)

    if args.json:
        print(json.dumps(result.to_response(), indent=2))
    else:
        print_result(result)
    return EXIT_OK if result.succeeded else EXIT_FAILED


def cmd_batch(args: argparse.Namespace) -> int:
    """Record one URL once per preset."""
    try:
        config = load_config()
        presets = presets_from_names(args.presets)
        options = BatchOptions(
            resolution=args.resolution,
            duration_seconds=args.duration,
            quality=args.quality,
            fps=args.fps,
            speed=args.speed,
        )

        async def run() -> BatchResult:
            async with Recorder(config) as recorder:
                return await recorder.record_batch(args.url, presets, options)

        batch = asyncio.run(run())
    except RecorderError as e:
        return report_error(e)
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        return report_error(InvalidRequestError(f"Invalid batch options: {messages}"))

    if args.json:
        print(batch.model_dump_json(indent=2, exclude={"entries": {"__all__": {"result"}}}))
    else:
        print_batch(batch)
    return EXIT_OK if batch.failed == 0 else EXIT_FAILED


def cmd_metrics(args: argparse.Namespace) -> int:
    """Show the most recent metrics file."""
    config = RecorderConfig.from_env()
    if not args.watch:
        for line in cli_output.format_metrics(latest_metrics(config.metrics_dir)):
            cli_output.write(line)
        return EXIT_OK

    try:
        while True:
            if cli_output.color:
                cli_output.write("\x1b[2J\x1b[H")
            cli_output.write(f"Metrics monitor - {datetime.now().strftime('%H:%M:%S')}")
            for line in cli_output.format_metrics(latest_metrics(config.metrics_dir)):
                cli_output.write(line)
            time.sleep(args.interval)
    except KeyboardInterrupt:
        cli_output.write("\nExiting frame rate monitor.")
    return EXIT_OK


def cmd_storage(args: argparse.Namespace) -> int:
    """Resolve the raw capture storage tier."""
    try:
        config = load_config()
        if args.provision:
            config.provision_ramdisk = True
        selector = StorageTierSelector(config)
        tier = selector.resolve()
    except RecorderError as e:
        return report_error(e)

    info: Dict[str, Any] = {
        "root": str(tier.root),
        "kind": tier.kind.value,
        "provisioned": tier.provisioned,
        "ram": tier.is_ram,
    }
    if args.json:
        print(json.dumps(info, indent=2))
    else:
        cli_output.print_summary("Storage tier", info)

    if args.release:
        selector.release()
    return EXIT_OK


def cmd_list(args: argparse.Namespace) -> int:
    """List finished recordings."""
    recorder = Recorder(RecorderConfig.from_env())
    files = recorder.list_recordings()
    if args.json:
        print(json.dumps([f.model_dump() for f in files], indent=2))
        return EXIT_OK

    if not files:
        cli_output.write(f"No recordings in {recorder.output_dir}")
        return EXIT_OK
    for f in files:
        stamp = datetime.fromtimestamp(f.modified).strftime("%Y-%m-%d %H:%M:%S")
        cli_output.write(f"  {stamp}  {f.size:>12}  {f.filename}")
    return EXIT_OK


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    version = get_version()

    if args.json:
        info = {
            "browser-recorder": version,
            "python": platform.python_version(),
            "platform": platform.system(),
            "architecture": platform.machine(),
        }
        print(json.dumps(info, indent=2))
    else:
        print(f"browser-recorder {version}")

    return EXIT_OK


def cmd_doctor(args: argparse.Namespace) -> int:
    """Run installation diagnostics."""
    cli_output.print_summary("Diagnostics", {
        "browser-recorder": get_version(),
        "Python": platform.python_version(),
        "Platform": f"{platform.system()} {platform.machine()}",
    })

    checks: List[bool] = []

    cli_output.print_section("Configuration")
    config = RecorderConfig.from_env()
    errors = config.validate()
    if errors:
        for error in errors:
            cli_output.print_status_line("FAIL", error, ok=False)
        checks.append(False)
    else:
        cli_output.print_status_line("OK", "Configuration valid", ok=True)
        checks.append(True)

    cli_output.print_section("Transcoder")
    ffmpeg = shutil.which(config.ffmpeg_path)
    if ffmpeg:
        cli_output.print_status_line("OK", f"ffmpeg found at {ffmpeg}", ok=True)
    else:
        cli_output.print_status_line(
            "WARN", f"ffmpeg not found ({config.ffmpeg_path}), raw captures will be delivered", warn=True
        )
    checks.append(True)  # Not a hard failure

    cli_output.print_section("Browser engine")
    try:
        result = subprocess.run(
            [sys.executable, "-m", "playwright", "install", "--dry-run", "chromium"],
            capture_output=True,
            text=True,
            timeout=10,
        )
        if result.returncode == 0:
            cli_output.print_status_line("OK", "Chromium browser available", ok=True)
        else:
            cli_output.print_status_line("WARN", "Chromium may need installation", warn=True)
            cli_output.write(f"       {EngineUnavailableError.INSTALL_HINT}")
        checks.append(True)
    except (OSError, subprocess.SubprocessError):
        cli_output.print_status_line("WARN", "Could not verify browser installation", warn=True)
        checks.append(True)

    cli_output.print_section("Storage")
    try:
        tier = StorageTierSelector(config).resolve()
        cli_output.print_status_line("OK", f"{tier.kind.value} tier at {tier.root}", ok=True)
        checks.append(True)
    except StorageUnavailableError as e:
        cli_output.print_status_line("FAIL", e.message, ok=False)
        checks.append(False)

    cli_output.print_section("Summary")
    if all(checks):
        cli_output.print_status_line("SUCCESS", "All checks passed!", ok=True)
        return EXIT_OK
    cli_output.print_status_line("FAIL", "Some checks failed. Please fix the issues above.", ok=False)
    return EXIT_FAILED


def _add_recording_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", help="Page to record (http or https)")
    parser.add_argument(
        "--duration", "-d",
        type=int,
        default=None,
        help="Seconds to record, clamped to 1-60 (default: BROWSER_RECORDER_DEFAULT_DURATION or 10)",
    )
    parser.add_argument(
        "--quality", "-q",
        choices=QUALITY_NAMES,
        default=None,
        help="Transcode quality profile (default: balanced)",
    )
    parser.add_argument("--fps", type=int, default=None, help="Output frame rate")
    parser.add_argument("--speed", default=None, help="Animation speed passed to the page as ?speed=")
    parser.add_argument("--json", "-j", action="store_true", help="Output in JSON format")


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="browser-recorder",
        description="browser-recorder - Record web pages to video files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  browser-recorder record https://example.com -d 5
  browser-recorder record https://example.com --preset VERTICAL_9_16 --resolution 1080p
  browser-recorder batch https://example.com --presets SQUARE WIDESCREEN_16_9
  browser-recorder metrics --watch
  browser-recorder doctor
""",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("BROWSER_RECORDER_LOG_LEVEL", "INFO"),
        help="Set logging level (default: INFO)",
    )
    parser.add_argument(
        "--human-readable", "--human",
        action="store_true",
        default=os.environ.get("BROWSER_RECORDER_LOG_FORMAT", "json").lower() == "human",
        help="Use human-readable log format instead of JSON",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    record_parser = subparsers.add_parser("record", help="Record one URL")
    _add_recording_options(record_parser)
    record_parser.add_argument("--width", type=int, default=None, help="Viewport width")
    record_parser.add_argument("--height", type=int, default=None, help="Viewport height")
    record_parser.add_argument(
        "--preset",
        choices=[p.value for p in PlatformPreset],
        default=None,
        help="Platform preset, overrides width and height",
    )
    record_parser.add_argument(
        "--resolution",
        default=None,
        help=f"Resolution used with --preset ({', '.join(r.value for r in Resolution)})",
    )
    record_parser.set_defaults(func=cmd_record)

    batch_parser = subparsers.add_parser("batch", help="Record one URL once per preset")
    _add_recording_options(batch_parser)
    batch_parser.add_argument(
        "--presets", "-p",
        nargs="+",
        required=True,
        help=f"Presets to record, in order ({', '.join(p.value for p in PlatformPreset)})",
    )
    batch_parser.add_argument(
        "--resolution",
        default=Resolution.P1080.value,
        help="Resolution for every preset (default: 1080p)",
    )
    batch_parser.set_defaults(func=cmd_batch)

    metrics_parser = subparsers.add_parser("metrics", help="Show the latest frame rate metrics")
    metrics_parser.add_argument("--watch", "-w", action="store_true", help="Refresh continuously")
    metrics_parser.add_argument(
        "--interval", type=float, default=1.0, help="Refresh interval in seconds (default: 1)"
    )
    metrics_parser.set_defaults(func=cmd_metrics)

    storage_parser = subparsers.add_parser("storage", help="Show the raw capture storage tier")
    storage_parser.add_argument(
        "--provision", action="store_true", help="Allow mounting a RAM volume"
    )
    storage_parser.add_argument(
        "--release", action="store_true", help="Release a RAM volume mounted by this command"
    )
    storage_parser.add_argument("--json", "-j", action="store_true", help="Output in JSON format")
    storage_parser.set_defaults(func=cmd_storage)

    list_parser = subparsers.add_parser("list", help="List finished recordings")
    list_parser.add_argument("--json", "-j", action="store_true", help="Output in JSON format")
    list_parser.set_defaults(func=cmd_list)

    doctor_parser = subparsers.add_parser("doctor", help="Diagnose installation issues")
    doctor_parser.set_defaults(func=cmd_doctor)

    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.add_argument("--json", "-j", action="store_true", help="Output in JSON format")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(
        level=args.log_level,
        log_format=LogFormat.HUMAN if args.human_readable else LogFormat.JSON,
    )

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(EXIT_OK)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
