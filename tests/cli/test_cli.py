# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for the browser-recorder CLI."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from browserrecorder.cli import main as cli
from browserrecorder.exceptions import (
    BrowserError,
    ConfigurationError,
    EngineUnavailableError,
    InvalidRequestError,
    StorageUnavailableError,
)
from browserrecorder.models import QualityProfile, RecordingResult, SessionOutcome


@pytest.fixture(autouse=True)
def recorder_env(monkeypatch, temp_dir):
    """Point every recorder directory at the test directory."""
    for name, value in {
        "STORAGE_ROOT": temp_dir / "raw",
        "CLOUD_SCRATCH_ROOT": temp_dir / "no-cloud",
        "OUTPUT_DIR": temp_dir / "uploads",
        "LOG_DIR": temp_dir / "logs",
        "METRICS_DIR": temp_dir / "logs" / "metrics",
    }.items():
        monkeypatch.setenv(f"BROWSER_RECORDER_{name}", str(value))
    monkeypatch.delenv("BROWSER_RECORDER_DEFAULT_QUALITY", raising=False)


def run_cli(*argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--log-level", "ERROR", *argv])
    return exc_info.value.code


def patched_recorder(**methods):
    """Recorder class double usable as an async context manager."""
    instance = MagicMock()
    for name, value in methods.items():
        setattr(instance, name, AsyncMock(**value))
    recorder_cls = MagicMock()
    recorder_cls.return_value.__aenter__ = AsyncMock(return_value=instance)
    recorder_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    return patch("browserrecorder.cli.main.Recorder", recorder_cls), instance


class TestExitCodes:
    """Tests for exit_code_for()."""

    @pytest.mark.parametrize(
        "error, code",
        [
            (InvalidRequestError("x"), 2),
            (ConfigurationError("x"), 2),
            (EngineUnavailableError("x"), 3),
            (StorageUnavailableError("x"), 4),
            (BrowserError("x"), 1),
        ],
    )
    def test_mapping(self, error, code):
        """Test each outcome maps to its exit code."""
        assert cli.exit_code_for(error) == code


class TestVersion:
    """Tests for the version command."""

    def test_version_json(self, capsys):
        """Test version prints JSON."""
        assert run_cli("version", "--json") == 0

        info = json.loads(capsys.readouterr().out)
        assert info["browser-recorder"] == cli.get_version()
        assert "python" in info

    def test_no_command_prints_help(self, capsys):
        """Test no command prints help."""
        assert run_cli() == 0
        assert "browser-recorder" in capsys.readouterr().out


class TestRecord:
    """Tests for the record command."""

    def test_invalid_url(self, capsys):
        """Test an invalid URL exits with the usage code."""
        assert run_cli("record", "ftp://example.com", "-d", "5") == 2
        assert "http(s)" in capsys.readouterr().err

    def test_invalid_configuration(self, monkeypatch, capsys):
        """Test an invalid configuration exits with the usage code."""
        monkeypatch.setenv("BROWSER_RECORDER_CODEC", "theora")

        assert run_cli("record", "https://example.com") == 2

    def test_success_json(self, capsys):
        """Test a successful recording prints its JSON result."""
        result = RecordingResult(
            session_id="abc",
            file_name="recording-abc.webm",
            width=1280,
            height=720,
            fps=30,
            duration=5,
            quality=QualityProfile.BALANCED,
            size=4096,
            outcome=SessionOutcome.SUCCEEDED,
        )
        recorder_patch, recorder = patched_recorder(record={"return_value": result})

        with recorder_patch:
            code = run_cli("record", "https://example.com", "-d", "5", "-q", "balanced", "--json")

        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["fileName"] == "recording-abc.webm"
        assert payload["quality"] == "balanced"
        assert recorder.record.await_args.args == ("https://example.com", 5)

    def test_engine_unavailable(self, capsys):
        """Test a missing browser engine exits non-zero."""
        error = EngineUnavailableError("Chromium executable not found")
        error.result = RecordingResult(session_id="abc", log_file="/tmp/recording-abc.log")
        recorder_patch, _ = patched_recorder(record={"side_effect": error})

        with recorder_patch:
            code = run_cli("record", "https://example.com")

        assert code == 3
        err = capsys.readouterr().err
        assert "playwright install chromium" in err
        assert "/tmp/recording-abc.log" in err

    def test_placeholder_outcome_exits_one(self, capsys):
        """Test a placeholder outcome exits with 1."""
        result = RecordingResult(session_id="abc", outcome=SessionOutcome.FAILED_NO_CAPTURE)
        recorder_patch, _ = patched_recorder(record={"return_value": result})

        with recorder_patch:
            assert run_cli("record", "https://example.com") == 1


class TestBatch:
    """Tests for the batch command."""

    def test_unknown_preset(self, capsys):
        """Test an unknown preset exits with the usage code."""
        assert run_cli("batch", "https://example.com", "--presets", "SQUARE", "CINEMA") == 2
        assert "Unknown platform preset" in capsys.readouterr().err

    def test_invalid_fps(self):
        """Test an invalid fps exits with the usage code."""
        assert run_cli("batch", "https://example.com", "--presets", "SQUARE", "--fps", "500") == 2


class TestInspection:
    """Tests for storage, list and metrics."""

    def test_storage_json(self, capsys, temp_dir):
        """Test storage prints the resolved tier as JSON."""
        assert run_cli("storage", "--json") == 0

        info = json.loads(capsys.readouterr().out)
        assert info["kind"] == "override"
        assert info["provisioned"] is False

    def test_list_empty(self, capsys):
        """Test list with no recordings."""
        assert run_cli("list", "--json") == 0
        assert json.loads(capsys.readouterr().out) == []

    def test_metrics_none(self, capsys):
        """Test metrics with no metrics files."""
        assert run_cli("metrics") == 0
        assert "No frame rate metrics available" in capsys.readouterr().out
