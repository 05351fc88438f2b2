# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for capture discovery."""

import os
import time

from browserrecorder.core.discovery import discover, list_captures


def make_file(path, size, mtime):
    path.write_bytes(b"\0" * size)
    os.utime(path, (mtime, mtime))
    return path


class TestDiscover:
    """Tests for discover()."""

    def test_missing_directory(self, temp_dir):
        """Test a missing directory yields no capture."""
        assert discover(temp_dir / "missing", time.time()) is None

    def test_empty_directory(self, temp_dir):
        """Test an empty directory yields no capture."""
        assert discover(temp_dir, time.time()) is None

    def test_returns_newest_qualifying_file(self, temp_dir):
        """Test the newest large enough capture is chosen."""
        start = time.time() - 60
        make_file(temp_dir / "a.webm", 4096, start + 10)
        newest = make_file(temp_dir / "b.webm", 4096, start + 20)

        found = discover(temp_dir, start)

        assert found.path == newest
        assert found.size == 4096
        assert found.mtime == start + 20

    def test_ignores_files_older_than_session(self, temp_dir):
        """Test a stale capture from an earlier session is never selected."""
        start = time.time() - 60
        make_file(temp_dir / "stale.webm", 1_000_000, start - 1)

        assert discover(temp_dir, start) is None

    def test_ignores_small_files(self, temp_dir):
        """Test files under the size threshold are skipped."""
        start = time.time() - 60
        make_file(temp_dir / "partial.webm", 1024, start + 1)
        big = make_file(temp_dir / "full.webm", 1025, start + 1)

        assert discover(temp_dir, start, min_size_bytes=1024).path == big

    def test_larger_old_file_loses_to_newer_small_threshold_file(self, temp_dir):
        """Test recency wins over size once the threshold is met."""
        start = time.time() - 60
        make_file(temp_dir / "older.webm", 10_000, start + 1)
        newer = make_file(temp_dir / "newer.webm", 2_000, start + 5)

        assert discover(temp_dir, start).path == newer

    def test_ignores_non_video_files(self, temp_dir):
        """Test non-video extensions are skipped."""
        start = time.time() - 60
        make_file(temp_dir / "notes.txt", 4096, start + 5)
        make_file(temp_dir / "capture.log", 4096, start + 5)

        assert discover(temp_dir, start) is None

    def test_accepts_other_video_extensions(self, temp_dir):
        """Test mp4 and mkv captures are found too."""
        start = time.time() - 60
        mp4 = make_file(temp_dir / "capture.MP4", 4096, start + 5)

        assert discover(temp_dir, start).path == mp4

    def test_not_recursive(self, temp_dir):
        """Test subdirectories are not scanned."""
        start = time.time() - 60
        (temp_dir / "sessions" / "other").mkdir(parents=True)
        make_file(temp_dir / "sessions" / "other" / "foreign.webm", 4096, start + 5)

        assert discover(temp_dir, start) is None


def test_list_captures(temp_dir):
    """Test list_captures() orders captures newest first."""
    make_file(temp_dir / "a.webm", 10, time.time())
    make_file(temp_dir / "b.txt", 10, time.time())
    (temp_dir / "dir.webm").mkdir()

    names = [c.path.name for c in list_captures(temp_dir)]

    assert names == ["a.webm"]
