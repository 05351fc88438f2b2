# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for the storage tier selector."""

import os
import subprocess
from collections import namedtuple
from pathlib import Path
from unittest.mock import MagicMock, patch

import psutil
import pytest

from browserrecorder.config import RecorderConfig
from browserrecorder.core.storage import (
    StorageTier,
    StorageTierKind,
    StorageTierSelector,
    check_disk_space,
)
from browserrecorder.exceptions import StorageUnavailableError

Partition = namedtuple("Partition", "device mountpoint fstype opts")
OpenFile = namedtuple("OpenFile", "path fd")


def make_config(temp_dir, **overrides):
    values = dict(
        cloud_scratch_root=str(temp_dir / "no-cloud"),
        cloud_scratch_path=str(temp_dir / "no-cloud" / "browser-recorder" / "temp"),
        ramdisk_path=str(temp_dir / "ramdisk"),
        provision_ramdisk=False,
    )
    values.update(overrides)
    return RecorderConfig(**values)


@pytest.fixture
def no_mounts():
    with patch("browserrecorder.core.storage.psutil.disk_partitions", return_value=[]) as mock:
        yield mock


@pytest.fixture
def system_temp(temp_dir):
    """Point tempfile.gettempdir() at the test directory."""
    root = temp_dir / "systmp"
    root.mkdir()
    with patch("browserrecorder.core.storage.tempfile.gettempdir", return_value=str(root)):
        yield root


class TestStorageTier:
    """Tests for StorageTier."""

    def test_session_dir_created(self, temp_dir):
        """Test session directories are created under the tier root."""
        tier = StorageTier(root=temp_dir, kind=StorageTierKind.DISK_TEMP)

        path = tier.session_dir("abc")

        assert path == temp_dir / "sessions" / "abc"
        assert path.is_dir()

    def test_session_dirs_are_private(self, temp_dir):
        """Test session directories are private to the owner."""
        tier = StorageTier(root=temp_dir, kind=StorageTierKind.DISK_TEMP)
        assert tier.session_dir("a") != tier.session_dir("b")

    def test_session_dir_unwritable(self, temp_dir):
        """Test an unwritable tier raises StorageUnavailableError."""
        blocker = temp_dir / "file"
        blocker.write_text("x")
        tier = StorageTier(root=blocker, kind=StorageTierKind.OVERRIDE)

        with pytest.raises(StorageUnavailableError):
            tier.session_dir("abc")

    def test_is_ram(self, temp_dir):
        """Test only RAM tiers report is_ram."""
        assert StorageTier(temp_dir, StorageTierKind.RAM_MOUNTED).is_ram
        assert StorageTier(temp_dir, StorageTierKind.RAM_PROVISIONED).is_ram
        assert not StorageTier(temp_dir, StorageTierKind.CLOUD_SCRATCH).is_ram


class TestResolveOrder:
    """Tests for the candidate priority order."""

    def test_override_wins(self, temp_dir, no_mounts):
        """Test the storage override beats every other tier."""
        override = temp_dir / "override"
        (temp_dir / "cloud").mkdir()
        config = make_config(
            temp_dir,
            storage_override=str(override),
            cloud_scratch_root=str(temp_dir / "cloud"),
            cloud_scratch_path=str(temp_dir / "cloud" / "temp"),
        )

        tier = StorageTierSelector(config, min_free_bytes=0).resolve()

        assert tier.kind is StorageTierKind.OVERRIDE
        assert tier.root == override.resolve()
        assert override.is_dir()

    def test_unwritable_override_is_fatal(self, temp_dir, no_mounts):
        """Test an unusable override is fatal."""
        blocker = temp_dir / "file"
        blocker.write_text("x")
        config = make_config(temp_dir, storage_override=str(blocker / "sub"))

        with pytest.raises(StorageUnavailableError):
            StorageTierSelector(config, min_free_bytes=0).resolve()

    def test_cloud_scratch_when_mount_exists(self, temp_dir, no_mounts):
        """Test cloud scratch is used when its mount exists."""
        (temp_dir / "cloud").mkdir()
        config = make_config(
            temp_dir,
            cloud_scratch_root=str(temp_dir / "cloud"),
            cloud_scratch_path=str(temp_dir / "cloud" / "browser-recorder" / "temp"),
        )

        tier = StorageTierSelector(config, min_free_bytes=0).resolve()

        assert tier.kind is StorageTierKind.CLOUD_SCRATCH
        assert tier.root == (temp_dir / "cloud" / "browser-recorder" / "temp").resolve()
        assert tier.root.is_dir()

    def test_mounted_ram_volume(self, temp_dir):
        """Test a mounted tmpfs is used."""
        ramdisk = temp_dir / "ramdisk"
        ramdisk.mkdir()
        partitions = [Partition("tmpfs", str(ramdisk), "tmpfs", "rw")]
        config = make_config(temp_dir)

        with patch("browserrecorder.core.storage.psutil.disk_partitions", return_value=partitions):
            tier = StorageTierSelector(config, min_free_bytes=0).resolve()

        assert tier.kind is StorageTierKind.RAM_MOUNTED
        assert tier.provisioned is False

    def test_non_ram_mount_is_skipped(self, temp_dir, system_temp):
        """Test a disk-backed mount is not taken as RAM."""
        ramdisk = temp_dir / "ramdisk"
        ramdisk.mkdir()
        partitions = [Partition("/dev/sda1", str(ramdisk), "ext4", "rw")]
        config = make_config(temp_dir)

        with patch("browserrecorder.core.storage.psutil.disk_partitions", return_value=partitions):
            tier = StorageTierSelector(config, min_free_bytes=0).resolve()

        assert tier.kind is StorageTierKind.DISK_TEMP

    def test_disk_fallback(self, temp_dir, no_mounts, system_temp):
        """Test no scratch, no RAM volume and no provisioning falls back to disk."""
        tier = StorageTierSelector(make_config(temp_dir), min_free_bytes=0).resolve()

        assert tier.kind is StorageTierKind.DISK_TEMP
        assert tier.root == (system_temp / "browser-recorder").resolve()
        assert os.access(tier.root, os.W_OK)

    def test_low_free_space_skips_candidate(self, temp_dir, no_mounts, system_temp):
        """Test a tier without free space is skipped."""
        (temp_dir / "cloud").mkdir()
        config = make_config(
            temp_dir,
            cloud_scratch_root=str(temp_dir / "cloud"),
            cloud_scratch_path=str(temp_dir / "cloud" / "temp"),
        )

        with patch("browserrecorder.core.storage.check_disk_space", return_value=False):
            tier = StorageTierSelector(config).resolve()

        assert tier.kind is StorageTierKind.DISK_TEMP

    def test_nothing_writable(self, temp_dir, no_mounts):
        """Test no writable tier raises StorageUnavailableError."""
        selector = StorageTierSelector(make_config(temp_dir), min_free_bytes=0)

        with patch.object(StorageTierSelector, "_disk_temp", return_value=None):
            with pytest.raises(StorageUnavailableError):
                selector.resolve()


class TestResolveCaching:
    """Tests for resolve-once behaviour."""

    def test_resolved_once(self, temp_dir, no_mounts, system_temp):
        """Test the resolved tier is cached."""
        selector = StorageTierSelector(make_config(temp_dir), min_free_bytes=0)

        with patch.object(selector, "_probe", wraps=selector._probe) as probe:
            first = selector.resolve()
            second = selector.resolve()

        assert first is second
        assert probe.call_count == 1
        assert selector.tier is first

    def test_reconfigure_drops_cache(self, temp_dir, no_mounts, system_temp):
        """Test reconfigure() forces a new resolution."""
        selector = StorageTierSelector(make_config(temp_dir), min_free_bytes=0)
        assert selector.resolve().kind is StorageTierKind.DISK_TEMP

        selector.reconfigure(make_config(temp_dir, storage_override=str(temp_dir / "new")))

        assert selector.tier is None
        assert selector.resolve().kind is StorageTierKind.OVERRIDE


class TestProvisioning:
    """Tests for provision_ram_volume()."""

    def test_disabled_by_default(self, temp_dir, no_mounts):
        """Test RAM provisioning is off by default."""
        selector = StorageTierSelector(make_config(temp_dir), min_free_bytes=0)

        with patch("browserrecorder.core.storage.subprocess.run") as run:
            assert selector.provision_ram_volume() is None
            run.assert_not_called()

    def test_linux_mount_is_idempotent(self, temp_dir):
        """Test a second call sees the mount and does not mount again."""
        ramdisk = temp_dir / "ramdisk"
        config = make_config(temp_dir, provision_ramdisk=True, ramdisk_size_mb=512)
        selector = StorageTierSelector(config, min_free_bytes=0)
        mounted = []

        def partitions(all=True):
            return [Partition("tmpfs", p, "tmpfs", "rw") for p in mounted]

        def run(cmd, **kwargs):
            mounted.append(cmd[-1])
            return subprocess.CompletedProcess(cmd, 0, "", "")

        with patch("browserrecorder.core.storage.platform.system", return_value="Linux"), \
                patch("browserrecorder.core.storage.os.geteuid", return_value=0, create=True), \
                patch("browserrecorder.core.storage.shutil.which", return_value="/bin/mount"), \
                patch("browserrecorder.core.storage.psutil.disk_partitions", side_effect=partitions), \
                patch("browserrecorder.core.storage.subprocess.run", side_effect=run) as mock_run:
            first = selector.provision_ram_volume()
            second = selector.provision_ram_volume()

        assert first == ramdisk
        assert second == ramdisk
        assert mock_run.call_count == 1
        cmd = mock_run.call_args[0][0]
        assert cmd[:3] == ["mount", "-t", "tmpfs"]
        assert "size=512m,mode=1777" in cmd

    def test_failed_mount_falls_through(self, temp_dir, no_mounts, system_temp):
        """Test a failed mount falls through to the next tier."""
        config = make_config(temp_dir, provision_ramdisk=True)
        selector = StorageTierSelector(config, min_free_bytes=0)
        error = subprocess.CalledProcessError(32, ["mount"], stderr="permission denied")

        with patch("browserrecorder.core.storage.platform.system", return_value="Linux"), \
                patch("browserrecorder.core.storage.os.geteuid", return_value=0, create=True), \
                patch("browserrecorder.core.storage.shutil.which", return_value="/bin/mount"), \
                patch("browserrecorder.core.storage.subprocess.run", side_effect=error):
            tier = selector.resolve()

        assert tier.kind is StorageTierKind.DISK_TEMP

    def test_requires_root_on_linux(self, temp_dir, no_mounts):
        """Test provisioning on Linux needs root."""
        selector = StorageTierSelector(make_config(temp_dir, provision_ramdisk=True), min_free_bytes=0)

        with patch("browserrecorder.core.storage.platform.system", return_value="Linux"), \
                patch("browserrecorder.core.storage.os.geteuid", return_value=1000, create=True), \
                patch("browserrecorder.core.storage.subprocess.run") as run:
            assert selector.provision_ram_volume() is None
            run.assert_not_called()

    def test_macos_ram_disk(self, temp_dir, no_mounts):
        """Test macOS provisioning attaches and mounts a RAM disk."""
        config = make_config(temp_dir, provision_ramdisk=True, ramdisk_size_mb=100)
        selector = StorageTierSelector(config, min_free_bytes=0)
        attach = subprocess.CompletedProcess([], 0, "/dev/disk4\n", "")
        erase = subprocess.CompletedProcess([], 0, "", "")

        with patch("browserrecorder.core.storage.platform.system", return_value="Darwin"), \
                patch("browserrecorder.core.storage.shutil.which", return_value="/usr/bin/hdiutil"), \
                patch("browserrecorder.core.storage.os.chmod"), \
                patch("browserrecorder.core.storage.subprocess.run", side_effect=[attach, erase]) as run:
            path = selector.provision_ram_volume()

        assert path == Path("/Volumes") / "ramdisk"
        assert run.call_args_list[0][0][0] == ["hdiutil", "attach", "-nomount", "ram://204800"]
        assert run.call_args_list[1][0][0] == ["diskutil", "erasevolume", "HFS+", "ramdisk", "/dev/disk4"]


class TestRelease:
    """Tests for release()."""

    def provisioned_selector(self, temp_dir):
        root = temp_dir / "ramdisk"
        root.mkdir()
        selector = StorageTierSelector(make_config(temp_dir), min_free_bytes=0)
        selector._tier = StorageTier(root=root, kind=StorageTierKind.RAM_PROVISIONED, provisioned=True)
        selector._provisioned_path = root
        return selector, root

    def test_purges_and_unmounts(self, temp_dir):
        """Test release purges and unmounts a provisioned volume."""
        selector, root = self.provisioned_selector(temp_dir)
        (root / "sessions" / "abc").mkdir(parents=True)
        (root / "sessions" / "abc" / "raw.webm").write_bytes(b"x")
        (root / "stray.tmp").write_bytes(b"y")

        with patch.object(selector, "open_handle_count", return_value=0), \
                patch("browserrecorder.core.storage.subprocess.run") as run:
            selector.release()

        assert list(root.iterdir()) == []
        run.assert_called_once()
        assert run.call_args[0][0] == ["umount", str(root)]
        assert selector.tier is None

    def test_open_handles_keep_mount(self, temp_dir):
        """Test open handles keep the volume mounted."""
        selector, root = self.provisioned_selector(temp_dir)

        with patch.object(selector, "open_handle_count", return_value=2), \
                patch("browserrecorder.core.storage.subprocess.run") as run:
            selector.release()

        run.assert_not_called()

    def test_never_unmounts_foreign_volume(self, temp_dir):
        """Test a volume mounted by someone else is left alone."""
        selector = StorageTierSelector(make_config(temp_dir), min_free_bytes=0)
        selector._tier = StorageTier(root=temp_dir, kind=StorageTierKind.RAM_MOUNTED)
        (temp_dir / "keep.txt").write_text("x")

        with patch("browserrecorder.core.storage.subprocess.run") as run:
            selector.release()

        run.assert_not_called()
        assert (temp_dir / "keep.txt").exists()

    def test_unmount_failure_is_logged(self, temp_dir):
        """Test an unmount failure is logged, not raised."""
        selector, root = self.provisioned_selector(temp_dir)
        error = subprocess.CalledProcessError(32, ["umount"], stderr="target is busy")

        with patch.object(selector, "open_handle_count", return_value=0), \
                patch("browserrecorder.core.storage.subprocess.run", side_effect=error):
            selector.release()

        assert selector.tier is not None


class TestOpenHandleCount:
    """Tests for open_handle_count()."""

    def test_counts_other_processes_only(self, temp_dir):
        """Test the current process's handles are not counted."""
        selector = StorageTierSelector(make_config(temp_dir), min_free_bytes=0)

        own = MagicMock(pid=os.getpid())
        other = MagicMock(pid=os.getpid() + 1)
        other.open_files.return_value = [
            OpenFile(str(temp_dir / "a.webm"), 3),
            OpenFile("/elsewhere/b.webm", 4),
        ]
        denied = MagicMock(pid=os.getpid() + 2)
        denied.open_files.side_effect = psutil.AccessDenied()

        with patch("browserrecorder.core.storage.psutil.process_iter", return_value=[own, other, denied]):
            assert selector.open_handle_count(temp_dir) == 1

        own.open_files.assert_not_called()


def test_check_disk_space(temp_dir):
    """Test free space is compared against the minimum."""
    assert check_disk_space(str(temp_dir), 0) is True
    assert check_disk_space(str(temp_dir), 10 ** 18) is False
