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
Storage tier selection for raw browser captures.

Raw captures are written where writes are cheapest. The selector probes a
fixed, ranked list of candidate roots and keeps the first usable one for the
lifetime of the process:

1. an explicit override from configuration
2. the cloud provider's ephemeral SSD scratch directory
3. an already-mounted RAM volume
4. a RAM volume the process provisions itself (tmpfs on Linux, a RAM disk
   on macOS) when provisioning is enabled
5. a directory under the system temp dir

Candidates are chosen by probing (existence, mount table, writability, free
space). A failed self-provisioning attempt falls through to the next
candidate. Sessions never write directly into the root: each gets a private
subdirectory from StorageTier.session_dir() so concurrent sessions cannot
see each other's captures.

Example:
    >>> selector = StorageTierSelector(RecorderConfig())
    >>> tier = selector.resolve()
    >>> capture_dir = tier.session_dir("3f2a9c")
    >>> selector.release()
"""

from __future__ import annotations

import os
import platform
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

import psutil

from browserrecorder.config import RecorderConfig
from browserrecorder.exceptions import StorageUnavailableError
from browserrecorder.utils.logger import logger

RAM_FSTYPES = {"tmpfs", "ramfs"}
DEFAULT_MIN_FREE_BYTES = 100 * 1024 * 1024


class StorageTierKind(str, Enum):
    """Where the raw capture root lives."""

    OVERRIDE = "override"
    CLOUD_SCRATCH = "cloud_scratch"
    RAM_MOUNTED = "ram_mounted"
    RAM_PROVISIONED = "ram_provisioned"
    DISK_TEMP = "disk_temp"


@dataclass(frozen=True)
class StorageTier:
    """A resolved raw capture root.

    Attributes:
        root: Directory raw captures are written under
        kind: Which candidate the root came from
        provisioned: True only when this process mounted the volume
        device: Backing device of a provisioned macOS RAM disk
    """

    root: Path
    kind: StorageTierKind
    provisioned: bool = False
    device: Optional[str] = None

    @property
    def is_ram(self) -> bool:
        return self.kind in (StorageTierKind.RAM_MOUNTED, StorageTierKind.RAM_PROVISIONED)

    def session_dir(self, session_id: str) -> Path:
        """Create and return the private capture directory of a session.

        Raises:
            StorageUnavailableError: If the directory cannot be created
        """
        path = self.root / "sessions" / session_id
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(
                f"Cannot create session directory {path} on {self.kind.value} tier: {e}"
            ) from e
        return path


def check_disk_space(path: str, min_bytes: int = DEFAULT_MIN_FREE_BYTES) -> bool:
    """Check if there's sufficient disk space.

    Args:
        path: Path to check
        min_bytes: Minimum required bytes (default 100MB)

    Returns:
        True if sufficient space available
    """
    try:
        stat = os.statvfs(path)
        available = stat.f_bavail * stat.f_frsize
        return available >= min_bytes
    except (OSError, AttributeError):
        # On Windows or if statvfs fails, assume OK
        return True


def is_writable_dir(path: Path) -> bool:
    return path.is_dir() and os.access(path, os.W_OK | os.X_OK)


class StorageTierSelector:
    """
    Resolves and caches the storage tier for raw captures.

    The tier is resolved once per selector (one selector per process) and
    only re-resolved after reconfigure().

    Attributes:
        config: Recorder configuration holding the candidate paths
        min_free_bytes: Candidates with less free space are skipped
    """

    def __init__(
        self,
        config: Optional[RecorderConfig] = None,
        min_free_bytes: int = DEFAULT_MIN_FREE_BYTES,
    ) -> None:
        self.config = config or RecorderConfig()
        self.min_free_bytes = min_free_bytes
        self._tier: Optional[StorageTier] = None
        self._provisioned_path: Optional[Path] = None
        self._device: Optional[str] = None

    @property
    def tier(self) -> Optional[StorageTier]:
        """The cached tier, None before resolve()."""
        return self._tier

    def resolve(self) -> StorageTier:
        """
        Resolve the raw capture root, probing candidates on first call only.

        Returns:
            The resolved StorageTier

        Raises:
            StorageUnavailableError: If no candidate is writable
        """
        if self._tier is not None:
            return self._tier

        tier = self._probe()
        self._tier = tier
        logger.info(f"[STORAGE] Using {tier.kind.value} tier at {tier.root}")
        return tier

    def reconfigure(self, config: RecorderConfig) -> None:
        """Replace the configuration and drop the cached tier."""
        self.config = config
        self._tier = None

    def _probe(self) -> StorageTier:
        if self.config.storage_override:
            return self._override()

        candidates: List[Callable[[], Optional[StorageTier]]] = [
            self._cloud_scratch,
            self._mounted_ram,
            self._provisioned_ram,
            self._disk_temp,
        ]
        for candidate in candidates:
            tier = candidate()
            if tier is not None:
                return tier

        raise StorageUnavailableError("No writable storage tier found for raw captures")

    def _usable(self, path: Path) -> bool:
        return is_writable_dir(path) and check_disk_space(str(path), self.min_free_bytes)

    def _override(self) -> StorageTier:
        path = Path(self.config.storage_override).expanduser()
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Storage override {path} cannot be created: {e}") from e
        if not is_writable_dir(path):
            raise StorageUnavailableError(f"Storage override {path} is not writable")
        return StorageTier(root=path.resolve(), kind=StorageTierKind.OVERRIDE)

    def _cloud_scratch(self) -> Optional[StorageTier]:
        mount_root = Path(self.config.cloud_scratch_root)
        if not mount_root.is_dir():
            logger.debug(f"[STORAGE] Cloud scratch {mount_root} not present")
            return None
        path = Path(self.config.cloud_scratch_path)
        if not path.exists() and os.access(mount_root, os.W_OK):
            path.mkdir(parents=True, exist_ok=True)
        if not self._usable(path):
            logger.debug(f"[STORAGE] Cloud scratch {path} not writable")
            return None
        return StorageTier(root=path.resolve(), kind=StorageTierKind.CLOUD_SCRATCH)

    def _mounted_ram(self) -> Optional[StorageTier]:
        path = Path(self.config.ramdisk_path)
        if not self.is_ram_mount(path) or not self._usable(path):
            return None
        provisioned = self._provisioned_path is not None and self._same_path(path, self._provisioned_path)
        return StorageTier(
            root=path.resolve(),
            kind=StorageTierKind.RAM_PROVISIONED if provisioned else StorageTierKind.RAM_MOUNTED,
            provisioned=provisioned,
            device=self._device if provisioned else None,
        )

    def _provisioned_ram(self) -> Optional[StorageTier]:
        path = self.provision_ram_volume()
        if path is None or not self._usable(path):
            return None
        return StorageTier(
            root=path.resolve(),
            kind=StorageTierKind.RAM_PROVISIONED,
            provisioned=True,
            device=self._device,
        )

    def _disk_temp(self) -> Optional[StorageTier]:
        path = Path(tempfile.gettempdir()) / "browser-recorder"
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"[STORAGE] Cannot create temp directory {path}: {e}")
            return None
        if not is_writable_dir(path):
            return None
        return StorageTier(root=path.resolve(), kind=StorageTierKind.DISK_TEMP)

    @staticmethod
    def _same_path(a: Path, b: Path) -> bool:
        return os.path.realpath(a) == os.path.realpath(b)

    def is_ram_mount(self, path: Path) -> bool:
        """Whether path is the mount point of a RAM-backed filesystem."""
        target = os.path.realpath(path)
        for part in psutil.disk_partitions(all=True):
            if os.path.realpath(part.mountpoint) != target:
                continue
            if part.fstype in RAM_FSTYPES:
                return True
            if self._device and part.device == self._device:
                return True
        return False

    def _can_provision(self) -> bool:
        if not self.config.provision_ramdisk:
            return False
        system = platform.system()
        if system == "Linux":
            return hasattr(os, "geteuid") and os.geteuid() == 0 and shutil.which("mount") is not None
        if system == "Darwin":
            return shutil.which("hdiutil") is not None and shutil.which("diskutil") is not None
        return False

    def _ram_mount_point(self) -> Path:
        if platform.system() == "Darwin":
            return Path("/Volumes") / Path(self.config.ramdisk_path).name
        return Path(self.config.ramdisk_path)

    def provision_ram_volume(self) -> Optional[Path]:
        """
        Mount a RAM-backed volume for raw captures.

        Idempotent: when the volume is already mounted the existing mount
        point is returned and nothing is re-mounted. Failures are logged and
        reported as None so the caller can fall through to the next tier.

        Returns:
            The mount point, or None when provisioning is unavailable or failed
        """
        path = self._ram_mount_point()
        if self.is_ram_mount(path):
            logger.debug(f"[STORAGE] RAM volume already mounted at {path}")
            return path

        if not self._can_provision():
            return None

        size_mb = self.config.ramdisk_size_mb
        try:
            if platform.system() == "Darwin":
                sectors = size_mb * 2048
                attached = subprocess.run(
                    ["hdiutil", "attach", "-nomount", f"ram://{sectors}"],
                    capture_output=True, text=True, check=True, timeout=30,
                )
                device = attached.stdout.strip()
                subprocess.run(
                    ["diskutil", "erasevolume", "HFS+", path.name, device],
                    capture_output=True, text=True, check=True, timeout=60,
                )
                self._device = device
            else:
                path.mkdir(parents=True, exist_ok=True)
                subprocess.run(
                    ["mount", "-t", "tmpfs", "-o", f"size={size_mb}m,mode=1777", "tmpfs", str(path)],
                    capture_output=True, text=True, check=True, timeout=30,
                )
            os.chmod(path, 0o1777)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.warning(f"[STORAGE] Could not provision RAM volume at {path}: {e}")
            return None

        self._provisioned_path = path
        logger.warning(f"[STORAGE] Mounted {size_mb}MB RAM volume at {path}")
        return path

    def open_handle_count(self, root: Path) -> int:
        """Number of files under root held open by other processes."""
        prefix = os.path.realpath(root) + os.sep
        own_pid = os.getpid()
        count = 0
        for proc in psutil.process_iter(["pid"]):
            if proc.pid == own_pid:
                continue
            try:
                files = proc.open_files()
            except (psutil.AccessDenied, psutil.NoSuchProcess, psutil.ZombieProcess):
                continue
            count += sum(1 for f in files if os.path.realpath(f.path).startswith(prefix))
        return count

    def _purge(self, root: Path) -> None:
        for child in root.iterdir():
            try:
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
            except OSError as e:
                logger.warning(f"[STORAGE] Could not remove {child}: {e}")

    def release(self) -> None:
        """
        Release a self-provisioned RAM volume.

        Residual files are deleted, then the volume is unmounted unless
        another process still holds files open on it. Volumes this process
        did not provision are never touched. Unmount failures are logged.
        """
        tier = self._tier
        if tier is None or not tier.provisioned:
            logger.debug("[STORAGE] Nothing to release")
            return

        root = tier.root
        if root.is_dir():
            self._purge(root)

        holders = self.open_handle_count(root)
        if holders:
            logger.warning(
                f"[STORAGE] {holders} open handle(s) on {root} held by other processes, leaving it mounted"
            )
            return

        if tier.device:
            cmd = ["hdiutil", "detach", tier.device]
        else:
            cmd = ["umount", str(root)]
        try:
            subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=30)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.warning(f"[STORAGE] Could not unmount {root}: {e}")
            return

        logger.warning(f"[STORAGE] Unmounted RAM volume at {root}")
        self._provisioned_path = None
        self._device = None
        self._tier = None
