"""
Disk and mount collector.

Builds the list of real volumes from the mount table, skipping pseudo
filesystems and noisy mountpoints, and lists physical block devices.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable

import psutil

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import LINUX, UNIX, Strategy
from netfetch.model import Disk, PhysicalDisk

SKIP_FS_TYPES = frozenset(
    {
        "proc",
        "sysfs",
        "devpts",
        "devtmpfs",
        "tmpfs",
        "cgroup",
        "cgroup2",
        "pstore",
        "securityfs",
        "debugfs",
        "configfs",
        "tracefs",
        "nsfs",
        "mqueue",
        "hugetlbfs",
        "ramfs",
        "fusectl",
        "binfmt_misc",
        "overlay",
        "squashfs",
        "bpf",
        "autofs",
        "efivarfs",
        "devfs",
        "nullfs",
    }
)

SKIP_MOUNT_PREFIXES = (
    "/proc",
    "/sys",
    "/dev",
    "/run",
    "/var/lib/docker",
    "/var/lib/containers",
    "/snap",
    "/var/cache/pacman/pkg",
    "/var/lib/snapd",
    "/var/lib/kubelet",
    "/var/lib/flatpak",
    "/var/log",
    "/.snapshots",
    "/System/Volumes",
    "/private/var/vm",
)

SKIP_BLOCK_DEVICES = ("loop", "ram", "zram", "dm-", "md", "sr", "fd")

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


@dataclass
class MountEntry:
    device: str
    mountpoint: str
    fs_type: str


def unescape_octal(value: str) -> str:
    """Decode mount table escapes such as '\\040' for a space."""
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), value)


def should_skip_mount(mountpoint: str, fs_type: str) -> bool:
    if fs_type in SKIP_FS_TYPES:
        return True
    for prefix in SKIP_MOUNT_PREFIXES:
        if mountpoint == prefix or mountpoint.startswith(prefix + "/"):
            return True
    return False


def parse_mounts(text: str) -> list[MountEntry]:
    """Parse a /proc/self/mounts style table, in file order."""
    entries = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 3:
            continue
        entries.append(
            MountEntry(
                device=unescape_octal(parts[0]),
                mountpoint=unescape_octal(parts[1]),
                fs_type=parts[2],
            )
        )
    return entries


def sort_disks(disks: list[Disk]) -> list[Disk]:
    """Root first, then by mountpoint length; equal lengths sort lexically."""
    return sorted(disks, key=lambda d: (d.mountpoint != "/", len(d.mountpoint), d.mountpoint))


def build_volumes(
    entries: Iterable[MountEntry],
    usage: Callable[[str], tuple[int, int] | None],
) -> list[Disk]:
    """
    Filter, deduplicate and measure mount entries.

    Args:
        entries: Mount entries in mount table order.
        usage: Returns (total, available) bytes for a mountpoint, or None
            when it cannot be measured.

    Returns:
        Sorted list of volumes. The first entry for a mountpoint wins; an
        entry without a mountpoint or measurable usage is dropped.
    """
    seen: set[str] = set()
    disks = []
    for entry in entries:
        if not entry.mountpoint or should_skip_mount(entry.mountpoint, entry.fs_type):
            continue
        if entry.mountpoint in seen:
            continue
        seen.add(entry.mountpoint)

        measured = usage(entry.mountpoint)
        if measured is None:
            continue
        total, available = measured
        used = max(total - available, 0)
        disks.append(
            Disk(
                total=total,
                used=used,
                free=available,
                used_percent=(used / total * 100.0) if total else 0.0,
                mountpoint=entry.mountpoint,
                fs_type=entry.fs_type,
                device=entry.device,
            )
        )
    return sort_disks(disks)


def statvfs_usage(mountpoint: str) -> tuple[int, int] | None:
    """Total and unprivileged-available bytes via statvfs."""
    try:
        st = os.statvfs(mountpoint)
    except OSError:
        return None
    return st.f_blocks * st.f_frsize, st.f_bavail * st.f_frsize


def psutil_usage(mountpoint: str) -> tuple[int, int] | None:
    try:
        usage = psutil.disk_usage(mountpoint)
    except OSError:
        return None
    return usage.total, usage.free


class DiskCollector(BaseCollector):
    """Collects mounted volumes and physical disks."""

    name = "disk"
    description = "Mounted volumes and physical block devices"
    dynamic = True
    fields = ("disk", "disks", "physical_disks")

    def __init__(self, context=None):
        super().__init__(context)
        self.volume_chain = self.chain(
            "disks",
            [
                Strategy("/proc/self/mounts", self._volumes_from_procfs, frozenset({LINUX})),
                Strategy("psutil partitions", self._volumes_from_psutil),
                Strategy("df", self._volumes_from_df, UNIX),
            ],
            default=[],
        )

    def collect(self) -> dict[str, Any]:
        disks = self.volume_chain.run()
        return {
            "disk": disks[0] if disks else None,
            "disks": disks,
            "physical_disks": self._get_physical_disks(),
        }

    def _volumes_from_procfs(self) -> list[Disk]:
        return build_volumes(parse_mounts(self.read_file("/proc/self/mounts")), statvfs_usage)

    def _volumes_from_psutil(self) -> list[Disk]:
        entries = [
            MountEntry(device=p.device, mountpoint=p.mountpoint, fs_type=p.fstype)
            for p in psutil.disk_partitions(all=False)
        ]
        return build_volumes(entries, psutil_usage)

    def _volumes_from_df(self) -> list[Disk]:
        """Parse POSIX `df -kP` output."""
        output = self.command_output(["df", "-kP"])
        usage: dict[str, tuple[int, int]] = {}
        entries = []
        for line in output.splitlines()[1:]:
            parts = line.split()
            if len(parts) < 6:
                continue
            try:
                total = int(parts[1]) * 1024
                available = int(parts[3]) * 1024
            except ValueError:
                continue
            mountpoint = " ".join(parts[5:])
            usage[mountpoint] = (total, available)
            entries.append(MountEntry(device=parts[0], mountpoint=mountpoint, fs_type=""))
        return build_volumes(entries, usage.get)

    def _get_physical_disks(self, sys_block: str = "/sys/block") -> list[PhysicalDisk]:
        """List physical block devices from sysfs."""
        if self.platform != LINUX:
            return []
        try:
            names = sorted(os.listdir(sys_block))
        except OSError:
            return []

        disks = []
        for name in names:
            if name.startswith(SKIP_BLOCK_DEVICES):
                continue
            base = os.path.join(sys_block, name)

            sectors = self.read_first_line(os.path.join(base, "size"))
            model = self.read_first_line(os.path.join(base, "device", "model")) or self.read_first_line(
                os.path.join(base, "device", "name")
            )
            rotational = self.read_first_line(os.path.join(base, "queue", "rotational")) == "1"

            disks.append(
                PhysicalDisk(
                    name=name,
                    model=model,
                    size=int(sectors) * 512 if sectors.isdigit() else 0,
                    type="HDD" if rotational else "SSD",
                    rotational=rotational,
                )
            )
        return disks
