"""
Memory and swap collector.
"""

from __future__ import annotations

import re
from typing import Any

import psutil

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import DARWIN, LINUX, Strategy
from netfetch.model import Memory, Swap

_VM_STAT_PAGE_SIZE = re.compile(r"page size of (\d+) bytes")


def parse_meminfo(text: str) -> dict[str, int]:
    """Parse /proc/meminfo into byte values."""
    result = {}
    for line in text.splitlines():
        fields = line.split()
        if len(fields) < 2:
            continue
        try:
            result[fields[0].rstrip(":")] = int(fields[1]) * 1024
        except ValueError:
            continue
    return result


def parse_swaps(text: str) -> list[Swap]:
    """Parse /proc/swaps, skipping the header line."""
    swaps = []
    for line in text.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 4:
            continue
        try:
            total = int(fields[2]) * 1024
            used = int(fields[3]) * 1024
        except ValueError:
            continue
        swaps.append(Swap(total=total, used=used, free=total - used, device=fields[0]))
    return swaps


class MemoryCollector(BaseCollector):
    """Collects RAM and swap usage."""

    name = "memory"
    description = "Physical memory and swap usage"
    dynamic = True
    fields = ("memory", "swap")

    def __init__(self, context=None):
        super().__init__(context)
        self.memory_chain = self.chain(
            "memory",
            [
                Strategy("/proc/meminfo", self._memory_from_meminfo, frozenset({LINUX})),
                Strategy("vm_stat", self._memory_from_vm_stat, frozenset({DARWIN})),
                Strategy("psutil", self._memory_from_psutil),
            ],
        )
        self.swap_chain = self.chain(
            "swap",
            [
                Strategy("/proc/swaps", self._swap_from_proc, frozenset({LINUX})),
                Strategy("/proc/meminfo", self._swap_from_meminfo, frozenset({LINUX})),
                Strategy("psutil", self._swap_from_psutil),
            ],
        )

    def collect(self) -> dict[str, Any]:
        return {
            "memory": self.memory_chain.run(),
            "swap": self.swap_chain.run(),
        }

    def _memory_from_meminfo(self) -> Memory | None:
        info = parse_meminfo(self.read_file("/proc/meminfo"))
        total = info.get("MemTotal", 0)
        if not total:
            return None
        available = info.get("MemAvailable", 0)
        if not available:
            available = (
                info.get("MemFree", 0)
                + info.get("Buffers", 0)
                + info.get("Cached", 0)
                + info.get("SReclaimable", 0)
            )
        used = max(total - available, 0)
        return Memory(total=total, used=used, free=available)

    def _memory_from_vm_stat(self) -> Memory | None:
        output = self.command_output(["vm_stat"])
        total_raw = self.command_output(["sysctl", "-n", "hw.memsize"]).strip()
        if not output or not total_raw.isdigit():
            return None

        match = _VM_STAT_PAGE_SIZE.search(output)
        page_size = int(match.group(1)) if match else 4096
        pages = {}
        for line in output.splitlines()[1:]:
            key, _, value = line.partition(":")
            value = value.strip().rstrip(".")
            if value.isdigit():
                pages[key.strip()] = int(value)

        total = int(total_raw)
        used_pages = (
            pages.get("Pages active", 0)
            + pages.get("Pages wired down", 0)
            + pages.get("Pages occupied by compressor", 0)
        )
        used = min(used_pages * page_size, total)
        return Memory(total=total, used=used, free=total - used)

    def _memory_from_psutil(self) -> Memory | None:
        mem = psutil.virtual_memory()
        return Memory(total=mem.total, used=mem.total - mem.available, free=mem.available)

    def _swap_from_proc(self) -> Swap | None:
        devices = parse_swaps(self.read_file("/proc/swaps"))
        if not devices:
            return None
        total = sum(s.total for s in devices)
        used = sum(s.used for s in devices)
        return Swap(
            total=total,
            used=used,
            free=total - used,
            device=", ".join(s.device for s in devices),
        )

    def _swap_from_meminfo(self) -> Swap | None:
        info = parse_meminfo(self.read_file("/proc/meminfo"))
        total = info.get("SwapTotal", 0)
        if not total:
            return None
        free = info.get("SwapFree", 0)
        return Swap(total=total, used=total - free, free=free)

    def _swap_from_psutil(self) -> Swap | None:
        swap = psutil.swap_memory()
        if not swap.total:
            return None
        return Swap(total=swap.total, used=swap.used, free=swap.free)
