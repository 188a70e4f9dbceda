"""
CPU information collector.

Collects the processor model, core counts, frequencies and temperature.
"""

from __future__ import annotations

import glob
import os
import platform
import re
from typing import Any

import psutil

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import BSD, DARWIN, LINUX, UNKNOWN, WINDOWS, Strategy
from netfetch.model import CPU

# Implementer code -> part code -> core name.
ARM_PARTS = {
    "0x41": {
        "0xd07": "Cortex-A57",
        "0xd08": "Cortex-A72",
        "0xd09": "Cortex-A73",
        "0xd0a": "Cortex-A75",
        "0xd0b": "Cortex-A76",
        "0xd0c": "Neoverse N1",
        "0xd0d": "Cortex-A77",
        "0xd0e": "Cortex-A76AE",
        "0xd40": "Neoverse V1",
        "0xd41": "Cortex-A78",
        "0xd44": "Cortex-X1",
        "0xd46": "Cortex-A510",
        "0xd47": "Cortex-A710",
        "0xd48": "Cortex-X2",
        "0xd49": "Neoverse N2",
        "0xd4a": "Neoverse E1",
        "0xd4b": "Cortex-A78AE",
        "0xd4c": "Cortex-X1C",
        "0xd4d": "Cortex-A715",
        "0xd4e": "Cortex-X3",
        "0xd4f": "Neoverse V2",
    },
    "0x51": {
        "0x800": "Kryo",
        "0x801": "Kryo Silver",
        "0x802": "Kryo Gold",
        "0x803": "Kryo Silver",
        "0x804": "Kryo Gold",
    },
}

NAME_NOISE = [
    " CPU",
    " FPU",
    " APU",
    " Processor",
    " processor",
    " Dual-Core",
    " Quad-Core",
    " Six-Core",
    " Eight-Core",
    " Ten-Core",
    " with Radeon Graphics",
    " with Radeon Vega Graphics",
]

_CORE_SUFFIX = re.compile(r" \d+-Core")
_FREQ_MARKER = re.compile(r"@\s*([\d.]+)\s*GHz", re.IGNORECASE)

CPUFREQ_FILES = [
    "/sys/devices/system/cpu/cpu0/cpufreq/bios_limit",
    "/sys/devices/system/cpu/cpu0/cpufreq/cpuinfo_max_freq",
    "/sys/devices/system/cpu/cpu0/cpufreq/scaling_max_freq",
]

HWMON_CPU_SENSORS = ("coretemp", "k10temp", "cpu")


def parse_cpuinfo(text: str) -> dict[str, str]:
    """Parse /proc/cpuinfo into a dict, keeping the first value of each key."""
    result: dict[str, str] = {}
    for line in text.splitlines():
        if ":" not in line:
            continue
        key, _, value = line.partition(":")
        key = key.strip()
        if key and key not in result:
            result[key] = value.strip()
    return result


def clean_cpu_name(name: str) -> str:
    """Strip vendor boilerplate and cut the name at its frequency marker."""
    for noise in NAME_NOISE:
        name = name.replace(noise, "")
    name = _CORE_SUFFIX.sub("", name)
    if "@" in name:
        name = name[: name.index("@")]
    return " ".join(name.split())


def frequency_from_name(name: str) -> int:
    """MHz from an '@ 3.60GHz' style marker, or 0."""
    match = _FREQ_MARKER.search(name)
    if not match:
        return 0
    try:
        return int(float(match.group(1)) * 1000)
    except ValueError:
        return 0


def arm_core_name(implementer: str, part: str) -> str:
    """Canonical core name for an ARM implementer/part pair."""
    name = ARM_PARTS.get(implementer.lower(), {}).get(part.lower())
    if name:
        return name
    return f"ARM {implementer}:{part}"


class CPUCollector(BaseCollector):
    """Collects CPU model and topology."""

    name = "cpu"
    description = "Processor model, cores, frequency and temperature"
    fields = ("cpu",)

    def __init__(self, context=None):
        super().__init__(context)
        self._cpuinfo: dict[str, str] = {}
        self.name_chain = self.chain(
            "cpu name",
            [
                Strategy("cpuinfo model name", self._name_from_model, frozenset({LINUX})),
                Strategy("cpuinfo hardware", self._name_from_hardware, frozenset({LINUX})),
                Strategy("arm part table", self._name_from_arm, frozenset({LINUX})),
                Strategy("sysctl brand string", self._name_from_sysctl, frozenset({DARWIN})),
                Strategy("sysctl hw.model", lambda: self._sysctl("hw.model"), frozenset({BSD})),
                Strategy("wmic", self._name_from_wmic, frozenset({WINDOWS})),
                Strategy("lscpu", self._name_from_lscpu, frozenset({LINUX})),
            ],
            default=UNKNOWN,
        )

    def collect(self) -> dict[str, Any]:
        self._cpuinfo = parse_cpuinfo(self.read_file("/proc/cpuinfo"))
        raw_name = self.name_chain.run()

        cpu = CPU(
            name=clean_cpu_name(raw_name) or UNKNOWN,
            vendor=self._get_vendor(),
            cores_logical=psutil.cpu_count(logical=True) or os.cpu_count() or 0,
        )
        cpu.cores_online = cpu.cores_logical
        cpu.cores_physical = self._get_physical_cores() or cpu.cores_logical

        max_freq = self._get_max_frequency() or frequency_from_name(raw_name)
        cpu.frequency_base = self._get_base_frequency() or max_freq
        cpu.frequency_max = max_freq or cpu.frequency_base
        cpu.temperature = self._get_temperature()

        return {"cpu": cpu}

    def _name_from_model(self) -> str:
        return self._cpuinfo.get("model name", "")

    def _name_from_hardware(self) -> str:
        return self._cpuinfo.get("Hardware", "")

    def _name_from_arm(self) -> str:
        machine = platform.machine().lower()
        if not (machine.startswith("arm") or machine == "aarch64"):
            return ""
        implementer = self._cpuinfo.get("CPU implementer", "")
        part = self._cpuinfo.get("CPU part", "")
        if implementer and part:
            return arm_core_name(implementer, part)
        return self._name_from_lscpu() or "ARM Processor"

    def _name_from_sysctl(self) -> str:
        return self._sysctl("machdep.cpu.brand_string") or self._sysctl("hw.model")

    def _name_from_wmic(self) -> str:
        output = self.command_output(["wmic", "cpu", "get", "Name", "/format:list"])
        for line in output.splitlines():
            if line.strip().startswith("Name="):
                return line.strip()[len("Name=") :]
        return ""

    def _name_from_lscpu(self) -> str:
        for line in self.command_output(["lscpu"]).splitlines():
            if line.startswith("Model name:"):
                return line.partition(":")[2].strip()
        return ""

    def _sysctl(self, key: str) -> str:
        return self.command_output(["sysctl", "-n", key]).strip()

    def _get_vendor(self) -> str:
        if self.platform == DARWIN:
            return self._sysctl("machdep.cpu.vendor")
        return self._cpuinfo.get("vendor_id", "")

    def _get_physical_cores(self) -> int:
        """Count distinct core ids from the sysfs topology."""
        if self.platform == LINUX:
            core_ids = set()
            for path in glob.glob("/sys/devices/system/cpu/cpu[0-9]*/topology/core_id"):
                core_id = self.read_first_line(path)
                if core_id:
                    core_ids.add(core_id)
            if core_ids:
                return len(core_ids)
        if self.platform == DARWIN:
            try:
                return int(self._sysctl("hw.physicalcpu"))
            except ValueError:
                pass
        return psutil.cpu_count(logical=False) or 0

    def _get_max_frequency(self) -> int:
        """Max frequency in MHz from cpufreq, sysctl or psutil."""
        if self.platform == LINUX:
            for path in CPUFREQ_FILES:
                value = self.read_first_line(path)
                if value.isdigit():
                    return int(value) // 1000
        elif self.platform == DARWIN:
            value = self._sysctl("hw.cpufrequency_max")
            if value.isdigit():
                return int(value) // 1_000_000
        elif self.platform == BSD:
            value = self._sysctl("hw.clockrate")
            if value.isdigit():
                return int(value)

        try:
            freq = psutil.cpu_freq()
        except (OSError, NotImplementedError, AttributeError):
            freq = None
        if freq and freq.max:
            return int(freq.max)
        return 0

    def _get_base_frequency(self) -> int:
        if self.platform == DARWIN:
            value = self._sysctl("hw.cpufrequency")
            if value.isdigit():
                return int(value) // 1_000_000
        return 0

    def _get_temperature(self) -> float:
        """CPU temperature in degrees Celsius, 0.0 when no sensor is readable."""
        if self.platform != LINUX:
            return 0.0

        for path in sorted(glob.glob("/sys/class/hwmon/hwmon*/temp*_input")):
            sensor = self.read_first_line(os.path.join(os.path.dirname(path), "name"))
            if not any(tag in sensor for tag in HWMON_CPU_SENSORS):
                continue
            value = self.read_first_line(path)
            if value.lstrip("-").isdigit():
                return int(value) / 1000.0

        for path in sorted(glob.glob("/sys/class/thermal/thermal_zone*/temp")):
            value = self.read_first_line(path)
            if value.lstrip("-").isdigit():
                return int(value) / 1000.0
        return 0.0
