"""
Power collectors: battery, AC adapter and display backlight.
"""

from __future__ import annotations

import glob
import os
import re
from typing import Any

import psutil

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import BSD, DARWIN, LINUX, WINDOWS, Strategy
from netfetch.model import Battery, Brightness, PowerAdapter

POWER_SUPPLY = "/sys/class/power_supply"
BACKLIGHT = "/sys/class/backlight"

_PMSET_BATTERY = re.compile(r"(\d+)%;\s*([\w ]+?);")


def battery_status(status: str, ac_online: bool) -> str:
    """Normalise a kernel battery status and append the adapter state."""
    status = {"Not charging": "Not Charging"}.get(status, status)
    if ac_online:
        return f"{status}, AC Connected" if status else "AC Connected"
    return status


def parse_pmset(output: str) -> Battery | None:
    """Battery line from `pmset -g batt`."""
    ac_online = "AC Power" in output
    match = _PMSET_BATTERY.search(output)
    if not match:
        return None
    raw = match.group(2).strip().lower()
    status = {
        "charging": "Charging",
        "discharging": "Discharging",
        "charged": "Full",
        "finishing charge": "Charging",
        "ac attached": "",
    }.get(raw, raw.title())
    return Battery(percentage=float(match.group(1)), status=battery_status(status, ac_online))


class PowerCollector(BaseCollector):
    """Shared sysfs power-supply helpers."""

    def supplies(self, *patterns: str) -> list[str]:
        """Power supply directories matching the first pattern that matches anything."""
        for pattern in patterns:
            paths = sorted(glob.glob(os.path.join(POWER_SUPPLY, pattern)))
            if paths:
                return paths
        return []

    def ac_online(self) -> bool | None:
        for path in self.supplies("AC*", "ADP*", "ACAD*"):
            online = self.read_first_line(os.path.join(path, "online"))
            if online in ("0", "1"):
                return online == "1"
        return None


class BatteryCollector(PowerCollector):
    """Collects battery charge and state."""

    name = "battery"
    description = "Battery charge and status"
    dynamic = True
    fields = ("battery",)

    def __init__(self, context=None):
        super().__init__(context)
        self.battery_chain = self.chain(
            "battery",
            [
                Strategy("sysfs", self._from_sysfs, frozenset({LINUX})),
                Strategy("pmset", lambda: parse_pmset(self.command_output(["pmset", "-g", "batt"])), frozenset({DARWIN})),
                Strategy("sysctl", self._from_sysctl, frozenset({BSD})),
                Strategy("psutil", self._from_psutil),
            ],
        )

    def collect(self) -> dict[str, Any]:
        return {"battery": self.battery_chain.run()}

    def _from_sysfs(self) -> Battery | None:
        for path in self.supplies("BAT*", "battery"):
            capacity = self.read_first_line(os.path.join(path, "capacity"))
            if not capacity.isdigit():
                continue
            status = self.read_first_line(os.path.join(path, "status"))
            # Percentage without status is still worth publishing.
            return Battery(
                percentage=float(capacity),
                status=battery_status(status, bool(self.ac_online())),
            )
        return None

    def _from_sysctl(self) -> Battery | None:
        life = self.command_output(["sysctl", "-n", "hw.acpi.battery.life"]).strip()
        if not life.isdigit():
            return None
        state = self.command_output(["sysctl", "-n", "hw.acpi.battery.state"]).strip()
        status = {"0": "Full", "1": "Discharging", "2": "Charging"}.get(state, "")
        acline = self.command_output(["sysctl", "-n", "hw.acpi.acline"]).strip()
        return Battery(percentage=float(life), status=battery_status(status, acline == "1"))

    def _from_psutil(self) -> Battery | None:
        battery = psutil.sensors_battery()
        if battery is None:
            return None
        if battery.power_plugged:
            status = "Full" if battery.percent >= 100 else "Charging"
        else:
            status = "Discharging"
        return Battery(
            percentage=round(float(battery.percent), 1),
            status=battery_status(status, bool(battery.power_plugged)),
        )


class PowerAdapterCollector(PowerCollector):
    """Reports whether external power is connected."""

    name = "power_adapter"
    description = "AC adapter state"
    dynamic = True
    fields = ("power_adapter",)

    def __init__(self, context=None):
        super().__init__(context)
        self.adapter_chain = self.chain(
            "power_adapter",
            [
                Strategy("sysfs", self._from_sysfs, frozenset({LINUX})),
                Strategy("pmset", self._from_pmset, frozenset({DARWIN})),
                Strategy("psutil", self._from_psutil, frozenset({LINUX, DARWIN, WINDOWS, BSD})),
            ],
        )

    def collect(self) -> dict[str, Any]:
        return {"power_adapter": self.adapter_chain.run()}

    def _from_sysfs(self) -> PowerAdapter | None:
        online = self.ac_online()
        return None if online is None else PowerAdapter(is_connected=online)

    def _from_pmset(self) -> PowerAdapter | None:
        output = self.command_output(["pmset", "-g", "batt"])
        if not output:
            return None
        return PowerAdapter(is_connected="AC Power" in output)

    def _from_psutil(self) -> PowerAdapter | None:
        battery = psutil.sensors_battery()
        if battery is None or battery.power_plugged is None:
            return None
        return PowerAdapter(is_connected=bool(battery.power_plugged))


class BrightnessCollector(BaseCollector):
    """Collects the backlight level as a percentage."""

    name = "brightness"
    description = "Display backlight level"
    dynamic = True
    fields = ("brightness",)

    def __init__(self, context=None):
        super().__init__(context)
        self.brightness_chain = self.chain(
            "brightness",
            [
                Strategy("sysfs backlight", self._from_sysfs, frozenset({LINUX})),
                Strategy("brightness", self._from_brightness_tool, frozenset({DARWIN})),
                Strategy("wmi", self._from_wmi, frozenset({WINDOWS})),
            ],
        )

    def collect(self) -> dict[str, Any]:
        return {"brightness": self.brightness_chain.run()}

    def _from_sysfs(self) -> Brightness | None:
        for path in sorted(glob.glob(os.path.join(BACKLIGHT, "*"))):
            current = self.read_first_line(os.path.join(path, "brightness"))
            maximum = self.read_first_line(os.path.join(path, "max_brightness"))
            if current.isdigit() and maximum.isdigit() and int(maximum) > 0:
                return Brightness(current=int(current) * 100 // int(maximum), max=100)
        return None

    def _from_brightness_tool(self) -> Brightness | None:
        for line in self.command_output(["brightness", "-l"]).splitlines():
            if "brightness" not in line:
                continue
            try:
                level = float(line.split()[-1])
            except (ValueError, IndexError):
                continue
            return Brightness(current=int(level * 100), max=100)
        return None

    def _from_wmi(self) -> Brightness | None:
        output = self.command_output(
            [
                "powershell",
                "-Command",
                "(Get-WmiObject -Namespace root/WMI -Class WmiMonitorBrightness).CurrentBrightness",
            ]
        ).strip()
        return Brightness(current=int(output), max=100) if output.isdigit() else None
