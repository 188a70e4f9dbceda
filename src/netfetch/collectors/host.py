"""
Machine model and firmware collectors.

Linux values come from the DMI tables exported under /sys/class/dmi/id.
"""

from __future__ import annotations

import os
from typing import Any

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import DARWIN, LINUX, WINDOWS, Strategy
from netfetch.model import BIOS, HostInfo

DMI_ROOT = "/sys/class/dmi/id"

# SMBIOS system enclosure types.
CHASSIS_TYPES = {
    "1": "Other",
    "2": "Unknown",
    "3": "Desktop",
    "4": "Low Profile Desktop",
    "5": "Pizza Box",
    "6": "Mini Tower",
    "7": "Tower",
    "8": "Portable",
    "9": "Laptop",
    "10": "Notebook",
    "11": "Hand Held",
    "12": "Docking Station",
    "13": "All in One",
    "14": "Sub Notebook",
    "15": "Space-saving",
    "16": "Lunch Box",
    "17": "Main Server Chassis",
    "18": "Expansion Chassis",
    "19": "SubChassis",
    "20": "Bus Expansion Chassis",
    "21": "Peripheral Chassis",
    "22": "RAID Chassis",
    "23": "Rack Mount Chassis",
    "24": "Sealed-case PC",
    "25": "Multi-system",
    "26": "Compact PCI",
    "27": "Advanced TCA",
    "28": "Blade",
    "29": "Blade Enclosure",
    "30": "Tablet",
    "31": "Convertible",
    "32": "Detachable",
}


class DMICollector(BaseCollector):
    """Shared DMI and WMIC helpers."""

    def dmi(self, attribute: str) -> str:
        return self.read_first_line(os.path.join(DMI_ROOT, attribute))

    def wmic_value(self, alias: str, prop: str) -> str:
        output = self.command_output(["wmic", alias, "get", prop, "/format:list"])
        prefix = f"{prop}="
        for line in output.splitlines():
            line = line.strip()
            if line.startswith(prefix):
                return line[len(prefix) :].strip()
        return ""


class HostInfoCollector(DMICollector):
    """Collects the machine vendor, model and chassis type."""

    name = "host_info"
    description = "Machine vendor, model and chassis"
    fields = ("host_info",)

    def __init__(self, context=None):
        super().__init__(context)
        self.host_chain = self.chain(
            "host_info",
            [
                Strategy("dmi", self._from_dmi, frozenset({LINUX})),
                Strategy("sysctl hw.model", self._from_sysctl, frozenset({DARWIN})),
                Strategy("wmic", self._from_wmic, frozenset({WINDOWS})),
            ],
            accept=lambda info: info is not None and bool(info.vendor or info.model),
        )

    def collect(self) -> dict[str, Any]:
        return {"host_info": self.host_chain.run()}

    def _from_dmi(self) -> HostInfo:
        return HostInfo(
            vendor=self.dmi("sys_vendor"),
            model=self.dmi("product_name"),
            version=self.dmi("product_version"),
            type=CHASSIS_TYPES.get(self.dmi("chassis_type"), ""),
        )

    def _from_sysctl(self) -> HostInfo:
        model = self.command_output(["sysctl", "-n", "hw.model"]).strip()
        return HostInfo(
            vendor="Apple Inc.",
            model=model,
            type="Laptop" if model.startswith("MacBook") else "Desktop",
        )

    def _from_wmic(self) -> HostInfo:
        return HostInfo(
            vendor=self.wmic_value("computersystem", "Manufacturer"),
            model=self.wmic_value("computersystem", "Model"),
        )


class BIOSCollector(DMICollector):
    """Collects firmware vendor, version, date and boot mode."""

    name = "bios"
    description = "Firmware vendor, version and type"
    fields = ("bios",)

    def __init__(self, context=None):
        super().__init__(context)
        self.bios_chain = self.chain(
            "bios",
            [
                Strategy("dmi", self._from_dmi, frozenset({LINUX})),
                Strategy("darwin", lambda: BIOS(vendor="Apple Inc.", type="UEFI"), frozenset({DARWIN})),
                Strategy("wmic", self._from_wmic, frozenset({WINDOWS})),
            ],
            accept=lambda info: info is not None and bool(info.vendor or info.version),
        )

    def collect(self) -> dict[str, Any]:
        return {"bios": self.bios_chain.run()}

    def _from_dmi(self) -> BIOS:
        return BIOS(
            vendor=self.dmi("bios_vendor"),
            version=self.dmi("bios_version"),
            date=self.dmi("bios_date"),
            type="UEFI" if self.path_exists("/sys/firmware/efi") else "Legacy",
        )

    def _from_wmic(self) -> BIOS:
        return BIOS(
            vendor=self.wmic_value("bios", "Manufacturer"),
            version=self.wmic_value("bios", "SMBIOSBIOSVersion"),
            date=self.wmic_value("bios", "ReleaseDate"),
            type="UEFI",
        )
