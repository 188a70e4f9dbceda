"""
GPU collector.

Display-class PCI devices are enumerated from sysfs and named through the
driver, the local PCI ID database, or lspci output, in that order.
"""

from __future__ import annotations

import glob
import os
import re
import shlex
from dataclasses import dataclass
from typing import Any

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import BSD, DARWIN, LINUX, UNKNOWN, WINDOWS, Strategy

PCI_IDS_PATHS = [
    "/usr/share/hwdata/pci.ids",
    "/usr/share/misc/pci.ids",
    "/usr/share/pci.ids",
    "/usr/local/share/pci.ids",
    "/var/lib/pciutils/pci.ids",
]

DISPLAY_CLASS_PREFIX = "0x03"

VENDOR_TAGS = {
    "10de": "NVIDIA",
    "1002": "AMD",
    "1022": "AMD",
    "8086": "Intel",
    "1af4": "Virtio",
    "15ad": "VMware",
    "1234": "QEMU",
}

_VENDOR_NAME_TAGS = [
    (re.compile(r"\bnvidia\b"), "NVIDIA"),
    (re.compile(r"\badvanced micro devices\b|\bamd\b|\bati\b"), "AMD"),
    (re.compile(r"\bintel\b"), "Intel"),
]

_BRACKETED = re.compile(r"\[([^\]]+)\]")


@dataclass(frozen=True)
class PCIDevice:
    address: str
    vendor: str
    device: str


def vendor_tag(vendor: str) -> str:
    """Short vendor tag from a vendor id or a vendor's legal name."""
    vendor = vendor.lower().removeprefix("0x")
    if vendor in VENDOR_TAGS:
        return VENDOR_TAGS[vendor]
    for pattern, tag in _VENDOR_NAME_TAGS:
        if pattern.search(vendor):
            return tag
    return ""


def normalize_gpu_name(vendor: str, device: str) -> str:
    """
    Combine a vendor and device description into a display name.

    The vendor's legal name becomes a short tag, a bracketed marketing name
    is preferred over the chip codename, and whitespace is collapsed.
    """
    match = _BRACKETED.search(device)
    name = match.group(1) if match else device
    tag = vendor_tag(vendor)
    if tag and not name.lower().startswith(tag.lower()):
        name = f"{tag} {name}"
    return " ".join(name.split())


def lookup_pci_ids(text: str, vendor: str, device: str) -> tuple[str, str] | None:
    """Return (vendor name, device name) from pci.ids content."""
    vendor = vendor.lower().removeprefix("0x")
    device = device.lower().removeprefix("0x")
    vendor_name = ""
    for line in text.splitlines():
        if not line or line.startswith("#"):
            continue
        if not line.startswith("\t"):
            if vendor_name:
                # Left the vendor block without finding the device.
                return None
            if line[:4].lower() == vendor:
                vendor_name = line[4:].strip()
            continue
        if vendor_name and not line.startswith("\t\t") and line[1:5].lower() == device:
            return vendor_name, line[5:].strip()
    return None


def parse_lspci_devices(output: str) -> dict[str, str]:
    """GPU names from `lspci -mm` output keyed by bus address without the PCI domain."""
    names = {}
    for line in output.splitlines():
        try:
            fields = shlex.split(line)
        except ValueError:
            continue
        if len(fields) < 4:
            continue
        device_class = fields[1]
        if "VGA" not in device_class and "3D" not in device_class and "Display" not in device_class:
            continue
        address = fields[0].split(":", 1)[1] if fields[0].count(":") == 2 else fields[0]
        names[address] = normalize_gpu_name(fields[2], fields[3])
    return names


def parse_lspci_mm(output: str) -> list[str]:
    """GPU names from `lspci -mm` output."""
    return list(parse_lspci_devices(output).values())


class GPUCollector(BaseCollector):
    """Collects graphics adapter names and temperature."""

    name = "gpu"
    description = "Graphics adapters"
    fields = ("gpu", "gpu_temp")

    pci_root = "/sys/bus/pci/devices"

    def __init__(self, context=None):
        super().__init__(context)
        self.gpu_chain = self.chain(
            "gpu",
            [
                Strategy("sysfs pci", self._names_from_sysfs, frozenset({LINUX})),
                Strategy("lspci", self._names_from_lspci, frozenset({LINUX, BSD})),
                Strategy("system_profiler", self._names_from_system_profiler, frozenset({DARWIN})),
                Strategy("wmic", self._names_from_wmic, frozenset({WINDOWS})),
            ],
            default=[],
        )

    def collect(self) -> dict[str, Any]:
        names = self.gpu_chain.run()
        return {
            "gpu": ", ".join(names) if names else UNKNOWN,
            "gpu_temp": self._get_temperature(),
        }

    def display_devices(self) -> list[PCIDevice]:
        """Display-class PCI devices, one per vendor:device pair."""
        devices = []
        seen = set()
        for class_path in sorted(glob.glob(os.path.join(self.pci_root, "*", "class"))):
            if not self.read_first_line(class_path).startswith(DISPLAY_CLASS_PREFIX):
                continue
            base = os.path.dirname(class_path)
            vendor = self.read_first_line(os.path.join(base, "vendor"))
            device = self.read_first_line(os.path.join(base, "device"))
            if not vendor or not device or (vendor, device) in seen:
                continue
            seen.add((vendor, device))
            devices.append(PCIDevice(os.path.basename(base), vendor, device))
        return devices

    def _names_from_sysfs(self) -> list[str]:
        """
        Name each display device from its driver, then pci.ids, then lspci.

        lspci is only run when a device is still unnamed, and its entries
        are matched to devices by bus address.
        """
        names = []
        pci_ids = self._read_pci_ids()
        lspci: dict[str, str] | None = None
        for device in self.display_devices():
            name = self._name_from_driver(device)
            if not name and pci_ids:
                found = lookup_pci_ids(pci_ids, device.vendor, device.device)
                if found:
                    name = normalize_gpu_name(*found)
            if not name:
                if lspci is None:
                    lspci = parse_lspci_devices(self.command_output(["lspci", "-mm"]))
                name = lspci.get(device.address.split(":", 1)[1], "")
            if name:
                names.append(name)
        return names

    def _name_from_driver(self, device: PCIDevice) -> str:
        """Human name exposed by the bound driver, if any."""
        base = os.path.join(self.pci_root, device.address)
        product = self.read_first_line(os.path.join(base, "product_name"))
        if product:
            return normalize_gpu_name(device.vendor, product)

        info = self.read_file(f"/proc/driver/nvidia/gpus/{device.address}/information")
        for line in info.splitlines():
            if line.startswith("Model:"):
                return normalize_gpu_name(device.vendor, line.partition(":")[2].strip())
        return ""

    def _read_pci_ids(self) -> str:
        for path in PCI_IDS_PATHS:
            content = self.read_file(path)
            if content:
                return content
        return ""

    def _names_from_lspci(self) -> list[str]:
        return parse_lspci_mm(self.command_output(["lspci", "-mm"]))

    def _names_from_system_profiler(self) -> list[str]:
        output = self.command_output(["system_profiler", "SPDisplaysDataType"])
        return [
            line.partition(":")[2].strip()
            for line in output.splitlines()
            if line.strip().startswith("Chipset Model:")
        ]

    def _names_from_wmic(self) -> list[str]:
        output = self.command_output(["wmic", "path", "win32_VideoController", "get", "name"])
        return [line.strip() for line in output.splitlines()[1:] if line.strip()]

    def _get_temperature(self) -> int:
        """Temperature of the first display device exposing a hwmon sensor."""
        if self.platform != LINUX:
            return 0
        for device in self.display_devices():
            pattern = os.path.join(self.pci_root, device.address, "hwmon", "hwmon*", "temp1_input")
            for path in sorted(glob.glob(pattern)):
                value = self.read_first_line(path)
                if value.isdigit():
                    return int(value) // 1000
        return 0
