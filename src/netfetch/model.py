"""
Snapshot data model.

Each sub-record is published whole by exactly one module. When every source
fails, text facts read "Unknown", except host, user and public_ip which stay
empty; numeric facts read zero, lists are empty and sub-records are None.
Field names are the serialized JSON keys.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class OperatingSystem:
    name: str = ""
    pretty_name: str = ""
    distro: str = ""
    id_like: str = ""
    version: str = ""
    version_id: str = ""
    codename: str = ""
    build_id: str = ""
    variant: str = ""
    variant_id: str = ""
    arch: str = ""


@dataclass
class CPU:
    name: str = ""
    vendor: str = ""
    cores_physical: int = 0
    cores_logical: int = 0
    cores_online: int = 0
    frequency_base: int = 0  # MHz
    frequency_max: int = 0  # MHz
    temperature: float = 0.0


@dataclass
class Memory:
    total: int = 0
    used: int = 0
    free: int = 0


@dataclass
class Swap:
    total: int = 0
    used: int = 0
    free: int = 0
    device: str = ""


@dataclass
class Disk:
    total: int = 0
    used: int = 0
    free: int = 0
    used_percent: float = 0.0
    mountpoint: str = ""
    fs_type: str = ""
    device: str = ""
    label: str = ""


@dataclass
class PhysicalDisk:
    name: str = ""
    model: str = ""
    size: int = 0
    type: str = ""
    rotational: bool = False


@dataclass
class Interface:
    name: str = ""
    ip: str = ""


@dataclass
class Network:
    interfaces: list[Interface] = field(default_factory=list)


@dataclass
class Battery:
    percentage: float = 0.0
    status: str = ""


@dataclass
class PowerAdapter:
    is_connected: bool = False


@dataclass
class HostInfo:
    vendor: str = ""
    model: str = ""
    version: str = ""
    type: str = ""


@dataclass
class BIOS:
    vendor: str = ""
    version: str = ""
    date: str = ""
    type: str = ""


@dataclass
class Wifi:
    ssid: str = ""
    protocol: str = ""
    frequency: str = ""
    security: str = ""
    strength: int = 0


@dataclass
class User:
    name: str = ""
    terminal: str = ""
    login_time: str = ""


@dataclass
class Brightness:
    current: int = 0
    max: int = 0


@dataclass
class Snapshot:
    """Everything currently known about the host."""

    os: OperatingSystem | None = None
    host: str = ""
    user: str = ""
    kernel: str = ""
    uptime: str = ""
    packages: str = ""
    shell: str = ""
    resolution: str = ""
    de: str = ""
    wm: str = ""
    wm_theme: str = ""
    theme: str = ""
    icons: str = ""
    terminal: str = ""
    cpu: CPU | None = None
    gpu: str = ""
    gpu_temp: int = 0
    memory: Memory | None = None
    disk: Disk | None = None
    disks: list[Disk] = field(default_factory=list)
    physical_disks: list[PhysicalDisk] = field(default_factory=list)
    network: Network | None = None
    font: str = ""
    cursor: str = ""
    swap: Swap | None = None
    local_ip: list[str] = field(default_factory=list)
    battery: Battery | None = None
    power_adapter: PowerAdapter | None = None
    locale: str = ""
    host_info: HostInfo | None = None
    bios: BIOS | None = None
    processes: int = 0
    cpu_usage: float = 0.0
    public_ip: str = ""
    wifi: Wifi | None = None
    datetime: str = ""
    users: list[User] = field(default_factory=list)
    brightness: Brightness | None = None
    login_manager: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert snapshot to dictionary for serialization."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Serialize snapshot to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)
