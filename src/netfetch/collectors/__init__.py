"""
Host information collectors for Netfetch.

Each collector is one module of the registry: it owns a fixed set of
snapshot fields and fills them from its own fallback chains.
"""

from __future__ import annotations

from netfetch.collectors.base import BaseCollector, HostContext
from netfetch.collectors.cpu import CPUCollector
from netfetch.collectors.desktop import (
    CursorCollector,
    DECollector,
    FontCollector,
    IconsCollector,
    ResolutionCollector,
    ThemeCollector,
    WMCollector,
)
from netfetch.collectors.disk import DiskCollector
from netfetch.collectors.gpu import GPUCollector
from netfetch.collectors.host import BIOSCollector, HostInfoCollector
from netfetch.collectors.memory import MemoryCollector
from netfetch.collectors.network import NetworkCollector, PublicIPCollector, WifiCollector
from netfetch.collectors.packages import PackagesCollector
from netfetch.collectors.power import BatteryCollector, BrightnessCollector, PowerAdapterCollector
from netfetch.collectors.system import (
    CPUUsageCollector,
    DateTimeCollector,
    HostCollector,
    KernelCollector,
    LocaleCollector,
    LoginManagerCollector,
    OSCollector,
    ProcessesCollector,
    ShellCollector,
    UptimeCollector,
    UserCollector,
    UsersCollector,
)
from netfetch.collectors.terminal import TerminalCollector

# Registry of all available modules, keyed by their configuration name
COLLECTORS: dict[str, type[BaseCollector]] = {
    cls.name: cls
    for cls in (
        OSCollector,
        HostCollector,
        UserCollector,
        KernelCollector,
        UptimeCollector,
        PackagesCollector,
        ShellCollector,
        ResolutionCollector,
        DECollector,
        WMCollector,
        ThemeCollector,
        IconsCollector,
        FontCollector,
        CursorCollector,
        TerminalCollector,
        CPUCollector,
        GPUCollector,
        MemoryCollector,
        DiskCollector,
        NetworkCollector,
        BatteryCollector,
        PowerAdapterCollector,
        LocaleCollector,
        HostInfoCollector,
        BIOSCollector,
        ProcessesCollector,
        CPUUsageCollector,
        PublicIPCollector,
        WifiCollector,
        DateTimeCollector,
        UsersCollector,
        BrightnessCollector,
        LoginManagerCollector,
    )
}


def get_collector(name: str) -> type[BaseCollector] | None:
    """Get a specific collector by name."""
    return COLLECTORS.get(name)


__all__ = [
    "BaseCollector",
    "HostContext",
    "COLLECTORS",
    "get_collector",
]
