"""
Pytest fixtures and configuration for Netfetch tests.

Provides host contexts pinned to a platform and sample contents of the
pseudo-files and command outputs the collectors parse.
"""

from __future__ import annotations

import pytest

from netfetch.collectors.base import HostContext
from netfetch.collectors.chain import DARWIN, LINUX
from netfetch.config import Config


# Host Context Fixtures
@pytest.fixture
def config():
    """Default configuration with short timeouts."""
    return Config(command_timeout=2, census_timeout=5, public_ip_timeout=1.0)


@pytest.fixture
def linux_context(config):
    """Host context pinned to Linux."""
    return HostContext(config, platform=LINUX)


@pytest.fixture
def darwin_context(config):
    """Host context pinned to macOS."""
    return HostContext(config, platform=DARWIN)


# Test Data Fixtures - Pseudo-files
@pytest.fixture
def sample_mounts_content():
    """Sample content of /proc/self/mounts."""
    return """/dev/nvme0n1p2 / ext4 rw,relatime 0 0
proc /proc proc rw,nosuid,nodev,noexec,relatime 0 0
sysfs /sys sysfs rw,nosuid,nodev,noexec,relatime 0 0
tmpfs /run tmpfs rw,nosuid,nodev,mode=755 0 0
/dev/nvme0n1p1 /boot vfat rw,relatime 0 0
/dev/nvme0n1p3 /home ext4 rw,relatime 0 0
/dev/sda1 /data ext4 rw,relatime 0 0
/dev/sdb1 /media/usb\\040drive vfat rw,relatime 0 0
/dev/loop3 /snap/core/123 squashfs ro,nodev,relatime 0 0
/dev/nvme0n1p3 /home ext4 rw,relatime 0 0
cgroup2 /sys/fs/cgroup cgroup2 rw,nosuid 0 0"""


@pytest.fixture
def sample_meminfo_content():
    """Sample content of /proc/meminfo."""
    return """MemTotal:       16303884 kB
MemFree:         1204512 kB
MemAvailable:    9823412 kB
Buffers:          402316 kB
Cached:          7611008 kB
SwapCached:         3212 kB
SwapTotal:       8388604 kB
SwapFree:        8000000 kB
SReclaimable:     512000 kB"""


@pytest.fixture
def sample_cpuinfo_content():
    """Sample content of /proc/cpuinfo for an x86 machine."""
    return """processor\t: 0
vendor_id\t: GenuineIntel
model name\t: Intel(R) Core(TM) i7-8565U CPU @ 1.80GHz
cpu MHz\t\t: 1992.000
core id\t\t: 0

processor\t: 1
vendor_id\t: GenuineIntel
model name\t: Intel(R) Core(TM) i7-8565U CPU @ 1.80GHz
cpu MHz\t\t: 1800.000
core id\t\t: 1
"""


@pytest.fixture
def sample_arm_cpuinfo_content():
    """Sample content of /proc/cpuinfo for an ARM board without a model name."""
    return """processor\t: 0
BogoMIPS\t: 108.00
CPU implementer\t: 0x41
CPU architecture: 8
CPU variant\t: 0x0
CPU part\t: 0xd08
CPU revision\t: 3
"""


@pytest.fixture
def sample_os_release_content():
    """Sample content for /etc/os-release file."""
    return """NAME="Fedora Linux"
VERSION="39 (Workstation Edition)"
ID=fedora
ID_LIKE=""
VERSION_ID=39
VERSION_CODENAME=""
PRETTY_NAME="Fedora Linux 39 (Workstation Edition)"
VARIANT="Workstation Edition"
VARIANT_ID=workstation"""


# Test Data Fixtures - Command Outputs
@pytest.fixture
def sample_lspci_mm_output():
    """Sample output from lspci -mm."""
    return """00:00.0 "Host bridge" "Intel Corporation" "8th Gen Core Processor Host Bridge/DRAM Registers" -r0b "Dell" "Device 08e1"
00:02.0 "VGA compatible controller" "Intel Corporation" "UHD Graphics 620 (Whiskey Lake)" -r00 "Dell" "Device 08e1"
01:00.0 "3D controller" "NVIDIA Corporation" "GP108M [GeForce MX250]" -ra1 "Dell" "Device 08e1"
02:00.0 "Network controller" "Intel Corporation" "Wireless-AC 9560" -r10 "Intel Corporation" "Device 0034\""""


@pytest.fixture
def sample_nmcli_output():
    """Sample output from nmcli -t -f ACTIVE,SSID,CHAN,RATE,SIGNAL,SECURITY dev wifi."""
    return """no:Neighbour:1:54 Mbit/s:30:WPA2
yes:Home\\:Net:36:866 Mbit/s:78:WPA2 WPA3"""


@pytest.fixture
def sample_iw_link_output():
    """Sample output from iw dev <iface> link."""
    return """Connected to 11:22:33:44:55:66 (on wlan0)
\tSSID: Office
\tfreq: 2437
\tsignal: -54 dBm
\ttx bitrate: 144.4 MBit/s MCS 15 short GI"""


# Pytest Configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests that touch the real host")
    config.addinivalue_line("markers", "cli: marks command-line interface tests")
