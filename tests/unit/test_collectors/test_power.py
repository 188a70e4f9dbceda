"""
Unit tests for the power collectors.

Tests battery state normalisation, pmset parsing and the sysfs power
supply and backlight readers against a fake tree.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from netfetch.collectors.base import HostContext
from netfetch.collectors.chain import DARWIN, WINDOWS
from netfetch.collectors.power import (
    BatteryCollector,
    BrightnessCollector,
    PowerAdapterCollector,
    battery_status,
    parse_pmset,
)
from netfetch.model import Battery, Brightness, PowerAdapter


def write_supply(root, name, **attributes):
    path = root / name
    path.mkdir(parents=True)
    for attribute, value in attributes.items():
        (path / attribute).write_text(f"{value}\n")


@pytest.fixture
def power_supply(tmp_path):
    root = tmp_path / "power_supply"
    root.mkdir()
    with patch("netfetch.collectors.power.POWER_SUPPLY", str(root)):
        yield root


@pytest.fixture
def no_psutil_battery():
    with patch("netfetch.collectors.power.psutil.sensors_battery", return_value=None):
        yield


class TestHelpers:
    """Test battery_status() and parse_pmset()."""

    def test_battery_status(self):
        """Test status normalisation and the adapter suffix."""
        assert battery_status("Discharging", False) == "Discharging"
        assert battery_status("Not charging", True) == "Not Charging, AC Connected"
        assert battery_status("", True) == "AC Connected"
        assert battery_status("", False) == ""

    def test_pmset_charging(self):
        """Test a charging MacBook."""
        output = (
            "Now drawing from 'AC Power'\n"
            " -InternalBattery-0 (id=4653155)\t87%; charging; 0:45 remaining present: true\n"
        )
        assert parse_pmset(output) == Battery(percentage=87.0, status="Charging, AC Connected")

    def test_pmset_states(self):
        """Test the other pmset states."""
        discharging = (
            "Now drawing from 'Battery Power'\n"
            " -InternalBattery-0 (id=1)\t54%; discharging; 3:12 remaining present: true\n"
        )
        charged = "Now drawing from 'AC Power'\n -InternalBattery-0 (id=1)\t100%; charged; 0:00 remaining\n"
        attached = "Now drawing from 'AC Power'\n -InternalBattery-0 (id=1)\t80%; AC attached; not charging\n"

        assert parse_pmset(discharging).status == "Discharging"
        assert parse_pmset(charged).status == "Full, AC Connected"
        assert parse_pmset(attached).status == "AC Connected"

    def test_pmset_no_battery(self):
        """Test a desktop Mac without a battery line."""
        assert parse_pmset("Now drawing from 'AC Power'\n") is None


class TestBatteryCollector:
    """Test BatteryCollector."""

    def test_sysfs(self, linux_context, power_supply):
        """Test capacity, status and the adapter state from sysfs."""
        write_supply(power_supply, "BAT0", capacity=76, status="Charging")
        write_supply(power_supply, "AC", online=1)

        assert BatteryCollector(linux_context).collect() == {
            "battery": Battery(percentage=76.0, status="Charging, AC Connected")
        }

    def test_sysfs_battery_name(self, linux_context, power_supply):
        """Test supplies named 'battery' when no BAT* exists."""
        write_supply(power_supply, "battery", capacity=40, status="Discharging")

        battery = BatteryCollector(linux_context).collect()["battery"]

        assert battery == Battery(percentage=40.0, status="Discharging")

    def test_psutil_fallback(self, linux_context, power_supply):
        """Test psutil when sysfs has no battery."""
        sensors = MagicMock(percent=99.56, power_plugged=True)

        with patch("netfetch.collectors.power.psutil.sensors_battery", return_value=sensors):
            battery = BatteryCollector(linux_context).collect()["battery"]

        assert battery == Battery(percentage=99.6, status="Charging, AC Connected")

    def test_no_battery(self, linux_context, power_supply, no_psutil_battery):
        """Test that a desktop has no battery record."""
        assert BatteryCollector(linux_context).collect() == {"battery": None}

    def test_pmset(self, no_psutil_battery):
        """Test the macOS strategy."""
        collector = BatteryCollector(HostContext(platform=DARWIN))
        output = "Now drawing from 'Battery Power'\n -InternalBattery-0\t12%; discharging; 0:30 remaining\n"

        with patch.object(collector, "command_output", return_value=output):
            assert collector.collect()["battery"] == Battery(percentage=12.0, status="Discharging")


class TestPowerAdapterCollector:
    """Test PowerAdapterCollector."""

    def test_sysfs(self, linux_context, power_supply):
        """Test the adapter online flag."""
        write_supply(power_supply, "ADP1", online=0)

        assert PowerAdapterCollector(linux_context).collect() == {
            "power_adapter": PowerAdapter(is_connected=False)
        }

    def test_unknown(self, linux_context, power_supply, no_psutil_battery):
        """Test that no adapter information gives no record."""
        assert PowerAdapterCollector(linux_context).collect() == {"power_adapter": None}

    def test_pmset(self, no_psutil_battery):
        """Test the macOS power source."""
        collector = PowerAdapterCollector(HostContext(platform=DARWIN))

        with patch.object(collector, "command_output", return_value="Now drawing from 'AC Power'\n"):
            assert collector.collect()["power_adapter"] == PowerAdapter(is_connected=True)


class TestBrightnessCollector:
    """Test BrightnessCollector."""

    def test_sysfs(self, linux_context, tmp_path):
        """Test the level as a percentage of the maximum."""
        device = tmp_path / "intel_backlight"
        device.mkdir()
        (device / "brightness").write_text("4800\n")
        (device / "max_brightness").write_text("19200\n")

        with patch("netfetch.collectors.power.BACKLIGHT", str(tmp_path)):
            result = BrightnessCollector(linux_context).collect()

        assert result == {"brightness": Brightness(current=25, max=100)}

    def test_zero_maximum(self, linux_context, tmp_path):
        """Test that a zero maximum is skipped."""
        device = tmp_path / "acpi_video0"
        device.mkdir()
        (device / "brightness").write_text("0\n")
        (device / "max_brightness").write_text("0\n")

        with patch("netfetch.collectors.power.BACKLIGHT", str(tmp_path)):
            assert BrightnessCollector(linux_context).collect() == {"brightness": None}

    def test_windows(self):
        """Test the WMI query."""
        collector = BrightnessCollector(HostContext(platform=WINDOWS))

        with patch.object(collector, "command_output", return_value="70\r\n"):
            assert collector.collect()["brightness"] == Brightness(current=70, max=100)
