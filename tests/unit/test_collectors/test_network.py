"""
Unit tests for the network collectors.

Tests Wi-Fi output parsers, interface enumeration and the public IP probe.
"""

from __future__ import annotations

import socket
from unittest.mock import MagicMock, patch

import pytest
import requests

from netfetch.collectors.base import HostContext
from netfetch.collectors.chain import DARWIN, WINDOWS
from netfetch.collectors.network import (
    NetworkCollector,
    PublicIPCollector,
    WifiCollector,
    channel_band,
    dbm_to_percent,
    frequency_band,
    parse_airport,
    parse_iw_link,
    parse_netsh,
    parse_nmcli,
    parse_wifi_protocol,
)
from netfetch.config import Config
from netfetch.model import Interface, Network, Wifi

AIRPORT_OUTPUT = """     agrCtlRSSI: -61
     agrExtRSSI: 0
          state: running
        op mode: station
     lastTxRate: 585
        maxRate: 867
      link auth: wpa2-psk
           SSID: CoffeeShop
        channel: 149,80
"""

NETSH_OUTPUT = """
There is 1 interface on the system:

    Name                   : Wi-Fi
    State                  : connected
    SSID                   : Lab
    BSSID                  : 11:22:33:44:55:66
    Radio type             : 802.11ax
    Authentication         : WPA3-Personal
    Channel                : 6
    Signal                 : 91%
"""

IP_ADDR_OUTPUT = """1: lo    inet 127.0.0.1/8 scope host lo\\       valid_lft forever preferred_lft forever
2: enp3s0    inet 192.168.1.20/24 brd 192.168.1.255 scope global dynamic enp3s0
3: wlp2s0    inet 10.0.0.7/24 brd 10.0.0.255 scope global wlp2s0
"""


class TestProtocolHelpers:
    """Test the band and protocol helpers."""

    def test_standard_names(self):
        """Test standard names and marketing names."""
        assert parse_wifi_protocol("802.11ax") == "Wi-Fi 6 (802.11ax)"
        assert parse_wifi_protocol("802.11ac") == "Wi-Fi 5 (802.11ac)"
        assert parse_wifi_protocol("Wi-Fi 7") == "Wi-Fi 7 (802.11be)"
        assert parse_wifi_protocol("802.11n") == "Wi-Fi 4 (802.11n)"
        assert parse_wifi_protocol("802.11g") == "802.11g"

    def test_link_rates(self):
        """Test that a numeric rate is mapped by its magnitude."""
        assert parse_wifi_protocol("1201 Mbit/s") == "Wi-Fi 6 (802.11ax)"
        assert parse_wifi_protocol("866 Mbit/s") == "Wi-Fi 5 (802.11ac)"
        assert parse_wifi_protocol("144.4 MBit/s") == "Wi-Fi 4 (802.11n)"
        assert parse_wifi_protocol("54") == "802.11g"
        assert parse_wifi_protocol("6 Mbit/s") == ""

    def test_unrecognised(self):
        """Test that unknown text gives an empty protocol."""
        assert parse_wifi_protocol("") == ""
        assert parse_wifi_protocol("proprietary") == ""

    def test_bands(self):
        """Test channel and frequency bands."""
        assert channel_band(11) == "2.4 GHz"
        assert channel_band(149) == "5 GHz"
        assert channel_band(0) == ""
        assert frequency_band(2437) == "2.4 GHz"
        assert frequency_band(5180) == "5 GHz"
        assert frequency_band(6115) == "6 GHz"

    def test_dbm_to_percent(self):
        """Test the clamped signal mapping."""
        assert dbm_to_percent(-54) == 80
        assert dbm_to_percent(-40) == 100
        assert dbm_to_percent(-120) == 0


class TestWifiParsers:
    """Test parsers of wireless tool output."""

    def test_nmcli_active_only(self, sample_nmcli_output):
        """Test that only the active row is used and escapes are undone."""
        assert parse_nmcli(sample_nmcli_output) == Wifi(
            ssid="Home:Net",
            protocol="Wi-Fi 5 (802.11ac)",
            frequency="5 GHz",
            security="WPA2 WPA3",
            strength=78,
        )

    def test_nmcli_not_connected(self):
        """Test that no active row gives no record."""
        assert parse_nmcli("no:Neighbour:1:54 Mbit/s:30:WPA2\n") is None

    def test_nmcli_open_network(self):
        """Test that an empty security column reads as Open."""
        assert parse_nmcli("yes:Cafe:6:54 Mbit/s:60:\n").security == "Open"

    def test_iw_link(self, sample_iw_link_output):
        """Test SSID, band, signal and the MCS based protocol."""
        assert parse_iw_link(sample_iw_link_output) == Wifi(
            ssid="Office",
            protocol="Wi-Fi 4 (802.11n)",
            frequency="2.4 GHz",
            strength=80,
        )

    def test_iw_link_he(self):
        """Test that HE-MCS is not mistaken for plain MCS."""
        output = "\tSSID: Lab\n\tfreq: 5500\n\ttx bitrate: 1200.9 MBit/s 80MHz HE-MCS 11 HE-NSS 2\n"
        assert parse_iw_link(output).protocol == "Wi-Fi 6 (802.11ax)"

    def test_iw_not_connected(self):
        """Test that no SSID gives no record."""
        assert parse_iw_link("Not connected.\n") is None

    def test_airport(self):
        """Test the macOS airport tool."""
        assert parse_airport(AIRPORT_OUTPUT) == Wifi(
            ssid="CoffeeShop",
            protocol="Wi-Fi 5 (802.11ac)",
            frequency="5 GHz",
            security="wpa2-psk",
            strength=70,
        )

    def test_netsh(self):
        """Test the Windows netsh report."""
        assert parse_netsh(NETSH_OUTPUT) == Wifi(
            ssid="Lab",
            protocol="Wi-Fi 6 (802.11ax)",
            frequency="2.4 GHz",
            security="WPA3-Personal",
            strength=91,
        )


class TestNetworkCollector:
    """Test NetworkCollector."""

    def test_psutil(self, linux_context):
        """Test up IPv4 non-loopback addresses from psutil."""
        addrs = {
            "lo": [MagicMock(family=socket.AF_INET, address="127.0.0.1")],
            "eth0": [
                MagicMock(family=socket.AF_INET, address="192.168.1.20"),
                MagicMock(family=socket.AF_INET6, address="fe80::1"),
            ],
            "docker0": [MagicMock(family=socket.AF_INET, address="172.17.0.1")],
        }
        stats = {
            "lo": MagicMock(isup=True),
            "eth0": MagicMock(isup=True),
            "docker0": MagicMock(isup=False),
        }

        with patch("netfetch.collectors.network.psutil.net_if_addrs", return_value=addrs), patch(
            "netfetch.collectors.network.psutil.net_if_stats", return_value=stats
        ):
            result = NetworkCollector(linux_context).collect()

        assert result == {
            "network": Network(interfaces=[Interface(name="eth0", ip="192.168.1.20")]),
            "local_ip": ["192.168.1.20"],
        }

    def test_ip_command_fallback(self, linux_context):
        """Test `ip addr` when psutil fails."""
        collector = NetworkCollector(linux_context)

        with patch(
            "netfetch.collectors.network.psutil.net_if_stats", side_effect=OSError("denied")
        ), patch.object(collector, "command_output", return_value=IP_ADDR_OUTPUT):
            result = collector.collect()

        assert result["local_ip"] == ["192.168.1.20", "10.0.0.7"]
        assert result["network"].interfaces[1].name == "wlp2s0"

    def test_exhaustion(self, linux_context):
        """Test that no source gives an empty network."""
        collector = NetworkCollector(linux_context)

        with patch(
            "netfetch.collectors.network.psutil.net_if_stats", side_effect=OSError
        ), patch.object(collector, "command_output", return_value=""):
            assert collector.collect() == {"network": Network(), "local_ip": []}


class TestWifiCollector:
    """Test WifiCollector."""

    def test_iw_after_nmcli(self, linux_context, sample_iw_link_output):
        """Test that iw is used when NetworkManager is absent."""
        collector = WifiCollector(linux_context)
        outputs = {
            ("nmcli",): "",
            ("iw", "dev"): "phy#0\n\tInterface wlan0\n\t\tifindex 3\n",
            ("iw", "dev", "wlan0", "link"): sample_iw_link_output,
        }

        def command_output(cmd):
            if cmd[0] == "nmcli":
                return outputs[("nmcli",)]
            return outputs[tuple(cmd)]

        with patch.object(collector, "command_output", side_effect=command_output):
            assert collector.collect()["wifi"].ssid == "Office"

    def test_no_wifi(self, linux_context):
        """Test that a wired host has no Wi-Fi record."""
        collector = WifiCollector(linux_context)

        with patch.object(collector, "command_output", return_value=""):
            assert collector.collect() == {"wifi": None}

    @pytest.mark.parametrize(
        "platform,output,ssid",
        [(DARWIN, AIRPORT_OUTPUT, "CoffeeShop"), (WINDOWS, NETSH_OUTPUT, "Lab")],
    )
    def test_other_platforms(self, platform, output, ssid):
        """Test the macOS and Windows strategies."""
        collector = WifiCollector(HostContext(platform=platform))

        with patch.object(collector, "command_output", return_value=output):
            assert collector.collect()["wifi"].ssid == ssid


class TestPublicIPCollector:
    """Test PublicIPCollector."""

    @pytest.fixture
    def context(self):
        config = Config(
            public_ip_timeout=1.5,
            public_ip_services=["https://one.example", "https://two.example"],
        )
        return HostContext(config)

    def test_first_service(self, context):
        """Test the first answering service with the configured timeout."""
        session = MagicMock()
        session.get.return_value = MagicMock(text="203.0.113.9\n")

        result = PublicIPCollector(context, session=session).collect()

        assert result == {"public_ip": "203.0.113.9"}
        session.get.assert_called_once_with("https://one.example", timeout=1.5)

    def test_falls_back_on_error(self, context):
        """Test that a failing service moves on to the next."""
        session = MagicMock()
        good = MagicMock(text="198.51.100.4")
        session.get.side_effect = [requests.exceptions.ConnectionError("down"), good]

        assert PublicIPCollector(context, session=session).collect() == {
            "public_ip": "198.51.100.4"
        }
        assert session.get.call_count == 2

    def test_http_error(self, context):
        """Test that error statuses count as failures."""
        session = MagicMock()
        response = MagicMock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("503")
        session.get.return_value = response

        assert PublicIPCollector(context, session=session).collect() == {"public_ip": ""}
