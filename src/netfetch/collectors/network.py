"""
Network collectors.

Local IPv4 addresses per interface, the associated Wi-Fi link and the
public address as seen from the internet.
"""

from __future__ import annotations

import re
import socket
from typing import Any

import psutil
import requests

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import DARWIN, LINUX, WINDOWS, Strategy
from netfetch.model import Interface, Network, Wifi

AIRPORT = (
    "/System/Library/PrivateFrameworks/Apple80211.framework/"
    "Versions/Current/Resources/airport"
)

# Ordered most specific first; "MCS" alone means 802.11n.
IW_MCS_PROTOCOLS = [
    ("EHT-MCS", "Wi-Fi 7 (802.11be)"),
    ("HE-MCS", "Wi-Fi 6 (802.11ax)"),
    ("VHT-MCS", "Wi-Fi 5 (802.11ac)"),
    ("MCS", "Wi-Fi 4 (802.11n)"),
]

_NMCLI_SEPARATOR = re.compile(r"(?<!\\):")
# A bare or Mbit/s rate; "802.11ax" must not read as 802.
_LEADING_NUMBER = re.compile(r"^\s*(\d+)(?:\.\d+)?\s*(?:mbit|mb/s|mbps|$)")

_PROTOCOLS = [
    (re.compile(r"\b(802\.11)?be\b|wi-?fi ?7"), "Wi-Fi 7 (802.11be)"),
    (re.compile(r"\b(802\.11)?ax\b|wi-?fi ?6"), "Wi-Fi 6 (802.11ax)"),
    (re.compile(r"\b(802\.11)?ac\b|wi-?fi ?5"), "Wi-Fi 5 (802.11ac)"),
    (re.compile(r"\b(802\.11)?n\b|wi-?fi ?4"), "Wi-Fi 4 (802.11n)"),
    (re.compile(r"\b(802\.11)?g\b"), "802.11g"),
    (re.compile(r"\b(802\.11)?a\b"), "802.11a"),
    (re.compile(r"\b(802\.11)?b\b"), "802.11b"),
]


def parse_wifi_protocol(text: str) -> str:
    """Wi-Fi generation from a standard name or, failing that, a link rate in Mbit/s."""
    lowered = text.lower()
    match = _LEADING_NUMBER.match(lowered)
    if match:
        rate = int(match.group(1))
        if rate >= 1000:
            return "Wi-Fi 6 (802.11ax)"
        if rate >= 400:
            return "Wi-Fi 5 (802.11ac)"
        if rate >= 100:
            return "Wi-Fi 4 (802.11n)"
        if rate >= 54:
            return "802.11g"
        if rate >= 11:
            return "802.11b"
        return ""
    for pattern, label in _PROTOCOLS:
        if pattern.search(lowered):
            return label
    return ""


def channel_band(channel: int) -> str:
    if 1 <= channel <= 14:
        return "2.4 GHz"
    if 36 <= channel <= 177:
        return "5 GHz"
    return ""


def frequency_band(mhz: float) -> str:
    if mhz < 3000:
        return "2.4 GHz"
    if mhz < 5925:
        return "5 GHz"
    return "6 GHz"


def dbm_to_percent(dbm: int) -> int:
    """Map a signal level in dBm onto 0-100."""
    return max(0, min(100, (dbm + 110) * 10 // 7))


def parse_nmcli(output: str) -> Wifi | None:
    """Active network from `nmcli -t -f active,ssid,chan,rate,signal,security dev wifi`."""
    for line in output.splitlines():
        fields = [f.replace("\\:", ":") for f in _NMCLI_SEPARATOR.split(line)]
        if len(fields) < 6 or fields[0] != "yes":
            continue
        wifi = Wifi(ssid=fields[1], security=fields[5].strip() or "Open")
        if fields[2].strip().isdigit():
            wifi.frequency = channel_band(int(fields[2]))
        if fields[3].strip():
            wifi.protocol = parse_wifi_protocol(fields[3])
        if fields[4].strip().isdigit():
            wifi.strength = int(fields[4])
        return wifi
    return None


def parse_iw_link(output: str) -> Wifi | None:
    """Link details from `iw dev <iface> link`."""
    wifi = Wifi()
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("SSID:"):
            wifi.ssid = line.partition(":")[2].strip()
        elif line.startswith("freq:"):
            try:
                wifi.frequency = frequency_band(float(line.partition(":")[2].split()[0]))
            except (ValueError, IndexError):
                pass
        elif line.startswith("signal:"):
            try:
                wifi.strength = dbm_to_percent(int(line.partition(":")[2].split()[0]))
            except (ValueError, IndexError):
                pass
        elif line.startswith("tx bitrate:"):
            bitrate = line.partition(":")[2]
            for token, label in IW_MCS_PROTOCOLS:
                if token in bitrate:
                    wifi.protocol = label
                    break
            else:
                wifi.protocol = parse_wifi_protocol(bitrate)
    return wifi if wifi.ssid else None


def parse_airport(output: str) -> Wifi | None:
    """Link details from `airport -I`."""
    wifi = Wifi()
    for line in output.splitlines():
        key, _, value = line.strip().partition(":")
        value = value.strip()
        if key == "SSID":
            wifi.ssid = value
        elif key == "channel":
            channel = value.split(",")[0]
            if channel.isdigit():
                wifi.frequency = channel_band(int(channel))
        elif key == "lastTxRate":
            wifi.protocol = parse_wifi_protocol(value)
        elif key == "agrCtlRSSI":
            try:
                wifi.strength = dbm_to_percent(int(value))
            except ValueError:
                pass
        elif key == "link auth":
            wifi.security = value
    return wifi if wifi.ssid else None


def parse_netsh(output: str) -> Wifi | None:
    """Link details from `netsh wlan show interfaces`."""
    wifi = Wifi()
    for line in output.splitlines():
        key, _, value = line.strip().partition(":")
        key = key.strip()
        value = value.strip()
        if key == "SSID":
            wifi.ssid = value
        elif key == "Radio type":
            wifi.protocol = parse_wifi_protocol(value)
        elif key == "Channel" and value.isdigit():
            wifi.frequency = channel_band(int(value))
        elif key == "Signal":
            signal = value.rstrip("%")
            if signal.isdigit():
                wifi.strength = int(signal)
        elif key == "Authentication":
            wifi.security = value
    return wifi if wifi.ssid else None


class NetworkCollector(BaseCollector):
    """Collects IPv4 addresses of active interfaces."""

    name = "network"
    description = "Active interfaces and local IPv4 addresses"
    dynamic = True
    fields = ("network", "local_ip")

    def __init__(self, context=None):
        super().__init__(context)
        self.interface_chain = self.chain(
            "network",
            [
                Strategy("psutil", self._from_psutil),
                Strategy("ip addr", self._from_ip_command, frozenset({LINUX})),
            ],
            default=[],
        )

    def collect(self) -> dict[str, Any]:
        interfaces = self.interface_chain.run()
        return {
            "network": Network(interfaces=interfaces),
            "local_ip": [iface.ip for iface in interfaces],
        }

    def _from_psutil(self) -> list[Interface]:
        stats = psutil.net_if_stats()
        interfaces = []
        for name, addresses in psutil.net_if_addrs().items():
            stat = stats.get(name)
            if stat is None or not stat.isup:
                continue
            for address in addresses:
                if address.family != socket.AF_INET or address.address.startswith("127."):
                    continue
                interfaces.append(Interface(name=name, ip=address.address))
        return interfaces

    def _from_ip_command(self) -> list[Interface]:
        """Parse `ip -o -4 addr show up`."""
        interfaces = []
        for line in self.command_output(["ip", "-o", "-4", "addr", "show", "up"]).splitlines():
            fields = line.split()
            if len(fields) < 4 or fields[2] != "inet":
                continue
            address = fields[3].split("/")[0]
            if address.startswith("127."):
                continue
            interfaces.append(Interface(name=fields[1], ip=address))
        return interfaces


class WifiCollector(BaseCollector):
    """Collects details of the associated wireless network."""

    name = "wifi"
    description = "Wireless link"
    dynamic = True
    fields = ("wifi",)

    def __init__(self, context=None):
        super().__init__(context)
        self.wifi_chain = self.chain(
            "wifi",
            [
                Strategy("nmcli", self._from_nmcli, frozenset({LINUX})),
                Strategy("iw", self._from_iw, frozenset({LINUX})),
                Strategy("airport", lambda: parse_airport(self.command_output([AIRPORT, "-I"])), frozenset({DARWIN})),
                Strategy(
                    "netsh",
                    lambda: parse_netsh(self.command_output(["netsh", "wlan", "show", "interfaces"])),
                    frozenset({WINDOWS}),
                ),
            ],
        )

    def collect(self) -> dict[str, Any]:
        return {"wifi": self.wifi_chain.run()}

    def _from_nmcli(self) -> Wifi | None:
        output = self.command_output(
            ["nmcli", "-t", "-f", "active,ssid,chan,rate,signal,security", "dev", "wifi"]
        )
        return parse_nmcli(output)

    def _from_iw(self) -> Wifi | None:
        interfaces = []
        for line in self.command_output(["iw", "dev"]).splitlines():
            fields = line.split()
            if len(fields) == 2 and fields[0] == "Interface":
                interfaces.append(fields[1])
        for interface in interfaces:
            wifi = parse_iw_link(self.command_output(["iw", "dev", interface, "link"]))
            if wifi:
                return wifi
        return None


class PublicIPCollector(BaseCollector):
    """Asks echo services for this host's public address."""

    name = "public_ip"
    description = "Public IP address (network access)"
    dynamic = True
    fields = ("public_ip",)

    def __init__(self, context=None, session: requests.Session | None = None):
        super().__init__(context)
        self.session = session or requests.Session()
        self.ip_chain = self.chain(
            "public_ip",
            [
                Strategy(url, lambda url=url: self._query(url))
                for url in self.config.public_ip_services
            ],
            default="",
        )

    def collect(self) -> dict[str, Any]:
        return {"public_ip": self.ip_chain.run()}

    def _query(self, url: str) -> str:
        try:
            response = self.session.get(url, timeout=self.config.public_ip_timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self.logger.debug(f"Public IP service {url} failed: {e}")
            return ""
        return response.text.strip()

