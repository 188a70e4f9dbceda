"""
System information collectors.

OS identity, host and user names, kernel, uptime, clock, locale, shell,
sessions, process counts, CPU usage and the display manager.
"""

from __future__ import annotations

import getpass
import os
import platform
import re
import socket
import time
from datetime import datetime
from typing import Any

import distro
import psutil

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import (
    BSD,
    DARWIN,
    LINUX,
    UNIX,
    UNKNOWN,
    WINDOWS,
    Strategy,
)
from netfetch.collectors.process import find_running
from netfetch.model import OperatingSystem, User

OS_RELEASE_PATHS = ["/etc/os-release", "/usr/lib/os-release"]

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

LOCALE_VARIABLES = ["LC_ALL", "LC_MESSAGES", "LANG", "LANGUAGE"]

DISPLAY_MANAGERS = {
    "GDM": ["gdm", "gdm3", "gdm-x-session", "gdm-wayland-session"],
    "SDDM": ["sddm"],
    "LightDM": ["lightdm"],
    "LXDM": ["lxdm"],
    "SLiM": ["slim"],
    "XDM": ["xdm"],
    "KDM": ["kdm"],
    "MDM": ["mdm"],
    "nodm": ["nodm"],
    "Entrance": ["entrance"],
    "Ly": ["ly", "ly-dm"],
    "Lemurs": ["lemurs"],
    "greetd": ["greetd"],
}

_VERSION_NUMBER = re.compile(r"\d+(?:\.\d+)+")


def format_uptime(seconds: float) -> str:
    """Format seconds as '1 day, 2 hours, 5 mins'."""
    total_minutes = int(seconds) // 60
    days, remainder = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(remainder, 60)

    parts = []
    if days:
        parts.append("1 day" if days == 1 else f"{days} days")
    if hours:
        parts.append("1 hour" if hours == 1 else f"{hours} hours")
    if minutes or not parts:
        parts.append("1 min" if minutes == 1 else f"{minutes} mins")
    return ", ".join(parts)


def parse_boottime(value: str) -> float | None:
    """Boot timestamp from `sysctl -n kern.boottime` ('{ sec = 1700000000, ... }' or bare)."""
    match = re.search(r"sec\s*=\s*(\d+)", value)
    if match:
        return float(match.group(1))
    value = value.strip()
    return float(value) if value.isdigit() else None


def shell_version(output: str) -> str:
    """First dotted version number in a shell's --version output."""
    first_line = output.strip().splitlines()[0] if output.strip() else ""
    match = _VERSION_NUMBER.search(first_line)
    return match.group(0) if match else ""


def parse_proc_stat(text: str) -> tuple[int, int] | None:
    """(idle, total) jiffies from the aggregate cpu line of /proc/stat."""
    for line in text.splitlines():
        if line.startswith("cpu "):
            try:
                values = [int(v) for v in line.split()[1:]]
            except ValueError:
                return None
            if len(values) < 4:
                return None
            idle = values[3] + (values[4] if len(values) > 4 else 0)
            return idle, sum(values[:8])
    return None


def cpu_usage_between(before: tuple[int, int], after: tuple[int, int]) -> float:
    """Busy percentage between two /proc/stat samples."""
    idle = after[0] - before[0]
    total = after[1] - before[1]
    if total <= 0:
        return 0.0
    return round((1.0 - idle / total) * 100.0, 1)


def parse_who(output: str) -> list[User]:
    """Parse `who` output into sessions."""
    users = []
    for line in output.splitlines():
        fields = line.split()
        if len(fields) < 4:
            continue
        users.append(User(name=fields[0], terminal=fields[1], login_time=" ".join(fields[2:4])))
    return users


class OSCollector(BaseCollector):
    """Collects operating system identity."""

    name = "os"
    description = "Operating system and distribution"
    fields = ("os",)

    def __init__(self, context=None):
        super().__init__(context)
        self.os_chain = self.chain(
            "os",
            [
                Strategy("distro", self._from_distro, frozenset({LINUX, BSD})),
                Strategy("/etc/os-release", lambda: self._from_os_release(OS_RELEASE_PATHS[0]), UNIX),
                Strategy(
                    "/usr/lib/os-release",
                    lambda: self._from_os_release(OS_RELEASE_PATHS[1]),
                    frozenset({LINUX, BSD}),
                ),
                Strategy("sw_vers", self._from_sw_vers, frozenset({DARWIN})),
                Strategy("platform", self._from_platform),
            ],
            accept=lambda value: value is not None and bool(value.name),
        )

    def collect(self) -> dict[str, Any]:
        # The distribution does not change while we run.
        return {"os": self.context.memoize("os", self.os_chain.run)}

    def _from_distro(self) -> OperatingSystem:
        return OperatingSystem(
            name=distro.name(),
            pretty_name=distro.name(pretty=True),
            distro=distro.id(),
            id_like=distro.like(),
            version=distro.version(pretty=True),
            version_id=distro.version(),
            codename=distro.codename(),
            build_id=distro.os_release_attr("build_id"),
            variant=distro.os_release_attr("variant"),
            variant_id=distro.os_release_attr("variant_id"),
            arch=platform.machine(),
        )

    def _from_os_release(self, path: str) -> OperatingSystem | None:
        release = self.parse_key_value_file(path)
        if not release:
            return None
        name = release.get("NAME", "")
        version = release.get("VERSION", "")
        return OperatingSystem(
            name=name,
            pretty_name=release.get("PRETTY_NAME") or f"{name} {version}".strip(),
            distro=release.get("ID", ""),
            id_like=release.get("ID_LIKE", ""),
            version=version,
            version_id=release.get("VERSION_ID", ""),
            codename=release.get("VERSION_CODENAME", ""),
            build_id=release.get("BUILD_ID", ""),
            variant=release.get("VARIANT", ""),
            variant_id=release.get("VARIANT_ID", ""),
            arch=platform.machine(),
        )

    def _from_sw_vers(self) -> OperatingSystem | None:
        info = self.parse_key_value_text(self.command_output(["sw_vers"]), separator=":")
        name = info.get("ProductName", "")
        if not name:
            return None
        version = info.get("ProductVersion", "")
        return OperatingSystem(
            name=name,
            pretty_name=f"{name} {version}".strip(),
            distro="macos",
            version=version,
            version_id=version,
            build_id=info.get("BuildVersion", ""),
            arch=platform.machine(),
        )

    def _from_platform(self) -> OperatingSystem:
        system = platform.system() or os.name
        release = platform.release()
        return OperatingSystem(
            name=system,
            pretty_name=f"{system} {release}".strip(),
            distro=system.lower(),
            version=release,
            version_id=platform.version(),
            arch=platform.machine(),
        )


class HostCollector(BaseCollector):
    """Collects the host name."""

    name = "host"
    description = "Host name"
    fields = ("host",)

    def __init__(self, context=None):
        super().__init__(context)
        self.host_chain = self.chain(
            "host",
            [
                Strategy("socket", socket.gethostname),
                Strategy("/etc/hostname", lambda: self.read_first_line("/etc/hostname"), UNIX),
                Strategy("platform", platform.node),
            ],
            default="",
        )

    def collect(self) -> dict[str, Any]:
        return {"host": self.host_chain.run()}


class UserCollector(BaseCollector):
    """Collects the current user name."""

    name = "user"
    description = "Current user"
    fields = ("user",)

    def __init__(self, context=None):
        super().__init__(context)
        self.user_chain = self.chain(
            "user",
            [
                Strategy("USER", lambda: os.environ.get("USER", ""), UNIX),
                Strategy("USERNAME", lambda: os.environ.get("USERNAME", ""), frozenset({WINDOWS})),
                Strategy("getpass", getpass.getuser),
            ],
            default="",
        )

    def collect(self) -> dict[str, Any]:
        return {"user": self.user_chain.run()}


class KernelCollector(BaseCollector):
    """Collects the kernel release."""

    name = "kernel"
    description = "Kernel release"
    fields = ("kernel",)

    def __init__(self, context=None):
        super().__init__(context)
        self.kernel_chain = self.chain(
            "kernel",
            [
                Strategy("/proc/sys/kernel/osrelease", self._from_procfs, frozenset({LINUX})),
                Strategy("platform", platform.release),
                Strategy("uname", lambda: self.command_output(["uname", "-r"]).strip(), UNIX),
            ],
            default=UNKNOWN,
        )

    def collect(self) -> dict[str, Any]:
        return {"kernel": self.kernel_chain.run()}

    def _from_procfs(self) -> str:
        return self.read_first_line("/proc/sys/kernel/osrelease")


class UptimeCollector(BaseCollector):
    """Collects system uptime."""

    name = "uptime"
    description = "Time since boot"
    dynamic = True
    fields = ("uptime",)

    def __init__(self, context=None):
        super().__init__(context)
        self.uptime_chain = self.chain(
            "uptime",
            [
                Strategy("/proc/uptime", self._from_procfs, frozenset({LINUX})),
                Strategy("sysctl kern.boottime", self._from_sysctl, frozenset({DARWIN, BSD})),
                Strategy("psutil", lambda: time.time() - psutil.boot_time()),
            ],
            accept=lambda value: value is not None and value >= 0,
        )

    def collect(self) -> dict[str, Any]:
        seconds = self.uptime_chain.run()
        return {"uptime": format_uptime(seconds) if seconds is not None else UNKNOWN}

    def _from_procfs(self) -> float | None:
        fields = self.read_file("/proc/uptime").split()
        return float(fields[0]) if fields else None

    def _from_sysctl(self) -> float | None:
        boot = parse_boottime(self.command_output(["sysctl", "-n", "kern.boottime"]))
        return time.time() - boot if boot is not None else None


class DateTimeCollector(BaseCollector):
    """Collects the local date and time."""

    name = "datetime"
    description = "Local date and time"
    dynamic = True
    fields = ("datetime",)

    def collect(self) -> dict[str, Any]:
        return {"datetime": datetime.now().strftime(DATETIME_FORMAT)}


class LocaleCollector(BaseCollector):
    """Collects the active locale."""

    name = "locale"
    description = "System locale"
    fields = ("locale",)

    def __init__(self, context=None):
        super().__init__(context)
        self.locale_chain = self.chain(
            "locale",
            [
                Strategy("environment", self._from_env, UNIX),
                Strategy("locale", self._from_locale_command, UNIX),
                Strategy("powershell", self._from_powershell, frozenset({WINDOWS})),
            ],
            default=UNKNOWN,
        )

    def collect(self) -> dict[str, Any]:
        return {"locale": self.locale_chain.run()}

    def _from_env(self) -> str:
        for variable in LOCALE_VARIABLES:
            value = os.environ.get(variable)
            if value:
                return value
        return ""

    def _from_locale_command(self) -> str:
        for line in self.command_output(["locale"]).splitlines():
            if line.startswith("LANG="):
                return line[len("LANG=") :].strip("\"'")
        return ""

    def _from_powershell(self) -> str:
        return self.command_output(
            ["powershell", "-Command", "Get-WinSystemLocale | Select-Object -ExpandProperty Name"]
        ).strip()


class ShellCollector(BaseCollector):
    """Collects the login shell and its version."""

    name = "shell"
    description = "Login shell and version"
    fields = ("shell",)

    def __init__(self, context=None):
        super().__init__(context)
        self.shell_chain = self.chain(
            "shell",
            [
                Strategy("SHELL", lambda: os.environ.get("SHELL", ""), UNIX),
                Strategy("passwd", self._from_passwd, UNIX),
                Strategy("COMSPEC", lambda: os.environ.get("COMSPEC", ""), frozenset({WINDOWS})),
            ],
            default="",
        )

    def collect(self) -> dict[str, Any]:
        path = self.shell_chain.run()
        if not path:
            return {"shell": UNKNOWN}

        name = os.path.basename(path.replace("\\", "/"))
        if self.platform == WINDOWS:
            return {"shell": name}
        version = shell_version(self.command_output([path, "--version"]))
        return {"shell": f"{name} {version}" if version else name}

    def _from_passwd(self) -> str:
        import pwd

        return pwd.getpwuid(os.getuid()).pw_shell


class UsersCollector(BaseCollector):
    """Collects logged-in user sessions."""

    name = "users"
    description = "Logged-in users"
    dynamic = True
    fields = ("users",)

    def __init__(self, context=None):
        super().__init__(context)
        self.users_chain = self.chain(
            "users",
            [
                Strategy("psutil", self._from_psutil),
                Strategy("who", lambda: parse_who(self.command_output(["who"])), UNIX),
            ],
            default=[],
        )

    def collect(self) -> dict[str, Any]:
        return {"users": self.users_chain.run()}

    def _from_psutil(self) -> list[User]:
        return [
            User(
                name=session.name,
                terminal=session.terminal or "",
                login_time=datetime.fromtimestamp(session.started).strftime("%Y-%m-%d %H:%M"),
            )
            for session in psutil.users()
        ]


class ProcessesCollector(BaseCollector):
    """Counts running processes."""

    name = "processes"
    description = "Number of running processes"
    dynamic = True
    fields = ("processes",)

    def __init__(self, context=None):
        super().__init__(context)
        self.processes_chain = self.chain(
            "processes",
            [
                Strategy("/proc", self._from_procfs, frozenset({LINUX})),
                Strategy("psutil", lambda: len(psutil.pids())),
            ],
            default=0,
        )

    def collect(self) -> dict[str, Any]:
        return {"processes": self.processes_chain.run()}

    def _from_procfs(self) -> int:
        return sum(1 for entry in os.listdir("/proc") if entry.isdigit())


class CPUUsageCollector(BaseCollector):
    """Samples overall CPU utilisation."""

    name = "cpu_usage"
    description = "CPU utilisation percentage"
    dynamic = True
    fields = ("cpu_usage",)

    sample_interval = 0.1

    def __init__(self, context=None):
        super().__init__(context)
        self.cpu_usage_chain = self.chain(
            "cpu_usage",
            [
                Strategy("/proc/stat", self._from_proc_stat, frozenset({LINUX})),
                Strategy("psutil", lambda: psutil.cpu_percent(interval=self.sample_interval)),
            ],
            default=0.0,
            accept=lambda value: value is not None,
        )

    def collect(self) -> dict[str, Any]:
        return {"cpu_usage": self.cpu_usage_chain.run()}

    def _from_proc_stat(self) -> float | None:
        before = parse_proc_stat(self.read_file("/proc/stat"))
        time.sleep(self.sample_interval)
        after = parse_proc_stat(self.read_file("/proc/stat"))
        if before is None or after is None:
            return None
        return cpu_usage_between(before, after)


class LoginManagerCollector(BaseCollector):
    """Detects the display manager."""

    name = "login_manager"
    description = "Display or login manager"
    fields = ("login_manager",)

    def __init__(self, context=None):
        super().__init__(context)
        self.login_manager_chain = self.chain(
            "login_manager",
            [
                Strategy("process table", lambda: find_running(DISPLAY_MANAGERS), frozenset({LINUX, BSD})),
                Strategy("systemd unit", self._from_systemd, frozenset({LINUX})),
                Strategy("session type", self._from_session_type, frozenset({LINUX, BSD})),
                Strategy("darwin", lambda: "macOS Login Window", frozenset({DARWIN})),
                Strategy("windows", lambda: "Windows Login", frozenset({WINDOWS})),
            ],
            default=UNKNOWN,
        )

    def collect(self) -> dict[str, Any]:
        return {"login_manager": self.login_manager_chain.run()}

    def _from_systemd(self) -> str:
        target = os.readlink("/etc/systemd/system/display-manager.service")
        unit = os.path.basename(target).removesuffix(".service")
        for label, executables in DISPLAY_MANAGERS.items():
            if unit in executables:
                return label
        return unit

    def _from_session_type(self) -> str:
        if os.environ.get("WAYLAND_DISPLAY") or os.environ.get("XDG_SESSION_TYPE") == "wayland":
            return "Wayland (Unknown DM)"
        if os.environ.get("DISPLAY"):
            return "X11 (Unknown DM)"
        return ""
