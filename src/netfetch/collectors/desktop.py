"""
Desktop session collectors.

Desktop environment, window manager, themes, fonts, cursor and display
resolution. Desktop configuration files are read from the configured
config home (``Config.config_home``, else ``$XDG_CONFIG_HOME`` or
``~/.config``).
"""

from __future__ import annotations

import glob
import os
import re
from pathlib import Path
from typing import Any

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import BSD, DARWIN, LINUX, UNKNOWN, WINDOWS, Strategy
from netfetch.collectors.process import find_running

X11_DESKTOPS = frozenset({LINUX, BSD})

DE_PROCESSES = {
    "GNOME": ["gnome-session", "gnome-shell"],
    "KDE": ["plasmashell", "ksmserver"],
    "XFCE": ["xfce4-session"],
    "Cinnamon": ["cinnamon-session", "cinnamon"],
    "MATE": ["mate-session"],
    "Unity": ["unity-panel-service"],
    "LXDE": ["lxsession"],
    "LXQt": ["lxqt-session"],
    "Deepin": ["dde-desktop", "dde-session"],
    "Pantheon": ["pantheon-session"],
    "Budgie": ["budgie-desktop", "budgie-wm"],
    "Trinity": ["trinity-session"],
}

WM_PROCESSES = {
    "i3": ["i3", "i3-gaps"],
    "Sway": ["sway"],
    "Hyprland": ["Hyprland", "hyprland"],
    "bspwm": ["bspwm"],
    "awesome": ["awesome"],
    "dwm": ["dwm"],
    "Openbox": ["openbox"],
    "Fluxbox": ["fluxbox"],
    "IceWM": ["icewm"],
    "JWM": ["jwm"],
    "herbstluftwm": ["herbstluftwm"],
    "qtile": ["qtile"],
    "xmonad": ["xmonad"],
    "Mutter": ["mutter"],
    "KWin": ["kwin_x11", "kwin_wayland"],
    "Xfwm4": ["xfwm4"],
    "Marco": ["marco"],
    "Metacity": ["metacity"],
    "Compiz": ["compiz"],
    "Enlightenment": ["enlightenment"],
    "fvwm": ["fvwm", "fvwm3"],
    "ctwm": ["ctwm"],
    "ratpoison": ["ratpoison"],
    "Wayfire": ["wayfire"],
    "River": ["river"],
    "Labwc": ["labwc"],
}

WAYLAND_COMPOSITORS = {
    "Hyprland": ["Hyprland", "hyprland"],
    "Sway": ["sway"],
    "Wayfire": ["wayfire"],
    "River": ["river"],
    "Labwc": ["labwc"],
    "KWin": ["kwin_wayland"],
    "Mutter": ["gnome-shell", "mutter"],
}

DARWIN_WMS = {
    "yabai": ["yabai"],
    "AeroSpace": ["AeroSpace", "aerospace"],
    "Rectangle": ["Rectangle"],
    "Amethyst": ["Amethyst"],
    "Magnet": ["Magnet"],
}

_RESOLUTION = re.compile(r"(\d{3,5})\s*x\s*(\d{3,5})")
_FONT_FAMILY = re.compile(r"<family>\s*([^<]+?)\s*</family>")


def unquote(value: str) -> str:
    return value.strip().strip("'\"")


def format_toolkit_values(values: list[tuple[str, str]]) -> str:
    """
    Join per-toolkit settings as 'Breeze [Qt], Adwaita [GTK2/3]'.

    Toolkits reporting the same value are merged into one entry.
    """
    merged: dict[str, list[str]] = {}
    for toolkit, value in values:
        if not value:
            continue
        merged.setdefault(value, []).append(toolkit)
    parts = []
    for value, toolkits in merged.items():
        label = toolkits[0]
        for toolkit in toolkits[1:]:
            if toolkit.startswith("GTK") and label.startswith("GTK"):
                label = f"{label}/{toolkit[3:]}"
            else:
                label = f"{label}, {toolkit}"
        parts.append(f"{value} [{label}]")
    return ", ".join(parts)


def parse_xrandr(output: str) -> list[str]:
    """Current modes from `xrandr --current`, one per monitor."""
    modes = []
    for line in output.splitlines():
        if "*" not in line:
            continue
        match = _RESOLUTION.search(line)
        if match:
            modes.append(f"{match.group(1)}x{match.group(2)}")
    return modes


def parse_wlr_randr(output: str) -> list[str]:
    """Current modes from `wlr-randr`."""
    modes = []
    for line in output.splitlines():
        if "current" not in line:
            continue
        match = _RESOLUTION.search(line)
        if match:
            modes.append(f"{match.group(1)}x{match.group(2)}")
    return modes


class DesktopCollector(BaseCollector):
    """Shared helpers for reading desktop configuration."""

    @property
    def config_home(self) -> Path:
        return self.context.config_home

    def gsettings(self, schema: str, key: str) -> str:
        return unquote(self.command_output(["gsettings", "get", schema, key]))

    def gtk3_setting(self, key: str) -> str:
        return self.read_ini_value(self.config_home / "gtk-3.0" / "settings.ini", "Settings", key)

    def gtk2_setting(self, key: str) -> str:
        settings = self.parse_key_value_file(Path.home() / ".gtkrc-2.0")
        return settings.get(key, "")

    def kde_setting(self, section: str, key: str) -> str:
        return self.read_ini_value(self.config_home / "kdeglobals", section, key)


class DECollector(DesktopCollector):
    """Detects the desktop environment."""

    name = "de"
    description = "Desktop environment"
    fields = ("de",)

    def __init__(self, context=None):
        super().__init__(context)
        self.de_chain = self.chain(
            "de",
            [
                Strategy("darwin", lambda: "Aqua", frozenset({DARWIN})),
                Strategy("windows", lambda: "Windows Explorer", frozenset({WINDOWS})),
                Strategy("XDG_CURRENT_DESKTOP", self._from_xdg_current, X11_DESKTOPS),
                Strategy("DESKTOP_SESSION", lambda: os.environ.get("DESKTOP_SESSION", ""), X11_DESKTOPS),
                Strategy("GDMSESSION", lambda: os.environ.get("GDMSESSION", ""), X11_DESKTOPS),
                Strategy(
                    "XDG_SESSION_DESKTOP",
                    lambda: os.environ.get("XDG_SESSION_DESKTOP", ""),
                    X11_DESKTOPS,
                ),
                Strategy("process table", lambda: find_running(DE_PROCESSES), X11_DESKTOPS),
            ],
            default=UNKNOWN,
        )

    def collect(self) -> dict[str, Any]:
        return {"de": self.de_chain.run()}

    def _from_xdg_current(self) -> str:
        return os.environ.get("XDG_CURRENT_DESKTOP", "").split(":")[0]


class WMCollector(DesktopCollector):
    """Detects the window manager and its decoration theme."""

    name = "wm"
    description = "Window manager and theme"
    fields = ("wm", "wm_theme")

    def __init__(self, context=None):
        super().__init__(context)
        self.wm_chain = self.chain(
            "wm",
            [
                Strategy("wayland compositor", self._from_wayland, X11_DESKTOPS),
                Strategy("wmctrl", self._from_wmctrl, X11_DESKTOPS),
                Strategy("xprop", self._from_xprop, X11_DESKTOPS),
                Strategy("process table", lambda: find_running(WM_PROCESSES), X11_DESKTOPS),
                Strategy("darwin tiling", lambda: find_running(DARWIN_WMS), frozenset({DARWIN})),
                Strategy("darwin default", lambda: "Quartz Compositor", frozenset({DARWIN})),
                Strategy("windows", lambda: "DWM", frozenset({WINDOWS})),
            ],
            default=UNKNOWN,
        )

    def collect(self) -> dict[str, Any]:
        wm = self.wm_chain.run()
        return {"wm": wm, "wm_theme": self._get_theme(wm) or UNKNOWN}

    def _from_wayland(self) -> str:
        if not os.environ.get("WAYLAND_DISPLAY"):
            return ""
        return find_running(WAYLAND_COMPOSITORS)

    def _from_wmctrl(self) -> str:
        for line in self.command_output(["wmctrl", "-m"]).splitlines():
            if line.startswith("Name:"):
                return line.partition(":")[2].strip()
        return ""

    def _from_xprop(self) -> str:
        fields = self.command_output(["xprop", "-root", "_NET_SUPPORTING_WM_CHECK"]).split()
        if len(fields) < 5:
            return ""
        output = self.command_output(
            ["xprop", "-id", fields[4], "-notype", "-len", "100", "-f", "_NET_WM_NAME", "8t"]
        )
        for line in output.splitlines():
            if line.startswith("_NET_WM_NAME"):
                return unquote(line.partition("=")[2])
        return ""

    def _get_theme(self, wm: str) -> str:
        """Decoration theme for window managers that expose one."""
        if wm == "KWin":
            kwinrc = self.config_home / "kwinrc"
            return self.read_ini_value(kwinrc, "org.kde.kdecoration2", "theme") or self.read_ini_value(
                kwinrc, "WindowDecoration", "theme"
            )
        if wm == "Xfwm4":
            return self.command_output(["xfconf-query", "-c", "xfwm4", "-p", "/general/theme"]).strip()
        if wm in ("Mutter", "Metacity", "Marco"):
            return self.gsettings("org.gnome.desktop.wm.preferences", "theme")
        return ""


class ThemeCollector(DesktopCollector):
    """Collects Qt and GTK widget themes."""

    name = "theme"
    description = "Widget theme"
    fields = ("theme",)

    def collect(self) -> dict[str, Any]:
        gtk3 = self.gtk3_setting("gtk-theme-name") or self.gsettings(
            "org.gnome.desktop.interface", "gtk-theme"
        )
        values = [
            ("Qt", self.kde_setting("General", "ColorScheme")),
            ("GTK2", self.gtk2_setting("gtk-theme-name")),
            ("GTK3", gtk3),
        ]
        return {"theme": format_toolkit_values(values) or UNKNOWN}


class IconsCollector(DesktopCollector):
    """Collects icon themes."""

    name = "icons"
    description = "Icon theme"
    fields = ("icons",)

    def collect(self) -> dict[str, Any]:
        gtk3 = self.gtk3_setting("gtk-icon-theme-name") or self.gsettings(
            "org.gnome.desktop.interface", "icon-theme"
        )
        values = [
            ("Qt", self.kde_setting("Icons", "Theme")),
            ("GTK2", self.gtk2_setting("gtk-icon-theme-name")),
            ("GTK3", gtk3),
        ]
        return {"icons": format_toolkit_values(values) or UNKNOWN}


class FontCollector(DesktopCollector):
    """Collects the configured interface font."""

    name = "font"
    description = "Interface font"
    fields = ("font",)

    def __init__(self, context=None):
        super().__init__(context)
        self.font_chain = self.chain(
            "font",
            [
                Strategy("fontconfig", self._from_fontconfig, X11_DESKTOPS),
                Strategy("gtk3", lambda: self.gtk3_setting("gtk-font-name"), X11_DESKTOPS),
                Strategy("kdeglobals", self._from_kdeglobals, X11_DESKTOPS),
                Strategy(
                    "gsettings",
                    lambda: self.gsettings("org.gnome.desktop.interface", "font-name"),
                    X11_DESKTOPS,
                ),
            ],
            default=UNKNOWN,
        )

    def collect(self) -> dict[str, Any]:
        return {"font": self.font_chain.run()}

    def _from_fontconfig(self) -> str:
        for path in (self.config_home / "fontconfig" / "fonts.conf", Path.home() / ".fonts.conf"):
            match = _FONT_FAMILY.search(self.read_file(path))
            if match:
                return match.group(1)
        return ""

    def _from_kdeglobals(self) -> str:
        # Stored as a Qt font description: "Noto Sans,10,-1,5,50,0,0,0,0,0"
        return self.kde_setting("General", "font").split(",")[0]


class CursorCollector(DesktopCollector):
    """Collects the cursor theme."""

    name = "cursor"
    description = "Cursor theme"
    fields = ("cursor",)

    def __init__(self, context=None):
        super().__init__(context)
        self.cursor_chain = self.chain(
            "cursor",
            [
                Strategy("index.theme", self._from_index_theme, X11_DESKTOPS),
                Strategy("gtk3", lambda: self.gtk3_setting("gtk-cursor-theme-name"), X11_DESKTOPS),
                Strategy("gtk2", lambda: self.gtk2_setting("gtk-cursor-theme-name"), X11_DESKTOPS),
                Strategy("XCURSOR_THEME", lambda: os.environ.get("XCURSOR_THEME", ""), X11_DESKTOPS),
                Strategy(
                    "gsettings",
                    lambda: self.gsettings("org.gnome.desktop.interface", "cursor-theme"),
                    X11_DESKTOPS,
                ),
            ],
            default=UNKNOWN,
        )

    def collect(self) -> dict[str, Any]:
        return {"cursor": self.cursor_chain.run()}

    def _from_index_theme(self) -> str:
        return self.read_ini_value(
            Path.home() / ".icons" / "default" / "index.theme", "Icon Theme", "Inherits"
        )


class ResolutionCollector(DesktopCollector):
    """Collects the current mode of every connected display."""

    name = "resolution"
    description = "Display resolution"
    fields = ("resolution",)

    drm_root = "/sys/class/drm"

    def __init__(self, context=None):
        super().__init__(context)
        self.resolution_chain = self.chain(
            "resolution",
            [
                Strategy("wlr-randr", self._from_wlr_randr, X11_DESKTOPS),
                Strategy("xrandr", self._from_xrandr, X11_DESKTOPS),
                Strategy("drm modes", self._from_drm, frozenset({LINUX})),
                Strategy("system_profiler", self._from_system_profiler, frozenset({DARWIN})),
                Strategy("wmic", self._from_wmic, frozenset({WINDOWS})),
            ],
            default=[],
        )

    def collect(self) -> dict[str, Any]:
        modes = self.resolution_chain.run()
        return {"resolution": ", ".join(modes) if modes else UNKNOWN}

    def _from_wlr_randr(self) -> list[str]:
        if not os.environ.get("WAYLAND_DISPLAY"):
            return []
        return parse_wlr_randr(self.command_output(["wlr-randr"]))

    def _from_xrandr(self) -> list[str]:
        if not os.environ.get("DISPLAY"):
            return []
        return parse_xrandr(self.command_output(["xrandr", "--current"]))

    def _from_drm(self) -> list[str]:
        modes = []
        for status in sorted(glob.glob(os.path.join(self.drm_root, "card*-*", "status"))):
            if self.read_first_line(status) != "connected":
                continue
            mode = self.read_first_line(os.path.join(os.path.dirname(status), "modes"))
            if mode:
                modes.append(mode)
        return modes

    def _from_system_profiler(self) -> list[str]:
        output = self.command_output(["system_profiler", "SPDisplaysDataType"])
        modes = []
        for line in output.splitlines():
            if line.strip().startswith("Resolution:"):
                match = _RESOLUTION.search(line)
                if match:
                    modes.append(f"{match.group(1)}x{match.group(2)}")
        return modes

    def _from_wmic(self) -> list[str]:
        output = self.command_output(
            [
                "wmic",
                "path",
                "Win32_VideoController",
                "get",
                "CurrentHorizontalResolution,CurrentVerticalResolution",
            ]
        )
        modes = []
        for line in output.splitlines()[1:]:
            values = line.split()
            if len(values) == 2 and all(v.isdigit() for v in values):
                modes.append(f"{values[0]}x{values[1]}")
        return modes
