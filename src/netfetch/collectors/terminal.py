"""
Terminal emulator detection.

Environment markers are checked first; when none is set the parent process
chain is walked to find the hosting terminal or IDE.
"""

from __future__ import annotations

import os
from typing import Any

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import BSD, DARWIN, LINUX, UNIX, UNKNOWN, WINDOWS, Strategy
from netfetch.collectors.process import ProcessInspector, default_inspector, executable_name

MAX_ANCESTRY_DEPTH = 20

# Environment variables checked in this order; a value of None means
# "report the variable's own value".
ENV_MARKERS: list[tuple[str, str | None]] = [
    ("TERM_PROGRAM", None),
    ("TERMINAL_EMULATOR", None),
    ("KITTY_PID", "kitty"),
    ("ALACRITTY_SOCKET", "Alacritty"),
    ("WEZTERM_EXECUTABLE", "WezTerm"),
    ("WT_SESSION", "Windows Terminal"),
    ("KONSOLE_VERSION", "Konsole"),
    ("GNOME_TERMINAL_SERVICE", "GNOME Terminal"),
    ("TERMINATOR_UUID", "Terminator"),
]

DARWIN_TERM_PROGRAMS = {
    "Apple_Terminal": "Terminal.app",
    "iTerm.app": "iTerm2",
    "WezTerm": "WezTerm",
    "Alacritty": "Alacritty",
    "kitty": "kitty",
}

# Processes that sit between a shell and its terminal without being one.
TRANSPARENT_PROCESSES = frozenset(
    {
        "login",
        "init",
        "systemd",
        "sshd",
        "ssh",
        "tmux",
        "tmux: server",
        "screen",
        "zellij",
        "sh",
        "bash",
        "zsh",
        "fish",
        "dash",
        "ksh",
        "tcsh",
        "csh",
        "nu",
        "su",
        "sudo",
        "doas",
    }
)

TERMINAL_PROCESSES = {
    "alacritty": "Alacritty",
    "kitty": "kitty",
    "wezterm": "WezTerm",
    "wezterm-gui": "WezTerm",
    "gnome-terminal": "GNOME Terminal",
    "gnome-terminal-server": "GNOME Terminal",
    "kgx": "GNOME Console",
    "konsole": "Konsole",
    "xfce4-terminal": "XFCE Terminal",
    "xterm": "xterm",
    "urxvt": "urxvt",
    "rxvt": "rxvt",
    "terminator": "Terminator",
    "tilix": "Tilix",
    "st": "st",
    "cool-retro-term": "cool-retro-term",
    "lxterminal": "LXTerminal",
    "mate-terminal": "MATE Terminal",
    "terminology": "Terminology",
    "hyper": "Hyper",
    "Hyper": "Hyper",
    "foot": "foot",
    "footclient": "foot",
    "ghostty": "Ghostty",
    "qterminal": "QTerminal",
    "yakuake": "Yakuake",
    "guake": "Guake",
    "tilda": "Tilda",
    "contour": "Contour",
    "rio": "Rio",
}

IDE_PROCESSES = {
    "goland": "GoLand",
    "idea": "IntelliJ IDEA",
    "pycharm": "PyCharm",
    "webstorm": "WebStorm",
    "clion": "CLion",
    "rider": "Rider",
    "code": "VS Code",
    "code-oss": "VS Code",
    "codium": "VSCodium",
    "cursor": "Cursor",
    "zed": "Zed",
}


def classify_ancestry(
    inspector: ProcessInspector,
    start_pid: int,
    max_depth: int = MAX_ANCESTRY_DEPTH,
    terminals: dict[str, str] | None = None,
    ides: dict[str, str] | None = None,
    transparent: frozenset[str] = TRANSPARENT_PROCESSES,
) -> str:
    """
    Identify the terminal or IDE hosting ``start_pid``'s descendants.

    Walks parent links from ``start_pid`` for at most ``max_depth`` steps,
    stopping at PID 1 or on the first unreadable process. An IDE match wins
    immediately. A terminal match is remembered while the walk keeps looking
    for an enclosing IDE, since IDE-embedded terminals sit below the IDE.

    Returns:
        The IDE label, else the terminal label, else "Unknown".
    """
    terminals = TERMINAL_PROCESSES if terminals is None else terminals
    ides = IDE_PROCESSES if ides is None else ides

    terminal = ""
    pid = start_pid
    for _ in range(max_depth):
        if pid <= 1:
            break
        command = inspector.command_of(pid)
        if command is None:
            break
        name = executable_name(command)

        if name in ides:
            return ides[name]
        if not terminal and name not in transparent and name in terminals:
            terminal = terminals[name]

        parent = inspector.parent_of(pid)
        if parent is None:
            break
        pid = parent

    return terminal or UNKNOWN


class TerminalCollector(BaseCollector):
    """Detects the terminal emulator this process runs in."""

    name = "terminal"
    description = "Terminal emulator or IDE hosting the session"
    fields = ("terminal",)

    def __init__(self, context=None, inspector: ProcessInspector | None = None):
        super().__init__(context)
        self.inspector = inspector or default_inspector()
        self.terminal_chain = self.chain(
            "terminal",
            [
                Strategy("windows environment", self._from_windows_env, frozenset({WINDOWS})),
                Strategy("TERM_PROGRAM", self._from_darwin_env, frozenset({DARWIN})),
                Strategy("environment markers", self._from_env, frozenset({LINUX, BSD})),
                Strategy("process ancestry", self._from_ancestry, UNIX),
                Strategy("controlling tty", self._from_tty, frozenset({LINUX, BSD})),
                Strategy("darwin default", lambda: "Terminal.app", frozenset({DARWIN})),
                Strategy("windows default", lambda: "cmd", frozenset({WINDOWS})),
            ],
            default=UNKNOWN,
        )

    def collect(self) -> dict[str, Any]:
        return {"terminal": self.terminal_chain.run()}

    def _from_env(self) -> str:
        for variable, label in ENV_MARKERS:
            value = os.environ.get(variable)
            if value:
                return label or value
        return ""

    def _from_darwin_env(self) -> str:
        value = os.environ.get("TERM_PROGRAM", "")
        return DARWIN_TERM_PROGRAMS.get(value, value)

    def _from_windows_env(self) -> str:
        if os.environ.get("WT_SESSION"):
            return "Windows Terminal"
        if os.environ.get("ConEmuPID"):
            return "ConEmu"
        if os.environ.get("ALACRITTY_SOCKET"):
            return "Alacritty"
        return ""

    def _from_ancestry(self) -> str:
        return classify_ancestry(self.inspector, os.getppid())

    def _from_tty(self) -> str:
        tty = os.readlink("/proc/self/fd/0")
        return tty if tty.startswith("/dev/") else ""
