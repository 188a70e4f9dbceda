"""
Process table access.

The ancestry walk and the "is X running" scans only need two questions
answered about a PID, so they go through a small inspector interface that
tests can replace with a synthetic process tree.
"""

from __future__ import annotations

import logging
import os
from typing import Protocol

import psutil

logger = logging.getLogger(__name__)


class ProcessInspector(Protocol):
    """Read-only view of the process table."""

    def parent_of(self, pid: int) -> int | None:
        """Parent PID, or None when it cannot be read."""

    def command_of(self, pid: int) -> str | None:
        """argv[0] of the process, or None when it cannot be read."""


class ProcfsInspector:
    """Reads /proc/<pid>/cmdline and /proc/<pid>/stat."""

    def __init__(self, proc_root: str = "/proc"):
        self.proc_root = proc_root

    def parent_of(self, pid: int) -> int | None:
        try:
            with open(os.path.join(self.proc_root, str(pid), "stat")) as f:
                stat = f.read()
        except OSError:
            return None
        # comm may contain spaces and parentheses; fields resume after the last ')'
        close = stat.rfind(")")
        if close == -1:
            return None
        fields = stat[close + 1 :].split()
        if len(fields) < 2:
            return None
        try:
            return int(fields[1])
        except ValueError:
            return None

    def command_of(self, pid: int) -> str | None:
        try:
            with open(os.path.join(self.proc_root, str(pid), "cmdline"), "rb") as f:
                raw = f.read()
        except OSError:
            return None
        return raw.split(b"\x00")[0].decode(errors="replace")


class PsutilInspector:
    """Process inspector for hosts without procfs."""

    def parent_of(self, pid: int) -> int | None:
        try:
            return psutil.Process(pid).ppid()
        except (psutil.Error, OSError):
            return None

    def command_of(self, pid: int) -> str | None:
        try:
            proc = psutil.Process(pid)
            cmdline = proc.cmdline()
            return cmdline[0] if cmdline else proc.name()
        except (psutil.Error, OSError):
            return None


def default_inspector() -> ProcessInspector:
    if os.path.isdir("/proc/self"):
        return ProcfsInspector()
    return PsutilInspector()


def executable_name(command: str) -> str:
    """Base name of an argv[0], tolerant of Windows separators."""
    return os.path.basename(command.replace("\\", "/"))


def running_process_names() -> set[str]:
    """Executable names of every process visible to this user."""
    names: set[str] = set()
    for proc in psutil.process_iter(["name", "cmdline"]):
        info = proc.info
        cmdline = info.get("cmdline") or []
        if cmdline:
            names.add(executable_name(cmdline[0]))
        if info.get("name"):
            names.add(info["name"])
    return names


def find_running(table: dict[str, list[str]], names: set[str] | None = None) -> str:
    """
    Return the first label in ``table`` whose executables are running.

    ``table`` maps a display label to candidate executable names; label order
    is the priority order. Returns an empty string when none is running.
    """
    if names is None:
        names = running_process_names()
    for label, executables in table.items():
        for executable in executables:
            if executable in names:
                return label
    return ""
