"""
Installed package census.

Every package manager that looks present on the host is counted in its own
worker thread; results are joined before they are summed, so a slow manager
only delays the census instead of serialising it.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable

from netfetch.collectors.base import BaseCollector
from netfetch.collectors.chain import BSD, DARWIN, LINUX, UNKNOWN, WINDOWS


@dataclass(frozen=True)
class PackageManager:
    """
    How to find and count one package manager.

    Exactly one of ``command`` or ``counter`` is set. Command output is
    split into non-empty lines, filtered through ``line_filter`` when given,
    and reduced by ``offset`` header/footer lines.
    """

    name: str
    platforms: frozenset[str]
    markers: tuple[str, ...] = ()
    executable: str | None = None
    command: tuple[str, ...] = ()
    counter: Callable[[], int] | None = None
    line_filter: Callable[[str], bool] | None = None
    offset: int = 0
    family: str = ""

    @property
    def base_family(self) -> str:
        return self.family or self.name


@dataclass(frozen=True)
class PackageCount:
    """One worker's report."""

    manager: str
    count: int = 0
    error: str | None = None
    family: str = ""


def count_lines(
    output: str,
    line_filter: Callable[[str], bool] | None = None,
    offset: int = 0,
) -> int:
    """Count non-empty output lines after filtering and removing a fixed offset."""
    lines = [line for line in output.splitlines() if line.strip()]
    if line_filter is not None:
        lines = [line for line in lines if line_filter(line)]
    return max(len(lines) - offset, 0)


def run_census(
    managers: list[PackageManager],
    worker: Callable[[PackageManager], PackageCount],
    timeout: float | None = None,
) -> list[PackageCount]:
    """
    Count every manager concurrently and wait for all of them.

    Reports come back in ``managers`` order. A worker still running when
    ``timeout`` expires, or one that raised, is reported with an error.
    """
    if not managers:
        return []

    executor = ThreadPoolExecutor(
        max_workers=len(managers), thread_name_prefix="netfetch-census"
    )
    try:
        futures = [executor.submit(worker, manager) for manager in managers]
        wait(futures, timeout=timeout)

        reports = []
        for manager, future in zip(managers, futures):
            family = manager.base_family
            if not future.done():
                future.cancel()
                reports.append(PackageCount(manager.name, error="timed out", family=family))
                continue
            exc = future.exception()
            if exc is not None:
                reports.append(PackageCount(manager.name, error=str(exc), family=family))
                continue
            report = future.result()
            if not report.family:
                report = PackageCount(report.manager, report.count, report.error, family)
            reports.append(report)
        return reports
    finally:
        # Do not block on hung workers; their late results are discarded.
        executor.shutdown(wait=False)


def summarize(reports: Iterable[PackageCount]) -> str:
    """
    Merge census reports into the published packages string.

    Reports of the same base family are merged into one entry. Errored and
    zero-count reports add nothing to the detail list.
    """
    totals: dict[str, int] = {}
    for report in reports:
        if report.error or report.count <= 0:
            continue
        family = report.family or report.manager
        totals[family] = totals.get(family, 0) + report.count

    total = sum(totals.values())
    if total == 0:
        return UNKNOWN
    details = ", ".join(f"{count} ({family})" for family, count in totals.items())
    return f"{total} ({details})"


class PackagesCollector(BaseCollector):
    """Counts installed packages across all detected package managers."""

    name = "packages"
    description = "Installed package counts per package manager"
    fields = ("packages",)

    def __init__(self, context=None):
        super().__init__(context)
        self.managers = [m for m in self._known_managers() if self.platform in m.platforms]

    def collect(self) -> dict[str, Any]:
        candidates = self.detect_managers()
        self.logger.debug(f"Package managers present: {[m.name for m in candidates]}")
        reports = run_census(candidates, self.count, timeout=self.config.census_timeout)
        for report in reports:
            if report.error:
                self.logger.debug(f"{report.manager}: {report.error}")
        return {"packages": summarize(reports)}

    def detect_managers(self) -> list[PackageManager]:
        """Cheap presence checks; managers failing them are never invoked."""
        present = []
        for manager in self.managers:
            if manager.markers and any(self.path_exists(p) for p in manager.markers):
                present.append(manager)
            elif manager.executable and self.which(manager.executable):
                present.append(manager)
        return present

    def count(self, manager: PackageManager) -> PackageCount:
        """Worker body: count one manager's installed packages."""
        if manager.counter is not None:
            return PackageCount(manager.name, manager.counter(), family=manager.base_family)

        stdout, stderr, rc = self.run_command(list(manager.command))
        if rc != 0:
            return PackageCount(
                manager.name,
                error=stderr.strip() or f"exit status {rc}",
                family=manager.base_family,
            )
        return PackageCount(
            manager.name,
            count_lines(stdout, manager.line_filter, manager.offset),
            family=manager.base_family,
        )

    def _known_managers(self) -> list[PackageManager]:
        home = Path.home()
        linux = frozenset({LINUX})
        return [
            PackageManager(
                "dpkg", linux, markers=("/var/lib/dpkg/status",), counter=self._count_dpkg
            ),
            PackageManager(
                "pacman", linux, markers=("/var/lib/pacman/local",), counter=self._count_pacman
            ),
            PackageManager(
                "rpm",
                linux,
                markers=("/var/lib/rpm",),
                command=("rpm", "-qa"),
                line_filter=lambda line: not line.startswith("gpg-pubkey"),
            ),
            PackageManager(
                "emerge", linux, markers=("/var/db/pkg",), counter=self._count_emerge
            ),
            PackageManager(
                "xbps", linux, executable="xbps-query", command=("xbps-query", "-l")
            ),
            PackageManager(
                "apk", linux, markers=("/lib/apk/db/installed",), counter=self._count_apk
            ),
            PackageManager(
                "opkg", linux, executable="opkg", command=("opkg", "list-installed")
            ),
            PackageManager(
                "flatpak",
                linux,
                markers=("/var/lib/flatpak/app", str(home / ".local/share/flatpak/app")),
                counter=self._count_flatpak,
            ),
            PackageManager(
                "snap",
                linux,
                executable="snap",
                command=("snap", "list"),
                offset=1,
            ),
            PackageManager(
                "nix",
                frozenset({LINUX, DARWIN}),
                markers=("/nix/var/nix/profiles",),
                counter=self._count_nix,
            ),
            PackageManager(
                "brew-formula",
                frozenset({DARWIN, LINUX}),
                markers=(
                    "/opt/homebrew/Cellar",
                    "/usr/local/Cellar",
                    "/home/linuxbrew/.linuxbrew/Cellar",
                ),
                counter=lambda: self._count_first_dir(
                    "/opt/homebrew/Cellar",
                    "/usr/local/Cellar",
                    "/home/linuxbrew/.linuxbrew/Cellar",
                ),
                family="brew",
            ),
            PackageManager(
                "brew-cask",
                frozenset({DARWIN}),
                markers=("/opt/homebrew/Caskroom", "/usr/local/Caskroom"),
                counter=lambda: self._count_first_dir(
                    "/opt/homebrew/Caskroom", "/usr/local/Caskroom"
                ),
                family="brew",
            ),
            PackageManager(
                "port",
                frozenset({DARWIN}),
                executable="port",
                command=("port", "installed"),
                offset=1,
            ),
            PackageManager(
                "pkg",
                frozenset({BSD}),
                executable="pkg",
                command=("pkg", "info"),
            ),
            PackageManager(
                "scoop",
                frozenset({WINDOWS}),
                markers=(str(home / "scoop" / "apps"),),
                counter=lambda: self._count_dir(str(home / "scoop" / "apps"), exclude={"scoop"}),
            ),
            PackageManager(
                "choco",
                frozenset({WINDOWS}),
                markers=(os.path.join(os.environ.get("ChocolateyInstall", r"C:\ProgramData\chocolatey"), "lib"),),
                counter=lambda: self._count_dir(
                    os.path.join(
                        os.environ.get("ChocolateyInstall", r"C:\ProgramData\chocolatey"), "lib"
                    )
                ),
            ),
        ]

    def _count_dpkg(self) -> int:
        count = 0
        installed = False
        for line in self.read_file("/var/lib/dpkg/status").splitlines() + [""]:
            if line.startswith("Package:"):
                installed = False
            elif line.startswith("Status:"):
                installed = "install ok installed" in line
            elif not line.strip():
                if installed:
                    count += 1
                installed = False
        return count

    def _count_pacman(self) -> int:
        return self._count_dir("/var/lib/pacman/local", exclude={"ALPM_DB_VERSION"})

    def _count_emerge(self) -> int:
        count = 0
        try:
            categories = list(os.scandir("/var/db/pkg"))
        except OSError:
            return 0
        for category in categories:
            if category.is_dir() and not category.name.startswith("."):
                count += self._count_dir(category.path)
        return count

    def _count_apk(self) -> int:
        return sum(
            1 for line in self.read_file_lines("/lib/apk/db/installed") if line.startswith("P:")
        )

    def _count_flatpak(self) -> int:
        return self._count_dir("/var/lib/flatpak/app") + self._count_dir(
            str(Path.home() / ".local/share/flatpak/app")
        )

    def _count_nix(self) -> int:
        count = 0
        for profile in (
            Path("/nix/var/nix/profiles/system"),
            Path.home() / ".nix-profile",
        ):
            manifest = profile / "manifest.nix"
            if not manifest.exists():
                manifest = profile / "manifest.json"
            for line in self.read_file_lines(manifest):
                if "name =" in line or '"name":' in line:
                    count += 1
        return count

    def _count_first_dir(self, *paths: str) -> int:
        for path in paths:
            if os.path.isdir(path):
                return self._count_dir(path)
        return 0

    @staticmethod
    def _count_dir(path: str, exclude: set[str] | None = None) -> int:
        exclude = exclude or set()
        try:
            with os.scandir(path) as entries:
                return sum(
                    1
                    for entry in entries
                    if entry.is_dir()
                    and not entry.name.startswith(".")
                    and entry.name not in exclude
                )
        except OSError:
            return 0
