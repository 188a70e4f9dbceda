"""
Base collector class that all collectors inherit from.
"""

from __future__ import annotations

import configparser
import logging
import os
import shutil
import subprocess
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterable

from netfetch.collectors.chain import FallbackChain, Strategy, current_platform
from netfetch.config import Config

logger = logging.getLogger(__name__)


class HostContext:
    """
    State shared by every collector of one aggregator.

    Holds the configuration, the platform key resolved once at startup,
    and a memo of once-computed values (for example the distribution
    identity) so they are not kept in module-level globals.
    """

    def __init__(self, config: Config | None = None, platform: str | None = None):
        self.config = config or Config()
        self.platform = platform or current_platform()
        self._memo: dict[str, Any] = {}
        self._memo_lock = threading.Lock()

    def memoize(self, key: str, factory: Callable[[], Any]) -> Any:
        """Compute ``factory()`` on first access and return the stored value after."""
        with self._memo_lock:
            if key not in self._memo:
                self._memo[key] = factory()
            return self._memo[key]

    @property
    def config_home(self) -> Path:
        """Desktop configuration directory, honouring the configured override."""
        if self.config.config_home:
            return Path(self.config.config_home).expanduser()
        xdg = os.environ.get("XDG_CONFIG_HOME")
        if xdg:
            return Path(xdg)
        return Path.home() / ".config"


class BaseCollector(ABC):
    """
    Abstract base class for all collection modules.

    Subclasses implement `collect` and return a mapping of snapshot field
    names to fully built values. `fields` lists every snapshot field the
    module publishes; `dynamic` marks modules re-run on every refresh.
    """

    name: str = "base"
    description: str = "Base collector"
    dynamic: bool = False
    fields: tuple[str, ...] = ()

    def __init__(self, context: HostContext | None = None):
        self.context = context or HostContext()
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    @abstractmethod
    def collect(self) -> dict[str, Any]:
        """
        Collect and return data.

        Returns:
            Dictionary keyed by snapshot field name. Must not raise for
            missing or unparsable resources; unknown facts carry their
            sentinel value instead.
        """
        pass

    @property
    def platform(self) -> str:
        return self.context.platform

    @property
    def config(self) -> Config:
        return self.context.config

    def chain(
        self,
        fact: str,
        strategies: Iterable[Strategy],
        default: Any = None,
        **kwargs: Any,
    ) -> FallbackChain:
        """Build a fallback chain already narrowed to this host's platform."""
        return FallbackChain(fact, strategies, default=default, **kwargs).for_platform(
            self.platform
        )

    def run_command(
        self,
        cmd: list[str],
        timeout: float | None = None,
        check: bool = False,
    ) -> tuple[str, str, int]:
        """
        Run a command and return output.

        Args:
            cmd: Command and arguments as list.
            timeout: Timeout in seconds. Defaults to the configured command timeout.
            check: If True, raise on non-zero exit.

        Returns:
            Tuple of (stdout, stderr, returncode).
        """
        if timeout is None:
            timeout = self.config.command_timeout
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=check,
            )
            return result.stdout, result.stderr, result.returncode
        except subprocess.TimeoutExpired:
            self.logger.warning(f"Command timed out: {' '.join(cmd)}")
            return "", "Command timed out", -1
        except FileNotFoundError:
            self.logger.debug(f"Command not found: {cmd[0]}")
            return "", f"Command not found: {cmd[0]}", -1
        except subprocess.CalledProcessError as e:
            return e.stdout or "", e.stderr or "", e.returncode
        except OSError as e:
            self.logger.debug(f"Could not run {cmd[0]}: {e}")
            return "", str(e), -1

    def command_output(self, cmd: list[str], timeout: float | None = None) -> str:
        """Return stdout of a successful command, or an empty string."""
        stdout, _, rc = self.run_command(cmd, timeout=timeout)
        return stdout if rc == 0 else ""

    def which(self, command: str) -> str | None:
        """Locate an executable on PATH."""
        return shutil.which(command)

    def read_file(self, path: str | Path, default: str = "") -> str:
        """
        Read a file and return its contents.

        Args:
            path: Path to the file.
            default: Default value if file cannot be read.

        Returns:
            File contents or default value.
        """
        try:
            with open(path) as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            self.logger.debug(f"Could not read {path}: {e}")
            return default

    def read_file_lines(self, path: str | Path) -> list[str]:
        """Read a file and return lines as list."""
        content = self.read_file(path)
        if content:
            return content.strip().split("\n")
        return []

    def read_first_line(self, path: str | Path) -> str:
        """Read a file and return its first line, stripped."""
        lines = self.read_file_lines(path)
        return lines[0].strip() if lines else ""

    def path_exists(self, path: str | Path) -> bool:
        return os.path.exists(path)

    def parse_key_value_file(
        self,
        path: str | Path,
        separator: str = "=",
        strip_quotes: bool = True,
    ) -> dict[str, str]:
        """
        Parse a key=value style file.

        Args:
            path: Path to the file.
            separator: Key-value separator character.
            strip_quotes: Whether to strip surrounding quotes from values.

        Returns:
            Dictionary of key-value pairs.
        """
        return self.parse_key_value_text(
            self.read_file(path), separator=separator, strip_quotes=strip_quotes
        )

    @staticmethod
    def parse_key_value_text(
        text: str,
        separator: str = "=",
        strip_quotes: bool = True,
    ) -> dict[str, str]:
        """Parse key=value lines from already loaded text."""
        result = {}
        for line in text.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if separator in line:
                key, _, value = line.partition(separator)
                key = key.strip()
                value = value.strip()
                if strip_quotes and len(value) >= 2:
                    if (value.startswith('"') and value.endswith('"')) or (
                        value.startswith("'") and value.endswith("'")
                    ):
                        value = value[1:-1]
                result[key] = value
        return result

    def read_ini_value(self, path: str | Path, section: str, key: str) -> str:
        """Return one value from an INI style file, or an empty string."""
        content = self.read_file(path)
        if not content:
            return ""
        parser = configparser.ConfigParser(interpolation=None, strict=False)
        try:
            parser.read_string(content)
        except configparser.Error as e:
            self.logger.debug(f"Could not parse {path}: {e}")
            return ""
        return parser.get(section, key, fallback="").strip().strip('"')
