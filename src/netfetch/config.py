"""
Configuration management for Netfetch.

Supports configuration via YAML files, environment variables, and programmatic access.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATHS = [
    Path("/etc/netfetch/config.yaml"),
    Path.home() / ".config" / "netfetch" / "config.yaml",
    Path("netfetch.yaml"),
]

DEFAULT_MODULES = [
    "os",
    "host",
    "user",
    "kernel",
    "uptime",
    "packages",
    "shell",
    "resolution",
    "de",
    "wm",
    "theme",
    "icons",
    "font",
    "cursor",
    "terminal",
    "cpu",
    "gpu",
    "memory",
    "disk",
    "network",
    "battery",
    "power_adapter",
    "locale",
    "host_info",
    "bios",
    "processes",
    "cpu_usage",
    "wifi",
    "datetime",
    "users",
    "brightness",
    "login_manager",
]

DEFAULT_PUBLIC_IP_SERVICES = [
    "https://api.ipify.org",
    "https://ifconfig.me/ip",
    "https://icanhazip.com",
]

# Nested YAML keys whose flattened name differs from the dataclass field.
_SECTION_ALIASES = {
    ("collection", "modules"): "active_modules",
    ("collection", "disabled"): "disabled_modules",
    ("collection", "interval"): "refresh_interval",
    ("logging", "level"): "log_level",
    ("logging", "file"): "log_file",
    ("desktop", "config_home"): "config_home",
    ("public_ip", "timeout"): "public_ip_timeout",
    ("public_ip", "services"): "public_ip_services",
}


@dataclass
class Config:
    """
    Configuration container for Netfetch.

    Priority (highest to lowest):
    1. Programmatic values passed to __init__
    2. Environment variables (prefixed with NETFETCH_)
    3. Config file values
    4. Default values
    """

    # Collection settings
    active_modules: list[str] = field(default_factory=lambda: list(DEFAULT_MODULES))
    disabled_modules: list[str] = field(default_factory=list)
    refresh_interval: int = 300
    command_timeout: int = 10
    census_timeout: int = 30

    # Public IP probe
    public_ip_timeout: float = 3.0
    public_ip_services: list[str] = field(
        default_factory=lambda: list(DEFAULT_PUBLIC_IP_SERVICES)
    )

    # Desktop configuration directory override (theme and icons modules)
    config_home: str | None = None

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_file(cls, path: str | Path) -> Config:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create config from a dictionary."""
        # Flatten nested structure if present
        flat = {}
        for key, value in data.items():
            if isinstance(value, dict):
                for subkey, subvalue in value.items():
                    flat[_SECTION_ALIASES.get((key, subkey), subkey)] = subvalue
            else:
                flat[key] = value

        # Filter to only known fields
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in flat.items() if k in known_fields}

        return cls(**filtered)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> Config:
        """
        Load configuration with full resolution order.

        Args:
            config_path: Explicit path to config file. If None, searches
                        default locations.

        Returns:
            Fully resolved Config instance.
        """
        base_config: dict[str, Any] = {}

        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    base_config = yaml.safe_load(f) or {}
        else:
            for path in DEFAULT_CONFIG_PATHS:
                if path.exists():
                    with open(path) as f:
                        base_config = yaml.safe_load(f) or {}
                    break

        config = cls.from_dict(base_config) if base_config else cls()

        config._apply_env_overrides()

        return config

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        env_mappings = {
            "NETFETCH_MODULES": "active_modules",
            "NETFETCH_DISABLED_MODULES": "disabled_modules",
            "NETFETCH_REFRESH_INTERVAL": "refresh_interval",
            "NETFETCH_COMMAND_TIMEOUT": "command_timeout",
            "NETFETCH_CENSUS_TIMEOUT": "census_timeout",
            "NETFETCH_PUBLIC_IP_TIMEOUT": "public_ip_timeout",
            "NETFETCH_CONFIG_HOME": "config_home",
            "NETFETCH_LOG_LEVEL": "log_level",
            "NETFETCH_LOG_FILE": "log_file",
        }

        for env_var, attr in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                # Type coercion
                current = getattr(self, attr)
                if isinstance(current, bool):
                    setattr(self, attr, value.lower() in ("true", "1", "yes"))
                elif isinstance(current, int):
                    setattr(self, attr, int(value))
                elif isinstance(current, float):
                    setattr(self, attr, float(value))
                elif isinstance(current, list):
                    setattr(self, attr, [v.strip() for v in value.split(",") if v.strip()])
                else:
                    setattr(self, attr, value)

    def resolved_modules(self) -> list[str]:
        """Active modules minus disabled ones, first occurrence wins.

        An empty module list means the default set.
        """
        seen: set[str] = set()
        modules = []
        for name in self.active_modules or DEFAULT_MODULES:
            if name in seen or name in self.disabled_modules:
                continue
            seen.add(name)
            modules.append(name)
        return modules

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "collection": {
                "modules": self.active_modules,
                "disabled": self.disabled_modules,
                "interval": self.refresh_interval,
                "command_timeout": self.command_timeout,
                "census_timeout": self.census_timeout,
            },
            "public_ip": {
                "timeout": self.public_ip_timeout,
                "services": self.public_ip_services,
            },
            "desktop": {
                "config_home": self.config_home,
            },
            "logging": {
                "level": self.log_level,
                "file": self.log_file,
            },
        }

    def save(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
