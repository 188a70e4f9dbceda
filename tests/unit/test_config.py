"""
Unit tests for Config class.

Tests configuration loading, defaults, environment variable overrides,
module resolution and saving.
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
import yaml

from netfetch.config import DEFAULT_MODULES, Config


class TestConfigDefaults:
    """Test Config class initialization with default values."""

    def test_default_values(self):
        """Test that all default values are set correctly."""
        config = Config()
        assert config.refresh_interval == 300
        assert config.command_timeout == 10
        assert config.census_timeout == 30
        assert config.public_ip_timeout == 3.0
        assert config.log_level == "INFO"
        assert config.log_file is None
        assert config.config_home is None

    def test_public_ip_not_active_by_default(self):
        """Test that the network-bound public IP module is opt-in."""
        assert "public_ip" not in Config().active_modules
        assert "cpu" in Config().active_modules

    def test_default_lists_are_independent(self):
        """Test that instances do not share mutable defaults."""
        first = Config()
        first.active_modules.append("public_ip")
        assert "public_ip" not in Config().active_modules


class TestConfigFromDict:
    """Test Config creation from dictionary."""

    def test_from_dict_flat_structure(self):
        """Test creating Config from flat dictionary."""
        config = Config.from_dict({"refresh_interval": 60, "log_level": "DEBUG"})
        assert config.refresh_interval == 60
        assert config.log_level == "DEBUG"

    def test_from_dict_nested_structure(self):
        """Test creating Config from nested dictionary (flattening)."""
        config = Config.from_dict(
            {
                "collection": {"modules": ["cpu", "memory"], "interval": 30, "census_timeout": 5},
                "logging": {"level": "WARNING", "file": "/tmp/netfetch.log"},
                "desktop": {"config_home": "/tmp/cfg"},
                "public_ip": {"timeout": 1.5, "services": ["https://ip.example.com"]},
            }
        )
        assert config.active_modules == ["cpu", "memory"]
        assert config.refresh_interval == 30
        assert config.census_timeout == 5
        assert config.log_level == "WARNING"
        assert config.log_file == "/tmp/netfetch.log"
        assert config.config_home == "/tmp/cfg"
        assert config.public_ip_timeout == 1.5
        assert config.public_ip_services == ["https://ip.example.com"]

    def test_from_dict_unknown_fields_filtered(self):
        """Test that unknown fields are filtered out."""
        config = Config.from_dict({"log_level": "DEBUG", "unknown_field": "ignored"})
        assert config.log_level == "DEBUG"
        assert not hasattr(config, "unknown_field")


class TestConfigFromFile:
    """Test Config creation from YAML file."""

    def test_from_file_valid_yaml(self, tmp_path):
        """Test loading Config from valid YAML file."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"collection": {"modules": ["os", "kernel"]}}))

        config = Config.from_file(path)
        assert config.active_modules == ["os", "kernel"]

    def test_from_file_missing_file(self):
        """Test that loading from missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            Config.from_file("/nonexistent/path/config.yaml")

    def test_from_file_invalid_yaml(self, tmp_path):
        """Test loading from invalid YAML file raises error."""
        path = tmp_path / "config.yaml"
        path.write_text("invalid: yaml: [")

        with pytest.raises(yaml.YAMLError):
            Config.from_file(path)

    def test_from_file_empty(self, tmp_path):
        """Test that an empty file gives defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert Config.from_file(path) == Config()


class TestConfigEnvironmentOverrides:
    """Test environment variable overrides."""

    def test_env_override_types(self):
        """Test coercion of environment values to the field types."""
        config = Config()
        with patch.dict(
            os.environ,
            {
                "NETFETCH_MODULES": "cpu, memory,,disk",
                "NETFETCH_REFRESH_INTERVAL": "15",
                "NETFETCH_PUBLIC_IP_TIMEOUT": "0.5",
                "NETFETCH_CONFIG_HOME": "/srv/cfg",
                "NETFETCH_LOG_LEVEL": "DEBUG",
            },
        ):
            config._apply_env_overrides()

        assert config.active_modules == ["cpu", "memory", "disk"]
        assert config.refresh_interval == 15
        assert config.public_ip_timeout == 0.5
        assert config.config_home == "/srv/cfg"
        assert config.log_level == "DEBUG"

    def test_env_overrides_file(self, tmp_path):
        """Test that environment variables take precedence over the file."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"logging": {"level": "ERROR"}}))

        with patch.dict(os.environ, {"NETFETCH_LOG_LEVEL": "DEBUG"}):
            config = Config.load(path)

        assert config.log_level == "DEBUG"


class TestConfigLoad:
    """Test Config.load resolution."""

    def test_load_explicit_path(self, tmp_path):
        """Test loading from an explicit path."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"collection": {"command_timeout": 3}}))

        with patch.dict(os.environ, {}, clear=True):
            config = Config.load(path)

        assert config.command_timeout == 3

    def test_load_missing_explicit_path_uses_defaults(self, tmp_path):
        """Test that a missing explicit path falls back to defaults."""
        with patch.dict(os.environ, {}, clear=True):
            config = Config.load(tmp_path / "missing.yaml")

        assert config == Config()

    def test_load_searches_default_paths(self, tmp_path):
        """Test that the first existing default path is used."""
        first = tmp_path / "first.yaml"
        second = tmp_path / "second.yaml"
        second.write_text(yaml.dump({"logging": {"level": "ERROR"}}))

        with patch("netfetch.config.DEFAULT_CONFIG_PATHS", [first, second]):
            with patch.dict(os.environ, {}, clear=True):
                config = Config.load()

        assert config.log_level == "ERROR"


class TestResolvedModules:
    """Test Config.resolved_modules."""

    def test_disabled_removed_and_order_kept(self):
        """Test that disabled modules are removed and order preserved."""
        config = Config(
            active_modules=["memory", "cpu", "disk", "cpu"],
            disabled_modules=["disk"],
        )
        assert config.resolved_modules() == ["memory", "cpu"]

    def test_empty_means_defaults(self):
        """Test that an empty module list resolves to the default set."""
        config = Config(active_modules=[], disabled_modules=["wifi"])
        resolved = config.resolved_modules()

        assert "wifi" not in resolved
        assert resolved == [m for m in DEFAULT_MODULES if m != "wifi"]


class TestConfigSave:
    """Test Config.save and to_dict."""

    def test_save_round_trip(self, tmp_path):
        """Test that a saved config loads back equal."""
        config = Config(
            active_modules=["os", "public_ip"],
            refresh_interval=42,
            config_home="/tmp/cfg",
            log_file="/tmp/nf.log",
        )
        path = tmp_path / "nested" / "config.yaml"
        config.save(path)

        assert path.exists()
        assert Config.from_file(path) == config

    def test_to_dict_sections(self):
        """Test the nested layout of to_dict."""
        data = Config().to_dict()
        assert set(data) == {"collection", "public_ip", "desktop", "logging"}
        assert data["collection"]["interval"] == 300
