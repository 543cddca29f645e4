"""
Test Configuration Module
========================

Unit tests for settings loading and validation.
"""

import pytest
from pathlib import Path

# Add parent directory to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import (
    Config, EngineConfig, LoggingConfig, load_config, save_config
)
from core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Point the config directory at an empty temp dir."""
    monkeypatch.setenv("REGEXP_HANDLER_CONFIG_DIR", str(tmp_path))
    for name in ("REGEXP_HANDLER_RULES_FILE", "REGEXP_HANDLER_LOG_LEVEL",
                 "REGEXP_HANDLER_MAX_CALL_DEPTH", "REGEXP_HANDLER_DEBUG"):
        monkeypatch.delenv(name, raising=False)


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_default_values(self):
        """Test default configuration values."""
        config = EngineConfig()
        assert config.rules_file == "conf/.jms-regexp.conf"
        assert config.default_priority == 100
        assert config.reload_command == "regexp reload"

    def test_validation_valid(self):
        """Test valid configuration passes validation."""
        EngineConfig().validate()  # Should not raise

    def test_validation_invalid_chain_length(self):
        """Test invalid max_chain_length raises error."""
        with pytest.raises(ConfigError):
            EngineConfig(max_chain_length=0).validate()

    def test_validation_invalid_call_depth(self):
        """Test invalid max_call_depth raises error."""
        with pytest.raises(ConfigError):
            EngineConfig(max_call_depth=0).validate()


class TestLoggingConfig:
    """Tests for LoggingConfig."""

    def test_invalid_level(self):
        """Test an unknown log level raises error."""
        with pytest.raises(ConfigError):
            LoggingConfig(level="LOUD").validate()


class TestConfig:
    """Tests for main Config class."""

    def test_default_values(self):
        """Test default configuration values."""
        config = Config()
        assert config.app_name == "Regexp Handler"
        assert config.engine is not None
        assert config.logging is not None

    def test_to_dict(self):
        """Test conversion to dictionary."""
        d = Config().to_dict()
        assert "app_name" in d
        assert d["engine"]["max_call_depth"] == 64
        assert d["logging"]["level"] == "INFO"


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self, tmp_path):
        """Test loading with no settings file."""
        config = load_config()
        assert config.config_dir == str(tmp_path)
        assert config.engine.max_chain_length == 1000

    def test_yaml_values(self, tmp_path):
        """Test values from a YAML file."""
        path = tmp_path / "settings.yaml"
        path.write_text(
            "debug: true\n"
            "engine:\n"
            "  rules_file: /etc/regexp.conf\n"
            "  max_call_depth: 8\n"
            "  unknown_key: 1\n"
            "logging:\n"
            "  level: DEBUG\n",
            encoding="utf-8"
        )
        config = load_config(str(path))
        assert config.debug is True
        assert config.engine.rules_file == "/etc/regexp.conf"
        assert config.engine.max_call_depth == 8
        assert config.logging.level == "DEBUG"

    def test_env_overrides(self, monkeypatch):
        """Test environment variables override defaults."""
        monkeypatch.setenv("REGEXP_HANDLER_RULES_FILE", "/tmp/rules.conf")
        monkeypatch.setenv("REGEXP_HANDLER_MAX_CALL_DEPTH", "3")
        monkeypatch.setenv("REGEXP_HANDLER_DEBUG", "yes")
        config = load_config()
        assert config.engine.rules_file == "/tmp/rules.conf"
        assert config.engine.max_call_depth == 3
        assert config.debug is True

    def test_invalid_env_value(self, monkeypatch):
        """Test a non-numeric override raises error."""
        monkeypatch.setenv("REGEXP_HANDLER_MAX_CALL_DEPTH", "deep")
        with pytest.raises(ConfigError):
            load_config()

    def test_missing_explicit_file(self, tmp_path):
        """Test an explicit path that does not exist."""
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        """Test a file that is not valid YAML."""
        path = tmp_path / "bad.yaml"
        path.write_text("engine: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_save_and_load(self, tmp_path):
        """Test saved settings load back."""
        config = Config()
        config.engine.max_chain_length = 50
        path = tmp_path / "out.yaml"
        save_config(config, str(path))

        assert load_config(str(path)).engine.max_chain_length == 50
