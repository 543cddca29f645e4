"""
Configuration Management - YAML-based settings with environment overrides
=========================================================================

This module handles the application settings (not the rules file itself):
- Loading from YAML files
- Environment variable overrides
- Default values
- Configuration validation
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field, asdict

from .exceptions import ConfigError


@dataclass
class EngineConfig:
    """
    Rules engine configuration.

    Where the rules file lives, the guards applied while evaluating a
    message, and the host message names used for the reload/halt hooks.
    """
    # Rules file
    rules_file: str = "conf/.jms-regexp.conf"
    default_priority: int = 100

    # Evaluation guards
    max_chain_length: int = 1000
    max_call_depth: int = 64

    # Host hooks
    command_message: str = "engine.command"
    halt_message: str = "engine.halt"
    command_priority: int = 100
    reload_command: str = "regexp reload"

    def validate(self) -> None:
        """Validate engine configuration parameters."""
        if not self.rules_file:
            raise ConfigError("rules_file must not be empty")

        if self.max_chain_length < 1:
            raise ConfigError(
                f"max_chain_length must be at least 1, got {self.max_chain_length}"
            )

        if self.max_call_depth < 1:
            raise ConfigError(
                f"max_call_depth must be at least 1, got {self.max_call_depth}"
            )

        if self.default_priority < 0:
            raise ConfigError("default_priority cannot be negative")


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Mirrors the arguments of core.logging.setup_logging.
    """
    level: str = "INFO"
    log_dir: str = ""
    json_format: bool = False
    console_output: bool = True

    def validate(self) -> None:
        """Validate logging configuration."""
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Invalid log level: {self.level}")


@dataclass
class Config:
    """
    Main configuration container.

    Aggregates all configuration sections into a single object
    and provides methods for validating and serializing.
    """
    app_name: str = "Regexp Handler"
    version: str = "1.0.0"
    debug: bool = False

    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Paths (set at runtime)
    config_dir: str = ""

    def validate(self) -> None:
        """
        Validate all configuration sections.

        Raises:
            ConfigError: If any configuration section is invalid
        """
        self.engine.validate()
        self.logging.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "app_name": self.app_name,
            "version": self.version,
            "debug": self.debug,
            "engine": asdict(self.engine),
            "logging": asdict(self.logging),
        }


def get_default_config_dir() -> Path:
    """
    Get the default configuration directory path.

    Returns:
        Path to the configuration directory
    """
    if "REGEXP_HANDLER_CONFIG_DIR" in os.environ:
        return Path(os.environ["REGEXP_HANDLER_CONFIG_DIR"])

    if "XDG_CONFIG_HOME" in os.environ:
        return Path(os.environ["XDG_CONFIG_HOME"]) / "regexp-handler"

    return Path.home() / ".config" / "regexp-handler"


def load_config(config_path: Optional[str] = None, load_env: bool = True) -> Config:
    """
    Load configuration from YAML file with environment variable overrides.

    This function loads configuration in the following order:
    1. Default values from dataclass
    2. Values from YAML file
    3. Environment variable overrides

    Args:
        config_path: Path to configuration file (optional)
        load_env: Whether to load environment variable overrides

    Returns:
        Config object with loaded values

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    config = Config()
    config.config_dir = str(get_default_config_dir())

    if config_path:
        yaml_path = Path(config_path)
        if not yaml_path.exists():
            raise ConfigError("Config file not found", {"path": str(yaml_path)})
    else:
        yaml_path = Path(config.config_dir) / "config.yaml"

    if yaml_path.exists():
        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}", {"path": str(yaml_path)})
        except IOError as e:
            raise ConfigError(f"Failed to read config file: {e}", {"path": str(yaml_path)})

        if not isinstance(yaml_config, dict):
            raise ConfigError("Config file must contain a mapping", {"path": str(yaml_path)})

        _apply_yaml_config(config, yaml_config)

    if load_env:
        _apply_env_overrides(config)

    config.validate()

    return config


def _apply_yaml_config(config: Config, yaml_config: Dict[str, Any]) -> None:
    """
    Apply YAML configuration values to Config object.

    Unknown keys are ignored.
    """
    for key in ("app_name", "version", "debug"):
        if key in yaml_config:
            setattr(config, key, yaml_config[key])

    for section in ("engine", "logging"):
        values = yaml_config.get(section) or {}
        section_obj = getattr(config, section)
        for key, value in values.items():
            if hasattr(section_obj, key):
                setattr(section_obj, key, value)


def _apply_env_overrides(config: Config) -> None:
    """
    Apply environment variable overrides to Config object.

    Environment variables follow the pattern: REGEXP_HANDLER_KEY
    For example: REGEXP_HANDLER_RULES_FILE, REGEXP_HANDLER_LOG_LEVEL
    """
    env_mappings = {
        "REGEXP_HANDLER_DEBUG": (None, "debug", bool),

        # Engine settings
        "REGEXP_HANDLER_RULES_FILE": ("engine", "rules_file"),
        "REGEXP_HANDLER_DEFAULT_PRIORITY": ("engine", "default_priority", int),
        "REGEXP_HANDLER_MAX_CHAIN_LENGTH": ("engine", "max_chain_length", int),
        "REGEXP_HANDLER_MAX_CALL_DEPTH": ("engine", "max_call_depth", int),

        # Logging settings
        "REGEXP_HANDLER_LOG_LEVEL": ("logging", "level"),
        "REGEXP_HANDLER_LOG_DIR": ("logging", "log_dir"),
        "REGEXP_HANDLER_LOG_JSON": ("logging", "json_format", bool),
    }

    for env_var, mapping in env_mappings.items():
        value = os.environ.get(env_var)
        if value is None:
            continue

        section, key = mapping[0], mapping[1]
        converter = mapping[2] if len(mapping) > 2 else str
        target = getattr(config, section) if section else config

        if converter == bool:
            converted = value.lower() in ("true", "1", "yes", "on")
        else:
            try:
                converted = converter(value)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {env_var}: {value}") from e

        setattr(target, key, converted)


def save_config(config: Config, config_path: Optional[str] = None) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Config object to save
        config_path: Path to save configuration (optional)

    Raises:
        ConfigError: If configuration cannot be saved
    """
    if config_path:
        yaml_path = Path(config_path)
    else:
        yaml_path = Path(config.config_dir) / "config.yaml"

    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(yaml_path, "w", encoding="utf-8") as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    except IOError as e:
        raise ConfigError(f"Failed to save config file: {e}", {"path": str(yaml_path)})
