"""
Core Module - Foundation components for Regexp Handler
======================================================

This module provides the foundational components including:
- Configuration management
- Logging setup
- Exception handling
"""

from .config import Config, EngineConfig, LoggingConfig, load_config, save_config
from .exceptions import (
    RegexpHandlerError,
    ConfigError,
    ChainLimitError,
    EnqueueError,
    BusError,
)
from .logging import setup_logging, get_logger

__all__ = [
    "Config",
    "EngineConfig",
    "LoggingConfig",
    "load_config",
    "save_config",
    "RegexpHandlerError",
    "ConfigError",
    "ChainLimitError",
    "EnqueueError",
    "BusError",
    "setup_logging",
    "get_logger",
]
