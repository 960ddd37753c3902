"""context1000 configuration.

This module provides the public API for context1000 configuration, including
loading from context1000.toml and CONTEXT1000_* environment variables and
typed access to configuration values.

Example:
    >>> from context1000.config import load_config
    >>> config = load_config()
    >>> config.watch.debounce_ms
    1600
"""

from context1000.exceptions import (
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
)

from ._load import CONFIG_FILENAME, load_config
from ._loader import ENV_PREFIX
from ._models import (
    Context1000Config,
    LogFormat,
    LoggingConfig,
    LogLevel,
    QueryConfig,
    SourcesConfig,
    WatchConfig,
)

__all__ = [
    "CONFIG_FILENAME",
    "ENV_PREFIX",
    "ConfigError",
    "ConfigLoadError",
    "ConfigValidationError",
    "Context1000Config",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "QueryConfig",
    "SourcesConfig",
    "WatchConfig",
    "load_config",
]
