# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""Configuration loading with source precedence and validation."""

from pathlib import Path
from typing import Any

from pydantic import ValidationError

from context1000.config._loader import deep_merge, env_overrides, read_toml_file
from context1000.config._models import Context1000Config
from context1000.exceptions import ConfigLoadError, ConfigValidationError

CONFIG_FILENAME = "context1000.toml"
"""Name of the configuration file looked up in the working directory."""


def _error_expected(error: Any) -> str:  # pyright: ignore[reportExplicitAny]
    """Describe what a failed pydantic check expected."""
    ctx = error.get("ctx") or {}
    if "expected" in ctx:
        return str(ctx["expected"])
    if "ge" in ctx:
        return f">= {ctx['ge']}"
    return str(error.get("msg", "valid value"))


def load_config(
    path: Path | str | None = None,
    *,
    overrides: dict[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
    include_env: bool = True,
) -> Context1000Config:
    """Load configuration from file, environment and explicit overrides.

    Precedence, lowest to highest: defaults, the TOML file, CONTEXT1000_*
    environment variables, overrides.

    Args:
        path: Configuration file. When None, context1000.toml in the current
            directory is used if it exists.
        overrides: Values merged on top of every other source.
        include_env: Whether environment variables are read.

    Returns:
        Validated configuration.

    Raises:
        ConfigLoadError: If an explicit file is missing or any file is not
            valid TOML.
        ConfigValidationError: If a merged value fails validation.

    Example:
        >>> config = load_config(overrides={"watch": {"debounce_ms": 200}})
        >>> config.watch.debounce_ms
        200
    """
    data: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    source = "defaults"

    if path is not None:
        config_path = Path(path)
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise ConfigLoadError(msg, path=config_path)
    else:
        config_path = Path.cwd() / CONFIG_FILENAME

    if config_path.is_file():
        data = read_toml_file(config_path)
        source = str(config_path)

    if include_env:
        env_values = env_overrides()
        if env_values:
            data = deep_merge(data, env_values)
            source = "env"

    if overrides:
        data = deep_merge(data, overrides)
        source = "overrides"

    try:
        return Context1000Config.model_validate(data)
    except ValidationError as e:
        error = e.errors()[0]
        key = ".".join(str(part) for part in error.get("loc", ()))
        msg = f"Invalid configuration value for {key!r}: {error.get('msg')}"
        raise ConfigValidationError(
            msg,
            key=key,
            value=error.get("input"),
            expected=_error_expected(error),
            source=source,
        ) from e
