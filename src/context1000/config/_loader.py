# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""Raw configuration sources: the TOML file and CONTEXT1000_* variables.

Both sources produce plain nested dicts shaped like Context1000Config. Values
from the environment stay strings; pydantic coerces them when the merged
configuration is validated.
"""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from types import NoneType
from typing import Any, get_args, get_origin

from pydantic import BaseModel
from pydantic.fields import FieldInfo

from context1000.config._models import Context1000Config
from context1000.exceptions import ConfigLoadError

ENV_PREFIX = "CONTEXT1000_"
"""Prefix of environment variables holding configuration values."""

_NONE_VALUES = frozenset({"", "none", "null"})


def read_toml_file(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a TOML configuration file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file is not valid TOML.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file: {e}"
        raise ConfigLoadError(msg, path=path, line=e.lineno, column=e.colno) from e


def deep_merge(
    base: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
    override: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Merge override into base section by section.

    Tables merge key by key; any other value, arrays included, replaces the
    base value. Neither input is modified.
    """
    result = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def _env_value(field: FieldInfo, raw: str) -> Any:  # pyright: ignore[reportExplicitAny]
    """Shape an environment string for the field it configures.

    Tuple fields take comma-separated items. Optional fields take an empty
    string, "none" or "null" as None. Everything else is left to pydantic.
    """
    args = get_args(field.annotation)
    if NoneType in args and raw.strip().lower() in _NONE_VALUES:
        return None
    if get_origin(field.annotation) is tuple:
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def env_overrides(
    environ: Mapping[str, str] | None = None,
    *,
    prefix: str = ENV_PREFIX,
) -> dict[str, dict[str, Any]]:  # pyright: ignore[reportExplicitAny]
    """Collect configuration values from environment variables.

    A variable is named after the section and field it sets, e.g.
    CONTEXT1000_WATCH__DEBOUNCE_MS for watch.debounce_ms. Variables naming no
    known section and field are skipped, which leaves room for
    CONTEXT1000_DEBUG and CONTEXT1000_LOG_LEVEL.

    Args:
        environ: Variables to read (defaults to os.environ).
        prefix: Variable name prefix.

    Returns:
        Section name -> field name -> value.

    Example:
        >>> env_overrides({"CONTEXT1000_SOURCES__IGNORE": "drafts/, tmp/"})
        {'sources': {'ignore': ['drafts/', 'tmp/']}}
    """
    if environ is None:
        environ = os.environ
    sections = Context1000Config.model_fields

    result: dict[str, dict[str, Any]] = {}  # pyright: ignore[reportExplicitAny]
    for name, raw in environ.items():
        if not name.startswith(prefix):
            continue
        section, sep, key = name[len(prefix) :].lower().partition("__")
        if not sep or section not in sections:
            continue
        model = sections[section].annotation
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            continue
        field = model.model_fields.get(key)
        if field is None:
            continue
        result.setdefault(section, {})[key] = _env_value(field, raw)
    return result
