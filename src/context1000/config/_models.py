"""Configuration models.

This module provides the Pydantic models for every configuration section and
the Context1000Config root model that groups them.
"""

from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from context1000.utils._ignore import IgnoreConfig


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty logs to stderr).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    file: str = ""


class SourcesConfig(BaseModel):
    """Source document discovery section.

    Attributes:
        root: Directory searched for documents, relative to the base directory.
        patterns: Glob patterns of document files.
        ignore: Extra gitignore-style patterns to skip.
        use_gitignore: Whether the root's .gitignore is honored.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    root: str = "."
    patterns: tuple[str, ...] = ("**/*.md", "**/*.mdx")
    ignore: tuple[str, ...] = ()
    use_gitignore: bool = True

    def ignore_config(self) -> IgnoreConfig:
        """Build the ignore pattern configuration of this section."""
        return IgnoreConfig(use_gitignore=self.use_gitignore, extra_patterns=self.ignore)


class WatchConfig(BaseModel):
    """Change watcher section.

    Attributes:
        debounce_ms: Quiet period before a batch of changes is applied.
        step_ms: Polling step while waiting for further changes.
        recursive: Whether subdirectories of the root are watched.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    debounce_ms: int = Field(default=1600, ge=0)
    step_ms: int = Field(default=50, ge=1)
    recursive: bool = True


class QueryConfig(BaseModel):
    """Query engine section.

    Attributes:
        default_limit: Limit used when a query gives none (None is unbounded).
        max_limit: Upper bound on any query limit (None is unbounded).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    default_limit: int | None = Field(default=None, ge=1)
    max_limit: int | None = Field(default=None, ge=1)


class Context1000Config(BaseModel):
    """Root configuration.

    Attributes:
        logging: Logging settings.
        sources: Source document discovery settings.
        watch: Change watcher settings.
        query: Query engine settings.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
