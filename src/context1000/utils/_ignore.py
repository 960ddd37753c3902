"""Gitignore-style pattern matching using pathspec.

This module provides utilities for loading and matching gitignore patterns
from the source root's .gitignore, configured extras, and defaults.
"""

from dataclasses import dataclass, field
from pathlib import Path, PurePath

from pathspec import PathSpec

DEFAULT_IGNORE_PATTERNS: frozenset[str] = frozenset(
    {
        ".git/",
        ".hg/",
        "node_modules/",
        ".venv/",
        "__pycache__/",
        "*.swp",
        "*~",
        ".#*",
    }
)
"""Default patterns to ignore when discovering and watching documents.

These patterns are applied regardless of gitignore configuration so that
version control directories and editor temporaries are never ingested.
"""


@dataclass(frozen=True, slots=True)
class IgnoreConfig:
    """Configuration for ignore pattern loading.

    Attributes:
        include_defaults: Whether to include DEFAULT_IGNORE_PATTERNS.
        use_gitignore: Whether to load patterns from the root's .gitignore.
        extra_patterns: Additional patterns to include.
    """

    include_defaults: bool = True
    use_gitignore: bool = True
    extra_patterns: tuple[str, ...] = field(default_factory=tuple)


def load_gitignore_patterns(path: Path) -> list[str]:
    """Load patterns from a gitignore file.

    Reads a gitignore-format file and returns the patterns. Comments (lines
    starting with #) and empty lines are filtered out.

    Args:
        path: Path to the gitignore file.

    Returns:
        List of patterns from the file. Returns empty list if file doesn't exist.
    """
    if not path.is_file():
        return []

    patterns: list[str] = []
    content = path.read_text(encoding="utf-8")

    for line in content.splitlines():
        stripped = line.strip()
        # Skip empty lines and comments
        if not stripped or stripped.startswith("#"):
            continue
        patterns.append(stripped)

    return patterns


def collect_patterns(
    root: Path,
    config: IgnoreConfig | None = None,
) -> list[str]:
    """Collect ignore patterns from all configured sources.

    Gathers patterns from:
    1. Default patterns (if include_defaults is True)
    2. The root's .gitignore (if use_gitignore is True and file exists)
    3. Extra patterns from config

    Args:
        root: Source root directory.
        config: Configuration for pattern sources. Uses defaults if None.

    Returns:
        List of all collected patterns, deduplicated while preserving order.
    """
    if config is None:
        config = IgnoreConfig()

    patterns: list[str] = []
    seen: set[str] = set()

    def add_patterns(new_patterns: list[str] | tuple[str, ...]) -> None:
        for pattern in new_patterns:
            if pattern not in seen:
                seen.add(pattern)
                patterns.append(pattern)

    if config.include_defaults:
        add_patterns(sorted(DEFAULT_IGNORE_PATTERNS))

    if config.use_gitignore:
        add_patterns(load_gitignore_patterns(root / ".gitignore"))

    if config.extra_patterns:
        add_patterns(config.extra_patterns)

    return patterns


def create_pathspec(
    root: Path,
    config: IgnoreConfig | None = None,
) -> PathSpec:
    """Create a PathSpec from collected ignore patterns.

    Args:
        root: Source root directory.
        config: Configuration for pattern sources. Uses defaults if None.

    Returns:
        A PathSpec instance configured with gitignore-style pattern matching.
    """
    return PathSpec.from_lines("gitwildmatch", collect_patterns(root, config))


def is_ignored(
    spec: PathSpec,
    path: Path | str,
    root: Path,
    *,
    is_dir: bool = False,
) -> bool:
    """Check whether a path is matched by ignore patterns.

    Args:
        spec: Compiled ignore patterns.
        path: Path to check, absolute or relative to root.
        root: Source root the patterns are relative to.
        is_dir: Whether the path is a directory (directory-only patterns
            such as "node_modules/" match it then).

    Returns:
        True if the path or one of its parent directories is ignored. Paths
        outside root are never ignored.
    """
    candidate = PurePath(path)
    if candidate.is_absolute():
        try:
            candidate = candidate.relative_to(root)
        except ValueError:
            return False
    posix = candidate.as_posix()
    if is_dir:
        posix = f"{posix}/"
    return spec.match_file(posix)
