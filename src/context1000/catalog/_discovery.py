"""Source document discovery.

Walks a source root and yields the documents matching the configured
patterns, skipping everything matched by ignore patterns.
"""

import os
from collections.abc import Iterable
from pathlib import Path

from pathspec import PathSpec

from context1000.utils._ignore import create_pathspec, is_ignored

DEFAULT_PATTERNS: tuple[str, ...] = ("**/*.md", "**/*.mdx")
"""Glob patterns of source documents."""


def create_document_spec(patterns: Iterable[str] = DEFAULT_PATTERNS) -> PathSpec:
    """Compile document patterns into a PathSpec."""
    return PathSpec.from_lines("gitwildmatch", patterns)


def is_document(document_spec: PathSpec, path: Path, root: Path) -> bool:
    """Check whether a path under root is a source document."""
    try:
        relative = path.relative_to(root)
    except ValueError:
        return False
    return document_spec.match_file(relative.as_posix())


def discover_documents(
    root: Path,
    *,
    patterns: Iterable[str] = DEFAULT_PATTERNS,
    ignore: PathSpec | None = None,
) -> list[Path]:
    """Find source documents under a root directory.

    Ignored directories are not descended into.

    Args:
        root: Directory to search.
        patterns: Glob patterns of document files, relative to root.
        ignore: Ignore patterns; defaults to create_pathspec(root).

    Returns:
        Document paths, sorted.
    """
    if ignore is None:
        ignore = create_pathspec(root)
    document_spec = create_document_spec(patterns)

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        # Prune in place so os.walk skips ignored subtrees
        dirnames[:] = sorted(
            d
            for d in dirnames
            if not is_ignored(ignore, _relative(current / d, root), root, is_dir=True)
        )
        for filename in filenames:
            path = current / filename
            relative = _relative(path, root)
            if is_ignored(ignore, relative, root):
                continue
            if document_spec.match_file(relative):
                found.append(path)

    return sorted(found)


def _relative(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()
