"""Filesystem change watching for context1000 catalogs.

Example:
    >>> from context1000.watch import ChangeWatcher
    >>> watcher = ChangeWatcher(catalog, "docs")
    >>> watcher.start()
"""

from context1000.watch._watcher import (
    ApplyResult,
    ChangeWatcher,
    WatcherState,
    coalesce_changes,
)

__all__ = [
    "ApplyResult",
    "ChangeWatcher",
    "WatcherState",
    "coalesce_changes",
]
