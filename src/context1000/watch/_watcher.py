"""Change watcher keeping a catalog in sync with its source directory.

The watcher waits for filesystem changes with watchfiles, collapses each
debounced batch to one change per path, and applies the batch to the
catalog inside one Catalog.batch(). Readers keep querying the previously
published index until the whole batch is applied and settled.

States move IDLE -> SCANNING -> DEBOUNCING -> APPLYING -> SCANNING, and back
to IDLE once the watcher stops. stop() never interrupts an APPLYING phase.

Example:
    >>> watcher = ChangeWatcher(catalog, "docs")
    >>> watcher.start()
    >>> ...
    >>> watcher.stop()
"""

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from pathspec import PathSpec
from watchfiles import Change, watch

from context1000.catalog._catalog import Catalog
from context1000.catalog._discovery import (
    DEFAULT_PATTERNS,
    create_document_spec,
    is_document,
)
from context1000.config._models import Context1000Config, WatchConfig
from context1000.exceptions import ArtifactError
from context1000.utils._ignore import create_pathspec, is_ignored
from context1000.utils._logging import logger_from_config

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


class WatcherState(StrEnum):
    """Lifecycle states of a ChangeWatcher."""

    IDLE = "idle"
    SCANNING = "scanning"
    DEBOUNCING = "debouncing"
    APPLYING = "applying"


@dataclass(frozen=True, slots=True)
class ApplyResult:
    """Outcome of applying one batch of changes.

    Each document's outcome is independent of the others.

    Attributes:
        applied: IDs of artifacts inserted or replaced.
        removed: IDs of artifacts removed.
        failed: Paths of documents that were quarantined.
    """

    applied: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """Whether the batch changed nothing."""
        return not (self.applied or self.removed or self.failed)


def coalesce_changes(changes: Iterable[tuple[Change, str]]) -> dict[str, Change]:
    """Collapse a sequence of change events to one change per path.

    The last event for a path wins, except that a deletion followed by an
    addition is a modification.

    Args:
        changes: (change, path) events in the order they happened.

    Returns:
        Path -> effective change.

    Example:
        >>> coalesce_changes([(Change.added, "a.md"), (Change.deleted, "a.md")])
        {'a.md': <Change.deleted: 3>}
    """
    result: dict[str, Change] = {}
    for change, path in changes:
        previous = result.get(path)
        if previous == Change.deleted and change == Change.added:
            result[path] = Change.modified
        else:
            result[path] = change
    return result


class ChangeWatcher:
    """Watches a source directory and applies changes to a catalog.

    Attributes:
        _catalog: Catalog kept in sync.
        _root: Resolved source root.
        _ignore: Ignore patterns.
        _documents: Document file patterns.
        _stop_event: Cancels the filesystem wait.
    """

    def __init__(  # noqa: PLR0913
        self,
        catalog: Catalog,
        root: Path | str,
        *,
        config: WatchConfig | None = None,
        patterns: Iterable[str] = DEFAULT_PATTERNS,
        pathspec: PathSpec | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize a watcher.

        Args:
            catalog: Catalog to keep in sync.
            root: Source directory to watch.
            config: Debounce and recursion settings.
            patterns: Glob patterns of document files.
            pathspec: Ignore patterns; defaults to the root's .gitignore plus
                built-in defaults.
            logger: Optional logger.
        """
        self._catalog = catalog
        self._root = Path(root).resolve()
        self._config = config or WatchConfig()
        self._patterns = tuple(patterns)
        self._documents = create_document_spec(self._patterns)
        self._ignore = pathspec if pathspec is not None else create_pathspec(self._root)
        self._logger = logger

        self._state = WatcherState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def from_config(
        cls,
        catalog: Catalog,
        config: Context1000Config,
        *,
        base_dir: Path | str | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> "ChangeWatcher":
        """Create a watcher for the sources and watch sections of a config.

        Without an explicit logger, one is built from the logging section.

        Args:
            catalog: Catalog to keep in sync.
            config: Loaded configuration.
            base_dir: Directory a relative sources root is resolved against;
                defaults to the current working directory.
            logger: Optional logger.
        """
        root = (Path(base_dir or Path.cwd()) / config.sources.root).resolve()
        if logger is None:
            logger = logger_from_config(config.logging, component="watcher")
        return cls(
            catalog,
            root,
            config=config.watch,
            patterns=config.sources.patterns,
            pathspec=create_pathspec(root, config.sources.ignore_config()),
            logger=logger,
        )

    @property
    def root(self) -> Path:
        """Watched source root."""
        return self._root

    @property
    def state(self) -> WatcherState:
        """Current lifecycle state."""
        with self._state_lock:
            return self._state

    def _set_state(self, state: WatcherState) -> None:
        with self._state_lock:
            self._state = state
        if self._logger:
            self._logger.debug("watcher_state", state=state.value)

    def should_watch(self, _change: Change, path: str) -> bool:
        """Filter for watchfiles: keep non-ignored source documents.

        Args:
            _change: The type of change (unused).
            path: The path that changed.

        Returns:
            True if the change should be reported.
        """
        candidate = Path(path)
        if is_ignored(self._ignore, candidate, self._root):
            return False
        return is_document(self._documents, candidate, self._root)

    def apply_changes(self, changes: Mapping[str, Change]) -> ApplyResult:
        """Apply coalesced changes to the catalog as one batch, then settle it.

        watchfiles batches are unordered, so the filesystem decides: a path
        whose file exists is ingested, any other path is removed, whatever
        its reported change.

        Args:
            changes: Path -> effective change, as from coalesce_changes().

        Returns:
            Per-document outcomes.
        """
        applied: list[str] = []
        removed: list[str] = []
        failed: list[str] = []

        with self._catalog.batch():
            for path_str in sorted(changes):
                path = Path(path_str)
                if not self.should_watch(changes[path_str], path_str):
                    continue
                try:
                    if not path.is_file():
                        artifact = self._catalog.remove_source(path)
                        if artifact is not None:
                            removed.append(artifact.id)
                        continue

                    artifact = self._catalog.ingest_file(path)
                except ArtifactError as e:
                    failed.append(path_str)
                    if self._logger:
                        self._logger.warning(
                            "watcher_change_failed", path=path_str, error=str(e)
                        )
                    continue

                if artifact is None:
                    failed.append(path_str)
                else:
                    applied.append(artifact.id)

            report = self._catalog.settle()

        result = ApplyResult(
            applied=tuple(applied),
            removed=tuple(removed),
            failed=tuple(failed),
        )
        if self._logger:
            self._logger.info(
                "watcher_batch_applied",
                applied=len(result.applied),
                removed=len(result.removed),
                failed=len(result.failed),
                quarantined=len(report.quarantined),
            )
        return result

    def run(self, *, initial_load: bool = True) -> None:
        """Watch until stop() is called. Blocks the calling thread.

        Args:
            initial_load: Whether to load the whole root before watching.
        """
        self._stop_event.clear()
        self._watch(initial_load=initial_load)

    def _watch(self, *, initial_load: bool) -> None:
        self._set_state(WatcherState.SCANNING)
        if self._logger:
            self._logger.info("watcher_started", root=str(self._root))

        try:
            if initial_load:
                _ = self._catalog.load_directory(
                    self._root, patterns=self._patterns, ignore=self._ignore
                )

            for batch in watch(
                self._root,
                watch_filter=self.should_watch,
                debounce=self._config.debounce_ms,
                step=self._config.step_ms,
                stop_event=self._stop_event,
                recursive=self._config.recursive,
            ):
                self._set_state(WatcherState.DEBOUNCING)
                coalesced = coalesce_changes(sorted(batch, key=lambda c: c[1]))
                self._set_state(WatcherState.APPLYING)
                _ = self.apply_changes(coalesced)
                if self._stop_event.is_set():
                    break
                self._set_state(WatcherState.SCANNING)
        finally:
            self._set_state(WatcherState.IDLE)
            if self._logger:
                self._logger.info("watcher_stopped", root=str(self._root))

    def start(self, *, initial_load: bool = True) -> None:
        """Run the watcher in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch,
            kwargs={"initial_load": initial_load},
            name="context1000-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> bool:
        """Request cancellation and wait for the watcher to finish.

        An in-flight batch is applied completely before the watcher stops.

        Args:
            timeout: Seconds to wait for a background thread; None waits
                indefinitely.

        Returns:
            True if the watcher is no longer running.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        if thread.is_alive():
            return False
        self._thread = None
        return True
