"""Catalog facade over the artifact store, index and query engine.

The Catalog is the single owner of a store and its index. Writers (directory
loads, the change watcher, direct ingestion) run inside batch(), which holds
the mutation lock. When the outermost batch ends the catalog publishes a new
(snapshot, index, report) triple. Readers use the last published triple
without locking, so a query never observes a half-applied batch.

Example:
    >>> catalog = Catalog()
    >>> report = catalog.load_directory("docs")
    >>> [s.id for s in catalog.query({"kind": "decision", "orderBy": "id"})]
    ['d1', 'd2']
    >>> catalog.get_validation_report().to_dict()
    {'quarantined': [], 'danglingRelations': []}
"""

import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple, cast

from pathspec import PathSpec

from context1000.artifacts._index import ArtifactIndex
from context1000.artifacts._parser import try_parse_artifact
from context1000.artifacts._query import (
    ArtifactQuery,
    ArtifactSummary,
    QueryEngine,
    summarize,
)
from context1000.artifacts._registry import SchemaRegistry
from context1000.artifacts._store import ArtifactStore, StoreSnapshot
from context1000.artifacts._types import Artifact, SourceLocation, ValidationReport
from context1000.catalog._discovery import DEFAULT_PATTERNS, discover_documents
from context1000.config._models import Context1000Config, QueryConfig, SourcesConfig
from context1000.exceptions import (
    ArtifactNotFoundError,
    ArtifactParseError,
    DuplicateIdError,
    ParseErrorReason,
)
from context1000.utils._ignore import create_pathspec
from context1000.utils._logging import logger_from_config

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


class Published(NamedTuple):
    """State visible to readers between two batches."""

    snapshot: StoreSnapshot
    index: ArtifactIndex
    report: ValidationReport


class _Waiting(NamedTuple):
    artifact_id: str
    raw: str


class Catalog:
    """Queryable collection of architectural artifacts.

    Source documents are tracked by path: each path produces at most one
    artifact, and each artifact ID is owned by exactly one path. A document
    claiming an ID that another path owns waits in quarantine and is
    admitted once that ID is freed.

    Attributes:
        _store: Artifact store.
        _engine: Query engine.
        _sources: Source path -> ID of the artifact it produced.
        _owners: Artifact ID -> source path that produced it.
        _waiting: Source path -> claimed ID and text, for duplicate IDs.
        _freed: IDs released since waiting sources were last checked.
        _depth: Nesting depth of batch().
        _published: Last published state.
    """

    def __init__(
        self,
        *,
        registry: SchemaRegistry | None = None,
        store: ArtifactStore | None = None,
        query_config: QueryConfig | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize a catalog.

        Args:
            registry: Schema registry (defaults to global).
            store: Existing store to adopt (e.g., from ArtifactStore.load).
            query_config: Query limits.
            logger: Optional logger.
        """
        self._registry = registry or SchemaRegistry.get_instance()
        self._store = store if store is not None else ArtifactStore(logger=logger)
        query_config = query_config or QueryConfig()
        self._engine = QueryEngine(
            default_limit=query_config.default_limit,
            max_limit=query_config.max_limit,
        )
        self._logger = logger
        self._lock = threading.RLock()
        self._depth = 0

        self._sources: dict[str, str] = {}
        self._owners: dict[str, str] = {}
        self._waiting: dict[str, _Waiting] = {}
        self._freed: set[str] = set()
        snapshot = self._store.snapshot()
        for artifact in snapshot.artifacts.values():
            if artifact.source is not None:
                self._sources[artifact.source.path] = artifact.id
                self._owners[artifact.id] = artifact.source.path

        _ = self._store.drain_changes()
        self._published = Published(
            snapshot,
            ArtifactIndex.build(snapshot),
            self._store.validation_report(),
        )

    @classmethod
    def from_config(
        cls,
        config: Context1000Config,
        *,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> "Catalog":
        """Create a catalog using the query and logging settings of a config.

        Without an explicit logger, one is built from the logging section.
        """
        if logger is None:
            logger = logger_from_config(config.logging, component="catalog")
        return cls(query_config=config.query, logger=logger)

    # --- Publication ---

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Group mutations so readers see them all at once.

        Holds the mutation lock. Batches nest; only the outermost one
        publishes, including when the batch raises.
        """
        with self._lock:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._publish()

    def _publish(self) -> None:
        """Derive the index for the current store state and publish it."""
        changes = self._store.drain_changes()
        snapshot = self._store.snapshot()
        index = self._published.index
        if changes:
            index = ArtifactIndex.update(index, changes, snapshot)
        self._published = Published(
            snapshot,
            index,
            self._store.validation_report(),
        )

    @property
    def store(self) -> ArtifactStore:
        """Underlying artifact store."""
        return self._store

    @property
    def index(self) -> ArtifactIndex:
        """Last published index."""
        return self._published.index

    def snapshot(self) -> StoreSnapshot:
        """Last published store snapshot."""
        return self._published.snapshot

    # --- Mutations ---

    def _drop_source(self, path: str) -> Artifact | None:
        artifact_id = self._sources.pop(path, None)
        if artifact_id is None:
            return None
        _ = self._owners.pop(artifact_id, None)
        self._freed.add(artifact_id)
        return self._store.remove(artifact_id)

    def _admit_waiting(self) -> None:
        """Retry sources that were waiting for a freed ID, in path order."""
        while self._freed:
            artifact_id = self._freed.pop()
            if artifact_id in self._owners:
                continue
            for path in sorted(self._waiting):
                waiting = self._waiting.get(path)
                if waiting is None or waiting.artifact_id != artifact_id:
                    continue
                del self._waiting[path]
                admitted = self._ingest_or_wait(waiting.raw, SourceLocation(path=path))
                if admitted is not None:
                    if self._logger:
                        self._logger.info(
                            "duplicate_artifact_admitted",
                            source=path,
                            artifact_id=artifact_id,
                        )
                    break

    def _ingest_or_wait(self, raw: str, location: SourceLocation) -> Artifact | None:
        """Ingest a document, quarantining it if its ID is already owned."""
        with self.batch():
            try:
                return self.ingest(raw, location)
            except DuplicateIdError as e:
                _ = self._drop_source(location.path)
                _ = self._store.quarantine_document(
                    location, e, artifact_id=e.artifact_id
                )
                self._waiting[location.path] = _Waiting(e.artifact_id, raw)
                self._admit_waiting()
                if self._logger:
                    self._logger.warning(
                        "duplicate_artifact_id",
                        source=location.path,
                        artifact_id=e.artifact_id,
                        existing_source=e.existing_source,
                    )
                return None

    def ingest(self, raw: str, source: SourceLocation | str) -> Artifact | None:
        """Parse a source document and admit it into the catalog.

        On success the artifact is inserted, or replaces the artifact the
        source produced before. If the source previously produced a
        different ID, the old artifact is removed. On parse failure the
        source's previous artifact is removed and the source is quarantined.

        Args:
            raw: Document text.
            source: Location of the document.

        Returns:
            The admitted artifact, or None if the document failed to parse.

        Raises:
            DuplicateIdError: If another source already produced the same ID.
        """
        location = (
            source
            if isinstance(source, SourceLocation)
            else SourceLocation(path=str(source))
        )
        result = try_parse_artifact(raw, location, registry=self._registry)

        with self.batch():
            _ = self._waiting.pop(location.path, None)
            if result.error is not None:
                _ = self._drop_source(location.path)
                _ = self._store.quarantine_document(location, result.error)
                self._admit_waiting()
                if self._logger:
                    self._logger.warning(
                        "document_rejected",
                        source=str(location),
                        reason=result.error.reason.value,
                        field=result.error.field,
                    )
                return None

            artifact = cast("Artifact", result.artifact)
            owner = self._owners.get(artifact.id)
            if owner is not None and owner != location.path:
                msg = f"Artifact ID {artifact.id!r} is already defined in {owner}"
                raise DuplicateIdError(msg, artifact_id=artifact.id, existing_source=owner)

            previous_id = self._sources.get(location.path)
            if previous_id is not None and previous_id != artifact.id:
                _ = self._drop_source(location.path)

            _ = self._store.release_document(location.path)
            if artifact.id in self._store:
                self._store.replace(artifact.id, artifact)
            else:
                self._store.insert(artifact)
            self._sources[location.path] = artifact.id
            self._owners[artifact.id] = location.path
            self._admit_waiting()

        if self._logger:
            self._logger.debug(
                "document_ingested",
                source=str(location),
                artifact_id=artifact.id,
                kind=artifact.kind.value,
            )
        return artifact

    def ingest_file(self, path: Path | str) -> Artifact | None:
        """Read a document from disk and ingest it.

        Unreadable files are quarantined like malformed documents. A document
        claiming an ID owned by another source is quarantined until that ID
        is freed.

        Args:
            path: Document path.

        Returns:
            The admitted artifact, or None if it was quarantined.
        """
        path = Path(path)
        location = SourceLocation(path=str(path))
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            error = ArtifactParseError(
                f"Cannot read document: {e}",
                reason=ParseErrorReason.MALFORMED_METADATA,
                source=str(location),
            )
            with self.batch():
                _ = self._waiting.pop(location.path, None)
                _ = self._drop_source(location.path)
                _ = self._store.quarantine_document(location, error)
                self._admit_waiting()
            if self._logger:
                self._logger.warning("document_unreadable", source=str(path), error=str(e))
            return None

        return self._ingest_or_wait(raw, location)

    def remove_source(self, path: Path | str) -> Artifact | None:
        """Forget a source document.

        Removes the artifact the source produced (its dependents become
        dangling) and clears any quarantine entry for it. A document waiting
        for the freed ID is admitted in its place.

        Args:
            path: Source document path.

        Returns:
            The removed artifact, if the source had produced one.
        """
        key = str(path)
        with self.batch():
            _ = self._waiting.pop(key, None)
            removed = self._drop_source(key)
            _ = self._store.release_document(key)
            self._admit_waiting()

        if self._logger and removed is not None:
            self._logger.debug("source_removed", source=key, artifact_id=removed.id)
        return removed

    def settle(self) -> ValidationReport:
        """Resolve every relation.

        Returns:
            Validation report after resolution.
        """
        with self.batch():
            return self._store.settle()

    def load_directory(
        self,
        root: Path | str,
        *,
        patterns: tuple[str, ...] | list[str] = DEFAULT_PATTERNS,
        ignore: PathSpec | None = None,
    ) -> ValidationReport:
        """Ingest every document under a directory, then settle.

        A document that fails to parse is quarantined without affecting the
        others. Readers see the directory only once it is fully loaded.

        Args:
            root: Directory to load.
            patterns: Glob patterns of document files.
            ignore: Ignore patterns; defaults to the root's .gitignore plus
                built-in defaults.

        Returns:
            Validation report after settling.
        """
        root = Path(root).resolve()
        if ignore is None:
            ignore = create_pathspec(root)
        paths = discover_documents(root, patterns=patterns, ignore=ignore)

        admitted = 0
        with self.batch():
            for path in paths:
                if self.ingest_file(path) is not None:
                    admitted += 1
            report = self.settle()

        if self._logger:
            self._logger.info(
                "directory_loaded",
                root=str(root),
                documents=len(paths),
                admitted=admitted,
                quarantined=len(report.quarantined),
                dangling=len(report.dangling_relations),
            )
        return report

    def load_sources(
        self,
        sources: SourcesConfig,
        *,
        base_dir: Path | str | None = None,
    ) -> ValidationReport:
        """Load the documents described by a sources configuration section.

        Args:
            sources: Root, patterns and ignore settings.
            base_dir: Directory a relative root is resolved against; defaults
                to the current working directory.

        Returns:
            Validation report after settling.
        """
        root = Path(base_dir or Path.cwd()) / sources.root
        return self.load_directory(
            root,
            patterns=sources.patterns,
            ignore=create_pathspec(root.resolve(), sources.ignore_config()),
        )

    # --- Reads ---

    def query(
        self,
        query: ArtifactQuery | Mapping[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
    ) -> list[ArtifactSummary]:
        """Run a query against the last published index.

        Args:
            query: ArtifactQuery or a mapping such as
                {"kind": "rule", "tags": ["db"], "orderBy": "title"}.

        Returns:
            Summaries of the matching artifacts, in query order.

        Raises:
            pydantic.ValidationError: If a mapping is not a valid query.
        """
        if not isinstance(query, ArtifactQuery):
            query = ArtifactQuery.model_validate(dict(query or {}))
        snapshot, index, _ = self._published
        return [summarize(a) for a in self._engine.query(index, snapshot, query)]

    def get(self, artifact_id: str) -> Artifact:
        """Fetch an artifact by ID.

        Artifacts quarantined for dangling relations can still be fetched.

        Raises:
            ArtifactNotFoundError: If no artifact has the ID.
        """
        artifact = self._published.snapshot.artifacts.get(artifact_id)
        if artifact is None:
            msg = f"Artifact not found: {artifact_id!r}"
            raise ArtifactNotFoundError(msg, artifact_id=artifact_id)
        return artifact

    def get_validation_report(self) -> ValidationReport:
        """Get quarantined documents and dangling relations.

        The report describes the same published state that queries read.
        """
        return self._published.report
