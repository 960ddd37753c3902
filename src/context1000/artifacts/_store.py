"""In-memory artifact store.

This module provides the ArtifactStore class, the arena that owns every
parsed artifact keyed by its ID. Artifacts refer to each other only by ID;
the store resolves those references, tracks which artifacts have dangling
relations, and records source documents that failed to parse.

Readers never see a partially applied mutation: mutations are serialized by
a lock and readers work from an immutable StoreSnapshot built after the
mutation completes.

Example:
    >>> from context1000.artifacts import ArtifactStore, DecisionArtifact
    >>> store = ArtifactStore()
    >>> store.insert(DecisionArtifact(id="d1", title="Use event sourcing", status="accepted"))
    >>> store.insert(
    ...     DecisionArtifact(
    ...         id="d2", title="Revisit event sourcing", status="proposed", relations=("d1",)
    ...     )
    ... )
    >>> store.settle().is_clean
    True
    >>> _ = store.remove("d1")
    >>> store.settle().dangling_relations
    (DanglingRelation(id='d2', missing_target='d1'),)
"""

import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import orjson

from context1000.artifacts._metadata import content_hash, derive_id, serialize_artifact
from context1000.artifacts._parser import parse_artifact
from context1000.artifacts._registry import SchemaRegistry
from context1000.artifacts._types import (
    Artifact,
    DanglingRelation,
    QuarantineEntry,
    SourceLocation,
    ValidationReport,
)
from context1000.artifacts._validator import find_dangling_relations
from context1000.exceptions import (
    ArtifactError,
    ArtifactNotFoundError,
    ArtifactStoreError,
    DuplicateIdError,
)

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

SNAPSHOT_FORMAT_VERSION = 1
"""Version of the persisted store format."""


@dataclass(frozen=True, slots=True)
class StoreSnapshot:
    """Immutable view of the store at one version.

    Attributes:
        version: Store version the snapshot reflects.
        artifacts: Every schema-valid artifact, keyed by ID.
        sequence: Insertion order number of each artifact.
        revision: Store version at which each artifact was last written.
        hidden: IDs quarantined because of dangling relations.
    """

    version: int = 0
    artifacts: Mapping[str, Artifact] = field(
        default_factory=lambda: MappingProxyType({})
    )
    sequence: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    revision: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    hidden: frozenset[str] = frozenset()

    def is_visible(self, artifact_id: str) -> bool:
        """Whether an artifact exists and is not quarantined."""
        return artifact_id in self.artifacts and artifact_id not in self.hidden

    def visible(self) -> Iterator[Artifact]:
        """Iterate over visible artifacts in insertion order."""
        for artifact_id in sorted(self.artifacts, key=self.sequence.__getitem__):
            if artifact_id not in self.hidden:
                yield self.artifacts[artifact_id]


class ArtifactStore:
    """Arena of artifacts keyed by ID.

    The store enforces ID uniqueness, tracks relation integrity and keeps
    parse failures in a quarantine set for diagnostics.

    Relation states: a freshly inserted artifact whose relations point at
    IDs not yet loaded stays visible (pending) until settle(). settle() and
    remove() decide which artifacts are dangling; dangling artifacts are
    hidden from snapshots' visible set until their targets exist again.

    Each mutation records the IDs whose indexed state may have changed;
    drain_changes() hands them to incremental index updates.

    Attributes:
        _artifacts: Artifacts keyed by ID.
        _hashes: Content hash of each artifact.
        _sequence: Insertion order number of each artifact.
        _revision: Version at which each artifact was last written.
        _referrers: Relation target ID -> IDs of artifacts referencing it.
        _dangling: IDs of hidden artifacts -> their missing targets.
        _rejected: Source path -> quarantine entry for unparseable documents.
    """

    __slots__ = (
        "_artifacts",
        "_changes",
        "_dangling",
        "_hashes",
        "_lock",
        "_logger",
        "_next_sequence",
        "_referrers",
        "_rejected",
        "_revision",
        "_sequence",
        "_settled",
        "_snapshot",
        "_version",
    )

    def __init__(self, *, logger: "FilteringBoundLogger | None" = None) -> None:  # noqa: UP037
        """Initialize an empty store.

        Args:
            logger: Optional logger for debug-level operation logging.
        """
        self._artifacts: dict[str, Artifact] = {}
        self._hashes: dict[str, str] = {}
        self._sequence: dict[str, int] = {}
        self._revision: dict[str, int] = {}
        self._referrers: dict[str, set[str]] = {}
        self._dangling: dict[str, tuple[str, ...]] = {}
        self._rejected: dict[str, QuarantineEntry] = {}
        self._changes: set[str] = set()
        self._next_sequence = 0
        self._version = 0
        self._settled = True
        self._snapshot: StoreSnapshot | None = None
        self._lock = threading.RLock()
        self._logger = logger

    # --- Read operations ---

    @property
    def version(self) -> int:
        """Number of mutations applied so far."""
        return self._version

    @property
    def is_settled(self) -> bool:
        """Whether no insert or replace happened since the last settle()."""
        return self._settled

    @property
    def lock(self) -> threading.RLock:
        """Mutation lock, for callers that group several mutations."""
        return self._lock

    def __len__(self) -> int:
        return len(self._artifacts)

    def __contains__(self, artifact_id: object) -> bool:
        return artifact_id in self._artifacts

    def contains(self, artifact_id: str) -> bool:
        """Check whether an artifact with the ID exists."""
        return artifact_id in self._artifacts

    def ids(self) -> list[str]:
        """Get all artifact IDs in insertion order."""
        return sorted(self._artifacts, key=self._sequence.__getitem__)

    def get(self, artifact_id: str) -> Artifact:
        """Get artifact by ID.

        Args:
            artifact_id: Artifact ID.

        Returns:
            The stored artifact.

        Raises:
            ArtifactNotFoundError: If artifact not found.
        """
        artifact = self._artifacts.get(artifact_id)
        if artifact is None:
            msg = f"Artifact not found: {artifact_id!r}"
            raise ArtifactNotFoundError(msg, artifact_id=artifact_id)
        return artifact

    def snapshot(self) -> StoreSnapshot:
        """Get an immutable view of the current store state.

        The view is built once per store version and shared by readers.
        """
        with self._lock:
            if self._snapshot is None or self._snapshot.version != self._version:
                self._snapshot = StoreSnapshot(
                    version=self._version,
                    artifacts=MappingProxyType(dict(self._artifacts)),
                    sequence=MappingProxyType(dict(self._sequence)),
                    revision=MappingProxyType(dict(self._revision)),
                    hidden=frozenset(self._dangling),
                )
            return self._snapshot

    def drain_changes(self) -> frozenset[str]:
        """Return and clear the IDs touched since the last call."""
        with self._lock:
            changes = frozenset(self._changes)
            self._changes.clear()
            return changes

    # --- Mutations ---

    def _touch(self, *artifact_ids: str) -> None:
        self._version += 1
        self._changes.update(artifact_ids)

    def _link(self, artifact: Artifact) -> None:
        for target in artifact.relations:
            self._referrers.setdefault(target, set()).add(artifact.id)

    def _unlink(self, artifact: Artifact) -> None:
        for target in artifact.relations:
            referrers = self._referrers.get(target)
            if referrers is None:
                continue
            referrers.discard(artifact.id)
            if not referrers:
                del self._referrers[target]

    def _missing_targets(self, artifact: Artifact) -> tuple[str, ...]:
        return tuple(
            d.missing_target for d in find_dangling_relations(artifact, self.contains)
        )

    def _release_referrers(self, target: str) -> set[str]:
        """Re-check dangling artifacts referencing a target that now exists."""
        released: set[str] = set()
        for referrer in sorted(self._referrers.get(target, ())):
            if referrer not in self._dangling:
                continue
            missing = self._missing_targets(self._artifacts[referrer])
            if missing:
                self._dangling[referrer] = missing
            else:
                del self._dangling[referrer]
                released.add(referrer)
        return released

    def _write(self, artifact: Artifact, digest: str) -> None:
        previous = self._artifacts.get(artifact.id)
        if previous is not None:
            self._unlink(previous)
        else:
            self._sequence[artifact.id] = self._next_sequence
            self._next_sequence += 1
        self._artifacts[artifact.id] = artifact
        self._hashes[artifact.id] = digest
        self._link(artifact)
        self._revision[artifact.id] = self._version + 1

    def insert(self, artifact: Artifact) -> None:
        """Insert a new artifact.

        Re-inserting an artifact with identical content is a no-op.

        Args:
            artifact: Artifact to insert.

        Raises:
            DuplicateIdError: If the ID exists with different content.
        """
        digest = content_hash(artifact)
        with self._lock:
            existing_hash = self._hashes.get(artifact.id)
            if existing_hash is not None:
                if existing_hash == digest:
                    return
                existing = self._artifacts[artifact.id]
                msg = f"Artifact ID already exists with different content: {artifact.id!r}"
                raise DuplicateIdError(
                    msg,
                    artifact_id=artifact.id,
                    existing_source=str(existing.source) if existing.source else None,
                )

            self._write(artifact, digest)
            released = self._release_referrers(artifact.id)
            self._settled = False
            self._touch(artifact.id, *released)

        if self._logger:
            self._logger.debug(
                "artifact_inserted",
                artifact_id=artifact.id,
                kind=artifact.kind.value,
                released=sorted(released),
            )

    def replace(self, artifact_id: str, artifact: Artifact) -> None:
        """Atomically swap an existing artifact for a new version.

        Args:
            artifact_id: ID of the artifact to replace.
            artifact: New version, with the same ID.

        Raises:
            ArtifactNotFoundError: If no artifact has the ID.
            ArtifactStoreError: If the new version has a different ID.
        """
        if artifact.id != artifact_id:
            msg = f"Replacement ID {artifact.id!r} does not match {artifact_id!r}"
            raise ArtifactStoreError(msg, artifact_id=artifact_id)

        digest = content_hash(artifact)
        with self._lock:
            if artifact_id not in self._artifacts:
                msg = f"Artifact not found: {artifact_id!r}"
                raise ArtifactNotFoundError(msg, artifact_id=artifact_id)
            if self._hashes[artifact_id] == digest:
                # Same content; keep the newer source location
                self._artifacts[artifact_id] = artifact
                self._version += 1
                return

            self._write(artifact, digest)
            if artifact_id in self._dangling:
                missing = self._missing_targets(artifact)
                if missing:
                    self._dangling[artifact_id] = missing
                else:
                    del self._dangling[artifact_id]
            self._settled = False
            self._touch(artifact_id)

        if self._logger:
            self._logger.debug(
                "artifact_replaced",
                artifact_id=artifact_id,
                kind=artifact.kind.value,
            )

    def remove(self, artifact_id: str) -> Artifact:
        """Remove an artifact.

        Every artifact referencing the removed one becomes dangling.

        Args:
            artifact_id: ID of the artifact to remove.

        Returns:
            The removed artifact.

        Raises:
            ArtifactNotFoundError: If no artifact has the ID.
        """
        with self._lock:
            artifact = self._artifacts.pop(artifact_id, None)
            if artifact is None:
                msg = f"Artifact not found: {artifact_id!r}"
                raise ArtifactNotFoundError(msg, artifact_id=artifact_id)

            del self._hashes[artifact_id]
            del self._sequence[artifact_id]
            del self._revision[artifact_id]
            self._dangling.pop(artifact_id, None)
            self._unlink(artifact)

            orphaned: list[str] = []
            for referrer in sorted(self._referrers.get(artifact_id, ())):
                self._dangling[referrer] = self._missing_targets(
                    self._artifacts[referrer]
                )
                orphaned.append(referrer)
            self._touch(artifact_id, *orphaned)

        if self._logger:
            self._logger.debug(
                "artifact_removed",
                artifact_id=artifact_id,
                orphaned=orphaned,
            )
        return artifact

    def settle(self) -> ValidationReport:
        """Resolve every relation in the store.

        Artifacts with unresolved relations become quarantined; artifacts
        whose relations all resolve are released.

        Returns:
            Validation report after resolution.
        """
        with self._lock:
            changed: list[str] = []
            for artifact_id, artifact in self._artifacts.items():
                missing = self._missing_targets(artifact)
                if missing:
                    if artifact_id not in self._dangling:
                        changed.append(artifact_id)
                    self._dangling[artifact_id] = missing
                elif artifact_id in self._dangling:
                    del self._dangling[artifact_id]
                    changed.append(artifact_id)
            if changed:
                self._touch(*changed)
            self._settled = True
            report = self.validation_report()

        if self._logger:
            self._logger.debug(
                "store_settled",
                artifacts=len(self._artifacts),
                quarantined=len(report.quarantined),
                dangling=len(report.dangling_relations),
            )
        return report

    # --- Quarantine of unparseable documents ---

    def quarantine_document(
        self,
        source: SourceLocation,
        error: ArtifactError,
        *,
        artifact_id: str | None = None,
    ) -> QuarantineEntry:
        """Record a source document that could not be admitted.

        Args:
            source: Location of the document.
            error: The parse failure or ID conflict.
            artifact_id: ID the document claims; derived from the path
                when not known.

        Returns:
            The quarantine entry recorded for the document.
        """
        entry = QuarantineEntry(
            id=artifact_id or derive_id(source), reason=str(error), source=source
        )
        with self._lock:
            self._rejected[source.path] = entry
            self._version += 1
        if self._logger:
            self._logger.debug(
                "document_quarantined",
                source=str(source),
                error=type(error).__name__,
                reason=str(error),
            )
        return entry

    def release_document(self, path: str) -> bool:
        """Clear the quarantine entry of a source document.

        Returns:
            True if the document was quarantined.
        """
        with self._lock:
            if self._rejected.pop(path, None) is None:
                return False
            self._version += 1
            return True

    # --- Diagnostics ---

    def validation_report(self) -> ValidationReport:
        """Build a report of quarantined documents and dangling relations.

        Dangling relations include pending forward references that have
        not been settled yet.
        """
        with self._lock:
            quarantined = list(self._rejected.values())
            quarantined.extend(
                QuarantineEntry(
                    id=artifact_id,
                    reason=f"Unresolved relations: {', '.join(missing)}",
                    source=self._artifacts[artifact_id].source,
                )
                for artifact_id, missing in self._dangling.items()
            )
            dangling = [
                DanglingRelation(id=referrer, missing_target=target)
                for target, referrers in self._referrers.items()
                if target not in self._artifacts
                for referrer in referrers
            ]

        quarantined.sort(key=lambda e: (e.id, e.source.path if e.source else ""))
        dangling.sort(key=lambda d: (d.id, d.missing_target))
        return ValidationReport(
            quarantined=tuple(quarantined),
            dangling_relations=tuple(dangling),
        )

    # --- Persistence ---

    def to_dict(self) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Convert store contents to a serializable dict."""
        with self._lock:
            return {
                "version": SNAPSHOT_FORMAT_VERSION,
                "settled": self._settled,
                "artifacts": [
                    {
                        "path": artifact.source.path if artifact.source else None,
                        "line": artifact.source.line if artifact.source else 1,
                        "document": serialize_artifact(artifact),
                    }
                    for artifact in (self._artifacts[i] for i in self.ids())
                ],
                "quarantined": [
                    {
                        "id": entry.id,
                        "reason": entry.reason,
                        "path": path,
                        "line": entry.source.line if entry.source else 1,
                    }
                    for path, entry in self._rejected.items()
                ],
            }

    def save(self, path: Path | str) -> None:
        """Persist the store to a JSON file.

        Args:
            path: Destination file; parent directories are created.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2))

    @classmethod
    def load(
        cls,
        path: Path | str,
        *,
        registry: SchemaRegistry | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> "ArtifactStore":
        """Load a store persisted with save().

        Documents are re-parsed, so a store saved by an older schema is
        validated again on load.

        Args:
            path: File written by save().
            registry: Schema registry (defaults to global).
            logger: Optional logger for the new store.

        Returns:
            New store with the persisted contents.

        Raises:
            ArtifactStoreError: If the file is not a store snapshot.
            ArtifactParseError: If a persisted document no longer parses.
        """
        path = Path(path)
        try:
            data = orjson.loads(path.read_bytes())
        except orjson.JSONDecodeError as e:
            msg = f"Invalid store snapshot: {path}"
            raise ArtifactStoreError(msg) from e

        if not isinstance(data, dict) or data.get("version") != SNAPSHOT_FORMAT_VERSION:
            msg = f"Unsupported store snapshot format: {path}"
            raise ArtifactStoreError(msg)

        store = cls(logger=logger)
        for entry in data.get("artifacts", []):
            source = SourceLocation(
                path=entry.get("path") or str(path), line=entry.get("line", 1)
            )
            store.insert(parse_artifact(entry["document"], source, registry=registry))

        with store.lock:
            for entry in data.get("quarantined", []):
                source = SourceLocation(path=entry["path"], line=entry.get("line", 1))
                store._rejected[entry["path"]] = QuarantineEntry(  # noqa: SLF001
                    id=entry["id"], reason=entry["reason"], source=source
                )

        if data.get("settled", True):
            _ = store.settle()
        _ = store.drain_changes()
        return store
