"""Artifact index for fast lookups.

This module provides the ArtifactIndex class, the derived query structures
built from a StoreSnapshot: lookup by kind, by tag, by relation target and
by full-text token. Only visible (non-quarantined) artifacts are indexed.

An index is never modified after construction. update() derives a new index
from an old one by recomputing only the entries of the changed artifacts, so
a reader holding the old index keeps a consistent view.

Example:
    >>> index = ArtifactIndex.build(store.snapshot())
    >>> index.by_kind("decision")
    ('d1', 'd2')
    >>> index.referencing("d1")
    frozenset({'d2'})
    >>> index = ArtifactIndex.update(index, store.drain_changes(), store.snapshot())
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from context1000.artifacts._store import StoreSnapshot
from context1000.artifacts._types import Artifact, ArtifactKind

_TOKEN_PATTERN = re.compile(r"[^\W_]+")
"""Runs of letters and digits; whitespace, punctuation and underscores split."""


def tokenize(text: str) -> list[str]:
    """Split text into lowercase tokens.

    Example:
        >>> tokenize("Use Event-Sourcing (v2)!")
        ['use', 'event', 'sourcing', 'v2']
    """
    return _TOKEN_PATTERN.findall(text.casefold())


def normalize_tag(tag: str) -> str:
    """Normalize a tag for case-insensitive lookup."""
    return tag.strip().casefold()


@dataclass(frozen=True, slots=True)
class IndexEntry:
    """Indexed facts about one artifact.

    Attributes:
        kind: Artifact kind.
        sequence: Insertion order number.
        tags: Normalized tags.
        relations: Relation targets.
        tokens: Full-text tokens of title and body.
    """

    kind: ArtifactKind
    sequence: int
    tags: frozenset[str]
    relations: frozenset[str]
    tokens: frozenset[str]

    @classmethod
    def from_artifact(cls, artifact: Artifact, sequence: int) -> "IndexEntry":
        """Derive the index entry of an artifact."""
        return cls(
            kind=artifact.kind,
            sequence=sequence,
            tags=frozenset(normalize_tag(t) for t in artifact.tags if t.strip()),
            relations=frozenset(artifact.relations),
            tokens=frozenset(tokenize(artifact.title)) | frozenset(tokenize(artifact.body)),
        )


def _discard(
    buckets: dict[str, frozenset[str]],
    keys: Iterable[str],
    artifact_id: str,
) -> None:
    for key in keys:
        remaining = buckets.get(key, frozenset()) - {artifact_id}
        if remaining:
            buckets[key] = remaining
        else:
            buckets.pop(key, None)


def _add(
    buckets: dict[str, frozenset[str]],
    keys: Iterable[str],
    artifact_id: str,
) -> None:
    for key in keys:
        buckets[key] = buckets.get(key, frozenset()) | {artifact_id}


class ArtifactIndex:
    """Immutable lookup structures over the visible artifacts of a snapshot.

    Attributes:
        _version: Store version the index reflects.
        _entries: Artifact ID -> index entry.
        _by_kind: Kind -> IDs in insertion order.
        _by_tag: Normalized tag -> IDs.
        _by_target: Relation target -> IDs referencing it.
        _by_token: Token -> IDs whose title or body contain it.
    """

    __slots__ = ("_by_kind", "_by_tag", "_by_target", "_by_token", "_entries", "_version")

    def __init__(
        self,
        *,
        version: int = 0,
        entries: dict[str, IndexEntry] | None = None,
        by_kind: dict[ArtifactKind, tuple[str, ...]] | None = None,
        by_tag: dict[str, frozenset[str]] | None = None,
        by_target: dict[str, frozenset[str]] | None = None,
        by_token: dict[str, frozenset[str]] | None = None,
    ) -> None:
        """Initialize from precomputed structures.

        Note:
            Use build() or update() rather than calling this directly.
        """
        self._version = version
        self._entries: Mapping[str, IndexEntry] = MappingProxyType(entries or {})
        self._by_kind: Mapping[ArtifactKind, tuple[str, ...]] = MappingProxyType(
            by_kind or {}
        )
        self._by_tag: Mapping[str, frozenset[str]] = MappingProxyType(by_tag or {})
        self._by_target: Mapping[str, frozenset[str]] = MappingProxyType(
            by_target or {}
        )
        self._by_token: Mapping[str, frozenset[str]] = MappingProxyType(by_token or {})

    # --- Construction ---

    @classmethod
    def build(cls, snapshot: StoreSnapshot) -> "ArtifactIndex":
        """Build an index over every visible artifact of a snapshot.

        Args:
            snapshot: Store snapshot to index.

        Returns:
            New index.
        """
        entries: dict[str, IndexEntry] = {}
        by_kind: dict[ArtifactKind, list[str]] = {}
        by_tag: dict[str, frozenset[str]] = {}
        by_target: dict[str, frozenset[str]] = {}
        by_token: dict[str, frozenset[str]] = {}

        for artifact in snapshot.visible():
            entry = IndexEntry.from_artifact(artifact, snapshot.sequence[artifact.id])
            entries[artifact.id] = entry
            by_kind.setdefault(entry.kind, []).append(artifact.id)
            _add(by_tag, entry.tags, artifact.id)
            _add(by_target, entry.relations, artifact.id)
            _add(by_token, entry.tokens, artifact.id)

        return cls(
            version=snapshot.version,
            entries=entries,
            by_kind={kind: tuple(ids) for kind, ids in by_kind.items()},
            by_tag=by_tag,
            by_target=by_target,
            by_token=by_token,
        )

    @classmethod
    def update(
        cls,
        index: "ArtifactIndex",
        changed_ids: Iterable[str],
        snapshot: StoreSnapshot,
    ) -> "ArtifactIndex":
        """Derive a new index by recomputing only the changed artifacts.

        The result equals build(snapshot) provided changed_ids covers every
        artifact whose content or visibility changed since the old index.

        Args:
            index: Index to start from; it is not modified.
            changed_ids: IDs of inserted, replaced, removed, or re-validated
                artifacts.
            snapshot: Store snapshot after the changes.

        Returns:
            New index.
        """
        entries = dict(index._entries)  # noqa: SLF001
        by_tag = dict(index._by_tag)  # noqa: SLF001
        by_target = dict(index._by_target)  # noqa: SLF001
        by_token = dict(index._by_token)  # noqa: SLF001
        kind_members: dict[ArtifactKind, dict[str, int]] = {}

        def members(kind: ArtifactKind) -> dict[str, int]:
            if kind not in kind_members:
                kind_members[kind] = {
                    i: index._entries[i].sequence  # noqa: SLF001
                    for i in index._by_kind.get(kind, ())  # noqa: SLF001
                }
            return kind_members[kind]

        for artifact_id in sorted(set(changed_ids)):
            old = entries.pop(artifact_id, None)
            if old is not None:
                members(old.kind).pop(artifact_id, None)
                _discard(by_tag, old.tags, artifact_id)
                _discard(by_target, old.relations, artifact_id)
                _discard(by_token, old.tokens, artifact_id)

            if not snapshot.is_visible(artifact_id):
                continue

            artifact = snapshot.artifacts[artifact_id]
            new = IndexEntry.from_artifact(artifact, snapshot.sequence[artifact_id])
            entries[artifact_id] = new
            members(new.kind)[artifact_id] = new.sequence
            _add(by_tag, new.tags, artifact_id)
            _add(by_target, new.relations, artifact_id)
            _add(by_token, new.tokens, artifact_id)

        by_kind = dict(index._by_kind)  # noqa: SLF001
        for kind, ids in kind_members.items():
            if ids:
                by_kind[kind] = tuple(sorted(ids, key=ids.__getitem__))
            else:
                by_kind.pop(kind, None)

        return cls(
            version=snapshot.version,
            entries=entries,
            by_kind=by_kind,
            by_tag=by_tag,
            by_target=by_target,
            by_token=by_token,
        )

    # --- Lookups ---

    @property
    def version(self) -> int:
        """Store version the index reflects."""
        return self._version

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, artifact_id: object) -> bool:
        return artifact_id in self._entries

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArtifactIndex):
            return NotImplemented
        return (
            self._entries == other._entries
            and self._by_kind == other._by_kind
            and self._by_tag == other._by_tag
            and self._by_target == other._by_target
            and self._by_token == other._by_token
        )

    __hash__ = None  # type: ignore[assignment]

    def ids(self) -> frozenset[str]:
        """Get the IDs of every indexed artifact."""
        return frozenset(self._entries)

    def entry(self, artifact_id: str) -> IndexEntry | None:
        """Get the index entry of an artifact."""
        return self._entries.get(artifact_id)

    def by_kind(self, kind: ArtifactKind | str) -> tuple[str, ...]:
        """Get IDs of a kind in insertion order.

        Args:
            kind: Artifact kind (or its value, e.g. "rule").
        """
        return self._by_kind.get(ArtifactKind(kind), ())

    def by_tag(self, tag: str) -> frozenset[str]:
        """Get IDs carrying a tag (case-insensitive)."""
        return self._by_tag.get(normalize_tag(tag), frozenset())

    def referencing(self, target_id: str) -> frozenset[str]:
        """Get IDs of artifacts whose relations include a target."""
        return self._by_target.get(target_id, frozenset())

    def by_token(self, token: str) -> frozenset[str]:
        """Get IDs whose title or body contain a token (case-insensitive)."""
        return self._by_token.get(token.casefold(), frozenset())

    def tags(self) -> list[str]:
        """Get all indexed tags, sorted."""
        return sorted(self._by_tag)
