"""Query engine over an artifact index.

This module provides the ArtifactQuery model describing a catalog query, the
QueryEngine that evaluates it against an ArtifactIndex and StoreSnapshot,
and the ArtifactSummary returned to callers.

Queries are read-only: evaluating one never mutates the index, the snapshot
or the store.

Example:
    >>> engine = QueryEngine()
    >>> query = ArtifactQuery.model_validate({"kind": "decision", "orderBy": "id"})
    >>> [a.id for a in engine.query(index, snapshot, query)]
    ['d1', 'd2']
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from context1000.artifacts._index import ArtifactIndex, normalize_tag, tokenize
from context1000.artifacts._registry import SchemaRegistry
from context1000.artifacts._store import StoreSnapshot
from context1000.artifacts._types import Artifact, ArtifactKind


class OrderBy(StrEnum):
    """Result orderings; every ordering breaks ties by ascending ID."""

    INSERTION = "insertion"
    ID = "id"
    TITLE = "title"
    RECENCY = "recency"


class ArtifactQuery(BaseModel):
    """A catalog query. All given filters must match.

    Attributes:
        kind: Only artifacts of this kind.
        tags: Only artifacts carrying every one of these tags.
        relates_to: Only artifacts whose relations include this ID.
        text: Only artifacts whose title or body contain every token; text
            without any word is rejected.
        order_by: Result ordering.
        limit: Maximum number of results.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(
        frozen=True, extra="forbid", populate_by_name=True
    )

    kind: ArtifactKind | None = None
    tags: tuple[str, ...] = ()
    relates_to: str | None = Field(default=None, alias="relatesTo")
    text: str | None = None
    order_by: OrderBy = Field(default=OrderBy.INSERTION, alias="orderBy")
    limit: int | None = Field(default=None, ge=1)

    @field_validator("kind", mode="before")
    @classmethod
    def _resolve_kind(cls, value: object) -> object:
        if value is None or isinstance(value, ArtifactKind):
            return value
        return SchemaRegistry.get_instance().resolve_kind(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _single_tag(cls, value: object) -> object:
        if isinstance(value, str):
            return (value,)
        return value

    @field_validator("text")
    @classmethod
    def _has_tokens(cls, value: str | None) -> str | None:
        if value is not None and not tokenize(value):
            msg = "text must contain at least one word"
            raise ValueError(msg)
        return value


@dataclass(frozen=True, slots=True)
class ArtifactSummary:
    """Compact description of an artifact returned by queries.

    Attributes:
        id: Artifact ID.
        kind: Artifact kind.
        title: Artifact title.
        tags: Artifact tags.
        relations: IDs the artifact relates to.
    """

    id: str
    kind: ArtifactKind
    title: str
    tags: tuple[str, ...] = ()
    relations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Convert to a JSON-ready dict."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "tags": list(self.tags),
            "relations": list(self.relations),
        }


def summarize(artifact: Artifact) -> ArtifactSummary:
    """Build the query summary of an artifact."""
    return ArtifactSummary(
        id=artifact.id,
        kind=artifact.kind,
        title=artifact.title,
        tags=artifact.tags,
        relations=artifact.relations,
    )


class QueryEngine:
    """Evaluates ArtifactQuery objects against an index.

    Attributes:
        _default_limit: Limit applied when a query gives none.
        _max_limit: Upper bound on any limit; None means unbounded.
    """

    __slots__ = ("_default_limit", "_max_limit")

    def __init__(
        self,
        *,
        default_limit: int | None = None,
        max_limit: int | None = None,
    ) -> None:
        self._default_limit = default_limit
        self._max_limit = max_limit

    def _effective_limit(self, limit: int | None) -> int | None:
        if limit is None:
            limit = self._default_limit
        if self._max_limit is not None:
            limit = self._max_limit if limit is None else min(limit, self._max_limit)
        return limit

    def _candidates(self, index: ArtifactIndex, query: ArtifactQuery) -> set[str]:
        """Intersect the filter sets of a query, narrowest lookups first."""
        candidates: set[str] | None = None

        def narrow(ids: frozenset[str] | tuple[str, ...]) -> None:
            nonlocal candidates
            candidates = set(ids) if candidates is None else candidates & set(ids)

        if query.relates_to is not None:
            narrow(index.referencing(query.relates_to))
        for tag in query.tags:
            if normalize_tag(tag):
                narrow(index.by_tag(tag))
        if query.text is not None:
            for token in tokenize(query.text):
                narrow(index.by_token(token))
        if query.kind is not None:
            narrow(index.by_kind(query.kind))

        if candidates is None:
            return set(index.ids())
        return candidates

    def query(
        self,
        index: ArtifactIndex,
        snapshot: StoreSnapshot,
        query: ArtifactQuery,
    ) -> list[Artifact]:
        """Run a query.

        Args:
            index: Index to search.
            snapshot: Snapshot the index was built from.
            query: Query to evaluate.

        Returns:
            Matching artifacts in the requested order, at most limit of them.
            Quarantined artifacts are never returned.
        """
        candidates = [
            artifact_id
            for artifact_id in self._candidates(index, query)
            if snapshot.is_visible(artifact_id)
        ]

        match query.order_by:
            case OrderBy.INSERTION:
                candidates.sort(key=lambda i: (snapshot.sequence[i], i))
            case OrderBy.ID:
                candidates.sort()
            case OrderBy.TITLE:
                candidates.sort(key=lambda i: (snapshot.artifacts[i].title.casefold(), i))
            case OrderBy.RECENCY:
                candidates.sort(key=lambda i: (-snapshot.revision[i], i))

        limit = self._effective_limit(query.limit)
        if limit is not None:
            candidates = candidates[:limit]
        return [snapshot.artifacts[i] for i in candidates]
