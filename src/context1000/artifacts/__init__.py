r"""Architectural artifact model for context1000.

This module turns Markdown documents with YAML frontmatter into typed
artifacts (decisions, rules, guides, projects), keeps them in an in-memory
store keyed by ID, and answers queries through a derived index.

The artifact system provides:
- A closed, read-only schema registry of the four artifact kinds
- A pure parser with a canonical serializer (parse/serialize round-trip)
- A store that enforces ID uniqueness and tracks relation integrity
- An immutable index updated incrementally from store changes
- A query engine with deterministic ordering

Example:
    >>> from context1000.artifacts import (
    ...     ArtifactIndex, ArtifactQuery, ArtifactStore, QueryEngine, parse_artifact
    ... )
    >>> store = ArtifactStore()
    >>> store.insert(
    ...     parse_artifact(
    ...         "---\nkind: decision\nid: d1\ntitle: Use event sourcing\n"
    ...         "status: accepted\n---\n",
    ...         "docs/decisions/d1.md",
    ...     )
    ... )
    >>> report = store.settle()
    >>> index = ArtifactIndex.build(store.snapshot())
    >>> results = QueryEngine().query(
    ...     index, store.snapshot(), ArtifactQuery(kind="decision")
    ... )
    >>> [a.id for a in results]
    ['d1']
"""

from context1000.artifacts._index import ArtifactIndex, IndexEntry, tokenize
from context1000.artifacts._metadata import (
    artifact_to_dict,
    content_hash,
    derive_id,
    generate_slug,
    infer_kind_from_path,
    is_valid_identifier,
    serialize_artifact,
    split_frontmatter,
)
from context1000.artifacts._parser import ParseResult, parse_artifact, try_parse_artifact
from context1000.artifacts._query import (
    ArtifactQuery,
    ArtifactSummary,
    OrderBy,
    QueryEngine,
    summarize,
)
from context1000.artifacts._registry import SchemaRegistry
from context1000.artifacts._store import ArtifactStore, StoreSnapshot
from context1000.artifacts._types import (
    ARTIFACT_CLASSES,
    KIND_SCHEMAS,
    Artifact,
    ArtifactKind,
    DanglingRelation,
    DecisionArtifact,
    GuideArtifact,
    KindSchema,
    ProjectArtifact,
    QuarantineEntry,
    RuleArtifact,
    SourceLocation,
    TypeField,
    ValidationReport,
)
from context1000.artifacts._validator import (
    find_dangling_relations,
    validate_type_fields,
)

__all__ = [
    "ARTIFACT_CLASSES",
    "KIND_SCHEMAS",
    "Artifact",
    "ArtifactIndex",
    "ArtifactKind",
    "ArtifactQuery",
    "ArtifactStore",
    "ArtifactSummary",
    "DanglingRelation",
    "DecisionArtifact",
    "GuideArtifact",
    "IndexEntry",
    "KindSchema",
    "OrderBy",
    "ParseResult",
    "ProjectArtifact",
    "QuarantineEntry",
    "QueryEngine",
    "RuleArtifact",
    "SchemaRegistry",
    "SourceLocation",
    "StoreSnapshot",
    "TypeField",
    "ValidationReport",
    "artifact_to_dict",
    "content_hash",
    "derive_id",
    "find_dangling_relations",
    "generate_slug",
    "infer_kind_from_path",
    "is_valid_identifier",
    "parse_artifact",
    "serialize_artifact",
    "split_frontmatter",
    "summarize",
    "tokenize",
    "try_parse_artifact",
]
