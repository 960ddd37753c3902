"""Data classes and type definitions for the artifact system.

This module defines the core data structures used throughout the artifact system:
- ArtifactKind, the closed set of artifact kinds
- TypeField and KindSchema for per-kind field specifications
- One frozen dataclass per kind (DecisionArtifact, RuleArtifact, GuideArtifact,
  ProjectArtifact) and the Artifact union over them
- QuarantineEntry, DanglingRelation and ValidationReport for corpus health
- KIND_SCHEMAS tuple containing the schema of every kind
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import date
from enum import StrEnum
from types import MappingProxyType
from typing import Any, ClassVar


class ArtifactKind(StrEnum):
    """Closed set of artifact kinds."""

    DECISION = "decision"
    RULE = "rule"
    GUIDE = "guide"
    PROJECT = "project"


@dataclass(frozen=True, slots=True)
class TypeField:
    """Definition of a kind-specific metadata field.

    Attributes:
        name: Field name in metadata.
        field_type: Type of the field (string, integer, boolean, date, array, object).
        description: Brief description of the field's purpose.
        required: Whether this field is required for the artifact kind.
        allowed_values: Optional tuple of allowed values for enum-like fields.
    """

    name: str
    field_type: str
    description: str
    required: bool = False
    allowed_values: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class KindSchema:
    """Field specification of an artifact kind.

    Attributes:
        kind: The artifact kind described.
        description: Brief description of the kind.
        directory: Conventional folder name for documents of this kind.
        type_fields: Kind-specific metadata fields, in validation order.
    """

    kind: ArtifactKind
    description: str
    directory: str
    type_fields: tuple[TypeField, ...] = ()

    @property
    def required_fields(self) -> tuple[str, ...]:
        """Names of the required kind-specific fields."""
        return tuple(f.name for f in self.type_fields if f.required)

    @property
    def optional_fields(self) -> tuple[str, ...]:
        """Names of the optional kind-specific fields."""
        return tuple(f.name for f in self.type_fields if not f.required)

    def get_field(self, name: str) -> TypeField | None:
        """Get a kind-specific field specification by name."""
        for type_field in self.type_fields:
            if type_field.name == name:
                return type_field
        return None


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """Handle back to the document an artifact was parsed from.

    Attributes:
        path: Path of the source document, as given by the caller.
        line: Line where the artifact's metadata block starts.
    """

    path: str
    line: int = 1

    def __str__(self) -> str:
        return f"{self.path}:{self.line}"


# =============================================================================
# Artifact Variants
# =============================================================================


@dataclass(frozen=True, slots=True, kw_only=True)
class _ArtifactBase:
    """Fields shared by every artifact kind.

    Attributes:
        id: Stable identifier, unique within a store.
        title: Human-readable title.
        tags: Tags for categorical lookup, in order of first appearance.
        relations: IDs of related artifacts (non-owning references).
        body: Free-text content following the metadata block.
        extra: Unrecognized metadata keys, preserved verbatim.
        source: Location of the originating document (diagnostics only).
    """

    kind: ClassVar[ArtifactKind]

    id: str
    title: str
    tags: tuple[str, ...] = ()
    relations: tuple[str, ...] = ()
    body: str = ""
    extra: Mapping[str, Any] = field(default_factory=dict)  # pyright: ignore[reportExplicitAny]
    source: SourceLocation | None = field(default=None, compare=False)

    @property
    def metadata(self) -> Mapping[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Kind-specific fields that are set, followed by extra keys."""
        values: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
        for f in fields(self):
            if f.name in _COMMON_FIELDS:
                continue
            value = getattr(self, f.name)
            if value is None or value == ():
                continue
            values[f.name] = value
        values.update(self.extra)
        return MappingProxyType(values)


@dataclass(frozen=True, slots=True, kw_only=True)
class DecisionArtifact(_ArtifactBase):
    """Documented architectural choice (ADR-style).

    Attributes:
        status: Decision status (proposed, accepted, superseded).
        decision_date: When the decision was made.
        deciders: Who made the decision.
        supersedes: ID of the decision this one replaces.
    """

    kind: ClassVar[ArtifactKind] = ArtifactKind.DECISION

    status: str
    decision_date: date | None = None
    deciders: tuple[str, ...] = ()
    supersedes: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class RuleArtifact(_ArtifactBase):
    """Constraint that code or agents must respect.

    Attributes:
        severity: How strongly the rule applies.
        scope: What the rule covers.
        enforced: Whether tooling enforces the rule.
    """

    kind: ClassVar[ArtifactKind] = ArtifactKind.RULE

    severity: str
    scope: str | None = None
    enforced: bool | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class GuideArtifact(_ArtifactBase):
    """How-to or explanatory material."""

    kind: ClassVar[ArtifactKind] = ArtifactKind.GUIDE

    audience: str | None = None
    level: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ProjectArtifact(_ArtifactBase):
    """Project-level metadata."""

    kind: ClassVar[ArtifactKind] = ArtifactKind.PROJECT

    owner: str
    repository: str | None = None
    stack: tuple[str, ...] = ()


type Artifact = DecisionArtifact | RuleArtifact | GuideArtifact | ProjectArtifact

ARTIFACT_CLASSES: Mapping[ArtifactKind, type[Artifact]] = MappingProxyType(
    {
        ArtifactKind.DECISION: DecisionArtifact,
        ArtifactKind.RULE: RuleArtifact,
        ArtifactKind.GUIDE: GuideArtifact,
        ArtifactKind.PROJECT: ProjectArtifact,
    }
)
"""Dataclass implementing each artifact kind."""

_COMMON_FIELDS: frozenset[str] = frozenset(
    {"id", "title", "tags", "relations", "body", "extra", "source"}
)


# =============================================================================
# Validation Report
# =============================================================================


@dataclass(frozen=True, slots=True)
class QuarantineEntry:
    """An artifact or document excluded from the index.

    Attributes:
        id: Artifact ID (or the ID derived from the source path).
        reason: Human-readable reason for the quarantine.
        source: Location of the offending document, if known.
    """

    id: str
    reason: str
    source: SourceLocation | None = None


@dataclass(frozen=True, slots=True)
class DanglingRelation:
    """A relation whose target does not exist in the store."""

    id: str
    missing_target: str


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Corpus health at a point in time.

    Attributes:
        quarantined: Documents and artifacts excluded from queries, sorted by ID.
        dangling_relations: Unresolved relations, sorted by (id, target).
    """

    quarantined: tuple[QuarantineEntry, ...] = ()
    dangling_relations: tuple[DanglingRelation, ...] = ()

    @property
    def is_clean(self) -> bool:
        """Whether the report contains no issues."""
        return not self.quarantined and not self.dangling_relations

    def to_dict(self) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Convert report to the JSON shape of the diagnostics API."""
        return {
            "quarantined": [
                {"id": entry.id, "reason": entry.reason} for entry in self.quarantined
            ],
            "danglingRelations": [
                {"id": d.id, "missingTarget": d.missing_target}
                for d in self.dangling_relations
            ],
        }


# =============================================================================
# Kind Schemas
# =============================================================================

_DECISION_SCHEMA = KindSchema(
    kind=ArtifactKind.DECISION,
    description="Documented architectural choice",
    directory="decisions",
    type_fields=(
        TypeField(
            name="status",
            field_type="string",
            description="Decision status",
            required=True,
            allowed_values=("proposed", "accepted", "superseded"),
        ),
        TypeField(
            name="decision_date",
            field_type="date",
            description="When decision was made",
        ),
        TypeField(
            name="deciders",
            field_type="array",
            description="Who made the decision",
        ),
        TypeField(
            name="supersedes",
            field_type="string",
            description="ID of the decision this one replaces",
        ),
    ),
)

_RULE_SCHEMA = KindSchema(
    kind=ArtifactKind.RULE,
    description="Constraint that code or agents must respect",
    directory="rules",
    type_fields=(
        TypeField(
            name="severity",
            field_type="string",
            description="How strongly the rule applies",
            required=True,
            allowed_values=("info", "warning", "error", "critical"),
        ),
        TypeField(
            name="scope",
            field_type="string",
            description="What the rule covers",
        ),
        TypeField(
            name="enforced",
            field_type="boolean",
            description="Whether tooling enforces the rule",
        ),
    ),
)

_GUIDE_SCHEMA = KindSchema(
    kind=ArtifactKind.GUIDE,
    description="How-to or explanatory material",
    directory="guides",
    type_fields=(
        TypeField(
            name="audience",
            field_type="string",
            description="Intended readers",
        ),
        TypeField(
            name="level",
            field_type="string",
            description="Difficulty level",
            allowed_values=("beginner", "intermediate", "advanced"),
        ),
    ),
)

_PROJECT_SCHEMA = KindSchema(
    kind=ArtifactKind.PROJECT,
    description="Project-level metadata",
    directory="projects",
    type_fields=(
        TypeField(
            name="owner",
            field_type="string",
            description="Owning team or person",
            required=True,
        ),
        TypeField(
            name="repository",
            field_type="string",
            description="Source repository URL",
        ),
        TypeField(
            name="stack",
            field_type="array",
            description="Main technologies used",
        ),
    ),
)

KIND_SCHEMAS: tuple[KindSchema, ...] = (
    _DECISION_SCHEMA,
    _RULE_SCHEMA,
    _GUIDE_SCHEMA,
    _PROJECT_SCHEMA,
)
"""Schemas of all artifact kinds, in canonical kind order."""
