r"""Artifact parser.

This module turns a raw source document (YAML metadata block followed by a
Markdown body) into a typed, validated artifact. Parsing is a pure function
of the document text and its source location: it never touches a store and
never resolves relations beyond checking their identifier syntax.

Example:
    >>> from context1000.artifacts import parse_artifact
    >>> artifact = parse_artifact(
    ...     "---\nkind: decision\nid: d1\ntitle: Use event sourcing\n"
    ...     "status: accepted\n---\nWe append events.\n",
    ...     "docs/decisions/d1.md",
    ... )
    >>> artifact.kind, artifact.status
    (<ArtifactKind.DECISION: 'decision'>, 'accepted')
"""

from dataclasses import dataclass, replace
from typing import Any

from context1000.artifacts._metadata import (
    derive_id,
    infer_kind_from_path,
    split_frontmatter,
)
from context1000.artifacts._registry import SchemaRegistry
from context1000.artifacts._types import (
    ARTIFACT_CLASSES,
    Artifact,
    ArtifactKind,
    SourceLocation,
)
from context1000.artifacts._validator import (
    describe_type,
    require_string,
    validate_identifier,
    validate_string_list,
    validate_type_fields,
)
from context1000.exceptions import (
    ArtifactParseError,
    ParseErrorReason,
    UnknownKindError,
)

_COMMON_KEYS: frozenset[str] = frozenset({"title", "tags", "relations", "related"})


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Outcome of parsing one source document.

    Exactly one of artifact and error is set.

    Attributes:
        source: Location of the parsed document.
        artifact: The parsed artifact, on success.
        error: The parse failure, otherwise.
    """

    source: SourceLocation
    artifact: Artifact | None = None
    error: ArtifactParseError | None = None

    @property
    def ok(self) -> bool:
        """Whether the document parsed successfully."""
        return self.artifact is not None


def _as_location(source: SourceLocation | str) -> SourceLocation:
    if isinstance(source, SourceLocation):
        return source
    return SourceLocation(path=str(source))


def _resolve_kind(
    data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    source: SourceLocation,
    registry: SchemaRegistry,
) -> tuple[ArtifactKind, str | None]:
    """Resolve the artifact kind and the metadata key it came from."""
    key = "kind" if "kind" in data else ("type" if "type" in data else None)
    raw_kind = data.get(key) if key else None

    if raw_kind is None or (isinstance(raw_kind, str) and not raw_kind.strip()):
        # Documents kept in a kind directory may omit the kind
        inferred = infer_kind_from_path(source)
        if inferred is None:
            msg = "Missing artifact kind"
            raise ArtifactParseError(
                msg,
                reason=ParseErrorReason.UNKNOWN_KIND,
                field="kind",
                source=str(source),
            )
        return inferred, key

    try:
        return registry.resolve_kind(raw_kind), key
    except UnknownKindError as e:
        raise ArtifactParseError(
            str(e),
            reason=ParseErrorReason.UNKNOWN_KIND,
            field=key,
            actual=repr(raw_kind),
            source=str(source),
        ) from e


def _collect_relations(
    data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    where: str,
) -> list[str]:
    """Collect flat and grouped relations in document order."""
    relations = list(validate_string_list("relations", data.get("relations"), source=where))

    related = data.get("related")
    if related is not None:
        if not isinstance(related, dict):
            actual = describe_type(related)
            msg = f"Invalid type for 'related': expected object, got {actual}"
            raise ArtifactParseError(
                msg,
                reason=ParseErrorReason.INVALID_FIELD_TYPE,
                field="related",
                expected="object",
                actual=actual,
                source=where,
            )
        for group, targets in related.items():
            relations.extend(
                validate_string_list(f"related.{group}", targets, source=where)
            )

    for target in relations:
        validate_identifier("relations", target, source=where)
    return relations


def parse_artifact(
    raw: str,
    source: SourceLocation | str,
    *,
    registry: SchemaRegistry | None = None,
) -> Artifact:
    """Parse a raw document into a validated artifact.

    Validation order: metadata block, kind, id, title, tags, relations,
    then kind-specific fields in schema order.

    Args:
        raw: Document text.
        source: Location of the document (path or SourceLocation).
        registry: Schema registry (defaults to global).

    Returns:
        The parsed artifact, an instance of the kind's dataclass.

    Raises:
        ArtifactParseError: If the document cannot be turned into a valid
            artifact. The reason tells which check failed.
    """
    location = _as_location(source)
    where = str(location)
    if registry is None:
        registry = SchemaRegistry.get_instance()

    data, body, line = split_frontmatter(raw, location)
    location = replace(location, line=location.line + line - 1)

    kind, kind_key = _resolve_kind(data, location, registry)
    schema = registry.describe(kind)

    id_key = "id" if "id" in data else ("name" if "name" in data else None)
    if id_key is None:
        artifact_id = derive_id(location)
    else:
        artifact_id = validate_identifier(id_key, data[id_key], source=where)

    title = require_string("title", data.get("title"), source=where)
    tags = validate_string_list("tags", data.get("tags"), source=where)
    relations = _collect_relations(data, where)

    type_values = validate_type_fields(schema, data, source=where)
    supersedes = type_values.get("supersedes")
    if supersedes is not None:
        validate_identifier("supersedes", supersedes, source=where)
        relations.append(supersedes)

    consumed = _COMMON_KEYS | {f.name for f in schema.type_fields}
    consumed |= {key for key in (kind_key, id_key) if key is not None}
    extra = {key: value for key, value in data.items() if key not in consumed}

    artifact_class = ARTIFACT_CLASSES[kind]
    return artifact_class(
        id=artifact_id,
        title=title,
        tags=tags,
        relations=tuple(dict.fromkeys(relations)),
        body=body,
        extra=extra,
        source=location,
        **type_values,
    )


def try_parse_artifact(
    raw: str,
    source: SourceLocation | str,
    *,
    registry: SchemaRegistry | None = None,
) -> ParseResult:
    """Parse a raw document, capturing failure as a value.

    Args:
        raw: Document text.
        source: Location of the document.
        registry: Schema registry (defaults to global).

    Returns:
        ParseResult holding either the artifact or the parse error.
    """
    location = _as_location(source)
    try:
        artifact = parse_artifact(raw, location, registry=registry)
    except ArtifactParseError as e:
        return ParseResult(source=location, error=e)
    return ParseResult(source=artifact.source or location, artifact=artifact)
