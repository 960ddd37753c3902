"""Metadata block splitting and canonical serialization.

This module splits source documents into their YAML frontmatter and body,
serializes artifacts back into the canonical document encoding, and provides
utilities for identifiers, slugs and content hashes.
"""

import hashlib
import re
from collections.abc import Mapping
from dataclasses import fields
from pathlib import PurePath
from typing import Any

import yaml

from context1000.artifacts._types import Artifact, ArtifactKind, SourceLocation
from context1000.exceptions import ArtifactParseError, ParseErrorReason

# =============================================================================
# Constants
# =============================================================================

FRONTMATTER_DELIMITER = "---"
"""Line opening and closing the metadata block."""

MAX_IDENTIFIER_LENGTH = 200
"""Maximum length of an artifact identifier."""

# =============================================================================
# Regex Patterns
# =============================================================================

_IDENTIFIER_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._:-]*")
"""Pattern for artifact identifiers (e.g., use-event-sourcing, ADR-0001)."""

_SLUG_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
"""Pattern matching characters invalid in slugs."""

_SLUG_MULTIPLE_HYPHENS = re.compile(r"-+")
"""Pattern matching multiple consecutive hyphens."""

# =============================================================================
# ID Utilities
# =============================================================================


def is_valid_identifier(value: object) -> bool:
    """Check whether a value is a syntactically valid artifact identifier.

    Example:
        >>> is_valid_identifier("use-event-sourcing")
        True
        >>> is_valid_identifier("not an id")
        False
    """
    return (
        isinstance(value, str)
        and len(value) <= MAX_IDENTIFIER_LENGTH
        and _IDENTIFIER_PATTERN.fullmatch(value) is not None
    )


def generate_slug(title: str, max_length: int = 50) -> str:
    """Generate URL-safe slug from title.

    Args:
        title: Human-readable title or file stem.
        max_length: Maximum slug length (default 50).

    Returns:
        Slug string (lowercase, alphanumeric, hyphens).

    Example:
        >>> generate_slug("Use Event Sourcing")
        'use-event-sourcing'
    """
    slug = title.lower()

    # Replace spaces, underscores and dots with hyphens
    slug = slug.replace(" ", "-").replace("_", "-").replace(".", "-")

    slug = _SLUG_INVALID_CHARS.sub("", slug)
    slug = _SLUG_MULTIPLE_HYPHENS.sub("-", slug)
    slug = slug.strip("-")

    # Truncate to max length, but don't cut mid-word if possible
    if len(slug) > max_length:
        slug = slug[:max_length]
        last_hyphen = slug.rfind("-")
        if last_hyphen > max_length // 2:
            slug = slug[:last_hyphen]
        slug = slug.rstrip("-")

    if not slug:
        slug = "untitled"

    return slug


def derive_id(source: SourceLocation | str) -> str:
    """Derive an artifact ID from a source document path.

    Args:
        source: Source location or path.

    Returns:
        Slug of the file stem.

    Example:
        >>> derive_id("docs/decisions/Use_Event_Sourcing.md")
        'use-event-sourcing'
    """
    path = source.path if isinstance(source, SourceLocation) else source
    return generate_slug(PurePath(path).stem)


def infer_kind_from_path(source: SourceLocation | str) -> ArtifactKind | None:
    """Infer an artifact kind from the directories of a source path.

    The closest enclosing directory named after a kind (singular or plural)
    wins.

    Example:
        >>> infer_kind_from_path("docs/rules/no-orm.md")
        <ArtifactKind.RULE: 'rule'>
    """
    path = source.path if isinstance(source, SourceLocation) else source
    names = {kind.value: kind for kind in ArtifactKind}
    names.update({f"{kind.value}s": kind for kind in ArtifactKind})
    for part in reversed(PurePath(path).parent.parts):
        kind = names.get(part.lower())
        if kind is not None:
            return kind
    return None


# =============================================================================
# Frontmatter Splitting
# =============================================================================


def split_frontmatter(
    content: str,
    source: SourceLocation | None = None,
) -> tuple[dict[str, Any], str, int]:  # pyright: ignore[reportExplicitAny]
    """Split a document into its metadata mapping and body.

    Args:
        content: Raw document text.
        source: Location used in error messages.

    Returns:
        Tuple of (metadata, body, line where the metadata block starts).

    Raises:
        ArtifactParseError: With reason MALFORMED_METADATA if the block is
            missing, unclosed, not valid YAML, or not a mapping.

    Example:
        >>> data, body, line = split_frontmatter("---\\ntitle: X\\n---\\nBody\\n")
        >>> data, body, line
        ({'title': 'X'}, 'Body', 1)
    """
    where = str(source) if source is not None else None
    lines = content.removeprefix("\ufeff").replace("\r\n", "\n").split("\n")

    # Leading blank lines are tolerated before the opening delimiter
    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1

    if start >= len(lines) or lines[start].rstrip() != FRONTMATTER_DELIMITER:
        msg = "Metadata block must start with '---'"
        raise ArtifactParseError(
            msg, reason=ParseErrorReason.MALFORMED_METADATA, source=where
        )

    end = None
    for i in range(start + 1, len(lines)):
        if lines[i].rstrip() in (FRONTMATTER_DELIMITER, "..."):
            end = i
            break
    if end is None:
        msg = "Metadata block closing '---' not found"
        raise ArtifactParseError(
            msg, reason=ParseErrorReason.MALFORMED_METADATA, source=where
        )

    frontmatter_str = "\n".join(lines[start + 1 : end])
    body = "\n".join(lines[end + 1 :]).strip("\n")

    try:
        data = yaml.safe_load(frontmatter_str)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in metadata block: {e}"
        raise ArtifactParseError(
            msg, reason=ParseErrorReason.MALFORMED_METADATA, source=where
        ) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = "Metadata block must be a YAML mapping"
        raise ArtifactParseError(
            msg, reason=ParseErrorReason.MALFORMED_METADATA, source=where
        )

    return {str(k): v for k, v in data.items()}, body, start + 1


# =============================================================================
# Serialization
# =============================================================================


def _to_yaml_value(value: Any) -> Any:  # pyright: ignore[reportExplicitAny]
    """Convert tuples and read-only mappings to plain YAML-safe values.

    Nested mapping keys keep their type, so `{80: http}` stays an int key.
    """
    if isinstance(value, (list, tuple)):
        return [_to_yaml_value(v) for v in value]
    if isinstance(value, Mapping):
        return {k: _to_yaml_value(v) for k, v in value.items()}
    return value


def artifact_to_dict(artifact: Artifact) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Convert an artifact's metadata to the canonical key order.

    Order: id, kind, title, tags, relations, kind-specific fields in schema
    order, then extra keys in their original order.

    Args:
        artifact: Artifact to convert.

    Returns:
        Dictionary suitable for YAML serialization (body excluded).
    """
    result: dict[str, Any] = {  # pyright: ignore[reportExplicitAny]
        "id": artifact.id,
        "kind": artifact.kind.value,
        "title": artifact.title,
    }
    if artifact.tags:
        result["tags"] = list(artifact.tags)
    if artifact.relations:
        result["relations"] = list(artifact.relations)

    for f in fields(artifact):
        if f.name in ("id", "title", "tags", "relations", "body", "extra", "source"):
            continue
        value = getattr(artifact, f.name)
        if value is None or value == ():
            continue
        result[f.name] = _to_yaml_value(value)

    for key, value in artifact.extra.items():
        if key not in result:
            result[key] = _to_yaml_value(value)

    return result


def serialize_artifact(artifact: Artifact) -> str:
    """Serialize an artifact to its canonical document encoding.

    Args:
        artifact: Artifact to serialize.

    Returns:
        Markdown text with a YAML metadata block followed by the body.

    Example:
        >>> from context1000.artifacts import GuideArtifact
        >>> text = serialize_artifact(GuideArtifact(id="setup", title="Setup"))
        >>> text.splitlines()[:4]
        ['---', 'id: setup', 'kind: guide', 'title: Setup']
    """
    yaml_str = yaml.safe_dump(
        artifact_to_dict(artifact),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=float("inf"),
    )

    if not artifact.body:
        return f"---\n{yaml_str}---\n"
    return f"---\n{yaml_str}---\n\n{artifact.body}\n"


def content_hash(artifact: Artifact) -> str:
    """Compute the sha256 hash of an artifact's canonical encoding.

    The source location does not contribute to the hash.
    """
    return hashlib.sha256(serialize_artifact(artifact).encode("utf-8")).hexdigest()

