"""Validation functions for artifact metadata and relations.

This module checks raw metadata values against kind schemas and resolves
relation references against a store. Field checks raise ArtifactParseError
on the first problem found, in schema order, so that parsing stays
deterministic.

Example:
    >>> from context1000.artifacts import SchemaRegistry
    >>> schema = SchemaRegistry.get_instance().describe("rule")
    >>> validate_type_fields(schema, {"severity": "error"})
    {'severity': 'error'}
"""

from collections.abc import Callable
from datetime import date
from typing import Any

from context1000.artifacts._metadata import is_valid_identifier
from context1000.artifacts._types import (
    Artifact,
    DanglingRelation,
    KindSchema,
    TypeField,
)
from context1000.exceptions import ArtifactParseError, ParseErrorReason

_TYPE_NAMES: dict[type, str] = {
    bool: "boolean",
    int: "integer",
    float: "number",
    str: "string",
    list: "array",
    tuple: "array",
    dict: "object",
    date: "date",
    type(None): "null",
}


def describe_type(value: object) -> str:
    """Name the metadata type of a value (e.g., 'string', 'array')."""
    for python_type, name in _TYPE_NAMES.items():
        if type(value) is python_type:
            return name
    if isinstance(value, date):
        return "date"
    return type(value).__name__


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce(type_field: TypeField, value: object) -> object | None:
    """Coerce a value to the field type, or return None on mismatch."""
    match type_field.field_type:
        case "string":
            return value if isinstance(value, str) else None
        case "integer":
            if isinstance(value, bool) or not isinstance(value, int):
                return None
            return value
        case "boolean":
            return value if isinstance(value, bool) else None
        case "date":
            if isinstance(value, date):
                return value
            if isinstance(value, str):
                try:
                    return date.fromisoformat(value)
                except ValueError:
                    return None
            return None
        case "array":
            if isinstance(value, (list, tuple)) and all(
                isinstance(item, str) for item in value
            ):
                return tuple(value)
            return None
        case "object":
            return value if isinstance(value, dict) else None
        case _:
            return value


def require_string(
    name: str,
    value: object,
    *,
    source: str | None = None,
) -> str:
    """Validate a required non-empty string field.

    Raises:
        ArtifactParseError: MISSING_FIELD if absent or blank,
            INVALID_FIELD_TYPE if not a string.
    """
    if _is_blank(value):
        msg = f"Missing required field: {name!r}"
        raise ArtifactParseError(
            msg, reason=ParseErrorReason.MISSING_FIELD, field=name, source=source
        )
    if not isinstance(value, str):
        actual = describe_type(value)
        msg = f"Invalid type for {name!r}: expected string, got {actual}"
        raise ArtifactParseError(
            msg,
            reason=ParseErrorReason.INVALID_FIELD_TYPE,
            field=name,
            expected="string",
            actual=actual,
            source=source,
        )
    return value


def validate_identifier(
    name: str,
    value: object,
    *,
    source: str | None = None,
) -> str:
    """Validate that a value is a syntactically valid identifier.

    Raises:
        ArtifactParseError: INVALID_FIELD_TYPE if the value is not an
            identifier string.
    """
    if not is_valid_identifier(value):
        msg = f"Invalid identifier in {name!r}: {value!r}"
        raise ArtifactParseError(
            msg,
            reason=ParseErrorReason.INVALID_FIELD_TYPE,
            field=name,
            expected="identifier",
            actual=repr(value),
            source=source,
        )
    return str(value)


def validate_string_list(
    name: str,
    value: object,
    *,
    source: str | None = None,
) -> tuple[str, ...]:
    """Validate a list of strings, dropping duplicates but keeping order.

    A single string is accepted as a one-element list.

    Raises:
        ArtifactParseError: INVALID_FIELD_TYPE if the value is not a list of
            strings.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(item, str) for item in value
    ):
        actual = describe_type(value)
        msg = f"Invalid type for {name!r}: expected array of strings, got {actual}"
        raise ArtifactParseError(
            msg,
            reason=ParseErrorReason.INVALID_FIELD_TYPE,
            field=name,
            expected="array of strings",
            actual=actual,
            source=source,
        )
    return tuple(dict.fromkeys(item for item in value if item.strip()))


def validate_type_fields(
    schema: KindSchema,
    data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    *,
    source: str | None = None,
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Validate kind-specific fields against a kind schema.

    Checks, field by field in schema order, that required fields are present
    and that values match the declared type and allowed values.

    Args:
        schema: Schema of the artifact kind.
        data: Raw metadata mapping.
        source: Location used in error messages.

    Returns:
        Coerced values of the kind-specific fields that are present.

    Raises:
        ArtifactParseError: MISSING_FIELD or INVALID_FIELD_TYPE for the first
            offending field.
    """
    values: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]

    for type_field in schema.type_fields:
        raw = data.get(type_field.name)

        if _is_blank(raw):
            if type_field.required:
                msg = f"Missing required field: {type_field.name!r}"
                raise ArtifactParseError(
                    msg,
                    reason=ParseErrorReason.MISSING_FIELD,
                    field=type_field.name,
                    source=source,
                )
            continue

        coerced = _coerce(type_field, raw)
        if coerced is None:
            actual = describe_type(raw)
            msg = (
                f"Invalid type for {type_field.name!r}: "
                f"expected {type_field.field_type}, got {actual}"
            )
            raise ArtifactParseError(
                msg,
                reason=ParseErrorReason.INVALID_FIELD_TYPE,
                field=type_field.name,
                expected=type_field.field_type,
                actual=actual,
                source=source,
            )

        if (
            type_field.allowed_values is not None
            and str(coerced) not in type_field.allowed_values
        ):
            expected = f"one of: {', '.join(type_field.allowed_values)}"
            msg = f"Invalid value for {type_field.name!r}: {raw!r} (expected {expected})"
            raise ArtifactParseError(
                msg,
                reason=ParseErrorReason.INVALID_FIELD_TYPE,
                field=type_field.name,
                expected=expected,
                actual=repr(raw),
                source=source,
            )

        values[type_field.name] = coerced

    return values


def find_dangling_relations(
    artifact: Artifact,
    exists: Callable[[str], bool],
) -> list[DanglingRelation]:
    """Find relations of an artifact that do not resolve.

    Args:
        artifact: Artifact whose relations are checked.
        exists: Predicate telling whether an artifact ID exists.

    Returns:
        Dangling relations in relation order.

    Example:
        >>> find_dangling_relations(artifact, store.contains)
        [DanglingRelation(id='d2', missing_target='d1')]
    """
    return [
        DanglingRelation(id=artifact.id, missing_target=target)
        for target in artifact.relations
        if not exists(target)
    ]
