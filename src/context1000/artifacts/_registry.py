"""Artifact schema registry.

This module provides the SchemaRegistry class describing the typed shape of
each artifact kind. The registry uses a singleton pattern with thread-safe
initialization so that every parser and store in a process sees the same
schemas. It is populated once from KIND_SCHEMAS and is read-only afterwards.

Example:
    >>> from context1000.artifacts import SchemaRegistry
    >>> registry = SchemaRegistry.get_instance()
    >>> registry.describe("decision").required_fields
    ('status',)
    >>> registry.resolve_kind("Rules")
    <ArtifactKind.RULE: 'rule'>
"""

import threading
from types import MappingProxyType
from typing import TYPE_CHECKING, ClassVar

from context1000.artifacts._types import KIND_SCHEMAS, ArtifactKind, KindSchema
from context1000.exceptions import UnknownKindError

if TYPE_CHECKING:
    from collections.abc import Mapping


class SchemaRegistry:
    """Thread-safe, read-only singleton registry of artifact kind schemas.

    Use get_instance() to obtain the singleton instance. Do not instantiate
    directly.

    Attributes:
        _instance: Class-level singleton instance.
        _lock: Class-level lock for thread-safe initialization.
    """

    _instance: ClassVar["SchemaRegistry | None"] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    __slots__ = ("_aliases", "_schemas")

    def __init__(self, schemas: tuple[KindSchema, ...] = KIND_SCHEMAS) -> None:
        """Initialize registry from a fixed set of schemas.

        Note:
            Do not call directly outside tests. Use get_instance() instead.
        """
        self._schemas: Mapping[ArtifactKind, KindSchema] = MappingProxyType(
            {schema.kind: schema for schema in schemas}
        )
        aliases: dict[str, ArtifactKind] = {}
        for schema in schemas:
            aliases[schema.kind.value] = schema.kind
            aliases[schema.directory] = schema.kind
        self._aliases: Mapping[str, ArtifactKind] = MappingProxyType(aliases)

    @classmethod
    def get_instance(cls) -> "SchemaRegistry":
        """Get the global registry instance (singleton).

        Thread-safe using double-checked locking pattern.

        Returns:
            The singleton SchemaRegistry instance.
        """
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        result = cls._instance
        assert result is not None  # noqa: S101
        return result

    def kinds(self) -> frozenset[ArtifactKind]:
        """Get the closed set of artifact kinds."""
        return frozenset(self._schemas)

    def resolve_kind(self, value: object) -> ArtifactKind:
        """Resolve a metadata value to an artifact kind.

        Matching is case-insensitive and accepts the plural directory names
        ("decisions", "rules", "guides", "projects").

        Args:
            value: Raw kind value from metadata.

        Returns:
            The matching artifact kind.

        Raises:
            UnknownKindError: If the value does not name a known kind.
        """
        if isinstance(value, ArtifactKind):
            return value
        if isinstance(value, str):
            kind = self._aliases.get(value.strip().lower())
            if kind is not None:
                return kind
        msg = (
            f"Unknown artifact kind: {value!r} "
            f"(expected one of: {', '.join(k.value for k in self._schemas)})"
        )
        raise UnknownKindError(msg, kind=str(value))

    def describe(self, kind: ArtifactKind | str) -> KindSchema:
        """Describe the fields of an artifact kind.

        Args:
            kind: Artifact kind or kind name.

        Returns:
            The kind's schema.

        Raises:
            UnknownKindError: If the kind is outside the closed set.

        Example:
            >>> registry = SchemaRegistry.get_instance()
            >>> registry.describe("project").required_fields
            ('owner',)
        """
        return self._schemas[self.resolve_kind(kind)]

    def list_schemas(self) -> list[KindSchema]:
        """List all kind schemas in canonical kind order."""
        return list(self._schemas.values())
