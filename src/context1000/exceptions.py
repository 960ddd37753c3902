"""context1000 exceptions."""

from enum import StrEnum
from pathlib import Path
from typing import Any


class Context1000Error(Exception):
    """Base exception for context1000 errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(Context1000Error):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
        source: str | None = None,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected
        self.source: str | None = source


# =============================================================================
# Artifact Exceptions
# =============================================================================


class ArtifactError(Context1000Error):
    """Base exception for artifact operations."""


class ParseErrorReason(StrEnum):
    """Why a source document could not be turned into an artifact."""

    MALFORMED_METADATA = "malformed_metadata"
    UNKNOWN_KIND = "unknown_kind"
    MISSING_FIELD = "missing_field"
    INVALID_FIELD_TYPE = "invalid_field_type"


class ArtifactParseError(ArtifactError, ValueError):
    """Raised when a source document cannot be parsed into an artifact.

    Parse errors are always recoverable: the offending document is
    quarantined and every other document proceeds unaffected.

    Attributes:
        reason: Category of the failure.
        field: The field that failed validation (if applicable).
        expected: Expected type or values (InvalidFieldType only).
        actual: Type name or value actually found (InvalidFieldType only).
        source: Printable location of the offending document.
    """

    def __init__(  # noqa: PLR0913
        self,
        message: str,
        *,
        reason: ParseErrorReason,
        field: str | None = None,
        expected: str | None = None,
        actual: str | None = None,
        source: str | None = None,
    ) -> None:
        """Initialize with error message and parse context.

        Args:
            message: Human-readable error message.
            reason: Category of the failure.
            field: The field that failed validation.
            expected: Expected type or values.
            actual: Type name or value actually found.
            source: Printable location of the offending document.
        """
        super().__init__(message)
        self.reason: ParseErrorReason = reason
        self.field: str | None = field
        self.expected: str | None = expected
        self.actual: str | None = actual
        self.source: str | None = source


class UnknownKindError(ArtifactError, ValueError):
    """Raised when an artifact kind is outside the closed set.

    Attributes:
        kind: The kind that was not recognized.
    """

    def __init__(self, message: str, *, kind: str | None = None) -> None:
        """Initialize with error message and kind context.

        Args:
            message: Human-readable error message.
            kind: The kind that was not recognized.
        """
        super().__init__(message)
        self.kind: str | None = kind


class ArtifactStoreError(ArtifactError):
    """Base exception for artifact store mutations."""

    def __init__(self, message: str, *, artifact_id: str | None = None) -> None:
        """Initialize with error message and artifact context.

        Args:
            message: Human-readable error message.
            artifact_id: The ID of the artifact involved.
        """
        super().__init__(message)
        self.artifact_id: str | None = artifact_id


class ArtifactNotFoundError(ArtifactStoreError, KeyError):
    """Raised when an artifact cannot be found."""

    def __str__(self) -> str:
        """Return the message without KeyError's repr quoting."""
        return str(self.args[0]) if self.args else ""


class DuplicateIdError(ArtifactStoreError, ValueError):
    """Raised when an artifact ID already exists with different content.

    Attributes:
        artifact_id: The ID that already exists.
        existing_source: Location of the document already holding the ID.
    """

    def __init__(
        self,
        message: str,
        *,
        artifact_id: str | None = None,
        existing_source: str | None = None,
    ) -> None:
        """Initialize with error message and conflict context.

        Args:
            message: Human-readable error message.
            artifact_id: The ID that already exists.
            existing_source: Location of the document already holding the ID.
        """
        super().__init__(message, artifact_id=artifact_id)
        self.existing_source: str | None = existing_source
