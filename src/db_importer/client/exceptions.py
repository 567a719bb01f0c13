"""Custom exceptions for DB Importer.

This module defines exception classes for the error conditions that can
occur while importing tables: configuration problems, foreign key
resolution failures, invalid source rows and store/state access errors.
"""

from typing import Any


class DatabaseImportError(Exception):
    """Base exception for all DB Importer errors."""

    pass


class ConfigurationError(DatabaseImportError):
    """Raised when configuration is invalid or missing."""

    pass


class UnknownEntityTypeError(ConfigurationError):
    """Raised when an entity type name has not been registered."""

    def __init__(self, name: str, known: list[str] | None = None):
        """Initialize unknown entity type error.

        Args:
            name: Entity type name that was looked up
            known: Names that are registered
        """
        self.name = name
        self.known = sorted(known or [])
        message = f"Unknown entity type: {name}"
        if self.known:
            message = f"{message} (registered: {', '.join(self.known)})"
        super().__init__(message)


class AttributeMappingCollisionError(ConfigurationError):
    """Raised when two source fields map to the same target field name."""

    def __init__(self, target_field: str, source_fields: list[str], table: str | None = None):
        """Initialize attribute mapping collision error.

        Args:
            target_field: Target field name that is produced more than once
            source_fields: Source fields that collide on the target name
            table: Source table the mapping belongs to
        """
        self.target_field = target_field
        self.source_fields = list(source_fields)
        self.table = table
        location = f" in table {table}" if table else ""
        super().__init__(
            f"Fields {', '.join(self.source_fields)} all map to '{target_field}'{location}"
        )


class ImportFailure(DatabaseImportError):
    """Base class for failures that abort an import run.

    Attributes:
        table: Source table being imported when the failure happened
        source_id: Source ``id`` of the row being imported
        field: Source field involved in the failure, if any
    """

    def __init__(
        self,
        message: str,
        table: str | None = None,
        source_id: Any = None,
        field: str | None = None,
    ):
        self.message = message
        self.table = table
        self.source_id = source_id
        self.field = field
        super().__init__(message)

    def __str__(self) -> str:
        parts = []
        if self.table:
            parts.append(f"table={self.table}")
        if self.source_id is not None:
            parts.append(f"id={self.source_id}")
        if self.field:
            parts.append(f"field={self.field}")
        if parts:
            return f"{self.message} [{' '.join(parts)}]"
        return self.message


class ForeignKeyError(ImportFailure):
    """Base class for foreign key resolution failures."""

    def __init__(
        self,
        message: str,
        entity_type: str,
        table: str | None = None,
        source_id: Any = None,
        field: str | None = None,
    ):
        super().__init__(message, table=table, source_id=source_id, field=field)
        self.entity_type = entity_type


class MappingNotFoundError(ForeignKeyError):
    """Raised when a referenced entity type has not been imported yet.

    This almost always means the tables were supplied in the wrong order.
    """

    pass


class IdentifierNotFoundError(ForeignKeyError):
    """Raised when an entity type was imported but not the referenced row."""

    pass


class DanglingForeignKeyError(ForeignKeyError):
    """Raised when a mapped target record no longer exists in the store."""

    def __init__(
        self,
        message: str,
        entity_type: str,
        target_id: Any,
        table: str | None = None,
        source_id: Any = None,
        field: str | None = None,
    ):
        super().__init__(message, entity_type, table=table, source_id=source_id, field=field)
        self.target_id = target_id


class MappingConflictError(ImportFailure):
    """Raised when a source row would be mapped to two different target records."""

    pass


class InvalidRowError(ImportFailure):
    """Raised when a source row lacks a field the import requires."""

    pass


class StoreError(DatabaseImportError):
    """Raised when the source or target database cannot be accessed."""

    pass


class AmbiguousMatchError(StoreError):
    """Raised when a natural key lookup matches more than one target record."""

    pass


class StateError(DatabaseImportError):
    """Raised when state management errors occur."""

    pass
