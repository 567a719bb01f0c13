"""Collaborator contracts used by the import engine.

The engine only talks to the databases through these two interfaces:
a ``RowSource`` that reads rows from a named source table and a
``TargetStore`` that finds, creates and updates target records.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from db_importer.entities import EntityType

# A single field value as read from a database row
Scalar = str | int | float | bool | Decimal | date | datetime | time | bytes | None

# Field name -> value. Rows always carry the source ``id``.
Row = dict[str, Scalar]

# Snapshot of a target record, keyed by column name
Record = dict[str, Any]


@dataclass(frozen=True)
class SourceLocation:
    """Where the rows of a source table live.

    Attributes:
        database: Name of the configured source database
        table: Table name inside that database
    """

    database: str
    table: str

    def __str__(self) -> str:
        return f"{self.database}.{self.table}"


class RowSource(ABC):
    """Reads rows from source tables."""

    @abstractmethod
    def fetch_rows(self, location: SourceLocation) -> Iterable[Row]:
        """Return the rows of a source table in a reproducible order.

        Args:
            location: Source database and table

        Returns:
            Rows as plain dictionaries, each including an ``id`` field
        """


class TargetStore(ABC):
    """Finds and persists records in the target database."""

    @abstractmethod
    def find_one(self, entity_type: EntityType, field: str, value: Any) -> Record | None:
        """Find the single record whose ``field`` equals ``value``.

        Raises:
            AmbiguousMatchError: If more than one record matches
        """

    @abstractmethod
    def find_by_id(self, entity_type: EntityType, record_id: Any) -> Record | None:
        """Find a record by its store-assigned identifier."""

    @abstractmethod
    def create(self, entity_type: EntityType, attributes: dict[str, Any]) -> Record:
        """Create a record and return its snapshot, including the new identifier."""

    @abstractmethod
    def update(self, entity_type: EntityType, record_id: Any, attributes: dict[str, Any]) -> Record:
        """Update fields of an existing record and return its new snapshot."""

    @staticmethod
    def record_id(entity_type: EntityType, record: Record) -> Any:
        """Return the identifier of a record snapshot."""
        return record[entity_type.primary_key]
