"""In-memory collaborators.

Dictionary-backed row source and target store. They implement the same
contracts as the SQL clients and are used in tests and for trying out a
table configuration without a database.
"""

import copy
from collections.abc import Iterable
from typing import Any

from db_importer.client.base import Record, Row, RowSource, SourceLocation, TargetStore
from db_importer.client.exceptions import AmbiguousMatchError, StoreError
from db_importer.entities import EntityType


class StaticRowSource(RowSource):
    """Serves rows from a dictionary of ``SourceLocation`` -> rows."""

    def __init__(self, tables: dict[SourceLocation, Iterable[Row]] | None = None):
        self.tables: dict[SourceLocation, list[Row]] = {
            location: list(rows) for location, rows in (tables or {}).items()
        }
        self.fetch_count: dict[SourceLocation, int] = {}

    def add_table(self, location: SourceLocation, rows: Iterable[Row]) -> None:
        self.tables[location] = list(rows)

    def fetch_rows(self, location: SourceLocation) -> list[Row]:
        if location not in self.tables:
            raise StoreError(f"Source table not found: {location}")
        self.fetch_count[location] = self.fetch_count.get(location, 0) + 1
        return [dict(row) for row in self.tables[location]]


class InMemoryTargetStore(TargetStore):
    """Keeps target records in dictionaries, assigning sequential IDs.

    ``id_offset`` lets tests make target IDs differ from source IDs.
    """

    def __init__(self, id_offset: int = 0):
        self.records: dict[EntityType, dict[Any, Record]] = {}
        self.id_offset = id_offset
        self._next_id: dict[EntityType, int] = {}
        self.writes: list[tuple[str, EntityType, Any]] = []

    def _records(self, entity_type: EntityType) -> dict[Any, Record]:
        return self.records.setdefault(entity_type, {})

    def find_one(self, entity_type: EntityType, field: str, value: Any) -> Record | None:
        matches = [r for r in self._records(entity_type).values() if r.get(field) == value]
        if len(matches) > 1:
            raise AmbiguousMatchError(f"More than one {entity_type} record has {field} = {value!r}")
        return copy.deepcopy(matches[0]) if matches else None

    def find_by_id(self, entity_type: EntityType, record_id: Any) -> Record | None:
        record = self._records(entity_type).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def create(self, entity_type: EntityType, attributes: dict[str, Any]) -> Record:
        next_id = self._next_id.get(entity_type, self.id_offset) + 1
        self._next_id[entity_type] = next_id

        record = {entity_type.primary_key: next_id, **attributes}
        self._records(entity_type)[next_id] = record
        self.writes.append(("create", entity_type, next_id))
        return copy.deepcopy(record)

    def update(self, entity_type: EntityType, record_id: Any, attributes: dict[str, Any]) -> Record:
        records = self._records(entity_type)
        if record_id not in records:
            raise StoreError(f"{entity_type} record {record_id} not found for update")

        records[record_id].update(attributes)
        self.writes.append(("update", entity_type, record_id))
        return copy.deepcopy(records[record_id])

    def delete(self, entity_type: EntityType, record_id: Any) -> None:
        """Remove a record (not part of the store contract; used by tests)."""
        self._records(entity_type).pop(record_id, None)

    def all(self, entity_type: EntityType) -> list[Record]:
        return [copy.deepcopy(r) for r in self._records(entity_type).values()]
