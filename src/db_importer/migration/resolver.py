"""Foreign key rewriting for rows about to be imported."""

from typing import Any

from db_importer.client.base import Row, TargetStore
from db_importer.client.exceptions import (
    DanglingForeignKeyError,
    ForeignKeyError,
    InvalidRowError,
)
from db_importer.migration.identity import IdentityMapper
from db_importer.migration.observer import ImportObserver
from db_importer.migration.table_spec import ID_FIELD, ForeignKeyStrategy, TableSpec
from db_importer.utils.logging import get_logger

logger = get_logger(__name__)


class ForeignKeyResolver:
    """Rewrites a row's foreign keys from source IDs to target IDs.

    Each foreign key declared by the table spec is looked up in the run's
    ``IdentityMapper`` and the target record it maps to is checked to still
    exist in the store before the field is rewritten.
    """

    def __init__(self, identity: IdentityMapper, observer: ImportObserver | None = None):
        """Initialize foreign key resolver.

        Args:
            identity: Mappings recorded so far in this run
            observer: Receives a notice per rewritten field
        """
        self.identity = identity
        self.observer = observer or ImportObserver()

    def resolve(self, spec: TableSpec, row: Row, store: TargetStore) -> Row:
        """Return a copy of ``row`` with every declared foreign key rewritten.

        Fields that are not declared as foreign keys are left untouched.

        Args:
            spec: Table spec declaring the foreign keys
            row: Source row
            store: Target store used to verify referenced records

        Returns:
            New row with target IDs in the foreign key fields

        Raises:
            MappingNotFoundError: If a referenced entity type was never imported
            InvalidRowError: If the row lacks a declared foreign key field
            IdentifierNotFoundError: If the referenced row was not imported
            DanglingForeignKeyError: If the mapped target record is gone
        """
        resolved = dict(row)
        row_id = row.get(ID_FIELD)

        for source_field, entity_type in spec.foreign_keys.items():
            if source_field not in row:
                raise InvalidRowError(
                    "Row is missing a foreign key field",
                    table=spec.name,
                    source_id=row_id,
                    field=source_field,
                )

            lookup_id = self._lookup_id(spec, row, source_field)

            if lookup_id is None:
                # Only FIELD_VALUE yields None: a present but null reference stays null
                logger.debug(
                    "null_foreign_key_skipped",
                    table=spec.name,
                    source_id=row_id,
                    field=source_field,
                )
                continue

            try:
                target_id = self.identity.resolve(entity_type, lookup_id)
            except ForeignKeyError as e:
                e.table = spec.name
                e.source_id = row_id
                e.field = source_field
                raise

            if store.find_by_id(entity_type, target_id) is None:
                raise DanglingForeignKeyError(
                    f"Tried to import {spec.target_entity or spec.name} with foreign key "
                    f"{entity_type} {row.get(source_field)!r} -> {target_id!r}, "
                    f"but the target record was not found",
                    entity_type=entity_type.name,
                    target_id=target_id,
                    table=spec.name,
                    source_id=row_id,
                    field=source_field,
                )

            resolved[source_field] = target_id
            self.observer.foreign_key_rewritten(
                spec.name, source_field, entity_type, row.get(source_field), target_id
            )

        return resolved

    @staticmethod
    def _lookup_id(spec: TableSpec, row: Row, source_field: str) -> Any:
        if spec.fk_strategy is ForeignKeyStrategy.FIELD_VALUE:
            return row.get(source_field)
        return row.get(ID_FIELD)
