"""Table importer.

This module provides the ``ImportEngine``, which imports source tables into
the target store one after another, matching existing records by natural
key, rewriting foreign keys to already-imported target IDs and recording
every source-to-target mapping it makes.
"""

import uuid
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from db_importer.client.base import Record, Row, RowSource, TargetStore
from db_importer.client.exceptions import DatabaseImportError, ImportFailure, InvalidRowError
from db_importer.entities import EntityType
from db_importer.migration.identity import IdentityMapper
from db_importer.migration.observer import ImportObserver
from db_importer.migration.resolver import ForeignKeyResolver
from db_importer.migration.table_spec import ID_FIELD, TableSpec
from db_importer.utils.logging import get_logger, log_table_progress

logger = get_logger(__name__)


@dataclass
class TableStats:
    """Counters for one imported table."""

    table: str
    entity_type: str | None
    rows_read: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ImportSummary:
    """Outcome of an import run."""

    run_id: str
    started_at: datetime
    finished_at: datetime | None = None
    status: str = "running"
    tables: list[TableStats] = field(default_factory=list)
    mapping_count: int = 0
    error: str | None = None
    error_type: str | None = None

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or datetime.now(UTC)
        return (end - self.started_at).total_seconds()

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"

    def totals(self) -> dict[str, int]:
        """Sum the per-table counters."""
        return {
            "rows_read": sum(t.rows_read for t in self.tables),
            "created": sum(t.created for t in self.tables),
            "updated": sum(t.updated for t in self.tables),
            "unchanged": sum(t.unchanged for t in self.tables),
            "tables_skipped": sum(1 for t in self.tables if t.skipped),
        }

    def as_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "mapping_count": self.mapping_count,
            "totals": self.totals(),
            "tables": [t.as_dict() for t in self.tables],
            "error": self.error,
            "error_type": self.error_type,
        }


def is_empty_value(value: Any) -> bool:
    """True for values that must never overwrite existing data (None and "")."""
    return value is None or value == "" or value == b""


class ImportEngine:
    """Imports source tables into the target store in the order given.

    Tables must be supplied in dependency order: a table can only be
    imported after every table whose entity type it references. The engine
    does not reorder tables; a reference to an entity type that has not been
    imported yet fails the run with ``MappingNotFoundError``.

    Every failure stops the run immediately. Rows committed before the
    failure stay in the target store; re-running the import finds them by
    natural key and updates them instead of creating duplicates.

    Usage:
        engine = ImportEngine(row_source, target_store, observer=LoggingObserver())
        engine.add_table(companies_spec)
        engine.add_table(users_spec)
        summary = engine.run()
    """

    def __init__(
        self,
        row_source: RowSource,
        target_store: TargetStore,
        observer: ImportObserver | None = None,
        progress_interval: int = 1000,
    ):
        """Initialize import engine.

        Args:
            row_source: Reads rows from source tables
            target_store: Finds, creates and updates target records
            observer: Receives import notices (optional)
            progress_interval: Rows between progress log entries
        """
        self.row_source = row_source
        self.target_store = target_store
        self.observer = observer or ImportObserver()
        self.progress_interval = progress_interval
        self.tables: list[TableSpec] = []
        self.identity = IdentityMapper()
        self.summary: ImportSummary | None = None

    def add_table(self, spec: TableSpec) -> None:
        """Add a table to the end of the import order."""
        self.tables.append(spec)

    def run(self, table_specs: Iterable[TableSpec] | None = None) -> ImportSummary:
        """
        Import tables into the target store.

        Each run starts with a fresh ``IdentityMapper``, available as
        ``self.identity`` afterwards (also after a failure).

        Args:
            table_specs: Tables in import order (defaults to the added tables)

        Returns:
            Summary of the run

        Raises:
            MappingNotFoundError: If a table references an entity type not yet imported
            IdentifierNotFoundError: If a referenced source row was not imported
            DanglingForeignKeyError: If a mapped target record no longer exists
            AttributeMappingCollisionError: If a row maps two fields to one name
            InvalidRowError: If a row lacks its ``id`` or natural key field
            StoreError: If the source or target database fails
        """
        specs = list(table_specs) if table_specs is not None else list(self.tables)

        self.identity = IdentityMapper()
        resolver = ForeignKeyResolver(self.identity, self.observer)
        summary = ImportSummary(run_id=str(uuid.uuid4()), started_at=datetime.now(UTC))
        self.summary = summary

        log = logger.bind(run_id=summary.run_id)
        log.info("import_started", tables=[spec.name for spec in specs])

        try:
            for spec in specs:
                stats = TableStats(
                    table=spec.name,
                    entity_type=spec.target_entity.name if spec.target_entity else None,
                )
                summary.tables.append(stats)
                self._import_table(spec, resolver, stats)

        except DatabaseImportError as e:
            summary.status = "failed"
            summary.error = str(e)
            summary.error_type = type(e).__name__
            summary.finished_at = datetime.now(UTC)
            summary.mapping_count = len(self.identity)
            log.error(
                "import_failed",
                error_type=summary.error_type,
                error=summary.error,
                mappings=summary.mapping_count,
            )
            raise

        summary.status = "completed"
        summary.finished_at = datetime.now(UTC)
        summary.mapping_count = len(self.identity)

        log.info(
            "import_completed",
            duration_seconds=round(summary.duration_seconds, 3),
            mappings=summary.mapping_count,
            **summary.totals(),
        )

        return summary

    def _import_table(self, spec: TableSpec, resolver: ForeignKeyResolver, stats: TableStats) -> None:
        if spec.is_reference_only:
            stats.skipped = True
            self.observer.table_skipped(spec.name)
            return

        entity_type = spec.target_entity
        rows = list(self.row_source.fetch_rows(spec.source))

        self.observer.table_started(spec.name, entity_type, len(rows))

        for row in rows:
            stats.rows_read += 1

            try:
                self._import_row(spec, entity_type, row, resolver, stats)
            except DatabaseImportError as e:
                if isinstance(e, ImportFailure):
                    e.table = e.table or spec.name
                    if e.source_id is None:
                        e.source_id = row.get(ID_FIELD)
                self.observer.row_failed(spec.name, row.get(ID_FIELD), e)
                raise

            if self.progress_interval and stats.rows_read % self.progress_interval == 0:
                log_table_progress(logger, spec.name, entity_type.name, stats.rows_read, len(rows))

        self.observer.table_finished(
            spec.name,
            entity_type,
            {
                "rows_read": stats.rows_read,
                "created": stats.created,
                "updated": stats.updated,
                "unchanged": stats.unchanged,
            },
        )

    def _import_row(
        self,
        spec: TableSpec,
        entity_type: EntityType,
        row: Row,
        resolver: ForeignKeyResolver,
        stats: TableStats,
    ) -> None:
        if ID_FIELD not in row or row[ID_FIELD] is None:
            raise InvalidRowError(f"Row has no '{ID_FIELD}' field", table=spec.name)

        source_id = row[ID_FIELD]
        existing = self._find_existing(spec, entity_type, row)

        resolved = resolver.resolve(spec, row, self.target_store)
        attributes = spec.map_attributes(resolved)

        if existing is not None:
            target_id = self.target_store.record_id(entity_type, existing)
            changes = self._collect_changes(entity_type, existing, attributes, target_id)

            if changes:
                record = self.target_store.update(entity_type, target_id, changes)
                stats.updated += 1
                self.observer.record_updated(entity_type, source_id, target_id, list(changes))
            else:
                record = existing
                stats.unchanged += 1
                logger.debug(
                    "record_unchanged",
                    entity_type=entity_type.name,
                    source_id=source_id,
                    target_id=target_id,
                )
        else:
            record = self.target_store.create(entity_type, attributes)
            stats.created += 1
            self.observer.record_created(
                entity_type, source_id, self.target_store.record_id(entity_type, record)
            )

        self.identity.record(entity_type, source_id, self.target_store.record_id(entity_type, record))

    def _find_existing(self, spec: TableSpec, entity_type: EntityType, row: Row) -> Record | None:
        """Look up the target record matching the row's natural key."""
        if not spec.natural_key_field:
            return None

        if spec.natural_key_field not in row:
            raise InvalidRowError(
                "Row is missing its natural key field",
                table=spec.name,
                source_id=row.get(ID_FIELD),
                field=spec.natural_key_field,
            )

        value = row[spec.natural_key_field]
        if value is None:
            logger.warning(
                "null_natural_key",
                table=spec.name,
                source_id=row.get(ID_FIELD),
                field=spec.natural_key_field,
            )
            return None

        return self.target_store.find_one(entity_type, spec.mapped_natural_key_field(), value)

    def _collect_changes(
        self,
        entity_type: EntityType,
        existing: Record,
        attributes: dict[str, Any],
        target_id: Any,
    ) -> dict[str, Any]:
        """Pick the incoming values that should overwrite the existing record.

        Only fields the existing record has are considered. Empty incoming
        values (None, "") never overwrite existing data.
        """
        changes: dict[str, Any] = {}

        for field_name, current in existing.items():
            if field_name == entity_type.primary_key or field_name not in attributes:
                continue

            new_value = attributes[field_name]
            if is_empty_value(new_value) or new_value == current:
                continue

            changes[field_name] = new_value
            self.observer.field_changed(entity_type, target_id, field_name, current, new_value)

        return changes
