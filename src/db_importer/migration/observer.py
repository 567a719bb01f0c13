"""Import event hooks.

The engine reports what it does to an ``ImportObserver``. The base class
ignores every event, so running without an observer changes nothing but
the output; ``LoggingObserver`` writes the events to the structured log.
"""

from typing import Any

from db_importer.entities import EntityType
from db_importer.utils.logging import get_logger, redact_value

logger = get_logger(__name__)


class ImportObserver:
    """Receives notices about an import run. All hooks are no-ops."""

    def table_started(self, table: str, entity_type: EntityType, row_count: int) -> None:
        pass

    def table_skipped(self, table: str) -> None:
        pass

    def table_finished(self, table: str, entity_type: EntityType, stats: dict[str, int]) -> None:
        pass

    def record_created(self, entity_type: EntityType, source_id: Any, target_id: Any) -> None:
        pass

    def record_updated(
        self, entity_type: EntityType, source_id: Any, target_id: Any, changed_fields: list[str]
    ) -> None:
        pass

    def field_changed(
        self, entity_type: EntityType, target_id: Any, field: str, old_value: Any, new_value: Any
    ) -> None:
        pass

    def foreign_key_rewritten(
        self,
        table: str,
        field: str,
        entity_type: EntityType,
        old_value: Any,
        new_value: Any,
    ) -> None:
        pass

    def row_failed(self, table: str, source_id: Any, error: Exception) -> None:
        pass


class LoggingObserver(ImportObserver):
    """Writes import notices to the structured log."""

    def __init__(self, log=None):
        self.log = log or logger

    def table_started(self, table: str, entity_type: EntityType, row_count: int) -> None:
        self.log.info("table_import_started", table=table, entity_type=entity_type.name, rows=row_count)

    def table_skipped(self, table: str) -> None:
        self.log.info("table_skipped", table=table, reason="no target entity type")

    def table_finished(self, table: str, entity_type: EntityType, stats: dict[str, int]) -> None:
        self.log.info("table_import_finished", table=table, entity_type=entity_type.name, **stats)

    def record_created(self, entity_type: EntityType, source_id: Any, target_id: Any) -> None:
        self.log.info(
            "record_created",
            entity_type=entity_type.name,
            source_id=source_id,
            target_id=target_id,
        )

    def record_updated(
        self, entity_type: EntityType, source_id: Any, target_id: Any, changed_fields: list[str]
    ) -> None:
        self.log.info(
            "record_updated",
            entity_type=entity_type.name,
            source_id=source_id,
            target_id=target_id,
            changed_fields=changed_fields,
        )

    def field_changed(
        self, entity_type: EntityType, target_id: Any, field: str, old_value: Any, new_value: Any
    ) -> None:
        self.log.info(
            "field_changed",
            entity_type=entity_type.name,
            target_id=target_id,
            field=field,
            old_value=redact_value(field, old_value),
            new_value=redact_value(field, new_value),
        )

    def foreign_key_rewritten(
        self,
        table: str,
        field: str,
        entity_type: EntityType,
        old_value: Any,
        new_value: Any,
    ) -> None:
        self.log.debug(
            "foreign_key_rewritten",
            table=table,
            field=field,
            entity_type=entity_type.name,
            old_value=old_value,
            new_value=new_value,
        )

    def row_failed(self, table: str, source_id: Any, error: Exception) -> None:
        self.log.error(
            "row_import_failed",
            table=table,
            source_id=source_id,
            error_type=type(error).__name__,
            error=str(error),
        )
