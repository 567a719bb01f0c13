"""Target database client.

Finds, creates and updates records in the target database through
SQLAlchemy Core. Target tables are reflected on first use. Every write is
committed on its own: an import run is not one transaction.
"""

from typing import Any

from sqlalchemy import Engine, MetaData, Select, Table, insert, select, update
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from db_importer.client.base import Record, TargetStore
from db_importer.client.exceptions import AmbiguousMatchError, StoreError
from db_importer.entities import EntityType
from db_importer.migration.database import create_database_engine, normalize_database_url
from db_importer.utils.logging import get_logger
from db_importer.utils.retry import call_with_retry

logger = get_logger(__name__)


class SQLTargetStore(TargetStore):
    """Target store backed by a SQL database."""

    def __init__(
        self,
        database_url: str,
        strict_columns: bool = True,
        retry_attempts: int = 3,
        retry_backoff_min: float = 1,
        retry_backoff_max: float = 30,
        engine: Engine | None = None,
    ):
        """Initialize target client.

        Args:
            database_url: Target database URL (or SQLite file path)
            strict_columns: Fail on attributes the target table has no column
                for; when False they are dropped with a warning
            retry_attempts: Attempts for reads failing with transient errors
            retry_backoff_min: Minimum wait between attempts in seconds
            retry_backoff_max: Maximum wait between attempts in seconds
            engine: Existing engine to use instead of creating one
        """
        self.database_url = normalize_database_url(database_url)
        self.engine = engine or create_database_engine(self.database_url)
        self.strict_columns = strict_columns
        self.retry_attempts = retry_attempts
        self.retry_backoff_min = retry_backoff_min
        self.retry_backoff_max = retry_backoff_max
        self.metadata = MetaData()
        self._warned_columns: set[tuple[str, str]] = set()

        logger.debug("target_client_initialized", dialect=self.engine.dialect.name)

    # Table helpers

    def _table(self, entity_type: EntityType) -> Table:
        if entity_type.table in self.metadata.tables:
            return self.metadata.tables[entity_type.table]

        try:
            table = Table(entity_type.table, self.metadata, autoload_with=self.engine)
        except NoSuchTableError as e:
            raise StoreError(f"Target table not found: {entity_type.table}") from e

        if entity_type.primary_key not in table.c:
            raise StoreError(
                f"Target table {entity_type.table} has no column '{entity_type.primary_key}'"
            )

        return table

    def _column(self, table: Table, field: str):
        if field not in table.c:
            raise StoreError(f"Target table {table.name} has no column '{field}'")
        return table.c[field]

    def _writable(self, table: Table, attributes: dict[str, Any]) -> dict[str, Any]:
        unknown = [key for key in attributes if key not in table.c]
        if not unknown:
            return dict(attributes)

        if self.strict_columns:
            raise StoreError(
                f"Target table {table.name} has no columns: {', '.join(sorted(unknown))}"
            )

        for key in unknown:
            if (table.name, key) not in self._warned_columns:
                self._warned_columns.add((table.name, key))
                logger.warning("unknown_target_column_dropped", table=table.name, column=key)

        return {key: value for key, value in attributes.items() if key in table.c}

    def _select_all(self, stmt: Select) -> list[Record]:
        def _run() -> list[Record]:
            with self.engine.connect() as conn:
                return [dict(row) for row in conn.execute(stmt).mappings()]

        try:
            return call_with_retry(
                _run,
                max_attempts=self.retry_attempts,
                min_wait=self.retry_backoff_min,
                max_wait=self.retry_backoff_max,
            )
        except SQLAlchemyError as e:
            raise StoreError(f"Target query failed: {e}") from e

    # TargetStore interface

    def find_one(self, entity_type: EntityType, field: str, value: Any) -> Record | None:
        table = self._table(entity_type)
        stmt = select(table).where(self._column(table, field) == value).limit(2)
        records = self._select_all(stmt)

        if len(records) > 1:
            raise AmbiguousMatchError(
                f"More than one {entity_type} record has {field} = {value!r}"
            )

        return records[0] if records else None

    def find_by_id(self, entity_type: EntityType, record_id: Any) -> Record | None:
        table = self._table(entity_type)
        stmt = select(table).where(table.c[entity_type.primary_key] == record_id)
        records = self._select_all(stmt)
        return records[0] if records else None

    def create(self, entity_type: EntityType, attributes: dict[str, Any]) -> Record:
        table = self._table(entity_type)
        values = self._writable(table, attributes)
        pk_column = table.c[entity_type.primary_key]

        try:
            with self.engine.begin() as conn:
                result = conn.execute(insert(table).values(**values))
                if entity_type.primary_key in values:
                    record_id = values[entity_type.primary_key]
                else:
                    record_id = result.inserted_primary_key[0]

                row = conn.execute(select(table).where(pk_column == record_id)).mappings().first()

        except SQLAlchemyError as e:
            logger.error("target_create_failed", table=table.name, error=str(e))
            raise StoreError(f"Failed to create {entity_type} record: {e}") from e

        if row is None:
            raise StoreError(f"Created {entity_type} record {record_id} could not be read back")

        return dict(row)

    def update(self, entity_type: EntityType, record_id: Any, attributes: dict[str, Any]) -> Record:
        table = self._table(entity_type)
        values = self._writable(table, attributes)
        pk_column = table.c[entity_type.primary_key]

        try:
            with self.engine.begin() as conn:
                if values:
                    result = conn.execute(update(table).where(pk_column == record_id).values(**values))
                    if result.rowcount == 0:
                        raise StoreError(f"{entity_type} record {record_id} not found for update")

                row = conn.execute(select(table).where(pk_column == record_id)).mappings().first()

        except SQLAlchemyError as e:
            logger.error("target_update_failed", table=table.name, record_id=record_id, error=str(e))
            raise StoreError(f"Failed to update {entity_type} record {record_id}: {e}") from e

        if row is None:
            raise StoreError(f"{entity_type} record {record_id} not found")

        return dict(row)

    def close(self) -> None:
        self.engine.dispose()
