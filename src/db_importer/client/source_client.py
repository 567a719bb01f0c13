"""Source database client.

Reads whole tables from the configured source databases using SQLAlchemy
reflection, so no models have to be declared for the source schema.
"""

from sqlalchemy import Engine, MetaData, Table, select
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from db_importer.client.base import Row, RowSource, SourceLocation
from db_importer.client.exceptions import ConfigurationError, StoreError
from db_importer.migration.database import create_database_engine, normalize_database_url
from db_importer.utils.logging import get_logger
from db_importer.utils.retry import call_with_retry

logger = get_logger(__name__)


class SQLRowSource(RowSource):
    """Row source backed by one or more named SQL databases.

    Rows are returned as plain dictionaries ordered by the table's primary
    key, so repeated runs see the rows in the same order.
    """

    def __init__(
        self,
        databases: dict[str, str],
        retry_attempts: int = 3,
        retry_backoff_min: float = 1,
        retry_backoff_max: float = 30,
    ):
        """Initialize source client.

        Args:
            databases: Source database name -> URL (or SQLite file path)
            retry_attempts: Attempts for reads failing with transient errors
            retry_backoff_min: Minimum wait between attempts in seconds
            retry_backoff_max: Maximum wait between attempts in seconds
        """
        self.database_urls = {
            name: normalize_database_url(url) for name, url in databases.items()
        }
        self.retry_attempts = retry_attempts
        self.retry_backoff_min = retry_backoff_min
        self.retry_backoff_max = retry_backoff_max
        self._engines: dict[str, Engine] = {}
        self._metadata: dict[str, MetaData] = {}

        logger.debug("source_client_initialized", databases=list(self.database_urls))

    def _engine(self, database: str) -> Engine:
        if database not in self.database_urls:
            raise ConfigurationError(
                f"Unknown source database: {database} "
                f"(configured: {', '.join(sorted(self.database_urls)) or 'none'})"
            )

        if database not in self._engines:
            self._engines[database] = create_database_engine(self.database_urls[database])
            self._metadata[database] = MetaData()

        return self._engines[database]

    def _table(self, location: SourceLocation) -> Table:
        engine = self._engine(location.database)
        metadata = self._metadata[location.database]

        if location.table in metadata.tables:
            return metadata.tables[location.table]

        try:
            return Table(location.table, metadata, autoload_with=engine)
        except NoSuchTableError as e:
            raise StoreError(f"Source table not found: {location}") from e

    def _fetch(self, location: SourceLocation) -> list[Row]:
        table = self._table(location)

        order_by = list(table.primary_key.columns)
        if not order_by and "id" in table.c:
            order_by = [table.c.id]

        stmt = select(table).order_by(*order_by)

        with self._engine(location.database).connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    def fetch_rows(self, location: SourceLocation) -> list[Row]:
        """Read every row of a source table.

        Args:
            location: Source database and table

        Returns:
            Rows ordered by primary key

        Raises:
            ConfigurationError: If the database name is not configured
            StoreError: If the table is missing or cannot be read
        """
        try:
            rows = call_with_retry(
                self._fetch,
                location,
                max_attempts=self.retry_attempts,
                min_wait=self.retry_backoff_min,
                max_wait=self.retry_backoff_max,
            )
        except SQLAlchemyError as e:
            logger.error("source_fetch_failed", source=str(location), error=str(e))
            raise StoreError(f"Failed to read source table {location}: {e}") from e

        logger.info("source_rows_fetched", source=str(location), rows=len(rows))
        return rows

    def close(self) -> None:
        """Dispose all source engines."""
        for engine in self._engines.values():
            engine.dispose()
        self._engines.clear()
        self._metadata.clear()
