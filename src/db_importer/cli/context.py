"""
CLI context for DB Importer.

This module provides the context object passed to all CLI commands,
holding the configuration, the database clients and the state store.
"""

from dataclasses import dataclass, field
from pathlib import Path

from db_importer.client.source_client import SQLRowSource
from db_importer.client.target_client import SQLTargetStore
from db_importer.config import ImporterConfig, load_config_from_yaml
from db_importer.entities import EntityRegistry
from db_importer.migration.state import ImportState
from db_importer.migration.table_spec import build_registry
from db_importer.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@dataclass
class ImportContext:
    """
    Context object for CLI commands.

    Attributes are created lazily on first access, so commands that only
    read the configuration never connect to a database.

    Attributes:
        config_path: Path to configuration file
        log_level: Console logging level given on the command line
        log_file: Optional log file path
    """

    config_path: Path | None = None
    log_level: str | None = None
    log_file: Path | None = None

    _config: ImporterConfig | None = field(default=None, init=False, repr=False)
    _registry: EntityRegistry | None = field(default=None, init=False, repr=False)
    _row_source: SQLRowSource | None = field(default=None, init=False, repr=False)
    _target_store: SQLTargetStore | None = field(default=None, init=False, repr=False)
    _import_state: ImportState | None = field(default=None, init=False, repr=False)

    @property
    def config(self) -> ImporterConfig:
        """Get or load importer configuration."""
        if self._config is None:
            if self.config_path is None:
                raise ValueError(
                    "Configuration file path not provided. "
                    "Use --config option or set DB_IMPORTER_CONFIG environment variable."
                )

            logger.debug("Loading configuration", config_path=str(self.config_path))
            self._config = load_config_from_yaml(self.config_path)

        return self._config

    @property
    def registry(self) -> EntityRegistry:
        """Get or build the entity registry."""
        if self._registry is None:
            self._registry = build_registry(self.config)
        return self._registry

    @property
    def row_source(self) -> SQLRowSource:
        """Get or create the source database client."""
        if self._row_source is None:
            options = self.config.import_options
            self._row_source = SQLRowSource(
                self.config.source.databases,
                retry_attempts=options.retry_attempts,
                retry_backoff_min=options.retry_backoff_min,
                retry_backoff_max=options.retry_backoff_max,
            )
        return self._row_source

    @property
    def target_store(self) -> SQLTargetStore:
        """Get or create the target database client."""
        if self._target_store is None:
            options = self.config.import_options
            self._target_store = SQLTargetStore(
                self.config.target.url,
                strict_columns=self.config.target.strict_columns,
                retry_attempts=options.retry_attempts,
                retry_backoff_min=options.retry_backoff_min,
                retry_backoff_max=options.retry_backoff_max,
            )
        return self._target_store

    @property
    def import_state(self) -> ImportState:
        """Get or create the import state store."""
        if self._import_state is None:
            logger.debug("Initializing import state", db_path=self.config.state.db_path)
            self._import_state = ImportState(self.config.state)
        return self._import_state

    def apply_logging_config(self) -> None:
        """Reconfigure logging from the loaded configuration.

        Command line options override the configured console level and log file.
        """
        settings = self.config.logging
        log_file = str(self.log_file) if self.log_file else settings.file
        configure_logging(
            level=self.log_level or settings.level,
            log_format=settings.format,
            log_file=log_file,
            file_level=settings.file_level,
        )

    def cleanup(self) -> None:
        """Dispose database engines that were created."""
        if self._row_source is not None:
            self._row_source.close()
        if self._target_store is not None:
            self._target_store.close()
        if self._import_state is not None:
            self._import_state.close()

    def __enter__(self) -> "ImportContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()
