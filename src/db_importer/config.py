"""Configuration management for DB Importer using Pydantic.

This module provides type-safe configuration models for the source and
target databases, the registered entity types, the ordered list of tables
to import, and the logging, retry and state settings.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from db_importer.client.exceptions import ConfigurationError

FK_STRATEGIES = ("own_id", "field_value")


class SourceConfig(BaseModel):
    """Source databases, by name."""

    databases: dict[str, str] = Field(
        ..., description="Source database name -> SQLAlchemy URL or SQLite file path"
    )

    @field_validator("databases")
    @classmethod
    def validate_databases(cls, v: dict[str, str]) -> dict[str, str]:
        """Validate at least one non-empty database URL is configured."""
        if not v:
            raise ValueError("At least one source database must be configured")
        for name, url in v.items():
            if not url or not url.strip():
                raise ValueError(f"Source database '{name}' has an empty URL")
        return v


class TargetConfig(BaseModel):
    """Target database configuration."""

    url: str = Field(..., description="SQLAlchemy URL or SQLite file path of the target database")
    strict_columns: bool = Field(
        default=True,
        description="Fail on attributes the target table has no column for (otherwise drop them)",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL is not empty."""
        if not v or not v.strip():
            raise ValueError("Target URL cannot be empty")
        return v.strip()


class EntityConfig(BaseModel):
    """A target entity type."""

    name: str = Field(..., min_length=1, description="Entity type token")
    table: str | None = Field(default=None, description="Target table (defaults to name)")
    primary_key: str = Field(default="id", description="Target identifier column")


class TableConfig(BaseModel):
    """One source table to import. List order is import order."""

    database: str = Field(..., description="Name of the source database")
    table: str = Field(..., description="Source table name")
    entity: str | None = Field(
        default=None, description="Target entity type (omit for reference-only tables)"
    )
    natural_key: str | None = Field(
        default=None, description="Source field used to find an existing target record"
    )
    fields: dict[str, str] = Field(
        default_factory=dict, description="Source field -> target field renames"
    )
    foreign_keys: dict[str, str] = Field(
        default_factory=dict, description="Source field -> referenced entity type"
    )
    fk_strategy: str | None = Field(
        default=None, description="Foreign key resolution strategy (own_id or field_value)"
    )

    @field_validator("fk_strategy")
    @classmethod
    def validate_fk_strategy(cls, v: str | None) -> str | None:
        """Validate strategy name."""
        if v is None:
            return v
        v_lower = v.lower()
        if v_lower not in FK_STRATEGIES:
            raise ValueError(f"fk_strategy must be one of: {', '.join(FK_STRATEGIES)}")
        return v_lower


class ImportOptionsConfig(BaseModel):
    """Import behaviour options."""

    fk_strategy: str = Field(
        default="own_id",
        description="Default foreign key resolution strategy (own_id or field_value)",
    )
    progress_interval: int = Field(
        default=1000, ge=0, description="Rows between progress log entries (0 disables)"
    )
    retry_attempts: int = Field(
        default=3, ge=1, le=10, description="Attempts for reads failing with transient errors"
    )
    retry_backoff_min: float = Field(
        default=1, ge=0, le=60, description="Minimum backoff time in seconds for retries"
    )
    retry_backoff_max: float = Field(
        default=30, ge=1, le=300, description="Maximum backoff time in seconds for retries"
    )

    @field_validator("fk_strategy")
    @classmethod
    def validate_fk_strategy(cls, v: str) -> str:
        """Validate strategy name."""
        v_lower = v.lower()
        if v_lower not in FK_STRATEGIES:
            raise ValueError(f"fk_strategy must be one of: {', '.join(FK_STRATEGIES)}")
        return v_lower


class StateConfig(BaseModel):
    """Mapping persistence configuration."""

    enabled: bool = Field(default=False, description="Persist each run's ID mappings")
    db_path: str = Field(default="./import_state.db", description="State database path or URL")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="WARNING",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    file_level: str = Field(
        default="DEBUG",
        description="File log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    format: str = Field(default="json", description="Log file format (json or console)")
    file: str | None = Field(default="logs/import.log", description="Log file path")

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v_lower


class ImporterConfig(BaseSettings):
    """Main importer configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DB_IMPORTER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    source: SourceConfig = Field(..., description="Source databases")
    target: TargetConfig = Field(..., description="Target database")
    entities: list[EntityConfig] = Field(
        default_factory=list, description="Registered target entity types"
    )
    tables: list[TableConfig] = Field(
        default_factory=list, description="Tables to import, in dependency order"
    )
    import_options: ImportOptionsConfig = Field(
        default_factory=ImportOptionsConfig,
        alias="import",
        description="Import options",
    )
    state: StateConfig = Field(default_factory=StateConfig, description="State configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    @model_validator(mode="after")
    def validate_references(self) -> "ImporterConfig":
        """Check tables only name configured databases and entity types."""
        entity_names = [entity.name for entity in self.entities]
        duplicates = {name for name in entity_names if entity_names.count(name) > 1}
        if duplicates:
            raise ValueError(f"Duplicate entity types: {', '.join(sorted(duplicates))}")

        known_entities = set(entity_names)
        for table in self.tables:
            if table.database not in self.source.databases:
                raise ValueError(
                    f"Table {table.table} uses unknown source database '{table.database}'"
                )
            referenced = [table.entity] if table.entity else []
            referenced.extend(table.foreign_keys.values())
            for name in referenced:
                if name not in known_entities:
                    raise ValueError(
                        f"Table {table.database}.{table.table} references "
                        f"unregistered entity type '{name}'"
                    )
        return self


def load_config_from_yaml(config_path: str | Path) -> ImporterConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        ImporterConfig: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigurationError: If config file is empty or invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        raise ConfigurationError(f"Empty configuration file: {config_path}")

    config_data = _expand_env_vars(config_data)

    try:
        return ImporterConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}:\n{e}") from e


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in config data.

    Supports ${VAR_NAME} syntax for environment variable substitution.

    Args:
        data: Configuration data

    Returns:
        Data with expanded environment variables

    Raises:
        ConfigurationError: If a referenced variable is not set
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigurationError(
                    f"Environment variable '{var_name}' not found. "
                    f"Please set it in your environment or .env file."
                )
            return env_value
        return data
    else:
        return data
