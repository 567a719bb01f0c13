"""
Import engine for DB Importer.

This module provides the table specs, identity mapping, foreign key
resolution and the engine that imports source tables into a target store.
"""

from db_importer.migration.identity import IdentityMapper
from db_importer.migration.importer import ImportEngine, ImportSummary, TableStats
from db_importer.migration.observer import ImportObserver, LoggingObserver
from db_importer.migration.resolver import ForeignKeyResolver
from db_importer.migration.table_spec import (
    ForeignKeyStrategy,
    TableSpec,
    build_registry,
    build_table_specs,
    check_table_order,
)

__all__ = [
    # Table configuration
    "TableSpec",
    "ForeignKeyStrategy",
    "build_registry",
    "build_table_specs",
    "check_table_order",
    # Identity mapping and foreign keys
    "IdentityMapper",
    "ForeignKeyResolver",
    # Engine
    "ImportEngine",
    "ImportSummary",
    "TableStats",
    "ImportObserver",
    "LoggingObserver",
]
