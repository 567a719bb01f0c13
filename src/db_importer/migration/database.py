"""
Database engine and session utilities.

This module creates SQLAlchemy engines for the source, target and state
databases, and provides session management for the state database.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, event, pool, text
from sqlalchemy.orm import Session, sessionmaker

from db_importer.client.exceptions import ConfigurationError, StateError
from db_importer.migration.models import Base
from db_importer.utils.logging import get_logger

logger = get_logger(__name__)

# State database engines and session factories, keyed by URL
_engines: dict[str, Engine] = {}
_session_factories: dict[str, sessionmaker] = {}


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """
    Enable foreign key constraints for SQLite connections.

    SQLite has foreign keys disabled by default. This event handler
    enables them for each new connection.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def normalize_database_url(db_path: str) -> str:
    """
    Turn a configured database location into a SQLAlchemy URL.

    Full URLs are returned unchanged; anything else is treated as a
    SQLite file path.

    Args:
        db_path: Database URL or SQLite file path

    Returns:
        SQLAlchemy database URL
    """
    if "://" in db_path:
        return db_path
    return f"sqlite:///{db_path}"


def create_database_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
) -> Engine:
    """
    Create a SQLAlchemy engine with appropriate settings.

    Args:
        database_url: Database connection URL (sqlite:///, postgresql://, mysql://...)
        echo: Whether to log SQL statements (useful for debugging)
        pool_size: Number of connections to maintain in the pool
        max_overflow: Maximum number of connections beyond pool_size
        pool_timeout: Timeout for getting a connection from the pool (seconds)

    Returns:
        SQLAlchemy Engine instance

    Raises:
        ConfigurationError: If database URL is invalid
    """
    if not database_url:
        raise ConfigurationError("Database URL cannot be empty")

    try:
        is_sqlite = database_url.startswith("sqlite")

        if is_sqlite:
            # In-memory SQLite needs a single shared connection or every
            # checkout would see an empty database
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                engine = create_engine(
                    database_url,
                    echo=echo,
                    poolclass=pool.StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                engine = create_engine(
                    database_url,
                    echo=echo,
                    poolclass=pool.NullPool,
                )
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)

        else:
            engine = create_engine(
                database_url,
                echo=echo,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_pre_ping=True,  # Verify connections before using
            )

        logger.debug(
            "Database engine created",
            dialect=engine.dialect.name,
            pool="NullPool" if is_sqlite else pool_size,
        )

        return engine

    except Exception as e:
        logger.error("Failed to create database engine", error=str(e))
        raise ConfigurationError(f"Failed to create database engine: {e}") from e


def init_database(database_url: str, echo: bool = False) -> Engine:
    """
    Initialize the import state database.

    Creates all tables if they don't exist. This is idempotent and safe
    to call multiple times.

    Args:
        database_url: Database connection URL
        echo: Whether to log SQL statements

    Returns:
        SQLAlchemy Engine instance

    Raises:
        ConfigurationError: If database initialization fails
    """
    if database_url in _engines:
        return _engines[database_url]

    try:
        engine = create_database_engine(database_url, echo=echo)
        Base.metadata.create_all(engine)

        _engines[database_url] = engine
        _session_factories[database_url] = sessionmaker(bind=engine, expire_on_commit=False)

        logger.info(
            "State database initialized",
            database_url=database_url,
            tables=len(Base.metadata.tables),
        )

        return engine

    except ConfigurationError:
        raise
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e), database_url=database_url)
        raise ConfigurationError(f"Failed to initialize database: {e}") from e


def dispose_database(database_url: str) -> None:
    """Dispose the engine for a state database and forget it."""
    engine = _engines.pop(database_url, None)
    _session_factories.pop(database_url, None)
    if engine is not None:
        engine.dispose()


@contextmanager
def get_session(database_url: str) -> Generator[Session, None, None]:
    """
    Context manager for state database sessions.

    Automatically commits on success and rolls back on exception.
    Always closes the session when done.

    Usage:
        with get_session(url) as session:
            session.add(obj)

    Args:
        database_url: State database URL

    Yields:
        SQLAlchemy Session instance

    Raises:
        StateError: If database operation fails
    """
    init_database(database_url)
    session = _session_factories[database_url]()

    try:
        yield session
        session.commit()

    except StateError:
        session.rollback()
        raise

    except Exception as e:
        session.rollback()
        logger.error("Database session rolled back due to error", error=str(e))
        raise StateError(f"Database operation failed: {e}") from e

    finally:
        session.close()


def validate_database_connection(database_url: str) -> bool:
    """
    Validate that a database connection can be established.

    Args:
        database_url: Database connection URL

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = create_database_engine(database_url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        engine.dispose()
        logger.info("Database connection validated successfully", dialect=engine.dialect.name)
        return True

    except Exception as e:
        logger.error("Database connection validation failed", error=str(e))
        return False
