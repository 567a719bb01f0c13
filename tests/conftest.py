"""Shared fixtures for the DB Importer test-suite."""

from pathlib import Path

import pytest
import yaml
from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, create_engine

from db_importer.client.base import SourceLocation
from db_importer.client.memory import InMemoryTargetStore, StaticRowSource
from db_importer.entities import EntityRegistry, EntityType
from db_importer.migration.table_spec import TableSpec

# ---------------------------------------------------------------------------
# Entity types and specs
# ---------------------------------------------------------------------------


@pytest.fixture()
def companies() -> EntityType:
    return EntityType("companies")


@pytest.fixture()
def users() -> EntityType:
    return EntityType("users")


@pytest.fixture()
def registry(companies, users) -> EntityRegistry:
    return EntityRegistry([companies, users])


@pytest.fixture()
def companies_spec(companies) -> TableSpec:
    return TableSpec(
        source=SourceLocation("legacy", "company"),
        target_entity=companies,
        natural_key_field="code",
    )


@pytest.fixture()
def users_spec(users, companies) -> TableSpec:
    """Users reference companies through ``company_id`` (resolved by the row's own id)."""
    return TableSpec(
        source=SourceLocation("legacy", "user"),
        target_entity=users,
        natural_key_field="email",
        field_mapping={"full_name": "name"},
        foreign_keys={"company_id": companies},
    )


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemoryTargetStore:
    """Target store whose IDs start at 101 so they never equal source IDs."""
    return InMemoryTargetStore(id_offset=100)


@pytest.fixture()
def source() -> StaticRowSource:
    return StaticRowSource(
        {
            SourceLocation("legacy", "company"): [
                {"id": 1, "code": "ACME", "title": "Acme Ltd"},
                {"id": 2, "code": "GLOBEX", "title": "Globex"},
            ],
            SourceLocation("legacy", "user"): [
                {"id": 1, "email": "a@x.com", "full_name": "A", "company_id": 1},
                {"id": 2, "email": "b@x.com", "full_name": "B", "company_id": 2},
            ],
        }
    )


# ---------------------------------------------------------------------------
# SQLite databases and configuration files
# ---------------------------------------------------------------------------


def create_source_database(path: Path) -> str:
    """Create a legacy source database with companies and users."""
    url = f"sqlite:///{path}"
    engine = create_engine(url)
    metadata = MetaData()
    company = Table(
        "company",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("code", String(20)),
        Column("title", String(100)),
    )
    user = Table(
        "user",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("email", String(100)),
        Column("full_name", String(100)),
        Column("company_id", Integer),
    )
    metadata.create_all(engine)

    with engine.begin() as conn:
        conn.execute(
            company.insert(),
            [
                {"id": 1, "code": "ACME", "title": "Acme Ltd"},
                {"id": 2, "code": "GLOBEX", "title": "Globex"},
            ],
        )
        conn.execute(
            user.insert(),
            [
                {"id": 1, "email": "a@x.com", "full_name": "A", "company_id": 1},
                {"id": 2, "email": "b@x.com", "full_name": "B", "company_id": 2},
            ],
        )

    engine.dispose()
    return url


def create_target_database(path: Path, first_id: int = 500) -> str:
    """Create an empty target database whose IDs start at ``first_id``."""
    url = f"sqlite:///{path}"
    engine = create_engine(url)
    metadata = MetaData()
    companies_table = Table(
        "companies",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("code", String(20), unique=True),
        Column("title", String(100)),
        sqlite_autoincrement=True,
    )
    users_table = Table(
        "users",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("email", String(100)),
        Column("name", String(100)),
        Column("company_id", Integer, ForeignKey("companies.id")),
        sqlite_autoincrement=True,
    )
    metadata.create_all(engine)

    # Push the SQLite rowid sequence past the source IDs
    with engine.begin() as conn:
        conn.execute(companies_table.insert().values(id=first_id - 1, code="_seed", title=None))
        conn.execute(companies_table.delete())
        conn.execute(
            users_table.insert().values(id=first_id - 1, email="_seed", name=None, company_id=None)
        )
        conn.execute(users_table.delete())

    engine.dispose()
    return url


@pytest.fixture()
def source_url(tmp_path) -> str:
    return create_source_database(tmp_path / "legacy.db")


@pytest.fixture()
def target_url(tmp_path) -> str:
    return create_target_database(tmp_path / "target.db")


@pytest.fixture()
def config_data(source_url, target_url, tmp_path) -> dict:
    return {
        "source": {"databases": {"legacy": source_url}},
        "target": {"url": target_url},
        "entities": [{"name": "companies"}, {"name": "users"}],
        "tables": [
            {
                "database": "legacy",
                "table": "company",
                "entity": "companies",
                "natural_key": "code",
            },
            {
                "database": "legacy",
                "table": "user",
                "entity": "users",
                "natural_key": "email",
                "fields": {"full_name": "name"},
                "foreign_keys": {"company_id": "companies"},
            },
        ],
        "import": {"retry_attempts": 1, "progress_interval": 0},
        "state": {"enabled": True, "db_path": str(tmp_path / "state.db")},
        "logging": {"file": None},
    }


@pytest.fixture()
def config_file(tmp_path, config_data) -> Path:
    path = tmp_path / "import.yaml"
    path.write_text(yaml.safe_dump(config_data, sort_keys=False))
    return path
