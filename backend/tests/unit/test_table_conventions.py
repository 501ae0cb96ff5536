"""Test database table conventions and the initial migration.

Verifies that:
- The migration creates exactly the tables and columns the models declare
- Timestamps are integer Unix seconds with 0 meaning "unset"
- Columns the sweeps select on are indexed
- Downgrade removes every table
"""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import BigInteger, inspect

from database import create_db_engine
from models import Base

MIGRATION = Path(__file__).parent.parent.parent / "migrations" / "versions" / "001_create_lifecycle_tables.py"

# Unix-second columns where 0 means "not set"
TIMESTAMP_COLUMNS = {
    "users": ["created_at", "deleted_at"],
    "download_accounts": ["created_at", "last_used", "deleted_at"],
    "files": ["upload_date", "expire_at", "deleted_at"],
    "file_requests": ["created_at", "expires_at", "used_at"],
    "download_logs": ["downloaded_at"],
}

# Columns the sweeps filter on
SWEEP_INDEXED_COLUMNS = {
    "users": "deleted_at",
    "download_accounts": "deleted_at",
    "files": "deleted_at",
    "file_requests": "expires_at",
    "audit_logs": "timestamp",
}


def load_migration():
    module_spec = importlib.util.spec_from_file_location("lifecycle_migration_001", MIGRATION)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def run_migration(engine, direction):
    migration = load_migration()
    with engine.begin() as connection:
        context = MigrationContext.configure(connection)
        with Operations.context(context):
            getattr(migration, direction)()


@pytest.fixture
def migrated_engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'migrated.db'}")
    run_migration(engine, "upgrade")
    yield engine
    engine.dispose()


class TestMigration:
    """Test the migration against the model metadata"""

    def test_tables_match_models(self, migrated_engine):
        inspector = inspect(migrated_engine)

        assert set(inspector.get_table_names()) == set(Base.metadata.tables)

    def test_columns_match_models(self, migrated_engine):
        inspector = inspect(migrated_engine)

        for name, table in Base.metadata.tables.items():
            migrated = {column["name"] for column in inspector.get_columns(name)}
            assert migrated == set(table.columns.keys()), name

    def test_sweep_columns_are_indexed(self, migrated_engine):
        inspector = inspect(migrated_engine)

        for table, column in SWEEP_INDEXED_COLUMNS.items():
            indexed = {
                columns[0]
                for columns in (index["column_names"] for index in inspector.get_indexes(table))
            }
            assert column in indexed, f"{table}.{column}"

    def test_downgrade_drops_everything(self, migrated_engine):
        run_migration(migrated_engine, "downgrade")

        assert inspect(migrated_engine).get_table_names() == []


class TestModelConventions:
    """Test column conventions on the models"""

    @pytest.mark.parametrize("table", sorted(TIMESTAMP_COLUMNS))
    def test_timestamps_are_unix_seconds(self, table):
        columns = Base.metadata.tables[table].columns

        for name in TIMESTAMP_COLUMNS[table]:
            column = columns[name]
            assert isinstance(column.type, BigInteger), f"{table}.{name}"
            assert column.nullable is False, f"{table}.{name}"
