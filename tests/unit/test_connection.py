"""Tests for engine creation."""

import pytest
from sqlalchemy import inspect, text

from tetherdb.core.connection import DatabaseConnection, _normalize_url, create_tetherdb_engine
from tetherdb.exceptions import ConnectionError


class TestNormalizeUrl:
    """Tests for default driver selection."""

    def test_postgresql(self):
        assert _normalize_url("postgresql://u@h/db") == "postgresql+psycopg://u@h/db"

    def test_mysql(self):
        assert _normalize_url("mysql://u@h/db") == "mysql+pymysql://u@h/db"

    def test_explicit_driver_unchanged(self):
        assert _normalize_url("postgresql+psycopg2://u@h/db") == "postgresql+psycopg2://u@h/db"
        assert _normalize_url("sqlite:///:memory:") == "sqlite:///:memory:"


class TestSQLiteEngine:
    """SQLite engines enforce foreign keys and roll back DDL."""

    def test_foreign_keys_enforced(self):
        engine = create_tetherdb_engine("sqlite:///:memory:")
        with engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        engine.dispose()

    def test_ddl_rolls_back(self):
        """A table created in a failed transaction does not survive it."""
        engine = create_tetherdb_engine("sqlite:///:memory:")
        with pytest.raises(RuntimeError):
            with engine.begin() as conn:
                conn.execute(text("CREATE TABLE scratch (id INTEGER PRIMARY KEY)"))
                raise RuntimeError("abort")

        assert inspect(engine).get_table_names() == []
        engine.dispose()


class TestDatabaseConnection:
    """Tests for DatabaseConnection."""

    def test_lazy_engine(self):
        conn = DatabaseConnection("sqlite:///:memory:")
        engine = conn.engine
        assert engine.dialect.name == "sqlite"
        assert conn.engine is engine

    def test_close_resets_engine(self):
        conn = DatabaseConnection("sqlite:///:memory:")
        engine = conn.engine
        conn.close()
        assert conn.engine is not engine
        conn.close()

    def test_invalid_url(self):
        with pytest.raises(ConnectionError):
            DatabaseConnection("not-a-url").engine
