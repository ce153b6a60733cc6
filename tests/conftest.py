"""Shared test fixtures for TetherDB."""

import os
from collections.abc import Generator

import pytest
from sqlalchemy import text

from tetherdb import TetherDB
from tetherdb.cache import MemoryCache
from tetherdb.core.types import Accountability, Permission

# Two user tables linked by articles.author_id; no foreign key yet
BLOG_TABLES = [
    "CREATE TABLE authors (id INTEGER PRIMARY KEY, name VARCHAR(100))",
    "CREATE TABLE articles ("
    "id INTEGER PRIMARY KEY, title VARCHAR(200), author_id INTEGER, editor_id INTEGER)",
    "CREATE TABLE tags (id INTEGER PRIMARY KEY, label VARCHAR(50))",
    "CREATE TABLE article_tags (article_id INTEGER, tag_id INTEGER, "
    "PRIMARY KEY (article_id, tag_id))",
]


def _psycopg_available() -> bool:
    """Check if psycopg is installed."""
    try:
        import psycopg  # noqa: F401

        return True
    except ImportError:
        return False


def _postgresql_connectable(url: str) -> bool:
    """Check if we can connect to PostgreSQL."""
    if not _psycopg_available():
        return False
    try:
        from tetherdb.core.connection import DatabaseConnection

        conn = DatabaseConnection(url)
        with conn.engine.connect() as c:
            c.execute(text("SELECT 1"))
        conn.close()
        return True
    except Exception:
        return False


def create_blog_tables(db: TetherDB) -> None:
    """Create the example user tables outside of TetherDB."""
    with db.engine.begin() as conn:
        for statement in BLOG_TABLES:
            conn.execute(text(statement))


@pytest.fixture
def blog_tables() -> list[str]:
    """DDL of the example user tables."""
    return BLOG_TABLES


@pytest.fixture
def postgresql_url() -> str:
    """Get PostgreSQL URL from environment or use default."""
    url = os.environ.get("TEST_DATABASE_URL") or "postgresql://localhost/tetherdb_test"

    if not _psycopg_available():
        pytest.skip("psycopg not installed")
    if not _postgresql_connectable(url):
        pytest.skip(f"Cannot connect to PostgreSQL at {url}")

    return url


@pytest.fixture
def memory_db() -> Generator[TetherDB, None, None]:
    """Create a TetherDB instance with SQLite in-memory and its own cache."""
    database = TetherDB("sqlite:///:memory:", cache=MemoryCache())
    yield database
    database.close()


@pytest.fixture
def blog_db(memory_db: TetherDB) -> TetherDB:
    """In-memory database with the authors/articles/tags tables."""
    create_blog_tables(memory_db)
    memory_db.initialize()
    return memory_db


@pytest.fixture
def pg_db(postgresql_url: str) -> Generator[TetherDB, None, None]:
    """PostgreSQL database with the example tables, dropped afterwards."""
    database = TetherDB(postgresql_url, cache=MemoryCache())
    with database.engine.begin() as conn:
        for table in ("article_tags", "articles", "tags", "authors", "tdb_relations"):
            conn.execute(text(f'DROP TABLE IF EXISTS "{table}" CASCADE'))
    create_blog_tables(database)
    yield database
    with database.engine.begin() as conn:
        for table in ("article_tags", "articles", "tags", "authors", "tdb_relations"):
            conn.execute(text(f'DROP TABLE IF EXISTS "{table}" CASCADE'))
    database.close()


@pytest.fixture
def editor() -> Accountability:
    """Non-admin who can read articles, relation metadata, but not authors."""
    return Accountability(
        user="u-editor",
        role="editor",
        permissions=[
            Permission(collection="tdb_relations", action="read", fields=["*"]),
            Permission(collection="articles", action="read", fields=["*"]),
            Permission(collection="tags", action="read", fields=["id", "label"]),
        ],
    )


@pytest.fixture
def reader() -> Accountability:
    """Non-admin who can read every example table and relation metadata."""
    return Accountability(
        user="u-reader",
        role="reader",
        permissions=[
            Permission(collection=collection, action="read", fields=["*"])
            for collection in ("tdb_relations", "articles", "authors", "tags")
        ],
    )


@pytest.fixture
def admin() -> Accountability:
    return Accountability(user="u-admin", role="administrator", admin=True)
