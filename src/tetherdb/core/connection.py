"""Engine creation for the supported databases."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import Engine, create_engine, event

from tetherdb.exceptions import ConnectionError

if TYPE_CHECKING:
    from sqlalchemy import Connection
    from sqlalchemy.engine.url import URL

logger = logging.getLogger(__name__)

SUPPORTED_DIALECTS = ("postgresql", "mysql", "sqlite")

# Default driver per dialect when the URL names none
DEFAULT_DRIVERS = {
    "postgresql://": "postgresql+psycopg://",
    "mysql://": "mysql+pymysql://",
}


def _normalize_url(url: str) -> str:
    """Add the default driver to ``postgresql://`` and ``mysql://`` URLs."""
    for prefix, replacement in DEFAULT_DRIVERS.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix) :]
    return url


def _sqlite_on_connect(dbapi_connection: Any, connection_record: Any) -> None:
    # Hand transaction control to SQLAlchemy so DDL is transactional too
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def _sqlite_on_begin(conn: Connection) -> None:
    conn.exec_driver_sql("BEGIN")


def create_tetherdb_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine for ``url``.

    On SQLite every SQLAlchemy transaction is an explicit ``BEGIN``, so a
    table rebuild rolls back together with the rest of the transaction.
    Statements that must run outside a transaction, such as
    ``PRAGMA foreign_keys``, go through the raw DBAPI connection.

    Raises:
        ConnectionError: The URL is invalid or the dialect is unsupported
    """
    is_sqlite = url.startswith("sqlite")
    try:
        engine = create_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False} if is_sqlite else {},
        )
    except Exception as e:
        raise ConnectionError(f"Failed to create database engine: {e}") from e

    if engine.dialect.name not in SUPPORTED_DIALECTS:
        engine.dispose()
        raise ConnectionError(
            f"Unsupported database dialect: {engine.dialect.name}. "
            f"Supported: {', '.join(SUPPORTED_DIALECTS)}"
        )

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _sqlite_on_connect)
        event.listen(engine, "begin", _sqlite_on_begin)

    logger.debug(f"Created {engine.dialect.name} engine")
    return engine


class DatabaseConnection:
    """Lazily created engine for one database URL.

    Supports PostgreSQL, MySQL and SQLite. ``postgresql://`` URLs use
    psycopg 3 and ``mysql://`` URLs use PyMySQL unless another driver is named.
    """

    def __init__(self, url: str | URL, echo: bool = False) -> None:
        self._url = _normalize_url(str(url))
        self._echo = echo
        self._engine: Engine | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_tetherdb_engine(self._url, echo=self._echo)
        return self._engine

    def close(self) -> None:
        """Dispose of the engine; the next use creates a new one."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
