"""Dialect-specific steps around column changes.

Some backends need preparation before a column that takes part in a key can
be altered. ``pre_column_change`` performs it and reports whether
``post_column_change`` must run afterwards to undo it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class SchemaHelper:
    """Default helper: no preparation needed."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def pre_column_change(self) -> bool:
        return False

    def post_column_change(self) -> None:
        return None


class SQLiteSchemaHelper(SchemaHelper):
    """Suspends foreign key enforcement while SQLite rebuilds a table.

    SQLite applies ``ALTER TABLE ... ADD CONSTRAINT`` by copying the table,
    which fails while other rows reference it and enforcement is on. The
    pragma is a no-op inside a transaction, so it is set on the raw DBAPI
    connection, where the engine never opens one.
    """

    def _pragma(self, statement: str) -> int | None:
        raw = self._engine.raw_connection()
        try:
            cursor = raw.cursor()
            cursor.execute(statement)
            row = cursor.fetchone()
            cursor.close()
        finally:
            raw.close()
        return row[0] if row else None

    def pre_column_change(self) -> bool:
        enabled = bool(self._pragma("PRAGMA foreign_keys"))
        if enabled:
            self._pragma("PRAGMA foreign_keys = OFF")
            logger.debug("Disabled SQLite foreign key enforcement")
        return enabled

    def post_column_change(self) -> None:
        self._pragma("PRAGMA foreign_keys = ON")
        logger.debug("Re-enabled SQLite foreign key enforcement")


def get_schema_helper(engine: Engine) -> SchemaHelper:
    """Pick the helper for the engine's dialect."""
    if engine.dialect.name == "sqlite":
        return SQLiteSchemaHelper(engine)
    return SchemaHelper(engine)
