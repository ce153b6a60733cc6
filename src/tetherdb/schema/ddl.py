"""DDL for foreign key constraints.

Provides the ``ALTER TABLE`` steps the relation services need, expressed with
Alembic's batch operations: PostgreSQL and MySQL receive plain ``ALTER TABLE``
statements, SQLite gets the table rebuilt with the new definition. All
statements run on the connection the manager was created with, inside the
caller's transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import Integer
from sqlalchemy.dialects.mysql import INTEGER

from tetherdb.core.types import OnDeleteActionType

if TYPE_CHECKING:
    from alembic.operations import BatchOperations
    from sqlalchemy import Connection

    from tetherdb.core.types import FieldOverview

logger = logging.getLogger(__name__)

SIGNED_INT = "int"
UNSIGNED_INT = "int unsigned"


def needs_unsigned_fix(field_db_type: str | None, related_db_type: str | None) -> bool:
    """Whether a foreign key column must become unsigned to match its target.

    MySQL rejects a foreign key from ``int`` to ``int unsigned``. This is the
    only pairing that is adjusted; every other combination is left alone.
    """
    return field_db_type == SIGNED_INT and related_db_type == UNSIGNED_INT


class ConstraintManager:
    """Applies foreign key DDL on one connection."""

    def __init__(self, connection: Connection) -> None:
        """Initialize the manager.

        Args:
            connection: Connection with the caller's transaction open
        """
        self._operations = Operations(MigrationContext.configure(connection))

    @contextmanager
    def alter_table(self, collection: str) -> Iterator[BatchOperations]:
        """Group changes to ``collection``; they are applied on exit."""
        with self._operations.batch_alter_table(collection) as batch_op:
            yield batch_op

    @staticmethod
    def make_unsigned(table: BatchOperations, field: FieldOverview) -> None:
        """Change ``field`` from ``int`` to ``int unsigned`` in place."""
        logger.info(f"Altering {field.field} to {UNSIGNED_INT}")
        table.alter_column(
            field.field,
            type_=INTEGER(unsigned=True),
            existing_type=Integer(),
            existing_nullable=field.nullable,
        )

    @staticmethod
    def add_foreign_key(
        table: BatchOperations,
        constraint_name: str,
        field: str,
        related_collection: str,
        related_field: str,
        on_delete: OnDeleteActionType | None = None,
    ) -> None:
        """Add a named foreign key from ``field`` to the related primary key."""
        table.create_foreign_key(
            constraint_name,
            related_collection,
            [field],
            [related_field],
            ondelete=on_delete.to_sql() if on_delete else None,
        )

    @staticmethod
    def drop_foreign_key(table: BatchOperations, constraint_name: str) -> None:
        table.drop_constraint(constraint_name, type_="foreignkey")
