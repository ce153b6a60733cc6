"""Reflection of the physical database schema.

Wraps SQLAlchemy's ``Inspector`` and reports tables, columns and foreign keys
in TetherDB's own types. A fresh ``Inspector`` is created for every call so
that reflection caches never outlive a single query.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Integer, inspect

from tetherdb.core.types import (
    CollectionOverview,
    FieldOverview,
    OnDeleteActionType,
    RelationSchema,
)

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine
    from sqlalchemy.types import TypeEngine

INTEGER_NAMES = {
    "integer": "int",
    "small_integer": "smallint",
    "big_integer": "bigint",
}


def column_db_type(column_type: TypeEngine[Any]) -> str:
    """Describe a reflected column type as a short lowercase string.

    Integer types use their SQL name ("int", "bigint", "tinyint", ...), with
    an " unsigned" suffix when the column is unsigned (MySQL only). Anything
    else is the type's compiled name, e.g. "varchar(255)".
    """
    if isinstance(column_type, Integer):
        visit_name = column_type.__visit_name__.lower()
        name = INTEGER_NAMES.get(visit_name, visit_name)
        if getattr(column_type, "unsigned", False):
            name = f"{name} unsigned"
        return name
    return str(column_type).lower()


class SchemaInspector:
    """Reports tables, columns and foreign keys of the connected database."""

    def __init__(self, bind: Engine | Connection) -> None:
        self._bind = bind

    def tables(self) -> list[str]:
        """List table names."""
        return sorted(inspect(self._bind).get_table_names())

    def collection(self, table: str) -> CollectionOverview:
        """Describe one table: its columns and primary key."""
        inspector = inspect(self._bind)
        primary = inspector.get_pk_constraint(table).get("constrained_columns") or []
        fields = {
            column["name"]: FieldOverview(
                field=column["name"],
                db_type=column_db_type(column["type"]),
                nullable=bool(column.get("nullable", True)),
            )
            for column in inspector.get_columns(table)
        }
        return CollectionOverview(
            collection=table,
            # Composite primary keys cannot be referenced by a single column
            primary=primary[0] if len(primary) == 1 else None,
            fields=fields,
        )

    def foreign_keys(self, collection: str | None = None) -> list[RelationSchema]:
        """List physical foreign keys, one row per constrained column.

        Args:
            collection: Only report keys owned by this table

        Returns:
            Foreign key rows ordered by table, then by reflection order
        """
        inspector = inspect(self._bind)
        table_names = inspector.get_table_names()
        if collection is not None:
            table_names = [collection] if collection in table_names else []

        rows: list[RelationSchema] = []
        for table in sorted(table_names):
            for key in inspector.get_foreign_keys(table):
                options = key.get("options") or {}
                for column, related_column in zip(
                    key["constrained_columns"], key["referred_columns"], strict=False
                ):
                    rows.append(
                        RelationSchema(
                            collection=table,
                            column=column,
                            related_collection=key["referred_table"],
                            related_column=related_column,
                            constraint_name=key.get("name"),
                            on_update=OnDeleteActionType.from_sql(options.get("onupdate")),
                            on_delete=OnDeleteActionType.from_sql(options.get("ondelete")),
                        )
                    )
        return rows

    def constraint_names(self, collection: str) -> list[str]:
        """List the names of the foreign keys currently on ``collection``."""
        return [
            row.constraint_name
            for row in self.foreign_keys(collection)
            if row.constraint_name is not None
        ]
