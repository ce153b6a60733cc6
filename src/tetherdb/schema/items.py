"""CRUD over relation metadata rows.

``RelationItems`` can be bound either to an ``Engine`` (each call commits on
its own) or to a ``Connection`` that already has a transaction open. In the
latter case the session joins that transaction and never commits it: the
owner of the connection decides whether the metadata write lands.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, select, true
from sqlalchemy.orm import Session

from tetherdb.core.types import RelationMeta
from tetherdb.schema.models import RelationMetaRecord

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

logger = logging.getLogger(__name__)

# Columns a caller may write; ``id`` is generated and ``system`` is never stored
WRITABLE_COLUMNS = (
    "many_collection",
    "many_field",
    "one_collection",
    "one_field",
    "one_collection_field",
    "one_allowed_collections",
    "junction_field",
    "sort_field",
    "one_deselect_action",
)


def _to_meta(record: RelationMetaRecord) -> RelationMeta:
    return RelationMeta.model_validate(record.to_dict())


class RelationItems:
    """Reads and writes ``tdb_relations`` rows."""

    def __init__(self, bind: Engine | Connection) -> None:
        """Initialize the store.

        Args:
            bind: Engine, or a connection inside an open transaction
        """
        self._bind = bind

    def _where(self, filters: dict[str, Any] | None) -> Any:
        clauses = [
            getattr(RelationMetaRecord, key) == value for key, value in (filters or {}).items()
        ]
        return and_(true(), *clauses)

    def read_by_query(
        self, filters: dict[str, Any] | None = None, limit: int | None = None
    ) -> list[RelationMeta]:
        """Read metadata rows matching all ``column == value`` filters.

        Args:
            filters: Column/value pairs, e.g. {"many_collection": "articles"}
            limit: Maximum number of rows, or None for all

        Returns:
            Matching rows ordered by owning collection and field
        """
        query = (
            select(RelationMetaRecord)
            .where(self._where(filters))
            .order_by(RelationMetaRecord.many_collection, RelationMetaRecord.many_field)
        )
        if limit is not None:
            query = query.limit(limit)

        with Session(bind=self._bind) as session:
            return [_to_meta(record) for record in session.scalars(query)]

    def create_one(self, meta: RelationMeta) -> str:
        """Insert a metadata row.

        Returns:
            The new row ID
        """
        values = meta.model_dump(include=set(WRITABLE_COLUMNS))
        with Session(bind=self._bind) as session:
            record = RelationMetaRecord(**values)
            session.add(record)
            session.flush()
            record_id = record.id
            session.commit()
            logger.debug(
                f"Created relation metadata {record_id} for "
                f"{meta.many_collection}.{meta.many_field}"
            )
            return record_id

    def update_one(self, row_id: str, patch: dict[str, Any]) -> None:
        """Apply ``patch`` to the row with ``row_id``.

        Keys that are not writable columns are ignored.
        """
        values = {key: value for key, value in patch.items() if key in WRITABLE_COLUMNS}
        with Session(bind=self._bind) as session:
            record = session.get(RelationMetaRecord, row_id)
            if record is None:
                return
            for key, value in values.items():
                setattr(record, key, value)
            session.commit()
            logger.debug(f"Updated relation metadata {row_id}: {sorted(values)}")

    def delete_by_query(self, filters: dict[str, Any]) -> int:
        """Delete rows matching ``filters``.

        Returns:
            Number of deleted rows
        """
        with Session(bind=self._bind) as session:
            result = session.execute(delete(RelationMetaRecord).where(self._where(filters)))
            session.commit()
            return result.rowcount
