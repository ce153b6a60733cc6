"""SQLAlchemy ORM models for TetherDB meta-tables.

Relation metadata lives in ``tdb_relations``, one row per owning
``(many_collection, many_field)`` pair. The physical foreign key, when there
is one, lives in the database schema itself and is never copied here.
"""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

RELATIONS_COLLECTION = "tdb_relations"


def generate_uuid() -> str:
    """Generate a new UUID as string."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all TetherDB models."""

    pass


class RelationMetaRecord(Base):
    """Stores the behavioral metadata of a relation."""

    __tablename__ = RELATIONS_COLLECTION

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Owning ("many") side, holds the foreign key column
    many_collection: Mapped[str] = mapped_column(String(64), nullable=False)
    many_field: Mapped[str] = mapped_column(String(64), nullable=False)

    # Referenced ("one") side, absent for polymorphic relations
    one_collection: Mapped[str | None] = mapped_column(String(64), nullable=True)
    one_field: Mapped[str | None] = mapped_column(String(64), nullable=True)
    one_collection_field: Mapped[str | None] = mapped_column(String(64), nullable=True)
    one_allowed_collections: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    junction_field: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sort_field: Mapped[str | None] = mapped_column(String(64), nullable=True)
    one_deselect_action: Mapped[str] = mapped_column(
        String(8), nullable=False, default="nullify"
    )

    # Concurrent creates for the same pair fail here at commit time
    __table_args__ = (
        Index("ix_tdb_relations_many", "many_collection", "many_field", unique=True),
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "many_collection": self.many_collection,
            "many_field": self.many_field,
            "one_collection": self.one_collection,
            "one_field": self.one_field,
            "one_collection_field": self.one_collection_field,
            "one_allowed_collections": self.one_allowed_collections,
            "junction_field": self.junction_field,
            "sort_field": self.sort_field,
            "one_deselect_action": self.one_deselect_action,
        }
