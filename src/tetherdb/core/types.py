"""Core types and specifications for TetherDB.

All types are designed to be JSON-serializable.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class OnDeleteActionType(StrEnum):
    """Referential actions when a related record is deleted."""

    CASCADE = "CASCADE"  # Delete related records
    SET_NULL = "SET_NULL"  # Set foreign key to NULL
    RESTRICT = "RESTRICT"  # Prevent deletion if related records exist
    NO_ACTION = "NO_ACTION"  # Database default
    SET_DEFAULT = "SET_DEFAULT"  # Set foreign key to its column default

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid on_delete action values."""
        return [a.value for a in cls]

    @classmethod
    def from_sql(cls, clause: str | None) -> OnDeleteActionType | None:
        """Parse a reflected ON DELETE clause ("SET NULL", "cascade", ...)."""
        if not clause:
            return None
        return cls(clause.strip().upper().replace(" ", "_"))

    def to_sql(self) -> str:
        """Render as an SQL ON DELETE clause."""
        return self.value.replace("_", " ")


class RelationSchema(BaseModel):
    """A physical foreign key constraint.

    Produced by the schema inspector, and attached to a ``Relation`` when the
    relation is backed by a real constraint.
    """

    collection: str
    column: str
    related_collection: str | None = None
    related_column: str | None = None
    constraint_name: str | None = None
    on_update: OnDeleteActionType | None = None
    on_delete: OnDeleteActionType | None = None


class RelationMeta(BaseModel):
    """Behavioral metadata of a relation, as stored in ``tdb_relations``."""

    id: str | None = None
    many_collection: str
    many_field: str
    one_collection: str | None = None
    one_field: str | None = None
    one_collection_field: str | None = None
    one_allowed_collections: list[str] | None = None
    junction_field: str | None = None
    sort_field: str | None = None
    one_deselect_action: Literal["nullify", "delete"] = "nullify"
    system: bool = False


class Relation(BaseModel):
    """A relation descriptor assembled from metadata and physical schema."""

    model_config = ConfigDict(populate_by_name=True)

    collection: str
    field: str
    related_collection: str | None = None
    schema_: RelationSchema | None = Field(default=None, alias="schema")
    meta: RelationMeta | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(by_alias=True, mode="json")


class RelationSchemaSpec(BaseModel):
    """The part of a physical constraint a caller may choose."""

    on_delete: OnDeleteActionType | None = None


class RelationSpec(BaseModel):
    """Input for creating or updating a relation.

    ``collection`` and ``field`` are optional here so that their absence is
    reported by the service as a payload error, in a fixed order.
    """

    model_config = ConfigDict(populate_by_name=True)

    collection: str | None = None
    field: str | None = None
    related_collection: str | None = None
    schema_: RelationSchemaSpec | None = Field(default=None, alias="schema")
    meta: dict[str, Any] | None = None


PermissionAction = Literal["create", "read", "update", "delete", "share"]


class Permission(BaseModel):
    """One permission record granted to a caller."""

    collection: str
    action: PermissionAction
    fields: list[str] | None = None


class Accountability(BaseModel):
    """Who is calling, and what they may do."""

    user: str | None = None
    role: str | None = None
    admin: bool = False
    permissions: list[Permission] = Field(default_factory=list)


class FieldOverview(BaseModel):
    """A column in the schema snapshot."""

    field: str
    db_type: str
    nullable: bool = True


class CollectionOverview(BaseModel):
    """A table in the schema snapshot."""

    collection: str
    primary: str | None = None
    fields: dict[str, FieldOverview] = Field(default_factory=dict)
