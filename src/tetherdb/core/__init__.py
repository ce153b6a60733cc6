"""Core components for TetherDB."""

from tetherdb.core.connection import DatabaseConnection
from tetherdb.core.types import (
    Accountability,
    CollectionOverview,
    FieldOverview,
    OnDeleteActionType,
    Permission,
    Relation,
    RelationMeta,
    RelationSchema,
    RelationSpec,
)

__all__ = [
    "DatabaseConnection",
    "Accountability",
    "Permission",
    "OnDeleteActionType",
    "Relation",
    "RelationMeta",
    "RelationSchema",
    "RelationSpec",
    "FieldOverview",
    "CollectionOverview",
]
