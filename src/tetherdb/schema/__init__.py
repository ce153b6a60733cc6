"""Schema reflection, relation metadata storage and DDL for TetherDB."""

from tetherdb.schema.inspector import SchemaInspector
from tetherdb.schema.items import RelationItems
from tetherdb.schema.models import RELATIONS_COLLECTION, RelationMetaRecord
from tetherdb.schema.overview import SchemaOverview

__all__ = [
    "SchemaInspector",
    "SchemaOverview",
    "RelationItems",
    "RelationMetaRecord",
    "RELATIONS_COLLECTION",
]
