"""In-memory snapshot of the database schema.

Collections and fields are reflected once, on first use, and kept for the
lifetime of the overview; build a new overview to see DDL made elsewhere.
Relations are read through the process-wide ``SystemCache`` instead, so
invalidation by any service is seen by every overview sharing that cache.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tetherdb.cache import STALE, relations_key
from tetherdb.core.types import CollectionOverview, FieldOverview, Relation
from tetherdb.schema.system_data import system_relation_rows
from tetherdb.utils.stitch import stitch_relations

if TYPE_CHECKING:
    from tetherdb.cache import SystemCache
    from tetherdb.schema.inspector import SchemaInspector
    from tetherdb.schema.items import RelationItems

logger = logging.getLogger(__name__)


class SchemaOverview:
    """Answers schema questions for the relation services."""

    def __init__(
        self, inspector: SchemaInspector, items: RelationItems, cache: SystemCache
    ) -> None:
        self._inspector = inspector
        self._items = items
        self._cache = cache
        self._collections: dict[str, CollectionOverview] | None = None

    # === Collections and fields ===

    def get_collections(self) -> dict[str, CollectionOverview]:
        """All collections, keyed by name."""
        if self._collections is None:
            self._collections = {
                table: self._inspector.collection(table) for table in self._inspector.tables()
            }
            logger.debug(f"Loaded schema snapshot with {len(self._collections)} collections")
        return self._collections

    def get_collection(self, collection: str) -> CollectionOverview | None:
        return self.get_collections().get(collection)

    def has_collection(self, collection: str) -> bool:
        return collection in self.get_collections()

    def get_fields(self, collection: str) -> dict[str, FieldOverview]:
        overview = self.get_collection(collection)
        return overview.fields if overview else {}

    def get_field(self, collection: str, field: str) -> FieldOverview | None:
        return self.get_fields(collection).get(field)

    def has_field(self, collection: str, field: str) -> bool:
        return field in self.get_fields(collection)

    def get_primary_key_field(self, collection: str) -> FieldOverview | None:
        overview = self.get_collection(collection)
        if overview is None or overview.primary is None:
            return None
        return overview.fields.get(overview.primary)

    # === Relations ===

    def get_relations_for_collection(self, collection: str) -> list[Relation]:
        """Relations owned by ``collection``.

        Served from the cache; a missing or partly stale entry is reloaded
        from the database in full.
        """
        key = relations_key(collection)
        cached = self._cache.get_hash(key)
        if cached is None or cached is STALE or STALE in cached.values():
            relations = self._load_relations(collection)
            self._cache.set_hash_full(
                key, {relation.field: relation.to_dict() for relation in relations}
            )
            return relations
        return [Relation.model_validate(value) for value in cached.values()]

    def get_relations_for_field(self, collection: str, field: str) -> Relation | None:
        """The relation owned by ``collection.field``, if any."""
        key = relations_key(collection)
        cached = self._cache.get_hash(key)
        if cached is None or cached is STALE:
            relations = self.get_relations_for_collection(collection)
            return next((r for r in relations if r.field == field), None)

        if field not in cached:
            return None
        if cached[field] is not STALE:
            return Relation.model_validate(cached[field])

        relation = next(iter(self._load_relations(collection, field)), None)
        if relation is None:
            self._cache.delete_hash_field(key, field)
        else:
            self._cache.set_hash_field(key, field, relation.to_dict())
        return relation

    def _load_relations(self, collection: str, field: str | None = None) -> list[Relation]:
        filters = {"many_collection": collection}
        if field is not None:
            filters["many_field"] = field

        meta_rows = self._items.read_by_query(filters)
        meta_rows += [
            row
            for row in system_relation_rows()
            if row.many_collection == collection and field in (None, row.many_field)
        ]
        schema_rows = [
            row
            for row in self._inspector.foreign_keys(collection)
            if field in (None, row.column)
        ]
        return stitch_relations(meta_rows, schema_rows)
