"""Merge relation metadata with physical foreign keys."""

from __future__ import annotations

from collections.abc import Iterable

from tetherdb.core.types import Relation, RelationMeta, RelationSchema


def stitch_relations(
    meta_rows: Iterable[RelationMeta], schema_rows: Iterable[RelationSchema]
) -> list[Relation]:
    """Combine metadata rows and foreign key rows into relation descriptors.

    Rows are matched on the owning ``(collection, field)`` pair. Metadata rows
    come first, in their given order; a matched foreign key supplies the
    ``related_collection`` and the ``schema``. Metadata rows without a foreign
    key (alias relations) keep ``schema`` unset. Foreign keys without
    metadata follow, in their given order, with ``meta`` unset.
    """
    schema_by_key: dict[tuple[str, str], RelationSchema] = {}
    for schema_row in schema_rows:
        schema_by_key.setdefault((schema_row.collection, schema_row.column), schema_row)

    results: list[Relation] = []
    seen: set[tuple[str, str]] = set()

    for meta in meta_rows:
        key = (meta.many_collection, meta.many_field)
        if key in seen:
            continue
        seen.add(key)

        schema = schema_by_key.get(key)
        results.append(
            Relation(
                collection=meta.many_collection,
                field=meta.many_field,
                related_collection=schema.related_collection if schema else meta.one_collection,
                schema=schema,
                meta=meta,
            )
        )

    for key, schema in schema_by_key.items():
        if key in seen:
            continue
        results.append(
            Relation(
                collection=schema.collection,
                field=schema.column,
                related_collection=schema.related_collection,
                schema=schema,
                meta=None,
            )
        )

    return results
