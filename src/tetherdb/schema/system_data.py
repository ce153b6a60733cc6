"""Relations between TetherDB's own system collections.

These rows describe how the platform's access-control collections link to
each other. They are merged into relation listings but never stored in
``tdb_relations``; they cannot be updated or deleted through the services.
"""

from __future__ import annotations

from tetherdb.core.types import RelationMeta

SYSTEM_RELATIONS: list[dict[str, str | None]] = [
    {
        "many_collection": "tdb_users",
        "many_field": "role",
        "one_collection": "tdb_roles",
        "one_field": "users",
    },
    {
        "many_collection": "tdb_permissions",
        "many_field": "role",
        "one_collection": "tdb_roles",
        "one_field": None,
    },
    {
        "many_collection": "tdb_sessions",
        "many_field": "user",
        "one_collection": "tdb_users",
        "one_field": None,
    },
]


def system_relation_rows() -> list[RelationMeta]:
    """Fresh metadata rows for the built-in system relations."""
    return [RelationMeta(**row, system=True) for row in SYSTEM_RELATIONS]
