"""Answers what a caller may see, from their permission records."""

from __future__ import annotations

from tetherdb.core.types import Accountability, PermissionAction

WILDCARD = "*"


class PermissionsService:
    """Reads allow-lists from an ``Accountability``."""

    def __init__(self, accountability: Accountability | None = None) -> None:
        self.accountability = accountability

    def get_allowed_collections(self, action: PermissionAction) -> set[str]:
        """Collections with at least one permission record for ``action``."""
        if self.accountability is None:
            return set()
        return {p.collection for p in self.accountability.permissions if p.action == action}

    def get_allowed_fields(
        self, action: PermissionAction, collection: str | None = None
    ) -> dict[str, list[str]]:
        """Allowed field names per collection for ``action``.

        Field lists of several records for the same collection are merged.
        A list containing ``"*"`` allows every field.

        Args:
            action: Permission action, e.g. "read"
            collection: Only report this collection
        """
        fields_per_collection: dict[str, list[str]] = {}
        if self.accountability is None:
            return fields_per_collection

        for permission in self.accountability.permissions:
            if permission.action != action:
                continue
            if collection is not None and permission.collection != collection:
                continue
            allowed = fields_per_collection.setdefault(permission.collection, [])
            allowed.extend(permission.fields or [])
        return fields_per_collection

    def has_permission(self, collection: str, action: PermissionAction) -> bool:
        """Whether any permission record grants ``action`` on ``collection``."""
        return collection in self.get_allowed_collections(action)


def field_allowed(allowed_fields: dict[str, list[str]], collection: str, field: str) -> bool:
    """Whether ``field`` of ``collection`` is in the allow-list (or wildcarded)."""
    allowed = allowed_fields.get(collection)
    if not allowed:
        return False
    return WILDCARD in allowed or field in allowed
