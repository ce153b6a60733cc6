"""Relation service: keeps foreign keys and relation metadata in step.

A relation has two sources of truth: the physical foreign key constraint in
the database, and its metadata row in ``tdb_relations``. Reads stitch both
together and hide what the caller may not see. Writes validate everything
first, then change the constraint and the metadata row in one transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from tetherdb.cache import STALE, SystemCache, clear_relations_for_field, get_cache, relations_key
from tetherdb.core.types import (
    Accountability,
    OnDeleteActionType,
    Relation,
    RelationMeta,
    RelationSpec,
)
from tetherdb.exceptions import ForbiddenError, InvalidPayloadError
from tetherdb.schema.ddl import ConstraintManager, needs_unsigned_fix
from tetherdb.schema.helpers import get_schema_helper
from tetherdb.schema.inspector import SchemaInspector
from tetherdb.schema.items import RelationItems
from tetherdb.schema.models import RELATIONS_COLLECTION
from tetherdb.schema.overview import SchemaOverview
from tetherdb.schema.system_data import system_relation_rows
from tetherdb.services.permissions import PermissionsService, field_allowed
from tetherdb.utils.naming import get_default_index_name
from tetherdb.utils.stitch import stitch_relations

if TYPE_CHECKING:
    from alembic.operations import BatchOperations
    from sqlalchemy import Connection

    from tetherdb.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)

# Meta attributes that identify a relation and cannot be patched
IDENTITY_ATTRIBUTES = ("id", "many_collection", "many_field", "one_collection", "system")


def _validation_message(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}"
        for err in error.errors()
    )


def _is_visible(
    relation: Relation, allowed_collections: set[str], allowed_fields: dict[str, list[str]]
) -> bool:
    if relation.collection not in allowed_collections:
        return False
    if relation.related_collection and relation.related_collection not in allowed_collections:
        return False

    meta = relation.meta
    if meta and meta.one_allowed_collections:
        if not all(c in allowed_collections for c in meta.one_allowed_collections):
            return False

    if not field_allowed(allowed_fields, relation.collection, relation.field):
        return False
    if relation.related_collection and meta and meta.one_field:
        if not field_allowed(allowed_fields, relation.related_collection, meta.one_field):
            return False

    return True


def filter_forbidden(
    relations: Iterable[Relation],
    accountability: Accountability | None,
    permissions_service: PermissionsService | None = None,
) -> list[Relation]:
    """Drop every relation that touches a collection or field the caller can't read.

    A relation stays only if its own collection and field, its related
    collection, every allowed collection of a polymorphic relation, and its
    reverse field are all readable. Nothing is partially redacted. Trusted
    (``None``) and admin callers see everything.
    """
    relations = list(relations)
    if accountability is None or accountability.admin:
        return relations

    permissions_service = permissions_service or PermissionsService(accountability)
    allowed_collections = permissions_service.get_allowed_collections("read")
    allowed_fields = permissions_service.get_allowed_fields("read")

    return [r for r in relations if _is_visible(r, allowed_collections, allowed_fields)]


class RelationsService:
    """Reads, creates, updates and deletes relations.

    ``accountability`` of None means a trusted internal caller, which is
    treated like an admin.
    """

    def __init__(
        self,
        connection: DatabaseConnection,
        accountability: Accountability | None = None,
        cache: SystemCache | None = None,
        schema: SchemaOverview | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            connection: Database connection
            accountability: Calling user's context, None for trusted callers
            cache: Relation cache, defaults to the process-wide cache
            schema: Schema snapshot, built from the database when omitted
        """
        self._connection = connection
        self.accountability = accountability
        self.cache = cache if cache is not None else get_cache()

        engine = connection.engine
        self.schema_inspector = SchemaInspector(engine)
        # Metadata is read without the caller's accountability; visibility is
        # decided per relation by filter_forbidden.
        self.relations_items = RelationItems(engine)
        self.schema = schema or SchemaOverview(
            self.schema_inspector, self.relations_items, self.cache
        )
        self.permissions_service = PermissionsService(accountability)
        self.helper = get_schema_helper(engine)

    # === Access checks ===

    @property
    def _is_restricted(self) -> bool:
        return self.accountability is not None and not self.accountability.admin

    @property
    def has_read_access(self) -> bool:
        """Whether the caller may read relation metadata at all."""
        return self.permissions_service.has_permission(RELATIONS_COLLECTION, "read")

    def _require_admin(self) -> None:
        if self._is_restricted:
            raise ForbiddenError()

    # === Reads ===

    def read_all(self, collection: str | None = None) -> list[Relation]:
        """All relations visible to the caller, optionally only those owned by ``collection``.

        Raises:
            ForbiddenError: Caller may not read relation metadata
        """
        if self._is_restricted and not self.has_read_access:
            raise ForbiddenError()

        filters = {"many_collection": collection} if collection else None
        meta_rows = self.relations_items.read_by_query(filters)
        meta_rows += [
            row
            for row in system_relation_rows()
            if collection is None or row.many_collection == collection
        ]
        schema_rows = self.schema_inspector.foreign_keys(collection)

        return filter_forbidden(
            stitch_relations(meta_rows, schema_rows), self.accountability, self.permissions_service
        )

    def read_one(self, collection: str, field: str) -> Relation:
        """The relation owned by ``collection.field``.

        A relation that doesn't exist and one the caller can't see are
        indistinguishable: both raise ``ForbiddenError``.

        Raises:
            ForbiddenError: Caller lacks access, or there is no such relation
        """
        if self._is_restricted:
            if not self.has_read_access:
                raise ForbiddenError()
            allowed_fields = self.permissions_service.get_allowed_fields("read", collection)
            if not field_allowed(allowed_fields, collection, field):
                raise ForbiddenError()

        meta_rows = self.relations_items.read_by_query(
            {"many_collection": collection, "many_field": field}, limit=1
        )
        schema_rows = [
            row for row in self.schema_inspector.foreign_keys(collection) if row.column == field
        ][:1]

        results = filter_forbidden(
            stitch_relations(meta_rows, schema_rows), self.accountability, self.permissions_service
        )
        if not results:
            raise ForbiddenError()
        return results[0]

    # === Writes ===

    def create_one(self, relation: RelationSpec | dict[str, Any]) -> None:
        """Create a relation, and its foreign key when a related collection is given.

        Raises:
            ForbiddenError: Caller is not an admin
            InvalidPayloadError: The relation is not valid for the current schema
        """
        self._require_admin()
        spec = self._parse(relation)

        if not spec.collection:
            raise InvalidPayloadError('"collection" is required')
        if not spec.field:
            raise InvalidPayloadError('"field" is required')

        collection, field, related_collection = spec.collection, spec.field, spec.related_collection
        collections = self.schema.get_collections()

        if collection not in collections:
            raise InvalidPayloadError(f'Collection "{collection}" doesn\'t exist')
        if not self.schema.has_field(collection, field):
            raise InvalidPayloadError(
                f'Field "{field}" doesn\'t exist in collection "{collection}"'
            )
        # A primary key should not be a foreign key
        if collections[collection].primary == field:
            raise InvalidPayloadError(
                f'Field "{field}" in collection "{collection}" is a primary key'
            )
        if related_collection and related_collection not in collections:
            raise InvalidPayloadError(f'Collection "{related_collection}" doesn\'t exist')

        existing = next(
            (r for r in self.schema.get_relations_for_collection(collection) if r.field == field),
            None,
        )
        if existing is not None:
            raise InvalidPayloadError(
                f'Field "{field}" in collection "{collection}" already has an associated '
                "relationship"
            )

        related_primary = self._related_primary(related_collection) if related_collection else None
        meta = self._build_meta(spec.meta or {}, collection, field, related_collection)
        on_delete = spec.schema_.on_delete if spec.schema_ else None

        with self._column_change(collection) as trx:
            if related_collection and related_primary:
                constraint_name = get_default_index_name("foreign", collection, field)
                ddl = ConstraintManager(trx)
                with ddl.alter_table(collection) as table:
                    self._alter_type(table, collection, field, related_collection)
                    ddl.add_foreign_key(
                        table,
                        constraint_name,
                        field,
                        related_collection,
                        related_primary,
                        on_delete,
                    )
                logger.info(
                    f"Added foreign key {constraint_name} on {collection}.{field} "
                    f"-> {related_collection}.{related_primary}"
                )

            RelationItems(trx).create_one(meta)

        logger.info(f"Created relation {collection}.{field}")

    def update_one(
        self, collection: str, field: str, relation: RelationSpec | dict[str, Any]
    ) -> None:
        """Update the meta attributes and the ON DELETE action of a relation.

        The owning and related collections can't be changed. A relation that
        only exists as a foreign key gets a metadata row when meta is given.

        Raises:
            ForbiddenError: Caller is not an admin
            InvalidPayloadError: Collection, field or relation doesn't exist
        """
        self._require_admin()
        spec = self._parse(relation)
        existing = self._existing_relation(collection, field)

        related_collection = existing.related_collection
        related_primary = self._related_primary(related_collection) if related_collection else None

        on_delete: OnDeleteActionType | None = None
        if spec.schema_ and spec.schema_.on_delete:
            on_delete = spec.schema_.on_delete
        elif existing.schema_:
            on_delete = existing.schema_.on_delete

        patch: dict[str, Any] | None = None
        new_meta: RelationMeta | None = None
        if spec.meta is not None:
            if existing.meta is not None:
                patch = self._build_patch(existing.meta, spec.meta)
            else:
                new_meta = self._build_meta(spec.meta, collection, field, related_collection)

        with self._column_change(collection, field) as trx:
            if related_collection and related_primary:
                constraint_name = get_default_index_name("foreign", collection, field)
                ddl = ConstraintManager(trx)
                with ddl.alter_table(collection) as table:
                    # If the FK already exists in the DB, drop it first
                    if existing.schema_:
                        constraint_name = existing.schema_.constraint_name or constraint_name
                        ddl.drop_foreign_key(table, constraint_name)

                    self._alter_type(table, collection, field, related_collection)
                    ddl.add_foreign_key(
                        table,
                        constraint_name,
                        field,
                        related_collection,
                        related_primary,
                        on_delete,
                    )
                logger.info(f"Recreated foreign key {constraint_name} on {collection}.{field}")

            items = RelationItems(trx)
            if patch is not None and existing.meta and existing.meta.id:
                items.update_one(existing.meta.id, patch)
            elif new_meta is not None:
                items.create_one(new_meta)

        logger.info(f"Updated relation {collection}.{field}")

    def delete_one(self, collection: str, field: str) -> None:
        """Delete a relation: its foreign key if still present, and its metadata row.

        Raises:
            ForbiddenError: Caller is not an admin
            InvalidPayloadError: Collection, field or relation doesn't exist
        """
        self._require_admin()
        existing = self._existing_relation(collection, field)

        with self._column_change(collection, field) as trx:
            constraint_name = existing.schema_.constraint_name if existing.schema_ else None
            if constraint_name:
                # The constraint may have been removed outside of TetherDB
                if constraint_name in SchemaInspector(trx).constraint_names(existing.collection):
                    ddl = ConstraintManager(trx)
                    with ddl.alter_table(existing.collection) as table:
                        ddl.drop_foreign_key(table, constraint_name)
                    logger.info(f"Dropped foreign key {constraint_name} on {collection}.{field}")
                else:
                    logger.debug(f"Foreign key {constraint_name} no longer exists, skipping drop")

            if existing.meta:
                RelationItems(trx).delete_by_query(
                    {"many_collection": collection, "many_field": field}
                )

        logger.info(f"Deleted relation {collection}.{field}")

    # === Helpers ===

    @contextmanager
    def _column_change(self, collection: str, field: str | None = None) -> Iterator[Connection]:
        """Open the transaction for a relation change.

        Runs the dialect's column-change hooks around it and invalidates the
        cached relations on every exit path. Without ``field`` the whole
        collection is invalidated.
        """
        run_post_column_change = self.helper.pre_column_change()
        try:
            with self._connection.engine.begin() as trx:
                yield trx
        except Exception as e:
            logger.error(f"Relation change on {collection} rolled back: {e}")
            raise
        finally:
            try:
                if run_post_column_change:
                    self.helper.post_column_change()
            finally:
                if field is None:
                    self.cache.set_hash_full(relations_key(collection), STALE)
                else:
                    clear_relations_for_field(self.cache, collection, field)

    def _parse(self, relation: RelationSpec | dict[str, Any]) -> RelationSpec:
        if isinstance(relation, RelationSpec):
            return relation
        try:
            return RelationSpec.model_validate(relation)
        except ValidationError as e:
            raise InvalidPayloadError(_validation_message(e)) from e

    def _build_meta(
        self,
        attributes: dict[str, Any],
        collection: str,
        field: str,
        related_collection: str | None,
    ) -> RelationMeta:
        values = {k: v for k, v in attributes.items() if k not in IDENTITY_ATTRIBUTES}
        try:
            return RelationMeta(
                **values,
                many_collection=collection,
                many_field=field,
                one_collection=related_collection,
            )
        except ValidationError as e:
            raise InvalidPayloadError(_validation_message(e)) from e

    def _build_patch(self, current: RelationMeta, attributes: dict[str, Any]) -> dict[str, Any]:
        patch = {k: v for k, v in attributes.items() if k not in IDENTITY_ATTRIBUTES}
        try:
            merged = RelationMeta.model_validate({**current.model_dump(), **patch})
        except ValidationError as e:
            raise InvalidPayloadError(_validation_message(e)) from e
        return merged.model_dump(include=set(patch))

    def _existing_relation(self, collection: str, field: str) -> Relation:
        if not self.schema.has_collection(collection):
            raise InvalidPayloadError(f'Collection "{collection}" doesn\'t exist')
        if not self.schema.has_field(collection, field):
            raise InvalidPayloadError(
                f'Field "{field}" doesn\'t exist in collection "{collection}"'
            )

        existing = self.schema.get_relations_for_field(collection, field)
        if existing is None:
            raise InvalidPayloadError(
                f'Field "{field}" in collection "{collection}" doesn\'t have a relationship.'
            )
        if existing.meta and existing.meta.system:
            raise InvalidPayloadError(
                f'Field "{field}" in collection "{collection}" is a system relationship'
            )
        return existing

    def _related_primary(self, related_collection: str) -> str:
        overview = self.schema.get_collection(related_collection)
        if overview is None:
            raise InvalidPayloadError(f'Collection "{related_collection}" doesn\'t exist')
        if overview.primary is None:
            raise InvalidPayloadError(
                f'Collection "{related_collection}" doesn\'t have a single-column primary key'
            )
        return overview.primary

    def _alter_type(
        self, table: BatchOperations, collection: str, field: str, related_collection: str
    ) -> None:
        """Make an ``int`` foreign key ``int unsigned`` when the target key is.

        MySQL refuses foreign keys between the two. Only that exact pairing is
        changed.
        """
        field_overview = self.schema.get_field(collection, field)
        related_primary = self.schema.get_primary_key_field(related_collection)
        if field_overview is None or related_primary is None:
            return
        if needs_unsigned_fix(field_overview.db_type, related_primary.db_type):
            ConstraintManager.make_unsigned(table, field_overview)
