"""Tests for core types and exceptions."""

import pytest
from pydantic import ValidationError

from tetherdb.core.types import (
    OnDeleteActionType,
    Relation,
    RelationMeta,
    RelationSpec,
)
from tetherdb.exceptions import ForbiddenError, InvalidPayloadError, TetherDBError


class TestOnDeleteActionType:
    """Tests for OnDeleteActionType enum."""

    def test_all_values(self):
        assert OnDeleteActionType.values() == [
            "CASCADE",
            "SET_NULL",
            "RESTRICT",
            "NO_ACTION",
            "SET_DEFAULT",
        ]

    def test_from_sql(self):
        """Reflected clauses map onto members."""
        assert OnDeleteActionType.from_sql("SET NULL") == OnDeleteActionType.SET_NULL
        assert OnDeleteActionType.from_sql("cascade") == OnDeleteActionType.CASCADE
        assert OnDeleteActionType.from_sql("NO ACTION") == OnDeleteActionType.NO_ACTION
        assert OnDeleteActionType.from_sql(None) is None
        assert OnDeleteActionType.from_sql("") is None

    def test_to_sql(self):
        assert OnDeleteActionType.SET_NULL.to_sql() == "SET NULL"
        assert OnDeleteActionType.CASCADE.to_sql() == "CASCADE"


class TestRelationMeta:
    """Tests for RelationMeta model."""

    def test_defaults(self):
        meta = RelationMeta(many_collection="articles", many_field="author_id")
        assert meta.id is None
        assert meta.one_collection is None
        assert meta.one_deselect_action == "nullify"
        assert meta.system is False

    def test_rejects_unknown_deselect_action(self):
        with pytest.raises(ValidationError):
            RelationMeta(many_collection="a", many_field="b", one_deselect_action="explode")


class TestRelationSpec:
    """Tests for RelationSpec model."""

    def test_empty_spec_is_valid(self):
        """Missing collection and field are reported by the service instead."""
        spec = RelationSpec()
        assert spec.collection is None
        assert spec.field is None

    def test_schema_alias(self):
        spec = RelationSpec.model_validate(
            {"collection": "articles", "field": "author_id", "schema": {"on_delete": "CASCADE"}}
        )
        assert spec.schema_ is not None
        assert spec.schema_.on_delete == OnDeleteActionType.CASCADE

    def test_rejects_unknown_on_delete(self):
        with pytest.raises(ValidationError):
            RelationSpec.model_validate({"schema": {"on_delete": "EXPLODE"}})


class TestRelation:
    """Tests for Relation model."""

    def test_round_trip_through_cache_form(self):
        """The JSON form stored in the cache validates back to an equal relation."""
        relation = Relation(
            collection="articles",
            field="author_id",
            related_collection="authors",
            meta=RelationMeta(many_collection="articles", many_field="author_id"),
        )
        assert Relation.model_validate(relation.to_dict()) == relation


class TestExceptions:
    """Tests for the error types."""

    def test_forbidden_message_is_fixed(self):
        error = ForbiddenError()
        assert str(error) == "You don't have permission to access this."
        assert isinstance(error, TetherDBError)

    def test_invalid_payload(self):
        error = InvalidPayloadError('"field" is required')
        assert error.to_dict() == {
            "error": "InvalidPayloadError",
            "message": '"field" is required',
            "context": {},
        }
