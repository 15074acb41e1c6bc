"""
Unit tests for relational schema derivation.
"""

import pytest

from src.ingest.schema_analyzer import FieldType, analyze
from src.ingest.schema_deriver import (
    RelationalSchema,
    SchemaDeriver,
    map_field_types_to_sql,
    sanitize_name,
)


def derive(documents, base_name="users.json", deriver=None):
    deriver = deriver or SchemaDeriver()
    return deriver.derive(analyze(documents), documents, base_name)


class TestNaming:
    """Tests for table naming."""

    def test_table_name_strips_extension(self):
        assert SchemaDeriver().table_name_for("users.json") == "data_users"

    def test_table_name_is_sanitized(self):
        assert SchemaDeriver().table_name_for("My-Orders 2024.json") == "data_my_orders_2024"

    def test_custom_prefix(self):
        assert SchemaDeriver(table_prefix="t_").table_name_for("x.json") == "t_x"

    def test_sanitize_name(self):
        assert sanitize_name("Field.Name-1") == "field_name_1"


class TestTypeMapping:
    """Tests for mapping observed types to column types."""

    def test_single_types(self):
        assert map_field_types_to_sql({FieldType.STRING}) == "TEXT"
        assert map_field_types_to_sql({FieldType.NUMBER}) == "NUMERIC"
        assert map_field_types_to_sql({FieldType.BOOLEAN}) == "BOOLEAN"
        assert map_field_types_to_sql({FieldType.ARRAY}) == "JSONB"
        assert map_field_types_to_sql({FieldType.OBJECT}) == "JSONB"

    def test_null_only_is_text(self):
        assert map_field_types_to_sql({FieldType.NULL}) == "TEXT"
        assert map_field_types_to_sql(set()) == "TEXT"

    def test_null_does_not_change_type(self):
        assert map_field_types_to_sql({FieldType.NUMBER, FieldType.NULL}) == "NUMERIC"

    def test_mixed_scalars_are_text(self):
        assert map_field_types_to_sql({FieldType.NUMBER, FieldType.STRING}) == "TEXT"

    def test_mixed_with_containers_is_document(self):
        assert map_field_types_to_sql({FieldType.ARRAY, FieldType.STRING}) == "JSONB"


class TestSchemaDeriver:
    """Tests for SchemaDeriver."""

    def test_flat_records_produce_single_table(self, flat_users):
        schema = derive(flat_users)

        assert len(schema.tables) == 1
        root = schema.root_table
        assert root.name == "data_users"
        assert [c.name for c in root.columns] == [
            "row_id", "id", "name", "created_at", "updated_at"]
        assert schema.child_tables == []

    def test_system_columns(self, flat_users):
        root = derive(flat_users).root_table

        assert root.primary_key.name == "row_id"
        assert root.primary_key.sql_type == "SERIAL"
        assert root.primary_key.nullable is False
        timestamps = [c for c in root.columns if c.name in ("created_at", "updated_at")]
        assert all(c.sql_type == "TIMESTAMP WITH TIME ZONE" for c in timestamps)
        assert all(c.nullable is False for c in timestamps)

    def test_column_types(self, flat_users):
        assert derive(flat_users).column_types() == {"id": "NUMERIC", "name": "TEXT"}

    def test_nullable_when_missing_in_some_documents(self):
        root = derive([{"id": 1, "email": "a@x"}, {"id": 2}]).root_table
        columns = {c.name: c for c in root.columns}

        assert columns["id"].nullable is False
        assert columns["email"].nullable is True

    def test_nullable_when_null_observed(self):
        root = derive([{"id": 1, "note": None}, {"id": 2, "note": "x"}]).root_table
        columns = {c.name: c for c in root.columns}

        assert columns["note"].nullable is True
        assert columns["note"].sql_type == "TEXT"

    def test_columns_follow_first_seen_order(self):
        root = derive([{"b": 1, "a": 2}, {"c": 3, "a": 4, "b": 5}]).root_table
        assert [c.name for c in root.data_columns()] == ["b", "a", "c"]

    def test_array_field_becomes_document_column(self):
        root = derive([{"id": 1, "tags": ["a", "b"]}]).root_table
        assert {c.name: c.sql_type for c in root.data_columns()}["tags"] == "JSONB"

    def test_nested_object_becomes_child_table(self, users_with_address):
        schema = derive(users_with_address)

        assert [t.name for t in schema.tables] == ["data_users", "data_users_address"]
        assert "address" not in schema.column_types()

        child = schema.child_tables[0]
        assert child.parent_table == "data_users"
        assert child.source_field == "address"
        assert [c.name for c in child.columns] == [
            "row_id", "parent_id", "city", "zip", "created_at", "updated_at"]

        fk = child.foreign_keys[0]
        assert fk.name == "parent_id"
        assert fk.references_table == "data_users"
        assert fk.nullable is False

    def test_child_nullability(self, users_with_address):
        child = derive(users_with_address).child_tables[0]
        columns = {c.name: c for c in child.columns}

        assert columns["city"].nullable is False
        assert columns["zip"].nullable is True

    def test_reserved_column_names_are_suffixed(self):
        root = derive([{"row_id": 7, "created_at": "2024-01-01", "name": "A"}]).root_table
        data = root.data_columns()

        assert [c.name for c in data] == ["row_id_1", "created_at_1", "name"]
        assert [c.source_field for c in data] == ["row_id", "created_at", "name"]

    def test_primitive_array_produces_value_table(self):
        schema = derive([1, 2, 3, "four"], base_name="numbers.json")
        root = schema.root_table

        assert root.name == "data_numbers"
        assert [c.name for c in root.columns] == [
            "row_id", "value", "created_at", "updated_at"]
        assert schema.column_types() == {"value": "TEXT"}

    def test_empty_array_produces_keys_only(self):
        root = derive([], base_name="empty.json").root_table
        assert [c.name for c in root.columns] == ["row_id", "created_at", "updated_at"]

    def test_deterministic(self, users_with_address):
        assert derive(users_with_address) == derive(users_with_address)

    def test_round_trip_through_dict(self, users_with_address):
        schema = derive(users_with_address)
        assert RelationalSchema.from_dict(schema.to_dict()) == schema

    def test_mixed_primitive_batch_keeps_every_document(self):
        schema = derive([1, {"a": 1}, 2], base_name="mixed.json")
        root = schema.root_table

        assert [t.name for t in schema.tables] == ["data_mixed"]
        assert [c.name for c in root.columns] == [
            "row_id", "value", "created_at", "updated_at"]
        assert schema.column_types() == {"value": "JSONB"}

    def test_child_table_names_are_unique(self):
        schema = derive(
            [{"a b": {"x": 1}, "a-b": {"y": 2}}, {"a b": {"x": 3}, "a-b": {"y": 4}}],
            base_name="f.json",
        )

        assert [t.name for t in schema.tables] == ["data_f", "data_f_a_b", "data_f_a_b_1"]
        assert [t.source_field for t in schema.child_tables] == ["a b", "a-b"]

    def test_blank_key_gets_placeholder_column(self):
        root = derive([{"": 1, "b": 2}]).root_table
        data = root.data_columns()

        assert [c.name for c in data] == ["field", "b"]
        assert [c.source_field for c in data] == ["", "b"]

    def test_blank_key_placeholder_does_not_clash(self):
        root = derive([{"field": "x", "": 1}]).root_table
        assert [c.name for c in root.data_columns()] == ["field", "field_1"]

    def test_blank_key_inside_child_table(self):
        child = derive([{"address": {"": "x", "city": "NYC"}}]).child_tables[0]
        data = child.data_columns()

        assert [c.name for c in data] == ["field", "city"]
        assert data[0].source_field == ""

    @pytest.mark.parametrize("documents", [
        [{"id": 1, "name": "A"}],
        [{"id": 1, "address": {"city": "NYC"}, "billing": {"zip": "1"}}],
        [{"a b": {"x": 1}, "a-b": {"y": 2}, "a_b": {"z": 3}}],
        [{"": {"x": 1}, "field": {"y": 2}}],
        [{"row_id": {"x": 1}, "tags": [1, 2]}],
        [1, {"a": 1}, None],
        [],
    ])
    def test_single_root_and_child_links(self, documents):
        schema = derive(documents, base_name="shape.json")
        roots = [t for t in schema.tables if t.parent_table is None]

        assert len(roots) == 1
        assert roots[0] is schema.root_table
        assert len({t.name for t in schema.tables}) == len(schema.tables)
        for child in schema.child_tables:
            assert len(child.foreign_keys) == 1
            fk = child.foreign_keys[0]
            assert fk.references_table == schema.root_table.name
            assert fk.name == "parent_id"
