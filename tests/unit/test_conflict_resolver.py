"""
Unit tests for schema conflict resolution.
"""

from datetime import datetime, timezone

import pytest

from src.ingest.conflict_resolver import (
    ConflictAction,
    ConflictResolutionError,
    SchemaConflictResolver,
)
from src.ingest.schema_analyzer import analyze
from src.ingest.schema_comparator import SchemaRecord
from src.ingest.schema_decider import StorageKind
from src.ingest.schema_deriver import SchemaDeriver


def sql_record(documents, table_name="data_users"):
    schema = SchemaDeriver().derive(analyze(documents), documents, "users.json")
    return SchemaRecord(storage_type=StorageKind.SQL, schema=schema, table_name=table_name)


def nosql_record(table_name="data_users"):
    return SchemaRecord(storage_type=StorageKind.NOSQL, table_name=table_name)


@pytest.fixture
def resolver():
    return SchemaConflictResolver()


@pytest.fixture
def existing():
    return sql_record([{"id": 1, "name": "A"}])


class TestSchemaConflictResolver:
    """Tests for SchemaConflictResolver."""

    def test_invalid_action(self, resolver, existing):
        with pytest.raises(ConflictResolutionError, match="Invalid action: merge"):
            resolver.resolve("merge", existing, existing, "users.json")

    def test_overwrite(self, resolver, existing):
        incoming = sql_record([{"id": 1, "email": "a@x"}])

        resolution = resolver.resolve("overwrite", existing, incoming, "users.json")

        assert resolution.action == ConflictAction.OVERWRITE
        assert resolution.permitted
        assert resolution.drop_table == "data_users"
        assert resolution.table_name == "data_users"
        assert resolution.adopt_schema
        assert resolution.comparison.missing_columns == ["name"]

    def test_append_with_matching_schema(self, resolver, existing):
        incoming = sql_record([{"id": 5, "name": "E"}])

        resolution = resolver.resolve(ConflictAction.APPEND, existing, incoming, "users.json")

        assert resolution.permitted
        assert resolution.table_name == "data_users"
        assert resolution.drop_table is None
        assert not resolution.adopt_schema

    def test_append_refused_on_schema_difference(self, resolver, existing):
        incoming = sql_record([{"id": 1, "name": "A", "email": "a@x"}])

        resolution = resolver.resolve("append", existing, incoming, "users.json")

        assert not resolution.permitted
        assert resolution.message == (
            "New schema is not compatible with existing table structure "
            "(extra columns: email)")

    def test_append_refused_on_type_change(self, resolver, existing):
        incoming = sql_record([{"id": "1", "name": "A"}])

        resolution = resolver.resolve("append", existing, incoming, "users.json")

        assert not resolution.permitted
        assert "id (NUMERIC -> TEXT)" in resolution.message

    def test_append_refused_without_table(self, resolver):
        existing = sql_record([{"id": 1}], table_name=None)

        resolution = resolver.resolve("append", existing, existing, "users.json")

        assert not resolution.permitted
        assert resolution.message == "No existing table to append to"

    def test_append_refused_across_storage_kinds(self, resolver, existing):
        resolution = resolver.resolve("append", existing, nosql_record(), "users.json")

        assert not resolution.permitted
        assert resolution.message == "Cannot append NoSQL data to SQL storage"
        assert resolution.comparison is None

    def test_append_between_document_collections(self, resolver):
        resolution = resolver.resolve("append", nosql_record(), nosql_record(), "users.json")
        assert resolution.permitted

    def test_create_new_version(self, resolver, existing):
        incoming = sql_record([{"id": 1, "email": "a@x"}])
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)

        resolution = resolver.resolve(
            "create_new_version", existing, incoming, "users.json", now=now)

        assert resolution.permitted
        assert resolution.table_name == "data_users_v1704067200000"
        assert resolution.drop_table is None
        assert resolution.adopt_schema
        assert resolution.reason == "Schema conflict resolved"

    def test_version_table_names_differ_over_time(self, resolver):
        first = resolver.version_table_name(
            "users.json", datetime(2024, 1, 1, tzinfo=timezone.utc))
        second = resolver.version_table_name(
            "users.json", datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc))

        assert first != second
        assert first.startswith("data_users_v")

    def test_reject_preserves_existing(self, resolver, existing):
        incoming = sql_record([{"id": 1, "email": "a@x"}])

        resolution = resolver.resolve("reject", existing, incoming, "users.json")

        assert resolution.permitted
        assert resolution.message == "Schema change rejected. Existing table preserved."
        assert resolution.reason == "User rejected schema change"
        assert resolution.table_name == "data_users"
        assert resolution.drop_table is None
        assert not resolution.adopt_schema

    def test_reject_keeps_user_reason(self, resolver, existing):
        resolution = resolver.resolve(
            "reject", existing, existing, "users.json", reason="Wrong file")
        assert resolution.reason == "Wrong file"

    def test_reject_logs_warning(self, resolver, existing, caplog):
        with caplog.at_level("WARNING"):
            resolver.resolve("reject", existing, existing, "users.json")

        assert any(r.getMessage() == "Schema change rejected" for r in caplog.records)

    def test_reject_log_carries_structured_fields(self, resolver, existing, caplog):
        incoming = sql_record([{"id": 1, "email": "a@x"}])

        with caplog.at_level("WARNING"):
            resolver.resolve("reject", existing, incoming, "users.json", reason="bad shape")

        record = next(r for r in caplog.records if r.getMessage() == "Schema change rejected")
        assert record.extra_fields["file_name"] == "users.json"
        assert record.extra_fields["table_name"] == "data_users"
        assert record.extra_fields["reason"] == "bad shape"
        assert record.extra_fields["differences"]

    def test_to_dict(self, resolver, existing):
        data = resolver.resolve("overwrite", existing, existing, "users.json").to_dict()

        assert data["action"] == "overwrite"
        assert data["permitted"] is True
        assert data["comparison"]["is_exact_match"] is True
