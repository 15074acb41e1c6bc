"""
Unit tests for schema decision algorithm.
"""

from types import SimpleNamespace

from src.ingest.schema_analyzer import analyze, split_payload
from src.ingest.schema_decider import SchemaDecider, StorageKind


def decide(payload, decider=None):
    """Run analysis and the decision on a raw parsed payload."""
    decider = decider or SchemaDecider()
    documents, is_batch = split_payload(payload)
    profile = analyze(documents, is_batch=is_batch)
    return decider.decide(profile, documents)


class TestSchemaDecider:
    """Tests for schema decision making."""

    def test_decide_sql_for_stable_schema(self):
        """Test that stable, simple schemas choose SQL."""
        decision = decide([
            {"id": 1, "name": "Alice", "age": 30, "active": True},
            {"id": 2, "name": "Bob", "age": 25, "active": False},
            {"id": 3, "name": "Charlie", "age": 35, "active": True},
        ])

        assert decision.kind == StorageKind.SQL
        assert decision.is_sql
        assert decision.reasoning == (
            "Regular tabular structure with 4.0 average fields, suitable for SQL")

    def test_empty_array_defaults_to_sql(self):
        decision = decide([])

        assert decision.kind == StorageKind.SQL
        assert decision.reasoning == "Empty array, defaulting to SQL"

    def test_single_empty_array_document(self):
        decider = SchemaDecider()
        documents = [[]]
        decision = decider.decide(analyze(documents), documents)

        assert decision.kind == StorageKind.SQL
        assert "Empty array" in decision.reasoning

    def test_primitive_array_is_sql_even_with_mixed_types(self):
        """[1, 2, 3, "four"] becomes a single-column table."""
        decision = decide([1, 2, 3, "four"])

        assert decision.kind == StorageKind.SQL
        assert decision.reasoning == "Array of primitive values, suitable for SQL"

    def test_single_primitive_is_sql(self):
        decision = decide(42)

        assert decision.kind == StorageKind.SQL
        assert decision.reasoning == "Primitive value, suitable for SQL"

    def test_non_object_items_choose_nosql(self):
        decision = decide([{"a": 1}, [1, 2]])

        assert decision.kind == StorageKind.NOSQL
        assert "non-object items" in decision.reasoning

    def test_array_of_arrays_is_nosql(self):
        decision = decide([[1, 2], [3]])
        assert decision.kind == StorageKind.NOSQL

    def test_single_flat_object_is_sql(self):
        decision = decide({"id": 1, "name": "A", "active": True})
        assert decision.kind == StorageKind.SQL

    def test_single_object_with_nesting_is_nosql(self):
        """A lone object with any nested object is rejected outright."""
        decision = decide({"id": 1, "address": {"city": "NYC"}})

        assert decision.kind == StorageKind.NOSQL
        assert decision.reasoning == (
            "Contains nested objects or arrays, requires NoSQL document structure")

    def test_single_object_with_array_is_nosql(self):
        decision = decide({"id": 1, "tags": ["a"]})
        assert decision.kind == StorageKind.NOSQL

    def test_single_object_nesting_allowed_when_not_strict(self):
        decider = SchemaDecider(strict_single_object=False)
        decision = decide({"id": 1, "address": {"city": "NYC"}}, decider)

        assert decision.kind == StorageKind.SQL

    def test_nested_user_profile_is_nosql(self):
        """Nesting below one level is rejected with a nesting reason."""
        decision = decide({"user": {"id": 1, "profile": {"bio": "x", "links": ["a", "b"]}}})

        assert decision.kind == StorageKind.NOSQL
        assert "nested" in decision.reasoning.lower()

    def test_deep_nesting_cites_depth(self):
        decision = decide([{"a": {"b": {"c": {"d": {"e": 1}}}}}])

        assert decision.kind == StorageKind.NOSQL
        assert decision.reasoning == (
            "Data has deep nesting (depth 4), better suited for NoSQL")

    def test_max_depth_is_configurable(self):
        decider = SchemaDecider(max_depth=1)
        decision = decide([{"a": {"b": {"c": 1}}}], decider)

        assert "depth 2" in decision.reasoning

    def test_complex_arrays_choose_nosql(self):
        decision = decide([{"id": 1, "items": [{"sku": "A"}]}])

        assert decision.kind == StorageKind.NOSQL
        assert decision.reasoning == (
            "Contains complex nested arrays (items), requires NoSQL document structure")

    def test_one_level_of_object_nesting_stays_sql(self):
        decision = decide([
            {"id": 1, "address": {"city": "NYC"}},
            {"id": 2, "address": {"city": "LA"}},
        ])

        assert decision.kind == StorageKind.SQL

    def test_two_levels_of_object_nesting_is_nosql(self):
        decision = decide([{"id": 1, "user": {"profile": {"bio": "x"}}}])

        assert decision.kind == StorageKind.NOSQL
        assert "deeper than one level (user)" in decision.reasoning

    def test_wide_records_choose_nosql(self):
        doc = {f"field_{i}": i for i in range(60)}
        decision = decide([doc, dict(doc)])

        assert decision.kind == StorageKind.NOSQL
        assert decision.reasoning == (
            "High number of fields per record (60.0), better for NoSQL")

    def test_fifty_fields_is_still_sql(self):
        doc = {f"field_{i}": i for i in range(50)}
        assert decide([doc]).kind == StorageKind.SQL

    def test_decide_nosql_for_unstable_schema(self):
        """Nine {id, name} records plus one with email give consistency 2/3."""
        docs = [{"id": i, "name": f"user{i}"} for i in range(9)]
        docs.append({"id": 9, "name": "user9", "email": "u9@example.com"})

        decision = decide(docs)

        assert decision.kind == StorageKind.NOSQL
        assert decision.reasoning == (
            "Inconsistent field presence (0.67 < 0.8), better suited for NoSQL")

    def test_consistency_threshold_is_configurable(self):
        docs = [{"id": 1, "name": "A"}, {"id": 2, "name": "B", "email": "b@x"}]

        assert decide(docs).kind == StorageKind.NOSQL
        assert decide(docs, SchemaDecider(consistency_threshold=0.5)).kind == StorageKind.SQL

    def test_from_settings(self):
        settings = SimpleNamespace(
            schema_max_depth=5,
            schema_max_avg_fields=10,
            schema_consistency_threshold=0.5,
            schema_strict_single_object=False,
        )
        decider = SchemaDecider.from_settings(settings)

        assert decider.max_depth == 5
        assert decider.max_avg_fields == 10
        assert decider.consistency_threshold == 0.5
        assert decider.strict_single_object is False

    def test_to_dict(self):
        decision = decide([{"id": 1}])

        assert decision.to_dict() == {
            "storage_type": "SQL",
            "reasoning": decision.reasoning,
        }

    def test_explain_decision(self):
        decider = SchemaDecider()
        documents = [{"id": 1, "name": "A"}]
        profile = analyze(documents)
        decision = decider.decide(profile, documents)

        explanation = decider.explain_decision(profile, decision)

        assert "Storage Choice: SQL" in explanation
        assert "Documents Analyzed: 1" in explanation
        assert decision.reasoning in explanation
