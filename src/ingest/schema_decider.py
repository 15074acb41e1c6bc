"""Storage decision algorithm for SQL vs NoSQL storage."""

from dataclasses import dataclass
from typing import Dict, Any, List, Optional
from enum import Enum

from src.ingest.schema_analyzer import JsonValue, StructureProfile

DEFAULT_MAX_DEPTH = 3
DEFAULT_MAX_AVG_FIELDS = 50
DEFAULT_CONSISTENCY_THRESHOLD = 0.8


class StorageKind(str, Enum):
    SQL = "SQL"
    NOSQL = "NoSQL"


@dataclass(frozen=True)
class StorageDecision:
    """Result of a storage classification."""
    kind: StorageKind
    reasoning: str  # Human-readable explanation

    @property
    def is_sql(self) -> bool:
        return self.kind == StorageKind.SQL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "storage_type": self.kind.value,
            "reasoning": self.reasoning,
        }


def _sql(reasoning: str) -> StorageDecision:
    return StorageDecision(kind=StorageKind.SQL, reasoning=reasoning)


def _nosql(reasoning: str) -> StorageDecision:
    return StorageDecision(kind=StorageKind.NOSQL, reasoning=reasoning)


class SchemaDecider:
    """Decides between relational and document storage for JSON payloads."""

    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_avg_fields: int = DEFAULT_MAX_AVG_FIELDS,
        consistency_threshold: float = DEFAULT_CONSISTENCY_THRESHOLD,
        strict_single_object: bool = True,
    ):
        self.max_depth = max_depth
        self.max_avg_fields = max_avg_fields
        self.consistency_threshold = consistency_threshold
        self.strict_single_object = strict_single_object

    @classmethod
    def from_settings(cls, settings) -> "SchemaDecider":
        return cls(
            max_depth=settings.schema_max_depth,
            max_avg_fields=settings.schema_max_avg_fields,
            consistency_threshold=settings.schema_consistency_threshold,
            strict_single_object=settings.schema_strict_single_object,
        )

    def decide(
        self,
        profile: StructureProfile,
        documents: List[JsonValue]
    ) -> StorageDecision:
        """
        Choose a storage kind for the analyzed documents.

        Rules are checked in order and the first match wins; later rules
        are more permissive and must not override an earlier rejection.

        Args:
            profile: Structure profile computed over ``documents``
            documents: The documents themselves

        Returns:
            StorageDecision with reasoning
        """
        # Rule 1: nothing to inspect
        if not documents or (
            len(documents) == 1 and isinstance(documents[0], list) and not documents[0]
        ):
            return _sql("Empty array, defaulting to SQL")

        # Rule 2: primitives become a single-column table
        first = documents[0]
        if not isinstance(first, (dict, list)):
            if profile.is_batch:
                return _sql("Array of primitive values, suitable for SQL")
            return _sql("Primitive value, suitable for SQL")

        # Rule 3: every record must be an object
        if profile.non_object_documents > 0 or any(
                not isinstance(doc, dict) for doc in documents):
            return _nosql("Data contains non-object items or inconsistent structure")

        # Rule 4: a lone object may not nest at all
        if self.strict_single_object and not profile.is_batch and (
                profile.has_nested_objects or profile.has_arrays):
            return _nosql(
                "Contains nested objects or arrays, requires NoSQL document structure")

        # Rule 5: deep nesting
        if profile.max_depth > self.max_depth:
            return _nosql(
                f"Data has deep nesting (depth {profile.max_depth}), better suited for NoSQL")

        # Rule 6: arrays of objects cannot be flattened into columns
        if profile.complex_array_fields:
            fields = ", ".join(sorted(profile.complex_array_fields))
            return _nosql(
                f"Contains complex nested arrays ({fields}), requires NoSQL document structure")

        # Rule 7: only one level of object nesting maps to child tables
        if profile.deep_nested_fields:
            fields = ", ".join(sorted(profile.deep_nested_fields))
            return _nosql(
                f"Nested structure deeper than one level ({fields}), better suited for NoSQL")

        # Rule 8: very wide records
        avg_fields = profile.average_field_count
        if avg_fields > self.max_avg_fields:
            return _nosql(
                f"High number of fields per record ({avg_fields:.1f}), better for NoSQL")

        # Rule 9: fields must show up consistently
        consistency = profile.field_consistency
        if consistency < self.consistency_threshold:
            return _nosql(
                f"Inconsistent field presence ({consistency:.2f} < "
                f"{self.consistency_threshold}), better suited for NoSQL")

        return _sql(
            f"Regular tabular structure with {avg_fields:.1f} average fields, suitable for SQL")

    def explain_decision(
        self,
        profile: StructureProfile,
        decision: StorageDecision,
        title: Optional[str] = None
    ) -> str:
        """Generate detailed explanation of the decision."""
        lines = [
            "=" * 60,
            title or "STORAGE DECISION ANALYSIS",
            "=" * 60,
            f"Storage Choice: {decision.kind.value}",
            "",
            "Analysis Results:",
            f"  • Documents Analyzed: {profile.sample_size}",
            f"  • Unique Fields: {len(profile.unique_fields)}",
            f"  • Average Fields: {profile.average_field_count:.1f}",
            f"  • Maximum Depth: {profile.max_depth}",
            f"  • Field Consistency: {profile.field_consistency:.2%}",
            f"  • Has Nested Objects: {profile.has_nested_objects}",
            f"  • Has Arrays: {profile.has_arrays}",
            "",
            "Decision Rationale:",
            decision.reasoning,
            "=" * 60,
        ]
        return "\n".join(lines)
