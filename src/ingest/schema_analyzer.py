"""
JSON Structure Analyzer.

Utilities for classifying JSON values, measuring nesting depth and
aggregating field presence and type statistics over a batch of documents.
"""

import hashlib
import json
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Set, Tuple, Union

JsonValue = Union[None, bool, int, float, str,
                  List["JsonValue"], Dict[str, "JsonValue"]]

DEFAULT_DEPTH_CAP = 10


class FieldType(str, Enum):
    """Semantic type of a JSON value."""
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


def classify_value(value: Any) -> FieldType:
    """
    Detect the semantic type of a JSON value.

    Args:
        value: The value to check

    Returns:
        FieldType enum value
    """
    if value is None:
        return FieldType.NULL
    elif isinstance(value, bool):
        return FieldType.BOOLEAN
    elif isinstance(value, (int, float)):
        return FieldType.NUMBER
    elif isinstance(value, str):
        return FieldType.STRING
    elif isinstance(value, list):
        return FieldType.ARRAY
    elif isinstance(value, dict):
        return FieldType.OBJECT
    else:
        return FieldType.STRING  # Fallback


def compute_depth(
    value: Any,
    current_depth: int = 0,
    depth_cap: int = DEFAULT_DEPTH_CAP
) -> int:
    """
    Measure how deeply containers nest inside a value.

    Scalars have depth 0 and every object or array level adds one,
    so ``{"a": 1}`` and ``[]`` both have depth 1.

    Args:
        value: The value to measure
        current_depth: Depth already consumed by the caller
        depth_cap: Depth at which descent stops

    Returns:
        Absolute depth reached, never above ``depth_cap``
    """
    if current_depth >= depth_cap:
        return current_depth

    if isinstance(value, dict):
        children = list(value.values())
    elif isinstance(value, list):
        children = value
    else:
        return current_depth

    deepest = current_depth + 1
    for child in children:
        deepest = max(deepest, compute_depth(child, current_depth + 1, depth_cap))

    return deepest


def document_depth(doc: Any, depth_cap: int = DEFAULT_DEPTH_CAP) -> int:
    """Nesting depth of the fields of a document (0 for a flat record)."""
    if isinstance(doc, dict):
        children = list(doc.values())
    elif isinstance(doc, list):
        children = doc
    else:
        return 0

    return max(
        (compute_depth(child, 0, depth_cap) for child in children),
        default=0
    )


def split_payload(payload: JsonValue) -> Tuple[List[JsonValue], bool]:
    """
    Turn an uploaded top-level JSON value into a list of documents.

    Returns:
        Tuple of (documents, is_batch). Arrays are batches of their
        elements; any other value is a single document.
    """
    if isinstance(payload, list):
        return list(payload), True
    return [payload], False


@dataclass(frozen=True)
class StructureProfile:
    """Aggregate description of one or more JSON documents."""
    unique_fields: FrozenSet[str]
    field_presence_count: Mapping[str, int]
    field_types: Mapping[str, FrozenSet[FieldType]]
    has_nested_objects: bool
    has_arrays: bool
    max_depth: int
    sample_size: int

    is_batch: bool = True
    top_level_field_total: int = 0
    complex_array_fields: FrozenSet[str] = field(default_factory=frozenset)
    deep_nested_fields: FrozenSet[str] = field(default_factory=frozenset)
    non_object_documents: int = 0

    def __post_init__(self):
        # Read-only views over private copies
        object.__setattr__(
            self, "field_presence_count", MappingProxyType(dict(self.field_presence_count)))
        object.__setattr__(
            self, "field_types",
            MappingProxyType({k: frozenset(v) for k, v in self.field_types.items()}))

    @property
    def common_fields(self) -> List[str]:
        """Fields present in every sampled document."""
        return [
            name for name, count in self.field_presence_count.items()
            if count == self.sample_size
        ]

    @property
    def field_consistency(self) -> float:
        """Fraction of observed fields present in every document."""
        if not self.unique_fields:
            return 1.0
        return len(self.common_fields) / len(self.unique_fields)

    @property
    def average_field_count(self) -> float:
        """Average number of top-level fields per document."""
        if self.sample_size == 0:
            return 0.0
        return self.top_level_field_total / self.sample_size

    def presence_ratio(self, name: str) -> float:
        """Calculate what fraction of documents contain this field."""
        if self.sample_size == 0:
            return 0.0
        return self.field_presence_count.get(name, 0) / self.sample_size

    @property
    def structure_hash(self) -> str:
        """SHA-256 of the sorted field paths and their observed types."""
        schema_repr = {
            name: sorted(t.value for t in types)
            for name, types in sorted(self.field_types.items())
        }
        schema_str = json.dumps(schema_repr, sort_keys=True)
        return hashlib.sha256(schema_str.encode()).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sample_size": self.sample_size,
            "is_batch": self.is_batch,
            "unique_fields": sorted(self.unique_fields),
            "common_fields": sorted(self.common_fields),
            "field_presence_count": dict(self.field_presence_count),
            "field_types": {
                name: sorted(t.value for t in types)
                for name, types in self.field_types.items()
            },
            "field_consistency": self.field_consistency,
            "average_field_count": self.average_field_count,
            "has_nested_objects": self.has_nested_objects,
            "has_arrays": self.has_arrays,
            "max_depth": self.max_depth,
            "structure_hash": self.structure_hash,
        }


class JsonStructureAnalyzer:
    """
    Analyzer for JSON document collections.

    Accumulates field presence, observed types and nesting metrics across
    documents, then freezes them into a StructureProfile.
    """

    def __init__(self, is_batch: bool = True, depth_cap: int = DEFAULT_DEPTH_CAP):
        """
        Initialize analyzer.

        Args:
            is_batch: Whether documents came from a top-level array
            depth_cap: Maximum nesting depth to descend into
        """
        self.is_batch = is_batch
        self.depth_cap = depth_cap
        self.field_presence_count: Dict[str, int] = {}
        self.field_types: Dict[str, Set[FieldType]] = defaultdict(set)
        self.documents_analyzed = 0
        self.max_observed_depth = 0
        self.has_nested_objects = False
        self.has_arrays = False
        self.top_level_field_total = 0
        self.complex_array_fields: Set[str] = set()
        self.deep_nested_fields: Set[str] = set()
        self.non_object_documents = 0

    def analyze_document(self, doc: JsonValue) -> None:
        """
        Analyze a single JSON document.

        Args:
            doc: JSON document to analyze
        """
        self.documents_analyzed += 1
        self.max_observed_depth = max(
            self.max_observed_depth, document_depth(doc, self.depth_cap))

        if not isinstance(doc, dict):
            self.non_object_documents += 1
            return

        self.top_level_field_total += len(doc)
        seen: Set[str] = set()

        for key, value in doc.items():
            self._record_field(key, value, seen)

            if isinstance(value, dict):
                self.has_nested_objects = True
                if any(isinstance(v, (dict, list)) for v in value.values()):
                    self.deep_nested_fields.add(key)
                # Single documents expose their nested paths as dotted fields
                if not self.is_batch:
                    self._record_nested(key, value, 1, seen)

            elif isinstance(value, list):
                self.has_arrays = True
                if any(isinstance(item, dict) for item in value):
                    self.complex_array_fields.add(key)

    def analyze_batch(self, documents: List[JsonValue]) -> None:
        """
        Analyze a batch of JSON documents.

        Args:
            documents: List of JSON documents to analyze
        """
        for doc in documents:
            self.analyze_document(doc)

    def _record_field(self, path: str, value: JsonValue, seen: Set[str]) -> None:
        self.field_types[path].add(classify_value(value))
        if path in seen:
            return
        seen.add(path)
        self.field_presence_count[path] = self.field_presence_count.get(path, 0) + 1

    def _record_nested(
        self,
        prefix: str,
        obj: Dict[str, JsonValue],
        depth: int,
        seen: Set[str]
    ) -> None:
        if depth >= self.depth_cap:
            return
        for key, value in obj.items():
            path = f"{prefix}.{key}"
            self._record_field(path, value, seen)
            if isinstance(value, dict):
                self._record_nested(path, value, depth + 1, seen)

    def get_profile(self) -> StructureProfile:
        """
        Freeze the accumulated statistics.

        Returns:
            StructureProfile for the analyzed documents
        """
        presence = dict(self.field_presence_count)
        return StructureProfile(
            unique_fields=frozenset(presence),
            field_presence_count=presence,
            field_types={
                name: frozenset(types) for name, types in self.field_types.items()
            },
            has_nested_objects=self.has_nested_objects,
            has_arrays=self.has_arrays,
            max_depth=self.max_observed_depth,
            sample_size=self.documents_analyzed,
            is_batch=self.is_batch,
            top_level_field_total=self.top_level_field_total,
            complex_array_fields=frozenset(self.complex_array_fields),
            deep_nested_fields=frozenset(self.deep_nested_fields),
            non_object_documents=self.non_object_documents,
        )


def analyze(
    documents: List[JsonValue],
    is_batch: bool = True,
    depth_cap: Optional[int] = None
) -> StructureProfile:
    """
    Build a StructureProfile for a list of documents.

    Args:
        documents: Documents assumed to describe the same kind of record
        is_batch: False when the list wraps a single uploaded value
        depth_cap: Optional override of the recursion cap

    Returns:
        StructureProfile
    """
    analyzer = JsonStructureAnalyzer(
        is_batch=is_batch,
        depth_cap=depth_cap if depth_cap is not None else DEFAULT_DEPTH_CAP
    )
    analyzer.analyze_batch(documents)
    return analyzer.get_profile()
