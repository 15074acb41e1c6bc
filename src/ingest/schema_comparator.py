"""Schema comparison for detecting conflicts between uploads."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.ingest.schema_analyzer import FieldType
from src.ingest.schema_decider import StorageKind
from src.ingest.schema_deriver import SQL_TYPE_MAPPING, RelationalSchema


@dataclass(frozen=True)
class TypeMismatch:
    column: str
    existing_type: str
    new_type: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "column": self.column,
            "existing_type": self.existing_type,
            "new_type": self.new_type,
        }


@dataclass(frozen=True)
class SchemaComparisonResult:
    """Differences between an existing and an incoming schema."""
    missing_columns: List[str] = field(default_factory=list)
    extra_columns: List[str] = field(default_factory=list)
    mismatched_types: List[TypeMismatch] = field(default_factory=list)

    @property
    def is_exact_match(self) -> bool:
        return not (self.missing_columns or self.extra_columns or self.mismatched_types)

    def describe(self) -> str:
        """One-line summary of the differences."""
        if self.is_exact_match:
            return "Schemas match exactly"
        parts = []
        if self.missing_columns:
            parts.append(f"missing columns: {', '.join(self.missing_columns)}")
        if self.extra_columns:
            parts.append(f"extra columns: {', '.join(self.extra_columns)}")
        if self.mismatched_types:
            parts.append("type changes: " + ", ".join(
                f"{m.column} ({m.existing_type} -> {m.new_type})"
                for m in self.mismatched_types
            ))
        return "; ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_exact_match": self.is_exact_match,
            "missing_columns": list(self.missing_columns),
            "extra_columns": list(self.extra_columns),
            "mismatched_types": [m.to_dict() for m in self.mismatched_types],
        }


def normalize_sql_type(type_name: str) -> str:
    """
    Normalize a JSON or SQL type name to a canonical SQL type.

    JSON type names (``string``, ``number`` ...) go through the column type
    mapping, anything else is treated as an SQL type and upper-cased.
    """
    cleaned = (type_name or "").strip()
    if not cleaned:
        return SQL_TYPE_MAPPING[FieldType.NULL]
    try:
        return SQL_TYPE_MAPPING[FieldType(cleaned.lower())]
    except ValueError:
        return " ".join(cleaned.upper().split())


def compare_schemas(
    existing: Dict[str, str],
    incoming: Dict[str, str]
) -> SchemaComparisonResult:
    """
    Compare two ``{column: type}`` maps.

    Args:
        existing: Schema already stored for the file
        incoming: Schema derived from the new upload

    Returns:
        SchemaComparisonResult; missing and extra columns are directional
    """
    missing = [name for name in existing if name not in incoming]
    extra = [name for name in incoming if name not in existing]

    mismatched = []
    for name, existing_type in existing.items():
        if name not in incoming:
            continue
        old = normalize_sql_type(existing_type)
        new = normalize_sql_type(incoming[name])
        if old != new:
            mismatched.append(TypeMismatch(column=name, existing_type=old, new_type=new))

    return SchemaComparisonResult(
        missing_columns=missing,
        extra_columns=extra,
        mismatched_types=mismatched,
    )


def has_schema_conflict(existing: Dict[str, str], incoming: Dict[str, str]) -> bool:
    """True unless the two schemas match exactly."""
    return not compare_schemas(existing, incoming).is_exact_match


def flatten_schema_columns(schema: RelationalSchema) -> Dict[str, str]:
    """
    Data columns of every table in one map.

    Root columns keep their names; child table columns are prefixed with
    the JSON field the child table was split from (``address.city``).
    """
    columns = dict(schema.column_types())
    for child in schema.child_tables:
        prefix = child.source_field or child.name
        for name, sql_type in schema.column_types(child.name).items():
            columns[f"{prefix}.{name}"] = sql_type
    return columns


@dataclass(frozen=True)
class SchemaRecord:
    """
    Stored description of a processed file.

    Persisted by the caller and used as the existing side when the same
    file is processed again. NoSQL records carry no relational schema.
    """
    storage_type: StorageKind
    schema: Optional[RelationalSchema] = None
    table_name: Optional[str] = None

    def column_types(self) -> Dict[str, str]:
        if self.schema is None:
            return {}
        return flatten_schema_columns(self.schema)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "storage_type": self.storage_type.value,
            "schema": self.schema.to_dict() if self.schema else None,
            "table_name": self.table_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaRecord":
        schema = data.get("schema")
        return cls(
            storage_type=StorageKind(data["storage_type"]),
            schema=RelationalSchema.from_dict(schema) if schema else None,
            table_name=data.get("table_name"),
        )
