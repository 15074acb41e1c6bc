"""
Ingest module for JSON processing.

Provides structure analysis, the SQL/NoSQL decision, schema derivation,
schema comparison and conflict resolution for uploaded JSON.
"""

from src.ingest.schema_analyzer import (
    FieldType,
    JsonStructureAnalyzer,
    StructureProfile,
    analyze,
    classify_value,
    compute_depth,
    split_payload,
)
from src.ingest.schema_decider import (
    SchemaDecider,
    StorageDecision,
    StorageKind,
)
from src.ingest.schema_deriver import (
    ColumnDef,
    RelationalSchema,
    SchemaDeriver,
    TableDef,
)
from src.ingest.row_builder import RowBuilder
from src.ingest.schema_comparator import (
    SchemaComparisonResult,
    SchemaRecord,
    TypeMismatch,
    compare_schemas,
    has_schema_conflict,
)
from src.ingest.conflict_resolver import (
    ConflictAction,
    ConflictResolution,
    ConflictResolutionError,
    SchemaConflictResolver,
)
from src.ingest.ddl_generator import DDLGenerator
from src.ingest.json_processor import (
    JsonProcessingError,
    JsonProcessingResult,
    JsonProcessor,
)

__all__ = [  # ruff: noqa: RUF022
    # Structure Analysis
    "FieldType",
    "JsonStructureAnalyzer",
    "StructureProfile",
    "analyze",
    "classify_value",
    "compute_depth",
    "split_payload",
    # Decision Making
    "SchemaDecider",
    "StorageDecision",
    "StorageKind",
    # Schema Derivation
    "ColumnDef",
    "RelationalSchema",
    "SchemaDeriver",
    "TableDef",
    "RowBuilder",
    # Schema Conflicts
    "SchemaComparisonResult",
    "SchemaRecord",
    "TypeMismatch",
    "compare_schemas",
    "has_schema_conflict",
    "ConflictAction",
    "ConflictResolution",
    "ConflictResolutionError",
    "SchemaConflictResolver",
    # DDL Generation
    "DDLGenerator",
    # Processing
    "JsonProcessor",
    "JsonProcessingError",
    "JsonProcessingResult",
]
