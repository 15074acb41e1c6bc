"""
Relational Schema Deriver.

Converts the structure of SQL-classified JSON documents into table
definitions: one root table plus a child table for every field that holds
a flat nested object, linked back to the root by foreign key.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set

from src.ingest.schema_analyzer import (
    FieldType,
    JsonValue,
    StructureProfile,
    classify_value,
)

PRIMARY_KEY_COLUMN = "row_id"
PARENT_KEY_COLUMN = "parent_id"
PRIMITIVE_VALUE_COLUMN = "value"
BLANK_FIELD_NAME = "field"
TIMESTAMP_COLUMNS = ("created_at", "updated_at")
TIMESTAMP_TYPE = "TIMESTAMP WITH TIME ZONE"
SERIAL_TYPE = "SERIAL"
FOREIGN_KEY_TYPE = "INTEGER"
DOCUMENT_TYPE = "JSONB"

SQL_TYPE_MAPPING = {
    FieldType.STRING: "TEXT",
    FieldType.NUMBER: "NUMERIC",
    FieldType.BOOLEAN: "BOOLEAN",
    FieldType.ARRAY: DOCUMENT_TYPE,
    FieldType.OBJECT: DOCUMENT_TYPE,
    FieldType.NULL: "TEXT",
}

_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_INVALID_NAME_RE = re.compile(r"[^a-zA-Z0-9_]")


@dataclass(frozen=True)
class ColumnDef:
    name: str
    sql_type: str
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    references_table: Optional[str] = None
    source_field: Optional[str] = None  # JSON key the column is filled from

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "sql_type": self.sql_type,
            "nullable": self.nullable,
            "is_primary_key": self.is_primary_key,
            "is_foreign_key": self.is_foreign_key,
            "references_table": self.references_table,
            "source_field": self.source_field,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnDef":
        return cls(
            name=data["name"],
            sql_type=data["sql_type"],
            nullable=data.get("nullable", True),
            is_primary_key=data.get("is_primary_key", False),
            is_foreign_key=data.get("is_foreign_key", False),
            references_table=data.get("references_table"),
            source_field=data.get("source_field"),
        )


@dataclass(frozen=True)
class TableDef:
    name: str
    columns: List[ColumnDef]
    parent_table: Optional[str] = None
    source_field: Optional[str] = None  # JSON field a child table was split from

    @property
    def primary_key(self) -> Optional[ColumnDef]:
        return next((c for c in self.columns if c.is_primary_key), None)

    @property
    def foreign_keys(self) -> List[ColumnDef]:
        return [c for c in self.columns if c.is_foreign_key]

    def data_columns(self) -> List[ColumnDef]:
        """Columns that carry document values (no keys or timestamps)."""
        return [
            c for c in self.columns
            if not c.is_primary_key
            and not c.is_foreign_key
            and c.name not in TIMESTAMP_COLUMNS
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
            "parent_table": self.parent_table,
            "source_field": self.source_field,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableDef":
        return cls(
            name=data["name"],
            columns=[ColumnDef.from_dict(c) for c in data.get("columns", [])],
            parent_table=data.get("parent_table"),
            source_field=data.get("source_field"),
        )


@dataclass(frozen=True)
class RelationalSchema:
    tables: List[TableDef]

    @property
    def root_table(self) -> TableDef:
        return next(t for t in self.tables if t.parent_table is None)

    @property
    def child_tables(self) -> List[TableDef]:
        return [t for t in self.tables if t.parent_table is not None]

    def get_table(self, name: str) -> Optional[TableDef]:
        return next((t for t in self.tables if t.name == name), None)

    def column_types(self, table_name: Optional[str] = None) -> Dict[str, str]:
        """
        Map of data column name to SQL type.

        Args:
            table_name: Table to describe (root table when omitted)

        Returns:
            Dictionary usable as one side of a schema comparison
        """
        table = self.get_table(table_name) if table_name else self.root_table
        if table is None:
            return {}
        return {c.name: c.sql_type for c in table.data_columns()}

    def to_dict(self) -> Dict[str, Any]:
        return {"tables": [t.to_dict() for t in self.tables]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RelationalSchema":
        return cls(tables=[TableDef.from_dict(t) for t in data.get("tables", [])])


def sanitize_name(name: str) -> str:
    """Replace characters outside ``[a-zA-Z0-9_]`` and lowercase."""
    return _INVALID_NAME_RE.sub("_", name).lower()


def is_primitive_payload(documents: List[JsonValue]) -> bool:
    """
    True when documents map to a single ``value`` column.

    Decided by the first document, the same way the storage decision
    treats arrays of primitives.
    """
    return not documents or not isinstance(documents[0], dict)


def map_field_types_to_sql(types: Iterable[FieldType]) -> str:
    """
    Pick one SQL column type for every type a field was seen with.

    Args:
        types: Observed field types

    Returns:
        SQL column type string
    """
    non_null = {t for t in types if t != FieldType.NULL}
    if not non_null:
        return SQL_TYPE_MAPPING[FieldType.NULL]
    if len(non_null) == 1:
        return SQL_TYPE_MAPPING[next(iter(non_null))]
    if non_null & {FieldType.ARRAY, FieldType.OBJECT}:
        return DOCUMENT_TYPE
    return "TEXT"


class SchemaDeriver:
    """
    Derives relational table definitions from analyzed JSON documents.

    Only meant for documents the SchemaDecider classified as SQL, which
    guarantees at most one level of object nesting.
    """

    def __init__(self, table_prefix: str = "data_"):
        self.table_prefix = table_prefix

    def table_name_for(self, base_name: str) -> str:
        """Root table name for a file name or other base name."""
        base = _EXTENSION_RE.sub("", base_name)
        return f"{self.table_prefix}{sanitize_name(base)}"

    def derive(
        self,
        profile: StructureProfile,
        documents: List[JsonValue],
        base_name: str
    ) -> RelationalSchema:
        """
        Build the relational schema for ``documents``.

        Args:
            profile: Structure profile of the documents
            documents: SQL-classified documents
            base_name: File name or hint the table names derive from

        Returns:
            RelationalSchema with the root table first
        """
        root_name = self.table_name_for(base_name)

        if is_primitive_payload(documents):
            return RelationalSchema(tables=[self._primitive_table(root_name, documents)])

        records = [doc for doc in documents if isinstance(doc, dict)]

        object_fields = self._object_fields(profile, records)
        taken: Set[str] = {PRIMARY_KEY_COLUMN, *TIMESTAMP_COLUMNS}

        columns = [self._primary_key()]
        for name in self._top_level_fields(records):
            if name in object_fields:
                continue
            columns.append(ColumnDef(
                name=_unique_column_name(_column_base_name(name), taken),
                sql_type=map_field_types_to_sql(profile.field_types.get(name, ())),
                nullable=self._is_nullable(profile, name),
                source_field=name,
            ))
        columns.extend(self._timestamps())

        tables = [TableDef(name=root_name, columns=columns)]
        table_names: Set[str] = {root_name}
        for name in self._top_level_fields(records):
            if name in object_fields:
                table_name = _unique_column_name(
                    f"{root_name}_{sanitize_name(_column_base_name(name))}", table_names)
                tables.append(self._child_table(root_name, table_name, name, records))

        return RelationalSchema(tables=tables)

    def _child_table(
        self,
        root_name: str,
        table_name: str,
        field_name: str,
        records: List[Dict[str, JsonValue]]
    ) -> TableDef:
        nested = [
            record[field_name] for record in records
            if isinstance(record.get(field_name), dict)
        ]

        presence: Dict[str, int] = {}
        types: Dict[str, Set[FieldType]] = {}
        for obj in nested:
            for key, value in obj.items():
                presence[key] = presence.get(key, 0) + 1
                types.setdefault(key, set()).add(classify_value(value))

        taken: Set[str] = {PRIMARY_KEY_COLUMN, PARENT_KEY_COLUMN, *TIMESTAMP_COLUMNS}
        columns = [
            self._primary_key(),
            ColumnDef(
                name=PARENT_KEY_COLUMN,
                sql_type=FOREIGN_KEY_TYPE,
                nullable=False,
                is_foreign_key=True,
                references_table=root_name,
            ),
        ]
        for key, count in presence.items():
            columns.append(ColumnDef(
                name=_unique_column_name(_column_base_name(key), taken),
                sql_type=map_field_types_to_sql(types[key]),
                nullable=count < len(nested) or FieldType.NULL in types[key],
                source_field=key,
            ))
        columns.extend(self._timestamps())

        return TableDef(
            name=table_name,
            columns=columns,
            parent_table=root_name,
            source_field=field_name,
        )

    def _primitive_table(self, root_name: str, documents: List[JsonValue]) -> TableDef:
        columns = [self._primary_key()]
        if documents:
            types = {classify_value(doc) for doc in documents}
            columns.append(ColumnDef(
                name=PRIMITIVE_VALUE_COLUMN,
                sql_type=map_field_types_to_sql(types),
                nullable=FieldType.NULL in types,
            ))
        columns.extend(self._timestamps())
        return TableDef(name=root_name, columns=columns)

    @staticmethod
    def _object_fields(
        profile: StructureProfile,
        records: List[Dict[str, JsonValue]]
    ) -> FrozenSet[str]:
        """Top-level fields whose non-null values are all objects."""
        result = set()
        for name in SchemaDeriver._top_level_fields(records):
            non_null = {t for t in profile.field_types.get(name, ()) if t != FieldType.NULL}
            if non_null == {FieldType.OBJECT}:
                result.add(name)
        return frozenset(result)

    @staticmethod
    def _top_level_fields(records: List[Dict[str, JsonValue]]) -> List[str]:
        ordered: Dict[str, None] = {}
        for record in records:
            for key in record:
                ordered.setdefault(key, None)
        return list(ordered)

    @staticmethod
    def _is_nullable(profile: StructureProfile, name: str) -> bool:
        return (
            profile.presence_ratio(name) < 1.0
            or FieldType.NULL in profile.field_types.get(name, ())
        )

    @staticmethod
    def _primary_key() -> ColumnDef:
        return ColumnDef(
            name=PRIMARY_KEY_COLUMN,
            sql_type=SERIAL_TYPE,
            nullable=False,
            is_primary_key=True,
        )

    @staticmethod
    def _timestamps() -> List[ColumnDef]:
        return [
            ColumnDef(name=name, sql_type=TIMESTAMP_TYPE, nullable=False)
            for name in TIMESTAMP_COLUMNS
        ]


def _unique_column_name(name: str, taken: Set[str]) -> str:
    """Return ``name`` or a suffixed variant that is not yet taken."""
    candidate = name
    suffix = 1
    while candidate in taken:
        candidate = f"{name}_{suffix}"
        suffix += 1
    taken.add(candidate)
    return candidate


def _column_base_name(key: str) -> str:
    """JSON key to use as a column name; blank keys get a placeholder."""
    return key if key.strip() else BLANK_FIELD_NAME
