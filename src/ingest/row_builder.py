"""
Row builder for derived relational schemas.

Turns SQL-classified documents into insertable rows for every table of a
RelationalSchema. Timestamps are left to the column defaults.
"""

import json
from typing import Any, Dict, List

from src.ingest.schema_analyzer import JsonValue
from src.ingest.schema_deriver import (
    DOCUMENT_TYPE,
    PARENT_KEY_COLUMN,
    PRIMARY_KEY_COLUMN,
    PRIMITIVE_VALUE_COLUMN,
    ColumnDef,
    RelationalSchema,
    TableDef,
    is_primitive_payload,
)

Row = Dict[str, Any]


class RowBuilder:
    """Builds normalized rows keyed by table name."""

    def build_rows(
        self,
        schema: RelationalSchema,
        documents: List[JsonValue]
    ) -> Dict[str, List[Row]]:
        """
        Normalize documents into rows.

        Args:
            schema: Schema derived from the same documents
            documents: Documents to normalize

        Returns:
            Dictionary mapping table name to its rows, root table first
        """
        root = schema.root_table
        rows: Dict[str, List[Row]] = {table.name: [] for table in schema.tables}

        if is_primitive_payload(documents):
            rows[root.name] = self._primitive_rows(root, documents)
            return rows

        for index, doc in enumerate(documents, start=1):
            if not isinstance(doc, dict):
                continue
            rows[root.name].append(self._build_row(root, doc, index))

            for child in schema.child_tables:
                nested = doc.get(child.source_field)
                if not isinstance(nested, dict):
                    continue
                child_rows = rows[child.name]
                row = self._build_row(child, nested, len(child_rows) + 1)
                row[PARENT_KEY_COLUMN] = index
                child_rows.append(row)

        return rows

    def _build_row(self, table: TableDef, source: Dict[str, JsonValue], row_id: int) -> Row:
        row: Row = {PRIMARY_KEY_COLUMN: row_id}
        for column in table.data_columns():
            key = column.source_field if column.source_field is not None else column.name
            row[column.name] = self._column_value(column, source.get(key))
        return row

    def _primitive_rows(self, table: TableDef, documents: List[JsonValue]) -> List[Row]:
        value_column = next(
            (c for c in table.columns if c.name == PRIMITIVE_VALUE_COLUMN), None)
        if value_column is None:
            return []
        return [
            {
                PRIMARY_KEY_COLUMN: index,
                PRIMITIVE_VALUE_COLUMN: self._column_value(value_column, value),
            }
            for index, value in enumerate(documents, start=1)
        ]

    @staticmethod
    def _column_value(column: ColumnDef, value: JsonValue) -> Any:
        if value is None:
            return None
        if column.sql_type == DOCUMENT_TYPE or isinstance(value, (dict, list)):
            return json.dumps(value)
        if column.sql_type == "TEXT" and not isinstance(value, str):
            return json.dumps(value)
        return value
