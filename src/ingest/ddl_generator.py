"""
DDL Generator for derived schemas.

Renders RelationalSchema definitions as PostgreSQL CREATE TABLE
statements, plus the document-collection table used for NoSQL payloads.
"""

from typing import Dict, List

from sqlalchemy import (  # type: ignore
    Boolean, Column, DateTime, ForeignKey, Index, Integer, MetaData,
    Numeric, Table, Text, func, insert,
)
from sqlalchemy.dialects import postgresql  # type: ignore
from sqlalchemy.dialects.postgresql import JSONB  # type: ignore
from sqlalchemy.schema import CreateIndex, CreateTable  # type: ignore

from src.ingest.schema_deriver import (
    PRIMARY_KEY_COLUMN,
    TIMESTAMP_COLUMNS,
    TIMESTAMP_TYPE,
    ColumnDef,
    RelationalSchema,
)


class DDLGenerator:
    """
    Generates SQL DDL (Data Definition Language) statements.

    Builds SQLAlchemy Table objects from derived schemas and compiles them
    against the PostgreSQL dialect, so quoting and foreign keys follow the
    target database.
    """

    TYPE_MAPPING = {
        "SERIAL": Integer,
        "INTEGER": Integer,
        "TEXT": Text,
        "NUMERIC": Numeric,
        "BOOLEAN": Boolean,
        "JSONB": JSONB,
    }

    def __init__(self):
        self.dialect = postgresql.dialect()

    def _map_sql_type(self, sql_type: str):
        """
        Map a derived column type to a SQLAlchemy type.

        Args:
            sql_type: Column type name from a ColumnDef

        Returns:
            SQLAlchemy type instance, TEXT for unknown names
        """
        if sql_type == TIMESTAMP_TYPE:
            return DateTime(timezone=True)
        return self.TYPE_MAPPING.get(sql_type.upper(), Text)()

    def _build_column(self, column: ColumnDef, primary_key: str) -> Column:
        args = [column.name, self._map_sql_type(column.sql_type)]
        kwargs = {"nullable": column.nullable}

        if column.is_primary_key:
            kwargs["primary_key"] = True
            kwargs["autoincrement"] = column.sql_type.upper() == "SERIAL"
        if column.is_foreign_key and column.references_table:
            args.append(ForeignKey(f"{column.references_table}.{primary_key}"))
        if column.name in TIMESTAMP_COLUMNS:
            kwargs["server_default"] = func.now()

        return Column(*args, **kwargs)

    def build_metadata(self, schema: RelationalSchema) -> MetaData:
        """
        Create SQLAlchemy tables for every table of the schema.

        Args:
            schema: Derived relational schema

        Returns:
            MetaData holding one Table per TableDef
        """
        metadata = MetaData()
        for table_def in schema.tables:
            parent = schema.get_table(table_def.parent_table) if table_def.parent_table else None
            parent_pk = parent.primary_key.name if parent and parent.primary_key else PRIMARY_KEY_COLUMN
            Table(
                table_def.name,
                metadata,
                *[self._build_column(c, parent_pk) for c in table_def.columns],
            )
        return metadata

    def _compile(self, element) -> str:
        return str(element.compile(dialect=self.dialect)).strip() + ";"

    def generate_table_ddl(self, schema: RelationalSchema) -> List[str]:
        """
        Generate CREATE TABLE statements, root table first.

        Args:
            schema: Derived relational schema

        Returns:
            List of SQL statements
        """
        metadata = self.build_metadata(schema)
        return [
            self._compile(CreateTable(metadata.tables[t.name], if_not_exists=True))
            for t in schema.tables
        ]

    def generate_schema_ddl(self, schema: RelationalSchema) -> str:
        """All CREATE TABLE statements of the schema as one script."""
        return "\n\n".join(self.generate_table_ddl(schema))

    def generate_document_collection_statements(self, collection_name: str) -> List[str]:
        """
        Generate DDL for a JSONB document collection table.

        Args:
            collection_name: Name for the collection table

        Returns:
            CREATE TABLE and GIN index statements
        """
        metadata = MetaData()
        table = Table(
            collection_name,
            metadata,
            Column(PRIMARY_KEY_COLUMN, Integer, primary_key=True, autoincrement=True),
            Column("doc", JSONB, nullable=False),
            *[
                Column(name, DateTime(timezone=True), nullable=False,
                       server_default=func.now())
                for name in TIMESTAMP_COLUMNS
            ],
        )
        index = Index(f"idx_{collection_name}_doc", table.c.doc, postgresql_using="gin")

        return [
            self._compile(CreateTable(table, if_not_exists=True)),
            self._compile(CreateIndex(index, if_not_exists=True)),
        ]

    def generate_document_collection_ddl(self, collection_name: str) -> str:
        return "\n\n".join(self.generate_document_collection_statements(collection_name))

    def generate_insert_statement(
        self,
        schema: RelationalSchema,
        table_name: str,
        placeholder_style: str = "named"
    ) -> str:
        """
        Generate INSERT statement template for one table.

        Args:
            schema: Derived relational schema
            table_name: Table to insert into
            placeholder_style: 'named' for :field or 'positional' for %s

        Returns:
            INSERT statement template
        """
        metadata = self.build_metadata(schema)
        table = metadata.tables[table_name]
        columns = [
            c.name for c in table.columns
            if not c.primary_key and c.name not in TIMESTAMP_COLUMNS
        ]
        paramstyle = "named" if placeholder_style == "named" else "format"
        compiled = insert(table).compile(
            dialect=postgresql.dialect(paramstyle=paramstyle),
            column_keys=columns,
        )
        return str(compiled)

    def describe_columns(self, schema: RelationalSchema) -> Dict[str, List[str]]:
        """Human-readable column list per table, e.g. ``name TEXT NOT NULL``."""
        return {
            table.name: [
                f"{c.name} {c.sql_type}"
                + ("" if c.nullable else " NOT NULL")
                + (" PRIMARY KEY" if c.is_primary_key else "")
                + (f" REFERENCES {c.references_table}" if c.is_foreign_key else "")
                for c in table.columns
            ]
            for table in schema.tables
        }
