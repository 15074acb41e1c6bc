"""
JSON Processor Service.

Main orchestrator for JSON payload processing: structure analysis,
storage classification and schema derivation.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Union

from src.common.logging_config import PerformanceTracker
from src.common.metrics import record_classification, track_analysis_time
from src.config.settings import Settings, get_settings
from src.ingest.ddl_generator import DDLGenerator
from src.ingest.row_builder import RowBuilder
from src.ingest.schema_analyzer import JsonValue, StructureProfile, analyze, split_payload
from src.ingest.schema_comparator import SchemaRecord
from src.ingest.schema_decider import SchemaDecider, StorageDecision
from src.ingest.schema_deriver import RelationalSchema, SchemaDeriver
from src.ingest.validator import IngestValidator

logger = logging.getLogger(__name__)


class JsonProcessingError(Exception):
    """Exception raised during JSON processing."""
    pass


@dataclass
class JsonProcessingResult:
    """Outcome of processing one uploaded JSON value."""
    file_name: str
    decision: StorageDecision
    profile: StructureProfile
    table_name: str
    ddl: List[str]
    schema: Optional[RelationalSchema] = None
    rows: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    record_count: int = 0

    def schema_record(self) -> SchemaRecord:
        """Record to persist so later uploads of the same file can be compared."""
        return SchemaRecord(
            storage_type=self.decision.kind,
            schema=self.schema,
            table_name=self.table_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "storage_type": self.decision.kind.value,
            "reasoning": self.decision.reasoning,
            "table_name": self.table_name,
            "record_count": self.record_count,
            "analysis": self.profile.to_dict(),
            "schema": self.schema.to_dict() if self.schema else None,
            "ddl": self.ddl,
            "schema_record": self.schema_record().to_dict(),
        }


class JsonProcessor:
    """
    Processes JSON payloads through analysis, decision, and derivation.

    Coordinates the classification pipeline from a parsed upload to the
    tables and rows a persistence layer needs. Nothing is written to a
    database here.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize JSON processor.

        Args:
            settings: Application settings (defaults to get_settings())
        """
        self.settings = settings or get_settings()
        self.validator = IngestValidator(max_json_size=self.settings.max_json_size)
        self.decider = SchemaDecider.from_settings(self.settings)
        self.deriver = SchemaDeriver(table_prefix=self.settings.table_prefix)
        self.row_builder = RowBuilder()
        self.ddl_generator = DDLGenerator()

    def process_raw(self, content: Union[str, bytes], file_name: str) -> JsonProcessingResult:
        """
        Parse and process raw upload content.

        Raises:
            InvalidJsonError: If the content is not valid JSON
        """
        payload = self.validator.require_valid_json(content)
        return self.process(payload, file_name)

    @track_analysis_time
    def process(self, payload: JsonValue, file_name: str) -> JsonProcessingResult:
        """
        Process a parsed JSON value.

        Args:
            payload: Top-level JSON value of the upload
            file_name: Original file name, used for table naming

        Returns:
            JsonProcessingResult

        Raises:
            JsonProcessingError: If any stage fails unexpectedly
        """
        with PerformanceTracker("json_processing", logger, file_name=file_name):
            try:
                return self._process(payload, file_name)
            except JsonProcessingError:
                raise
            except Exception as e:
                raise JsonProcessingError(f"Failed to process {file_name}: {e}") from e

    def _process(self, payload: JsonValue, file_name: str) -> JsonProcessingResult:
        documents, is_batch = split_payload(payload)

        # Step 1: Analyze structure
        profile = analyze(documents, is_batch=is_batch, depth_cap=self.settings.schema_depth_cap)
        logger.info(
            "JSON structure analyzed",
            extra={"extra_fields": {
                "file_name": file_name,
                "document_count": len(documents),
                "is_batch": is_batch,
                "max_depth": profile.max_depth,
                "field_count": len(profile.unique_fields),
            }},
        )

        # Step 2: Classify storage
        decision = self.decider.decide(profile, documents)
        record_classification(decision.kind.value)
        logger.info(
            "Storage type decided",
            extra={"extra_fields": {
                "file_name": file_name,
                "storage_type": decision.kind.value,
                "reasoning": decision.reasoning,
            }},
        )

        table_name = self.deriver.table_name_for(file_name)

        # Step 3a: Document collection
        if not decision.is_sql:
            return JsonProcessingResult(
                file_name=file_name,
                decision=decision,
                profile=profile,
                table_name=table_name,
                ddl=self.ddl_generator.generate_document_collection_statements(table_name),
                record_count=len(documents),
            )

        # Step 3b: Relational tables
        schema = self.deriver.derive(profile, documents, file_name)
        rows = self.row_builder.build_rows(schema, documents)
        ddl = self.ddl_generator.generate_table_ddl(schema)

        logger.info(
            "Relational schema derived",
            extra={"extra_fields": {
                "file_name": file_name,
                "tables": [t.name for t in schema.tables],
                "row_counts": {name: len(r) for name, r in rows.items()},
            }},
        )

        return JsonProcessingResult(
            file_name=file_name,
            decision=decision,
            profile=profile,
            table_name=schema.root_table.name,
            ddl=ddl,
            schema=schema,
            rows=rows,
            record_count=len(rows[schema.root_table.name]),
        )
