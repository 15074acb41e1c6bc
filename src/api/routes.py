# API routes

import logging
from fastapi import APIRouter, UploadFile, File, HTTPException, status
from typing import Optional, Dict, Any
from pydantic import BaseModel

from src.common.metrics import record_conflict_resolution, record_upload
from src.ingest.conflict_resolver import (
    ConflictResolutionError,
    SchemaConflictResolver,
)
from src.ingest.json_processor import JsonProcessingError, JsonProcessor
from src.ingest.schema_comparator import SchemaRecord, compare_schemas
from src.ingest.validator import FileCategory, IngestValidator, InvalidJsonError

router = APIRouter()
logger = logging.getLogger(__name__)


class AnalyzeRequest(BaseModel):
    content: str
    file_name: str = "upload.json"


class UploadResponse(BaseModel):
    file_name: str
    category: str
    content_type: Optional[str] = None
    size_bytes: int
    sha256: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None


class CompareRequest(BaseModel):
    existing: Dict[str, str]
    incoming: Dict[str, str]


class ConflictRequest(BaseModel):
    action: str
    existing_record: Dict[str, Any]
    content: str
    file_name: str
    conflict_reason: Optional[str] = None


def _processor() -> JsonProcessor:
    return JsonProcessor()


def _analyze_content(content, file_name: str) -> Dict[str, Any]:
    """Run the processing pipeline and map domain errors to HTTP errors."""
    try:
        return _processor().process_raw(content, file_name).to_dict()
    except InvalidJsonError as e:
        status_code = (
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            if e.error_type == "size_limit" else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(status_code=status_code, detail=str(e))
    except JsonProcessingError as e:
        logger.error(
            "JSON processing failed",
            extra={"extra_fields": {"file_name": file_name, "error": str(e)}},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.post("/analyze")
def analyze_json(request: AnalyzeRequest):
    """
    Classify a JSON payload and derive its storage layout.

    - **content**: Raw JSON text (object, array or primitive)
    - **file_name**: Original file name, used for table naming

    Returns the SQL/NoSQL decision with reasoning, the structure analysis,
    the derived schema and DDL, and the schema record to persist.
    """
    return _analyze_content(request.content, request.file_name)


@router.post("/upload", response_model=UploadResponse)
async def upload_file(file: UploadFile = File(...)):
    """
    Categorize an uploaded file. JSON files are analyzed as well.
    """
    validator = IngestValidator()
    content = await file.read()
    result = validator.validate_file(file, content)

    if not result.valid:
        record_upload(result.category.value, success=False)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            if result.error_type == "size_limit" else status.HTTP_400_BAD_REQUEST,
            detail=result.error,
        )

    analysis = None
    if result.category == FileCategory.JSON:
        try:
            analysis = _analyze_content(content, result.filename)
        except HTTPException:
            record_upload(result.category.value, success=False)
            raise

    record_upload(result.category.value, success=True)
    logger.info(
        "File uploaded",
        extra={"extra_fields": {
            "file_name": result.filename,
            "category": result.category.value,
            "size_bytes": result.size_bytes,
        }},
    )

    return UploadResponse(
        file_name=result.filename,
        category=result.category.value,
        content_type=result.content_type,
        size_bytes=result.size_bytes,
        sha256=result.sha256,
        analysis=analysis,
    )


@router.post("/schemas/compare")
def compare_schema_columns(request: CompareRequest):
    """
    Compare two column name to type mappings.

    Types may be JSON type names or SQL type names.
    """
    comparison = compare_schemas(request.existing, request.incoming)
    return {
        "has_conflict": not comparison.is_exact_match,
        "summary": comparison.describe(),
        **comparison.to_dict(),
    }


@router.post("/schemas/conflicts")
def resolve_schema_conflict(request: ConflictRequest):
    """
    Plan the handling of a schema conflict for a re-uploaded file.

    - **action**: overwrite, append, create_new_version or reject
    - **existing_record**: Stored schema record of the file
    - **content**: Raw JSON text of the new upload
    - **conflict_reason**: Optional user-supplied reason

    A refused append returns 409 with the resolution plan as detail.
    """
    try:
        existing = SchemaRecord.from_dict(request.existing_record)
    except (KeyError, ValueError, TypeError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid existing schema record: {e}",
        )

    processor = _processor()
    try:
        incoming = processor.process_raw(request.content, request.file_name).schema_record()
    except InvalidJsonError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except JsonProcessingError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    resolver = SchemaConflictResolver(deriver=processor.deriver)
    try:
        resolution = resolver.resolve(
            request.action,
            existing,
            incoming,
            request.file_name,
            reason=request.conflict_reason,
        )
    except ConflictResolutionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    record_conflict_resolution(resolution.action.value, resolution.permitted)

    if not resolution.permitted:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=resolution.to_dict())

    return {
        **resolution.to_dict(),
        "schema_record": SchemaRecord(
            storage_type=incoming.storage_type,
            schema=incoming.schema,
            table_name=resolution.table_name,
        ).to_dict() if resolution.adopt_schema else existing.to_dict(),
    }
