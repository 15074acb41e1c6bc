"""
Upload intake validator.

Categorizes uploaded files from their declared MIME type or extension and
parses JSON payloads before they reach the structure analysis.
"""

import json
import hashlib
import mimetypes
from typing import Optional, Dict, Any, Union
from dataclasses import dataclass
from enum import Enum

from fastapi import UploadFile

from src.config.settings import get_settings

INVALID_JSON = "Invalid JSON"


class InvalidJsonError(Exception):
    """Raised when an upload cannot be parsed as JSON."""

    def __init__(self, message: str = INVALID_JSON, error_type: str = "format_error"):
        super().__init__(message)
        self.error_type = error_type


class FileCategory(str, Enum):
    """Dashboard category of an uploaded file."""
    IMAGE = "Image"
    VIDEO = "Video"
    AUDIO = "Audio"
    DOCUMENT = "Document"
    ARCHIVE = "Archive"
    JSON = "JSON"
    OTHER = "Other"


@dataclass
class ValidationResult:
    """Result of validation operation."""
    valid: bool
    category: FileCategory
    content_type: Optional[str] = None
    size_bytes: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None  # e.g., "size_limit", "format_error", etc.
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class FileValidationResult(ValidationResult):
    """Validation result for a file upload."""
    filename: str = ""
    sha256: Optional[str] = None


@dataclass
class JsonValidationResult(ValidationResult):
    """Validation result for JSON payload."""
    parsed_data: Optional[Any] = None
    is_batch: bool = False


class IngestValidator:
    """
    Validator for uploads.

    Handles categorization of files and parsing of JSON payloads with
    structured error reporting.
    """

    JSON_TYPES = {"application/json", "text/json", "application/ld+json"}
    ARCHIVE_TYPES = {
        "application/zip", "application/x-zip", "application/x-zip-compressed",
        "application/gzip", "application/x-tar", "application/x-7z-compressed",
    }
    DOCUMENT_TYPES = {
        "application/pdf",
        "application/epub+zip",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
        "text/markdown",
        "text/csv",
    }
    GENERIC_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

    EXT_TO_MIME = {
        "jpg": "image/jpeg", "jpeg": "image/jpeg", "png": "image/png",
        "gif": "image/gif", "webp": "image/webp",
        "mp4": "video/mp4", "mov": "video/quicktime", "webm": "video/webm",
        "mp3": "audio/mpeg", "wav": "audio/wav", "ogg": "audio/ogg",
        "pdf": "application/pdf", "txt": "text/plain", "md": "text/markdown",
        "csv": "text/csv", "zip": "application/zip", "json": "application/json",
    }

    def __init__(self, max_json_size: Optional[int] = None):
        self.max_json_size = max_json_size or get_settings().max_json_size

    def resolve_content_type(
        self,
        file_name: Optional[str],
        content_type: Optional[str]
    ) -> str:
        """
        Pick the MIME type to categorize by.

        The declared type wins unless it is missing or generic, in which
        case the file extension decides.
        """
        declared = (content_type or "").split(";")[0].strip().lower()
        if declared not in self.GENERIC_TYPES:
            return declared

        if file_name and "." in file_name:
            ext = file_name.lower().rsplit(".", 1)[-1]
            if ext in self.EXT_TO_MIME:
                return self.EXT_TO_MIME[ext]
            guessed, _ = mimetypes.guess_type(file_name)
            if guessed:
                return guessed

        return "application/octet-stream"

    def detect_file_category(
        self,
        file_name: Optional[str],
        content_type: Optional[str]
    ) -> FileCategory:
        """
        Categorize a file for the dashboard.

        Args:
            file_name: Original file name
            content_type: Declared MIME type

        Returns:
            FileCategory enum value
        """
        mime = self.resolve_content_type(file_name, content_type)

        if mime.startswith("image/"):
            return FileCategory.IMAGE
        elif mime.startswith("video/"):
            return FileCategory.VIDEO
        elif mime.startswith("audio/"):
            return FileCategory.AUDIO
        elif mime in self.JSON_TYPES or mime.endswith("+json"):
            return FileCategory.JSON
        elif mime in self.ARCHIVE_TYPES:
            return FileCategory.ARCHIVE
        elif mime in self.DOCUMENT_TYPES:
            return FileCategory.DOCUMENT
        else:
            return FileCategory.OTHER

    def validate_file(self, file: UploadFile, content: bytes) -> FileValidationResult:
        """
        Validate an uploaded file whose bytes were already read.

        Args:
            file: FastAPI UploadFile object
            content: File content

        Returns:
            FileValidationResult with validation status
        """
        content_type = self.resolve_content_type(file.filename, file.content_type)
        category = self.detect_file_category(file.filename, file.content_type)
        size_bytes = len(content)

        if category == FileCategory.JSON and size_bytes > self.max_json_size:
            return FileValidationResult(
                valid=False,
                category=category,
                content_type=content_type,
                size_bytes=size_bytes,
                filename=file.filename or "unknown",
                error=f"File size {size_bytes} exceeds maximum {self.max_json_size} bytes for JSON",
                error_type="size_limit"
            )

        return FileValidationResult(
            valid=True,
            category=category,
            content_type=content_type,
            size_bytes=size_bytes,
            filename=file.filename or "unknown",
            sha256=hashlib.sha256(content).hexdigest(),
            metadata={"original_filename": file.filename}
        )

    def validate_json_payload(self, payload: Union[str, bytes]) -> JsonValidationResult:
        """
        Parse and validate a JSON payload.

        Args:
            payload: Raw JSON text or bytes

        Returns:
            JsonValidationResult; ``error`` is "Invalid JSON" on any parse failure
        """
        raw = payload.encode("utf-8") if isinstance(payload, str) else payload
        size_bytes = len(raw)

        if size_bytes > self.max_json_size:
            return JsonValidationResult(
                valid=False,
                category=FileCategory.JSON,
                size_bytes=size_bytes,
                error=f"JSON payload size {size_bytes} exceeds maximum {self.max_json_size} bytes",
                error_type="size_limit"
            )

        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            return JsonValidationResult(
                valid=False,
                category=FileCategory.JSON,
                size_bytes=size_bytes,
                error=INVALID_JSON,
                error_type="encoding_error",
                metadata={"detail": str(e)}
            )

        try:
            parsed_data = json.loads(text)
        except json.JSONDecodeError as e:
            return JsonValidationResult(
                valid=False,
                category=FileCategory.JSON,
                size_bytes=size_bytes,
                error=INVALID_JSON,
                error_type="format_error",
                metadata={"detail": str(e), "line": e.lineno, "column": e.colno}
            )

        return JsonValidationResult(
            valid=True,
            category=FileCategory.JSON,
            content_type="application/json",
            size_bytes=size_bytes,
            parsed_data=parsed_data,
            is_batch=isinstance(parsed_data, list)
        )

    def require_valid_json(self, payload: Union[str, bytes]) -> Any:
        """
        Parse a payload or raise.

        Raises:
            InvalidJsonError: If the payload is oversized or not valid JSON
        """
        result = self.validate_json_payload(payload)
        if not result.valid:
            raise InvalidJsonError(result.error or INVALID_JSON, result.error_type or "format_error")
        return result.parsed_data
