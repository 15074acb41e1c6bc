"""
Schema conflict resolution.

Decides what a caller may do when a file that already has a stored schema
is processed again. The resolver only produces a plan; dropping tables,
updating schema records and inserting rows stay with the persistence layer.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from src.common.logging_config import get_structured_logger
from src.ingest.schema_comparator import (
    SchemaComparisonResult,
    SchemaRecord,
    compare_schemas,
)
from src.ingest.schema_decider import StorageKind
from src.ingest.schema_deriver import SchemaDeriver

logger = get_structured_logger(__name__)

DEFAULT_REJECT_REASON = "User rejected schema change"


class ConflictResolutionError(Exception):
    """Exception raised for unusable conflict resolution requests."""
    pass


class ConflictAction(str, Enum):
    OVERWRITE = "overwrite"
    APPEND = "append"
    CREATE_NEW_VERSION = "create_new_version"
    REJECT = "reject"


@dataclass(frozen=True)
class ConflictResolution:
    """Plan for handling a schema conflict."""
    action: ConflictAction
    permitted: bool
    message: str

    # Effects the caller should apply when permitted
    table_name: Optional[str] = None
    drop_table: Optional[str] = None
    adopt_schema: bool = False

    comparison: Optional[SchemaComparisonResult] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "permitted": self.permitted,
            "message": self.message,
            "table_name": self.table_name,
            "drop_table": self.drop_table,
            "adopt_schema": self.adopt_schema,
            "comparison": self.comparison.to_dict() if self.comparison else None,
            "reason": self.reason,
        }


class SchemaConflictResolver:
    """Maps a requested conflict action to a safe plan."""

    def __init__(self, deriver: Optional[SchemaDeriver] = None):
        self.deriver = deriver or SchemaDeriver()

    def compare(
        self,
        existing: SchemaRecord,
        incoming: SchemaRecord
    ) -> Optional[SchemaComparisonResult]:
        """Column comparison, or None when either side is not relational."""
        if existing.schema is None or incoming.schema is None:
            return None
        return compare_schemas(existing.column_types(), incoming.column_types())

    def resolve(
        self,
        action: Union[ConflictAction, str],
        existing: SchemaRecord,
        incoming: SchemaRecord,
        file_name: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ConflictResolution:
        """
        Build the resolution plan for ``action``.

        Args:
            action: One of overwrite, append, create_new_version, reject
            existing: Stored schema record of the file
            incoming: Schema record derived from the new upload
            file_name: File name used to derive version table names
            reason: Optional conflict reason supplied by the user
            now: Clock override for version naming

        Returns:
            ConflictResolution

        Raises:
            ConflictResolutionError: If the action is unknown
        """
        try:
            action = ConflictAction(action)
        except ValueError:
            raise ConflictResolutionError(f"Invalid action: {action}")

        comparison = self.compare(existing, incoming)

        if action == ConflictAction.OVERWRITE:
            resolution = ConflictResolution(
                action=action,
                permitted=True,
                message="Schema overwritten; existing table will be replaced",
                table_name=existing.table_name or incoming.table_name,
                drop_table=existing.table_name,
                adopt_schema=True,
                comparison=comparison,
                reason=reason,
            )
        elif action == ConflictAction.APPEND:
            resolution = self._resolve_append(existing, incoming, comparison, reason)
        elif action == ConflictAction.CREATE_NEW_VERSION:
            resolution = ConflictResolution(
                action=action,
                permitted=True,
                message="New schema version created; existing table left intact",
                table_name=self.version_table_name(file_name, now),
                adopt_schema=True,
                comparison=comparison,
                reason=reason or "Schema conflict resolved",
            )
        else:
            reason = reason or DEFAULT_REJECT_REASON
            logger.warning(
                "Schema change rejected",
                file_name=file_name,
                table_name=existing.table_name,
                reason=reason,
                differences=comparison.describe() if comparison else None,
            )
            resolution = ConflictResolution(
                action=action,
                permitted=True,
                message="Schema change rejected. Existing table preserved.",
                table_name=existing.table_name,
                comparison=comparison,
                reason=reason,
            )

        logger.info(
            "Schema conflict resolved",
            action=resolution.action.value,
            permitted=resolution.permitted,
            file_name=file_name,
            table_name=resolution.table_name,
        )
        return resolution

    def _resolve_append(
        self,
        existing: SchemaRecord,
        incoming: SchemaRecord,
        comparison: Optional[SchemaComparisonResult],
        reason: Optional[str],
    ) -> ConflictResolution:
        action = ConflictAction.APPEND

        def refuse(message: str) -> ConflictResolution:
            return ConflictResolution(
                action=action,
                permitted=False,
                message=message,
                table_name=existing.table_name,
                comparison=comparison,
                reason=reason,
            )

        if not existing.table_name:
            return refuse("No existing table to append to")
        if existing.storage_type != incoming.storage_type:
            return refuse(
                f"Cannot append {incoming.storage_type.value} data to "
                f"{existing.storage_type.value} storage")
        if existing.storage_type == StorageKind.SQL and (
                comparison is None or not comparison.is_exact_match):
            details = comparison.describe() if comparison else "schema unavailable"
            return refuse(
                f"New schema is not compatible with existing table structure ({details})")

        return ConflictResolution(
            action=action,
            permitted=True,
            message="Append permitted; new rows can be inserted into the existing table",
            table_name=existing.table_name,
            comparison=comparison,
            reason=reason,
        )

    def version_table_name(self, file_name: str, now: Optional[datetime] = None) -> str:
        """Fresh table name for a new schema version."""
        now = now or datetime.now(timezone.utc)
        millis = int(now.timestamp() * 1000)
        return f"{self.deriver.table_name_for(file_name)}_v{millis}"
