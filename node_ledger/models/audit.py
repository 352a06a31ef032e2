"""
Audit Models for Node Ledger

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of every import, merge and backup
2. Debugging information when things go wrong
3. The ability to reconstruct what an import did to the store

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from node_ledger.models.common import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the import pipeline has its own event type.
    """
    # Parsing
    PARSE_COMPLETED = "parse_completed"
    PARSE_FAILED = "parse_failed"

    # Validation
    VALIDATION_PASSED = "validation_passed"
    VALIDATION_FAILED = "validation_failed"

    # Reconciliation and merge
    DUPLICATES_DETECTED = "duplicates_detected"
    MERGE_COMMITTED = "merge_committed"
    COMMIT_FAILED = "commit_failed"

    # Earnings mutations
    EARNING_UPDATED = "earning_updated"
    EARNING_DELETED = "earning_deleted"
    EARNINGS_CLEARED = "earnings_cleared"
    NODE_MAPPING_UPDATED = "node_mapping_updated"

    # License mutations
    LICENSE_ADDED = "license_added"
    LICENSE_UPDATED = "license_updated"
    LICENSE_DELETED = "license_deleted"
    LICENSES_CLEARED = "licenses_cleared"
    BINDING_UPDATED = "binding_updated"
    BINDING_FAILED = "binding_failed"

    # Backup
    BACKUP_COMPLETED = "backup_completed"
    BACKUP_FAILED = "backup_failed"
    BACKUP_SETTINGS_CHANGED = "backup_settings_changed"
    SNAPSHOT_RESTORED = "snapshot_restored"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'earnings', 'license', 'backup')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one import)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.parse_completed("text", 12, 1, correlation_id)
        event = AuditEventBuilder.merge_committed("earnings", "skip", 3, 1, 40, correlation_id)
    """

    @staticmethod
    def parse_completed(
        source: str,
        parsed_count: int,
        error_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_COMPLETED,
            entity_type="earnings",
            correlation_id=correlation_id,
            description=f"Parsed {parsed_count} records from {source}",
            details={
                "source": source,
                "parsed_count": parsed_count,
                "error_count": error_count,
            },
        )

    @staticmethod
    def parse_failed(
        source: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="earnings",
            correlation_id=correlation_id,
            description=f"Could not parse {source} input",
            error_message=reason,
            details={"source": source},
        )

    @staticmethod
    def validation_result(
        entity_type: str,
        valid_count: int,
        invalid_count: int,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        failed = invalid_count > 0
        return AuditEvent(
            event_type=(
                AuditEventType.VALIDATION_FAILED if failed
                else AuditEventType.VALIDATION_PASSED
            ),
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=(
                f"Validation: {valid_count} valid, {invalid_count} invalid"
            ),
            details={
                "valid_count": valid_count,
                "invalid_count": invalid_count,
                "issues": issues,
            },
        )

    @staticmethod
    def duplicates_detected(
        entity_type: str,
        duplicate_count: int,
        batch_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATES_DETECTED,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"{duplicate_count} of {batch_size} candidates are duplicates",
            details={
                "duplicate_count": duplicate_count,
                "batch_size": batch_size,
            },
        )

    @staticmethod
    def merge_committed(
        entity_type: str,
        policy: str,
        added_count: int,
        skipped_count: int,
        total_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MERGE_COMMITTED,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=(
                f"Committed {entity_type} with policy {policy}: "
                f"{added_count} added, {skipped_count} skipped"
            ),
            details={
                "policy": policy,
                "added_count": added_count,
                "skipped_count": skipped_count,
                "total_count": total_count,
            },
        )

    @staticmethod
    def commit_failed(
        entity_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Store write for {entity_type} failed",
            error_code="storage_error",
            error_message=error_message,
        )

    @staticmethod
    def record_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        """Generic single-record mutation (update, delete, clear, add)."""
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def binding_failed(
        node_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BINDING_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="license",
            entity_id=node_id,
            correlation_id=correlation_id,
            description=f"Binding update skipped for node {node_id}",
            error_code="state_inconsistency",
            error_message=reason,
        )

    @staticmethod
    def backup_completed(
        filename: str,
        change_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_COMPLETED,
            entity_type="backup",
            entity_id=filename,
            correlation_id=correlation_id,
            description=f"Auto-backup saved: {filename}",
            details={"change_count": change_count},
        )

    @staticmethod
    def backup_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="backup",
            correlation_id=correlation_id,
            description="Auto-backup failed",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
