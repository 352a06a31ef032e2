"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. A per-session history the CLI can print after an import

The audit logger:
- Is synchronous, like the rest of the engine
- Keeps an append-only in-process trail of the events it logged
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from node_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The in-process trail (`events`), for reporting back to the operator
    """

    def __init__(self):
        self._logger = structlog.get_logger(__name__)
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    def events_for(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level matching its severity."""
        self._events.append(event)
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def log_parse_completed(
        self,
        source: str,
        parsed_count: int,
        error_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.parse_completed(
            source=source,
            parsed_count=parsed_count,
            error_count=error_count,
            correlation_id=correlation_id,
        ))

    def log_parse_failed(
        self,
        source: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.parse_failed(
            source=source,
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_validation(
        self,
        entity_type: str,
        valid_count: int,
        invalid_count: int,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.validation_result(
            entity_type=entity_type,
            valid_count=valid_count,
            invalid_count=invalid_count,
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_duplicates(
        self,
        entity_type: str,
        duplicate_count: int,
        batch_size: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.duplicates_detected(
            entity_type=entity_type,
            duplicate_count=duplicate_count,
            batch_size=batch_size,
            correlation_id=correlation_id,
        ))

    def log_merge_committed(
        self,
        entity_type: str,
        policy: str,
        added_count: int,
        skipped_count: int,
        total_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.merge_committed(
            entity_type=entity_type,
            policy=policy,
            added_count=added_count,
            skipped_count=skipped_count,
            total_count=total_count,
            correlation_id=correlation_id,
        ))

    def log_commit_failed(
        self,
        entity_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.commit_failed(
            entity_type=entity_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_record_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.record_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_binding_failed(
        self,
        node_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.binding_failed(
            node_id=node_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_backup_completed(
        self,
        filename: str,
        change_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.backup_completed(
            filename=filename,
            change_count=change_count,
            correlation_id=correlation_id,
        ))

    def log_backup_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.backup_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new operator action (e.g., one import).
    Pass it through all subsequent operations.
    """
    return uuid4()
