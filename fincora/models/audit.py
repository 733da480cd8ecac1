"""
Audit Models for Fincora

Every significant step of a statement import is recorded:
which file was picked, what the classifier returned, what the user
committed or threw away.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the import pipeline has its own event type.
    """
    # Statement parsing
    STATEMENT_SELECTED = "statement_selected"
    STATEMENT_PARSED = "statement_parsed"
    STATEMENT_REJECTED = "statement_rejected"
    PARSE_FAILED = "parse_failed"

    # Review session
    IMPORT_COMMITTED = "import_committed"
    IMPORT_RESET = "import_reset"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


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
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = Field(default=AuditSeverity.INFO)

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'statement', 'session', 'transaction')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - all events of one import share an ID
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

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
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json_line(self) -> str:
        """Serialize as one line of a JSON Lines audit file."""
        return json.dumps(self.to_log_dict(), ensure_ascii=False, default=str)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.statement_selected(upload_id, filename, ...)
        event = AuditEventBuilder.import_committed(session_id, 12, ...)
    """

    @staticmethod
    def statement_selected(
        upload_id: UUID,
        filename: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATEMENT_SELECTED,
            entity_type="statement",
            entity_id=upload_id,
            correlation_id=correlation_id,
            description=f"Statement selected: {filename}",
            details={"filename": filename},
            is_user_action=True,
        )

    @staticmethod
    def statement_parsed(
        upload_id: UUID,
        candidate_count: int,
        bank: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATEMENT_PARSED,
            entity_type="statement",
            entity_id=upload_id,
            correlation_id=correlation_id,
            description=f"Statement parsed: {candidate_count} transactions found",
            details={
                "candidate_count": candidate_count,
                "bank": bank,
            },
        )

    @staticmethod
    def statement_rejected(
        upload_id: UUID,
        error_kind: str,
        message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        """The file or the classifier's answer was not usable."""
        return AuditEvent(
            event_type=AuditEventType.STATEMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="statement",
            entity_id=upload_id,
            correlation_id=correlation_id,
            description=f"Statement rejected: {error_kind}",
            error_code=error_kind,
            error_message=message,
        )

    @staticmethod
    def parse_failed(
        upload_id: UUID,
        error_kind: str,
        message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="statement",
            entity_id=upload_id,
            correlation_id=correlation_id,
            description=f"Statement parsing failed: {error_kind}",
            error_code=error_kind,
            error_message=message,
        )

    @staticmethod
    def import_committed(
        session_id: UUID,
        committed_count: int,
        discarded_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMMITTED,
            entity_type="session",
            entity_id=session_id,
            correlation_id=correlation_id,
            description=f"Imported {committed_count} transactions",
            details={
                "committed_count": committed_count,
                "discarded_count": discarded_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_reset(
        session_id: UUID,
        discarded_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_RESET,
            entity_type="session",
            entity_id=session_id,
            correlation_id=correlation_id,
            description="User discarded the parsed statement",
            details={"discarded_count": discarded_count},
            is_user_action=True,
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

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
