"""
Audit Logger

DESIGN DECISION: Every step of a statement import is logged.
This provides:
1. A trace from "file selected" to "N transactions imported"
2. Debugging capability when the classifier misbehaves
3. A record of what the user kept and what they discarded

The audit logger:
- Is async so it fits the import flow's await points
- Gracefully handles failures (doesn't break an import if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from fincora.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from fincora.services.storage import AuditStorageInterface


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


def configure_logging(level: str = "INFO") -> None:
    """
    Route structlog output to stderr at the given level.

    structlog filters through the stdlib logging level, so this is the
    one switch for how chatty the app is (see AppSettings.log_level).
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An optional audit store, e.g. a JSON Lines file
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("fincora.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_statement_selected(
        self,
        upload_id: UUID,
        filename: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.statement_selected(
            upload_id=upload_id,
            filename=filename,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_statement_parsed(
        self,
        upload_id: UUID,
        candidate_count: int,
        bank: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log a successful classification."""
        event = AuditEventBuilder.statement_parsed(
            upload_id=upload_id,
            candidate_count=candidate_count,
            bank=bank,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_statement_rejected(
        self,
        upload_id: UUID,
        error_kind: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a file or response the import could not use."""
        event = AuditEventBuilder.statement_rejected(
            upload_id=upload_id,
            error_kind=error_kind,
            message=message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_parse_failed(
        self,
        upload_id: UUID,
        error_kind: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.parse_failed(
            upload_id=upload_id,
            error_kind=error_kind,
            message=message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_committed(
        self,
        session_id: UUID,
        committed_count: int,
        discarded_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log the user's Import press."""
        event = AuditEventBuilder.import_committed(
            session_id=session_id,
            committed_count=committed_count,
            discarded_count=discarded_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_reset(
        self,
        session_id: UUID,
        discarded_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.import_reset(
            session_id=session_id,
            discarded_count=discarded_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when the user picks a statement file.
    Pass it through parsing, commit and reset.
    """
    return uuid4()
