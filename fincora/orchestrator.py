"""
Main Orchestrator for Fincora

This module ties together the components of a statement import:

    pick PDF -> parse -> review (filter / select) -> import -> ledger

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the ledger without the user pressing Import
- A failed parse never leaves half a batch on screen
- Every step is audited

This is the "glue" the UI talks to. It never inspects PDFs or HTTP
itself; those belong to the parser client.
"""

from pathlib import Path
from typing import Optional
from uuid import UUID, uuid4

import structlog

from fincora.audit import AuditLogger, configure_logging, create_correlation_id
from fincora.config import get_settings
from fincora.ledger import TransactionLedger
from fincora.models.transaction import ParsedTransaction
from fincora.review import ImportReviewSession
from fincora.services.parser import (
    NetworkUnavailableError,
    ParserErrorKind,
    StatementParserError,
    StatementParserService,
)
from fincora.services.storage import JsonFileLedgerStorage, JsonLinesAuditStorage, StorageError


logger = structlog.get_logger(__name__)

# Failures that say something about the file rather than the service
_REJECTION_KINDS = frozenset({
    ParserErrorKind.UNSUPPORTED_FORMAT,
    ParserErrorKind.ACCESS_DENIED,
    ParserErrorKind.EMPTY_RESULT,
})


class StatementImportFlow:
    """
    Orchestrates the statement import flow.

    Flow:
    1. Select -> user picks a file (audited)
    2. Parse  -> classification service proposes candidates
    3. Review -> candidates loaded into the session (PAUSE)
    4. Commit -> user presses Import; selected rows go to the ledger
       or
       Reset  -> user discards the batch

    Step 4 is MANDATORY. The system NEVER auto-imports.
    """

    def __init__(
        self,
        parser: Optional[StatementParserService] = None,
        ledger: Optional[TransactionLedger] = None,
        session: Optional[ImportReviewSession] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        # An empty ledger is falsy (it defines __len__), so test for None
        self._parser = parser if parser is not None else StatementParserService()
        self._ledger = ledger if ledger is not None else TransactionLedger()
        self._session = session if session is not None else ImportReviewSession()
        self._audit_logger = audit_logger

    @property
    def session(self) -> ImportReviewSession:
        return self._session

    @property
    def ledger(self) -> TransactionLedger:
        return self._ledger

    async def import_statement(
        self,
        path: str | Path,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[bool, str]:
        """
        Parse a statement and load its candidates for review.

        Returns:
            (loaded, message)

        If loaded is False, message is the one sentence to show the user
        and the session is left empty.
        """
        correlation_id = correlation_id or create_correlation_id()
        path = Path(path)
        upload_id = uuid4()

        if self._audit_logger:
            await self._audit_logger.log_statement_selected(
                upload_id=upload_id,
                filename=path.name,
                correlation_id=correlation_id,
            )

        try:
            candidates = await self._parser.parse_file(path)
        except StatementParserError as e:
            self._session.reset()
            await self._record_failure(upload_id, e, correlation_id)
            return False, e.user_message
        except Exception as e:
            self._session.reset()
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"filename": path.name},
                    correlation_id=correlation_id,
                )
            raise

        self._session.load(candidates)

        if self._audit_logger:
            await self._audit_logger.log_statement_parsed(
                upload_id=upload_id,
                candidate_count=len(candidates),
                bank=self._session.detected_bank,
                correlation_id=correlation_id,
            )

        return True, f"Found {len(candidates)} transactions"

    async def _record_failure(
        self,
        upload_id: UUID,
        error: StatementParserError,
        correlation_id: UUID,
    ) -> None:
        logger.info("statement_import_failed", kind=error.kind.value, error=str(error))
        if not self._audit_logger:
            return

        if error.kind in _REJECTION_KINDS:
            await self._audit_logger.log_statement_rejected(
                upload_id=upload_id,
                error_kind=error.kind.value,
                message=error.user_message,
                correlation_id=correlation_id,
            )
            return

        await self._audit_logger.log_parse_failed(
            upload_id=upload_id,
            error_kind=error.kind.value,
            message=error.user_message,
            correlation_id=correlation_id,
        )
        if isinstance(error, NetworkUnavailableError):
            await self._audit_logger.log_external_service_error(
                service="statement_parser",
                error_message=error.user_message,
                correlation_id=correlation_id,
            )

    async def commit_selected(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Move the selected candidates into the ledger.

        CRITICAL: This is called ONLY after the user pressed Import.

        Returns:
            Number of transactions added to the ledger

        Raises:
            StorageError: If the ledger could not be saved; the batch
                stays under review
        """
        correlation_id = correlation_id or create_correlation_id()
        session_id = self._session.session_id
        total = self._session.total_count

        try:
            committed = self._session.commit(self._ledger)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"session_id": str(session_id)},
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_import_committed(
                session_id=session_id,
                committed_count=committed,
                discarded_count=total - committed,
                correlation_id=correlation_id,
            )

        return committed

    async def reset(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Discard the batch under review.

        Returns:
            Number of candidates thrown away
        """
        correlation_id = correlation_id or create_correlation_id()
        session_id = self._session.session_id

        discarded = self._session.reset()

        if self._audit_logger:
            await self._audit_logger.log_import_reset(
                session_id=session_id,
                discarded_count=discarded,
                correlation_id=correlation_id,
            )

        return discarded

    def visible_candidates(self) -> list[ParsedTransaction]:
        """Candidates under the session's active filter."""
        return self._session.get_candidates()


def create_app_components(
    use_storage: bool = True,
) -> tuple[StatementImportFlow, TransactionLedger]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist the ledger to the configured file.
                    Set to False for an in-memory ledger.

    Returns:
        (import_flow, ledger)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    ledger_settings = settings.ledger
    audit_storage = None

    if use_storage:
        ledger = TransactionLedger(JsonFileLedgerStorage(ledger_settings.storage_path))
        if ledger_settings.audit_log_path:
            audit_storage = JsonLinesAuditStorage(ledger_settings.audit_log_path)
    else:
        ledger = TransactionLedger()

    import_flow = StatementImportFlow(
        parser=StatementParserService(settings.parser),
        ledger=ledger,
        session=ImportReviewSession(),
        audit_logger=AuditLogger(audit_storage),
    )

    return import_flow, ledger
