"""
Integration tests for the statement import flow.

Parser, ledger and audit storage are real objects; only HTTP and file
access are faked.
"""

import asyncio
from unittest.mock import MagicMock

import pytest
import requests

from conftest import FlakyLedgerStorage, make_response
from fincora.audit import AuditLogger, create_correlation_id
from fincora.ledger import TransactionLedger
from fincora.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from fincora.orchestrator import StatementImportFlow, create_app_components
from fincora.review import ImportReviewSession, SessionState
from fincora.services.storage import InMemoryAuditStorage, JsonFileLedgerStorage, PersistenceError


STATEMENT = {
    "bank": "Kaspi",
    "transactions": [
        {"date": "2024-01-15", "amount": -1500, "merchant": "Magnum", "category": "Супермаркеты"},
        {"date": "2024-01-14", "amount": -900, "merchant": "Yandex Go", "category": "Такси"},
        {"date": "2024-01-10", "amount": 450000, "merchant": "Employer", "category": "Зарплата"},
    ],
}


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def flow(parser_service, audit_storage):
    return StatementImportFlow(
        parser=parser_service,
        ledger=TransactionLedger(),
        session=ImportReviewSession(),
        audit_logger=AuditLogger(audit_storage),
    )


def _event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


class TestImportStatement:
    """Tests for parsing into the review session."""

    def test_loads_session(self, flow, http_session, audit_storage, statement_pdf):
        http_session.post.return_value = make_response(STATEMENT)
        correlation_id = create_correlation_id()

        loaded, message = asyncio.run(flow.import_statement(statement_pdf, correlation_id))

        assert loaded is True
        assert message == "Found 3 transactions"
        assert flow.session.state == SessionState.LOADED
        assert flow.session.detected_bank == "Kaspi"
        assert len(flow.ledger) == 0
        assert _event_types(audit_storage) == [
            AuditEventType.STATEMENT_SELECTED,
            AuditEventType.STATEMENT_PARSED,
        ]
        assert all(e.correlation_id == correlation_id for e in audit_storage.events)

    def test_rejected_file(self, flow, http_session, audit_storage, tmp_path):
        loaded, message = asyncio.run(flow.import_statement(tmp_path / "statement.docx"))

        assert loaded is False
        assert message == "Only PDF files are supported."
        assert flow.session.state == SessionState.EMPTY
        http_session.post.assert_not_called()
        rejected = audit_storage.events[-1]
        assert rejected.event_type == AuditEventType.STATEMENT_REJECTED
        assert rejected.error_code == "unsupported_format"

    def test_network_failure(self, flow, http_session, audit_storage, statement_pdf):
        http_session.post.side_effect = requests.ConnectionError()

        loaded, message = asyncio.run(flow.import_statement(statement_pdf))

        assert loaded is False
        assert message == "Could not reach the parser server. Make sure it is running."
        assert _event_types(audit_storage)[-2:] == [
            AuditEventType.PARSE_FAILED,
            AuditEventType.EXTERNAL_SERVICE_ERROR,
        ]
        assert audit_storage.events[-1].severity == AuditSeverity.ERROR

    def test_failure_clears_previous_batch(self, flow, http_session, statement_pdf):
        http_session.post.return_value = make_response(STATEMENT)
        asyncio.run(flow.import_statement(statement_pdf))

        http_session.post.return_value = make_response({"error": "rate limited"})
        loaded, message = asyncio.run(flow.import_statement(statement_pdf))

        assert loaded is False
        assert message == "Server error: rate limited"
        assert flow.session.state == SessionState.EMPTY

    def test_unexpected_error_is_audited_and_raised(self, http_session, audit_storage, statement_pdf):
        parser = MagicMock()

        async def broken(path):
            raise RuntimeError("decoder crashed")

        parser.parse_file = broken
        flow = StatementImportFlow(parser=parser, audit_logger=AuditLogger(audit_storage))
        correlation_id = create_correlation_id()

        with pytest.raises(RuntimeError):
            asyncio.run(flow.import_statement(statement_pdf, correlation_id))

        assert flow.session.state == SessionState.EMPTY
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "decoder crashed"
        assert event.details == {"filename": "statement.pdf"}
        assert event.correlation_id == correlation_id


class TestCommitAndReset:
    """Tests for the user's final decision."""

    def test_commit_selected(self, flow, http_session, audit_storage, statement_pdf):
        http_session.post.return_value = make_response(STATEMENT)
        asyncio.run(flow.import_statement(statement_pdf))
        taxi = next(c for c in flow.visible_candidates() if c.title == "Yandex Go")
        flow.session.toggle_selection(taxi.id)

        committed = asyncio.run(flow.commit_selected())

        assert committed == 2
        assert {t.title for t in flow.ledger.all()} == {"Magnum", "Employer"}
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.IMPORT_COMMITTED
        assert event.details == {"committed_count": 2, "discarded_count": 1}

    def test_reset(self, flow, http_session, audit_storage, statement_pdf):
        http_session.post.return_value = make_response(STATEMENT)
        asyncio.run(flow.import_statement(statement_pdf))

        discarded = asyncio.run(flow.reset())

        assert discarded == 3
        assert len(flow.ledger) == 0
        assert audit_storage.events[-1].event_type == AuditEventType.IMPORT_RESET

    def test_failed_write_keeps_batch(self, parser_service, http_session, audit_storage, statement_pdf):
        storage = FlakyLedgerStorage()
        flow = StatementImportFlow(
            parser=parser_service,
            ledger=TransactionLedger(storage),
            audit_logger=AuditLogger(audit_storage),
        )
        http_session.post.return_value = make_response(STATEMENT)
        asyncio.run(flow.import_statement(statement_pdf))

        with pytest.raises(PersistenceError):
            asyncio.run(flow.commit_selected())

        assert len(flow.ledger) == 0
        assert flow.session.state == SessionState.LOADED
        assert flow.session.selected_count == 3
        assert audit_storage.events[-1].event_type == AuditEventType.SYSTEM_ERROR

        storage.broken = False
        assert asyncio.run(flow.commit_selected()) == 3
        assert audit_storage.events[-1].event_type == AuditEventType.IMPORT_COMMITTED

    def test_without_audit_logger(self, parser_service, http_session, statement_pdf):
        flow = StatementImportFlow(parser=parser_service)
        http_session.post.return_value = make_response(STATEMENT)

        assert asyncio.run(flow.import_statement(statement_pdf))[0] is True
        assert asyncio.run(flow.commit_selected()) == 3


class TestAuditLogger:
    """Tests for audit logging failure handling."""

    def test_storage_failure_is_not_raised(self):
        storage = MagicMock()

        async def broken(event):
            raise OSError("disk full")

        storage.append_event = broken
        logger = AuditLogger(storage)

        event = AuditEventBuilder.system_error("test", "something broke")

        assert asyncio.run(logger.log(event)) is False

    def test_log_without_storage(self):
        event = AuditEventBuilder.system_error("test", "local only")
        assert asyncio.run(AuditLogger().log(event)) is True

    def test_log_returns_storage_result(self, audit_storage):
        logger = AuditLogger(audit_storage)
        asyncio.run(logger.log_import_reset(create_correlation_id(), 0, create_correlation_id()))
        assert len(audit_storage.events) == 1


class TestCreateAppComponents:
    """Tests for the default component graph."""

    def test_in_memory(self, monkeypatch):
        monkeypatch.setenv("STATEMENT_PARSER_BASE_URL", "http://parser.test:9000")
        from fincora.config import get_settings
        get_settings.cache_clear()

        flow, ledger = create_app_components(use_storage=False)

        assert flow.ledger is ledger
        assert flow._parser.classify_url == "http://parser.test:9000/classify"

    def test_file_storage(self, monkeypatch, tmp_path, http_session, statement_pdf):
        monkeypatch.setenv("LEDGER_STORAGE_PATH", str(tmp_path / "ledger.json"))
        monkeypatch.setenv("LEDGER_AUDIT_LOG_PATH", str(tmp_path / "audit.jsonl"))
        from fincora.config import get_settings
        get_settings.cache_clear()

        flow, ledger = create_app_components(use_storage=True)
        flow._parser._http = http_session
        http_session.post.return_value = make_response(STATEMENT)

        assert asyncio.run(flow.import_statement(statement_pdf))[0] is True
        assert asyncio.run(flow.commit_selected()) == 3

        assert flow.ledger is ledger
        assert len(ledger) == 3
        stored = JsonFileLedgerStorage(tmp_path / "ledger.json").load_transactions()
        assert {t.title for t in stored} == {"Magnum", "Yandex Go", "Employer"}
        assert (tmp_path / "audit.jsonl").exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
