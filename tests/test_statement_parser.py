"""
Tests for the statement parser client.

The classification service is never contacted: HTTP goes through a
mocked requests.Session and file access through a recording guard.
"""

import asyncio
import threading
from datetime import date
from decimal import Decimal

import pytest
import requests

from conftest import make_response
from fincora.models.category import TransactionCategory
from fincora.models.wire import ClassifyResponse
from fincora.services.parser import (
    AccessDeniedError,
    EmptyResultError,
    NetworkUnavailableError,
    ParserErrorKind,
    ScopedFileAccess,
    ServerError,
    StatementParserService,
    UnsupportedFormatError,
    build_title,
    candidates_from_response,
    parse_statement_date,
    record_to_candidate,
)


class TestDateParsing:
    """Tests for the fixed statement date formats."""

    @pytest.mark.parametrize("text", ["2024-01-15", "15.01.2024", "15.01.24", "15/01/2024"])
    def test_accepted_formats(self, text):
        assert parse_statement_date(text) == date(2024, 1, 15)

    def test_surrounding_whitespace_is_ignored(self):
        assert parse_statement_date("  2024-01-15 ") == date(2024, 1, 15)

    @pytest.mark.parametrize("text", [None, "", "01/14/2024", "Jan 15 2024", "2024-13-01"])
    def test_unparseable_dates(self, text):
        assert parse_statement_date(text) is None


class TestTitle:
    """Tests for title selection and truncation."""

    def test_merchant_wins(self):
        assert build_title("Magnum", "Purchase at Magnum") == "Magnum"

    def test_blank_merchant_falls_back_to_details(self):
        assert build_title("   ", "Card payment") == "Card payment"

    def test_default_title(self):
        assert build_title(None, None) == "Transaction"
        assert build_title("", "  ") == "Transaction"

    def test_long_merchant_is_cut_to_80(self):
        """200 repeated characters become exactly 80."""
        assert len(build_title("x" * 200, None)) == 80

    def test_cut_is_not_trimmed_again(self):
        """A space landing in the cut does not shorten the title."""
        merchant = "A" * 79 + " " + "B" * 100
        title = build_title(merchant, None)
        assert len(title) == 80
        assert title.endswith("A ")

        candidate = record_to_candidate({"date": "2024-01-15", "amount": -10, "merchant": merchant})
        assert candidate.title == title
        assert candidate.to_transaction().title == title


class TestRecordConversion:
    """Tests for turning raw records into candidates."""

    def test_negative_amount_is_expense(self):
        candidate = record_to_candidate(
            {"date": "2024-01-15", "amount": -1500.5, "merchant": "Magnum", "category": "Супермаркеты"}
        )
        assert candidate.amount == Decimal("1500.50")
        assert candidate.is_expense is True
        assert candidate.category == TransactionCategory.FOOD
        assert candidate.is_selected is True

    def test_positive_amount_is_income(self):
        candidate = record_to_candidate({"date": "2024-01-15", "amount": 250000, "category": "Зарплата"})
        assert candidate.amount == Decimal("250000.00")
        assert candidate.is_expense is False
        assert candidate.category == TransactionCategory.SALARY

    def test_huge_amount_is_kept(self):
        candidate = record_to_candidate({"date": "2024-01-15", "amount": -1e27})
        assert candidate is not None
        assert candidate.amount == Decimal("1E+27")
        assert candidate.is_expense is True

    def test_zero_amount_is_not_expense(self):
        candidate = record_to_candidate({"date": "2024-01-15", "amount": 0})
        assert candidate.amount == Decimal("0.00")
        assert candidate.is_expense is False

    def test_record_bank_wins_over_envelope_bank(self):
        record = {"date": "2024-01-15", "amount": -10, "bank": "Halyk"}
        assert record_to_candidate(record, fallback_bank="Kaspi").bank_name == "Halyk"

    def test_envelope_bank_is_fallback(self):
        record = {"date": "2024-01-15", "amount": -10}
        assert record_to_candidate(record, fallback_bank="Kaspi").bank_name == "Kaspi"

    def test_unknown_category_becomes_other(self):
        record = {"date": "2024-01-15", "amount": -10, "category": "Космос"}
        assert record_to_candidate(record).category == TransactionCategory.OTHER

    def test_details_are_kept(self):
        record = {"date": "2024-01-15", "amount": -10, "merchant": "Magnum", "details": "Card *1234"}
        assert record_to_candidate(record).details == "Card *1234"

    @pytest.mark.parametrize("record", [
        {"amount": -10},
        {"date": "yesterday", "amount": -10},
        {"date": "2024-01-15"},
        {"date": "2024-01-15", "amount": None},
        {"date": "2024-01-15", "amount": "12.50"},
        {"date": "2024-01-15", "amount": True},
        "not an object",
        None,
    ])
    def test_unusable_records_are_dropped(self, record):
        assert record_to_candidate(record) is None

    def test_fresh_ids(self):
        record = {"date": "2024-01-15", "amount": -10}
        assert record_to_candidate(record).id != record_to_candidate(record).id


class TestResponseConversion:
    """Tests for whole-response validation."""

    def test_clean_batch_scenario(self):
        """Two supported dates survive; the US-style date is dropped."""
        payload = ClassifyResponse.model_validate({
            "bank": "Kaspi",
            "transactions": [
                {"date": "2024-01-15", "amount": -1500, "merchant": "Magnum"},
                {"date": "15.01.2024", "amount": 20000, "merchant": "Transfer in"},
                {"date": "01/14/2024", "amount": 300, "merchant": "Dropped"},
            ],
        })

        candidates = candidates_from_response(payload)

        assert len(candidates) == 2
        assert [c.title for c in candidates] == ["Magnum", "Transfer in"]
        assert [c.is_expense for c in candidates] == [True, False]

    def test_drops_without_failing(self):
        payload = ClassifyResponse.model_validate({
            "transactions": [
                {"date": "2024-01-15", "amount": -1},
                {"date": "garbage", "amount": -2},
                {"date": "2024-01-16", "amount": -3},
                {"date": None, "amount": -4},
            ],
        })
        assert len(candidates_from_response(payload)) == 2

    def test_all_dropped_escalates(self):
        payload = ClassifyResponse.model_validate({
            "transactions": [{"date": "garbage", "amount": -1}, {"amount": -2}],
        })
        with pytest.raises(EmptyResultError) as exc_info:
            candidates_from_response(payload)
        assert exc_info.value.received_count == 2

    def test_null_transactions_is_empty_result(self):
        payload = ClassifyResponse.model_validate({"bank": "Kaspi", "transactions": None})
        with pytest.raises(EmptyResultError):
            candidates_from_response(payload)

    def test_sorted_newest_first_and_stable(self):
        payload = ClassifyResponse.model_validate({
            "transactions": [
                {"date": "2024-01-10", "amount": -1, "merchant": "old"},
                {"date": "2024-01-20", "amount": -1, "merchant": "tie-a"},
                {"date": "2024-01-15", "amount": -1, "merchant": "middle"},
                {"date": "2024-01-20", "amount": -1, "merchant": "tie-b"},
            ],
        })
        titles = [c.title for c in candidates_from_response(payload)]
        assert titles == ["tie-a", "tie-b", "middle", "old"]

    def test_amount_is_never_negative(self):
        payload = ClassifyResponse.model_validate({
            "transactions": [
                {"date": "2024-01-15", "amount": amount}
                for amount in (-0.01, -99999.99, 0, 12.345, 7)
            ],
        })
        for candidate in candidates_from_response(payload):
            assert candidate.amount >= 0


class TestParseFile:
    """Tests for the full parse_file call with mocked I/O."""

    def test_success(self, parser_service, http_session, access, statement_pdf):
        http_session.post.return_value = make_response({
            "bank": "Kaspi",
            "transactions": [
                {"date": "2024-01-15", "amount": -1500, "merchant": "Magnum", "category": "Рестораны и кафе"},
            ],
            "summary": {"total_transactions": 1, "by_category": {"Рестораны и кафе": 1}},
        })

        candidates = asyncio.run(parser_service.parse_file(statement_pdf))

        assert len(candidates) == 1
        assert candidates[0].bank_name == "Kaspi"
        assert access.acquired == 1
        assert access.released == 1

    def test_posts_multipart_pdf(self, parser_service, http_session, statement_pdf):
        http_session.post.return_value = make_response(
            {"transactions": [{"date": "2024-01-15", "amount": -1}]}
        )

        asyncio.run(parser_service.parse_file(statement_pdf))

        args, kwargs = http_session.post.call_args
        assert args[0] == "http://parser.test:5001/classify"
        content_type = kwargs["headers"]["Content-Type"]
        assert content_type.startswith("multipart/form-data; boundary=")
        body = kwargs["data"]
        assert b'name="file"; filename="statement.pdf"' in body
        assert b"Content-Type: application/pdf" in body
        assert b"%PDF-1.4 fake statement" in body
        assert kwargs["timeout"] == 60.0

    def test_non_pdf_is_rejected_without_io(self, parser_service, http_session, access, tmp_path):
        with pytest.raises(UnsupportedFormatError) as exc_info:
            asyncio.run(parser_service.parse_file(tmp_path / "statement.docx"))

        assert exc_info.value.kind == ParserErrorKind.UNSUPPORTED_FORMAT
        assert exc_info.value.user_message == "Only PDF files are supported."
        http_session.post.assert_not_called()
        assert access.acquired == 0

    def test_uppercase_extension_is_accepted(self, parser_service, http_session, tmp_path):
        path = tmp_path / "STATEMENT.PDF"
        path.write_bytes(b"%PDF")
        http_session.post.return_value = make_response(
            {"transactions": [{"date": "2024-01-15", "amount": -1}]}
        )
        assert len(asyncio.run(parser_service.parse_file(path))) == 1

    def test_missing_file_is_access_denied(self, parser_settings, http_session, tmp_path):
        service = StatementParserService(settings=parser_settings, http_session=http_session)

        with pytest.raises(AccessDeniedError) as exc_info:
            asyncio.run(service.parse_file(tmp_path / "missing.pdf"))

        assert exc_info.value.user_message == "Could not access the selected file."
        http_session.post.assert_not_called()

    def test_network_failure(self, parser_service, http_session, access, statement_pdf):
        http_session.post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(NetworkUnavailableError) as exc_info:
            asyncio.run(parser_service.parse_file(statement_pdf))

        assert "connection refused" not in exc_info.value.user_message
        assert access.released == 1

    def test_timeout_is_network_failure(self, parser_service, http_session, statement_pdf):
        http_session.post.side_effect = requests.Timeout()
        with pytest.raises(NetworkUnavailableError):
            asyncio.run(parser_service.parse_file(statement_pdf))

    def test_error_body_wins_over_empty_result(self, parser_service, http_session, statement_pdf):
        """HTTP 200 with an error and no transactions is a server error."""
        http_session.post.return_value = make_response({"error": "rate limited", "transactions": []})

        with pytest.raises(ServerError) as exc_info:
            asyncio.run(parser_service.parse_file(statement_pdf))

        assert exc_info.value.detail == "rate limited"
        assert exc_info.value.user_message == "Server error: rate limited"

    def test_non_200_with_error_body(self, parser_service, http_session, statement_pdf):
        http_session.post.return_value = make_response({"error": "bad pdf"}, status_code=422)

        with pytest.raises(ServerError) as exc_info:
            asyncio.run(parser_service.parse_file(statement_pdf))

        assert exc_info.value.detail == "bad pdf"
        assert exc_info.value.status_code == 422

    def test_non_200_without_body(self, parser_service, http_session, statement_pdf):
        http_session.post.return_value = make_response(raw=b"<html>502</html>", status_code=502)

        with pytest.raises(ServerError) as exc_info:
            asyncio.run(parser_service.parse_file(statement_pdf))

        assert exc_info.value.detail == "HTTP 502"

    def test_malformed_body(self, parser_service, http_session, statement_pdf):
        http_session.post.return_value = make_response(raw=b"not json")

        with pytest.raises(ServerError) as exc_info:
            asyncio.run(parser_service.parse_file(statement_pdf))

        assert exc_info.value.detail == "Malformed response"

    def test_empty_result(self, parser_service, http_session, access, statement_pdf):
        http_session.post.return_value = make_response({"bank": "Kaspi", "transactions": []})

        with pytest.raises(EmptyResultError) as exc_info:
            asyncio.run(parser_service.parse_file(statement_pdf))

        assert exc_info.value.user_message == "No transactions found in this statement."
        assert access.released == 1

    def test_cancellation_releases_access(self, parser_service, http_session, access, statement_pdf):
        """Cancelling while the upload is in flight still releases the file."""
        started = threading.Event()
        unblock = threading.Event()

        def slow_post(*args, **kwargs):
            started.set()
            unblock.wait(timeout=5)
            return make_response({"transactions": [{"date": "2024-01-15", "amount": -1}]})

        http_session.post.side_effect = slow_post

        async def scenario():
            task = asyncio.create_task(parser_service.parse_file(statement_pdf))
            while not started.is_set():
                await asyncio.sleep(0.01)
            task.cancel()
            try:
                with pytest.raises(asyncio.CancelledError):
                    await task
            finally:
                unblock.set()

        asyncio.run(scenario())

        assert access.acquired == 1
        assert access.released == 1


class TestScopedFileAccess:
    """Tests for the real acquire/release guard."""

    def test_acquire_and_release(self, statement_pdf):
        guard = ScopedFileAccess(statement_pdf)
        with guard:
            assert guard.active is True
        assert guard.active is False

    def test_released_on_error(self, statement_pdf):
        guard = ScopedFileAccess(statement_pdf)
        with pytest.raises(RuntimeError):
            with guard:
                raise RuntimeError("boom")
        assert guard.active is False

    def test_missing_file_is_denied(self, tmp_path):
        with pytest.raises(AccessDeniedError):
            with ScopedFileAccess(tmp_path / "missing.pdf"):
                pass

    def test_directory_is_denied(self, tmp_path):
        assert ScopedFileAccess(tmp_path).acquire() is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
