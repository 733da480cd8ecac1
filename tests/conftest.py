"""Shared fixtures: fake HTTP session, recording file access, sample candidates."""

import json
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from fincora.config import ParserServiceSettings
from fincora.models.category import TransactionCategory
from fincora.models.transaction import ParsedTransaction
from fincora.services.parser import StatementParserService
from fincora.services.storage import InMemoryLedgerStorage, PersistenceError


class RecordingAccess:
    """Stand-in for ScopedFileAccess that remembers acquire/release calls."""

    def __init__(self):
        self.acquired = 0
        self.released = 0

    def __call__(self, path):
        return self

    def __enter__(self):
        self.acquired += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self.released += 1


class FlakyLedgerStorage(InMemoryLedgerStorage):
    """In-memory storage whose writes fail while `broken` is set."""

    def __init__(self):
        super().__init__()
        self.broken = True

    def save_transactions(self, transactions):
        if self.broken:
            raise PersistenceError("disk full")
        super().save_transactions(transactions)


def make_response(payload=None, status_code=200, raw=None):
    """A requests.Response look-alike carrying a JSON body."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    if raw is not None:
        response.content = raw
    else:
        response.content = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    return response


@pytest.fixture
def parser_settings():
    return ParserServiceSettings(base_url="http://parser.test:5001/")


@pytest.fixture
def http_session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def access():
    return RecordingAccess()


@pytest.fixture
def parser_service(parser_settings, http_session, access):
    return StatementParserService(
        settings=parser_settings,
        http_session=http_session,
        access_factory=access,
    )


@pytest.fixture
def statement_pdf(tmp_path):
    path = tmp_path / "statement.pdf"
    path.write_bytes(b"%PDF-1.4 fake statement")
    return path


def make_candidate(
    title="Magnum",
    amount="1500.00",
    category=TransactionCategory.FOOD,
    is_expense=True,
    day=date(2024, 1, 15),
    bank="Kaspi",
):
    return ParsedTransaction(
        date=day,
        title=title,
        amount=Decimal(amount),
        is_expense=is_expense,
        category=category,
        bank_name=bank,
    )


@pytest.fixture
def mixed_candidates():
    """Two food rows, one transport row, one salary row."""
    return [
        make_candidate("Magnum", "1500.00", TransactionCategory.FOOD, day=date(2024, 1, 20)),
        make_candidate("Yandex Go", "900.00", TransactionCategory.TRANSPORT, day=date(2024, 1, 19)),
        make_candidate("Small", "350.50", TransactionCategory.FOOD, day=date(2024, 1, 18)),
        make_candidate(
            "Employer LLP", "450000.00", TransactionCategory.SALARY,
            is_expense=False, day=date(2024, 1, 10),
        ),
    ]
