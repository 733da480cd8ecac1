"""
Statement Parser Client

Document understanding is NOT done here. The PDF is sent as-is to the
statement classification service, which answers with one raw record per
transaction. This module:
1. Gates the input (PDF only) before touching the file system
2. Reads the file under a scoped access guard
3. Uploads it as multipart/form-data to POST {base_url}/classify
4. Validates each raw record and turns survivors into ParsedTransaction
5. Maps every failure to exactly one error of a closed set

DESIGN DECISION: Per-record problems (no date, no amount) drop the record
quietly. Only "nothing survived" is escalated, as EmptyResultError - a
statement where every line was rejected looks exactly like a classifier
regression, so the user has to hear about it.

There are NO automatic retries. Retrying is the user picking the file again.
"""

import asyncio
import os
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, localcontext
from enum import Enum
from pathlib import Path
from typing import Any, Callable, ContextManager, Optional
from uuid import uuid4

import requests
import structlog
from pydantic import ValidationError
from urllib3 import encode_multipart_formdata

from fincora.config import ParserServiceSettings, get_settings
from fincora.models.category import normalize_category
from fincora.models.transaction import MAX_TITLE_LENGTH, ParsedTransaction
from fincora.models.wire import ClassifyResponse, RawStatementRecord


logger = structlog.get_logger(__name__)

# Tried in order; all numeric, so parsing does not depend on the locale
STATEMENT_DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y", "%d.%m.%y", "%d/%m/%Y")

DEFAULT_TITLE = "Transaction"
PDF_CONTENT_TYPE = "application/pdf"


# =============================================================================
# ERRORS - closed set, one per failure mode
# =============================================================================

class ParserErrorKind(str, Enum):
    UNSUPPORTED_FORMAT = "unsupported_format"
    ACCESS_DENIED = "access_denied"
    NETWORK_UNAVAILABLE = "network_unavailable"
    SERVER_ERROR = "server_error"
    EMPTY_RESULT = "empty_result"


class StatementParserError(Exception):
    """
    Base exception for statement parsing.

    Every subclass renders as one short sentence for a blocking dialog.
    No internal diagnostics are carried to the user.
    """
    kind: ParserErrorKind

    @property
    def user_message(self) -> str:
        return str(self)


class UnsupportedFormatError(StatementParserError):
    """The selected file is not a PDF."""
    kind = ParserErrorKind.UNSUPPORTED_FORMAT

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__("Only PDF files are supported.")


class AccessDeniedError(StatementParserError):
    """The file could not be opened or read."""
    kind = ParserErrorKind.ACCESS_DENIED

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__("Could not access the selected file.")


class NetworkUnavailableError(StatementParserError):
    """The classification service could not be reached (DNS, refused, timeout)."""
    kind = ParserErrorKind.NETWORK_UNAVAILABLE

    def __init__(self):
        super().__init__("Could not reach the parser server. Make sure it is running.")


class ServerError(StatementParserError):
    """The service answered, but with a failure (non-200 or an error body)."""
    kind = ParserErrorKind.SERVER_ERROR

    def __init__(self, detail: str, status_code: Optional[int] = None):
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"Server error: {detail}")


class EmptyResultError(StatementParserError):
    """No record in the response survived validation."""
    kind = ParserErrorKind.EMPTY_RESULT

    def __init__(self, received_count: int = 0):
        self.received_count = received_count
        super().__init__("No transactions found in this statement.")


# =============================================================================
# SCOPED FILE ACCESS
# =============================================================================

class ScopedFileAccess:
    """
    Explicit acquire/release pair around reading a user-picked file.

    Used as a context manager: entering acquires (or raises
    AccessDeniedError), leaving releases - on success, on error and on
    cancellation alike.
    """

    def __init__(self, path: Path):
        self.path = path
        self.active = False

    def acquire(self) -> bool:
        """Grant access if the file exists and is readable."""
        if not (self.path.is_file() and os.access(self.path, os.R_OK)):
            return False
        self.active = True
        return True

    def release(self) -> None:
        self.active = False

    def __enter__(self) -> "ScopedFileAccess":
        if not self.acquire():
            raise AccessDeniedError(self.path.name)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


AccessFactory = Callable[[Path], ContextManager[Any]]


# =============================================================================
# RECORD CONVERSION
# =============================================================================

def parse_statement_date(text: Optional[str]) -> Optional[date]:
    """
    Parse a statement date using the accepted formats, in order.

    Returns:
        The date, or None if no format matches
    """
    if not text:
        return None
    text = text.strip()
    for fmt in STATEMENT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def build_title(merchant: Optional[str], details: Optional[str]) -> str:
    """First non-blank of merchant and details, trimmed and cut to 80 chars."""
    for text in (merchant, details):
        if text and text.strip():
            return text.strip()[:MAX_TITLE_LENGTH]
    return DEFAULT_TITLE


def _to_decimal(value: float) -> Optional[Decimal]:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not amount.is_finite():
        return None
    # quantize fails once the digits exceed the context precision
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return amount.quantize(Decimal("0.01"))


def record_to_candidate(
    item: Any,
    fallback_bank: Optional[str] = None,
) -> Optional[ParsedTransaction]:
    """
    Turn one raw record into a candidate.

    Returns:
        The candidate, or None if the record has no parseable date
        or no numeric amount
    """
    try:
        record = RawStatementRecord.model_validate(item)
    except ValidationError:
        return None

    parsed_date = parse_statement_date(record.date)
    if parsed_date is None or record.amount is None:
        return None

    amount = _to_decimal(record.amount)
    if amount is None:
        return None

    return ParsedTransaction(
        date=parsed_date,
        title=build_title(record.merchant, record.details),
        amount=abs(amount),
        is_expense=record.amount < 0,
        category=normalize_category(record.category),
        bank_name=record.bank or fallback_bank,
        details=record.details,
    )


def candidates_from_response(payload: ClassifyResponse) -> list[ParsedTransaction]:
    """
    Validate every record of a decoded response.

    Returns:
        Surviving candidates, newest first (ties keep server order)

    Raises:
        EmptyResultError: If no record survived
    """
    candidates = []
    for item in payload.transactions:
        candidate = record_to_candidate(item, fallback_bank=payload.bank)
        if candidate is not None:
            candidates.append(candidate)

    dropped = len(payload.transactions) - len(candidates)
    if dropped:
        logger.debug(
            "statement_records_dropped",
            received=len(payload.transactions),
            dropped=dropped,
        )

    if not candidates:
        raise EmptyResultError(received_count=len(payload.transactions))

    # sorted() is stable with reverse=True, so equal dates keep server order
    return sorted(candidates, key=lambda c: c.date, reverse=True)


# =============================================================================
# SERVICE
# =============================================================================

class StatementParserService:
    """
    Client for the statement classification service.

    IMPORTANT BOUNDARIES:
    1. This service ONLY proposes candidates - it never touches the ledger
    2. A call either returns a full candidate list or raises ONE error
    3. Steps are strictly sequential: read, upload, decode, validate
    """

    def __init__(
        self,
        settings: Optional[ParserServiceSettings] = None,
        http_session: Optional[requests.Session] = None,
        access_factory: Optional[AccessFactory] = None,
    ):
        self._settings = settings if settings is not None else get_settings().parser
        self._http = http_session if http_session is not None else requests.Session()
        self._access_factory = access_factory if access_factory is not None else ScopedFileAccess

    @property
    def classify_url(self) -> str:
        return self._settings.classify_url

    async def parse_file(self, path: str | Path) -> list[ParsedTransaction]:
        """
        Parse a bank-statement PDF into candidates for review.

        Suspends twice: on the file read and on the HTTP exchange. If the
        caller is cancelled while suspended, file access is still released
        and nothing is returned.

        Args:
            path: Local path of the PDF the user picked

        Returns:
            Candidates sorted by date, newest first

        Raises:
            UnsupportedFormatError: Extension is not .pdf (no I/O attempted)
            AccessDeniedError: File could not be accessed or read
            NetworkUnavailableError: Service unreachable or timed out
            ServerError: Non-200 status, error body or malformed body
            EmptyResultError: No record survived validation
        """
        path = Path(path)
        if path.suffix.lower() != ".pdf":
            raise UnsupportedFormatError(path.name)

        with self._access_factory(path):
            pdf_bytes = await asyncio.to_thread(self._read_bytes, path)
            response = await asyncio.to_thread(self._post_statement, pdf_bytes, path.name)

        payload = self._decode_response(response)
        candidates = candidates_from_response(payload)

        logger.info(
            "statement_parsed",
            filename=path.name,
            bank=payload.bank,
            received=len(payload.transactions),
            accepted=len(candidates),
            server_total=payload.summary.total_transactions if payload.summary else None,
        )
        return candidates

    @staticmethod
    def _read_bytes(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            logger.warning("statement_read_failed", filename=path.name, error=str(e))
            raise AccessDeniedError(path.name) from None

    def _post_statement(self, pdf_bytes: bytes, filename: str) -> requests.Response:
        """Upload the PDF as the single multipart part named 'file'."""
        body, content_type = encode_multipart_formdata(
            {"file": (filename, pdf_bytes, PDF_CONTENT_TYPE)},
            boundary=uuid4().hex,
        )
        try:
            return self._http.post(
                self.classify_url,
                data=body,
                headers={"Content-Type": content_type},
                timeout=self._settings.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning(
                "classify_request_failed",
                url=self.classify_url,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise NetworkUnavailableError() from None

    @staticmethod
    def _decode_response(response: requests.Response) -> ClassifyResponse:
        """
        Check the status and decode the envelope.

        An "error" in the body wins over the bare status code, so a 500
        with {"error": "rate limited"} reports "rate limited".
        """
        try:
            payload: Optional[ClassifyResponse] = ClassifyResponse.model_validate_json(
                response.content
            )
        except ValidationError:
            payload = None

        if response.status_code != 200:
            detail = payload.error if payload and payload.error else f"HTTP {response.status_code}"
            raise ServerError(detail, status_code=response.status_code)

        if payload is None:
            raise ServerError("Malformed response", status_code=response.status_code)

        if payload.error is not None:
            raise ServerError(payload.error, status_code=response.status_code)

        return payload
