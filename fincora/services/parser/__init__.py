"""Statement parser client package."""

from fincora.services.parser.statement_parser import (
    STATEMENT_DATE_FORMATS,
    AccessDeniedError,
    EmptyResultError,
    NetworkUnavailableError,
    ParserErrorKind,
    ScopedFileAccess,
    ServerError,
    StatementParserError,
    StatementParserService,
    UnsupportedFormatError,
    build_title,
    candidates_from_response,
    parse_statement_date,
    record_to_candidate,
)

__all__ = [
    "STATEMENT_DATE_FORMATS",
    "AccessDeniedError",
    "EmptyResultError",
    "NetworkUnavailableError",
    "ParserErrorKind",
    "ScopedFileAccess",
    "ServerError",
    "StatementParserError",
    "StatementParserService",
    "UnsupportedFormatError",
    "build_title",
    "candidates_from_response",
    "parse_statement_date",
    "record_to_candidate",
]
