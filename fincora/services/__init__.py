"""Services package."""

from fincora.services.parser import (
    AccessDeniedError,
    EmptyResultError,
    NetworkUnavailableError,
    ParserErrorKind,
    ServerError,
    StatementParserError,
    StatementParserService,
    UnsupportedFormatError,
)
from fincora.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    JsonLinesAuditStorage,
    LedgerStorageInterface,
    NotFoundError,
    PersistenceError,
    StorageError,
)

__all__ = [
    # Parser service
    "AccessDeniedError",
    "EmptyResultError",
    "NetworkUnavailableError",
    "ParserErrorKind",
    "ServerError",
    "StatementParserError",
    "StatementParserService",
    "UnsupportedFormatError",
    # Storage services
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "JsonFileLedgerStorage",
    "JsonLinesAuditStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "PersistenceError",
    "StorageError",
]
