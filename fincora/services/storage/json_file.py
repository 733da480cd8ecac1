"""
JSON file storage

The ledger file is a flat JSON object used as a key-value store:

    {
      "fincora_transactions": [ {...}, ... ],
      "fincora_budgets": [ {...}, ... ]
    }

Each key is read and written as a whole collection. Writes go to a
temporary file first and are moved into place, so a crash mid-write never
leaves a half-written ledger behind.

Audit events go to a separate JSON Lines file (one event per line).
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, TypeAdapter, ValidationError

from fincora.models.audit import AuditEvent
from fincora.models.transaction import Budget, Transaction
from fincora.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    PersistenceError,
)


TRANSACTIONS_KEY = "fincora_transactions"
BUDGETS_KEY = "fincora_budgets"

ModelT = TypeVar("ModelT", bound=BaseModel)


class JsonFileLedgerStorage(LedgerStorageInterface):
    """Ledger persisted to a single JSON key-value file."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_document(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read ledger file {self._path}: {e}") from e

        if not isinstance(document, dict):
            raise PersistenceError(f"Ledger file {self._path} is not a JSON object")
        return document

    def _write_key(self, key: str, value: list[dict]) -> None:
        document = self._read_document()
        document[key] = value

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._path)
        except OSError as e:
            Path(tmp_path).unlink(missing_ok=True)
            raise PersistenceError(f"Could not write ledger file {self._path}: {e}") from e

    def _load_list(self, key: str, model: type[ModelT]) -> Optional[list[ModelT]]:
        document = self._read_document()
        if key not in document:
            return None
        try:
            return TypeAdapter(list[model]).validate_python(document[key])
        except ValidationError as e:
            raise PersistenceError(f"Corrupt '{key}' entry in {self._path}: {e}") from e

    def load_transactions(self) -> Optional[list[Transaction]]:
        return self._load_list(TRANSACTIONS_KEY, Transaction)

    def save_transactions(self, transactions: list[Transaction]) -> None:
        self._write_key(
            TRANSACTIONS_KEY,
            [t.model_dump(mode="json") for t in transactions],
        )

    def load_budgets(self) -> Optional[list[Budget]]:
        return self._load_list(BUDGETS_KEY, Budget)

    def save_budgets(self, budgets: list[Budget]) -> None:
        self._write_key(
            BUDGETS_KEY,
            [b.model_dump(mode="json") for b in budgets],
        )


class JsonLinesAuditStorage(AuditStorageInterface):
    """Append-only audit trail, one JSON event per line."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = asyncio.Lock()

    def _append_line(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    def _read_events(self) -> list[AuditEvent]:
        if not self._path.exists():
            return []
        events = []
        with open(self._path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    events.append(AuditEvent.model_validate_json(line))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        async with self._lock:
            await asyncio.to_thread(self._append_line, event.to_json_line())
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = await asyncio.to_thread(self._read_events)
        return [e for e in events if e.correlation_id == correlation_id]
