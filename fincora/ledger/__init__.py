"""Transaction ledger package."""

from fincora.ledger.store import LedgerObserver, TransactionLedger

__all__ = ["LedgerObserver", "TransactionLedger"]
