"""Services for the kiosk kernel (write side)."""

from kiosk_kernel.services.ledger_service import LedgerService
from kiosk_kernel.services.observers import LedgerObserver, ObserverRegistry
from kiosk_kernel.services.retry_service import PersistenceRetryPolicy, is_transient
from kiosk_kernel.services.session_service import (
    SessionService,
    SessionState,
    parse_opening_balances,
)
from kiosk_kernel.services.transaction_ledger import TransactionLedger

__all__ = [
    "LedgerObserver",
    "LedgerService",
    "ObserverRegistry",
    "PersistenceRetryPolicy",
    "SessionService",
    "SessionState",
    "TransactionLedger",
    "is_transient",
    "parse_opening_balances",
]
