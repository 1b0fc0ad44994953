"""
Ledger observers -- optional push notifications for presentation layers.

Observers are told about committed state only: every notification fires
after the surrounding transaction has committed.  Ledger correctness never
depends on them; an observer that raises is logged and skipped.
"""

from __future__ import annotations

from typing import Callable

from kiosk_kernel.domain.dtos import SessionInfo, TransactionRecord
from kiosk_kernel.domain.values import BalanceState
from kiosk_kernel.logging_config import get_logger

logger = get_logger("services.observers")


class LedgerObserver:
    """Base observer; override the hooks you need."""

    def on_session_started(self, session: SessionInfo) -> None:
        pass

    def on_session_closed(self, session: SessionInfo) -> None:
        pass

    def on_balance_changed(self, balances: BalanceState) -> None:
        pass

    def on_transaction_appended(self, record: TransactionRecord) -> None:
        pass


class ObserverRegistry:
    """Fan-out of ledger notifications to subscribed observers."""

    def __init__(self) -> None:
        self._observers: list[LedgerObserver] = []

    def subscribe(self, observer: LedgerObserver) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def __len__(self) -> int:
        return len(self._observers)

    def session_started(self, session: SessionInfo) -> None:
        self._emit("on_session_started", session)
        self._emit("on_balance_changed", session.balances)

    def session_closed(self, session: SessionInfo) -> None:
        self._emit("on_session_closed", session)

    def transaction_appended(self, record: TransactionRecord, balances: BalanceState) -> None:
        self._emit("on_transaction_appended", record)
        self._emit("on_balance_changed", balances)

    def _emit(self, hook: str, payload: object) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, hook)(payload)
            except Exception:
                logger.exception(
                    "observer_failed",
                    extra={"hook": hook, "observer": type(observer).__name__},
                )
