"""
Module: kiosk_kernel.selectors.reporting
Responsibility: ReportingView -- read-only projections over the session's
    balances and transaction history for dashboards and history screens.
Architecture position: Kernel > Selectors.  Combines SessionSelector and
    TransactionSelector; uses the pure BalanceSheet for replay.

Invariants enforced:
    - No mutation capability.
    - Tolerates an operator who never started a session (zero balances,
      ``has_session`` False) and an empty history (empty sequences, zero
      totals).
    - ``replayed_balances`` recomputes the float from opening balances and
      the ordered history; it must equal the stored live balances.
"""

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from kiosk_kernel.domain.balance_sheet import BalanceSheet
from kiosk_kernel.domain.dtos import SessionInfo, TransactionRecord
from kiosk_kernel.domain.values import (
    CASH,
    BalanceState,
    OperationKind,
    ServiceKind,
)
from kiosk_kernel.selectors.session_selector import SessionSelector
from kiosk_kernel.selectors.transaction_selector import TransactionSelector


@dataclass(frozen=True)
class ActivitySummary:
    """Count and totals for one operation kind."""

    count: int = 0
    amount: int = 0
    fees: int = 0


@dataclass(frozen=True)
class KioskReport:
    """Dashboard snapshot for the current session."""

    has_session: bool
    is_active: bool
    session: SessionInfo | None
    balances: BalanceState
    recent: tuple[TransactionRecord, ...] = ()
    activity: dict[OperationKind, ActivitySummary] = field(default_factory=dict)

    @property
    def cash(self) -> int:
        return self.balances.cash

    @property
    def total_mobile_money(self) -> int:
        return self.balances.mobile_money_total

    @property
    def per_service(self) -> dict[ServiceKind, int]:
        return {kind: self.balances.service(kind) for kind in ServiceKind}

    @property
    def fees_collected(self) -> int:
        return sum(summary.fees for summary in self.activity.values())


class ReportingView:
    """
    Read-only reporting over one operator's current session.

    Contract:
        Every method derives its answer from stored state on each call; the
        view caches nothing.
    """

    def __init__(self, session: Session, operator_id: str):
        self._operator_id = operator_id
        self._sessions = SessionSelector(session)
        self._transactions = TransactionSelector(session)

    def current_session(self) -> SessionInfo | None:
        return self._sessions.current(self._operator_id)

    def balances(self) -> BalanceState:
        current = self.current_session()
        return current.balances if current else BalanceState.zero()

    def balance(self, pool: ServiceKind | str) -> int:
        """Balance of ``"cash"`` or one service; 0 when no session exists."""
        if pool != CASH:
            pool = ServiceKind.parse(pool)
        return self.balances().get(pool)

    def total_mobile_money(self) -> int:
        return self.balances().mobile_money_total

    def recent(self, limit: int) -> list[TransactionRecord]:
        current = self.current_session()
        if current is None:
            return []
        return self._transactions.recent(current.id, limit)

    def activity(self, session_id: UUID | None = None) -> dict[OperationKind, ActivitySummary]:
        """Per-operation counts and totals, every kind present (zeros if idle)."""
        totals = {kind: [0, 0, 0] for kind in OperationKind}
        sid = session_id or self._current_id()
        if sid is not None:
            for record in self._transactions.in_insertion_order(sid):
                bucket = totals[record.type]
                bucket[0] += 1
                bucket[1] += record.amount
                bucket[2] += record.fee
        return {
            kind: ActivitySummary(count=c, amount=a, fees=f)
            for kind, (c, a, f) in totals.items()
        }

    def fees_collected(self, session_id: UUID | None = None) -> int:
        return sum(summary.fees for summary in self.activity(session_id).values())

    def replayed_balances(self, session_id: UUID | None = None) -> BalanceState:
        """Opening balances with every recorded operation re-applied in order."""
        info = self._session_info(session_id)
        if info is None:
            return BalanceState.zero()
        state = info.opening_balances
        for record in self._transactions.in_insertion_order(info.id):
            state = BalanceSheet.apply(record.type, record.service, record.amount, state)
        return state

    def is_reconciled(self, session_id: UUID | None = None) -> bool:
        info = self._session_info(session_id)
        if info is None:
            return True
        return self.replayed_balances(info.id) == info.balances

    def snapshot(self, recent_limit: int) -> KioskReport:
        current = self.current_session()
        if current is None:
            return KioskReport(
                has_session=False,
                is_active=False,
                session=None,
                balances=BalanceState.zero(),
                activity=self.activity(),
            )
        return KioskReport(
            has_session=True,
            is_active=current.is_active,
            session=current,
            balances=current.balances,
            recent=tuple(self._transactions.recent(current.id, recent_limit)),
            activity=self.activity(current.id),
        )

    def _current_id(self) -> UUID | None:
        current = self.current_session()
        return current.id if current else None

    def _session_info(self, session_id: UUID | None) -> SessionInfo | None:
        if session_id is None:
            return self.current_session()
        return self._sessions.get(self._operator_id, session_id)
