"""
LedgerService -- the kiosk kernel's public boundary.

Responsibility:
    One object per operator (tenant) that owns the kiosk's session, float and
    history through an injected session factory.  Presentation layers call
    only this class.

Architecture position:
    Kernel > Services -- outermost shell.  Owns transaction boundaries: each
    operation runs in its own database transaction, wrapped by the
    persistence retry policy, and commits only if every step succeeded.

Operations:
    start_session(opening_balances)              -> LedgerResult[SessionInfo]
    close_session()                              -> LedgerResult[SessionInfo]
    deposit(service, amount, phone)              -> LedgerResult[TransactionRecord]
    withdraw(service, amount, phone)             -> LedgerResult[TransactionRecord]
    transfer(service, amount, recipient, desc)   -> LedgerResult[TransactionRecord]
    get_balance("cash" | service)                -> LedgerResult[int]
    list_transactions(filter)                    -> LedgerResult[list[TransactionRecord]]

Invariants enforced:
    - No exception crosses this boundary: every outcome is a LedgerResult.
    - No operation without an operator identity (IDENTITY_REQUIRED).
    - Writes for one operator are serialized in-process by a lock; across
      processes the session row's optimistic version check plus the
      active-session unique index keep solvency checks and the
      one-active-session rule sound.
    - Observers are notified only after commit.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Mapping, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from kiosk_kernel.db.engine import session_scope
from kiosk_kernel.domain.clock import Clock, SystemClock
from kiosk_kernel.domain.dtos import (
    SessionInfo,
    TransactionFilter,
    TransactionRecord,
    TransactionRequest,
)
from kiosk_kernel.domain.policy import LedgerPolicy
from kiosk_kernel.domain.result import LedgerResult
from kiosk_kernel.domain.values import (
    CASH,
    BalanceState,
    OperationKind,
    Recipient,
    ServiceKind,
)
from kiosk_kernel.exceptions import (
    InvalidFieldError,
    KioskLedgerError,
    MissingIdentityError,
    PersistenceError,
    UnknownServiceError,
)
from kiosk_kernel.logging_config import LogContext, get_logger
from kiosk_kernel.selectors.reporting import KioskReport, ReportingView
from kiosk_kernel.selectors.session_selector import SessionSelector
from kiosk_kernel.selectors.transaction_selector import (
    TransactionSelector,
    normalize_filter,
)
from kiosk_kernel.services.observers import LedgerObserver, ObserverRegistry
from kiosk_kernel.services.retry_service import PersistenceRetryPolicy
from kiosk_kernel.services.session_service import SessionService, SessionState
from kiosk_kernel.services.transaction_ledger import TransactionLedger

logger = get_logger("services.ledger_service")

T = TypeVar("T")


def _as_recipient(recipient: Recipient | Mapping[str, Any] | None) -> Any:
    # Field types are checked by TransactionLedger.
    if isinstance(recipient, Mapping):
        return Recipient(name=recipient.get("name"), phone=recipient.get("phone"))
    return recipient


def _as_pool(pool: ServiceKind | str) -> ServiceKind | str:
    if pool == CASH:
        return CASH
    try:
        return ServiceKind.parse(pool)
    except ValueError:
        raise UnknownServiceError(pool) from None


class LedgerService:
    """
    Session & ledger engine for one operator.

    Contract:
        Construct once per operator/process with a session factory bound to
        the durable store.  Every public method returns a ``LedgerResult``.

    Non-goals:
        - Does NOT authenticate; the identity token is taken as given.
        - Does NOT render receipts or UI.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        operator_id: str | None,
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
        retry_policy: PersistenceRetryPolicy | None = None,
    ):
        self._session_factory = session_factory
        self._operator_id = operator_id.strip() if operator_id else None
        self._policy = policy or LedgerPolicy()
        self._clock = clock or SystemClock()
        self._retry = retry_policy or PersistenceRetryPolicy()
        self._observers = ObserverRegistry()
        self._lock = threading.RLock()

    @property
    def operator_id(self) -> str | None:
        return self._operator_id

    @property
    def policy(self) -> LedgerPolicy:
        return self._policy

    def subscribe(self, observer: LedgerObserver) -> Callable[[], None]:
        """Register for committed-state notifications; returns an unsubscriber."""
        return self._observers.subscribe(observer)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_session(
        self,
        opening_balances: BalanceState | Mapping[str, Any],
    ) -> LedgerResult[SessionInfo]:
        result = self._execute(
            "start_session",
            lambda s: SessionService(s, self._clock).start(self._operator_id, opening_balances),
        )
        if result.ok:
            with LogContext.bind(operator_id=self._operator_id, session_id=str(result.value.id)):
                self._observers.session_started(result.value)
        return result

    def close_session(self) -> LedgerResult[SessionInfo]:
        result = self._execute(
            "close_session",
            lambda s: SessionService(s, self._clock).close(self._operator_id),
        )
        if result.ok:
            with LogContext.bind(operator_id=self._operator_id, session_id=str(result.value.id)):
                self._observers.session_closed(result.value)
        return result

    def session_state(self) -> LedgerResult[SessionState]:
        return self._execute(
            "session_state",
            lambda s: SessionService(s, self._clock).state(self._operator_id),
        )

    def current_session(self) -> LedgerResult[SessionInfo | None]:
        """Active session, else the most recently opened one, else None."""
        return self._execute(
            "current_session",
            lambda s: SessionSelector(s).current(self._operator_id),
        )

    def list_sessions(self) -> LedgerResult[list[SessionInfo]]:
        return self._execute(
            "list_sessions",
            lambda s: SessionSelector(s).history(self._operator_id),
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def deposit(
        self,
        service: ServiceKind | str,
        amount: int,
        phone_number: str,
    ) -> LedgerResult[TransactionRecord]:
        return self.propose(TransactionRequest(
            kind=OperationKind.DEPOSIT,
            service=service,
            amount=amount,
            phone_number=phone_number,
        ))

    def withdraw(
        self,
        service: ServiceKind | str,
        amount: int,
        phone_number: str,
    ) -> LedgerResult[TransactionRecord]:
        return self.propose(TransactionRequest(
            kind=OperationKind.WITHDRAWAL,
            service=service,
            amount=amount,
            phone_number=phone_number,
        ))

    def transfer(
        self,
        service: ServiceKind | str,
        amount: int,
        recipient: Recipient | Mapping[str, Any] | None,
        description: str | None = None,
    ) -> LedgerResult[TransactionRecord]:
        return self.propose(TransactionRequest(
            kind=OperationKind.TRANSFER,
            service=service,
            amount=amount,
            recipient=_as_recipient(recipient),
            description=description,
        ))

    def propose(self, request: TransactionRequest) -> LedgerResult[TransactionRecord]:
        """Validate and apply one operation atomically."""
        kind = getattr(request, "kind", None)
        operation = f"propose_{getattr(kind, 'value', kind)}"

        def work(session: Session) -> tuple[TransactionRecord, BalanceState]:
            if not isinstance(request, TransactionRequest):
                raise InvalidFieldError("request", request)
            record = TransactionLedger(session, self._policy, self._clock).propose(
                self._operator_id, request
            )
            active = SessionSelector(session).active(self._operator_id)
            return record, active.balances

        result = self._execute(operation, work)
        if not result.ok:
            return LedgerResult.failure(result.error)

        record, balances = result.value
        with LogContext.bind(
            operator_id=self._operator_id,
            session_id=str(record.session_id),
            transaction_id=str(record.id),
        ):
            self._observers.transaction_appended(record, balances)
        return LedgerResult.success(record)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_balance(self, pool: ServiceKind | str) -> LedgerResult[int]:
        """Balance of ``"cash"`` or a service in the current session (0 if none)."""
        def work(session: Session) -> int:
            return ReportingView(session, self._operator_id).balance(_as_pool(pool))

        return self._execute("get_balance", work)

    def get_balances(self) -> LedgerResult[BalanceState]:
        return self._execute(
            "get_balances",
            lambda s: ReportingView(s, self._operator_id).balances(),
        )

    def list_transactions(
        self,
        flt: TransactionFilter | None = None,
        *,
        service: ServiceKind | str | None = None,
        type: OperationKind | str | None = None,
        limit: int | None = None,
        search: str | None = None,
        session_id: UUID | None = None,
    ) -> LedgerResult[list[TransactionRecord]]:
        """
        Transactions of the current (or given) session, newest first.

        Keyword arguments build a ``TransactionFilter`` when ``flt`` is None.
        """
        if flt is None:
            flt = TransactionFilter(
                service=service,
                type=type,
                limit=limit,
                search=search,
                session_id=session_id,
            )

        def work(session: Session) -> list[TransactionRecord]:
            if not isinstance(flt, TransactionFilter):
                raise InvalidFieldError("filter", flt)
            normalize_filter(flt)
            selector = SessionSelector(session)
            if flt.session_id is not None:
                target = selector.get(self._operator_id, flt.session_id)
            else:
                target = selector.current(self._operator_id)
            if target is None:
                return []
            return TransactionSelector(session).find(target.id, flt)

        return self._execute("list_transactions", work)

    def recent_transactions(self, limit: int | None = None) -> LedgerResult[list[TransactionRecord]]:
        return self.list_transactions(
            limit=limit if limit is not None else self._policy.recent_limit
        )

    def report(self, recent_limit: int | None = None) -> LedgerResult[KioskReport]:
        """Dashboard snapshot: balances, recent activity, per-type totals, fees."""
        limit = recent_limit if recent_limit is not None else self._policy.recent_limit
        return self._execute(
            "report",
            lambda s: ReportingView(s, self._operator_id).snapshot(limit),
        )

    def verify_balances(self, session_id: UUID | None = None) -> LedgerResult[bool]:
        """True when stored balances equal a replay of the session's history."""
        def work(session: Session) -> bool:
            if session_id is not None and not isinstance(session_id, UUID):
                raise InvalidFieldError("session_id", session_id)
            return ReportingView(session, self._operator_id).is_reconciled(session_id)

        return self._execute("verify_balances", work)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _in_transaction(self, work: Callable[[Session], T]) -> T:
        with session_scope(self._session_factory) as session:
            return work(session)

    def _execute(self, operation: str, work: Callable[[Session], T]) -> LedgerResult[T]:
        with LogContext.bind(
            operator_id=self._operator_id,
            correlation_id=str(uuid4()),
        ):
            try:
                if not self._operator_id:
                    raise MissingIdentityError()
                with self._lock:
                    value = self._retry.run(operation, lambda: self._in_transaction(work))
            except KioskLedgerError as exc:
                logger.warning(
                    "operation_rejected",
                    extra={"operation": operation, "code": exc.code, "reason": str(exc)},
                )
                return LedgerResult.from_exception(exc)
            except SQLAlchemyError as exc:
                logger.error(
                    "operation_failed",
                    exc_info=True,
                    extra={"operation": operation},
                )
                return LedgerResult.from_exception(
                    PersistenceError(operation, 1, str(exc))
                )
            return LedgerResult.success(value)
