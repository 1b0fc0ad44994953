"""
SessionService -- kiosk session lifecycle.

Responsibility:
    Opens a session from the operator's declared opening balances, closes
    it, and gates every ledger write on an active session.

Architecture position:
    Kernel > Services -- imperative shell.  Called by ``LedgerService`` for
    start/close and by ``TransactionLedger`` before every write.

State machine:
    NOT_STARTED --start--> ACTIVE --close--> CLOSED --start--> ACTIVE ...

Invariants enforced:
    - At most one active session per operator: checked here, and backed by
      the partial unique index on kiosk_sessions for concurrent starts.
    - Closing keeps balances and history; it only flips ``is_active``.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - SessionAlreadyActiveError: start while a session is active.
    - NoActiveSessionError: close or write without an active session.
    - InvalidAmountError: an opening balance is not an int >= 0, or the
      opening total does not fit a BIGINT.
    - InvalidFieldError: the opening declaration is not a mapping.
"""

from enum import Enum
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kiosk_kernel.domain.clock import Clock, SystemClock
from kiosk_kernel.domain.dtos import SessionInfo
from kiosk_kernel.domain.values import MAX_MONEY, BalanceState, is_money
from kiosk_kernel.exceptions import (
    InvalidAmountError,
    InvalidFieldError,
    NoActiveSessionError,
    SessionAlreadyActiveError,
)
from kiosk_kernel.logging_config import LogContext, get_logger
from kiosk_kernel.models.kiosk_session import KioskSession
from kiosk_kernel.services.base import BaseService

logger = get_logger("services.session")

_OPENING_KEYS = (
    ("cash", ("cash",)),
    ("mvola", ("mvola",)),
    ("orange_money", ("orange_money", "orangeMoney")),
    ("airtel_money", ("airtel_money", "airtelMoney")),
)


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    CLOSED = "closed"


def parse_opening_balances(opening: BalanceState | Mapping[str, Any]) -> BalanceState:
    """
    Validate operator-declared opening balances.

    Accepts a ``BalanceState`` or a mapping with python- or wire-style keys.
    Missing pools default to 0.  The four pools together must fit in
    ``MAX_MONEY``: operations only move value between pools, so no pool can
    outgrow the opening total.

    Raises:
        InvalidFieldError: ``opening`` is neither a mapping nor a BalanceState.
        InvalidAmountError: a value is not an int, is negative, or the
            total exceeds ``MAX_MONEY``.
    """
    if isinstance(opening, BalanceState):
        balances = opening
    elif isinstance(opening, Mapping):
        values: dict[str, int] = {}
        for field_name, keys in _OPENING_KEYS:
            raw: Any = 0
            for key in keys:
                if key in opening:
                    raw = opening[key]
                    break
            if not is_money(raw) or raw < 0:
                raise InvalidAmountError(f"opening {keys[-1]}", raw)
            if raw > MAX_MONEY:
                raise InvalidAmountError(f"opening {keys[-1]}", raw, f"must not exceed {MAX_MONEY}")
            values[field_name] = raw
        balances = BalanceState(**values)
    else:
        raise InvalidFieldError("opening balances", opening)

    if balances.total > MAX_MONEY:
        raise InvalidAmountError(
            "opening total", balances.total, f"must not exceed {MAX_MONEY}"
        )
    return balances


class SessionService(BaseService[KioskSession]):
    """
    Service for the kiosk session lifecycle.

    Contract:
        Lifecycle methods return frozen ``SessionInfo`` DTOs and flush within
        the caller's transaction.  ``require_active`` hands the ORM row to
        other services in the same transaction.

    Non-goals:
        - No automatic rollover or timeout; closing is operator-driven.
        - Does NOT call ``session.commit()``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def get_active(self, operator_id: str, for_update: bool = False) -> KioskSession | None:
        stmt = select(KioskSession).where(
            KioskSession.operator_id == operator_id,
            KioskSession.is_active.is_(True),
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def require_active(self, operator_id: str, for_update: bool = False) -> KioskSession:
        """
        Return the operator's active session row.

        Raises:
            NoActiveSessionError: no session is active.
        """
        active = self.get_active(operator_id, for_update=for_update)
        if active is None:
            raise NoActiveSessionError(operator_id)
        return active

    def state(self, operator_id: str) -> SessionState:
        if self.get_active(operator_id) is not None:
            return SessionState.ACTIVE
        any_session = self.session.execute(
            select(KioskSession.id).where(KioskSession.operator_id == operator_id).limit(1)
        ).first()
        return SessionState.CLOSED if any_session else SessionState.NOT_STARTED

    def start(
        self,
        operator_id: str,
        opening: BalanceState | Mapping[str, Any],
    ) -> SessionInfo:
        """
        Open a session seeded with the declared opening balances.

        Postconditions:
            - A new row with ``is_active`` True; live balances equal opening.

        Raises:
            InvalidAmountError: an opening balance is invalid.
            SessionAlreadyActiveError: a session is already active, including
                one committed concurrently (unique index violation).
        """
        balances = parse_opening_balances(opening)

        existing = self.get_active(operator_id, for_update=True)
        if existing is not None:
            logger.warning(
                "session_start_rejected",
                extra={"reason": "already_active", "active_session_id": str(existing.id)},
            )
            raise SessionAlreadyActiveError(operator_id, str(existing.id))

        row = KioskSession.open(
            operator_id=operator_id,
            opened_at=self._clock.now(),
            opening=balances,
        )
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as exc:
            logger.warning(
                "concurrent_session_start_conflict",
                extra={"reason": "active_session_index"},
            )
            raise SessionAlreadyActiveError(operator_id) from exc

        with LogContext.bind(session_id=str(row.id)):
            logger.info("session_started", extra={"opening_balances": balances})
        return SessionInfo.from_model(row)

    def close(self, operator_id: str) -> SessionInfo:
        """
        Close the operator's active session.

        Postconditions:
            - ``is_active`` False and ``closed_at`` stamped; balances and
              history untouched.

        Raises:
            NoActiveSessionError: nothing to close.
        """
        row = self.require_active(operator_id, for_update=True)
        with LogContext.bind(session_id=str(row.id)):
            row.close(self._clock.now())
            self.session.flush()

            logger.info(
                "session_closed",
                extra={
                    "closing_balances": row.balances,
                    "transaction_count": row.transaction_count,
                },
            )
        return SessionInfo.from_model(row)
