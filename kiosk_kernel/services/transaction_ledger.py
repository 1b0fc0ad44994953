"""
TransactionLedger -- validate, apply and append one kiosk operation.

Responsibility:
    The write side of the ledger.  ``propose()`` turns a
    ``TransactionRequest`` into a persisted, immutable ``TransactionRecord``
    and moves the session's live balances accordingly.

Architecture position:
    Kernel > Services -- imperative shell.  Orchestrates SessionService
    (gate), FeePolicy (fee) and BalanceSheet (solvency + delta), then writes
    a KioskTransaction row.

Pipeline (all-or-nothing within the caller's transaction):
    1. Require an active session             -> NoActiveSessionError
    2. Resolve the service                   -> UnknownServiceError
    3. Amount is an int >= minimum           -> InvalidAmountError /
                                                AmountBelowMinimumError
    4. Per-type fields (phone / recipient)   -> MissingFieldError /
                                                InvalidFieldError
    5. fee = FeePolicy.fee(kind, amount)
    6. BalanceSheet.apply                    -> InsufficientFundsError
    7. Write balances, bump version          -> OptimisticLockError on a
                                                stale session row
    8. Append record (seq = transaction_count)

Invariants enforced:
    - Nothing is written unless every step succeeds.
    - Rejected attempts are not persisted.
    - Flush-only: never commits or rolls back.
"""

from uuid import UUID, uuid4

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from kiosk_kernel.domain.balance_sheet import BalanceSheet
from kiosk_kernel.domain.clock import Clock, SystemClock
from kiosk_kernel.domain.dtos import TransactionRecord, TransactionRequest
from kiosk_kernel.domain.policy import LedgerPolicy
from kiosk_kernel.domain.values import (
    MAX_MONEY,
    OperationKind,
    Recipient,
    ServiceKind,
    TransactionStatus,
    is_money,
)
from kiosk_kernel.exceptions import (
    AmountBelowMinimumError,
    InvalidAmountError,
    InvalidFieldError,
    LedgerValidationError,
    MissingFieldError,
    OptimisticLockError,
    UnknownServiceError,
)
from kiosk_kernel.logging_config import LogContext, get_logger
from kiosk_kernel.models.kiosk_session import KioskSession
from kiosk_kernel.models.transaction import KioskTransaction
from kiosk_kernel.services.base import BaseService
from kiosk_kernel.services.session_service import SessionService

logger = get_logger("services.ledger")


def _require_text(value: object, field_name: str, kind: OperationKind) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingFieldError(field_name, kind.value)
    if not isinstance(value, str):
        raise InvalidFieldError(field_name, value)


class TransactionLedger(BaseService[KioskTransaction]):
    """
    Append-only writer for kiosk transactions.

    Contract:
        ``propose()`` either returns the new ``TransactionRecord`` with the
        session's balances already moved, or raises a typed kernel error
        having changed nothing.
    """

    def __init__(
        self,
        session: Session,
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._policy = policy or LedgerPolicy()
        self._clock = clock or SystemClock()
        self._sessions = SessionService(session, self._clock)

    def propose(self, operator_id: str, request: TransactionRequest) -> TransactionRecord:
        """
        Validate and apply one operation.

        Raises:
            NoActiveSessionError, UnknownServiceError, InvalidAmountError,
            AmountBelowMinimumError, MissingFieldError, InvalidFieldError,
            InsufficientCashBalanceError, InsufficientServiceBalanceError,
            OptimisticLockError.
        """
        try:
            kind = OperationKind(request.kind)
        except ValueError:
            raise LedgerValidationError(f"Unknown operation type: {request.kind!r}") from None

        kiosk_session = self._sessions.require_active(operator_id, for_update=True)
        # Read before the version-check flush; a failed flush expires the row.
        session_id = kiosk_session.id

        with LogContext.bind(session_id=str(session_id)):
            return self._append(operator_id, kind, request, kiosk_session, session_id)

    def _append(
        self,
        operator_id: str,
        kind: OperationKind,
        request: TransactionRequest,
        kiosk_session: KioskSession,
        session_id: UUID,
    ) -> TransactionRecord:
        try:
            service = ServiceKind.parse(request.service)
        except ValueError:
            raise UnknownServiceError(request.service) from None

        self._validate_amount(request.amount)
        self._validate_fields(kind, request)

        fee = self._policy.fee_policy.fee(kind, request.amount)

        current = kiosk_session.balances
        updated = BalanceSheet.apply(kind, service, request.amount, current)
        seq = kiosk_session.transaction_count + 1

        kiosk_session.set_balances(updated)
        kiosk_session.transaction_count = seq

        # Version check before the append so a stale writer fails on the
        # session row, not on the (session_id, seq) constraint.
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning("session_version_conflict", extra={"seq": seq})
            raise OptimisticLockError(str(session_id)) from exc

        recipient = request.recipient if kind == OperationKind.TRANSFER else None
        row = KioskTransaction(
            id=uuid4(),
            session_id=session_id,
            seq=seq,
            operator_id=operator_id,
            type=kind.value,
            service=service.value,
            amount=request.amount,
            fee=fee,
            phone_number=request.phone_number.strip() if request.phone_number else None,
            recipient_name=recipient.name.strip() if recipient else None,
            recipient_phone=recipient.phone.strip() if recipient else None,
            description=request.description,
            occurred_at=self._clock.now(),
            status=TransactionStatus.COMPLETED.value,
        )
        self.session.add(row)
        self.session.flush()

        with LogContext.bind(transaction_id=str(row.id)):
            logger.info(
                "transaction_appended",
                extra={
                    "seq": seq,
                    "type": kind,
                    "service": service,
                    "amount": request.amount,
                    "fee": fee,
                    "balances": updated,
                },
            )
        return TransactionRecord.from_model(row)

    def _validate_amount(self, amount: object) -> None:
        if not is_money(amount) or amount <= 0:
            raise InvalidAmountError("amount", amount)
        if amount > MAX_MONEY:
            raise InvalidAmountError("amount", amount, f"must not exceed {MAX_MONEY}")
        if amount < self._policy.minimum_amount:
            raise AmountBelowMinimumError(amount, self._policy.minimum_amount)

    @staticmethod
    def _validate_fields(kind: OperationKind, request: TransactionRequest) -> None:
        if request.phone_number is not None and not isinstance(request.phone_number, str):
            raise InvalidFieldError("phone number", request.phone_number)
        if request.description is not None and not isinstance(request.description, str):
            raise InvalidFieldError("description", request.description)

        if kind in (OperationKind.DEPOSIT, OperationKind.WITHDRAWAL):
            _require_text(request.phone_number, "phone number", kind)
            return

        recipient = request.recipient
        if recipient is None:
            raise MissingFieldError("recipient name", kind.value)
        if not isinstance(recipient, Recipient):
            raise InvalidFieldError("recipient", recipient)
        _require_text(recipient.name, "recipient name", kind)
        _require_text(recipient.phone, "recipient phone", kind)
