"""
DTOs -- immutable data structures crossing the kernel boundary.

Responsibility:
    ``TransactionRequest`` (input to the ledger), ``TransactionRecord`` and
    ``SessionInfo`` (outputs), and ``TransactionFilter`` (query input).

Architecture position:
    Kernel > Domain.  ``from_model()`` class methods are boundary converters
    invoked only from services and selectors; domain logic never sees ORM
    entities.

Data flow:
    TransactionRequest -> TransactionLedger.propose -> TransactionRecord
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import UUID

from kiosk_kernel.domain.values import (
    BalanceState,
    OperationKind,
    Recipient,
    ServiceKind,
    TransactionStatus,
)

if TYPE_CHECKING:
    from kiosk_kernel.models.kiosk_session import KioskSession as KioskSessionModel
    from kiosk_kernel.models.transaction import KioskTransaction as KioskTransactionModel


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class TransactionRequest:
    """An operator's proposed operation, before validation."""

    kind: OperationKind
    service: ServiceKind | str
    amount: int
    phone_number: str | None = None
    recipient: Recipient | None = None
    description: str | None = None


@dataclass(frozen=True)
class TransactionRecord:
    """
    Immutable record of a completed operation.

    ``seq`` is the insertion position within the session and breaks ties
    between records sharing a timestamp.
    """

    id: UUID
    session_id: UUID
    seq: int
    operator_id: str
    type: OperationKind
    service: ServiceKind
    amount: int
    fee: int
    timestamp: datetime
    status: TransactionStatus
    phone_number: str | None = None
    recipient: Recipient | None = None
    description: str | None = None

    @property
    def total_charged(self) -> int:
        """Amount plus fee, as printed on the customer's receipt."""
        return self.amount + self.fee

    @classmethod
    def from_model(cls, model: "KioskTransactionModel") -> "TransactionRecord":
        recipient = None
        if model.recipient_name is not None or model.recipient_phone is not None:
            recipient = Recipient(
                name=model.recipient_name or "",
                phone=model.recipient_phone or "",
            )
        return cls(
            id=model.id,
            session_id=model.session_id,
            seq=model.seq,
            operator_id=model.operator_id,
            type=OperationKind(model.type),
            service=ServiceKind(model.service),
            amount=model.amount,
            fee=model.fee,
            timestamp=as_utc(model.occurred_at),
            status=TransactionStatus(model.status),
            phone_number=model.phone_number,
            recipient=recipient,
            description=model.description,
        )


@dataclass(frozen=True)
class SessionInfo:
    """Read-only view of a kiosk session."""

    id: UUID
    operator_id: str
    opened_at: datetime
    closed_at: datetime | None
    is_active: bool
    opening_balances: BalanceState
    balances: BalanceState
    transaction_count: int

    @classmethod
    def from_model(cls, model: "KioskSessionModel") -> "SessionInfo":
        return cls(
            id=model.id,
            operator_id=model.operator_id,
            opened_at=as_utc(model.opened_at),
            closed_at=as_utc(model.closed_at),
            is_active=model.is_active,
            opening_balances=model.opening_balances,
            balances=model.balances,
            transaction_count=model.transaction_count,
        )


@dataclass(frozen=True)
class TransactionFilter:
    """
    Query options for listing transactions.

    ``session_id`` None means the current session (active, else the most
    recently opened).  ``search`` matches recipient name and description
    case-insensitively, and phone numbers by substring.
    """

    service: ServiceKind | str | None = None
    type: OperationKind | str | None = None
    limit: int | None = None
    search: str | None = None
    session_id: UUID | None = None
