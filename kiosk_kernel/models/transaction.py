"""
Module: kiosk_kernel.models.transaction
Responsibility: ORM persistence for completed kiosk operations.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: rows are never updated or deleted (db/immutability.py).
    - (session_id, seq) is unique: seq is the insertion order inside a
      session and the tie-breaker for equal timestamps.
    - amount > 0 and fee >= 0, stored as whole Ariary.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from kiosk_kernel.db.base import TrackedBase, UUIDString


class KioskTransaction(TrackedBase):
    """A completed deposit, withdrawal or transfer."""

    __tablename__ = "kiosk_transactions"

    __table_args__ = (
        UniqueConstraint("session_id", "seq", name="uq_kiosk_transaction_session_seq"),
        Index("idx_kiosk_transaction_session_time", "session_id", "occurred_at"),
        Index("idx_kiosk_transaction_service", "service"),
        Index("idx_kiosk_transaction_type", "type"),
        CheckConstraint("amount > 0", name="ck_kiosk_transaction_amount_positive"),
        CheckConstraint("fee >= 0", name="ck_kiosk_transaction_fee_non_negative"),
    )

    session_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("kiosk_sessions.id"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    service: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fee: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Deposit / withdrawal counterparty
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Transfer recipient
    recipient_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    recipient_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    def __repr__(self) -> str:
        return f"<KioskTransaction {self.session_id}#{self.seq} {self.type} {self.amount}>"
