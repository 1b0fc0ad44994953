"""
Module: kiosk_kernel.models.kiosk_session
Responsibility: ORM persistence for the operator's accounting session -- the
    declared opening float and the live balances derived from it.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - At most one active session per operator: partial unique index
      ``uq_kiosk_session_active_operator`` on operator_id WHERE is_active.
    - Optimistic locking: ``version`` is SQLAlchemy's version_id_col, so two
      writers that both read version N cannot both commit N+1.
    - Balance columns are NOT NULL BigInteger and guarded by CHECK >= 0.

Failure modes:
    - IntegrityError on a second active row for the same operator.
    - StaleDataError when the version check fails on UPDATE.
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from kiosk_kernel.db.base import TrackedBase
from kiosk_kernel.domain.values import BalanceState

_BALANCE_COLUMNS = (
    "cash",
    "mvola",
    "orange_money",
    "airtel_money",
)


class KioskSession(TrackedBase):
    """
    One operator's accounting period between opening and closing.

    Contract:
        Opening balances are written once at creation.  Live balances move
        only through the transaction ledger, each move bumping ``version``
        and ``transaction_count``.
    """

    __tablename__ = "kiosk_sessions"

    __table_args__ = (
        Index(
            "uq_kiosk_session_active_operator",
            "operator_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("idx_kiosk_session_opened", "operator_id", "opened_at"),
        *(
            CheckConstraint(f"{name} >= 0", name=f"ck_kiosk_session_{name}_non_negative")
            for name in _BALANCE_COLUMNS
        ),
    )

    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Declared at start, never modified
    opening_cash: Mapped[int] = mapped_column(BigInteger, nullable=False)
    opening_mvola: Mapped[int] = mapped_column(BigInteger, nullable=False)
    opening_orange_money: Mapped[int] = mapped_column(BigInteger, nullable=False)
    opening_airtel_money: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Live float
    cash: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mvola: Mapped[int] = mapped_column(BigInteger, nullable=False)
    orange_money: Mapped[int] = mapped_column(BigInteger, nullable=False)
    airtel_money: Mapped[int] = mapped_column(BigInteger, nullable=False)

    transaction_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        state = "active" if self.is_active else "closed"
        return f"<KioskSession {self.id} {self.operator_id}: {state}>"

    @classmethod
    def open(
        cls,
        operator_id: str,
        opened_at: datetime,
        opening: BalanceState,
    ) -> "KioskSession":
        return cls(
            operator_id=operator_id,
            opened_at=opened_at,
            is_active=True,
            opening_cash=opening.cash,
            opening_mvola=opening.mvola,
            opening_orange_money=opening.orange_money,
            opening_airtel_money=opening.airtel_money,
            cash=opening.cash,
            mvola=opening.mvola,
            orange_money=opening.orange_money,
            airtel_money=opening.airtel_money,
            transaction_count=0,
        )

    @property
    def opening_balances(self) -> BalanceState:
        return BalanceState(
            cash=self.opening_cash,
            mvola=self.opening_mvola,
            orange_money=self.opening_orange_money,
            airtel_money=self.opening_airtel_money,
        )

    @property
    def balances(self) -> BalanceState:
        return BalanceState(
            cash=self.cash,
            mvola=self.mvola,
            orange_money=self.orange_money,
            airtel_money=self.airtel_money,
        )

    def set_balances(self, state: BalanceState) -> None:
        """Write a validated BalanceState into the live columns."""
        self.cash = state.cash
        self.mvola = state.mvola
        self.orange_money = state.orange_money
        self.airtel_money = state.airtel_money

    def close(self, closed_at: datetime) -> None:
        """Close the session.

        Raises: ValueError if already closed.
        """
        if not self.is_active:
            raise ValueError(f"Session {self.id} is already closed")
        self.is_active = False
        self.closed_at = closed_at
