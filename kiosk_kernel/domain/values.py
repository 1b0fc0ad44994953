"""
Value objects for the kiosk float.

Responsibility:
    Closed enumerations for services and operations, the four-pool
    ``BalanceState`` value object, and the ``Recipient`` of a transfer.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Money is a non-negative ``int`` of Ariary; no fractional subunit.
    - ``BalanceState`` refuses negative or non-integer fields at
      construction, so every instance in circulation is solvent.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

CURRENCY_LABEL = "Ar"

CASH = "cash"

# Largest amount a BIGINT column holds.
MAX_MONEY = 2**63 - 1


class ServiceKind(str, Enum):
    """Mobile-money services held by the kiosk. Fixed cardinality."""

    MVOLA = "mvola"
    ORANGE_MONEY = "orangeMoney"
    AIRTEL_MONEY = "airtelMoney"

    @classmethod
    def parse(cls, value: Any) -> "ServiceKind":
        """Accept an enum member or its wire value; raise ValueError otherwise."""
        if isinstance(value, cls):
            return value
        return cls(value)


class OperationKind(str, Enum):
    """Operations an operator performs for a walk-in customer."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"


class TransactionStatus(str, Enum):
    """Status stored on a transaction record.

    Only COMPLETED is ever written: rejected attempts are not persisted.
    """

    COMPLETED = "completed"
    FAILED = "failed"


def is_money(value: Any) -> bool:
    """True for plain ints (bool excluded)."""
    return isinstance(value, int) and not isinstance(value, bool)


def format_ariary(amount: int) -> str:
    """Render an amount with thousands separators: 50000 -> '50,000 Ar'."""
    return f"{amount:,} {CURRENCY_LABEL}"


@dataclass(frozen=True)
class Recipient:
    """Third party receiving a transfer."""

    name: str
    phone: str


@dataclass(frozen=True)
class BalanceState:
    """
    Snapshot of the kiosk float: cash plus one pool per service.

    Contract:
        Immutable.  Mutation goes through ``with_service`` / ``with_cash``
        which return new instances.

    Guarantees:
        - All four fields are ints in [0, MAX_MONEY] (checked in
          ``__post_init__``).
    """

    cash: int = 0
    mvola: int = 0
    orange_money: int = 0
    airtel_money: int = 0

    _SERVICE_FIELDS = {
        ServiceKind.MVOLA: "mvola",
        ServiceKind.ORANGE_MONEY: "orange_money",
        ServiceKind.AIRTEL_MONEY: "airtel_money",
    }

    def __post_init__(self) -> None:
        for name in ("cash", "mvola", "orange_money", "airtel_money"):
            value = getattr(self, name)
            if not is_money(value):
                raise ValueError(f"{name} must be an integer amount, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} cannot be negative, got {value}")
            if value > MAX_MONEY:
                raise ValueError(f"{name} exceeds {MAX_MONEY}, got {value}")

    @classmethod
    def zero(cls) -> "BalanceState":
        return cls()

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "BalanceState":
        """Build from either python-style or wire-style keys.

        Accepts ``orange_money`` or ``orangeMoney`` (likewise for Airtel);
        missing keys default to 0.
        """
        return cls(
            cash=data.get("cash", 0),
            mvola=data.get("mvola", 0),
            orange_money=data.get("orange_money", data.get("orangeMoney", 0)),
            airtel_money=data.get("airtel_money", data.get("airtelMoney", 0)),
        )

    def service(self, kind: ServiceKind) -> int:
        return getattr(self, self._SERVICE_FIELDS[kind])

    def get(self, pool: ServiceKind | str) -> int:
        """Read ``cash`` or a service pool by kind/wire value."""
        if pool == CASH:
            return self.cash
        return self.service(ServiceKind.parse(pool))

    def with_cash(self, cash: int) -> "BalanceState":
        return self._replace(cash=cash)

    def with_service(self, kind: ServiceKind, amount: int) -> "BalanceState":
        return self._replace(**{self._SERVICE_FIELDS[kind]: amount})

    @property
    def mobile_money_total(self) -> int:
        """Sum of the three service pools."""
        return self.mvola + self.orange_money + self.airtel_money

    @property
    def total(self) -> int:
        """Sum of all four pools."""
        return self.cash + self.mobile_money_total

    def to_dict(self) -> dict[str, int]:
        """Wire-style mapping: cash, mvola, orangeMoney, airtelMoney."""
        return {
            CASH: self.cash,
            ServiceKind.MVOLA.value: self.mvola,
            ServiceKind.ORANGE_MONEY.value: self.orange_money,
            ServiceKind.AIRTEL_MONEY.value: self.airtel_money,
        }

    def _replace(self, **changes: int) -> "BalanceState":
        fields = {
            "cash": self.cash,
            "mvola": self.mvola,
            "orange_money": self.orange_money,
            "airtel_money": self.airtel_money,
        }
        fields.update(changes)
        return BalanceState(**fields)
