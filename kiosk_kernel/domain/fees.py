"""
FeePolicy -- deterministic fee per (operation, amount).

Responsibility:
    Maps an operation kind and amount to the fee the kiosk earns on it.

Architecture position:
    Kernel > Domain -- pure function, no dependencies.

Invariants enforced:
    - fee = max(minimum, ceil(amount * rate)) for every rule.
    - Fractional intermediates are ceiled to a whole Ariary before the
      floor comparison; the result is always an int >= 0.
    - Fees are informational: they are recorded on the transaction and
      reported as revenue, never applied to the float balances.

Defaults:
    deposit     0       (rate 0,     floor 0)
    withdrawal  2%      (floor 300)
    transfer    1.5%    (floor 200)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_CEILING, Decimal
from types import MappingProxyType
from typing import Mapping

from kiosk_kernel.domain.values import OperationKind, is_money


def ceil_money(value: Decimal) -> int:
    """Round a fractional Ariary amount up to the next whole unit."""
    return int(value.to_integral_value(rounding=ROUND_CEILING))


@dataclass(frozen=True)
class FeeRule:
    """Percentage fee with an absolute floor."""

    rate: Decimal
    minimum: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.rate, Decimal):
            object.__setattr__(self, "rate", Decimal(str(self.rate)))
        if self.rate < 0:
            raise ValueError(f"fee rate cannot be negative, got {self.rate}")
        if not is_money(self.minimum) or self.minimum < 0:
            raise ValueError(f"fee minimum must be an int >= 0, got {self.minimum!r}")

    def apply(self, amount: int) -> int:
        return max(self.minimum, ceil_money(Decimal(amount) * self.rate))


DEFAULT_FEE_RULES: Mapping[OperationKind, FeeRule] = MappingProxyType({
    OperationKind.DEPOSIT: FeeRule(rate=Decimal("0"), minimum=0),
    OperationKind.WITHDRAWAL: FeeRule(rate=Decimal("0.02"), minimum=300),
    OperationKind.TRANSFER: FeeRule(rate=Decimal("0.015"), minimum=200),
})


@dataclass(frozen=True)
class FeePolicy:
    """
    Fee schedule keyed by operation kind.

    Contract:
        ``fee(kind, amount)`` is a pure function of its inputs.  Every
        ``OperationKind`` must have a rule.
    """

    rules: Mapping[OperationKind, FeeRule] = field(
        default_factory=lambda: DEFAULT_FEE_RULES
    )

    def __post_init__(self) -> None:
        missing = [kind.value for kind in OperationKind if kind not in self.rules]
        if missing:
            raise ValueError(f"No fee rule for: {', '.join(missing)}")
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))

    def fee(self, kind: OperationKind, amount: int) -> int:
        return self.rules[OperationKind(kind)].apply(amount)
