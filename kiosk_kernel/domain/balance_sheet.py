"""
BalanceSheet -- validate and apply one operation to the kiosk float.

Responsibility:
    Computes the per-operation balance delta and refuses any delta that
    would drive a pool below zero.

Architecture position:
    Kernel > Domain -- pure functional core.  Takes a ``BalanceState`` and
    returns a new one; never mutates its input.

Deltas (agent's perspective):
    deposit      cash += amount   service -= amount   (service must cover)
    withdrawal   cash -= amount   service += amount   (cash must cover)
    transfer     cash += amount   service -= amount   (service must cover)

Invariants enforced:
    - All-or-nothing: on rejection the caller's state is untouched and no
      partial delta exists anywhere.
    - Solvency is checked against the amount alone; fees are not settled
      against the float.
    - The four-pool total is unchanged by every accepted operation.

Failure modes:
    - InsufficientServiceBalanceError for deposit/transfer.
    - InsufficientCashBalanceError for withdrawal.
"""

from __future__ import annotations

from kiosk_kernel.domain.result import LedgerResult
from kiosk_kernel.domain.values import BalanceState, OperationKind, ServiceKind
from kiosk_kernel.exceptions import (
    InsufficientCashBalanceError,
    InsufficientFundsError,
    InsufficientServiceBalanceError,
)


def balance_delta(kind: OperationKind, amount: int) -> tuple[int, int]:
    """Return (cash_delta, service_delta) for an operation."""
    if kind == OperationKind.WITHDRAWAL:
        return -amount, amount
    return amount, -amount


class BalanceSheet:
    """Stateless operations over ``BalanceState``."""

    @staticmethod
    def apply(
        kind: OperationKind,
        service: ServiceKind,
        amount: int,
        current: BalanceState,
    ) -> BalanceState:
        """
        Apply an operation, returning the new state.

        Raises:
            InsufficientCashBalanceError: withdrawal larger than cash on hand.
            InsufficientServiceBalanceError: deposit/transfer larger than
                the service float.
        """
        kind = OperationKind(kind)
        service = ServiceKind.parse(service)
        cash_delta, service_delta = balance_delta(kind, amount)

        new_cash = current.cash + cash_delta
        new_service = current.service(service) + service_delta

        if new_cash < 0:
            raise InsufficientCashBalanceError(
                requested=amount, available=current.cash
            )
        if new_service < 0:
            raise InsufficientServiceBalanceError(
                service=service.value,
                requested=amount,
                available=current.service(service),
            )

        return current.with_cash(new_cash).with_service(service, new_service)

    @classmethod
    def validate_and_apply(
        cls,
        kind: OperationKind,
        service: ServiceKind,
        amount: int,
        current: BalanceState,
    ) -> LedgerResult[BalanceState]:
        """Result-returning form of ``apply``."""
        try:
            return LedgerResult.success(cls.apply(kind, service, amount, current))
        except InsufficientFundsError as exc:
            return LedgerResult.from_exception(exc)
