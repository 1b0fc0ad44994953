"""
Tagged result type returned across the kernel boundary.

Every ``LedgerService`` operation returns a ``LedgerResult``: either
``ok=True`` with a ``value``, or ``ok=False`` with a ``LedgerErrorInfo``.
Callers pattern-match on ``ok`` (or ``error.kind``); exceptions never
reach presentation code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from kiosk_kernel.exceptions import KioskLedgerError

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Operator-facing error taxonomy."""

    VALIDATION = "validation"
    NO_ACTIVE_SESSION = "no_active_session"
    SESSION_ALREADY_ACTIVE = "session_already_active"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    PERSISTENCE = "persistence"


@dataclass(frozen=True)
class LedgerErrorInfo:
    """Structured description of a rejected operation."""

    kind: ErrorKind
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: "KioskLedgerError") -> "LedgerErrorInfo":
        """Map a kernel exception onto the taxonomy, keeping its attributes."""
        from kiosk_kernel import exceptions as errors

        if isinstance(exc, errors.LedgerValidationError):
            kind = ErrorKind.VALIDATION
        elif isinstance(exc, errors.NoActiveSessionError):
            kind = ErrorKind.NO_ACTIVE_SESSION
        elif isinstance(exc, errors.SessionAlreadyActiveError):
            kind = ErrorKind.SESSION_ALREADY_ACTIVE
        elif isinstance(exc, errors.InsufficientFundsError):
            kind = ErrorKind.INSUFFICIENT_FUNDS
        else:
            kind = ErrorKind.PERSISTENCE

        details = {
            k: v for k, v in vars(exc).items()
            if not k.startswith("_") and k != "args"
        }
        return cls(kind=kind, code=exc.code, message=str(exc), details=details)


@dataclass(frozen=True)
class LedgerResult(Generic[T]):
    """``{ok: True, value}`` or ``{ok: False, error}``."""

    ok: bool
    value: T | None = None
    error: LedgerErrorInfo | None = None

    @classmethod
    def success(cls, value: T) -> "LedgerResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: LedgerErrorInfo) -> "LedgerResult[T]":
        return cls(ok=False, error=error)

    @classmethod
    def from_exception(cls, exc: "KioskLedgerError") -> "LedgerResult[T]":
        return cls.failure(LedgerErrorInfo.from_exception(exc))

    @property
    def is_success(self) -> bool:
        return self.ok

    def unwrap(self) -> T:
        """Return the value, or raise ValueError carrying the error message."""
        if not self.ok:
            raise ValueError(self.error.message if self.error else "failed result")
        return self.value  # type: ignore[return-value]
