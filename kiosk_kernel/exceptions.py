"""
Typed Exception Hierarchy for the Kiosk Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

An operator at the counter must be told exactly which precondition failed:
which pool is short, by how much, which field is missing.  Parsing message
strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Inside the kernel, services raise these exceptions.  At the boundary,
``LedgerService`` converts them into ``LedgerResult`` failures so that no
exception reaches a presentation layer.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    KioskLedgerError (base)
    |
    +-- LedgerValidationError
    |   +-- InvalidAmountError
    |   +-- AmountBelowMinimumError
    |   +-- MissingFieldError
    |   +-- InvalidFieldError
    |   +-- UnknownServiceError
    |   +-- MissingIdentityError
    |   +-- InvalidFilterError
    |
    +-- SessionError
    |   +-- NoActiveSessionError
    |   +-- SessionAlreadyActiveError
    |
    +-- InsufficientFundsError
    |   +-- InsufficientCashBalanceError
    |   +-- InsufficientServiceBalanceError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- PersistenceError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|------------------------------------
Validation      | INVALID_AMOUNT                | Amount is not a positive integer
                | AMOUNT_BELOW_MINIMUM          | Amount under the configured floor
                | MISSING_FIELD                 | Phone / recipient field empty
                | INVALID_FIELD                 | Field of the wrong type
                | UNKNOWN_SERVICE               | Not mvola/orangeMoney/airtelMoney
                | IDENTITY_REQUIRED             | No operator identity token
                | INVALID_FILTER                | Unknown service/type or bad limit
----------------|-------------------------------|------------------------------------
Session         | NO_ACTIVE_SESSION             | Operation before start / after close
                | SESSION_ALREADY_ACTIVE        | start while a session is active
----------------|-------------------------------|------------------------------------
Funds           | INSUFFICIENT_CASH_BALANCE     | Withdrawal exceeds cash on hand
                | INSUFFICIENT_SERVICE_BALANCE  | Deposit/transfer exceeds service float
----------------|-------------------------------|------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT      | Session row changed underneath us
----------------|-------------------------------|------------------------------------
Persistence     | PERSISTENCE_ERROR             | Store unavailable after retry
----------------|-------------------------------|------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | Update/delete of a transaction row

===============================================================================
"""

from kiosk_kernel.domain.values import format_ariary


class KioskLedgerError(Exception):
    """
    Base exception for all kiosk kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "KIOSK_LEDGER_ERROR"


# Validation exceptions


class LedgerValidationError(KioskLedgerError):
    """Base exception for bad operator input."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(LedgerValidationError):
    """Amount is not an integer of Ariary within the storable range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field_name: str, value: object, reason: str | None = None):
        self.field_name = field_name
        self.value = value
        reason = reason or "must be a whole number of Ariary"
        super().__init__(f"{field_name} {reason}, got {value!r}")


class AmountBelowMinimumError(LedgerValidationError):
    """Amount is under the minimum accepted per operation."""

    code: str = "AMOUNT_BELOW_MINIMUM"

    def __init__(self, amount: int, minimum: int):
        self.amount = amount
        self.minimum = minimum
        super().__init__(
            f"amount {format_ariary(amount)} is below the minimum of "
            f"{format_ariary(minimum)}"
        )


class MissingFieldError(LedgerValidationError):
    """A field required for this operation type is empty."""

    code: str = "MISSING_FIELD"

    def __init__(self, field_name: str, operation: str):
        self.field_name = field_name
        self.operation = operation
        super().__init__(f"{field_name} is required for {operation}")


class InvalidFieldError(LedgerValidationError):
    """A field has the wrong type (e.g. a phone number that is not text)."""

    code: str = "INVALID_FIELD"

    def __init__(self, field_name: str, value: object):
        self.field_name = field_name
        self.value = value
        super().__init__(f"{field_name} has an invalid value: {value!r}")


class UnknownServiceError(LedgerValidationError):
    """Service is not one of the supported mobile-money services."""

    code: str = "UNKNOWN_SERVICE"

    def __init__(self, service: object):
        self.service = service
        super().__init__(f"Unknown mobile-money service: {service!r}")


class MissingIdentityError(LedgerValidationError):
    """No operator identity token is available to attribute the operation."""

    code: str = "IDENTITY_REQUIRED"

    def __init__(self):
        super().__init__("An operator identity is required for this operation")


class InvalidFilterError(LedgerValidationError):
    """A transaction-list filter value is not recognised."""

    code: str = "INVALID_FILTER"

    def __init__(self, field_name: str, value: object):
        self.field_name = field_name
        self.value = value
        super().__init__(f"Invalid {field_name} filter: {value!r}")


# Session exceptions


class SessionError(KioskLedgerError):
    """Base exception for session lifecycle errors."""

    code: str = "SESSION_ERROR"


class NoActiveSessionError(SessionError):
    """No session is active for the operator."""

    code: str = "NO_ACTIVE_SESSION"

    def __init__(self, operator_id: str):
        self.operator_id = operator_id
        super().__init__(
            "No active session: start a session with opening balances first"
        )


class SessionAlreadyActiveError(SessionError):
    """A session is already active; it must be closed before starting another."""

    code: str = "SESSION_ALREADY_ACTIVE"

    def __init__(self, operator_id: str, session_id: str | None = None):
        self.operator_id = operator_id
        self.session_id = session_id
        suffix = f" ({session_id})" if session_id else ""
        super().__init__(
            f"A session is already active{suffix}: close it before starting a new one"
        )


# Funds exceptions


class InsufficientFundsError(KioskLedgerError):
    """Base exception for solvency failures."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, pool: str, requested: int, available: int):
        self.pool = pool
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"{pool} balance insufficient: requested {format_ariary(requested)}, "
            f"available {format_ariary(available)} "
            f"(shortfall {format_ariary(self.shortfall)})"
        )


class InsufficientCashBalanceError(InsufficientFundsError):
    """Cash on hand cannot cover the operation."""

    code: str = "INSUFFICIENT_CASH_BALANCE"

    def __init__(self, requested: int, available: int):
        super().__init__("cash", requested, available)


class InsufficientServiceBalanceError(InsufficientFundsError):
    """The service float cannot cover the operation."""

    code: str = "INSUFFICIENT_SERVICE_BALANCE"

    def __init__(self, service: str, requested: int, available: int):
        self.service = service
        super().__init__(service, requested, available)


# Concurrency exceptions


class ConcurrencyError(KioskLedgerError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Session row was modified by a concurrent operation."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} was modified concurrently")


# Persistence exceptions


class PersistenceError(KioskLedgerError):
    """Durable store unavailable or timed out after the allowed retries."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, attempts: int, reason: str):
        self.operation = operation
        self.attempts = attempts
        self.reason = reason
        super().__init__(
            f"{operation} failed after {attempts} attempt(s): {reason}"
        )


# Immutability exceptions


class ImmutabilityViolationError(KioskLedgerError):
    """Attempt to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
