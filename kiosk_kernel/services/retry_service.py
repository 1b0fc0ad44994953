"""
PersistenceRetryPolicy -- bounded retry around durable-store work.

Responsibility:
    Runs one unit of work (a whole transaction) and re-runs it on transient
    store failures, up to ``max_retries`` times.  After the last attempt
    the failure is surfaced as ``PersistenceError``.

Architecture position:
    Kernel > Services.  Wrapped around every ``LedgerService`` operation;
    each attempt runs in a fresh database transaction, so a retried
    operation never sees a half-applied predecessor.

Transient failures:
    - sqlalchemy ``OperationalError`` (connection lost, lock timeout)
    - sqlalchemy ``TimeoutError`` (pool exhausted) and builtin TimeoutError
    - ``DBAPIError`` flagged ``connection_invalidated``
    - ``OptimisticLockError`` (another writer bumped the session version)

Everything else -- including every domain error -- propagates immediately.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from kiosk_kernel.exceptions import OptimisticLockError, PersistenceError
from kiosk_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

_TRANSIENT = (OperationalError, PoolTimeoutError, TimeoutError, OptimisticLockError)


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, _TRANSIENT):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


class PersistenceRetryPolicy:
    """
    Retry a unit of work on transient store failures.

    Guarantees:
        - At most ``1 + max_retries`` attempts.
        - Non-transient exceptions are re-raised unchanged on first sight.
        - Exhaustion raises ``PersistenceError`` chained to the last failure.
    """

    def __init__(self, max_retries: int = 1):
        if max_retries < 0:
            raise ValueError(f"max_retries cannot be negative, got {max_retries}")
        self.max_retries = max_retries

    def run(self, operation: str, work: Callable[[], T]) -> T:
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return work()
            except Exception as exc:
                if not is_transient(exc):
                    raise
                if attempt < attempts:
                    logger.warning(
                        "persistence_retry",
                        extra={
                            "operation": operation,
                            "attempt": attempt,
                            "max_attempts": attempts,
                            "error_type": type(exc).__name__,
                        },
                    )
                    continue
                logger.error(
                    "persistence_failed",
                    extra={
                        "operation": operation,
                        "attempts": attempts,
                        "error_type": type(exc).__name__,
                    },
                )
                raise PersistenceError(operation, attempts, str(exc)) from exc
        raise AssertionError("unreachable")
