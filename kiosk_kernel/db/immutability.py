"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The transaction history is append-only: a completed operation is a fact,
and balances are replayable from it.  SQLAlchemy fires events before
UPDATE/DELETE statements reach the database; the listeners here intercept
them and refuse changes that would rewrite history:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() ------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When Immutable            | What
------------------|---------------------------|----------------------------------
KioskTransaction  | ALWAYS (from creation)    | Every column; no deletes
KioskSession      | ALWAYS                    | Opening balances, operator, opened_at
KioskSession      | After close               | Everything except updated_at
KioskSession      | ALWAYS                    | No deletes (history references it)

===============================================================================
"""

from sqlalchemy import event, inspect

from kiosk_kernel.exceptions import ImmutabilityViolationError
from kiosk_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_SESSION_FROZEN_FIELDS = (
    "operator_id",
    "opened_at",
    "opening_cash",
    "opening_mvola",
    "opening_orange_money",
    "opening_airtel_money",
)

_AUDIT_METADATA_FIELDS = ("updated_at",)


def _changed_fields(target) -> list[str]:
    state = inspect(target)
    return [
        attr.key
        for attr in state.attrs
        if attr.history.has_changes() and attr.key not in _AUDIT_METADATA_FIELDS
    ]


def _check_transaction_immutability(mapper, connection, target):
    changed = _changed_fields(target)
    if not changed:
        return
    logger.error(
        "immutability_violation_blocked",
        extra={"entity_type": "KioskTransaction", "fields": changed},
    )
    raise ImmutabilityViolationError(
        entity_type="KioskTransaction",
        entity_id=str(target.id),
        reason=f"Transaction records are append-only (attempted: {', '.join(changed)})",
    )


def _check_transaction_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="KioskTransaction",
        entity_id=str(target.id),
        reason="Transaction records cannot be deleted",
    )


def _check_session_immutability(mapper, connection, target):
    changed = _changed_fields(target)
    frozen = [name for name in changed if name in _SESSION_FROZEN_FIELDS]
    if frozen:
        raise ImmutabilityViolationError(
            entity_type="KioskSession",
            entity_id=str(target.id),
            reason=f"Opening declaration cannot change (attempted: {', '.join(frozen)})",
        )

    # A session that was already closed before this flush stays closed.
    was_active = inspect(target).attrs.is_active.history
    previously_active = (
        was_active.deleted[0] if was_active.deleted else target.is_active
    )
    if not previously_active and changed:
        raise ImmutabilityViolationError(
            entity_type="KioskSession",
            entity_id=str(target.id),
            reason="Closed sessions cannot be modified",
        )


def _check_session_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="KioskSession",
        entity_id=str(target.id),
        reason="Sessions cannot be deleted",
    )


_LISTENERS = (
    ("KioskTransaction", "before_update", _check_transaction_immutability),
    ("KioskTransaction", "before_delete", _check_transaction_delete),
    ("KioskSession", "before_update", _check_session_immutability),
    ("KioskSession", "before_delete", _check_session_delete),
)


def _targets():
    from kiosk_kernel.models.kiosk_session import KioskSession
    from kiosk_kernel.models.transaction import KioskTransaction

    return {"KioskSession": KioskSession, "KioskTransaction": KioskTransaction}


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    targets = _targets()
    for name, identifier, fn in _LISTENERS:
        if not event.contains(targets[name], identifier, fn):
            event.listen(targets[name], identifier, fn)


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. FOR TESTING ONLY."""
    targets = _targets()
    for name, identifier, fn in _LISTENERS:
        if event.contains(targets[name], identifier, fn):
            event.remove(targets[name], identifier, fn)
