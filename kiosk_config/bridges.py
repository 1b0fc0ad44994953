"""
Config -> Kernel Bridges.

Functions that convert ``LedgerSettings`` into kernel inputs.  They live in
kiosk_config (the producer) because the kernel must never import
kiosk_config.

Usage:
    from kiosk_config import get_active_config
    from kiosk_config.bridges import build_ledger_service

    settings = get_active_config()
    ledger = build_ledger_service(settings, operator_id="op-42")
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from kiosk_config.schema import LedgerSettings
from kiosk_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from kiosk_kernel.domain.clock import Clock
from kiosk_kernel.domain.fees import FeePolicy, FeeRule
from kiosk_kernel.domain.policy import LedgerPolicy
from kiosk_kernel.domain.values import OperationKind
from kiosk_kernel.services.ledger_service import LedgerService
from kiosk_kernel.services.retry_service import PersistenceRetryPolicy


def build_fee_policy(settings: LedgerSettings) -> FeePolicy:
    return FeePolicy({
        OperationKind(op): FeeRule(rate=rule.rate, minimum=rule.minimum)
        for op, rule in settings.fees.items()
    })


def build_ledger_policy(settings: LedgerSettings) -> LedgerPolicy:
    """Minimum amount, default recent-view size and fee schedule."""
    return LedgerPolicy(
        minimum_amount=settings.minimum_amount,
        recent_limit=settings.recent_limit,
        fee_policy=build_fee_policy(settings),
    )


def build_retry_policy(settings: LedgerSettings) -> PersistenceRetryPolicy:
    return PersistenceRetryPolicy(max_retries=settings.persistence.max_retries)


def build_ledger_service(
    settings: LedgerSettings,
    operator_id: str | None,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
) -> LedgerService:
    """
    Wire a ``LedgerService`` from settings.

    When ``session_factory`` is None the module-level engine is initialized
    from ``settings.persistence`` and the schema is created if missing.
    """
    if session_factory is None:
        persistence = settings.persistence
        init_engine_from_url(
            persistence.database_url,
            echo=persistence.echo,
            timeout_seconds=persistence.timeout_seconds,
        )
        create_tables()
        session_factory = get_session_factory()

    return LedgerService(
        session_factory,
        operator_id,
        policy=build_ledger_policy(settings),
        clock=clock,
        retry_policy=build_retry_policy(settings),
    )
