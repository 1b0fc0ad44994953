"""
Module: kiosk_kernel.selectors.transaction_selector
Responsibility: Read-only projections over a session's transaction history:
    filtered listing, by service, by type, recent-N, and the in-order
    sequence used for balance replay.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Display order is timestamp descending with ties broken by insertion
      order (later seq first), so equal-time records list newest first.
    - Replay order is seq ascending.
    - Read-only; returns TransactionRecord DTOs.
"""

from uuid import UUID

from sqlalchemy import Select, func, or_, select

from kiosk_kernel.domain.dtos import TransactionFilter, TransactionRecord
from kiosk_kernel.domain.values import MAX_MONEY, OperationKind, ServiceKind, is_money
from kiosk_kernel.exceptions import InvalidFilterError
from kiosk_kernel.models.transaction import KioskTransaction
from kiosk_kernel.selectors.base import BaseSelector


def normalize_filter(flt: TransactionFilter) -> tuple[ServiceKind | None, OperationKind | None]:
    """
    Resolve service/type filter values to enums.

    Raises:
        InvalidFilterError: unknown service or type, a negative limit, or a
            search term or session id of the wrong type.
    """
    service = None
    if flt.service is not None:
        try:
            service = ServiceKind.parse(flt.service)
        except ValueError:
            raise InvalidFilterError("service", flt.service) from None

    kind = None
    if flt.type is not None:
        try:
            kind = OperationKind(flt.type)
        except ValueError:
            raise InvalidFilterError("type", flt.type) from None

    if flt.limit is not None and (not is_money(flt.limit) or not 0 <= flt.limit <= MAX_MONEY):
        raise InvalidFilterError("limit", flt.limit)

    if flt.search is not None and not isinstance(flt.search, str):
        raise InvalidFilterError("search", flt.search)

    if flt.session_id is not None and not isinstance(flt.session_id, UUID):
        raise InvalidFilterError("session_id", flt.session_id)

    return service, kind


class TransactionSelector(BaseSelector[KioskTransaction]):
    """Selector for kiosk transaction queries within one session."""

    def _newest_first(self, session_id: UUID) -> Select:
        return (
            select(KioskTransaction)
            .where(KioskTransaction.session_id == session_id)
            .order_by(KioskTransaction.occurred_at.desc(), KioskTransaction.seq.desc())
        )

    def find(self, session_id: UUID, flt: TransactionFilter | None = None) -> list[TransactionRecord]:
        """Transactions of a session matching ``flt``, newest first."""
        flt = flt or TransactionFilter()
        service, kind = normalize_filter(flt)

        stmt = self._newest_first(session_id)
        if service is not None:
            stmt = stmt.where(KioskTransaction.service == service.value)
        if kind is not None:
            stmt = stmt.where(KioskTransaction.type == kind.value)
        if flt.search and flt.search.strip():
            term = flt.search.strip()
            lowered = term.lower()
            stmt = stmt.where(
                or_(
                    func.lower(KioskTransaction.recipient_name).contains(lowered, autoescape=True),
                    func.lower(KioskTransaction.description).contains(lowered, autoescape=True),
                    KioskTransaction.recipient_phone.contains(term, autoescape=True),
                    KioskTransaction.phone_number.contains(term, autoescape=True),
                )
            )
        if flt.limit is not None:
            stmt = stmt.limit(flt.limit)

        return [TransactionRecord.from_model(row) for row in self.session.execute(stmt).scalars()]

    def by_service(self, session_id: UUID, service: ServiceKind | str) -> list[TransactionRecord]:
        return self.find(session_id, TransactionFilter(service=service))

    def by_type(self, session_id: UUID, kind: OperationKind | str) -> list[TransactionRecord]:
        return self.find(session_id, TransactionFilter(type=kind))

    def recent(self, session_id: UUID, limit: int) -> list[TransactionRecord]:
        return self.find(session_id, TransactionFilter(limit=limit))

    def in_insertion_order(self, session_id: UUID) -> list[TransactionRecord]:
        """Every transaction of the session, oldest first (replay order)."""
        rows = self.session.execute(
            select(KioskTransaction)
            .where(KioskTransaction.session_id == session_id)
            .order_by(KioskTransaction.seq.asc())
        ).scalars()
        return [TransactionRecord.from_model(row) for row in rows]
