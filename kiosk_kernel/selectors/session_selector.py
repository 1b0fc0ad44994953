"""
Module: kiosk_kernel.selectors.session_selector
Responsibility: Read-only access to kiosk sessions: the active one, the
    current one (active, else most recently opened) and the history.
Architecture position: Kernel > Selectors.

Failure modes:
    - Returns None / empty list when the operator has no sessions (never
      raises on absence of data).
"""

from uuid import UUID

from sqlalchemy import select

from kiosk_kernel.domain.dtos import SessionInfo
from kiosk_kernel.models.kiosk_session import KioskSession
from kiosk_kernel.selectors.base import BaseSelector


class SessionSelector(BaseSelector[KioskSession]):
    """Selector for kiosk session queries."""

    def active(self, operator_id: str) -> SessionInfo | None:
        row = self.session.execute(
            select(KioskSession).where(
                KioskSession.operator_id == operator_id,
                KioskSession.is_active.is_(True),
            )
        ).scalar_one_or_none()
        return SessionInfo.from_model(row) if row else None

    def current(self, operator_id: str) -> SessionInfo | None:
        """The active session, else the most recently opened one."""
        active = self.active(operator_id)
        if active is not None:
            return active
        row = self.session.execute(
            select(KioskSession)
            .where(KioskSession.operator_id == operator_id)
            .order_by(KioskSession.opened_at.desc(), KioskSession.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return SessionInfo.from_model(row) if row else None

    def get(self, operator_id: str, session_id: UUID) -> SessionInfo | None:
        row = self.session.execute(
            select(KioskSession).where(
                KioskSession.operator_id == operator_id,
                KioskSession.id == session_id,
            )
        ).scalar_one_or_none()
        return SessionInfo.from_model(row) if row else None

    def history(self, operator_id: str) -> list[SessionInfo]:
        """All sessions, newest first."""
        rows = self.session.execute(
            select(KioskSession)
            .where(KioskSession.operator_id == operator_id)
            .order_by(KioskSession.opened_at.desc(), KioskSession.created_at.desc())
        ).scalars()
        return [SessionInfo.from_model(row) for row in rows]

    def count_active(self, operator_id: str) -> int:
        return len(
            self.session.execute(
                select(KioskSession.id).where(
                    KioskSession.operator_id == operator_id,
                    KioskSession.is_active.is_(True),
                )
            ).all()
        )
