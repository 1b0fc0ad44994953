"""ORM models for the kiosk kernel."""

from kiosk_kernel.models.kiosk_session import KioskSession
from kiosk_kernel.models.transaction import KioskTransaction

__all__ = [
    "KioskSession",
    "KioskTransaction",
]
