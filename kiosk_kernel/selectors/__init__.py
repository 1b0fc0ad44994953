"""Selectors for the kiosk kernel (read side)."""

from kiosk_kernel.selectors.reporting import ActivitySummary, KioskReport, ReportingView
from kiosk_kernel.selectors.session_selector import SessionSelector
from kiosk_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "ActivitySummary",
    "KioskReport",
    "ReportingView",
    "SessionSelector",
    "TransactionSelector",
]
