"""
Kiosk Kernel - session & ledger engine for a mobile-money agent kiosk.

A small, append-only ledger with:
- One active session per operator, seeded from declared opening balances
- Atomic validate-then-apply transactions (deposit, withdrawal, transfer)
- Deterministic fee computation
- Strict non-negative balances across cash and three service pools
- Read-only reporting projections over balances and history
"""

__version__ = "0.1.0"
