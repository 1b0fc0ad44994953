"""
Kiosk ledger settings schema.

Defines the typed shape of the YAML configuration.  The loader parses a
YAML document into these frozen dataclasses; bridges translate them into
kernel inputs (``LedgerPolicy``, ``PersistenceRetryPolicy``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeeRuleDef:
    """Percentage fee with a fixed floor for one operation type."""

    rate: Decimal
    minimum: int = 0


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PersistenceSettings:
    """Durable store location and failure handling."""

    database_url: str = "sqlite:///kiosk_ledger.db"
    timeout_seconds: float = 5.0
    max_retries: int = 1
    echo: bool = False


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    """Complete, validated kiosk configuration."""

    config_id: str
    version: int
    minimum_amount: int
    recent_limit: int
    fees: dict[str, FeeRuleDef] = field(default_factory=dict)
    persistence: PersistenceSettings = field(default_factory=PersistenceSettings)
    checksum: str = ""
