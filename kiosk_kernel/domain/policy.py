"""
LedgerPolicy -- operating constants for the ledger.

Built from configuration by ``kiosk_config.bridges``; the kernel never reads
configuration itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from kiosk_kernel.domain.fees import FeePolicy

DEFAULT_MINIMUM_AMOUNT = 1000
DEFAULT_RECENT_LIMIT = 5


@dataclass(frozen=True)
class LedgerPolicy:
    """Minimum amount per operation, fee schedule and default view size."""

    minimum_amount: int = DEFAULT_MINIMUM_AMOUNT
    recent_limit: int = DEFAULT_RECENT_LIMIT
    fee_policy: FeePolicy = field(default_factory=FeePolicy)

    def __post_init__(self) -> None:
        if self.minimum_amount < 1:
            raise ValueError(f"minimum_amount must be >= 1, got {self.minimum_amount}")
        if self.recent_limit < 1:
            raise ValueError(f"recent_limit must be >= 1, got {self.recent_limit}")
