"""Domain models for pm_account: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    user_id: str
    balance: int       # collateral units, never negative
    version: int       # bumped by every balance write
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Position:
    user_id: str
    market_id: str
    yes_holding: int = 0
    no_holding: int = 0
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def matched(self) -> int:
        """Quantity backed by locked collateral: one YES plus one NO per unit."""
        return min(self.yes_holding, self.no_holding)

    @property
    def unmatched_yes(self) -> int:
        return self.yes_holding - self.matched

    @property
    def unmatched_no(self) -> int:
        return self.no_holding - self.matched

    @property
    def is_empty(self) -> bool:
        """A zero row is kept in the table but means "no position"."""
        return self.yes_holding == 0 and self.no_holding == 0


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    user_id: str
    entry_type: str                  # LedgerEntryType value
    amount: int                      # positive=credit negative=debit
    balance_after: int               # balance snapshot after the op
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None
