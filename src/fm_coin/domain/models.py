"""Domain models for fm_coin — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class CoinAccount:
    user_id: str
    balance: int        # coins, never negative
    version: int        # bumped on every mutation
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class CoinLedgerEntry:
    id: int                          # BIGSERIAL
    user_id: str
    entry_type: str                  # CoinEntryType value
    amount: int                      # coins, positive=credit negative=debit
    balance_after: int               # balance snapshot after the mutation
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None


@dataclass
class LedgerRef:
    """What a coin movement is about, e.g. ("BET", "<bet id>")."""

    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
