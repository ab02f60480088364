"""Pydantic schemas and cursor utilities for the fm_coin API."""

import base64
import json

from pydantic import BaseModel, Field

from src.fm_coin.domain.models import CoinLedgerEntry
from src.fm_common.coins import coins_to_display

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except Exception:
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class GrantRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    amount: int = Field(..., gt=0, description="Coins to grant")
    reason: str = Field(..., min_length=1, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    balance: int
    balance_display: str

    @classmethod
    def from_coins(cls, user_id: str, balance: int) -> "BalanceResponse":
        return cls(user_id=user_id, balance=balance, balance_display=coins_to_display(balance))


class CoinCreditResponse(BaseModel):
    """Result of a bonus claim or an operator grant."""

    user_id: str
    entry_type: str
    amount: int
    balance: int
    balance_display: str
    ledger_entry_id: int

    @classmethod
    def from_entry(cls, entry: CoinLedgerEntry) -> "CoinCreditResponse":
        return cls(
            user_id=entry.user_id,
            entry_type=entry.entry_type,
            amount=entry.amount,
            balance=entry.balance_after,
            balance_display=coins_to_display(entry.balance_after),
            ledger_entry_id=entry.id,
        )


class LedgerEntryItem(BaseModel):
    id: int
    entry_type: str
    amount: int
    amount_display: str
    balance_after: int
    reference_type: str | None
    reference_id: str | None
    description: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_entry(cls, entry: CoinLedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            entry_type=entry.entry_type,
            amount=entry.amount,
            amount_display=coins_to_display(entry.amount),
            balance_after=entry.balance_after,
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            description=entry.description,
            created_at=entry.created_at.isoformat() if entry.created_at else "",
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
