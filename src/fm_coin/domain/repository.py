"""Coin ledger contract.

Every other module mutates balances only through `debit` and `credit`; both
run inside the caller's transaction so a paired write (e.g. a bet insert)
commits or rolls back together with the balance change.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_coin.domain.models import CoinAccount, CoinLedgerEntry, LedgerRef


class CoinRepositoryProtocol(Protocol):
    async def get_account(self, db: AsyncSession, user_id: str) -> CoinAccount | None: ...

    async def lock_account(self, db: AsyncSession, user_id: str) -> CoinAccount: ...

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        entry_type: str,
        ref: LedgerRef,
    ) -> tuple[CoinAccount, CoinLedgerEntry]: ...

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        entry_type: str,
        ref: LedgerRef,
    ) -> tuple[CoinAccount, CoinLedgerEntry]: ...

    async def has_entry(
        self,
        db: AsyncSession,
        user_id: str,
        entry_type: str,
        since: datetime | None,
    ) -> bool: ...

    async def list_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[CoinLedgerEntry]: ...
