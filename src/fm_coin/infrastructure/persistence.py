"""CoinRepository — concrete implementation of CoinRepositoryProtocol.

All balance mutations are single atomic PostgreSQL `UPDATE ... RETURNING`
statements. A debit returning 0 rows means the affordability check failed;
the balance is never read and then written back from Python.

Accounts are created lazily (zero balance) the first time a user touches the
ledger, so callers never need a separate "open account" step.

Transaction ownership: the CALLER (application service or settlement shell)
commits or rolls back.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_coin.domain.models import CoinAccount, CoinLedgerEntry, LedgerRef
from src.fm_common.errors import InsufficientBalanceError, InternalError, InvalidAmountError

# ---------------------------------------------------------------------------
# SQL: coin_accounts
# ---------------------------------------------------------------------------

_ENSURE_ACCOUNT_SQL = text("""
    INSERT INTO coin_accounts (user_id)
    VALUES (:user_id)
    ON CONFLICT (user_id) DO NOTHING
""")

_GET_ACCOUNT_SQL = text("""
    SELECT user_id, balance, version, created_at, updated_at
    FROM coin_accounts
    WHERE user_id = :user_id
""")

_LOCK_ACCOUNT_SQL = text("""
    SELECT user_id, balance, version, created_at, updated_at
    FROM coin_accounts
    WHERE user_id = :user_id
    FOR UPDATE
""")

_DEBIT_SQL = text("""
    UPDATE coin_accounts
    SET balance = balance - :amount,
        version = version + 1
    WHERE user_id = :user_id AND balance >= :amount
    RETURNING user_id, balance, version, created_at, updated_at
""")

_CREDIT_SQL = text("""
    UPDATE coin_accounts
    SET balance = balance + :amount,
        version = version + 1
    WHERE user_id = :user_id
    RETURNING user_id, balance, version, created_at, updated_at
""")

# ---------------------------------------------------------------------------
# SQL: coin_ledger_entries
# ---------------------------------------------------------------------------

_INSERT_ENTRY_SQL = text("""
    INSERT INTO coin_ledger_entries
        (user_id, entry_type, amount, balance_after,
         reference_type, reference_id, description)
    VALUES
        (:user_id, :entry_type, :amount, :balance_after,
         :reference_type, :reference_id, :description)
    RETURNING id, user_id, entry_type, amount, balance_after,
              reference_type, reference_id, description, created_at
""")

_HAS_ENTRY_SQL = text("""
    SELECT EXISTS (
        SELECT 1 FROM coin_ledger_entries
        WHERE user_id = :user_id
          AND entry_type = :entry_type
          AND (CAST(:since AS TIMESTAMPTZ) IS NULL OR created_at >= CAST(:since AS TIMESTAMPTZ))
    )
""")

_LIST_ENTRIES_SQL = text("""
    SELECT id, user_id, entry_type, amount, balance_after,
           reference_type, reference_id, description, created_at
    FROM coin_ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
      AND (CAST(:entry_type AS TEXT) IS NULL OR entry_type = CAST(:entry_type AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_account(row: object) -> CoinAccount:
    return CoinAccount(
        user_id=row.user_id,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_entry(row: object) -> CoinLedgerEntry:
    return CoinLedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        reference_type=row.reference_type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class CoinRepository:
    """Concrete repository — every mutation atomic at the SQL level."""

    async def get_account(self, db: AsyncSession, user_id: str) -> CoinAccount | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def lock_account(self, db: AsyncSession, user_id: str) -> CoinAccount:
        """Create-if-missing, then take the row lock until the caller's commit."""
        await db.execute(_ENSURE_ACCOUNT_SQL, {"user_id": user_id})
        result = await db.execute(_LOCK_ACCOUNT_SQL, {"user_id": user_id})
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Coin account missing right after upsert for {user_id}")
        return _row_to_account(row)

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        entry_type: str,
        ref: LedgerRef,
    ) -> tuple[CoinAccount, CoinLedgerEntry]:
        if amount <= 0:
            raise InvalidAmountError(amount)
        await db.execute(_ENSURE_ACCOUNT_SQL, {"user_id": user_id})
        result = await db.execute(_DEBIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            current = await self.get_account(db, user_id)
            raise InsufficientBalanceError(amount, current.balance if current else 0)
        account = _row_to_account(row)
        entry = await self._write_entry(db, account, -amount, entry_type, ref)
        return account, entry

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        entry_type: str,
        ref: LedgerRef,
    ) -> tuple[CoinAccount, CoinLedgerEntry]:
        if amount < 0:
            raise InvalidAmountError(amount)
        await db.execute(_ENSURE_ACCOUNT_SQL, {"user_id": user_id})
        result = await db.execute(_CREDIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Coin account not found for user {user_id}")
        account = _row_to_account(row)
        entry = await self._write_entry(db, account, amount, entry_type, ref)
        return account, entry

    async def has_entry(
        self,
        db: AsyncSession,
        user_id: str,
        entry_type: str,
        since: datetime | None,
    ) -> bool:
        result = await db.execute(
            _HAS_ENTRY_SQL,
            {"user_id": user_id, "entry_type": entry_type, "since": since},
        )
        return bool(result.scalar_one())

    async def list_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[CoinLedgerEntry]:
        result = await db.execute(
            _LIST_ENTRIES_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "entry_type": entry_type,
                "limit": limit,
            },
        )
        return [_row_to_entry(row) for row in result.fetchall()]

    async def _write_entry(
        self,
        db: AsyncSession,
        account: CoinAccount,
        amount: int,
        entry_type: str,
        ref: LedgerRef,
    ) -> CoinLedgerEntry:
        result = await db.execute(
            _INSERT_ENTRY_SQL,
            {
                "user_id": account.user_id,
                "entry_type": entry_type,
                "amount": amount,
                "balance_after": account.balance,
                "reference_type": ref.reference_type,
                "reference_id": ref.reference_id,
                "description": ref.description,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return _row_to_entry(row)
