"""CoinApplicationService — balances, ledger history and coin issuance.

Issuance (welcome bonus, daily bonus, operator grant) is the only way coins
enter circulation besides WON payouts. Bonus claims lock the account row
FOR UPDATE before checking eligibility, so two concurrent claims serialize
and the second one sees the first one's ledger entry.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fm_coin.application.schemas import (
    BalanceResponse,
    CoinCreditResponse,
    LedgerEntryItem,
    LedgerResponse,
    cursor_decode,
    cursor_encode,
)
from src.fm_coin.domain.models import LedgerRef
from src.fm_coin.domain.repository import CoinRepositoryProtocol
from src.fm_coin.infrastructure.persistence import CoinRepository
from src.fm_common.datetime_utils import utc_now
from src.fm_common.enums import CoinEntryType
from src.fm_common.errors import BonusAlreadyClaimedError

logger = logging.getLogger(__name__)


def _start_of_utc_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class CoinApplicationService:
    def __init__(self, repo: CoinRepositoryProtocol | None = None) -> None:
        self._repo: CoinRepositoryProtocol = repo or CoinRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        account = await self._repo.get_account(db, user_id)
        # Accounts are created lazily: no row yet means a zero balance
        return BalanceResponse.from_coins(user_id, account.balance if account else 0)

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_entries(db, user_id, cursor_id, limit + 1, entry_type)
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(
            items=[LedgerEntryItem.from_entry(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def claim_welcome_bonus(self, db: AsyncSession, user_id: str) -> CoinCreditResponse:
        try:
            await self._repo.lock_account(db, user_id)
            if await self._repo.has_entry(db, user_id, CoinEntryType.WELCOME_BONUS, None):
                raise BonusAlreadyClaimedError("Welcome bonus")
            _, entry = await self._repo.credit(
                db,
                user_id,
                settings.WELCOME_BONUS_COINS,
                CoinEntryType.WELCOME_BONUS,
                LedgerRef(description="Welcome bonus"),
            )
            await db.commit()
        except IntegrityError as exc:
            # uq_coin_ledger_welcome_bonus backs up the row lock
            await db.rollback()
            if "uq_coin_ledger_welcome_bonus" in str(exc.orig):
                raise BonusAlreadyClaimedError("Welcome bonus") from exc
            raise
        except Exception:
            await db.rollback()
            raise
        logger.info("Welcome bonus granted: user=%s amount=%d", user_id, entry.amount)
        return CoinCreditResponse.from_entry(entry)

    async def claim_daily_bonus(
        self, db: AsyncSession, user_id: str, now: datetime | None = None
    ) -> CoinCreditResponse:
        now = now or utc_now()
        try:
            await self._repo.lock_account(db, user_id)
            if await self._repo.has_entry(
                db, user_id, CoinEntryType.DAILY_BONUS, _start_of_utc_day(now)
            ):
                raise BonusAlreadyClaimedError("Daily bonus")
            _, entry = await self._repo.credit(
                db,
                user_id,
                settings.DAILY_BONUS_COINS,
                CoinEntryType.DAILY_BONUS,
                LedgerRef(description=f"Daily bonus {now.date().isoformat()}"),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return CoinCreditResponse.from_entry(entry)

    async def grant(
        self,
        db: AsyncSession,
        operator_id: str,
        user_id: str,
        amount: int,
        reason: str,
    ) -> CoinCreditResponse:
        try:
            _, entry = await self._repo.credit(
                db,
                user_id,
                amount,
                CoinEntryType.GRANT,
                LedgerRef(reference_type="OPERATOR", reference_id=operator_id, description=reason),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Coins granted: operator=%s user=%s amount=%d reason=%s",
            operator_id, user_id, amount, reason,
        )
        return CoinCreditResponse.from_entry(entry)
