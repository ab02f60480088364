"""SettlementEngine — persistence shell around the pure `resolve()`.

One settlement cycle:
  1. lock tick: OPEN periods past their end -> LOCKED
  2. claim every LOCKED period (CAS LOCKED -> RESOLVING, observation saved)
  3. pick up RESOLVING periods whose claim went stale (crashed worker)
  4. per period: resolve PENDING bets, each in its own transaction, then
     finalize (RESOLVING -> RESOLVED once no PENDING bet is left) and open
     the next period

Every step that writes is conditional on the current state, so running the
cycle twice, or on two workers at once, settles each bet exactly once. A
failure on one bet or one period is logged and the cycle moves on; the
remainder is retried by a later cycle through the stale-claim path.

Each unit of work opens its own session from the session factory so a
failed bet never poisons the session used for the next one.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings as app_settings
from src.fm_bet.domain.models import Bet
from src.fm_bet.domain.repository import BetRepositoryProtocol
from src.fm_bet.infrastructure.persistence import BetRepository
from src.fm_coin.domain.models import LedgerRef
from src.fm_coin.domain.repository import CoinRepositoryProtocol
from src.fm_coin.infrastructure.persistence import CoinRepository
from src.fm_common.database import async_session_factory
from src.fm_common.datetime_utils import utc_now
from src.fm_common.enums import BetStatus
from src.fm_common.errors import AlreadyClaimedError
from src.fm_period.application.service import PeriodApplicationService
from src.fm_period.domain.models import ForecastPeriod
from src.fm_period.domain.repository import PeriodRepositoryProtocol
from src.fm_period.infrastructure.persistence import PeriodRepository
from src.fm_settlement.domain.resolution import Credit, resolve

logger = logging.getLogger(__name__)


@dataclass
class PeriodOutcome:
    period_id: str
    won: int = 0
    lost: int = 0
    void: int = 0
    failures: int = 0
    resolved: bool = False
    next_period_id: str | None = None


@dataclass
class SettlementSummary:
    locked: int = 0
    claimed: int = 0
    resumed: int = 0
    resolved: int = 0
    won: int = 0
    lost: int = 0
    void: int = 0
    failures: int = 0

    def absorb(self, outcome: PeriodOutcome) -> None:
        self.won += outcome.won
        self.lost += outcome.lost
        self.void += outcome.void
        self.failures += outcome.failures
        if outcome.resolved:
            self.resolved += 1


class SettlementEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        periods: PeriodApplicationService | None = None,
        period_repo: PeriodRepositoryProtocol | None = None,
        bet_repo: BetRepositoryProtocol | None = None,
        coin_repo: CoinRepositoryProtocol | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session_factory
        self._period_repo: PeriodRepositoryProtocol = period_repo or PeriodRepository()
        self._periods = periods or PeriodApplicationService(repo=self._period_repo)
        self._bets: BetRepositoryProtocol = bet_repo or BetRepository()
        self._coins: CoinRepositoryProtocol = coin_repo or CoinRepository()

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def run_settlement_cycle(self, now: datetime | None = None) -> SettlementSummary:
        now = now or utc_now()
        summary = SettlementSummary()

        async with self._session_factory() as db:
            summary.locked = len(await self._periods.lock_expired_periods(db, now))

        async with self._session_factory() as db:
            locked_ids = await self._period_repo.list_locked_ids(db)
        for period_id in locked_ids:
            period = await self._claim(period_id, now, summary)
            if period is not None:
                summary.claimed += 1
                summary.absorb(await self.settle_period(period, now))

        stale_before = now - timedelta(seconds=app_settings.SETTLEMENT_STALE_CLAIM_SECONDS)
        async with self._session_factory() as db:
            stale_ids = await self._period_repo.list_stale_resolving_ids(db, stale_before)
        for period_id in stale_ids:
            period = await self._reclaim(period_id, now, stale_before, summary)
            if period is not None:
                summary.resumed += 1
                summary.absorb(await self.settle_period(period, now))

        logger.info(
            "Settlement cycle: locked=%d claimed=%d resumed=%d resolved=%d "
            "won=%d lost=%d void=%d failures=%d",
            summary.locked, summary.claimed, summary.resumed, summary.resolved,
            summary.won, summary.lost, summary.void, summary.failures,
        )
        return summary

    async def _claim(
        self, period_id: str, now: datetime, summary: SettlementSummary
    ) -> ForecastPeriod | None:
        try:
            async with self._session_factory() as db:
                return await self._periods.claim_for_resolution(db, period_id, now)
        except AlreadyClaimedError:
            logger.info("Period %s claimed by another worker", period_id)
        except Exception:
            logger.exception("Claim failed for period %s", period_id)
            summary.failures += 1
        return None

    async def _reclaim(
        self,
        period_id: str,
        now: datetime,
        stale_before: datetime,
        summary: SettlementSummary,
    ) -> ForecastPeriod | None:
        try:
            async with self._session_factory() as db:
                period = await self._period_repo.reclaim_stale(db, period_id, now, stale_before)
                await db.commit()
        except Exception:
            logger.exception("Reclaim failed for stale period %s", period_id)
            summary.failures += 1
            return None
        if period is not None:
            logger.warning("Resuming stale settlement of period %s", period_id)
        return period

    # ------------------------------------------------------------------
    # One period
    # ------------------------------------------------------------------

    async def settle_period(self, period: ForecastPeriod, now: datetime) -> PeriodOutcome:
        """Settle a RESOLVING period against the observation saved at claim time."""
        outcome = PeriodOutcome(period_id=period.id)
        try:
            async with self._session_factory() as db:
                pending = await self._bets.list_pending_for_period(db, period.id)
        except Exception:
            logger.exception("Could not load pending bets for period %s", period.id)
            outcome.failures += 1
            return outcome

        resolution = resolve(
            period, pending, period.ending_mrr, period.void_reason, now,
            app_settings.WIN_MULTIPLIER,
        )
        if resolution.is_void:
            logger.warning(
                "Period %s is void (%s): refunding %d bet(s)",
                period.id, resolution.period.void_reason, len(resolution.bets),
            )

        for bet in resolution.bets:
            try:
                applied = await self._apply_bet(bet, resolution.credit_for(bet.id))
            except Exception:
                logger.exception("Settlement failed for bet %s in period %s", bet.id, period.id)
                outcome.failures += 1
                continue
            if not applied:
                continue
            if bet.status == BetStatus.WON:
                outcome.won += 1
            elif bet.status == BetStatus.LOST:
                outcome.lost += 1
            else:
                outcome.void += 1

        try:
            await self._finalize(period, now, outcome)
        except Exception:
            logger.exception("Finalize failed for period %s", period.id)
            outcome.failures += 1

        logger.info(
            "Period %s settled: won=%d lost=%d void=%d failures=%d resolved=%s",
            period.id, outcome.won, outcome.lost, outcome.void,
            outcome.failures, outcome.resolved,
        )
        return outcome

    async def _apply_bet(self, bet: Bet, credit: Credit | None) -> bool:
        """Persist one bet's outcome and its credit atomically.

        False when the bet was no longer PENDING (already settled by an
        earlier or concurrent run); nothing is written in that case.
        """
        async with self._session_factory() as db:
            try:
                updated = await self._bets.resolve(db, bet)
                if updated is None:
                    await db.rollback()
                    return False
                if credit is not None:
                    await self._coins.credit(
                        db,
                        credit.user_id,
                        credit.amount,
                        credit.entry_type,
                        LedgerRef("BET", bet.id, f"Bet {bet.status.lower()}"),
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return True

    async def _finalize(self, period: ForecastPeriod, now: datetime, outcome: PeriodOutcome) -> None:
        async with self._session_factory() as db:
            try:
                finalized = await self._period_repo.finalize(db, period.id, now)
                if finalized is None:
                    # PENDING bets remain (a failure above) or another worker finished first
                    await db.rollback()
                    return
                nxt = await self._periods.open_next_period(db, finalized, now)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        outcome.resolved = True
        outcome.next_period_id = nxt.id if nxt else None
