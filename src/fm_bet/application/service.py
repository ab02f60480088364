"""BetApplicationService — placement with escrow, cancellation and queries.

Placement and cancellation each run in one transaction that holds the
period row FOR SHARE, so the lock tick (which needs the row exclusively)
cannot move the period to LOCKED halfway through.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings as app_settings
from src.fm_bet.application.schemas import (
    BetListResponse,
    BetResponse,
    BettorStatsResponse,
    LeaderboardEntry,
    PlaceBetRequest,
    TargetMarketResponse,
)
from src.fm_bet.domain.models import Bet
from src.fm_bet.domain.repository import BetRepositoryProtocol
from src.fm_bet.infrastructure.persistence import BetRepository
from src.fm_coin.domain.models import LedgerRef
from src.fm_coin.domain.repository import CoinRepositoryProtocol
from src.fm_coin.infrastructure.persistence import CoinRepository
from src.fm_common.coins import split_stake
from src.fm_common.datetime_utils import utc_now
from src.fm_common.enums import BetStatus, CoinEntryType
from src.fm_common.errors import (
    BetNotCancellableError,
    BetNotFoundError,
    DuplicateBetError,
    DuplicateClientBetIdError,
    ForecastingUnavailableError,
    InvalidTargetPercentageError,
    NoOpenPeriodError,
    NotBetOwnerError,
    NotConfiguredError,
    PeriodLockedError,
    SelfBetError,
    StakeOutOfRangeError,
)
from src.fm_common.id_generator import generate_id
from src.fm_period.domain.repository import PeriodRepositoryProtocol
from src.fm_period.infrastructure.persistence import PeriodRepository
from src.fm_target.domain.repository import SettingsRepositoryProtocol
from src.fm_target.infrastructure.persistence import SettingsRepository

logger = logging.getLogger(__name__)

BET_REFERENCE = "BET"
# Caller's own bets shown with a target's market stats
MY_RECENT_BETS_ON_TARGET = 10


def _same_request(bet: Bet, req: PlaceBetRequest) -> bool:
    return (
        bet.target_id == req.target_id
        and bet.direction == req.direction
        and bet.target_bps == req.target_percentage_bps
        and bet.stake_coins == req.stake_coins
    )


class BetApplicationService:
    def __init__(
        self,
        repo: BetRepositoryProtocol | None = None,
        coins: CoinRepositoryProtocol | None = None,
        periods: PeriodRepositoryProtocol | None = None,
        targets: SettingsRepositoryProtocol | None = None,
    ) -> None:
        self._repo: BetRepositoryProtocol = repo or BetRepository()
        self._coins: CoinRepositoryProtocol = coins or CoinRepository()
        self._periods: PeriodRepositoryProtocol = periods or PeriodRepository()
        self._targets: SettingsRepositoryProtocol = targets or SettingsRepository()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def place_bet(
        self, db: AsyncSession, bettor_id: str, req: PlaceBetRequest
    ) -> BetResponse:
        try:
            # Idempotency check
            if req.client_bet_id is not None:
                existing = await self._repo.get_by_client_bet_id(db, bettor_id, req.client_bet_id)
                if existing is not None:
                    if not _same_request(existing, req):
                        raise DuplicateClientBetIdError(req.client_bet_id)
                    return BetResponse.from_domain(existing)

            target = await self._targets.get(db, req.target_id)
            if target is None:
                raise NotConfiguredError(req.target_id)
            if not target.accepts_bets:
                raise ForecastingUnavailableError(req.target_id)
            if target.owner_user_id == bettor_id:
                raise SelfBetError()
            if not (
                app_settings.MIN_TARGET_BPS
                <= req.target_percentage_bps
                <= app_settings.MAX_TARGET_BPS
            ):
                raise InvalidTargetPercentageError(req.target_percentage_bps)
            if not (target.min_stake <= req.stake_coins <= target.max_stake):
                raise StakeOutOfRangeError(req.stake_coins, target.min_stake, target.max_stake)

            period = await self._periods.get_open_for_share(db, req.target_id)
            if period is None:
                raise NoOpenPeriodError(req.target_id)
            if await self._repo.get_pending(db, bettor_id, req.target_id, period.id) is not None:
                raise DuplicateBetError(req.target_id)

            fee, net = split_stake(req.stake_coins, app_settings.HOUSE_FEE_BPS)
            bet = Bet(
                id=generate_id(),
                client_bet_id=req.client_bet_id,
                bettor_id=bettor_id,
                target_id=req.target_id,
                target_kind=target.target_kind,
                period_id=period.id,
                direction=req.direction.value,
                target_bps=req.target_percentage_bps,
                stake_coins=req.stake_coins,
                house_fee_coins=fee,
                net_stake_coins=net,
            )
            await self._coins.debit(
                db,
                bettor_id,
                req.stake_coins,
                CoinEntryType.BET_STAKE,
                LedgerRef(BET_REFERENCE, bet.id, f"Stake on {req.target_id} {period.period_key}"),
            )
            saved = await self._repo.insert(db, bet)
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            constraint = str(exc.orig)
            if "uq_bets_one_pending" in constraint:
                raise DuplicateBetError(req.target_id) from exc
            if "uq_bets_client_bet_id" in constraint and req.client_bet_id is not None:
                raise DuplicateClientBetIdError(req.client_bet_id) from exc
            raise
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Bet placed: bet=%s bettor=%s target=%s %s %d bps stake=%d fee=%d",
            saved.id, bettor_id, saved.target_id, saved.direction,
            saved.target_bps, saved.stake_coins, saved.house_fee_coins,
        )
        return BetResponse.from_domain(saved)

    async def cancel_bet(
        self,
        db: AsyncSession,
        bet_id: str,
        requester_id: str,
        now: datetime | None = None,
    ) -> BetResponse:
        """Full refund, house fee included, while the period is still OPEN."""
        now = now or utc_now()
        try:
            bet = await self._repo.get_by_id(db, bet_id)
            if bet is None:
                raise BetNotFoundError(bet_id)
            if bet.bettor_id != requester_id:
                raise NotBetOwnerError(bet_id)
            if bet.is_terminal:
                raise BetNotCancellableError(bet_id, bet.status)
            period = await self._periods.get_for_share(db, bet.period_id)
            if period is None or not period.is_open:
                raise PeriodLockedError(bet.period_id)

            cancelled = await self._repo.cancel(db, bet_id, now)
            if cancelled is None:
                # Resolved between our read and the conditional update
                current = await self._repo.get_by_id(db, bet_id)
                raise BetNotCancellableError(
                    bet_id, current.status if current else BetStatus.CANCELLED.value
                )
            await self._coins.credit(
                db,
                requester_id,
                cancelled.stake_coins,
                CoinEntryType.BET_CANCEL_REFUND,
                LedgerRef(BET_REFERENCE, bet_id, "Bet cancelled"),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Bet cancelled: bet=%s refund=%d", bet_id, cancelled.stake_coins)
        return BetResponse.from_domain(cancelled)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_bet(self, db: AsyncSession, bet_id: str, requester_id: str) -> BetResponse:
        bet = await self._repo.get_by_id(db, bet_id)
        if bet is None:
            raise BetNotFoundError(bet_id)
        if bet.bettor_id != requester_id:
            raise NotBetOwnerError(bet_id)
        return BetResponse.from_domain(bet)

    async def list_bets(
        self,
        db: AsyncSession,
        bettor_id: str,
        status: str | None,
        cursor: str | None,
        limit: int,
        target_id: str | None = None,
    ) -> BetListResponse:
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        bets = await self._repo.list_by_bettor(
            db, bettor_id, status, cursor, limit + 1, target_id=target_id
        )
        has_more = len(bets) > limit
        page = bets[:limit]
        return BetListResponse(
            items=[BetResponse.from_domain(b) for b in page],
            next_cursor=page[-1].id if has_more and page else None,
            has_more=has_more,
        )

    async def get_stats(self, db: AsyncSession, bettor_id: str) -> BettorStatsResponse:
        return BettorStatsResponse.from_domain(await self._repo.get_stats(db, bettor_id))

    async def get_target_market(
        self, db: AsyncSession, target_id: str, viewer_id: str
    ) -> TargetMarketResponse:
        """Bet activity on a target plus the viewer's latest bets on it."""
        if await self._targets.get(db, target_id) is None:
            raise NotConfiguredError(target_id)
        stats = await self._repo.get_target_stats(db, target_id)
        mine = await self._repo.list_by_bettor(
            db, viewer_id, None, None, MY_RECENT_BETS_ON_TARGET, target_id=target_id
        )
        return TargetMarketResponse.from_domain(stats, mine)

    async def leaderboard(self, db: AsyncSession, limit: int) -> list[LeaderboardEntry]:
        rows = await self._repo.leaderboard(db, limit)
        return [
            LeaderboardEntry(rank=i, **BettorStatsResponse.from_domain(s).model_dump())
            for i, s in enumerate(rows, start=1)
        ]
