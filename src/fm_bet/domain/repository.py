"""BetRepository Protocol — interface contract for the persistence layer."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_bet.domain.models import Bet, BettorStats, TargetMarketStats


class BetRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, bet: Bet) -> Bet: ...

    async def get_by_id(self, db: AsyncSession, bet_id: str) -> Bet | None: ...

    async def get_by_client_bet_id(
        self, db: AsyncSession, bettor_id: str, client_bet_id: str
    ) -> Bet | None: ...

    async def get_pending(
        self, db: AsyncSession, bettor_id: str, target_id: str, period_id: str
    ) -> Bet | None: ...

    async def list_pending_for_period(self, db: AsyncSession, period_id: str) -> list[Bet]: ...

    async def cancel(self, db: AsyncSession, bet_id: str, now: datetime) -> Bet | None: ...

    async def resolve(self, db: AsyncSession, bet: Bet) -> Bet | None: ...

    async def list_by_bettor(
        self,
        db: AsyncSession,
        bettor_id: str,
        status: str | None,
        cursor_id: str | None,
        limit: int,
        target_id: str | None = None,
    ) -> list[Bet]: ...

    async def get_stats(self, db: AsyncSession, bettor_id: str) -> BettorStats: ...

    async def get_target_stats(self, db: AsyncSession, target_id: str) -> TargetMarketStats: ...

    async def leaderboard(self, db: AsyncSession, limit: int) -> list[BettorStats]: ...
