from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_target.domain.models import ForecastSettings


class SettingsRepositoryProtocol(Protocol):
    async def get(self, db: AsyncSession, target_id: str) -> ForecastSettings | None: ...

    async def enable(
        self,
        db: AsyncSession,
        target_id: str,
        target_kind: str,
        owner_user_id: str,
        min_stake: int,
        max_stake: int,
    ) -> ForecastSettings | None: ...

    async def set_active(
        self, db: AsyncSession, target_id: str, is_active: bool
    ) -> ForecastSettings | None: ...

    async def set_stake_bounds(
        self, db: AsyncSession, target_id: str, min_stake: int, max_stake: int
    ) -> ForecastSettings | None: ...

    async def update_mrr(
        self, db: AsyncSession, target_id: str, mrr: int, observed_at: datetime
    ) -> ForecastSettings | None: ...

    async def set_connection_status(
        self, db: AsyncSession, target_id: str, status: str
    ) -> ForecastSettings | None: ...

    async def list_open_markets(
        self,
        db: AsyncSession,
        viewer_id: str,
        target_kind: str | None,
        cursor: str | None,
        limit: int,
    ) -> list[ForecastSettings]: ...
