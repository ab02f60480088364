from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_period.domain.models import ForecastPeriod


class PeriodRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, period: ForecastPeriod) -> ForecastPeriod | None: ...

    async def get_by_id(self, db: AsyncSession, period_id: str) -> ForecastPeriod | None: ...

    async def get_active(self, db: AsyncSession, target_id: str) -> ForecastPeriod | None: ...

    async def get_unsettled(self, db: AsyncSession, target_id: str) -> ForecastPeriod | None: ...

    async def get_open_for_share(
        self, db: AsyncSession, target_id: str
    ) -> ForecastPeriod | None: ...

    async def get_for_share(self, db: AsyncSession, period_id: str) -> ForecastPeriod | None: ...

    async def list_for_target(
        self, db: AsyncSession, target_id: str, limit: int
    ) -> list[ForecastPeriod]: ...

    async def lock_expired(self, db: AsyncSession, now: datetime) -> list[ForecastPeriod]: ...

    async def claim(
        self,
        db: AsyncSession,
        period_id: str,
        now: datetime,
        ending_mrr: int | None,
        void_reason: str | None,
    ) -> ForecastPeriod | None: ...

    async def reclaim_stale(
        self, db: AsyncSession, period_id: str, now: datetime, stale_before: datetime
    ) -> ForecastPeriod | None: ...

    async def list_locked_ids(self, db: AsyncSession) -> list[str]: ...

    async def list_stale_resolving_ids(
        self, db: AsyncSession, stale_before: datetime
    ) -> list[str]: ...

    async def finalize(
        self, db: AsyncSession, period_id: str, now: datetime
    ) -> ForecastPeriod | None: ...
