"""SettingsApplicationService — the forecasting settings registry.

Owner operations (enable, activate, bounds) and collaborator signals
(verified MRR, connect, disconnect). Opening the first period happens in the
same transaction as the write that makes it possible, so a target never ends
up active with a baseline but silently without a period.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings as app_settings
from src.fm_common.datetime_utils import utc_now
from src.fm_common.enums import ConnectionStatus
from src.fm_common.errors import AlreadyOpenError, NotConfiguredError, NotTargetOwnerError
from src.fm_period.application.service import PeriodApplicationService
from src.fm_target.application.schemas import SettingsListResponse, SettingsResponse
from src.fm_target.domain.models import ForecastSettings, validate_stake_bounds
from src.fm_target.domain.repository import SettingsRepositoryProtocol
from src.fm_target.infrastructure.persistence import SettingsRepository

logger = logging.getLogger(__name__)


class SettingsApplicationService:
    def __init__(
        self,
        repo: SettingsRepositoryProtocol | None = None,
        periods: PeriodApplicationService | None = None,
    ) -> None:
        self._repo: SettingsRepositoryProtocol = repo or SettingsRepository()
        self._periods = periods or PeriodApplicationService(settings_repo=self._repo)

    async def _get_owned(
        self, db: AsyncSession, target_id: str, requester_id: str
    ) -> ForecastSettings:
        target = await self._repo.get(db, target_id)
        if target is None:
            raise NotConfiguredError(target_id)
        if target.owner_user_id != requester_id:
            raise NotTargetOwnerError(target_id)
        return target

    async def _ensure_period(self, db: AsyncSession, target: ForecastSettings, now: datetime) -> None:
        """Open the first period when the target is active, has a baseline and no
        unsettled period. A RESOLVING period is rolled over by settlement instead.
        """
        if not target.is_active or target.cached_mrr is None:
            return
        try:
            await self._periods.open_period_in_tx(db, target, None, now)
        except AlreadyOpenError:
            pass

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    async def enable_forecasting(
        self,
        db: AsyncSession,
        target_id: str,
        target_kind: str,
        owner_id: str,
        min_stake: int,
        max_stake: int,
        now: datetime | None = None,
    ) -> SettingsResponse:
        validate_stake_bounds(min_stake, max_stake, app_settings.MAX_STAKE_CEILING)
        now = now or utc_now()
        try:
            target = await self._repo.enable(
                db, target_id, target_kind, owner_id, min_stake, max_stake
            )
            if target is None:
                raise NotTargetOwnerError(target_id)
            await self._ensure_period(db, target, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Forecasting enabled: target=%s owner=%s", target_id, owner_id)
        return SettingsResponse.from_domain(target)

    async def get_settings(self, db: AsyncSession, target_id: str) -> SettingsResponse:
        target = await self._repo.get(db, target_id)
        if target is None:
            raise NotConfiguredError(target_id)
        return SettingsResponse.from_domain(target)

    async def list_open_markets(
        self,
        db: AsyncSession,
        viewer_id: str,
        target_kind: str | None,
        cursor: str | None,
        limit: int,
    ) -> SettingsListResponse:
        """Targets accepting bets, excluding the viewer's own, in target_id order."""
        rows = await self._repo.list_open_markets(db, viewer_id, target_kind, cursor, limit + 1)
        has_more = len(rows) > limit
        page = rows[:limit]
        return SettingsListResponse(
            items=[SettingsResponse.from_domain(t) for t in page],
            next_cursor=page[-1].target_id if has_more and page else None,
            has_more=has_more,
        )

    async def set_active(
        self,
        db: AsyncSession,
        target_id: str,
        requester_id: str,
        is_active: bool,
        now: datetime | None = None,
    ) -> SettingsResponse:
        now = now or utc_now()
        try:
            await self._get_owned(db, target_id, requester_id)
            target = await self._repo.set_active(db, target_id, is_active)
            if target is None:
                raise NotConfiguredError(target_id)
            # Deactivating leaves existing periods and bets alone
            await self._ensure_period(db, target, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return SettingsResponse.from_domain(target)

    async def set_stake_bounds(
        self,
        db: AsyncSession,
        target_id: str,
        requester_id: str,
        min_stake: int,
        max_stake: int,
    ) -> SettingsResponse:
        try:
            await self._get_owned(db, target_id, requester_id)
            validate_stake_bounds(min_stake, max_stake, app_settings.MAX_STAKE_CEILING)
            target = await self._repo.set_stake_bounds(db, target_id, min_stake, max_stake)
            if target is None:
                raise NotConfiguredError(target_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return SettingsResponse.from_domain(target)

    # ------------------------------------------------------------------
    # Collaborator signals
    # ------------------------------------------------------------------

    async def update_verified_mrr(
        self,
        db: AsyncSession,
        target_id: str,
        mrr: int,
        observed_at: datetime,
        now: datetime | None = None,
    ) -> SettingsResponse:
        """Last write wins; an older observed_at still overwrites."""
        now = now or utc_now()
        try:
            target = await self._repo.update_mrr(db, target_id, mrr, observed_at)
            if target is None:
                raise NotConfiguredError(target_id)
            await self._ensure_period(db, target, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Verified MRR updated: target=%s mrr=%d observed_at=%s", target_id, mrr, observed_at)
        return SettingsResponse.from_domain(target)

    async def on_connect(self, db: AsyncSession, target_id: str) -> SettingsResponse:
        return await self._set_connection(db, target_id, ConnectionStatus.CONNECTED)

    async def on_disconnect(self, db: AsyncSession, target_id: str) -> SettingsResponse:
        return await self._set_connection(db, target_id, ConnectionStatus.DISCONNECTED)

    async def _set_connection(
        self, db: AsyncSession, target_id: str, status: ConnectionStatus
    ) -> SettingsResponse:
        try:
            target = await self._repo.set_connection_status(db, target_id, status)
            if target is None:
                raise NotConfiguredError(target_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Revenue source %s: target=%s", status.value, target_id)
        return SettingsResponse.from_domain(target)
