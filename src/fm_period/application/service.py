"""PeriodApplicationService — quarter periods per target.

`open_period_in_tx` and `open_next_period` run inside the caller's
transaction (the settings registry opens the first period in the same commit
as the MRR update). Everything else commits or rolls back on its own.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.datetime_utils import next_quarter_key, quarter_bounds, quarter_key, utc_now
from src.fm_common.enums import PeriodState
from src.fm_common.errors import (
    AlreadyClaimedError,
    AlreadyOpenError,
    NoBaselineError,
    NotConfiguredError,
    NotTargetOwnerError,
    PeriodNotFoundError,
)
from src.fm_common.id_generator import generate_id
from src.fm_period.application.schemas import PeriodResponse
from src.fm_period.domain.models import ForecastPeriod, take_observation
from src.fm_period.domain.repository import PeriodRepositoryProtocol
from src.fm_period.infrastructure.persistence import PeriodRepository
from src.fm_target.domain.models import ForecastSettings
from src.fm_target.domain.repository import SettingsRepositoryProtocol
from src.fm_target.infrastructure.persistence import SettingsRepository

logger = logging.getLogger(__name__)


def build_period(target_id: str, baseline_mrr: int, now: datetime) -> ForecastPeriod:
    """Period for the quarter containing `now`, starting now."""
    key = quarter_key(now)
    _, ends_at = quarter_bounds(key)
    if ends_at <= now:
        key = next_quarter_key(key)
        _, ends_at = quarter_bounds(key)
    return ForecastPeriod(
        id=generate_id(),
        target_id=target_id,
        period_key=key,
        state=PeriodState.OPEN.value,
        starts_at=now,
        ends_at=ends_at,
        baseline_mrr=baseline_mrr,
    )


class PeriodApplicationService:
    def __init__(
        self,
        repo: PeriodRepositoryProtocol | None = None,
        settings_repo: SettingsRepositoryProtocol | None = None,
    ) -> None:
        self._repo: PeriodRepositoryProtocol = repo or PeriodRepository()
        self._settings_repo: SettingsRepositoryProtocol = settings_repo or SettingsRepository()

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    async def open_period_in_tx(
        self,
        db: AsyncSession,
        target: ForecastSettings,
        baseline_mrr: int | None,
        now: datetime,
    ) -> ForecastPeriod:
        """Insert the OPEN period; raises AlreadyOpen / NoBaseline. No commit.

        `baseline_mrr` is only passed by the settlement rollover; every other
        opener uses the cached verified MRR. A RESOLVING period counts as
        open until settlement finalizes it.
        """
        if await self._repo.get_unsettled(db, target.target_id) is not None:
            raise AlreadyOpenError(target.target_id)
        baseline = baseline_mrr if baseline_mrr is not None else target.cached_mrr
        if baseline is None:
            raise NoBaselineError(target.target_id)

        inserted = await self._repo.insert(db, build_period(target.target_id, baseline, now))
        if inserted is None:
            # Lost the race against another opener
            raise AlreadyOpenError(target.target_id)
        logger.info(
            "Period opened: target=%s period=%s key=%s baseline=%d",
            target.target_id, inserted.id, inserted.period_key, baseline,
        )
        return inserted

    async def open_period(
        self,
        db: AsyncSession,
        target_id: str,
        requester_id: str,
        now: datetime | None = None,
    ) -> PeriodResponse:
        now = now or utc_now()
        try:
            target = await self._settings_repo.get(db, target_id)
            if target is None:
                raise NotConfiguredError(target_id)
            if target.owner_user_id != requester_id:
                raise NotTargetOwnerError(target_id)
            period = await self.open_period_in_tx(db, target, None, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return PeriodResponse.from_domain(period)

    async def open_next_period(
        self, db: AsyncSession, resolved: ForecastPeriod, now: datetime
    ) -> ForecastPeriod | None:
        """Roll a resolved period over to the next one. No commit.

        Skipped (None) when the target was deactivated or already has a
        period; neither is an error for the settlement run.
        """
        target = await self._settings_repo.get(db, resolved.target_id)
        if target is None or not target.is_active:
            logger.info(
                "Target %s inactive; no period follows %s", resolved.target_id, resolved.id
            )
            return None
        try:
            return await self.open_period_in_tx(db, target, resolved.next_baseline, now)
        except AlreadyOpenError:
            logger.info("Target %s already has an open period", resolved.target_id)
            return None

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def lock_expired_periods(
        self, db: AsyncSession, now: datetime | None = None
    ) -> list[ForecastPeriod]:
        """OPEN periods whose end has passed -> LOCKED. Idempotent."""
        now = now or utc_now()
        try:
            locked = await self._repo.lock_expired(db, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        for p in locked:
            logger.info("Period locked: target=%s period=%s key=%s", p.target_id, p.id, p.period_key)
        return locked

    async def claim_for_resolution(
        self, db: AsyncSession, period_id: str, now: datetime | None = None
    ) -> ForecastPeriod:
        """CAS LOCKED -> RESOLVING, persisting the ending observation.

        The ending MRR (or the reason it is unusable) is fixed here, in the
        claim transaction, so a resumed run settles against the same value.
        """
        now = now or utc_now()
        try:
            period = await self._repo.get_by_id(db, period_id)
            if period is None:
                raise PeriodNotFoundError(period_id)
            if period.state != PeriodState.LOCKED:
                raise AlreadyClaimedError(period_id)
            target = await self._settings_repo.get(db, period.target_id)
            if target is None:
                raise NotConfiguredError(period.target_id)
            observation = take_observation(period, target)
            claimed = await self._repo.claim(
                db, period_id, now, observation.ending_mrr, observation.void_reason
            )
            if claimed is None:
                raise AlreadyClaimedError(period_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Period claimed: period=%s ending_mrr=%s void_reason=%s",
            period_id, claimed.ending_mrr, claimed.void_reason,
        )
        return claimed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_current_period(
        self, db: AsyncSession, target_id: str
    ) -> PeriodResponse | None:
        if await self._settings_repo.get(db, target_id) is None:
            raise NotConfiguredError(target_id)
        period = await self._repo.get_active(db, target_id)
        return PeriodResponse.from_domain(period) if period else None

    async def list_periods(
        self, db: AsyncSession, target_id: str, limit: int
    ) -> list[PeriodResponse]:
        if await self._settings_repo.get(db, target_id) is None:
            raise NotConfiguredError(target_id)
        periods = await self._repo.list_for_target(db, target_id, limit)
        return [PeriodResponse.from_domain(p) for p in periods]
