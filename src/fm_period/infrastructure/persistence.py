"""PeriodRepository — raw SQL persistence for forecast_periods.

State transitions are compare-and-set UPDATEs on the current state:

    OPEN --lock_expired--> LOCKED --claim--> RESOLVING --finalize--> RESOLVED

A transition that returns no row lost the race (or was already done) and the
caller decides whether that is an error.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_period.domain.models import ForecastPeriod

_COLUMNS = """
    id, target_id, period_key, state, starts_at, ends_at,
    baseline_mrr, ending_mrr, void_reason, claimed_at, resolved_at,
    created_at, updated_at
"""

# ON CONFLICT DO NOTHING covers both uq_forecast_periods_one_unsettled and
# uq_forecast_periods_target_key without aborting the surrounding transaction.
_INSERT_SQL = text(f"""
    INSERT INTO forecast_periods
        (id, target_id, period_key, state, starts_at, ends_at, baseline_mrr)
    VALUES
        (:id, :target_id, :period_key, 'OPEN', :starts_at, :ends_at, :baseline_mrr)
    ON CONFLICT DO NOTHING
    RETURNING {_COLUMNS}
""")

_GET_BY_ID_SQL = text(f"SELECT {_COLUMNS} FROM forecast_periods WHERE id = :id")

_GET_FOR_SHARE_SQL = text(f"""
    SELECT {_COLUMNS} FROM forecast_periods
    WHERE id = :id
    FOR SHARE
""")

_GET_ACTIVE_SQL = text(f"""
    SELECT {_COLUMNS} FROM forecast_periods
    WHERE target_id = :target_id AND state IN ('OPEN', 'LOCKED')
""")

# A RESOLVING period still blocks a new one: its successor is opened by
# settlement, from the ending MRR, once every bet is settled.
_GET_UNSETTLED_SQL = text(f"""
    SELECT {_COLUMNS} FROM forecast_periods
    WHERE target_id = :target_id AND state IN ('OPEN', 'LOCKED', 'RESOLVING')
""")

_GET_OPEN_FOR_SHARE_SQL = text(f"""
    SELECT {_COLUMNS} FROM forecast_periods
    WHERE target_id = :target_id AND state = 'OPEN'
    FOR SHARE
""")

_LIST_FOR_TARGET_SQL = text(f"""
    SELECT {_COLUMNS} FROM forecast_periods
    WHERE target_id = :target_id
    ORDER BY starts_at DESC
    LIMIT :limit
""")

_LOCK_EXPIRED_SQL = text(f"""
    UPDATE forecast_periods
    SET state = 'LOCKED'
    WHERE state = 'OPEN' AND ends_at <= :now
    RETURNING {_COLUMNS}
""")

_CLAIM_SQL = text(f"""
    UPDATE forecast_periods
    SET state = 'RESOLVING',
        claimed_at = :now,
        ending_mrr = :ending_mrr,
        void_reason = :void_reason
    WHERE id = :id AND state = 'LOCKED'
    RETURNING {_COLUMNS}
""")

_RECLAIM_STALE_SQL = text(f"""
    UPDATE forecast_periods
    SET claimed_at = :now
    WHERE id = :id AND state = 'RESOLVING' AND claimed_at < :stale_before
    RETURNING {_COLUMNS}
""")

_LIST_LOCKED_IDS_SQL = text("""
    SELECT id FROM forecast_periods
    WHERE state = 'LOCKED'
    ORDER BY ends_at
""")

_LIST_STALE_RESOLVING_IDS_SQL = text("""
    SELECT id FROM forecast_periods
    WHERE state = 'RESOLVING' AND claimed_at < :stale_before
    ORDER BY claimed_at
""")

_FINALIZE_SQL = text(f"""
    UPDATE forecast_periods
    SET state = 'RESOLVED', resolved_at = :now
    WHERE id = :id
      AND state = 'RESOLVING'
      AND NOT EXISTS (
          SELECT 1 FROM bets WHERE period_id = :id AND status = 'PENDING'
      )
    RETURNING {_COLUMNS}
""")


def _row_to_period(row: Any) -> ForecastPeriod:
    return ForecastPeriod(
        id=row.id,
        target_id=row.target_id,
        period_key=row.period_key,
        state=row.state,
        starts_at=row.starts_at,
        ends_at=row.ends_at,
        baseline_mrr=row.baseline_mrr,
        ending_mrr=row.ending_mrr,
        void_reason=row.void_reason,
        claimed_at=row.claimed_at,
        resolved_at=row.resolved_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _one_or_none(result: Any) -> ForecastPeriod | None:
    row = result.fetchone()
    return _row_to_period(row) if row else None


class PeriodRepository:
    async def insert(self, db: AsyncSession, period: ForecastPeriod) -> ForecastPeriod | None:
        """Insert an OPEN period. None when the target already has one."""
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": period.id,
                "target_id": period.target_id,
                "period_key": period.period_key,
                "starts_at": period.starts_at,
                "ends_at": period.ends_at,
                "baseline_mrr": period.baseline_mrr,
            },
        )
        return _one_or_none(result)

    async def get_by_id(self, db: AsyncSession, period_id: str) -> ForecastPeriod | None:
        return _one_or_none(await db.execute(_GET_BY_ID_SQL, {"id": period_id}))

    async def get_active(self, db: AsyncSession, target_id: str) -> ForecastPeriod | None:
        return _one_or_none(await db.execute(_GET_ACTIVE_SQL, {"target_id": target_id}))

    async def get_unsettled(self, db: AsyncSession, target_id: str) -> ForecastPeriod | None:
        return _one_or_none(await db.execute(_GET_UNSETTLED_SQL, {"target_id": target_id}))

    async def get_open_for_share(
        self, db: AsyncSession, target_id: str
    ) -> ForecastPeriod | None:
        """OPEN period with a share lock: the lock tick blocks until our commit."""
        return _one_or_none(
            await db.execute(_GET_OPEN_FOR_SHARE_SQL, {"target_id": target_id})
        )

    async def get_for_share(self, db: AsyncSession, period_id: str) -> ForecastPeriod | None:
        return _one_or_none(await db.execute(_GET_FOR_SHARE_SQL, {"id": period_id}))

    async def list_for_target(
        self, db: AsyncSession, target_id: str, limit: int
    ) -> list[ForecastPeriod]:
        result = await db.execute(
            _LIST_FOR_TARGET_SQL, {"target_id": target_id, "limit": limit}
        )
        return [_row_to_period(row) for row in result.fetchall()]

    async def lock_expired(self, db: AsyncSession, now: datetime) -> list[ForecastPeriod]:
        result = await db.execute(_LOCK_EXPIRED_SQL, {"now": now})
        return [_row_to_period(row) for row in result.fetchall()]

    async def claim(
        self,
        db: AsyncSession,
        period_id: str,
        now: datetime,
        ending_mrr: int | None,
        void_reason: str | None,
    ) -> ForecastPeriod | None:
        result = await db.execute(
            _CLAIM_SQL,
            {
                "id": period_id,
                "now": now,
                "ending_mrr": ending_mrr,
                "void_reason": void_reason,
            },
        )
        return _one_or_none(result)

    async def reclaim_stale(
        self, db: AsyncSession, period_id: str, now: datetime, stale_before: datetime
    ) -> ForecastPeriod | None:
        result = await db.execute(
            _RECLAIM_STALE_SQL,
            {"id": period_id, "now": now, "stale_before": stale_before},
        )
        return _one_or_none(result)

    async def list_locked_ids(self, db: AsyncSession) -> list[str]:
        result = await db.execute(_LIST_LOCKED_IDS_SQL)
        return [row.id for row in result.fetchall()]

    async def list_stale_resolving_ids(
        self, db: AsyncSession, stale_before: datetime
    ) -> list[str]:
        result = await db.execute(
            _LIST_STALE_RESOLVING_IDS_SQL, {"stale_before": stale_before}
        )
        return [row.id for row in result.fetchall()]

    async def finalize(
        self, db: AsyncSession, period_id: str, now: datetime
    ) -> ForecastPeriod | None:
        """RESOLVING -> RESOLVED, only once no PENDING bet remains."""
        return _one_or_none(await db.execute(_FINALIZE_SQL, {"id": period_id, "now": now}))
