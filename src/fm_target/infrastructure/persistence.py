"""SettingsRepository — raw SQL persistence for forecast_settings.

Every write returns the row it changed; `None` means the target is not
configured (or, for `enable`, that another user already owns it).
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_target.domain.models import ForecastSettings

_COLUMNS = """
    target_id, target_kind, owner_user_id, is_active, min_stake, max_stake,
    connection_status, cached_mrr, cached_mrr_at, created_at, updated_at
"""

_GET_SQL = text(f"SELECT {_COLUMNS} FROM forecast_settings WHERE target_id = :target_id")

# Re-enabling by the same owner reactivates and replaces the bounds; the
# WHERE on the conflict branch makes a foreign owner's upsert return 0 rows.
_ENABLE_SQL = text(f"""
    INSERT INTO forecast_settings
        (target_id, target_kind, owner_user_id, is_active, min_stake, max_stake)
    VALUES
        (:target_id, :target_kind, :owner_user_id, TRUE, :min_stake, :max_stake)
    ON CONFLICT (target_id) DO UPDATE
    SET is_active = TRUE,
        min_stake = EXCLUDED.min_stake,
        max_stake = EXCLUDED.max_stake
    WHERE forecast_settings.owner_user_id = EXCLUDED.owner_user_id
    RETURNING {_COLUMNS}
""")

_SET_ACTIVE_SQL = text(f"""
    UPDATE forecast_settings
    SET is_active = :is_active
    WHERE target_id = :target_id
    RETURNING {_COLUMNS}
""")

_SET_BOUNDS_SQL = text(f"""
    UPDATE forecast_settings
    SET min_stake = :min_stake, max_stake = :max_stake
    WHERE target_id = :target_id
    RETURNING {_COLUMNS}
""")

_UPDATE_MRR_SQL = text(f"""
    UPDATE forecast_settings
    SET cached_mrr = :mrr,
        cached_mrr_at = :observed_at,
        connection_status = 'CONNECTED'
    WHERE target_id = :target_id
    RETURNING {_COLUMNS}
""")

_SET_CONNECTION_SQL = text(f"""
    UPDATE forecast_settings
    SET connection_status = :status
    WHERE target_id = :target_id
    RETURNING {_COLUMNS}
""")

# Targets a viewer can bet on: active, connected and not their own
_LIST_OPEN_MARKETS_SQL = text(f"""
    SELECT {_COLUMNS} FROM forecast_settings
    WHERE is_active AND connection_status = 'CONNECTED'
      AND owner_user_id <> :viewer_id
      AND (CAST(:target_kind AS TEXT) IS NULL OR target_kind = CAST(:target_kind AS TEXT))
      AND (CAST(:cursor AS TEXT) IS NULL OR target_id > CAST(:cursor AS TEXT))
    ORDER BY target_id
    LIMIT :limit
""")


def _row_to_settings(row: Any) -> ForecastSettings:
    return ForecastSettings(
        target_id=row.target_id,
        target_kind=row.target_kind,
        owner_user_id=row.owner_user_id,
        is_active=row.is_active,
        min_stake=row.min_stake,
        max_stake=row.max_stake,
        connection_status=row.connection_status,
        cached_mrr=row.cached_mrr,
        cached_mrr_at=row.cached_mrr_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _one_or_none(result: Any) -> ForecastSettings | None:
    row = result.fetchone()
    return _row_to_settings(row) if row else None


class SettingsRepository:
    async def get(self, db: AsyncSession, target_id: str) -> ForecastSettings | None:
        return _one_or_none(await db.execute(_GET_SQL, {"target_id": target_id}))

    async def enable(
        self,
        db: AsyncSession,
        target_id: str,
        target_kind: str,
        owner_user_id: str,
        min_stake: int,
        max_stake: int,
    ) -> ForecastSettings | None:
        result = await db.execute(
            _ENABLE_SQL,
            {
                "target_id": target_id,
                "target_kind": target_kind,
                "owner_user_id": owner_user_id,
                "min_stake": min_stake,
                "max_stake": max_stake,
            },
        )
        return _one_or_none(result)

    async def set_active(
        self, db: AsyncSession, target_id: str, is_active: bool
    ) -> ForecastSettings | None:
        result = await db.execute(
            _SET_ACTIVE_SQL, {"target_id": target_id, "is_active": is_active}
        )
        return _one_or_none(result)

    async def set_stake_bounds(
        self, db: AsyncSession, target_id: str, min_stake: int, max_stake: int
    ) -> ForecastSettings | None:
        result = await db.execute(
            _SET_BOUNDS_SQL,
            {"target_id": target_id, "min_stake": min_stake, "max_stake": max_stake},
        )
        return _one_or_none(result)

    async def update_mrr(
        self, db: AsyncSession, target_id: str, mrr: int, observed_at: datetime
    ) -> ForecastSettings | None:
        result = await db.execute(
            _UPDATE_MRR_SQL,
            {"target_id": target_id, "mrr": mrr, "observed_at": observed_at},
        )
        return _one_or_none(result)

    async def set_connection_status(
        self, db: AsyncSession, target_id: str, status: str
    ) -> ForecastSettings | None:
        result = await db.execute(
            _SET_CONNECTION_SQL, {"target_id": target_id, "status": status}
        )
        return _one_or_none(result)

    async def list_open_markets(
        self,
        db: AsyncSession,
        viewer_id: str,
        target_kind: str | None,
        cursor: str | None,
        limit: int,
    ) -> list[ForecastSettings]:
        result = await db.execute(
            _LIST_OPEN_MARKETS_SQL,
            {
                "viewer_id": viewer_id,
                "target_kind": target_kind,
                "cursor": cursor,
                "limit": limit,
            },
        )
        return [_row_to_settings(row) for row in result.fetchall()]
