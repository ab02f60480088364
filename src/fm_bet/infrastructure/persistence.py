# src/fm_bet/infrastructure/persistence.py
"""BetRepository — raw SQL persistence implementation.

A bet leaves PENDING exactly once: `cancel` and `resolve` are conditional on
`status = 'PENDING'` and return None when someone else got there first.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_bet.domain.models import Bet, BettorStats, TargetMarketStats
from src.fm_common.errors import InternalError

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, client_bet_id, bettor_id, target_id, target_kind, period_id,
    direction, target_bps, stake_coins, house_fee_coins, net_stake_coins,
    status, actual_bps, winnings, created_at, resolved_at, updated_at
"""

_INSERT_BET_SQL = text(f"""
    INSERT INTO bets (id, client_bet_id, bettor_id, target_id, target_kind, period_id,
        direction, target_bps, stake_coins, house_fee_coins, net_stake_coins, status)
    VALUES (:id, :client_bet_id, :bettor_id, :target_id, :target_kind, :period_id,
        :direction, :target_bps, :stake_coins, :house_fee_coins, :net_stake_coins, 'PENDING')
    RETURNING {_SELECT_COLUMNS}
""")

_GET_BY_ID_SQL = text(f"SELECT {_SELECT_COLUMNS} FROM bets WHERE id = :id")

_GET_BY_CLIENT_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM bets WHERE bettor_id = :bettor_id AND client_bet_id = :client_bet_id
""")

_GET_PENDING_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM bets
    WHERE bettor_id = :bettor_id AND target_id = :target_id
      AND period_id = :period_id AND status = 'PENDING'
""")

_LIST_PENDING_FOR_PERIOD_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM bets
    WHERE period_id = :period_id AND status = 'PENDING'
    ORDER BY CAST(id AS BIGINT)
""")

_CANCEL_SQL = text(f"""
    UPDATE bets
    SET status = 'CANCELLED', resolved_at = :now
    WHERE id = :id AND status = 'PENDING'
    RETURNING {_SELECT_COLUMNS}
""")

_RESOLVE_SQL = text(f"""
    UPDATE bets
    SET status = :status, actual_bps = :actual_bps, winnings = :winnings,
        resolved_at = :resolved_at
    WHERE id = :id AND status = 'PENDING'
    RETURNING {_SELECT_COLUMNS}
""")

# Snowflake ids are stored as text; ordering and the cursor compare them as
# numbers so an id that gains a digit does not sort before shorter ones.
_LIST_BY_BETTOR_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM bets
    WHERE bettor_id = :bettor_id
      AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
      AND (CAST(:target_id AS TEXT) IS NULL OR target_id = CAST(:target_id AS TEXT))
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR CAST(id AS BIGINT) < CAST(:cursor_id AS BIGINT))
    ORDER BY CAST(id AS BIGINT) DESC
    LIMIT :limit
""")

# total_staked leaves out refunded stakes (CANCELLED, VOID)
_TARGET_STATS_SQL = text("""
    SELECT
        COUNT(*) AS total_bets,
        COALESCE(SUM(net_stake_coins) FILTER (WHERE status IN ('PENDING', 'WON', 'LOST')), 0)
            AS total_staked,
        COUNT(*) FILTER (WHERE status = 'PENDING') AS active_bets
    FROM bets
    WHERE target_id = :target_id
""")

_STATS_COLUMNS = """
    COUNT(*) AS total_bets,
    COUNT(*) FILTER (WHERE status = 'PENDING') AS pending,
    COUNT(*) FILTER (WHERE status = 'WON') AS won,
    COUNT(*) FILTER (WHERE status = 'LOST') AS lost,
    COALESCE(SUM(stake_coins) FILTER (WHERE status IN ('PENDING', 'WON', 'LOST')), 0)
        AS total_staked,
    COALESCE(SUM(winnings) FILTER (WHERE status = 'WON'), 0) AS total_winnings
"""

_STATS_SQL = text(f"""
    SELECT CAST(:bettor_id AS TEXT) AS bettor_id, {_STATS_COLUMNS}
    FROM bets
    WHERE bettor_id = :bettor_id
""")

_LEADERBOARD_SQL = text(f"""
    SELECT bettor_id, {_STATS_COLUMNS}
    FROM bets
    GROUP BY bettor_id
    HAVING COUNT(*) FILTER (WHERE status IN ('WON', 'LOST')) > 0
    ORDER BY
        total_winnings DESC,
        COUNT(*) FILTER (WHERE status = 'WON') * 100
            / COUNT(*) FILTER (WHERE status IN ('WON', 'LOST')) DESC,
        bettor_id
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_bet(row: Any) -> Bet:
    """Convert a DB result row to a Bet domain object."""
    return Bet(
        id=row.id,
        client_bet_id=row.client_bet_id,
        bettor_id=row.bettor_id,
        target_id=row.target_id,
        target_kind=row.target_kind,
        period_id=row.period_id,
        direction=row.direction,
        target_bps=row.target_bps,
        stake_coins=row.stake_coins,
        house_fee_coins=row.house_fee_coins,
        net_stake_coins=row.net_stake_coins,
        status=row.status,
        actual_bps=row.actual_bps,
        winnings=row.winnings,
        created_at=row.created_at,
        resolved_at=row.resolved_at,
        updated_at=row.updated_at,
    )


def _row_to_stats(row: Any) -> BettorStats:
    return BettorStats(
        bettor_id=row.bettor_id,
        total_bets=row.total_bets,
        pending=row.pending,
        won=row.won,
        lost=row.lost,
        total_staked=row.total_staked,
        total_winnings=row.total_winnings,
    )


def _one_or_none(result: Any) -> Bet | None:
    row = result.fetchone()
    return _row_to_bet(row) if row else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BetRepository:
    async def insert(self, db: AsyncSession, bet: Bet) -> Bet:
        """Insert a PENDING bet. Unique-index violations surface as IntegrityError."""
        result = await db.execute(
            _INSERT_BET_SQL,
            {
                "id": bet.id,
                "client_bet_id": bet.client_bet_id,
                "bettor_id": bet.bettor_id,
                "target_id": bet.target_id,
                "target_kind": bet.target_kind,
                "period_id": bet.period_id,
                "direction": bet.direction,
                "target_bps": bet.target_bps,
                "stake_coins": bet.stake_coins,
                "house_fee_coins": bet.house_fee_coins,
                "net_stake_coins": bet.net_stake_coins,
            },
        )
        inserted = _one_or_none(result)
        if inserted is None:
            raise InternalError("Bet insert returned no rows")
        return inserted

    async def get_by_id(self, db: AsyncSession, bet_id: str) -> Bet | None:
        return _one_or_none(await db.execute(_GET_BY_ID_SQL, {"id": bet_id}))

    async def get_by_client_bet_id(
        self, db: AsyncSession, bettor_id: str, client_bet_id: str
    ) -> Bet | None:
        result = await db.execute(
            _GET_BY_CLIENT_ID_SQL, {"bettor_id": bettor_id, "client_bet_id": client_bet_id}
        )
        return _one_or_none(result)

    async def get_pending(
        self, db: AsyncSession, bettor_id: str, target_id: str, period_id: str
    ) -> Bet | None:
        result = await db.execute(
            _GET_PENDING_SQL,
            {"bettor_id": bettor_id, "target_id": target_id, "period_id": period_id},
        )
        return _one_or_none(result)

    async def list_pending_for_period(self, db: AsyncSession, period_id: str) -> list[Bet]:
        result = await db.execute(_LIST_PENDING_FOR_PERIOD_SQL, {"period_id": period_id})
        return [_row_to_bet(row) for row in result.fetchall()]

    async def cancel(self, db: AsyncSession, bet_id: str, now: datetime) -> Bet | None:
        return _one_or_none(await db.execute(_CANCEL_SQL, {"id": bet_id, "now": now}))

    async def resolve(self, db: AsyncSession, bet: Bet) -> Bet | None:
        """Persist a terminal outcome computed in memory; None if no longer PENDING."""
        result = await db.execute(
            _RESOLVE_SQL,
            {
                "id": bet.id,
                "status": bet.status,
                "actual_bps": bet.actual_bps,
                "winnings": bet.winnings,
                "resolved_at": bet.resolved_at,
            },
        )
        return _one_or_none(result)

    async def list_by_bettor(
        self,
        db: AsyncSession,
        bettor_id: str,
        status: str | None,
        cursor_id: str | None,
        limit: int,
        target_id: str | None = None,
    ) -> list[Bet]:
        result = await db.execute(
            _LIST_BY_BETTOR_SQL,
            {
                "bettor_id": bettor_id,
                "status": status,
                "target_id": target_id,
                "cursor_id": int(cursor_id) if cursor_id is not None else None,
                "limit": limit,
            },
        )
        return [_row_to_bet(row) for row in result.fetchall()]

    async def get_stats(self, db: AsyncSession, bettor_id: str) -> BettorStats:
        result = await db.execute(_STATS_SQL, {"bettor_id": bettor_id})
        return _row_to_stats(result.fetchone())

    async def get_target_stats(self, db: AsyncSession, target_id: str) -> TargetMarketStats:
        row = (await db.execute(_TARGET_STATS_SQL, {"target_id": target_id})).fetchone()
        return TargetMarketStats(
            target_id=target_id,
            total_bets=row.total_bets,
            total_staked=row.total_staked,
            active_bets=row.active_bets,
        )

    async def leaderboard(self, db: AsyncSession, limit: int) -> list[BettorStats]:
        result = await db.execute(_LEADERBOARD_SQL, {"limit": limit})
        return [_row_to_stats(row) for row in result.fetchall()]
