# src/fm_settlement/domain/global_invariants.py
"""Global coin conservation and structural invariants.

Every coin that exists is either in a balance, escrowed in a PENDING bet, or
kept by the house (fees of decided bets plus the net stake of LOST bets).
Coins enter only through issuance and through the WON multiplier:

    balances + pending_stakes + fees(WON, LOST) + net(LOST)
        == issuance(GRANT, WELCOME_BONUS, DAILY_BONUS) + net(WON)

A WON bet returns its net stake plus an equal profit, so net(WON) counts the
coins the multiplier created (for the default multiplier of 2).
"""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_BALANCES_SQL = text("SELECT COALESCE(SUM(balance), 0) FROM coin_accounts")
_PENDING_STAKES_SQL = text(
    "SELECT COALESCE(SUM(stake_coins), 0) FROM bets WHERE status = 'PENDING'"
)
_HOUSE_FEES_SQL = text(
    "SELECT COALESCE(SUM(house_fee_coins), 0) FROM bets WHERE status IN ('WON', 'LOST')"
)
_LOST_NET_SQL = text(
    "SELECT COALESCE(SUM(net_stake_coins), 0) FROM bets WHERE status = 'LOST'"
)
_WON_PROFIT_SQL = text("""
    SELECT COALESCE(SUM(winnings - net_stake_coins), 0) FROM bets WHERE status = 'WON'
""")
_ISSUANCE_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM coin_ledger_entries
    WHERE entry_type IN ('GRANT', 'WELCOME_BONUS', 'DAILY_BONUS')
""")
_NEGATIVE_BALANCES_SQL = text("SELECT COUNT(*) FROM coin_accounts WHERE balance < 0")
_MULTI_ACTIVE_PERIODS_SQL = text("""
    SELECT target_id, COUNT(*) AS n
    FROM forecast_periods
    WHERE state IN ('OPEN', 'LOCKED')
    GROUP BY target_id
    HAVING COUNT(*) > 1
""")


async def verify_global_invariants(db: AsyncSession) -> list[str]:
    """Check conservation, non-negative balances and one active period per target.

    Returns a list of violation strings (empty when healthy).
    """
    violations: list[str] = []
    balances = (await db.execute(_BALANCES_SQL)).scalar_one()
    pending = (await db.execute(_PENDING_STAKES_SQL)).scalar_one()
    fees = (await db.execute(_HOUSE_FEES_SQL)).scalar_one()
    lost_net = (await db.execute(_LOST_NET_SQL)).scalar_one()
    won_profit = (await db.execute(_WON_PROFIT_SQL)).scalar_one()
    issuance = (await db.execute(_ISSUANCE_SQL)).scalar_one()

    held = balances + pending + fees + lost_net
    created = issuance + won_profit
    if held != created:
        msg = (
            f"Coin conservation violated: balances({balances}) + pending({pending}) "
            f"+ fees({fees}) + lost_net({lost_net}) = {held} "
            f"!= issuance({issuance}) + won_profit({won_profit}) = {created}"
        )
        violations.append(msg)
        logger.error(msg)

    negative = (await db.execute(_NEGATIVE_BALANCES_SQL)).scalar_one()
    if negative:
        msg = f"{negative} coin account(s) with negative balance"
        violations.append(msg)
        logger.error(msg)

    for row in (await db.execute(_MULTI_ACTIVE_PERIODS_SQL)).fetchall():
        msg = f"Target {row.target_id} has {row.n} OPEN/LOCKED periods"
        violations.append(msg)
        logger.error(msg)
    return violations
