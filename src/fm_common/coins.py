"""Integer arithmetic for coins and percentages.

Coins and MRR (cents) are int. Percentages are int basis points
(1 bp = 0.01%, +10% = 1000). No float, no Decimal in any ledger path.
"""

from src.fm_common.enums import BetDirection

BPS_PER_UNIT = 10000  # 100% expressed in bp


def calc_house_fee(stake: int, fee_bps: int) -> int:
    """Ceiling division so the fee never rounds down to zero on small stakes.

    fee = ceil(stake * fee_bps / 10000)
    """
    if stake == 0 or fee_bps == 0:
        return 0
    return (stake * fee_bps + BPS_PER_UNIT - 1) // BPS_PER_UNIT


def split_stake(stake: int, fee_bps: int) -> tuple[int, int]:
    """Return (house_fee, net_stake); the two always sum to stake."""
    fee = calc_house_fee(stake, fee_bps)
    return fee, stake - fee


def change_bps(baseline: int, ending: int) -> int:
    """Realized MRR change in bp, floored. baseline must be > 0."""
    if baseline <= 0:
        raise ValueError(f"baseline must be positive, got {baseline}")
    return (ending - baseline) * BPS_PER_UNIT // baseline


def bet_wins(direction: str, target_bps: int, baseline: int, ending: int) -> bool:
    """Exact comparison of the realized change against the threshold.

    LONG wins iff change >= target; SHORT wins iff change <= target.
    Cross-multiplied so no rounding ever flips an outcome.
    """
    if baseline <= 0:
        raise ValueError(f"baseline must be positive, got {baseline}")
    realized = (ending - baseline) * BPS_PER_UNIT
    threshold = target_bps * baseline
    if direction == BetDirection.LONG:
        return realized >= threshold
    return realized <= threshold


def bps_to_display(bps: int) -> str:
    """1500 -> '+15.00%', -525 -> '-5.25%', 0 -> '+0.00%'."""
    sign = "-" if bps < 0 else "+"
    magnitude = abs(bps)
    return f"{sign}{magnitude // 100}.{magnitude % 100:02d}%"


def coins_to_display(coins: int) -> str:
    """12345 -> '12,345 coins'."""
    unit = "coin" if abs(coins) == 1 else "coins"
    return f"{coins:,} {unit}"


def cents_to_display(cents: int) -> str:
    """MRR cents -> '$1,150.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"
