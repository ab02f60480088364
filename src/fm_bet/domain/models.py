"""Domain models for fm_bet — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.fm_common.enums import TERMINAL_BET_STATUSES, BetStatus


@dataclass
class Bet:
    id: str                          # snowflake
    bettor_id: str
    target_id: str
    target_kind: str                 # TargetKind value
    period_id: str
    direction: str                   # BetDirection value
    target_bps: int                  # signed threshold, basis points
    stake_coins: int
    house_fee_coins: int
    net_stake_coins: int             # stake_coins - house_fee_coins
    status: str = BetStatus.PENDING
    client_bet_id: str | None = None
    actual_bps: int | None = None    # realized change, set on WON/LOST
    winnings: int | None = None      # WON: net * multiplier, LOST: 0
    created_at: datetime | None = None
    resolved_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_BET_STATUSES


@dataclass
class BettorStats:
    bettor_id: str
    total_bets: int
    pending: int
    won: int
    lost: int
    total_staked: int
    total_winnings: int

    @property
    def win_rate_pct(self) -> int:
        """won / (won + lost) as an integer percent; 0 before any decided bet."""
        decided = self.won + self.lost
        return self.won * 100 // decided if decided else 0


@dataclass
class TargetMarketStats:
    """Activity on one target across all periods."""

    target_id: str
    total_bets: int
    total_staked: int                # net stake of bets not refunded
    active_bets: int                 # PENDING
