"""Pydantic schemas for the fm_bet API."""

from pydantic import BaseModel, Field

from src.fm_bet.domain.models import Bet, BettorStats, TargetMarketStats
from src.fm_common.coins import bps_to_display, coins_to_display
from src.fm_common.enums import BetDirection

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PlaceBetRequest(BaseModel):
    target_id: str = Field(..., min_length=1, max_length=64)
    direction: BetDirection
    # Range and stake bounds are enforced by the service with typed errors
    target_percentage_bps: int = Field(..., description="Threshold change in bp, +10% = 1000")
    stake_coins: int
    client_bet_id: str | None = Field(None, min_length=1, max_length=64)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BetResponse(BaseModel):
    id: str
    client_bet_id: str | None
    target_id: str
    target_kind: str
    period_id: str
    direction: str
    target_percentage_bps: int
    target_percentage_display: str
    stake_coins: int
    house_fee_coins: int
    net_stake_coins: int
    status: str
    actual_percentage_bps: int | None
    actual_percentage_display: str | None
    winnings: int | None
    created_at: str | None
    resolved_at: str | None

    @classmethod
    def from_domain(cls, bet: Bet) -> "BetResponse":
        return cls(
            id=bet.id,
            client_bet_id=bet.client_bet_id,
            target_id=bet.target_id,
            target_kind=bet.target_kind,
            period_id=bet.period_id,
            direction=bet.direction,
            target_percentage_bps=bet.target_bps,
            target_percentage_display=bps_to_display(bet.target_bps),
            stake_coins=bet.stake_coins,
            house_fee_coins=bet.house_fee_coins,
            net_stake_coins=bet.net_stake_coins,
            status=bet.status,
            actual_percentage_bps=bet.actual_bps,
            actual_percentage_display=(
                bps_to_display(bet.actual_bps) if bet.actual_bps is not None else None
            ),
            winnings=bet.winnings,
            created_at=bet.created_at.isoformat() if bet.created_at else None,
            resolved_at=bet.resolved_at.isoformat() if bet.resolved_at else None,
        )


class BetListResponse(BaseModel):
    items: list[BetResponse]
    next_cursor: str | None
    has_more: bool


class BettorStatsResponse(BaseModel):
    bettor_id: str
    total_bets: int
    pending: int
    won: int
    lost: int
    win_rate_pct: int
    total_staked: int
    total_winnings: int
    total_winnings_display: str

    @classmethod
    def from_domain(cls, s: BettorStats) -> "BettorStatsResponse":
        return cls(
            bettor_id=s.bettor_id,
            total_bets=s.total_bets,
            pending=s.pending,
            won=s.won,
            lost=s.lost,
            win_rate_pct=s.win_rate_pct,
            total_staked=s.total_staked,
            total_winnings=s.total_winnings,
            total_winnings_display=coins_to_display(s.total_winnings),
        )


class LeaderboardEntry(BettorStatsResponse):
    rank: int


class TargetMarketResponse(BaseModel):
    target_id: str
    total_bets: int
    total_staked: int
    total_staked_display: str
    active_bets: int
    my_bets: list[BetResponse]

    @classmethod
    def from_domain(cls, stats: TargetMarketStats, my_bets: list[Bet]) -> "TargetMarketResponse":
        return cls(
            target_id=stats.target_id,
            total_bets=stats.total_bets,
            total_staked=stats.total_staked,
            total_staked_display=coins_to_display(stats.total_staked),
            active_bets=stats.active_bets,
            my_bets=[BetResponse.from_domain(b) for b in my_bets],
        )
