"""Period resolution — pure function, no I/O.

Given a claimed period, its PENDING bets and the observation taken at claim
time, compute every bet's terminal outcome and the coin credits it implies:

    VOID  (period unresolvable)   -> refund stake (house fee included)
    WON   (threshold met)         -> credit net_stake * WIN_MULTIPLIER
    LOST                          -> nothing; the stake stays with the house

Threshold tests are exact integer comparisons (see fm_common.coins.bet_wins);
actual_bps is the floored change kept for display only.

Bets already terminal are ignored, so resolving the same input twice yields
no credits the second time.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime

from src.fm_bet.domain.models import Bet
from src.fm_common.coins import bet_wins, change_bps
from src.fm_common.enums import BetStatus, CoinEntryType, PeriodState, VoidReason
from src.fm_period.domain.models import ForecastPeriod


@dataclass(frozen=True)
class Credit:
    user_id: str
    amount: int
    entry_type: str       # CoinEntryType value
    bet_id: str


@dataclass
class Resolution:
    period: ForecastPeriod                         # RESOLVED snapshot
    bets: list[Bet] = field(default_factory=list)  # newly terminal bets only
    credits: list[Credit] = field(default_factory=list)

    def credit_for(self, bet_id: str) -> Credit | None:
        for c in self.credits:
            if c.bet_id == bet_id:
                return c
        return None

    @property
    def is_void(self) -> bool:
        return self.period.void_reason is not None


def resolve_bet(
    bet: Bet,
    baseline_mrr: int,
    ending_mrr: int | None,
    void_reason: str | None,
    now: datetime,
    win_multiplier: int,
) -> tuple[Bet, Credit | None]:
    """Terminal outcome for one PENDING bet."""
    if void_reason is not None or ending_mrr is None:
        voided = replace(bet, status=BetStatus.VOID.value, resolved_at=now)
        return voided, Credit(bet.bettor_id, bet.stake_coins, CoinEntryType.BET_VOID_REFUND.value, bet.id)

    actual = change_bps(baseline_mrr, ending_mrr)
    if bet_wins(bet.direction, bet.target_bps, baseline_mrr, ending_mrr):
        winnings = bet.net_stake_coins * win_multiplier
        won = replace(
            bet, status=BetStatus.WON.value, actual_bps=actual, winnings=winnings, resolved_at=now
        )
        return won, Credit(bet.bettor_id, winnings, CoinEntryType.BET_PAYOUT.value, bet.id)

    lost = replace(bet, status=BetStatus.LOST.value, actual_bps=actual, winnings=0, resolved_at=now)
    return lost, None


def resolve(
    period: ForecastPeriod,
    bets: list[Bet],
    ending_mrr: int | None,
    void_reason: str | None,
    now: datetime,
    win_multiplier: int = 2,
) -> Resolution:
    if void_reason is None and ending_mrr is not None and period.baseline_mrr <= 0:
        void_reason = VoidReason.ZERO_BASELINE.value
    if void_reason is not None:
        ending_mrr = None
    elif ending_mrr is None:
        void_reason = VoidReason.NO_MRR.value

    resolution = Resolution(
        period=replace(
            period,
            state=PeriodState.RESOLVED.value,
            ending_mrr=ending_mrr,
            void_reason=void_reason,
            resolved_at=now,
        )
    )
    for bet in bets:
        if bet.is_terminal or bet.period_id != period.id:
            continue
        resolved, credit = resolve_bet(
            bet, period.baseline_mrr, ending_mrr, void_reason, now, win_multiplier
        )
        resolution.bets.append(resolved)
        if credit is not None:
            resolution.credits.append(credit)
    return resolution
