"""Domain models for fm_period — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.fm_common.enums import PeriodState, VoidReason
from src.fm_target.domain.models import ForecastSettings


@dataclass
class ForecastPeriod:
    id: str
    target_id: str
    period_key: str                  # calendar quarter, e.g. "2026-Q4"
    state: str                       # PeriodState value
    starts_at: datetime
    ends_at: datetime                # last instant of the quarter
    baseline_mrr: int                # cents
    ending_mrr: int | None = None    # set at claim when resolvable
    void_reason: str | None = None   # set at claim when unresolvable
    claimed_at: datetime | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.state == PeriodState.OPEN

    @property
    def next_baseline(self) -> int:
        """Baseline for the following period: the ending value, or carry over if void."""
        return self.ending_mrr if self.ending_mrr is not None else self.baseline_mrr


@dataclass(frozen=True)
class Observation:
    """Ending MRR as read at claim time; exactly one of the two fields is set."""

    ending_mrr: int | None
    void_reason: str | None


def take_observation(period: ForecastPeriod, settings: ForecastSettings) -> Observation:
    if period.baseline_mrr <= 0:
        return Observation(None, VoidReason.ZERO_BASELINE.value)
    if not settings.is_connected:
        return Observation(None, VoidReason.DISCONNECTED.value)
    if settings.cached_mrr is None:
        return Observation(None, VoidReason.NO_MRR.value)
    return Observation(settings.cached_mrr, None)
