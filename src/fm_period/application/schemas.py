"""Pydantic schemas for the fm_period API."""

from pydantic import BaseModel

from src.fm_common.coins import bps_to_display, cents_to_display, change_bps
from src.fm_period.domain.models import ForecastPeriod


class PeriodResponse(BaseModel):
    id: str
    target_id: str
    period_key: str
    state: str
    starts_at: str
    ends_at: str
    baseline_mrr_cents: int
    baseline_mrr_display: str
    ending_mrr_cents: int | None
    ending_mrr_display: str | None
    actual_change_bps: int | None
    actual_change_display: str | None
    void_reason: str | None
    resolved_at: str | None

    @classmethod
    def from_domain(cls, p: ForecastPeriod) -> "PeriodResponse":
        change = (
            change_bps(p.baseline_mrr, p.ending_mrr)
            if p.ending_mrr is not None and p.baseline_mrr > 0
            else None
        )
        return cls(
            id=p.id,
            target_id=p.target_id,
            period_key=p.period_key,
            state=p.state,
            starts_at=p.starts_at.isoformat(),
            ends_at=p.ends_at.isoformat(),
            baseline_mrr_cents=p.baseline_mrr,
            baseline_mrr_display=cents_to_display(p.baseline_mrr),
            ending_mrr_cents=p.ending_mrr,
            ending_mrr_display=cents_to_display(p.ending_mrr) if p.ending_mrr is not None else None,
            actual_change_bps=change,
            actual_change_display=bps_to_display(change) if change is not None else None,
            void_reason=p.void_reason,
            resolved_at=p.resolved_at.isoformat() if p.resolved_at else None,
        )
