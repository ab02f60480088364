"""Pydantic schemas for the fm_target API (owner and collaborator endpoints)."""

from datetime import datetime

from pydantic import BaseModel, Field

from config.settings import settings as app_settings
from src.fm_common.coins import cents_to_display
from src.fm_common.enums import TargetKind
from src.fm_target.domain.models import ForecastSettings

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class EnableForecastingRequest(BaseModel):
    target_id: str = Field(..., min_length=1, max_length=64)
    target_kind: TargetKind
    min_stake: int = Field(default_factory=lambda: app_settings.DEFAULT_MIN_STAKE)
    max_stake: int = Field(default_factory=lambda: app_settings.DEFAULT_MAX_STAKE)


class SetActiveRequest(BaseModel):
    is_active: bool


class SetStakeBoundsRequest(BaseModel):
    # Range is checked in the service so every violation maps to InvalidBounds
    min_stake: int
    max_stake: int


class VerifiedMrrRequest(BaseModel):
    mrr_cents: int = Field(..., ge=0, description="Verified MRR in cents")
    observed_at: datetime


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SettingsResponse(BaseModel):
    target_id: str
    target_kind: str
    owner_user_id: str
    is_active: bool
    min_stake: int
    max_stake: int
    connection_status: str
    accepts_bets: bool
    cached_mrr_cents: int | None
    cached_mrr_display: str | None
    cached_mrr_at: str | None

    @classmethod
    def from_domain(cls, s: ForecastSettings) -> "SettingsResponse":
        return cls(
            target_id=s.target_id,
            target_kind=s.target_kind,
            owner_user_id=s.owner_user_id,
            is_active=s.is_active,
            min_stake=s.min_stake,
            max_stake=s.max_stake,
            connection_status=s.connection_status,
            accepts_bets=s.accepts_bets,
            cached_mrr_cents=s.cached_mrr,
            cached_mrr_display=cents_to_display(s.cached_mrr) if s.cached_mrr is not None else None,
            cached_mrr_at=s.cached_mrr_at.isoformat() if s.cached_mrr_at else None,
        )


class SettingsListResponse(BaseModel):
    items: list[SettingsResponse]
    next_cursor: str | None
    has_more: bool
