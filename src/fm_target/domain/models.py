"""Domain models for fm_target — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.fm_common.enums import ConnectionStatus
from src.fm_common.errors import InvalidBoundsError


@dataclass
class ForecastSettings:
    target_id: str
    target_kind: str                 # TargetKind value
    owner_user_id: str
    is_active: bool
    min_stake: int
    max_stake: int
    connection_status: str           # ConnectionStatus value
    cached_mrr: int | None = None    # cents, last verified value
    cached_mrr_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_connected(self) -> bool:
        return self.connection_status == ConnectionStatus.CONNECTED

    @property
    def accepts_bets(self) -> bool:
        return self.is_active and self.is_connected


def validate_stake_bounds(min_stake: int, max_stake: int, ceiling: int) -> None:
    """1 <= min <= max <= ceiling, else InvalidBoundsError."""
    if min_stake < 1 or min_stake > max_stake or max_stake > ceiling:
        raise InvalidBoundsError(min_stake, max_stake, ceiling)
