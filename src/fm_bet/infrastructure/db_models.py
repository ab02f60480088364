"""SQLAlchemy ORM model for bets (alembic/versions/004)."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.fm_common.database import Base


class BetORM(Base):
    __tablename__ = "bets"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    client_bet_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    bettor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    target_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("forecast_settings.target_id"), nullable=False
    )
    target_kind: Mapped[str] = mapped_column(String(10), nullable=False)
    period_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("forecast_periods.id"), nullable=False
    )
    direction: Mapped[str] = mapped_column(String(5), nullable=False)
    target_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    stake_coins: Mapped[int] = mapped_column(BigInteger, nullable=False)
    house_fee_coins: Mapped[int] = mapped_column(BigInteger, nullable=False)
    net_stake_coins: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="PENDING")
    actual_bps: Mapped[int | None] = mapped_column(Integer, nullable=True)
    winnings: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
