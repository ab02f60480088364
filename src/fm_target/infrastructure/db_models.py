"""SQLAlchemy ORM model for forecast_settings (alembic/versions/002)."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.fm_common.database import Base


class ForecastSettingsORM(Base):
    __tablename__ = "forecast_settings"

    target_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    target_kind: Mapped[str] = mapped_column(String(10), nullable=False)
    owner_user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    min_stake: Mapped[int] = mapped_column(Integer, nullable=False)
    max_stake: Mapped[int] = mapped_column(Integer, nullable=False)
    connection_status: Mapped[str] = mapped_column(
        String(12), nullable=False, default="DISCONNECTED"
    )
    cached_mrr: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    cached_mrr_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
