from __future__ import annotations

from datetime import datetime
from sqlalchemy import DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from liubai.db.base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    # Share of energy to keep back for recovery (0.20 - 0.50)
    energy_reserve_ratio: Mapped[float] = mapped_column(Float, nullable=False, default=0.3)
    # Comma-separated "HH:MM" reminders; advisory only
    check_in_times: Mapped[str] = mapped_column(String(255), nullable=False, default="09:00,12:30,18:00,22:00")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    check_ins: Mapped[list["EnergyCheckIn"]] = relationship("EnergyCheckIn", back_populates="user")
    daily_summaries: Mapped[list["DailyEnergySummary"]] = relationship(
        "DailyEnergySummary", back_populates="user"
    )
    coach_messages: Mapped[list["CoachMessage"]] = relationship("CoachMessage", back_populates="user")
    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan"
    )
