from __future__ import annotations

from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from liubai.db.base import Base


class EnergyCheckIn(Base):
    """One energy report. Written once, after the reply stream has finished; never updated."""

    __tablename__ = "energy_check_ins"
    __table_args__ = (Index("ix_energy_check_ins_user_check_in_at", "user_id", "check_in_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    level: Mapped[str] = mapped_column(String(16), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    # User's local wall clock "YYYY-MM-DDTHH:MM:SS", no offset; day ranges compare as strings
    check_in_at: Mapped[str] = mapped_column(String(19), nullable=False)
    check_in_at_utc: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)  # IANA zone that produced check_in_at

    user: Mapped["User"] = relationship("User", back_populates="check_ins")
