from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


class LoyaltyProfileRow(Base):
    __tablename__ = "loyalty_profiles"

    loyalty_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, index=True)
    employee_id: Mapped[str] = mapped_column(String(120), index=True)
    chat_user_id: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    points: Mapped[int] = mapped_column(Integer, default=0)
    scan_count: Mapped[int] = mapped_column(Integer, default=0)
    last_daily_reward_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class ScanEventRow(Base):
    __tablename__ = "scan_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, index=True)
    loyalty_id: Mapped[str] = mapped_column(String(36), index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True)
    scan_type: Mapped[str] = mapped_column(String(40), default="bot")
