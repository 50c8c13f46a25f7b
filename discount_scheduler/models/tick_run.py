"""Tick execution history model."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from discount_scheduler.models.base import Base


class TickRun(Base):
    """Records each scheduler tick or emergency stop."""

    __tablename__ = "tick_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    trigger: Mapped[str] = mapped_column(String(20), index=True)  # cron, scheduler, cli, end_all
    started_at: Mapped[datetime] = mapped_column(index=True)
    finished_at: Mapped[datetime]
    activated: Mapped[int] = mapped_column(Integer, default=0)
    reverted: Mapped[int] = mapped_column(Integer, default=0)
    cancelled: Mapped[int] = mapped_column(Integer, default=0)
    errors_json: Mapped[list | None] = mapped_column(JSON, default=list)
