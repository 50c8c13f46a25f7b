"""Scheduled discount job model."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Enum, Float, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from discount_scheduler.models.base import Base, TimestampMixin


class JobStatus(str, enum.Enum):
    """Discount job lifecycle.

    Forward only: pending -> active -> completed, or pending -> completed
    when cancelled by an emergency stop.
    """

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class DiscountJob(Base, TimestampMixin):
    """One discount window for one product variant."""

    __tablename__ = "discount_jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    variant_id: Mapped[str] = mapped_column(String(64), index=True)
    discount_percent: Mapped[float] = mapped_column(Float)
    start_time: Mapped[datetime] = mapped_column(index=True)
    end_time: Mapped[datetime] = mapped_column(index=True)

    # Captured at activation, stored as strings to avoid float drift
    original_price: Mapped[str | None] = mapped_column(String(32))
    original_compare_at: Mapped[str | None] = mapped_column(String(32))

    status: Mapped[JobStatus] = mapped_column(
        Enum(
            JobStatus,
            values_callable=lambda e: [x.value for x in e],
            name="jobstatus",
            native_enum=False,
            length=16,
        ),
        default=JobStatus.PENDING,
        index=True,
    )

    last_error: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<DiscountJob {self.variant_id} {self.status.value} -{self.discount_percent}%>"
