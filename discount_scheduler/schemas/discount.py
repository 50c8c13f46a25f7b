"""Wire schemas for the discount endpoints.

The storefront theme talks camelCase, so request and record models use
camelCase aliases while Python code keeps snake_case attribute names.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from discount_scheduler.models.discount_job import JobStatus


class ScheduleRequest(BaseModel):
    """Request body for scheduling a discount window."""

    model_config = ConfigDict(populate_by_name=True)

    variant_ids: list[str] | None = Field(default=None, alias="variantIds")
    discount: float
    start_at: datetime = Field(alias="startAt")
    end_at: datetime = Field(alias="endAt")

    @field_validator("variant_ids", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        # Liquid templates send numeric variant ids
        if isinstance(value, list):
            return [str(v) for v in value]
        return value


class ScheduleResponse(BaseModel):
    """Response after scheduling jobs."""

    success: bool = True
    message: str


class DiscountJobRecord(BaseModel):
    """Serialized form of a discount job, as read by external tools."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str
    variant_id: str
    discount_percent: float
    start_time: datetime
    end_time: datetime
    original_price: str | None = None
    original_compare_at: str | None = None
    status: JobStatus
    last_error: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_uuid(cls, value: Any) -> Any:
        return str(value)


class JobListItem(DiscountJobRecord):
    """Open job enriched with catalog metadata."""

    title: str | None = None
    product_title: str | None = None
    image_url: str | None = None
    current_price: str | None = None


class CronLog(BaseModel):
    """Counts and errors from one tick."""

    started: int = 0
    reverted: int = 0
    errors: list[str] = Field(default_factory=list)


class CronResponse(BaseModel):
    """Response from the cron trigger."""

    success: bool = True
    skipped: bool = False
    log: CronLog


class RevertOutcome(BaseModel):
    """Per-job result of an emergency revert."""

    job_id: str
    variant_id: str
    success: bool
    error: str | None = None


class EndAllDetails(BaseModel):
    """Aggregate result of an emergency stop."""

    cancelled_future_jobs: int
    reverted_active_jobs: int
    errors: list[str] = Field(default_factory=list)
    results: list[RevertOutcome] = Field(default_factory=list)


class EndAllResponse(BaseModel):
    """Response from the emergency stop."""

    success: bool = True
    message: str
    details: EndAllDetails


class TickRunResponse(BaseModel):
    """Response model for a recorded tick."""

    id: str
    trigger: str
    started_at: datetime
    finished_at: datetime
    duration_seconds: float
    activated: int
    reverted: int
    cancelled: int
    errors: list[str]
