from discount_scheduler.schemas.discount import (
    CronLog,
    CronResponse,
    DiscountJobRecord,
    EndAllDetails,
    EndAllResponse,
    JobListItem,
    RevertOutcome,
    ScheduleRequest,
    ScheduleResponse,
    TickRunResponse,
)

__all__ = [
    "CronLog",
    "CronResponse",
    "DiscountJobRecord",
    "EndAllDetails",
    "EndAllResponse",
    "JobListItem",
    "RevertOutcome",
    "ScheduleRequest",
    "ScheduleResponse",
    "TickRunResponse",
]
