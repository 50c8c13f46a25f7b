from discount_scheduler.models.base import Base
from discount_scheduler.models.discount_job import DiscountJob, JobStatus
from discount_scheduler.models.tick_run import TickRun

__all__ = [
    "Base",
    "DiscountJob",
    "JobStatus",
    "TickRun",
]
