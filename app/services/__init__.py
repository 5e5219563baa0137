"""
Services package.

Provides the poll scheduler and the SystemLog writer.
"""
from app.services.scheduler import (
    SchedulerService,
    get_scheduler_service,
    setup_scheduled_jobs,
)
from app.services.system_log import format_error_detail, write_log

__all__ = [
    # Scheduler
    "SchedulerService",
    "get_scheduler_service",
    "setup_scheduled_jobs",
    # System log
    "format_error_detail",
    "write_log",
]
