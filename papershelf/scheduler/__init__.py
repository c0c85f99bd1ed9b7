from .scheduler_service import SchedulerService, get_scheduler

__all__ = ["SchedulerService", "get_scheduler"]
