"""Background job scheduling."""

from reviewhub.scheduler.scheduler import Scheduler, get_scheduler, reset_scheduler

__all__ = ["Scheduler", "get_scheduler", "reset_scheduler"]
