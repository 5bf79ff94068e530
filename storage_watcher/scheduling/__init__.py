"""Fixed-delay scheduling of repeating tasks on worker threads."""

from storage_watcher.scheduling.scheduler import FixedDelayScheduler, ScheduledTask

__all__ = ["FixedDelayScheduler", "ScheduledTask"]
