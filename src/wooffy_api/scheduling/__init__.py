"""Scheduling utilities for recurring reminder jobs."""

from .config import JobDefinition, RetryPolicy, load_job_definitions
from .runner import ReminderJobScheduler

__all__ = ["JobDefinition", "ReminderJobScheduler", "RetryPolicy", "load_job_definitions"]
