"""
Domain records and aggregate statistics for the SiteFlow API.

Records are validated pydantic models; statistics are pure functions over
them so they can be tested without the persistence layer.
"""

from . import stats
from .models import (
    DailyLog,
    DailyLogCreate,
    Project,
    ProjectTask,
    WorkItem,
)

__all__ = [
    "DailyLog",
    "DailyLogCreate",
    "Project",
    "ProjectTask",
    "WorkItem",
    "stats",
]
