"""
Aggregate statistics over project records.

Pure functions: callers fetch the records and pass ``today`` explicitly so
results are reproducible in tests.
"""

from datetime import date, timedelta
from typing import Iterable, List

from .models import (
    DailyLog,
    DailyLogStats,
    Priority,
    Project,
    ProjectStats,
    ProjectStatus,
    ProjectTask,
    TaskStats,
    TaskStatus,
    TaskType,
    WorkItem,
    WorkItemStats,
    WorkItemStatus,
)

RECENT_ACTIVITY_DAYS = 7

_WORK_ITEM_PROGRESS = {
    WorkItemStatus.COMPLETED: 100,
    WorkItemStatus.IN_PROGRESS: 50,
}

_CLOSED_TASK_STATUSES = {TaskStatus.COMPLETED, TaskStatus.CANCELLED}
_CLOSED_WORK_ITEM_STATUSES = {WorkItemStatus.COMPLETED, WorkItemStatus.CANCELLED}


def project_stats(projects: Iterable[Project]) -> ProjectStats:
    active = [project for project in projects if project.is_active]
    total = len(active)
    total_budget = sum(project.budget for project in active)

    def count(status: ProjectStatus) -> int:
        return sum(1 for project in active if project.status == status)

    return ProjectStats(
        total=total,
        planning=count(ProjectStatus.PLANNING),
        active=count(ProjectStatus.ACTIVE),
        completed=count(ProjectStatus.COMPLETED),
        on_hold=count(ProjectStatus.ON_HOLD),
        cancelled=count(ProjectStatus.CANCELLED),
        total_budget=total_budget,
        average_budget=total_budget / total if total else 0,
    )


def daily_log_stats(logs: Iterable[DailyLog], today: date) -> DailyLogStats:
    logs = list(logs)
    since = today - timedelta(days=RECENT_ACTIVITY_DAYS)

    weather_breakdown = {}
    for log in logs:
        # Logs without a weather entry are left out; an empty one is "Unknown"
        if log.weather is None:
            continue
        label = log.weather or "Unknown"
        weather_breakdown[label] = weather_breakdown.get(label, 0) + 1

    return DailyLogStats(
        total_logs=len(logs),
        total_work_hours=sum(log.work_hours for log in logs),
        total_labor_count=sum(log.workers_count for log in logs),
        recent_activity=sum(1 for log in logs if log.log_date >= since),
        weather_breakdown=weather_breakdown,
    )


def work_item_stats(items: Iterable[WorkItem], today: date) -> WorkItemStats:
    items: List[WorkItem] = [item for item in items if item.deleted_at is None]
    total = len(items)

    def count(status: WorkItemStatus) -> int:
        return sum(1 for item in items if item.status == status)

    progress = sum(_WORK_ITEM_PROGRESS.get(item.status, 0) for item in items)

    return WorkItemStats(
        total=total,
        planned=count(WorkItemStatus.PLANNED),
        in_progress=count(WorkItemStatus.IN_PROGRESS),
        completed=count(WorkItemStatus.COMPLETED),
        cancelled=count(WorkItemStatus.CANCELLED),
        overdue=sum(
            1 for item in items
            if item.due_date and item.due_date < today and item.status not in _CLOSED_WORK_ITEM_STATUSES
        ),
        total_estimated_hours=sum(item.estimated_work_hours for item in items),
        total_actual_hours=sum(item.actual_work_hours for item in items),
        average_progress=round(progress / total) if total else 0,
    )


def task_stats(tasks: Iterable[ProjectTask], today: date) -> TaskStats:
    tasks = [task for task in tasks if task.is_active]
    total = len(tasks)

    def count(status: TaskStatus) -> int:
        return sum(1 for task in tasks if task.status == status)

    return TaskStats(
        total=total,
        todo=count(TaskStatus.TODO),
        in_progress=count(TaskStatus.IN_PROGRESS),
        review=count(TaskStatus.REVIEW),
        completed=count(TaskStatus.COMPLETED),
        cancelled=count(TaskStatus.CANCELLED),
        overdue=sum(
            1 for task in tasks
            if task.due_date and task.due_date < today and task.status not in _CLOSED_TASK_STATUSES
        ),
        total_estimated_hours=sum(task.estimated_hours for task in tasks),
        total_actual_hours=sum(task.actual_hours for task in tasks),
        average_progress=round(sum(task.progress for task in tasks) / total) if total else 0,
        priority_stats={
            priority.value: sum(1 for task in tasks if task.priority == priority)
            for priority in Priority
        },
        type_stats={
            task_type.value: sum(1 for task in tasks if task.type == task_type)
            for task_type in TaskType
        },
    )
