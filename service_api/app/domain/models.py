"""
Domain records for the SiteFlow statistics API.
"""

from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ProjectStatus(str, Enum):
    """Construction project lifecycle."""
    PLANNING = "planning"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WorkItemStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskType(str, Enum):
    CONSTRUCTION = "construction"
    INSPECTION = "inspection"
    MAINTENANCE = "maintenance"
    SAFETY = "safety"
    QUALITY = "quality"
    ADMINISTRATIVE = "administrative"
    OTHER = "other"


class ApiModel(BaseModel):
    """Records exchanged over the wire use camelCase keys."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Project(ApiModel):
    id: int = Field(..., gt=0)
    organization_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    status: ProjectStatus = ProjectStatus.PLANNING
    budget: float = Field(default=0, ge=0)
    is_active: bool = True


class DailyLog(ApiModel):
    id: int = Field(..., gt=0)
    project_id: int = Field(..., gt=0)
    organization_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    log_date: date
    weather: Optional[str] = Field(default=None, max_length=100)
    temperature: Optional[int] = Field(default=None, ge=-50, le=60)
    work_description: str = Field(..., min_length=1, max_length=2000)
    work_hours: int = Field(default=8, ge=0, le=24)
    workers_count: int = Field(default=0, ge=0)
    issues: Optional[str] = Field(default=None, max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=1000)
    created_by_id: str = Field(..., min_length=1)
    created_at: datetime


class WorkItem(ApiModel):
    id: int = Field(..., gt=0)
    project_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1)
    status: WorkItemStatus = WorkItemStatus.PLANNED
    priority: Priority = Priority.MEDIUM
    due_date: Optional[date] = None
    estimated_work_hours: float = Field(default=0, ge=0)
    actual_work_hours: float = Field(default=0, ge=0)
    deleted_at: Optional[datetime] = None


class ProjectTask(ApiModel):
    id: int = Field(..., gt=0)
    project_id: int = Field(..., gt=0)
    organization_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    type: TaskType = TaskType.OTHER
    due_date: Optional[date] = None
    estimated_hours: float = Field(default=0, ge=0)
    actual_hours: float = Field(default=0, ge=0)
    progress: int = Field(default=0, ge=0, le=100)
    is_active: bool = True


class DailyLogCreate(ApiModel):
    """Body of ``POST /api/projects/{id}/daily-logs``; unknown keys are rejected."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="forbid")

    title: str = Field(..., min_length=1, max_length=200)
    log_date: date
    weather: Optional[str] = Field(default=None, max_length=100)
    temperature: Optional[int] = Field(default=None, ge=-50, le=60)
    work_description: str = Field(..., min_length=1, max_length=2000)
    work_hours: int = Field(default=8, ge=0, le=24)
    workers_count: int = Field(default=0, ge=0)
    issues: Optional[str] = Field(default=None, max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("title", "work_description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class ProjectStats(ApiModel):
    total: int = 0
    planning: int = 0
    active: int = 0
    completed: int = 0
    on_hold: int = 0
    cancelled: int = 0
    total_budget: float = 0
    average_budget: float = 0


class DailyLogStats(ApiModel):
    total_logs: int = 0
    total_work_hours: int = 0
    total_labor_count: int = 0
    recent_activity: int = 0
    weather_breakdown: Dict[str, int] = Field(default_factory=dict)


class WorkItemStats(ApiModel):
    total: int = 0
    planned: int = 0
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0
    overdue: int = 0
    total_estimated_hours: float = 0
    total_actual_hours: float = 0
    average_progress: int = 0


class TaskStats(ApiModel):
    total: int = 0
    todo: int = 0
    in_progress: int = 0
    review: int = 0
    completed: int = 0
    cancelled: int = 0
    overdue: int = 0
    total_estimated_hours: float = 0
    total_actual_hours: float = 0
    average_progress: int = 0
    priority_stats: Dict[str, int] = Field(default_factory=dict)
    type_stats: Dict[str, int] = Field(default_factory=dict)
