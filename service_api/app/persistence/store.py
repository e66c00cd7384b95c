"""
Project store interface and in-memory implementation.
"""

import abc
import itertools
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from shared.errors import DatabaseError
from shared.logging import get_logger

from ..domain.models import DailyLog, DailyLogCreate, Project, ProjectTask, WorkItem


class ProjectStore(abc.ABC):
    """CRUD operations the API needs from the persistence layer.

    Every read is scoped to an organization; records belonging to other
    tenants are never returned.
    """

    async def start(self) -> None:
        """Open connections. No-op by default."""

    async def stop(self) -> None:
        """Release connections. No-op by default."""

    @abc.abstractmethod
    async def get_project(self, organization_id: str, project_id: int) -> Optional[Project]:
        """Active project visible to the organization, or None."""

    @abc.abstractmethod
    async def list_projects(self, organization_id: str) -> List[Project]:
        ...

    @abc.abstractmethod
    async def list_daily_logs(self, organization_id: str, project_id: int) -> List[DailyLog]:
        """Daily logs for a project, newest first."""

    @abc.abstractmethod
    async def create_daily_log(
        self,
        organization_id: str,
        project_id: int,
        payload: DailyLogCreate,
        created_by_id: str,
    ) -> DailyLog:
        ...

    @abc.abstractmethod
    async def list_work_items(self, organization_id: str, project_id: int) -> List[WorkItem]:
        ...

    @abc.abstractmethod
    async def list_tasks(self, organization_id: str, project_id: int) -> List[ProjectTask]:
        ...


class InMemoryProjectStore(ProjectStore):
    """Dict-backed store for development and tests."""

    def __init__(
        self,
        projects: Iterable[Project] = (),
        daily_logs: Iterable[DailyLog] = (),
        work_items: Iterable[WorkItem] = (),
        tasks: Iterable[ProjectTask] = (),
    ):
        self.logger = get_logger("api.persistence.memory")
        self.projects: Dict[int, Project] = {project.id: project for project in projects}
        self.daily_logs: List[DailyLog] = list(daily_logs)
        self.work_items: List[WorkItem] = list(work_items)
        self.tasks: List[ProjectTask] = list(tasks)
        next_id = max((log.id for log in self.daily_logs), default=0) + 1
        self._daily_log_ids = itertools.count(next_id)

    def add_project(self, project: Project) -> None:
        self.projects[project.id] = project

    def add_work_item(self, item: WorkItem) -> None:
        self.work_items.append(item)

    def add_task(self, task: ProjectTask) -> None:
        self.tasks.append(task)

    def _project_org(self, project_id: int) -> Tuple[Optional[str], bool]:
        project = self.projects.get(project_id)
        if project is None:
            return None, False
        return project.organization_id, project.is_active

    async def get_project(self, organization_id: str, project_id: int) -> Optional[Project]:
        project = self.projects.get(project_id)
        if project is None or project.organization_id != organization_id or not project.is_active:
            return None
        return project

    async def list_projects(self, organization_id: str) -> List[Project]:
        return [
            project for project in self.projects.values()
            if project.organization_id == organization_id
        ]

    async def list_daily_logs(self, organization_id: str, project_id: int) -> List[DailyLog]:
        logs = [
            log for log in self.daily_logs
            if log.project_id == project_id and log.organization_id == organization_id
        ]
        return sorted(logs, key=lambda log: (log.log_date, log.id), reverse=True)

    async def create_daily_log(
        self,
        organization_id: str,
        project_id: int,
        payload: DailyLogCreate,
        created_by_id: str,
    ) -> DailyLog:
        owner, active = self._project_org(project_id)
        if owner != organization_id or not active:
            raise DatabaseError("Project is not writable", details={"projectId": project_id})

        log = DailyLog(
            id=next(self._daily_log_ids),
            project_id=project_id,
            organization_id=organization_id,
            created_by_id=created_by_id,
            created_at=datetime.now(timezone.utc),
            **payload.model_dump(),
        )
        self.daily_logs.append(log)
        self.logger.info("Daily log created", project_id=project_id, daily_log_id=log.id)
        return log

    async def list_work_items(self, organization_id: str, project_id: int) -> List[WorkItem]:
        owner, _ = self._project_org(project_id)
        if owner != organization_id:
            return []
        return [item for item in self.work_items if item.project_id == project_id]

    async def list_tasks(self, organization_id: str, project_id: int) -> List[ProjectTask]:
        return [
            task for task in self.tasks
            if task.project_id == project_id and task.organization_id == organization_id
        ]
