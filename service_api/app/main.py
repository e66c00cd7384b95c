"""
Statistics API service for SiteFlow.

Routes follow one shape: resolve identity, apply the route's rate-limit
profile, validate input, read through the stats cache, wrap the result in
the response envelope.
"""

import re
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.envelope import PaginationMeta, envelope_response, success
from shared.errors import AuthenticationError, NotFoundError, ValidationError
from shared.logging import set_user_context

from .caching import cache_keys, project_prefix
from .domain import stats
from .domain.models import DailyLogCreate
from .persistence import InMemoryProjectStore, ProjectStore
from .ratelimit import RateLimitDecision
from .support import RequestSupport

DAILY_LOG_STATS_TTL_MS = 5 * 60 * 1000

_PROJECT_ID = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Identity:
    """Caller identity as asserted by the upstream auth provider."""

    user_id: str
    organization_id: str


class ApiService(BaseService):
    """SiteFlow statistics API."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        store: Optional[ProjectStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__("api", 8000, config or get_config("api", 8000))
        self.clock = clock
        self.store = store if store is not None else InMemoryProjectStore()
        self.support = RequestSupport(self.config, clock=clock, metrics=self.metrics)

        @self.app.on_event("startup")
        async def _startup():
            await self.store.start()
            await self.support.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.support.stop()
            await self.store.stop()

        self._setup_stats_routes()
        self._setup_daily_log_routes()
        self._setup_ops_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.api_service = self

    # -- request helpers ---------------------------------------------------

    def _today(self) -> date:
        return datetime.fromtimestamp(self.clock(), timezone.utc).date()

    def _parse_project_id(self, raw: str) -> int:
        project_id = int(raw) if _PROJECT_ID.fullmatch(raw) else 0
        if project_id <= 0:
            raise ValidationError("Invalid project ID", details={"projectId": raw})
        return project_id

    def _respond(
        self,
        request: Request,
        data: Any,
        *,
        status_code: int = 200,
        pagination: Optional[PaginationMeta] = None,
    ) -> JSONResponse:
        decision: Optional[RateLimitDecision] = getattr(request.state, "rate_limit", None)
        headers = decision.headers() if decision else None
        envelope = success(data, pagination, version=self.config.api_version)
        return envelope_response(envelope, status_code=status_code, headers=headers)

    def _identity_dependency(self):
        async def require_identity(
            request: Request,
            x_user_id: Optional[str] = Header(None),
            x_organization_id: Optional[str] = Header(None),
        ) -> Identity:
            if not x_user_id or not x_organization_id:
                raise AuthenticationError()
            identity = Identity(user_id=x_user_id, organization_id=x_organization_id)
            request.state.user_info = {
                "user_id": identity.user_id,
                "organization_id": identity.organization_id,
            }
            set_user_context(identity.user_id, identity.organization_id)
            return identity

        return require_identity

    def _rate_limited(self, profile: str):
        """Dependency that authenticates the caller, then spends one request of ``profile``."""
        require_identity = self._identity_dependency()

        async def dependency(request: Request, identity: Identity = Depends(require_identity)) -> Identity:
            request.state.rate_limit = self.support.guard.check_request(request, profile)
            return identity

        return dependency

    async def _require_project(self, identity: Identity, project_id: int):
        project = await self.store.get_project(identity.organization_id, project_id)
        if project is None:
            raise NotFoundError("Project", details={"projectId": project_id})
        return project

    # -- routes ------------------------------------------------------------

    def _setup_stats_routes(self):
        """Set up cached statistics routes."""
        cache = self.support.cache
        stats_ttl = self.config.stats_cache_ttl_ms

        @self.app.get("/api/projects/stats")
        async def get_project_stats(request: Request, identity: Identity = Depends(self._rate_limited("general"))):
            """Project counts by status and budget totals for the caller's organization."""

            async def compute() -> Dict[str, Any]:
                projects = await self.store.list_projects(identity.organization_id)
                return stats.project_stats(projects).to_wire()

            result = await cache.aget_or_compute(
                cache_keys.project_stats(identity.organization_id), compute, stats_ttl
            )
            return self._respond(request, result)

        @self.app.get("/api/projects/{project_id}/daily-logs/stats")
        async def get_daily_log_stats(
            project_id: str,
            request: Request,
            identity: Identity = Depends(self._rate_limited("daily_log_stats")),
        ):
            """Daily log totals, labor, recent activity and weather breakdown."""
            pid = self._parse_project_id(project_id)
            # Ownership is checked on every request; cached values are not tenant-scoped
            await self._require_project(identity, pid)

            async def compute() -> Dict[str, Any]:
                logs = await self.store.list_daily_logs(identity.organization_id, pid)
                return stats.daily_log_stats(logs, self._today()).to_wire()

            result = await cache.aget_or_compute(cache_keys.daily_log_stats(pid), compute, DAILY_LOG_STATS_TTL_MS)
            self.logger.info("Daily log stats served", project_id=pid, total_logs=result["totalLogs"])
            return self._respond(request, result)

        @self.app.get("/api/projects/{project_id}/work-items/stats")
        async def get_work_item_stats(
            project_id: str,
            request: Request,
            identity: Identity = Depends(self._rate_limited("general")),
        ):
            """Work item counts by status, overdue items and hours."""
            pid = self._parse_project_id(project_id)
            await self._require_project(identity, pid)

            async def compute() -> Dict[str, Any]:
                items = await self.store.list_work_items(identity.organization_id, pid)
                return stats.work_item_stats(items, self._today()).to_wire()

            result = await cache.aget_or_compute(cache_keys.work_item_stats(pid), compute, stats_ttl)
            return self._respond(request, result)

        @self.app.get("/api/projects/{project_id}/tasks/stats")
        async def get_task_stats(
            project_id: str,
            request: Request,
            identity: Identity = Depends(self._rate_limited("general")),
        ):
            """Task counts by status, priority and type, plus time tracking."""
            pid = self._parse_project_id(project_id)
            await self._require_project(identity, pid)

            async def compute() -> Dict[str, Any]:
                tasks = await self.store.list_tasks(identity.organization_id, pid)
                return stats.task_stats(tasks, self._today()).to_wire()

            result = await cache.aget_or_compute(cache_keys.task_stats(pid), compute, stats_ttl)
            return self._respond(request, result)

    def _setup_daily_log_routes(self):
        """Set up daily log listing and creation."""

        @self.app.get("/api/projects/{project_id}/daily-logs")
        async def list_daily_logs(
            project_id: str,
            request: Request,
            page: int = Query(1, ge=1),
            limit: int = Query(20, ge=1, le=100),
            identity: Identity = Depends(self._rate_limited("daily_log_list")),
        ):
            """Paginated daily logs for a project, newest first."""
            pid = self._parse_project_id(project_id)
            await self._require_project(identity, pid)

            logs = await self.store.list_daily_logs(identity.organization_id, pid)
            start = (page - 1) * limit
            items = [log.to_wire() for log in logs[start:start + limit]]
            return self._respond(request, items, pagination=PaginationMeta.build(page, limit, len(logs)))

        @self.app.post("/api/projects/{project_id}/daily-logs")
        async def create_daily_log(
            project_id: str,
            payload: DailyLogCreate,
            request: Request,
            identity: Identity = Depends(self._rate_limited("daily_log_create")),
        ):
            """Create a daily log and drop the project's cached statistics."""
            pid = self._parse_project_id(project_id)
            await self._require_project(identity, pid)

            log = await self.store.create_daily_log(identity.organization_id, pid, payload, identity.user_id)
            dropped = self.support.cache.invalidate_prefix(project_prefix(pid))
            self.logger.info(
                "Daily log created",
                project_id=pid,
                daily_log_id=log.id,
                invalidated_cache_entries=dropped,
            )
            return self._respond(request, log.to_wire(), status_code=201)

    def _setup_ops_routes(self):
        """Set up cache and rate-limit introspection routes."""
        require_identity = self._identity_dependency()

        @self.app.get("/api/v1/cache/stats")
        async def get_cache_stats(request: Request, identity: Identity = Depends(require_identity)):
            """Get cache statistics."""
            return self._respond(request, self.support.snapshot()["cache"])

        @self.app.get("/api/v1/rate-limits")
        async def get_rate_limits(request: Request, identity: Identity = Depends(require_identity)):
            """Get rate limiting status."""
            return self._respond(request, self.support.snapshot()["rate_limits"])

    async def _check_dependencies(self) -> Dict[str, str]:
        return {
            "store": type(self.store).__name__,
            "sweeper": "running" if self.support.running else "stopped",
        }


def create_app(
    config: Optional[ServiceConfig] = None,
    store: Optional[ProjectStore] = None,
    clock: Callable[[], float] = time.time,
):
    """Create FastAPI application."""
    service = ApiService(config=config, store=store, clock=clock)
    return service.app


if __name__ == "__main__":
    service = ApiService()
    service.run()
