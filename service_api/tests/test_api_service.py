"""
Unit tests for the statistics API service.
"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_api.app.main import ApiService, create_app
from service_api.app.domain.models import DailyLog, Project, ProjectTask, WorkItem
from service_api.app.persistence import InMemoryProjectStore
from shared.config import get_config
from shared.test_helpers import FakeClock, test_data_factory


def build_store(clock: FakeClock) -> InMemoryProjectStore:
    today = clock.today()
    return InMemoryProjectStore(
        projects=[Project(**data) for data in test_data_factory.create_test_projects()],
        daily_logs=[DailyLog(**data) for data in test_data_factory.create_test_daily_logs(today)],
        work_items=[WorkItem(**data) for data in test_data_factory.create_test_work_items(today)],
        tasks=[ProjectTask(**data) for data in test_data_factory.create_test_tasks(today)],
    )


class TestApiService:
    """Test cases for ApiService."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self, clock):
        return build_store(clock)

    @pytest.fixture
    def config(self):
        return get_config("api", 8000, rate_limit_overrides={"daily_log_create": (2, 60_000)})

    @pytest.fixture
    def api_service(self, config, store, clock):
        """Create ApiService instance."""
        return ApiService(config=config, store=store, clock=clock)

    @pytest.fixture
    def client(self, api_service):
        """Create test client."""
        return TestClient(api_service.app)

    @pytest.fixture
    def user(self):
        return test_data_factory.create_test_users()[0]

    @pytest.fixture
    def other_tenant(self):
        return test_data_factory.create_test_users()[2]

    def test_health_endpoint(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "api"
        assert data["status"] == "ok"
        assert data["dependencies"]["store"] == "InMemoryProjectStore"

    def test_metrics_endpoint(self, client, user):
        client.get("/api/projects/stats", headers=user.headers())

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert "cache_misses_total" in response.text

    def test_request_id_is_echoed(self, client, user):
        response = client.get("/api/projects/stats", headers={**user.headers(), "X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_project_stats(self, client, user):
        response = client.get("/api/projects/stats", headers=user.headers())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["total"] == 3
        assert body["data"]["averageBudget"] == 800_000
        assert body["meta"]["version"] == "v1"
        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "99"

    def test_project_stats_are_scoped_to_organization(self, client, other_tenant):
        response = client.get("/api/projects/stats", headers=other_tenant.headers())

        assert response.json()["data"]["total"] == 1

    def test_missing_identity(self, client):
        response = client.get("/api/projects/stats")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.parametrize("project_id", ["abc", "0", "-4", "+3", "1_0", "%207%20", "1.0"])
    def test_invalid_project_id(self, client, user, project_id):
        response = client.get(f"/api/projects/{project_id}/tasks/stats", headers=user.headers())

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["message"] == "Invalid project ID"

    @pytest.mark.parametrize("project_id", [4, 5, 999])
    def test_invisible_project_is_not_found(self, client, user, project_id):
        response = client.get(f"/api/projects/{project_id}/work-items/stats", headers=user.headers())

        assert response.status_code == 404
        assert response.json()["error"] == {
            "code": "RESOURCE_NOT_FOUND",
            "message": "Project not found",
            "details": {"projectId": project_id},
        }

    @pytest.mark.parametrize("resource", ["daily-logs", "work-items", "tasks"])
    def test_warm_cache_does_not_leak_across_organizations(self, client, user, other_tenant, resource):
        path = f"/api/projects/1/{resource}/stats"
        assert client.get(path, headers=user.headers()).status_code == 200

        response = client.get(path, headers=other_tenant.headers())

        assert response.status_code == 404
        body = response.json()
        assert body["error"]["code"] == "RESOURCE_NOT_FOUND"
        assert "data" not in body

    def test_deactivated_project_is_not_found_with_warm_cache(self, client, user, store):
        client.get("/api/projects/1/tasks/stats", headers=user.headers())
        store.add_project(store.projects[1].model_copy(update={"is_active": False}))

        response = client.get("/api/projects/1/tasks/stats", headers=user.headers())

        assert response.status_code == 404

    def test_daily_log_stats(self, client, user):
        response = client.get("/api/projects/1/daily-logs/stats", headers=user.headers())

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalLogs"] == 4
        assert data["recentActivity"] == 2
        assert data["weatherBreakdown"] == {"Sunny": 2, "Rain": 1}
        assert response.headers["X-RateLimit-Limit"] == "30"

    def test_work_item_and_task_stats(self, client, user):
        work_items = client.get("/api/projects/1/work-items/stats", headers=user.headers()).json()["data"]
        tasks = client.get("/api/projects/1/tasks/stats", headers=user.headers()).json()["data"]

        assert work_items["total"] == 4
        assert work_items["overdue"] == 1
        assert tasks["total"] == 4
        assert tasks["priorityStats"]["urgent"] == 1

    def test_stats_are_served_from_cache(self, client, user, store):
        with patch.object(store, "list_tasks", wraps=store.list_tasks) as mock_list:
            client.get("/api/projects/1/tasks/stats", headers=user.headers())
            client.get("/api/projects/1/tasks/stats", headers=user.headers())

        assert mock_list.call_count == 1

    def test_cached_stats_expire(self, client, user, store, clock):
        with patch.object(store, "list_tasks", wraps=store.list_tasks) as mock_list:
            client.get("/api/projects/1/tasks/stats", headers=user.headers())
            clock.advance(5 * 60 + 1)
            client.get("/api/projects/1/tasks/stats", headers=user.headers())

        assert mock_list.call_count == 2

    def test_list_daily_logs_paginates_newest_first(self, client, user):
        response = client.get("/api/projects/1/daily-logs?page=1&limit=2", headers=user.headers())

        assert response.status_code == 200
        body = response.json()
        assert [log["id"] for log in body["data"]] == [1, 2]
        assert body["meta"]["pagination"] == {
            "page": 1,
            "limit": 2,
            "total": 4,
            "totalPages": 2,
            "hasNext": True,
            "hasPrev": False,
        }

    def test_list_daily_logs_rejects_oversized_page(self, client, user):
        response = client.get("/api/projects/1/daily-logs?limit=101", headers=user.headers())

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"][0]["loc"] == ["query", "limit"]

    def test_create_daily_log(self, client, user):
        response = client.post(
            "/api/projects/1/daily-logs",
            headers=user.headers(),
            json=test_data_factory.create_daily_log_payload(),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["id"] == 5
        assert data["title"] == "Column pour"
        assert data["createdById"] == "user_1"
        assert data["organizationId"] == "org_demo_1"

    def test_create_daily_log_invalidates_project_stats(self, client, user):
        before = client.get("/api/projects/1/daily-logs/stats", headers=user.headers()).json()["data"]

        client.post(
            "/api/projects/1/daily-logs",
            headers=user.headers(),
            json=test_data_factory.create_daily_log_payload(weather="Snow"),
        )
        after = client.get("/api/projects/1/daily-logs/stats", headers=user.headers()).json()["data"]

        assert before["totalLogs"] == 4
        assert after["totalLogs"] == 5
        assert after["weatherBreakdown"]["Snow"] == 1

    @pytest.mark.parametrize("overrides", [
        {"title": ""},
        {"workDescription": "   "},
        {"workHours": 25},
        {"logDate": "not-a-date"},
        {"unexpected": True},
    ])
    def test_create_daily_log_rejects_invalid_body(self, client, user, overrides):
        response = client.post(
            "/api/projects/1/daily-logs",
            headers=user.headers(),
            json=test_data_factory.create_daily_log_payload(**overrides),
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert isinstance(body["error"]["details"], list)

    def test_create_daily_log_rate_limited(self, client, user):
        payload = test_data_factory.create_daily_log_payload()
        for _ in range(2):
            assert client.post("/api/projects/1/daily-logs", headers=user.headers(), json=payload).status_code == 201

        response = client.post("/api/projects/1/daily-logs", headers=user.headers(), json=payload)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        error = response.json()["error"]
        assert error["code"] == "RATE_LIMIT_EXCEEDED"
        assert error["details"]["retryAfter"] == 60

    def test_rate_limit_is_per_user(self, client, user):
        payload = test_data_factory.create_daily_log_payload()
        for _ in range(2):
            client.post("/api/projects/1/daily-logs", headers=user.headers(), json=payload)

        colleague = test_data_factory.create_test_users()[1]
        response = client.post("/api/projects/1/daily-logs", headers=colleague.headers(), json=payload)

        assert response.status_code == 201

    def test_rate_limit_window_resets(self, client, user, clock):
        payload = test_data_factory.create_daily_log_payload()
        for _ in range(3):
            client.post("/api/projects/1/daily-logs", headers=user.headers(), json=payload)

        clock.advance(60)
        response = client.post("/api/projects/1/daily-logs", headers=user.headers(), json=payload)

        assert response.status_code == 201

    def test_unexpected_failure_becomes_internal_error(self, api_service, user, store):
        client = TestClient(api_service.app, raise_server_exceptions=False)

        with patch.object(store, "list_tasks", new_callable=AsyncMock) as mock_list:
            mock_list.side_effect = RuntimeError("connection refused")
            response = client.get("/api/projects/1/tasks/stats", headers=user.headers())

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert error["message"] == "Internal server error"
        assert error["details"] == "connection refused"

        # The failure is not cached
        retry = client.get("/api/projects/1/tasks/stats", headers=user.headers())
        assert retry.status_code == 200

    def test_unknown_route_uses_envelope(self, client):
        response = client.get("/api/nowhere")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    def test_cache_stats_endpoint(self, client, user):
        client.get("/api/projects/stats", headers=user.headers())
        client.get("/api/projects/stats", headers=user.headers())

        data = client.get("/api/v1/cache/stats", headers=user.headers()).json()["data"]

        assert data["name"] == "stats"
        assert data["size"] == 1
        assert data["hits"] == 1
        assert data["misses"] == 1

    def test_rate_limits_endpoint(self, client, user):
        client.get("/api/projects/stats", headers=user.headers())

        data = client.get("/api/v1/rate-limits", headers=user.headers()).json()["data"]

        assert data["enabled"] is True
        assert data["active_windows"] == 1
        assert data["profiles"]["daily_log_create"] == {"max_requests": 2, "window_ms": 60_000}

    def test_ops_endpoints_require_identity(self, client):
        assert client.get("/api/v1/cache/stats").status_code == 401
        assert client.get("/api/v1/rate-limits").status_code == 401

    def test_rate_limiting_can_be_disabled(self, store, clock, user):
        config = get_config("api", 8000, rate_limiting_enabled=False)
        client = TestClient(create_app(config=config, store=store, clock=clock))

        response = client.get("/api/projects/stats", headers=user.headers())

        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers


class TestApiServiceLifecycle:
    """Startup and shutdown hooks."""

    def test_sweeper_runs_while_app_is_up(self):
        clock = FakeClock()
        service = ApiService(store=build_store(clock), clock=clock)

        with TestClient(service.app) as client:
            assert client.get("/health").json()["dependencies"]["sweeper"] == "running"
            client.get("/api/projects/stats", headers=test_data_factory.create_test_users()[0].headers())
            assert len(service.support.cache) == 1

        assert service.support.running is False
        assert len(service.support.cache) == 0

    def test_sweep_drops_expired_state(self):
        clock = FakeClock()
        service = ApiService(store=build_store(clock), clock=clock)
        client = TestClient(service.app)
        client.get("/api/projects/stats", headers=test_data_factory.create_test_users()[0].headers())

        clock.advance(60 * 60)

        assert service.support.sweep() == {"cache_entries": 1, "rate_windows": 1}
