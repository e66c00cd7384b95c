"""
Unit tests for request-support wiring and configuration.
"""

import asyncio
import json
import logging
import pytest
from datetime import datetime

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_api.app.support import RequestSupport
from shared.config import get_config
from shared.logging import (
    clear_context,
    configure_logging,
    get_logger,
    organization_id_var,
    request_id_var,
    set_request_id,
    set_user_context,
    user_id_var,
)
from shared.test_helpers import FakeClock


class TestConfig:
    """Test cases for environment-driven configuration."""

    def test_defaults(self):
        config = get_config("api", 8000)

        assert config.service_name == "api"
        assert config.api_version == "v1"
        assert config.stats_cache_ttl_ms == 300_000
        assert config.rate_limiting_enabled is True

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SITEFLOW_CACHE_MAX_ENTRIES", "10")
        monkeypatch.setenv("SITEFLOW_RATE_LIMITING_ENABLED", "false")
        monkeypatch.setenv("SITEFLOW_RATE_LIMIT_OVERRIDES", '{"general": [5, 1000]}')

        config = get_config("api", 8000)

        assert config.cache_max_entries == 10
        assert config.rate_limiting_enabled is False
        assert config.rate_limit_overrides == {"general": (5, 1000)}


class TestRequestSupport:
    """Test cases for RequestSupport."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def support(self, clock):
        config = get_config("api", 8000, cache_max_entries=50, sweep_interval_seconds=0.01)
        return RequestSupport(config, clock=clock)

    def test_wires_config_into_components(self, support):
        assert support.cache.max_entries == 50
        assert support.cache.name == "stats"
        assert support.guard.enabled is True

    def test_snapshot(self, support):
        support.cache.set("k", 1)
        support.rate_limiter.allow("rate_limit:general:user:1", 100, 60_000)

        snapshot = support.snapshot()

        assert snapshot["cache"]["size"] == 1
        assert snapshot["rate_limits"]["active_windows"] == 1
        assert snapshot["rate_limits"]["profiles"]["general"] == {"max_requests": 100, "window_ms": 900_000}

    @pytest.mark.asyncio
    async def test_sweeper_prunes_expired_state(self, support, clock):
        support.cache.set("k", 1, ttl_ms=100)
        support.rate_limiter.allow("key", 1, 100)
        clock.advance_ms(200)

        await support.start()
        assert support.running
        await asyncio.sleep(0.05)

        assert len(support.cache) == 0
        assert len(support.rate_limiter) == 0

        await support.stop()
        assert not support.running

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, support):
        await support.start()
        first = support._sweeper
        await support.start()

        assert support._sweeper is first
        await support.stop()


class TestLoggingContext:
    """Test cases for request-scoped log context."""

    def test_request_id_is_generated_when_absent(self):
        request_id = set_request_id()

        assert request_id
        assert set_request_id("req-1") == "req-1"
        clear_context()

    def test_user_context_round_trip(self):
        set_user_context("user_1", "org_demo_1")

        assert user_id_var.get() == "user_1"
        assert organization_id_var.get() == "org_demo_1"

        clear_context()
        assert user_id_var.get() is None
        assert organization_id_var.get() is None
        assert request_id_var.get() is None

    def test_rendered_event_has_iso_timestamp(self, caplog):
        configure_logging("api", "info")
        caplog.set_level(logging.INFO)
        set_request_id("req-42")

        get_logger("api.support").info("Sweep finished", cache_entries=2)
        clear_context()

        event = json.loads(caplog.records[-1].getMessage())
        assert event["event"] == "Sweep finished"
        assert isinstance(event["timestamp"], str)
        assert datetime.fromisoformat(event["timestamp"].replace("Z", "+00:00")).tzinfo is not None
        assert event["service"] == "api"
        assert event["request_id"] == "req-42"
        assert event["cache_entries"] == 2
