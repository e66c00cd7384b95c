"""
Statistics API service package for SiteFlow.

Serves project, daily-log, work-item and task statistics to the dashboard,
enforcing:
- Identity: organization and user asserted by the upstream auth provider
- Rate limiting: fixed-window budgets per client and route profile
- Caching: in-process TTL cache with invalidation on writes

Structure:
- app.main: FastAPI app, routes, and dependency wiring.
- app.support: Lifecycle owner for the cache and rate limiter.
- app.caching: TTL cache and cache key builders.
- app.ratelimit: Fixed-window limiter and request guard.
- app.domain: Records and aggregate statistics.
- app.persistence: Store interface and in-memory implementation.
"""
