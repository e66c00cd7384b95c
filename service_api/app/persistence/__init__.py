"""
Persistence boundary for the SiteFlow API.

The relational database is reached through ``ProjectStore``; the in-memory
implementation backs local development and tests.
"""

from .store import InMemoryProjectStore, ProjectStore

__all__ = ["InMemoryProjectStore", "ProjectStore"]
