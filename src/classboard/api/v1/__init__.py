# src/classboard/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import announcements_router, realtime_router, stats_router

__all__ = [
    "announcements_router",
    "realtime_router",
    "stats_router",
]
