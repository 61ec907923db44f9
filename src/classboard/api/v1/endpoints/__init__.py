# src/classboard/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .announcements import router as announcements_router
from .realtime import router as realtime_router
from .stats import router as stats_router

__all__ = [
    "announcements_router",
    "realtime_router",
    "stats_router",
]
