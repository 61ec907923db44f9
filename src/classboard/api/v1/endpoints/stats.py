# src/classboard/api/v1/endpoints/stats.py
"""Public site statistics."""

from fastapi import APIRouter

from classboard.api.v1.dependencies import SessionDep
from classboard.schemas.announcement import StatsOut
from classboard.services.announcements import AnnouncementService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=StatsOut)
async def get_stats(db: SessionDep) -> StatsOut:
    """Count the announcements currently visible to readers."""
    return StatsOut(announcements=AnnouncementService(db).count_active())
