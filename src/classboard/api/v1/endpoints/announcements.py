# src/classboard/api/v1/endpoints/announcements.py
"""Announcement, reaction and view endpoints for the Classboard API."""

from fastapi import APIRouter, HTTPException, status

from classboard.api.v1.dependencies import (
    AdminUserDep,
    BroadcasterDep,
    CurrentUserDep,
    IdentityDep,
    OptionalUserDep,
    SessionDep,
)
from classboard.schemas.announcement import (
    AnnouncementCreate,
    AnnouncementOut,
    AnnouncementUpdate,
    ReactionCountOut,
)
from classboard.schemas.engagement import (
    ReactionCreate,
    ReactionOut,
    ReactionRemovalResponse,
    ReactionResponse,
    ViewerOut,
    ViewResponse,
)
from classboard.services.announcements import AnnouncementService
from classboard.services.engagement import (
    AnnouncementNotFoundError,
    EngagementError,
    EngagementService,
    ReactionCount,
    ReactionsDisabledError,
)

router = APIRouter(prefix="/announcements", tags=["announcements"])


def _http_error(err: EngagementError) -> HTTPException:
    if isinstance(err, AnnouncementNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(err))
    if isinstance(err, ReactionsDisabledError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(err))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err))


def _count_models(counts: list[ReactionCount]) -> list[ReactionCountOut]:
    return [ReactionCountOut(type=entry.type, count=entry.count) for entry in counts]


@router.get("/", response_model=list[AnnouncementOut])
async def list_active_announcements(
    db: SessionDep,
    user: OptionalUserDep,
) -> list[AnnouncementOut]:
    """List active, unexpired announcements with pinned ones first."""
    stats = AnnouncementService(db).list_active(user.id if user else None)
    return [AnnouncementOut.model_validate(item) for item in stats]


@router.get("/all", response_model=list[AnnouncementOut])
async def list_all_announcements(db: SessionDep, admin: AdminUserDep) -> list[AnnouncementOut]:
    """List every announcement, including inactive and expired ones."""
    stats = AnnouncementService(db).list_all(admin.id)
    return [AnnouncementOut.model_validate(item) for item in stats]


@router.get("/{announcement_id}", response_model=AnnouncementOut)
async def get_announcement(
    announcement_id: str,
    db: SessionDep,
    user: OptionalUserDep,
) -> AnnouncementOut:
    """Get one announcement with reaction counts and the caller's own reaction."""
    try:
        stats = AnnouncementService(db).get(announcement_id, user.id if user else None)
    except EngagementError as err:
        raise _http_error(err) from err
    return AnnouncementOut.model_validate(stats)


@router.post("/", response_model=AnnouncementOut, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    payload: AnnouncementCreate,
    db: SessionDep,
    admin: AdminUserDep,
    broadcaster: BroadcasterDep,
) -> AnnouncementOut:
    """Publish a new announcement and notify every connected client."""
    stats = AnnouncementService(db).create(payload.model_dump(), admin.id)
    announcement = AnnouncementOut.model_validate(stats)
    broadcaster.announcement_created(announcement.to_json())
    return announcement


@router.patch("/{announcement_id}", response_model=AnnouncementOut)
async def update_announcement(
    announcement_id: str,
    payload: AnnouncementUpdate,
    db: SessionDep,
    admin: AdminUserDep,
    broadcaster: BroadcasterDep,
) -> AnnouncementOut:
    """Apply a partial update to an announcement."""
    try:
        stats = AnnouncementService(db).update(
            announcement_id, payload.model_dump(exclude_unset=True)
        )
    except EngagementError as err:
        raise _http_error(err) from err
    announcement = AnnouncementOut.model_validate(stats)
    broadcaster.announcement_updated(announcement.to_json())
    return announcement


@router.delete("/{announcement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_announcement(
    announcement_id: str,
    db: SessionDep,
    admin: AdminUserDep,
    broadcaster: BroadcasterDep,
) -> None:
    """Delete an announcement together with its reactions and views."""
    try:
        AnnouncementService(db).remove(announcement_id)
    except EngagementError as err:
        raise _http_error(err) from err
    broadcaster.announcement_deleted(announcement_id)


@router.post("/{announcement_id}/pin", response_model=AnnouncementOut)
async def toggle_pin(
    announcement_id: str,
    db: SessionDep,
    admin: AdminUserDep,
    broadcaster: BroadcasterDep,
) -> AnnouncementOut:
    """Pin an unpinned announcement or unpin a pinned one."""
    try:
        stats = AnnouncementService(db).toggle_pin(announcement_id)
    except EngagementError as err:
        raise _http_error(err) from err
    broadcaster.pin_changed(stats.id, stats.is_pinned)
    return AnnouncementOut.model_validate(stats)


@router.post(
    "/{announcement_id}/reactions",
    response_model=ReactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_reaction(
    announcement_id: str,
    payload: ReactionCreate,
    db: SessionDep,
    identity: IdentityDep,
    broadcaster: BroadcasterDep,
) -> ReactionResponse:
    """Set the caller's reaction, replacing any reaction they already hold."""
    try:
        result = EngagementService(db).add_reaction(
            announcement_id, payload.reaction_type, identity
        )
    except EngagementError as err:
        raise _http_error(err) from err

    broadcaster.reaction_changed(
        announcement_id,
        result.counts,
        user_id=identity.user_id,
        reaction_type=payload.reaction_type,
        action="add",
    )
    return ReactionResponse(
        reaction=ReactionOut.model_validate(result.reaction),
        counts=_count_models(result.counts),
        total_reactions=result.total,
    )


@router.delete("/{announcement_id}/reactions", response_model=ReactionRemovalResponse)
async def remove_reaction(
    announcement_id: str,
    db: SessionDep,
    current_user: CurrentUserDep,
    broadcaster: BroadcasterDep,
) -> ReactionRemovalResponse:
    """Remove the authenticated caller's reaction; removing nothing is not an error."""
    try:
        result = EngagementService(db).remove_reaction(announcement_id, current_user.id)
    except EngagementError as err:
        raise _http_error(err) from err

    if result.removed:
        broadcaster.reaction_changed(
            announcement_id,
            result.counts,
            user_id=current_user.id,
            reaction_type=None,
            action="remove",
        )
    return ReactionRemovalResponse(
        counts=_count_models(result.counts),
        total_reactions=result.total,
    )


@router.post("/{announcement_id}/views", response_model=ViewResponse)
async def record_view(
    announcement_id: str,
    db: SessionDep,
    identity: IdentityDep,
    user: OptionalUserDep,
    broadcaster: BroadcasterDep,
) -> ViewResponse:
    """Count the caller's first view of an announcement."""
    try:
        result = EngagementService(db).record_view(announcement_id, identity)
    except EngagementError as err:
        raise _http_error(err) from err

    if result.is_new_view:
        broadcaster.view_recorded(
            announcement_id,
            result.view_count,
            viewer_id=user.id if user else None,
            viewer_name=user.name if user else None,
        )
    return ViewResponse(is_new_view=result.is_new_view, view_count=result.view_count)


@router.get("/{announcement_id}/viewers", response_model=list[ViewerOut])
async def list_viewers(
    announcement_id: str,
    db: SessionDep,
    admin: AdminUserDep,
) -> list[ViewerOut]:
    """List who viewed an announcement, newest first."""
    try:
        viewers = EngagementService(db).viewers(announcement_id)
    except EngagementError as err:
        raise _http_error(err) from err
    return [ViewerOut.model_validate(viewer) for viewer in viewers]
