# src/classboard/api/v1/endpoints/realtime.py
"""WebSocket channel for live announcement updates and engagement actions."""

import json
import logging
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from classboard.api.v1.dependencies import (
    BroadcasterDep,
    IdentityResolverDep,
    SessionDep,
    load_active_user,
)
from classboard.core.security import JWTError
from classboard.models import User
from classboard.schemas.announcement import ReactionCountOut
from classboard.schemas.engagement import ReactionOut
from classboard.schemas.realtime import AddReactionPayload, AnnouncementRef, ClientFrame
from classboard.services.broadcaster import Broadcaster, Connection, ServerEvent, item_room
from classboard.services.engagement import EngagementError, EngagementService
from classboard.services.identity import ResolvedIdentity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/announcements", tags=["realtime"])


class ChannelError(Exception):
    """Rejected client frame; reported back as an ``error`` event."""


def _handshake_token(websocket: WebSocket, token: str | None) -> str | None:
    if token:
        return token
    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def _authenticate_handshake(db: Session, token: str | None) -> User | None:
    """Return the token's user; a bad or missing token means an anonymous client."""
    if not token:
        return None
    try:
        return load_active_user(db, token)
    except JWTError as err:
        logger.warning("Invalid token on websocket handshake: %s", err)
        return None


class AnnouncementChannel:
    """Dispatch inbound frames for one connection.

    Actions run through the same engagement service as the REST endpoints,
    so a given identity, announcement and action produce the same outcome on
    either transport.
    """

    def __init__(
        self,
        db: Session,
        broadcaster: Broadcaster,
        connection: Connection,
        identity: ResolvedIdentity,
        user: User | None,
    ) -> None:
        self.db = db
        self.broadcaster = broadcaster
        self.connection = connection
        self.identity = identity
        self.user = user
        self.handlers: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
            "join": self.join,
            "leave": self.leave,
            "addReaction": self.add_reaction,
            "removeReaction": self.remove_reaction,
            "view": self.view,
        }

    def handle(self, raw: str) -> None:
        request_id = None
        event = None
        try:
            try:
                frame = ClientFrame.model_validate(json.loads(raw))
            except (ValueError, ValidationError) as err:
                raise ChannelError("Malformed message") from err
            request_id = frame.id
            event = frame.event
            handler = self.handlers.get(frame.event)
            if handler is None:
                raise ChannelError(f"Unknown event: {frame.event}")
            try:
                result = handler(frame.data)
            except ValidationError as err:
                raise ChannelError("Invalid payload") from err
            except EngagementError as err:
                raise ChannelError(str(err)) from err
            except SQLAlchemyError as err:
                self.db.rollback()
                logger.error(
                    "Storage failure handling %s on connection %s",
                    event,
                    self.connection.id,
                    exc_info=True,
                )
                raise ChannelError("Internal server error") from err
        except ChannelError as err:
            self._reply(ServerEvent.ERROR, {"message": str(err)}, request_id)
            if event is not None:
                self._reply(
                    ServerEvent.ACK, {"request": event, "success": False}, request_id
                )
            return
        self._reply(ServerEvent.ACK, {"request": event, "success": True, **result}, request_id)

    def _reply(self, event: ServerEvent, data: dict[str, Any], request_id: Any) -> None:
        self.broadcaster.send(self.connection.id, event, data, request_id=request_id)

    # --- Room control ---------------------------------------------------------------
    def join(self, data: dict[str, Any]) -> dict[str, Any]:
        ref = AnnouncementRef.model_validate(data)
        self.broadcaster.join(self.connection.id, item_room(ref.announcement_id))
        return {}

    def leave(self, data: dict[str, Any]) -> dict[str, Any]:
        ref = AnnouncementRef.model_validate(data)
        self.broadcaster.leave(self.connection.id, item_room(ref.announcement_id))
        return {}

    # --- Actions --------------------------------------------------------------------
    def add_reaction(self, data: dict[str, Any]) -> dict[str, Any]:
        payload = AddReactionPayload.model_validate(data)
        result = EngagementService(self.db).add_reaction(
            payload.announcement_id, payload.reaction_type, self.identity
        )
        self.broadcaster.reaction_changed(
            payload.announcement_id,
            result.counts,
            user_id=self.identity.user_id,
            reaction_type=payload.reaction_type,
            action="add",
        )
        return {
            "reaction": ReactionOut.model_validate(result.reaction).to_json(),
            "counts": [
                ReactionCountOut(type=c.type, count=c.count).to_json() for c in result.counts
            ],
            "totalReactions": result.total,
        }

    def remove_reaction(self, data: dict[str, Any]) -> dict[str, Any]:
        ref = AnnouncementRef.model_validate(data)
        if self.user is None:
            raise ChannelError("Authentication required")
        result = EngagementService(self.db).remove_reaction(ref.announcement_id, self.user.id)
        if result.removed:
            self.broadcaster.reaction_changed(
                ref.announcement_id,
                result.counts,
                user_id=self.user.id,
                reaction_type=None,
                action="remove",
            )
        return {
            "counts": [
                ReactionCountOut(type=c.type, count=c.count).to_json() for c in result.counts
            ],
            "totalReactions": result.total,
        }

    def view(self, data: dict[str, Any]) -> dict[str, Any]:
        ref = AnnouncementRef.model_validate(data)
        result = EngagementService(self.db).record_view(ref.announcement_id, self.identity)
        if result.is_new_view:
            self.broadcaster.view_recorded(
                ref.announcement_id,
                result.view_count,
                viewer_id=self.user.id if self.user else None,
                viewer_name=self.user.name if self.user else None,
            )
        return {"isNewView": result.is_new_view, "viewCount": result.view_count}


@router.websocket("/ws")
async def announcements_socket(
    websocket: WebSocket,
    db: SessionDep,
    resolver: IdentityResolverDep,
    broadcaster: BroadcasterDep,
    token: str | None = None,
) -> None:
    """Live announcement channel.

    Clients always receive global events; ``join``/``leave`` subscribe to a
    single announcement's events. Every inbound frame is acknowledged.
    """
    user = _authenticate_handshake(db, _handshake_token(websocket, token))
    await websocket.accept()
    connection = await broadcaster.connect(
        websocket,
        user_id=user.id if user else None,
        user_name=user.name if user else None,
    )
    identity = resolver.resolve_handshake(websocket, user.id if user else None)
    channel = AnnouncementChannel(db, broadcaster, connection, identity, user)

    try:
        while True:
            channel.handle(await websocket.receive_text())
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(connection.id)
