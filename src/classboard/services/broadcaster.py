"""Live fan-out of announcement changes to WebSocket clients.

Every connection sits in the global room; clients looking at one
announcement additionally join that announcement's room. Delivery is
best-effort: ``publish`` only enqueues onto each target connection's bounded
outbox and a per-connection writer task drains it, so a slow or broken
socket can never block or fail the mutation that produced the event.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Any, Protocol

from classboard.core.settings import settings
from classboard.db.time import utcnow
from classboard.models import ReactionType
from classboard.schemas.announcement import ReactionCountOut
from classboard.schemas.realtime import (
    DeletedAnnouncement,
    PinUpdate,
    ReactionUpdate,
    ViewerSummary,
    ViewUpdate,
)
from classboard.services.engagement import ReactionCount

logger = logging.getLogger(__name__)

GLOBAL_ROOM = "announcements:global"


def item_room(announcement_id: str) -> str:
    """Return the room name for clients viewing a single announcement."""
    return f"announcement:{announcement_id}"


class ServerEvent(str, enum.Enum):
    """Event names sent from the server to clients."""

    REACTION = "reaction"
    VIEW = "view"
    NEW = "new"
    UPDATE = "update"
    DELETE = "delete"
    PIN = "pin"
    ERROR = "error"
    ACK = "ack"


class JsonSocket(Protocol):
    async def send_json(self, data: Any, mode: str = "text") -> None: ...


@dataclass
class Connection:
    """Bookkeeping for one connected socket."""

    websocket: JsonSocket
    loop: asyncio.AbstractEventLoop
    outbox: asyncio.Queue[dict[str, Any]]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    user_id: int | None = None
    user_name: str | None = None
    rooms: set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=utcnow)
    writer: asyncio.Task[None] | None = None

    def offer(self, message: dict[str, Any]) -> bool:
        """Enqueue without waiting; a full outbox drops the message."""
        try:
            self.outbox.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Outbox full for connection %s; dropped %s", self.id, message["event"])
            return False
        return True


def _frame(event: ServerEvent, data: Any, request_id: int | str | None = None) -> dict[str, Any]:
    frame: dict[str, Any] = {"event": event.value, "data": data}
    if request_id is not None:
        frame["id"] = request_id
    return frame


class Broadcaster:
    """Process-wide registry of live connections and their rooms."""

    def __init__(self, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    # --- Connection lifecycle -------------------------------------------------------
    async def connect(
        self,
        websocket: JsonSocket,
        *,
        user_id: int | None = None,
        user_name: str | None = None,
    ) -> Connection:
        """Register an accepted socket, join it to the global room and start its writer."""
        connection = Connection(
            websocket=websocket,
            loop=asyncio.get_running_loop(),
            outbox=asyncio.Queue(maxsize=self.queue_size),
            user_id=user_id,
            user_name=user_name,
        )
        connection.writer = asyncio.create_task(self._pump(connection))
        with self._lock:
            self._connections[connection.id] = connection
        self.join(connection.id, GLOBAL_ROOM)

        if user_id is not None:
            logger.info("Client connected: %s (user %s)", connection.id, user_id)
        else:
            logger.info("Anonymous client connected: %s", connection.id)
        return connection

    async def disconnect(self, connection_id: str) -> None:
        """Forget a connection and stop its writer; nothing persistent changes."""
        with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return
            for room in connection.rooms:
                members = self._rooms.get(room)
                if members is not None:
                    members.discard(connection_id)
                    if not members:
                        del self._rooms[room]
            connection.rooms.clear()

        if connection.writer is not None:
            connection.writer.cancel()
            try:
                await connection.writer
            except asyncio.CancelledError:
                pass
        logger.info("Client disconnected: %s", connection_id)

    def join(self, connection_id: str, room: str) -> bool:
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return False
            connection.rooms.add(room)
            self._rooms.setdefault(room, set()).add(connection_id)
        logger.debug("Connection %s joined %s", connection_id, room)
        return True

    def leave(self, connection_id: str, room: str) -> bool:
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None or room == GLOBAL_ROOM:
                return False
            connection.rooms.discard(room)
            members = self._rooms.get(room)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self._rooms[room]
        logger.debug("Connection %s left %s", connection_id, room)
        return True

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def authenticated_count(self) -> int:
        with self._lock:
            return sum(1 for conn in self._connections.values() if conn.user_id is not None)

    def room_members(self, room: str) -> set[str]:
        with self._lock:
            return set(self._rooms.get(room, ()))

    # --- Delivery -------------------------------------------------------------------
    def send(
        self,
        connection_id: str,
        event: ServerEvent,
        data: Any,
        *,
        request_id: int | str | None = None,
    ) -> bool:
        """Queue an event for a single connection."""
        with self._lock:
            connection = self._connections.get(connection_id)
        if connection is None:
            return False
        try:
            return self._enqueue(connection, _frame(event, data, request_id))
        except Exception:
            logger.warning("Failed to queue %s for %s", event.value, connection_id, exc_info=True)
            return False

    def publish(self, event: ServerEvent, data: Any, *rooms: str) -> int:
        """Queue one copy of an event for every connection in any of ``rooms``.

        Never raises; returns the number of connections the event was queued for.
        """
        try:
            with self._lock:
                targets: dict[str, Connection] = {}
                for room in rooms:
                    for connection_id in self._rooms.get(room, ()):
                        targets[connection_id] = self._connections[connection_id]
            frame = _frame(event, data)
        except Exception:
            logger.warning("Broadcast of %s failed", event.value, exc_info=True)
            return 0

        delivered = 0
        for connection in targets.values():
            try:
                if self._enqueue(connection, frame):
                    delivered += 1
            except Exception:
                logger.warning(
                    "Failed to queue %s for %s", event.value, connection.id, exc_info=True
                )
        return delivered

    def _enqueue(self, connection: Connection, frame: dict[str, Any]) -> bool:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is connection.loop:
            return connection.offer(frame)
        connection.loop.call_soon_threadsafe(connection.offer, frame)
        return True

    async def _pump(self, connection: Connection) -> None:
        while True:
            frame = await connection.outbox.get()
            try:
                await connection.websocket.send_json(frame)
            except Exception as exc:
                logger.warning("Delivery to %s failed: %s", connection.id, exc)
            finally:
                connection.outbox.task_done()

    # --- Announcement events --------------------------------------------------------
    def reaction_changed(
        self,
        announcement_id: str,
        counts: list[ReactionCount],
        *,
        user_id: int | None,
        reaction_type: ReactionType | None,
        action: str,
    ) -> int:
        payload = ReactionUpdate(
            announcement_id=announcement_id,
            reactions=[ReactionCountOut(type=c.type, count=c.count) for c in counts],
            total_reactions=sum(c.count for c in counts),
            user_id=user_id,
            reaction_type=reaction_type,
            action=action,
        )
        return self.publish(
            ServerEvent.REACTION, payload.to_json(), GLOBAL_ROOM, item_room(announcement_id)
        )

    def view_recorded(
        self,
        announcement_id: str,
        view_count: int,
        *,
        viewer_id: int | None = None,
        viewer_name: str | None = None,
    ) -> int:
        viewer = None
        if viewer_id is not None:
            viewer = ViewerSummary(id=viewer_id, name=viewer_name or "User", viewed_at=utcnow())
        payload = ViewUpdate(announcement_id=announcement_id, view_count=view_count, viewer=viewer)
        return self.publish(
            ServerEvent.VIEW, payload.to_json(), GLOBAL_ROOM, item_room(announcement_id)
        )

    def announcement_created(self, announcement: dict[str, Any]) -> int:
        return self.publish(ServerEvent.NEW, announcement, GLOBAL_ROOM)

    def announcement_updated(self, announcement: dict[str, Any]) -> int:
        return self.publish(
            ServerEvent.UPDATE, announcement, GLOBAL_ROOM, item_room(announcement["id"])
        )

    def announcement_deleted(self, announcement_id: str) -> int:
        payload = DeletedAnnouncement(id=announcement_id)
        return self.publish(
            ServerEvent.DELETE, payload.to_json(), GLOBAL_ROOM, item_room(announcement_id)
        )

    def pin_changed(self, announcement_id: str, is_pinned: bool) -> int:
        payload = PinUpdate(id=announcement_id, is_pinned=is_pinned)
        return self.publish(ServerEvent.PIN, payload.to_json(), GLOBAL_ROOM)


@lru_cache(maxsize=1)
def get_broadcaster() -> Broadcaster:
    """Return the process-wide broadcaster."""
    return Broadcaster(queue_size=settings.ws_outbound_queue_size)
