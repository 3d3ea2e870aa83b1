"""Event emitter for real-time WebSocket communication.

Emits into Socket.IO rooms named by the hub's RoomRegistry. A multi-room
emit reaches a connection that sits in several target rooms only once.

Usage:
    emitter.emit_to_user(user_id, EventEmitter.MESSAGE_NOTIFICATION, data)
    emitter.emit_to_conversation(conversation_id, EventEmitter.NEW_MESSAGE, data)
"""
import logging
from typing import Any, Dict, Iterable, Optional

from hub_server.websocket.rooms import RoomRegistry, user_room, conversation_room

logger = logging.getLogger(__name__)


class EventEmitter:
    """Emits live-channel events to rooms of connected sockets."""

    # Server -> client events
    NEW_MESSAGE = 'new_message'
    MESSAGE_NOTIFICATION = 'message_notification'
    USER_TYPING = 'user_typing'
    USER_STOP_TYPING = 'user_stop_typing'
    MESSAGES_READ = 'messages_read'
    CONVERSATION_DELETED = 'conversation_deleted'
    MESSAGE_ERROR = 'message_error'

    def __init__(self, socketio, rooms: RoomRegistry):
        self.socketio = socketio
        self.rooms = rooms

    def emit_to_rooms(
        self,
        rooms: Iterable[str],
        event: str,
        data: Dict[str, Any],
        skip_sid: Optional[str] = None
    ) -> int:
        """Emit once to every socket in the union of ``rooms``.

        Socket.IO resolves the rooms and delivers to each socket once, even
        when it sits in several of them. Returns the number of sockets reached.
        """
        rooms = list(rooms)
        targets = set()
        for room in rooms:
            targets |= self.rooms.members_of(room)
        targets.discard(skip_sid)

        if not targets:
            logger.debug(f"EVENT_EMITTER: no sockets for {event}")
            return 0

        try:
            self.socketio.emit(event, data, to=rooms, skip_sid=skip_sid, namespace=self.rooms.namespace)
        except Exception as e:
            logger.error(f"EVENT_EMITTER: Error emitting {event} to rooms {rooms}: {e}")
            return 0
        logger.debug(f"EVENT_EMITTER: emitted '{event}' to {len(targets)} sockets in {rooms}")
        return len(targets)

    def emit_to_room(self, room: str, event: str, data: Dict[str, Any], skip_sid: Optional[str] = None) -> int:
        return self.emit_to_rooms([room], event, data, skip_sid=skip_sid)

    def emit_to_user(self, user_id: str, event: str, data: Dict[str, Any], skip_sid: Optional[str] = None) -> int:
        """Emit to all connected devices of a user."""
        return self.emit_to_room(user_room(user_id), event, data, skip_sid=skip_sid)

    def emit_to_conversation(self, conversation_id, event: str, data: Dict[str, Any], skip_sid: Optional[str] = None) -> int:
        """Emit to every connection that joined the conversation's room."""
        return self.emit_to_room(conversation_room(conversation_id), event, data, skip_sid=skip_sid)
