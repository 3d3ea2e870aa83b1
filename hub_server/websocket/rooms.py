"""Room membership for the live channel.

A room is a named fan-out group of socket ids. Two kinds exist:

- ``user:{user_id}``: every connection of one user (all devices)
- ``conversation:{conversation_id}``: connections currently viewing a thread

Membership lives in the Socket.IO server's own rooms. The registry adds the
sid -> user binding made at handshake on top of them. Socket.IO drops a connection from
all of its rooms on disconnect. Nothing here is persisted or shared between
processes.
"""
from typing import Dict, Optional, Set

from flask_socketio import join_room, leave_room

NAMESPACE = '/'


def user_room(user_id) -> str:
    return f"user:{user_id}"


def conversation_room(conversation_id) -> str:
    return f"conversation:{conversation_id}"


class RoomRegistry:

    def __init__(self, socketio, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace
        self._user_by_sid: Dict[str, str] = {}

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def bind(self, sid: str, user_id: str):
        """Attach a verified user to a connection and join its personal room."""
        self._user_by_sid[sid] = user_id
        self.join(user_room(user_id), sid)

    def user_of(self, sid: str) -> Optional[str]:
        return self._user_by_sid.get(sid)

    def release(self, sid: str) -> Set[str]:
        """Forget a connection; returns the rooms it was in."""
        rooms = self.rooms_of(sid)
        self._user_by_sid.pop(sid, None)
        return rooms

    # -------------------------------------------------------------------------
    # Rooms
    # -------------------------------------------------------------------------

    def join(self, room: str, sid: str):
        # Called from Socket.IO handlers, which carry the app context
        join_room(room, sid=sid, namespace=self.namespace)

    def leave(self, room: str, sid: str) -> bool:
        if not self.is_member(room, sid):
            return False
        leave_room(room, sid=sid, namespace=self.namespace)
        return True

    def close(self, room: str) -> Set[str]:
        """Remove every member from ``room``; returns the sids that were in it."""
        sids = self.members_of(room)
        self.socketio.close_room(room, namespace=self.namespace)
        return sids

    def members_of(self, room: str) -> Set[str]:
        participants = self.socketio.server.manager.get_participants(self.namespace, room)
        try:
            return {sid for sid, _ in participants}
        except KeyError:
            # no connection has been seen on the namespace yet
            return set()

    def rooms_of(self, sid: str) -> Set[str]:
        # Socket.IO also puts every connection in a room named after its sid
        return {room for room in self.socketio.server.rooms(sid, namespace=self.namespace) if room != sid}

    def is_member(self, room: str, sid: str) -> bool:
        return room in self.socketio.server.rooms(sid, namespace=self.namespace)
