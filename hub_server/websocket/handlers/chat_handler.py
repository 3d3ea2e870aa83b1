"""WebSocket Chat Handler.

Client -> server events:
- join_conversation / leave_conversation
- send_message
- typing_start / typing_stop
- mark_messages_read

Messages are stored in MongoDB before anything is broadcast. Sending goes
through the same ``MessageService.deliver`` path as the REST endpoint, so a
message seen live is exactly the message later returned by history.
"""
import logging
from typing import Any, Optional

from flask import request
from flask_socketio import emit
from pymongo.errors import PyMongoError

from hub_server.exception.ForbiddenError import ForbiddenError
from hub_server.exception.NotFoundError import NotFoundError
from hub_server.messaging.guard import CONVERSATION_NOT_FOUND
from hub_server.messaging.service import get_messaging_service
from hub_server.utils.helpers import to_object_id
from hub_server.websocket.event_emitter import EventEmitter
from hub_server.websocket.rooms import RoomRegistry, conversation_room

logger = logging.getLogger(__name__)

SEND_FAILED = 'Failed to send message'
NOT_AUTHENTICATED = 'Not authenticated'
CONVERSATION_ID_REQUIRED = 'conversationId is required'


def _conversation_id(data: Any) -> Optional[str]:
    """Accept ``{"conversationId": ...}`` or a bare conversation id.

    Valid ids come back in canonical form, so a room joined under one
    spelling of an id is left or typed into under any other.
    """
    if isinstance(data, dict):
        value = data.get('conversationId') or data.get('conversation_id')
    else:
        value = data
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    oid = to_object_id(value)
    return str(oid) if oid is not None else value


class ChatHandler:
    """Handler for WebSocket chat events."""

    # Client -> server events
    EVENT_JOIN = 'join_conversation'
    EVENT_LEAVE = 'leave_conversation'
    EVENT_SEND = 'send_message'
    EVENT_TYPING_START = 'typing_start'
    EVENT_TYPING_STOP = 'typing_stop'
    EVENT_MARK_READ = 'mark_messages_read'

    def __init__(self, socketio, rooms: RoomRegistry, emitter: EventEmitter):
        """Initialize chat handler.

        Args:
            socketio: Flask-SocketIO instance
            rooms: room registry owned by the hub
            emitter: emitter bound to the same registry
        """
        self.socketio = socketio
        self.rooms = rooms
        self.emitter = emitter

    def register_handlers(self):
        """Register all chat WebSocket event handlers."""

        # =====================================================================
        # Room Events
        # =====================================================================

        @self.socketio.on(self.EVENT_JOIN)
        def handle_join_conversation(data=None):
            """Join a conversation room after checking participation."""
            socket_id = request.sid
            user_id = self.rooms.user_of(socket_id)
            if not user_id:
                return {'success': False, 'error': NOT_AUTHENTICATED}

            conversation_id = _conversation_id(data)
            if not conversation_id:
                return {'success': False, 'error': CONVERSATION_ID_REQUIRED}

            conversation = get_messaging_service().guard.find(user_id, conversation_id)
            if conversation is None:
                logger.info(f"WS join refused: user={user_id}, conversation={conversation_id}")
                return {'success': False, 'error': CONVERSATION_NOT_FOUND}

            self.rooms.join(conversation_room(conversation.id), socket_id)
            logger.debug(f"WS join: user={user_id}, conversation={conversation.id}, sid={socket_id}")
            return {'success': True, 'conversationId': conversation.id}

        @self.socketio.on(self.EVENT_LEAVE)
        def handle_leave_conversation(data=None):
            conversation_id = _conversation_id(data)
            if not conversation_id:
                return {'success': False, 'error': CONVERSATION_ID_REQUIRED}
            if self.rooms.leave(conversation_room(conversation_id), request.sid):
                logger.debug(f"WS leave: conversation={conversation_id}, sid={request.sid}")
            return {'success': True, 'conversationId': conversation_id}

        # =====================================================================
        # Message Events
        # =====================================================================

        @self.socketio.on(self.EVENT_SEND)
        def handle_send_message(data=None):
            """Persist a message, then broadcast it.

            Data:
                conversationId: str - Target conversation
                content: str - Message text
                receiverId: str - The other participant
                messageType: str - text (default), file or image

            Response Events:
                - new_message (conversation room)
                - message_notification (receiver's personal room)
                - message_error (this connection only, on failure)
            """
            socket_id = request.sid
            user_id = self.rooms.user_of(socket_id)
            data = data if isinstance(data, dict) else {}
            conversation_id = _conversation_id(data)

            if not user_id:
                return self._send_failed(conversation_id, NOT_AUTHENTICATED)

            try:
                message = get_messaging_service().messages.deliver(
                    user_id,
                    conversation_id,
                    data.get('receiverId'),
                    data.get('content'),
                    data.get('messageType')
                )
            except ValueError as e:
                logger.info(f"WS send invalid: user={user_id}, conversation={conversation_id}: {e}")
                return self._send_failed(conversation_id, str(e))
            except (NotFoundError, ForbiddenError) as e:
                logger.info(f"WS send rejected: user={user_id}, conversation={conversation_id}: {e}")
                return self._send_failed(conversation_id, SEND_FAILED)
            except Exception:
                logger.exception(f"WS send failed: user={user_id}, conversation={conversation_id}")
                return self._send_failed(conversation_id, SEND_FAILED)

            return {'success': True, 'messageId': message.id}

        # =====================================================================
        # Typing Events
        # =====================================================================

        @self.socketio.on(self.EVENT_TYPING_START)
        def handle_typing_start(data=None):
            self._relay_typing(data, EventEmitter.USER_TYPING)

        @self.socketio.on(self.EVENT_TYPING_STOP)
        def handle_typing_stop(data=None):
            self._relay_typing(data, EventEmitter.USER_STOP_TYPING)

        # =====================================================================
        # Read Receipts
        # =====================================================================

        @self.socketio.on(self.EVENT_MARK_READ)
        def handle_mark_read(data=None):
            """Mark the caller's unread messages read and tell the room."""
            socket_id = request.sid
            user_id = self.rooms.user_of(socket_id)
            if not user_id:
                return {'success': False, 'error': NOT_AUTHENTICATED}

            conversation_id = _conversation_id(data)
            if not conversation_id:
                return {'success': False, 'error': CONVERSATION_ID_REQUIRED}

            try:
                updated = get_messaging_service().messages.mark_read(user_id, conversation_id, skip_sid=socket_id)
            except NotFoundError as e:
                return {'success': False, 'error': str(e)}
            except PyMongoError:
                logger.exception(f"WS mark read failed: user={user_id}, conversation={conversation_id}")
                return {'success': False, 'error': 'Failed to mark messages as read'}

            return {'success': True, 'conversationId': conversation_id, 'updated': updated}

    def _relay_typing(self, data, event: str):
        """Relay a typing change to everyone else viewing the conversation."""
        socket_id = request.sid
        user_id = self.rooms.user_of(socket_id)
        conversation_id = _conversation_id(data)
        if not user_id or not conversation_id:
            return

        room = conversation_room(conversation_id)
        if not self.rooms.is_member(room, socket_id):
            return

        self.emitter.emit_to_room(room, event, {
            'userId': user_id,
            'conversationId': conversation_id
        }, skip_sid=socket_id)

    @staticmethod
    def _send_failed(conversation_id: Optional[str], error: str) -> dict:
        emit(EventEmitter.MESSAGE_ERROR, {'error': error, 'conversationId': conversation_id})
        return {'success': False, 'error': error}


def init_chat_handler(socketio, rooms: RoomRegistry, emitter: EventEmitter) -> ChatHandler:
    """Initialize chat handler with socketio instance."""
    handler = ChatHandler(socketio, rooms, emitter)
    handler.register_handlers()
    logger.info("Chat handler initialized")
    return handler
