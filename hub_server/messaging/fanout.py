"""Live fan-out of persisted messaging state changes.

Every emit here happens after the corresponding database write succeeded,
whether the write came from a REST request or a live-channel event.
"""
import logging
from typing import Optional

from hub_server.messaging.models import Conversation, MessageWithProfiles
from hub_server.websocket.event_emitter import EventEmitter
from hub_server.websocket.rooms import user_room, conversation_room

logger = logging.getLogger(__name__)


class MessageFanout:

    def __init__(self, message_repo, emitter: Optional[EventEmitter] = None):
        self.messages = message_repo
        self.emitter = emitter

    def unread_count(self, user_id: str) -> int:
        """Unread messages addressed to ``user_id`` across all conversations.

        Recomputed from the messages collection on every call.
        """
        return self.messages.count_unread(user_id)

    def message_created(self, message: MessageWithProfiles) -> int:
        """Broadcast a stored message and notify its receiver.

        Emits ``new_message`` to the conversation room and a
        ``message_notification`` with the receiver's unread count to the
        receiver's personal room. Returns the unread count that was sent.
        """
        payload = message.to_dict()
        conversation_id = payload['conversationId']
        receiver_id = message.message.receiver_id

        if self.emitter is None:
            return self.unread_count(receiver_id)

        viewers = self.emitter.emit_to_conversation(conversation_id, EventEmitter.NEW_MESSAGE, payload)
        unread = self.unread_count(receiver_id)
        notified = self.emitter.emit_to_user(receiver_id, EventEmitter.MESSAGE_NOTIFICATION, {
            'conversationId': conversation_id,
            'message': payload,
            'unreadCount': unread,
        })
        logger.info(f"Message {message.id} fanned out: conversation sockets={viewers}, receiver sockets={notified}")
        return unread

    def messages_read(self, conversation_id: str, reader_id: str, skip_sid: Optional[str] = None) -> int:
        if self.emitter is None:
            return 0
        return self.emitter.emit_to_conversation(conversation_id, EventEmitter.MESSAGES_READ, {
            'conversationId': str(conversation_id),
            'readBy': reader_id,
        }, skip_sid=skip_sid)

    def conversation_deleted(self, conversation: Conversation, deleted_by: str) -> int:
        """Tell the other participants and any room viewers, then close the room."""
        if self.emitter is None:
            return 0
        rooms = [user_room(p) for p in conversation.participants if p != deleted_by]
        rooms.append(conversation_room(conversation.id))
        sent = self.emitter.emit_to_rooms(rooms, EventEmitter.CONVERSATION_DELETED, {
            'conversationId': conversation.id,
            'deletedBy': deleted_by,
        })
        self.emitter.rooms.close(conversation_room(conversation.id))
        return sent
