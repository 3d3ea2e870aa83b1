"""Message history, sending and read receipts."""
import logging
import math
from typing import Any, Dict, Optional

from pymongo.errors import PyMongoError

from hub_server.exception.ForbiddenError import ForbiddenError
from hub_server.messaging.models import Message, MessageType, MessageWithProfiles, ProfileSummary
from hub_server.repository.mongo_helper import run_atomic
from hub_server.utils.helpers import utc_now

logger = logging.getLogger(__name__)

NOT_A_PARTICIPANT = 'Receiver is not a participant in this conversation'


class MessageService:

    def __init__(self, conversation_repo, message_repo, profile_repo, guard, fanout, db=None,
                 use_transaction=None, default_page_size=50, max_page_size=100):
        self.conversations = conversation_repo
        self.messages = message_repo
        self.profiles = profile_repo
        self.guard = guard
        self.fanout = fanout
        self.db = db if db is not None else message_repo.db
        self.use_transaction = use_transaction
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def list_for_conversation(self, caller_id: str, conversation_id, page: int = 1,
                              limit: Optional[int] = None) -> Dict[str, Any]:
        """One page of history, oldest to newest within the page.

        Page 1 holds the most recent ``limit`` messages. ``pagination.total``
        counts the whole conversation.
        """
        conversation = self.guard.require(caller_id, conversation_id)
        limit = limit or self.default_page_size
        if page < 1:
            raise ValueError('page must be >= 1')
        if limit < 1 or limit > self.max_page_size:
            raise ValueError(f'limit must be between 1 and {self.max_page_size}')

        newest = self.messages.newest_first(conversation.conversation_id, skip=(page - 1) * limit, limit=limit)
        total = self.messages.count_for_conversation(conversation.conversation_id)
        newest.reverse()

        summaries = self.profiles.user_summaries(conversation.participants)
        return {
            'messages': [self._with_profiles(m, summaries).to_dict() for m in newest],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': math.ceil(total / limit) if total else 0,
            }
        }

    def send(self, caller_id: str, conversation_id, receiver_id, content,
             message_type=MessageType.TEXT) -> MessageWithProfiles:
        """Persist a message and update the conversation's last-message summary.

        Raises ValueError for blank content or a missing receiver,
        NotFoundError when the caller cannot see the conversation and
        ForbiddenError when ``receiver_id`` is not the other participant.
        """
        if not isinstance(content, str) or not content.strip():
            raise ValueError('content is required')
        if not receiver_id or not str(receiver_id).strip():
            raise ValueError('receiverId is required')
        receiver_id = str(receiver_id).strip()
        message_type = MessageType.parse(message_type)

        conversation = self.guard.require(caller_id, conversation_id)
        if conversation.counterpart_of(caller_id) != receiver_id:
            raise ForbiddenError(NOT_A_PARTICIPANT)

        message = Message(
            conversation_id=conversation.conversation_id,
            sender_id=caller_id,
            receiver_id=receiver_id,
            content=content.strip(),
            message_type=message_type
        )

        def _write(session):
            self.messages.insert(message, session=session)
            try:
                self.conversations.record_last_message(
                    conversation.conversation_id, message.content, message.created_at, session=session
                )
            except PyMongoError:
                if session is not None:
                    raise
                # The message is durable; only the advisory summary is stale
                logger.exception(f"Failed to update last message of conversation {conversation.id}")
            return message

        run_atomic(self.db, _write, self.use_transaction)
        logger.info(f"Message {message.id} stored in conversation {conversation.id} by {caller_id}")

        summaries = self.profiles.user_summaries(conversation.participants)
        return self._with_profiles(message, summaries)

    def deliver(self, caller_id: str, conversation_id, receiver_id, content,
                message_type=MessageType.TEXT) -> MessageWithProfiles:
        """Send a message, then fan it out to live connections.

        The single write path for REST and the live channel alike. Nothing is
        emitted unless the write succeeded, and once it has succeeded a
        fan-out failure is logged rather than reported as a failed send.
        """
        message = self.send(caller_id, conversation_id, receiver_id, content, message_type)
        try:
            self.fanout.message_created(message)
        except Exception:
            logger.exception(f"Fan-out failed for stored message {message.id} in conversation {message.message.conversation_id}")
        return message

    def mark_read(self, caller_id: str, conversation_id, skip_sid: Optional[str] = None) -> int:
        """Mark every unread message addressed to the caller in the conversation as read.

        Emits ``messages_read`` to the conversation room (minus ``skip_sid``)
        and returns the number of messages updated.
        """
        conversation = self.guard.require(caller_id, conversation_id)
        updated = self.messages.mark_read_for_receiver(conversation.conversation_id, caller_id, utc_now())
        logger.info(f"{updated} messages marked read in conversation {conversation.id} by {caller_id}")
        self.fanout.messages_read(conversation.id, caller_id, skip_sid=skip_sid)
        return updated

    def unread_count(self, caller_id: str) -> int:
        return self.fanout.unread_count(caller_id)

    @staticmethod
    def _with_profiles(message: Message, summaries: Dict[str, ProfileSummary]) -> MessageWithProfiles:
        return MessageWithProfiles(
            message=message,
            sender=summaries.get(message.sender_id) or ProfileSummary.unknown(message.sender_id),
            receiver=summaries.get(message.receiver_id) or ProfileSummary.unknown(message.receiver_id)
        )
